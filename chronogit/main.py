"""
chronogit — CLI Entry Point

Usage:
    python -m chronogit.main set-token
    python -m chronogit.main provision [--name NAME]
    python -m chronogit.main select-repos [OWNER/NAME ...]
    python -m chronogit.main sync
    python -m chronogit.main watch [--interval SECONDS]
    python -m chronogit.main status [--json]
"""

from __future__ import annotations

# Load .env before anything reads the environment
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import asyncio
import json
from typing import Optional, Tuple

import click

from .config.settings import DEFAULT_MIRROR_REPO
from .config.store import ACCESS_TOKEN_KEY, ConfigStore, CredentialStore
from .errors import ConfigurationError
from .logging_config import setup_logging
from .mirror import CommitMirror, MirrorContext, MirrorProvisioner
from .scheduler import run_periodic
from .selection import list_candidate_repos, save_selection

NOTIFY_COLORS = {"info": "green", "warning": "yellow", "error": "red"}


def click_notifier(level: str, message: str) -> None:
    """Print user-facing notifications to the terminal."""
    click.secho(message, fg=NOTIFY_COLORS.get(level), err=level == "error")


def _stores(ctx: click.Context) -> Tuple[ConfigStore, CredentialStore]:
    state_dir: Path = ctx.obj["state_dir"]
    try:
        return (
            ConfigStore(state_dir / "config.json"),
            CredentialStore(state_dir / "credentials.json"),
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e))


def _context(config: ConfigStore, prompt=None) -> MirrorContext:
    return MirrorContext(config, notifier=click_notifier, prompt=prompt)


@click.group()
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CHRONOGIT_STATE_DIR",
    default="state",
    show_default=True,
    help="Directory holding config.json and credentials.json",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.pass_context
def cli(ctx: click.Context, state_dir: Path, log_level: Optional[str]) -> None:
    """chronogit — Mirror commit history into a single GitHub repository."""
    setup_logging(level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["state_dir"] = state_dir


@cli.command("set-token")
@click.option("--token", prompt=True, hide_input=True, help="GitHub OAuth or personal access token")
@click.pass_context
def set_token(ctx: click.Context, token: str) -> None:
    """Store the GitHub access token."""
    _, credentials = _stores(ctx)
    credentials.set(ACCESS_TOKEN_KEY, token.strip())
    click.secho("✓ Access token stored", fg="green")


@cli.command()
@click.option("--name", default=None, help="Mirror repository name (skips the prompt)")
@click.pass_context
def provision(ctx: click.Context, name: Optional[str]) -> None:
    """Create the mirror repository if it does not exist."""
    config, credentials = _stores(ctx)

    def prompt(suggested: str) -> Optional[str]:
        if name:
            return name
        return click.prompt("Mirror repository name", default=suggested)

    try:
        provisioner = MirrorProvisioner(_context(config, prompt=prompt))
        target = asyncio.run(provisioner.ensure_mirror_repo(credentials))
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    click.echo(f"Mirror repository: {target.full_name}")


@cli.command("select-repos")
@click.argument("repos", nargs=-1)
@click.pass_context
def select_repos(ctx: click.Context, repos: Tuple[str, ...]) -> None:
    """
    Choose the repositories to mirror commits from.

    Pass OWNER/NAME arguments, or none to pick from your repositories.
    """
    config, credentials = _stores(ctx)
    try:
        context = _context(config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if not repos:
        try:
            candidates = asyncio.run(list_candidate_repos(context, credentials))
        except ConfigurationError as e:
            raise click.ClickException(str(e))

        if not candidates:
            click.echo("No repositories to mirror commits from.")
            return

        for index, repo in enumerate(candidates, start=1):
            visibility = "Private" if repo.private else "Public"
            click.echo(f"  {index:3}. {repo.full_name} ({visibility})")

        picked = click.prompt(
            "Select repositories (comma-separated numbers)", default="", show_default=False
        )
        chosen = []
        for part in picked.split(","):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit() or not 1 <= int(part) <= len(candidates):
                raise click.BadParameter(f"{part!r} is not a listed number")
            chosen.append(candidates[int(part) - 1].full_name)
        repos = tuple(chosen)

    try:
        save_selection(context, repos)
    except ValueError as e:
        raise click.BadParameter(str(e))


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Mirror recent commits of the selected repositories once."""
    config, credentials = _stores(ctx)
    try:
        mirror = CommitMirror(_context(config))
        result = asyncio.run(mirror.mirror_repos(credentials))
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if not result.success:
        raise SystemExit(1)


@cli.command()
@click.option("--interval", type=float, default=None, help="Seconds between passes (default: configured syncInterval)")
@click.option("--iterations", type=int, default=None, help="Stop after N passes")
@click.pass_context
def watch(ctx: click.Context, interval: Optional[float], iterations: Optional[int]) -> None:
    """Mirror repeatedly on an interval."""
    config, credentials = _stores(ctx)
    try:
        mirror = CommitMirror(_context(config))
        asyncio.run(run_periodic(mirror, credentials, interval_seconds=interval, iterations=iterations))
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show mirror configuration."""
    config, credentials = _stores(ctx)
    try:
        settings = config.settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    result = {
        "authenticated": bool(credentials.get(ACCESS_TOKEN_KEY)),
        "mirror_owner": settings.mirror_repo_owner,
        "mirror_repo": settings.mirror_repo or DEFAULT_MIRROR_REPO,
        "selected_repos": settings.selected_repos,
        "sync_interval_ms": settings.sync_interval,
        "conflict_policy": settings.conflict_policy,
    }

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(f"Authenticated:  {'yes' if result['authenticated'] else 'no'}")
    click.echo(f"Mirror owner:   {result['mirror_owner'] or '(not set)'}")
    click.echo(f"Mirror repo:    {result['mirror_repo']}")
    click.echo(f"Sync interval:  {settings.sync_interval_seconds / 60:.0f} minutes")
    click.echo(f"Selected repos: {len(settings.selected_repos)}")
    for name in settings.selected_repos:
        click.echo(f"  - {name}")


if __name__ == "__main__":
    cli()
