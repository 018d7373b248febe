"""
Tests for CommitMirror — fan-out, partial failure, conflict handling.

Runs against the in-memory gateway. Limiter spacing is zero unless a test
drives it with a fake clock; backoff sleeps are recorded instead of awaited.
"""

from __future__ import annotations

import asyncio

import pytest

from chronogit.config.settings import KEY_CONFLICT_POLICY, KEY_OWNER, KEY_REPO, KEY_SELECTED
from chronogit.config.store import CredentialStore
from chronogit.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    TransientRemoteError,
    ValidationError,
)
from chronogit.gateway import Committer
from chronogit.gateway.memory import InMemoryGateway, blob_token
from chronogit.mirror import CommitMirror, MirrorContext
from chronogit.mirror.document import render_document
from chronogit.mirror.orchestrator import batches, parse_sources
from chronogit.models import SourceRepo
from chronogit.reliability import RateLimiter

from conftest import FakeClock, make_commit

MIRROR = ("alice", "commit-mirror")


class TimedGateway(InMemoryGateway):
    """In-memory gateway that notes the clock reading at every call."""

    def __init__(self, clock, **kwargs):
        super().__init__(**kwargs)
        self.clock = clock
        self.started = []

    def _record(self, operation, *args):
        self.started.append((operation, self.clock.now))
        super()._record(operation, *args)


def run_mirror(context, credentials):
    return asyncio.run(CommitMirror(context).mirror_repos(credentials))


class TestMirrorRepos:
    """End-to-end passes through CommitMirror.mirror_repos."""

    def test_first_run_creates_documents(self, context, credentials, gateway, notes):
        commits = [make_commit("a1"), make_commit("b2", message="Second")]
        gateway.add_repo("alice", "proj", commits=commits)

        result = run_mirror(context, credentials)

        assert result.processed == 2
        assert result.failed == 0
        files = gateway.files(*MIRROR)
        assert files["commits/a1.md"] == render_document(commits[0])
        assert files["commits/b2.md"] == render_document(commits[1])
        puts = [args for name, args in gateway.calls if name == "put_file_content"]
        assert all(args[3] is None for args in puts)
        assert notes.last == ("info", "Mirrored 2 commits, 0 failed")

    def test_second_run_updates_with_version_tokens(self, context, credentials, gateway):
        """Rerunning supplies the stored tokens and leaves content unchanged."""
        commits = [make_commit("a1"), make_commit("b2")]
        gateway.add_repo("alice", "proj", commits=commits)

        run_mirror(context, credentials)
        before = gateway.files(*MIRROR)
        gateway.calls.clear()

        result = run_mirror(context, credentials)

        assert result.processed == 2
        assert result.failed == 0
        assert gateway.files(*MIRROR) == before
        tokens = {args[2]: args[3] for name, args in gateway.calls if name == "put_file_content"}
        assert tokens == {
            "commits/a1.md": blob_token(before["commits/a1.md"]),
            "commits/b2.md": blob_token(before["commits/b2.md"]),
        }

    def test_commit_attribution(self, context, credentials, gateway):
        gateway.add_repo("alice", "proj", commits=[make_commit("0123456789")])

        run_mirror(context, credentials)

        stored = gateway.repos[MIRROR].files["commits/0123456789.md"]
        assert stored.message == "Mirror commit 0123456 from alice/proj"
        assert stored.committer == Committer("alice", "alice@users.noreply.github.com")

    def test_page_size_from_settings(self, context, config, credentials, gateway):
        config.set("commitsPerRepo", 2)
        gateway.add_repo("alice", "proj", commits=[make_commit(s) for s in ("a1", "b2", "c3")])

        result = run_mirror(context, credentials)

        assert result.processed == 2
        assert sorted(gateway.files(*MIRROR)) == ["commits/a1.md", "commits/b2.md"]

    def test_failing_repo_does_not_stop_others(self, context, config, credentials, gateway, notes):
        config.set(KEY_SELECTED, ["alice/one", "alice/missing", "alice/three"])
        gateway.add_repo("alice", "one", commits=[make_commit("a1")])
        gateway.add_repo("alice", "three", commits=[make_commit("c3")])

        result = run_mirror(context, credentials)

        assert result.processed == 2
        assert result.failed == 1
        # NotFound is not retried
        missing = [a for n, a in gateway.calls if n == "list_commits" and a[1] == "missing"]
        assert len(missing) == 1
        assert notes.last == ("warning", "Mirrored 2 commits, 1 failed")

    def test_schema_failure_on_fetch_counted(self, context, credentials, gateway, sleeps):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("list_commits", ValidationError("unexpected payload"))

        result = run_mirror(context, credentials)

        assert (result.processed, result.failed) == (0, 1)
        assert gateway.call_count("list_commits") == 1
        assert sleeps.delays == []

    def test_failing_commit_counted_after_retries(self, context, credentials, gateway, sleeps):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1"), make_commit("b2")])
        gateway.fail_on(
            "put_file_content",
            TransientRemoteError("502", status_code=502),
            times=3,
            args=("alice", "commit-mirror", "commits/b2.md"),
        )

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert result.failed == 1
        assert "commits/b2.md" not in gateway.files(*MIRROR)
        assert sleeps.delays == [1.0, 2.0]

    def test_rate_limited_probe_waits_cooldown(self, context, credentials, gateway, sleeps):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("get_file_content", RateLimitError("429", status_code=429))

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert result.failed == 0
        assert sleeps.delays == [60.0]

    def test_rate_limited_write_reruns_probe(self, context, credentials, gateway, sleeps):
        """The retried unit starts again from the probe after the cooldown."""
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("put_file_content", RateLimitError("429", status_code=429))

        result = run_mirror(context, credentials)

        assert (result.processed, result.failed) == (1, 0)
        assert gateway.call_count("get_file_content") == 2
        assert gateway.call_count("put_file_content") == 2
        assert sleeps.delays == [60.0]

    def test_every_remote_call_is_spaced_by_the_limiter(self, config, credentials, sleeps, notes):
        """Fetches and probe+write units start min_delay apart, even across a batch."""
        clock = FakeClock()
        gateway = TimedGateway(clock, login="alice")
        gateway.add_repo("alice", "commit-mirror")
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.add_repo("alice", "lib", commits=[make_commit("b2", repo="alice/lib")])
        config.set(KEY_SELECTED, ["alice/proj", "alice/lib"])
        context = MirrorContext(
            config,
            gateway_factory=lambda token: gateway,
            limiter=RateLimiter(min_delay=1.0, clock=clock, sleep=clock.sleep),
            sleep=sleeps,
            notifier=notes,
        )

        result = run_mirror(context, credentials)

        assert (result.processed, result.failed) == (2, 0)
        unit_starts = [t for name, t in gateway.started if name in ("list_commits", "get_file_content")]
        assert len(unit_starts) == 4
        gaps = [b - a for a, b in zip(unit_starts, unit_starts[1:])]
        assert gaps == pytest.approx([1.0, 1.0, 1.0])
        assert clock.sleeps == pytest.approx([1.0, 1.0, 1.0])
        # The write shares its probe's slot
        probe_times = {t for name, t in gateway.started if name == "get_file_content"}
        assert {t for name, t in gateway.started if name == "put_file_content"} == probe_times

    def test_transient_fetch_retried(self, context, credentials, gateway, sleeps):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("list_commits", TransientRemoteError("timeout"), times=2)

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert gateway.call_count("list_commits") == 3
        assert sleeps.delays == [1.0, 2.0]

    def test_conflict_reprobes_and_overwrites(self, context, credentials, gateway, sleeps):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("put_file_content", ConflictError("moved", status_code=409))

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert result.failed == 0
        assert gateway.call_count("get_file_content") == 2
        assert sleeps.delays == [1.0]

    def test_conflict_abort_policy_counts_failure(self, context, config, credentials, gateway, sleeps):
        config.set(KEY_CONFLICT_POLICY, "abort")
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])
        gateway.fail_on("put_file_content", ConflictError("moved", status_code=409))

        result = run_mirror(context, credentials)

        assert result.processed == 0
        assert result.failed == 1
        assert gateway.call_count("put_file_content") == 1
        assert sleeps.delays == []

    def test_existing_document_is_overwritten(self, context, credentials, gateway):
        """A document written by someone else is replaced, not duplicated."""
        commit = make_commit("a1")
        gateway.add_repo("alice", "proj", commits=[commit])
        asyncio.run(gateway.put_file_content(
            "alice", "commit-mirror", "commits/a1.md", "stale", "manual",
            Committer("bob", "bob@example.com"),
        ))

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert gateway.files(*MIRROR)["commits/a1.md"] == render_document(commit)

    def test_repo_without_commits(self, context, credentials, gateway, notes):
        gateway.add_repo("alice", "proj")

        result = run_mirror(context, credentials)

        assert result.processed == 0
        assert result.failed == 0
        assert gateway.call_count("put_file_content") == 0
        assert notes.last == ("info", "Mirrored 0 commits, 0 failed")

    def test_empty_selection_is_a_noop(self, context, config, credentials, gateway, notes):
        config.set(KEY_SELECTED, [])

        result = run_mirror(context, credentials)

        assert (result.processed, result.failed) == (0, 0)
        assert gateway.calls == []
        assert notes.items == []

    def test_malformed_entries_counted(self, context, config, credentials, gateway, notes):
        config.set(KEY_SELECTED, ["alice/proj", "not-a-repo"])
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert result.failed == 1
        assert notes.last[0] == "warning"

    def test_default_repo_name_when_unset(self, context, config, credentials, gateway):
        config.set(KEY_REPO, None)
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])

        result = run_mirror(context, credentials)

        assert result.processed == 1
        assert "commits/a1.md" in gateway.files(*MIRROR)

    def test_batches_run_in_order(self, context, config, credentials, gateway):
        """Every call for the first five repos finishes before the next batch starts."""
        names = [f"alice/r{i}" for i in range(7)]
        config.set(KEY_SELECTED, names)
        for i in range(7):
            gateway.add_repo("alice", f"r{i}", commits=[make_commit(f"c{i}", repo=f"alice/r{i}")])

        result = run_mirror(context, credentials)

        assert result.processed == 7
        first_batch = {f"r{i}" for i in range(5)}
        second_batch_start = next(
            index for index, (name, args) in enumerate(gateway.calls)
            if name == "list_commits" and args[1] not in first_batch
        )
        last_first_batch_write = max(
            index for index, (name, args) in enumerate(gateway.calls)
            if name == "put_file_content" and args[2] in {f"commits/c{i}.md" for i in range(5)}
        )
        assert last_first_batch_write < second_batch_start


class TestPreconditions:

    def test_missing_token(self, context, gateway):
        with pytest.raises(ConfigurationError):
            run_mirror(context, CredentialStore.in_memory())
        assert gateway.calls == []

    def test_missing_owner(self, context, config, credentials, gateway):
        config.set(KEY_OWNER, None)

        with pytest.raises(ConfigurationError):
            run_mirror(context, credentials)
        assert gateway.calls == []

    def test_token_from_environment(self, context, gateway, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])

        result = run_mirror(context, CredentialStore.in_memory())

        assert result.processed == 1


class TestHelpers:

    def test_batches(self):
        items = [SourceRepo(owner="o", name=str(i)) for i in range(12)]
        sizes = [len(b) for b in batches(items, 5)]
        assert sizes == [5, 5, 2]

    def test_parse_sources_dedupes_and_collects_invalid(self):
        sources, invalid = parse_sources(["alice/proj", "Alice/Proj", "bad", "a/b/c", "bob/x"])
        assert [s.full_name for s in sources] == ["alice/proj", "bob/x"]
        assert invalid == ["bad", "a/b/c"]

    def test_not_found_is_control_value(self, context, credentials, gateway):
        """A missing document means create; no retry, no failure."""
        gateway.add_repo("alice", "proj", commits=[make_commit("a1")])

        run_mirror(context, credentials)

        assert gateway.call_count("get_file_content") == 1
        assert gateway.call_count("put_file_content") == 1
        with pytest.raises(NotFoundError):
            asyncio.run(gateway.get_file_content("alice", "commit-mirror", "commits/zz.md"))


class TestFailureLogging:

    def test_commit_failure_tagged_with_repo_and_sha(self, context, credentials, gateway, caplog):
        gateway.add_repo("alice", "proj", commits=[make_commit("a1b2c3d4")])
        gateway.fail_on("put_file_content", ValidationError("rejected"))

        with caplog.at_level("ERROR", logger="chronogit.mirror.orchestrator"):
            run_mirror(context, credentials)

        [record] = [r for r in caplog.records if r.name == "chronogit.mirror.orchestrator"]
        assert record.repo == "alice/proj"
        assert record.sha == "a1b2c3d4"

    def test_fetch_failure_tagged_with_repo(self, context, credentials, gateway, caplog):
        with caplog.at_level("ERROR", logger="chronogit.mirror.orchestrator"):
            run_mirror(context, credentials)

        [record] = [r for r in caplog.records if r.name == "chronogit.mirror.orchestrator"]
        assert record.repo == "alice/proj"
        assert not hasattr(record, "sha")
