"""
Scheduler — Run mirroring passes on a fixed interval.

A failed pass is logged and the next one still runs; only configuration
problems stop the loop, since retrying them cannot succeed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config.store import CredentialStore
from .errors import ConfigurationError
from .mirror.orchestrator import CommitMirror
from .models import MirrorRunResult

logger = logging.getLogger(__name__)


async def run_periodic(
    mirror: CommitMirror,
    credentials: CredentialStore,
    interval_seconds: Optional[float] = None,
    iterations: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[MirrorRunResult]:
    """
    Call ``mirror_repos`` every ``interval_seconds``.

    ``interval_seconds`` defaults to the configured sync interval. Runs
    forever unless ``iterations`` is given. Returns the results of the
    passes that completed.
    """
    if interval_seconds is None:
        interval_seconds = mirror.context.config.settings().sync_interval_seconds

    results: List[MirrorRunResult] = []
    run = 0
    while iterations is None or run < iterations:
        run += 1
        try:
            results.append(await mirror.mirror_repos(credentials))
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(f"[scheduler] Sync pass {run} failed: {e}")
            mirror.context.notify("error", f"Sync failed: {e}")

        if iterations is not None and run >= iterations:
            break
        logger.debug(f"[scheduler] Next sync in {interval_seconds:.0f}s")
        await sleep(interval_seconds)

    return results
