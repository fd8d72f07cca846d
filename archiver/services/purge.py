"""Purge stale files from the top level of a directory."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from archiver.lib.cancellation import CancellationToken
from archiver.lib.logging_config import log_with_context

logger = logging.getLogger(__name__)


@dataclass
class PurgeResult:
    """Outcome of one purge pass.

    Attributes:
        removed: Names of files deleted
        kept: Names of files at or after the cutoff
        failed: Names of entries that could not be stat'ed or deleted
        error: Set when the directory itself could not be listed
    """

    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


def _mtime_ms(stat: os.stat_result) -> int:
    return stat.st_mtime_ns // 1_000_000


def purge_directory(
    directory: Path,
    cutoff_ms: int,
    token: Optional[CancellationToken] = None,
) -> PurgeResult:
    """Delete top-level files modified strictly before the cutoff.

    Subdirectories are never descended into or removed. A listing failure
    ends the purge; a stat or delete failure skips that entry only.

    Args:
        directory: Directory to purge
        cutoff_ms: Cutoff timestamp in epoch milliseconds
        token: Optional cancellation token checked between entries

    Returns:
        PurgeResult describing what happened

    Raises:
        RunCancelled: If the token is cancelled mid-purge
    """
    result = PurgeResult()

    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        log_with_context(logger, "error", "Reading directory", error=str(e), path=str(directory))
        result.error = str(e)
        return result

    for entry in entries:
        if token is not None:
            token.raise_if_cancelled()

        try:
            if entry.is_dir(follow_symlinks=False):
                continue
            mod_time = _mtime_ms(entry.stat(follow_symlinks=False))
        except OSError as e:
            log_with_context(logger, "error", "Getting file info", error=str(e), file=entry.name)
            result.failed.append(entry.name)
            continue

        if mod_time >= cutoff_ms:
            result.kept.append(entry.name)
            continue

        log_with_context(
            logger,
            "info",
            "File is older than filter, removing",
            file=entry.name,
            modification_time=mod_time,
            filter=cutoff_ms,
        )
        try:
            os.remove(entry.path)
        except OSError as e:
            log_with_context(logger, "error", "Removing old file", error=str(e), file=entry.name)
            result.failed.append(entry.name)
            continue
        result.removed.append(entry.name)

    logger.debug(
        f"Purged {directory}: {len(result.removed)} removed, "
        f"{len(result.kept)} kept, {len(result.failed)} failed"
    )
    return result
