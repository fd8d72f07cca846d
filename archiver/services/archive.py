"""Bundle a directory tree into a single zip archive."""

import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from opentelemetry import trace

from archiver.lib.cancellation import CancellationToken
from archiver.lib.errors import ArchiveError
from archiver.lib.logging_config import log_with_context

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class ArchiveResult:
    """A finished archive on local disk.

    Attributes:
        path: Location of the zip file
        entries: Relative names stored in the archive, in write order
        size_bytes: Size of the zip file after closing
    """

    path: Path
    entries: list[str] = field(default_factory=list)
    size_bytes: int = 0


def _raise(error: OSError) -> None:
    raise error


def iter_files(source_dir: Path) -> Iterator[Path]:
    """Yield every file below source_dir, depth-first, in sorted order.

    Directories are not yielded. The first listing error is raised.
    """
    for root, dirnames, filenames in os.walk(source_dir, onerror=_raise):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(root) / name


def archive_directory(
    source_dir: Path,
    destination: Path,
    token: Optional[CancellationToken] = None,
) -> ArchiveResult:
    """Write every file under source_dir into a fresh zip at destination.

    Entries are named by their path relative to source_dir, using forward
    slashes. Empty directories produce no entries. The first error aborts
    the archive and leaves any partial file in place.

    Args:
        source_dir: Directory to archive
        destination: Zip file to create (overwritten if present)
        token: Optional cancellation token checked between files

    Returns:
        ArchiveResult for the written file

    Raises:
        ArchiveError: Creating, walking, reading or writing failed
        RunCancelled: The token was cancelled mid-walk
    """
    source_dir = Path(source_dir)
    destination = Path(destination)
    result = ArchiveResult(path=destination)

    with tracer.start_as_current_span("archive_directory") as span:
        span.set_attribute("archiver.source_dir", str(source_dir))
        span.set_attribute("archiver.zip_path", str(destination))

        try:
            zip_writer = zipfile.ZipFile(
                destination, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
            )
        except OSError as e:
            log_with_context(logger, "error", "Creating zip file", error=str(e), path=str(destination))
            raise ArchiveError(f"creating zip file {destination}: {e}") from e

        # The archive may be written inside the tree it is archiving
        own_path = destination.resolve()

        try:
            with zip_writer:
                for path in iter_files(source_dir):
                    if token is not None:
                        token.raise_if_cancelled()
                    if path.resolve() == own_path:
                        continue

                    rel_path = path.relative_to(source_dir).as_posix()
                    try:
                        zip_writer.write(path, rel_path)
                    except OSError as e:
                        log_with_context(
                            logger, "error", "Adding file to zip", error=str(e), file=rel_path
                        )
                        raise ArchiveError(f"adding {rel_path}: {e}") from e
                    result.entries.append(rel_path)
        except OSError as e:
            log_with_context(logger, "error", "Walking directory", error=str(e), path=str(source_dir))
            raise ArchiveError(f"walking {source_dir}: {e}") from e

        try:
            result.size_bytes = destination.stat().st_size
        except OSError as e:
            raise ArchiveError(f"reading size of {destination}: {e}") from e

        span.set_attribute("archiver.entries", len(result.entries))
        span.set_attribute("archiver.size_bytes", result.size_bytes)

    log_with_context(
        logger,
        "info",
        "Created zip file",
        path=str(destination),
        entries=len(result.entries),
        size=result.size_bytes,
    )
    return result
