"""Upload a finished archive to the bucket and drop the local copy."""

import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Thread
from typing import Optional

from opentelemetry import trace

from archiver.lib.cancellation import CancellationToken
from archiver.lib.errors import RunCancelled, UploadError
from archiver.lib.logging_config import log_with_context
from archiver.services.minio import MinIOClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CONTENT_TYPE = "application/zip"


class UploadProgress(Thread):
    """minio progress hook that aborts the transfer once cancelled.

    minio only calls set_meta/update on it; the thread is never started.
    """

    def __init__(self, token: CancellationToken):
        super().__init__(daemon=True)
        self.token = token
        self.object_name: Optional[str] = None
        self.total_length = 0
        self.sent = 0

    def set_meta(self, object_name: str, total_length: int) -> None:
        self.object_name = object_name
        self.total_length = total_length
        self.token.raise_if_cancelled()

    def update(self, size: int) -> None:
        self.sent += size
        self.token.raise_if_cancelled()


@dataclass
class UploadResult:
    """A confirmed remote object.

    Attributes:
        bucket: Bucket the object lives in
        object_name: Object name (base name of the archive)
        size_bytes: Size reported by the store
        content_type: Content type reported by the store
        local_removed: Whether the local archive was deleted afterwards
    """

    bucket: str
    object_name: str
    size_bytes: int
    content_type: Optional[str] = None
    local_removed: bool = False


def upload_archive(
    archive_path: Path,
    client: MinIOClient,
    token: Optional[CancellationToken] = None,
) -> UploadResult:
    """Upload the archive, confirm it, then delete the local file.

    The local file is only removed after the store reports the object's
    metadata. A failed upload leaves it untouched for a later retry.

    Args:
        archive_path: Local zip file
        client: MinIO client bound to the target bucket
        token: Optional cancellation token checked during transfer

    Returns:
        UploadResult for the remote object

    Raises:
        UploadError: The transfer or confirmation failed
        RunCancelled: The token was cancelled before or during transfer
    """
    archive_path = Path(archive_path)
    bucket_name = client.bucket
    object_name = archive_path.name

    with tracer.start_as_current_span("upload_archive") as span:
        span.set_attribute("archiver.bucket", bucket_name)
        span.set_attribute("archiver.object", object_name)

        if token is not None:
            token.raise_if_cancelled()
        progress = UploadProgress(token) if token is not None else None

        try:
            client.upload_file(object_name, str(archive_path), CONTENT_TYPE, progress=progress)
            info = client.stat(object_name)
        except RunCancelled:
            log_with_context(
                logger, "warning", "Upload cancelled", bucket=bucket_name, object=object_name
            )
            raise
        except Exception as e:
            log_with_context(
                logger,
                "error",
                "Uploading zip file",
                error=str(e),
                bucket=bucket_name,
                object=object_name,
            )
            raise UploadError(f"uploading {object_name} to {bucket_name}: {e}") from e

        result = UploadResult(
            bucket=bucket_name,
            object_name=object_name,
            size_bytes=info.size,
            content_type=info.content_type,
        )
        span.set_attribute("archiver.size_bytes", result.size_bytes)

    log_with_context(
        logger,
        "info",
        "Uploaded zip file",
        bucket=bucket_name,
        object=object_name,
        size=result.size_bytes,
    )

    # The remote copy is authoritative from here on
    try:
        archive_path.unlink()
        result.local_removed = True
    except OSError as e:
        log_with_context(logger, "error", "Removing zip file", error=str(e), path=str(archive_path))

    return result
