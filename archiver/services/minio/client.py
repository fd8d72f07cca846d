"""MinIO client wrapper for archive uploads."""

import urllib3
from minio import Minio

from .config import MinIOConfig


class MinIOClient:
    """Client for the archive bucket."""

    def __init__(self, config: MinIOConfig):
        """Initialize MinIO client.

        Args:
            config: MinIOConfig instance with connection details.
        """
        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=config.timeout, read=config.timeout),
            retries=urllib3.Retry(
                total=3,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
            ),
        )
        self.client = Minio(
            config.host,
            access_key=config.access_key,
            secret_key=config.secret_key,
            secure=config.use_tls,
            http_client=http_client,
        )
        self.bucket = config.bucket

    def upload_file(
        self,
        object_name: str,
        file_path: str,
        content_type: str,
        progress=None,
    ):
        """Stream a local file into the bucket.

        Args:
            object_name: Object name in bucket.
            file_path: Local file to upload.
            content_type: Content type stored with the object.
            progress: Optional minio progress hook.

        Returns:
            minio ObjectWriteResult.
        """
        return self.client.fput_object(
            self.bucket,
            object_name,
            file_path,
            content_type=content_type,
            progress=progress,
        )

    def stat(self, object_name: str):
        """Fetch object metadata (size, etag, content type).

        Args:
            object_name: Object name in bucket.

        Returns:
            minio Object with size and content_type.
        """
        return self.client.stat_object(self.bucket, object_name)
