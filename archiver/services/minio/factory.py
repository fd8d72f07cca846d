"""Factory functions for creating MinIO service instances."""

from .client import MinIOClient
from .config import MinIOConfig


def create_minio_client(config: MinIOConfig) -> MinIOClient:
    """Create a MinIO client for the archive bucket.

    The bucket is expected to exist; the archiver never manages it.

    Returns:
        MinIOClient instance.
    """
    return MinIOClient(config)
