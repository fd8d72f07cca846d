"""MinIO service module for object storage."""

from .config import MinIOConfig
from .client import MinIOClient
from .factory import create_minio_client

__all__ = ["MinIOConfig", "MinIOClient", "create_minio_client"]
