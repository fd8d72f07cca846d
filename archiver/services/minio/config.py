"""Access configuration for an S3 or S3-compatible bucket."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MinIOConfig:
    """Endpoint, bucket and static credentials for the remote store.

    Attributes:
        endpoint: Host[:port] of the store; an http(s):// prefix is allowed
        access_key: Static access key ID
        secret_key: Static secret access key
        bucket: Target bucket name
        secure: Use TLS (forced off by an http:// endpoint)
        timeout: Connect/read timeout in seconds for each request
    """

    endpoint: str
    access_key: str
    secret_key: str
    bucket: str
    secure: bool = True
    timeout: float = 300.0

    @property
    def host(self) -> str:
        """Endpoint without scheme or trailing slash."""
        return self.endpoint.replace("http://", "").replace("https://", "").rstrip("/")

    @property
    def use_tls(self) -> bool:
        if self.endpoint.startswith("http://"):
            return False
        return self.secure

    def __repr__(self):
        return (
            f"MinIOConfig(endpoint={self.host}, bucket={self.bucket}, "
            f"secure={self.use_tls}, timeout={self.timeout})"
        )
