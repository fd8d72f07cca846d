"""Archiver configuration resolved from environment and command-line flags.

Two ordered sources feed one immutable config:
1. Environment-style mapping (process environment over the .env file)
2. Command-line flags (override the environment when given)

Usage:
    from archiver.lib.config import load_config

    config = load_config(flags={"bucket": "dumps"})
"""

import logging
import os
from datetime import time
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from archiver.lib.errors import ConfigError
from archiver.services.minio.config import MinIOConfig

logger = logging.getLogger(__name__)

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

# Environment/flag key -> ArchiverConfig field
CONFIG_KEYS: dict[str, str] = {
    "endpoint": "endpoint",
    "accesskeyid": "access_key_id",
    "secretaccesskey": "secret_access_key",
    "bucket": "bucket",
    "sourcedir": "source_dir",
    "loglevel": "log_level",
    "zipfile": "zipfile",
    "outputdir": "output_dir",
    "secure": "secure",
    "uploadtimeout": "upload_timeout",
    "runat": "run_at",
}

FIELD_KEYS: dict[str, str] = {field: key for key, field in CONFIG_KEYS.items()}

MISSING_MESSAGES: dict[str, str] = {
    "endpoint": "s3/s3-compatible endpoint required",
    "access_key_id": "access key ID required",
    "secret_access_key": "secret access key required",
    "bucket": "bucket required",
    "source_dir": "source directory required",
    "log_level": "log level required",
}


class ArchiverConfig(BaseModel):
    """Immutable configuration for one archiver process."""

    model_config = ConfigDict(frozen=True)

    endpoint: str
    access_key_id: str
    secret_access_key: SecretStr
    bucket: str
    source_dir: Path
    log_level: str
    zipfile: str = "dump"
    output_dir: Optional[Path] = None
    secure: bool = True
    upload_timeout: float = Field(default=300.0, gt=0)
    run_at: time = time(23, 50, 0)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"unknown log level '{value}' (expected debug, info, warn, error or fatal)"
            )
        return level

    @field_validator("zipfile")
    @classmethod
    def _check_zipfile(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("zip file base name must be a plain file name")
        return value

    @property
    def logging_level(self) -> int:
        """Stdlib logging level for log_level."""
        return LOG_LEVELS[self.log_level]

    @property
    def archive_dir(self) -> Path:
        """Directory the archive is written to.

        Defaults to the parent of source_dir so the archive never lands in
        the directory being walked.
        """
        if self.output_dir is not None:
            return self.output_dir
        return self.source_dir.absolute().parent

    def minio_config(self) -> MinIOConfig:
        """Access configuration for the remote bucket."""
        return MinIOConfig(
            endpoint=self.endpoint,
            access_key=self.access_key_id,
            secret_key=self.secret_access_key.get_secret_value(),
            bucket=self.bucket,
            secure=self.secure,
            timeout=self.upload_timeout,
        )


def load_environment(
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Read the environment-style source.

    Values from the process environment win over the .env file, matching
    how dotenv loaders leave already-set variables alone.

    Args:
        env_file: Path to a dotenv file (default: .env in the working directory)
        environ: Process environment (default: os.environ)

    Returns:
        Merged key-value mapping
    """
    path = Path(env_file) if env_file is not None else Path(".env")
    values: dict[str, str] = {}
    if path.is_file():
        values.update(_fold_keys({k: v for k, v in dotenv_values(path).items() if v is not None}))
        logger.debug(f"Loaded {len(values)} values from {path}")
    values.update(_fold_keys(os.environ if environ is None else environ))
    return values


def _fold_keys(source: Mapping[str, str]) -> dict[str, str]:
    # Config keys are stored lowercase so precedence is decided per source,
    # not by key case; lowercase beats uppercase within one source
    folded = {k: v for k, v in source.items() if k.lower() not in CONFIG_KEYS}
    for key in CONFIG_KEYS:
        value = _lookup(source, key)
        if value is not None:
            folded[key] = value
    return folded


def _lookup(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None:
        value = env.get(key.upper())
    return value


def _describe(error: dict[str, Any]) -> str:
    field = str(error["loc"][0]) if error.get("loc") else ""
    if error.get("type") == "missing" and field in MISSING_MESSAGES:
        return MISSING_MESSAGES[field]
    message = str(error.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{FIELD_KEYS.get(field, field)}: {message}"


def resolve_config(
    env: Mapping[str, str],
    flags: Optional[Mapping[str, Optional[str]]] = None,
) -> ArchiverConfig:
    """Build the config from an environment mapping and command-line flags.

    Pure function: nothing global is read or written. Flags that are None
    fall through to the environment; empty strings count as unset.

    Args:
        env: Environment-style mapping (lowercase or uppercase keys)
        flags: Command-line values keyed like the environment

    Returns:
        Validated ArchiverConfig

    Raises:
        ConfigError: Listing every missing or invalid setting
    """
    flags = flags or {}
    values: dict[str, Any] = {}
    for key, field in CONFIG_KEYS.items():
        value = flags.get(key)
        if value is None:
            value = _lookup(env, key)
        if value is None or (isinstance(value, str) and value.strip() == ""):
            continue
        values[field] = value

    unknown = sorted(set(flags) - set(CONFIG_KEYS))
    problems = [f"unknown option '{key}'" for key in unknown]

    try:
        config = ArchiverConfig(**values)
    except ValidationError as e:
        problems.extend(_describe(err) for err in e.errors())
        raise ConfigError(problems) from None

    if problems:
        raise ConfigError(problems)
    return config


def load_config(
    flags: Optional[Mapping[str, Optional[str]]] = None,
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ArchiverConfig:
    """Load the environment source and resolve it against the flags."""
    return resolve_config(load_environment(env_file, environ), flags)
