"""Shared pytest fixtures for archiver service tests."""

import tempfile
from pathlib import Path

import pytest

from archiver.services.tests.fakes import FakeMinIOClient, make_config


@pytest.fixture
def temp_dir():
    """Temporary directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_minio():
    """Fixture providing an in-memory MinIO client."""
    return FakeMinIOClient()


@pytest.fixture
def config(temp_dir):
    """Valid archiver config with source and output under temp_dir."""
    return make_config(temp_dir)


@pytest.fixture
def source_dir(config):
    """The config's (empty) source directory."""
    return config.source_dir
