"""Retention-based archival of database dump directories to object storage."""

__version__ = "0.1.0"
