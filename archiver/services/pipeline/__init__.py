"""Archival pipeline: purge -> archive -> upload.

Usage:
    from archiver.services.pipeline import run_pipeline

    ctx = run_pipeline(config)
    if not ctx.succeeded:
        print(ctx.failed_stages)
"""

from .models import (
    ARCHIVE,
    PURGE,
    STAGES,
    UPLOAD,
    PipelineContext,
    RunState,
    StepResult,
)
from .runner import archive_path_for, run_pipeline

__all__ = [
    "ARCHIVE",
    "PURGE",
    "STAGES",
    "UPLOAD",
    "PipelineContext",
    "RunState",
    "StepResult",
    "archive_path_for",
    "run_pipeline",
]
