"""Pipeline execution.

The runner:
1. Computes the cutoff fresh for the run
2. Purges the source directory (a failure here never blocks archiving)
3. Archives what remains (a failure here skips the upload)
4. Uploads the archive and removes the local copy on success

Stage failures are recorded on the context, never raised.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
from uuid import uuid4

from archiver.lib.cancellation import CancellationToken
from archiver.lib.config import ArchiverConfig
from archiver.lib.errors import ArchiveError, ArchiverError, RunCancelled, UploadError
from archiver.lib.logging_config import RunContextFilter, log_with_context
from archiver.services.archive import archive_directory
from archiver.services.minio import MinIOClient, create_minio_client
from archiver.services.purge import purge_directory
from archiver.services.retention import compute_cutoff
from archiver.services.upload import upload_archive

from .models import ARCHIVE, PURGE, UPLOAD, PipelineContext, RunState, StepResult

logger = logging.getLogger(__name__)


def archive_path_for(config: ArchiverConfig, now: datetime) -> Path:
    """Archive location for a run started at `now`: <zipfile>-<epoch ms>.zip."""
    return config.archive_dir / f"{config.zipfile}-{int(now.timestamp() * 1000)}.zip"


def _run_stage(
    ctx: PipelineContext,
    stage: str,
    state: RunState,
    func: Callable[[], object],
) -> StepResult:
    ctx.state = state
    start = time.monotonic()
    try:
        value = func()
        result = StepResult.ok(value)
    except RunCancelled as e:
        result = StepResult.fail(f"cancelled: {e}")
        log_with_context(logger, "warning", f"Stage {stage} cancelled", stage=stage)
    except ArchiverError as e:
        result = StepResult.fail(f"{type(e).__name__}: {e}")
    except Exception as e:
        # Unexpected failures end the stage, not the process
        result = StepResult.fail(f"{type(e).__name__}: {e}")
        log_with_context(logger, "error", f"Stage {stage} failed unexpectedly", exc_info=e, stage=stage)

    result.duration_ms = (time.monotonic() - start) * 1000
    ctx.set_result(stage, result)
    return result


def _connect(config: ArchiverConfig) -> MinIOClient:
    try:
        return create_minio_client(config.minio_config())
    except Exception as e:
        log_with_context(logger, "error", "Creating minio client", error=str(e))
        raise UploadError(f"creating minio client: {e}") from e


def _finish(ctx: PipelineContext) -> PipelineContext:
    ctx.state = RunState.IDLE
    log_with_context(
        logger,
        "info" if ctx.succeeded else "warning",
        "Pipeline run finished",
        succeeded=ctx.succeeded,
        failed_stages=ctx.failed_stages,
        cancelled=ctx.cancelled,
    )
    return ctx


def _execute(ctx: PipelineContext, config: ArchiverConfig, client: Optional[MinIOClient]) -> PipelineContext:
    log_with_context(
        logger,
        "info",
        "Pipeline run started",
        run_id=ctx.run_id,
        path=str(ctx.source_dir),
        filter=ctx.cutoff_ms,
        zip_path=str(ctx.archive_path),
    )

    purge = _run_stage(
        ctx, PURGE, RunState.PURGING,
        lambda: purge_directory(ctx.source_dir, ctx.cutoff_ms, ctx.token),
    )
    # Partial purges still feed the archive but fail the run
    if purge.success and purge.value.error is not None:
        purge.success = False
        purge.error = f"reading directory: {purge.value.error}"
    elif purge.success and purge.value.failed:
        purge.success = False
        purge.error = f"{len(purge.value.failed)} entries could not be purged"
    if ctx.cancelled:
        return _finish(ctx)

    def _archive():
        try:
            ctx.archive_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_with_context(logger, "error", "Creating output directory", error=str(e),
                             path=str(ctx.archive_path.parent))
            raise ArchiveError(f"creating output directory: {e}") from e
        return archive_directory(ctx.source_dir, ctx.archive_path, ctx.token)

    archive = _run_stage(ctx, ARCHIVE, RunState.ARCHIVING, _archive)
    if not archive.success:
        ctx.set_result(UPLOAD, StepResult.fail(f"Dependency '{ARCHIVE}' failed or missing"))
        return _finish(ctx)
    if ctx.cancelled:
        return _finish(ctx)

    _run_stage(
        ctx, UPLOAD, RunState.UPLOADING,
        lambda: upload_archive(ctx.archive_path, client or _connect(config), ctx.token),
    )
    return _finish(ctx)


def run_pipeline(
    config: ArchiverConfig,
    client: Optional[MinIOClient] = None,
    token: Optional[CancellationToken] = None,
    now: Optional[datetime] = None,
    run_id: Optional[str] = None,
    run_filter: Optional[RunContextFilter] = None,
) -> PipelineContext:
    """Execute purge -> archive -> upload once.

    Args:
        config: Archiver configuration
        client: MinIO client (created from config when omitted)
        token: Cancellation token shared with the scheduler
        now: Run start time (default: local wall clock)
        run_id: Identifier for log correlation (generated when omitted)
        run_filter: Log filter bound to the run while it executes

    Returns:
        PipelineContext with results from every stage that ran
    """
    now = now or datetime.now()
    ctx = PipelineContext(
        run_id=run_id or uuid4().hex[:12],
        source_dir=config.source_dir,
        archive_path=archive_path_for(config, now),
        cutoff_ms=compute_cutoff(now),
        token=token or CancellationToken(),
        started_at=now,
    )

    if run_filter is not None:
        run_filter.bind(ctx)
    try:
        return _execute(ctx, config, client)
    finally:
        if run_filter is not None:
            run_filter.bind(None)
