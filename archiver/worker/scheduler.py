"""Daily scheduler for the archival pipeline.

Runs as a long-lived process: one pipeline run per day at the configured
local time (23:50:00 by default) until SIGINT/SIGTERM.

A stop request cancels the shared token, so an in-flight run aborts at its
next I/O checkpoint, and no further runs are triggered.
"""

import logging
import signal
import threading
from typing import Callable, Optional
from uuid import uuid4

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from archiver.lib.cancellation import CancellationToken
from archiver.lib.config import ArchiverConfig
from archiver.lib.logging_config import RunContextFilter, log_with_context
from archiver.services.minio import MinIOClient
from archiver.services.pipeline import PipelineContext, run_pipeline

logger = logging.getLogger(__name__)

JOB_ID = "daily-archive"

# Late triggers (suspend, clock jumps) still run within this window
MISFIRE_GRACE_SECONDS = 3600


class DailyScheduler:
    """Triggers run_pipeline once a day and guards against overlapping runs."""

    def __init__(
        self,
        config: ArchiverConfig,
        run_filter: Optional[RunContextFilter] = None,
        client: Optional[MinIOClient] = None,
        runner: Callable[..., PipelineContext] = run_pipeline,
    ):
        self.config = config
        self.token = CancellationToken()
        self.last_context: Optional[PipelineContext] = None
        self._run_filter = run_filter
        self._client = client
        self._runner = runner
        self._run_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._stopped = False

        self.scheduler = BackgroundScheduler()
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    @property
    def trigger(self) -> CronTrigger:
        run_at = self.config.run_at
        return CronTrigger(hour=run_at.hour, minute=run_at.minute, second=run_at.second)

    @property
    def running(self) -> bool:
        """True while a pipeline run is executing."""
        return self._run_lock.locked()

    def next_run_time(self):
        job = self.scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def start(self) -> None:
        """Register the daily job and start the background scheduler."""
        self.scheduler.add_job(
            self.run_once,
            self.trigger,
            id=JOB_ID,
            name="purge, archive and upload",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True,
        )
        self.scheduler.start()
        log_with_context(
            logger,
            "info",
            "Archiver started",
            path=str(self.config.source_dir),
            bucket=self.config.bucket,
            next_run=self.next_run_time(),
        )

    def run_once(self) -> Optional[PipelineContext]:
        """Run the pipeline now unless a run is active or a stop was requested.

        Returns:
            The run's PipelineContext, or None if the run was skipped
        """
        if self.token.cancelled:
            logger.info("Stop requested, not starting a new run")
            return None

        if not self._run_lock.acquire(blocking=False):
            logger.warning("Previous run still in progress, skipping this trigger")
            return None

        try:
            ctx = self._runner(
                self.config,
                client=self._client,
                token=self.token,
                run_id=uuid4().hex[:12],
                run_filter=self._run_filter,
            )
            self.last_context = ctx
            return ctx
        finally:
            self._run_lock.release()

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            log_with_context(
                logger, "warning", "Scheduled run missed", scheduled=event.scheduled_run_time
            )
            return
        log_with_context(
            logger,
            "error",
            "Scheduled run raised",
            exc_info=event.exception,
            scheduled=event.scheduled_run_time,
        )

    def request_stop(self, signum=None, frame=None) -> None:
        """Ask serve_forever to stop. Safe to call from a signal handler."""
        if signum is not None:
            logger.info(f"Received signal {signum}, shutting down")
        self.token.cancel("shutdown requested")
        self._stop_requested.set()

    def stop(self, wait: bool = True) -> None:
        """Cancel the in-flight run (if any) and stop triggering new ones.

        Args:
            wait: Block until a running pipeline returns
        """
        if self._stopped:
            return
        self._stopped = True
        self.token.cancel("shutdown requested")
        self._stop_requested.set()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Archiver stopped")

    def serve_forever(self, poll_interval: float = 1.0) -> None:
        """Start, then block until SIGINT/SIGTERM or request_stop()."""
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self.request_stop)
            signal.signal(signal.SIGTERM, self.request_stop)

        self.start()
        try:
            while not self._stop_requested.wait(poll_interval):
                pass
        finally:
            self.stop()
