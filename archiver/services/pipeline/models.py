"""Pipeline data models.

Defines the core data structures for a pipeline run:
- RunState: Which stage a run is in
- StepResult: Output from a pipeline stage
- PipelineContext: Shared context passed through a run
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar

from archiver.lib.cancellation import CancellationToken


T = TypeVar("T")

PURGE = "purge"
ARCHIVE = "archive"
UPLOAD = "upload"
STAGES = (PURGE, ARCHIVE, UPLOAD)


class RunState(str, Enum):
    """Run state machine: idle -> purging -> archiving -> uploading -> idle."""

    IDLE = "idle"
    PURGING = "purging"
    ARCHIVING = "archiving"
    UPLOADING = "uploading"


@dataclass
class StepResult(Generic[T]):
    """Result from executing a pipeline stage.

    Attributes:
        value: The output value from the stage
        success: Whether the stage succeeded
        error: Error message if failed
        duration_ms: Execution time in milliseconds
    """

    value: Optional[T]
    success: bool = True
    error: Optional[str] = None
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, value: T, duration_ms: float = 0.0) -> "StepResult[T]":
        """Create a successful result."""
        return cls(value=value, success=True, duration_ms=duration_ms)

    @classmethod
    def fail(cls, error: str, value: Optional[T] = None, duration_ms: float = 0.0) -> "StepResult[T]":
        """Create a failed result."""
        return cls(value=value, success=False, error=error, duration_ms=duration_ms)


@dataclass
class PipelineContext:
    """Shared context for one purge -> archive -> upload run.

    Attributes:
        run_id: Short identifier stamped on the run's log records
        source_dir: Directory being purged and archived
        archive_path: Where this run writes its zip file
        cutoff_ms: Purge cutoff in epoch milliseconds
        token: Cancellation token for the run
        state: Current stage
        results: Dict of stage name -> StepResult
        started_at: Run start time
    """

    run_id: str
    source_dir: Path
    archive_path: Path
    cutoff_ms: int
    token: CancellationToken = field(default_factory=CancellationToken)
    state: RunState = RunState.IDLE
    results: dict[str, StepResult] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)

    def get_result(self, stage: str) -> Optional[StepResult]:
        """Get result from a stage."""
        return self.results.get(stage)

    def get_value(self, stage: str) -> Any:
        """Get the value from a stage's result, if it succeeded."""
        result = self.get_result(stage)
        return result.value if result and result.success else None

    def set_result(self, stage: str, result: StepResult) -> None:
        """Store a stage's result."""
        self.results[stage] = result

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def succeeded(self) -> bool:
        """True when every stage ran and succeeded."""
        return all(
            stage in self.results and self.results[stage].success for stage in STAGES
        )

    @property
    def failed_stages(self) -> list[str]:
        """Names of stages that ran (or were skipped) without success."""
        return [stage for stage in STAGES if stage in self.results and not self.results[stage].success]
