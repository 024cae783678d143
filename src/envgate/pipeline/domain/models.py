"""
Pipeline domain models.

Core entities for a pipeline run: the trigger request, per-environment
tasks, stage outcomes and the run itself.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from envgate.pipeline.domain.enums import (
    Action,
    ErrorKind,
    RunStatus,
    Stage,
    StageStatus,
    TaskStatus,
    TriggerKind,
)
from envgate.pipeline.domain.environments import Environment
from envgate.shared.domain.base_model import BaseDomainModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TriggerRequest(BaseDomainModel):
    """The event that starts a run."""

    kind: TriggerKind
    branch: str
    action: Optional[Action] = None


@dataclass
class StepResult(BaseDomainModel):
    """One external tool invocation inside a task."""

    name: str
    command: str
    exit_code: int
    duration: float
    passed: bool
    output_tail: str = ""


@dataclass
class Task(BaseDomainModel):
    """
    One (stage, environment) unit of work.

    Tracks status, failure reason and produced artifacts.
    """

    stage: Stage
    environment: Environment
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    artifacts: List[str] = field(default_factory=list)
    steps: List[StepResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: float = 0.0

    @property
    def key(self) -> tuple:
        """Unique identity within a run."""
        return (self.stage, self.environment.name)

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status in (TaskStatus.FAILED, TaskStatus.CANCELLED)

    def to_json(self) -> Dict[str, Any]:
        data = super().to_json()
        data["environment"] = self.environment.name
        return data

    def start(self) -> None:
        """Mark task as dispatched."""
        self.status = TaskStatus.RUNNING
        self.started_at = _now()

    def succeed(self) -> None:
        """Mark task as succeeded."""
        self.status = TaskStatus.SUCCEEDED
        self._finish()

    def fail(self, error: str, kind: ErrorKind) -> None:
        """Mark task as failed."""
        self.status = TaskStatus.FAILED
        self.error = error
        self.error_kind = kind
        self._finish()

    def skip(self, reason: str) -> None:
        """Mark a never-dispatched task as skipped."""
        self.status = TaskStatus.SKIPPED
        self.error = reason
        self._finish()

    def cancel(self) -> None:
        """Mark a running task as aborted."""
        self.status = TaskStatus.CANCELLED
        self.error = "cancelled"
        self.error_kind = ErrorKind.CANCELLED
        self._finish()

    def _finish(self) -> None:
        self.completed_at = _now()
        if self.started_at:
            self.duration = (self.completed_at - self.started_at).total_seconds()


@dataclass
class StageOutcome(BaseDomainModel):
    """Aggregated result of one stage across all environments."""

    stage: Stage
    status: StageStatus
    tasks: List[Task] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED

    @property
    def failed_tasks(self) -> List[Task]:
        return [t for t in self.tasks if t.failed]


@dataclass
class Run(BaseDomainModel):
    """
    One pipeline execution.

    Created on trigger receipt. Stage outcomes are appended as stages
    become eligible and finish.
    """

    request: TriggerRequest
    id: str = field(default_factory=lambda: uuid4().hex[:12])
    stages: List[Stage] = field(default_factory=list)
    outcomes: List[StageOutcome] = field(default_factory=list)
    status: RunStatus = RunStatus.PENDING
    error: Optional[str] = None

    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: float = 0.0

    @property
    def tasks(self) -> List[Task]:
        """Every task created so far, in stage then dispatch order."""
        return [t for outcome in self.outcomes for t in outcome.tasks]

    @property
    def is_terminal(self) -> bool:
        return self.status not in (RunStatus.PENDING, RunStatus.RUNNING)

    def outcome_for(self, stage: Stage) -> Optional[StageOutcome]:
        for outcome in self.outcomes:
            if outcome.stage == stage:
                return outcome
        return None

    def start(self, stages: List[Stage]) -> None:
        """Mark run as started with its classified stage list."""
        self.stages = list(stages)
        self.status = RunStatus.RUNNING
        self.started_at = _now()

    def succeed(self) -> None:
        self._finish(RunStatus.SUCCEEDED)

    def fail(self, error: str) -> None:
        self.error = error
        self._finish(RunStatus.FAILED)

    def reject(self, error: str) -> None:
        """Classification failed; no task was ever created."""
        self.error = error
        self._finish(RunStatus.INVALID)

    def cancel(self) -> None:
        self.error = "cancelled"
        self._finish(RunStatus.CANCELLED)

    def _finish(self, status: RunStatus) -> None:
        self.status = status
        self.completed_at = _now()
        if self.started_at:
            self.duration = (self.completed_at - self.started_at).total_seconds()
