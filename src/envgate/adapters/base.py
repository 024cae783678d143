"""
Tool adapter contract.

An adapter turns one task into external tool invocations and reports a
ToolOutcome. It never changes task status itself; the stage gate does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from envgate.pipeline.config import PipelineConfig
from envgate.pipeline.domain.enums import ErrorKind
from envgate.pipeline.domain.models import StepResult, Task


@dataclass(frozen=True)
class TaskContext:
    """Per-run information every task invocation needs."""

    run_id: str
    config: PipelineConfig


@dataclass
class ToolOutcome:
    """Result of running every tool step of a task."""

    passed: bool
    steps: list[StepResult] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind, steps: list[StepResult] | None = None) -> ToolOutcome:
        return cls(passed=False, steps=list(steps or []), error=error, error_kind=kind)


class ToolAdapter(ABC):
    """Uniform interface over the external tools of every stage."""

    @abstractmethod
    async def execute(self, task: Task, context: TaskContext) -> ToolOutcome:
        """
        Run the tools for task.stage against task.environment.

        Must not raise for tool or infrastructure failures; those are
        reported through ToolOutcome. Cancellation propagates.
        """
