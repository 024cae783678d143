"""
Pipeline domain enums.

Defines triggers, stages, scheduling policies and execution states.
"""

from enum import Enum


class TriggerKind(Enum):
    """
    What started the run.

    CI event names are accepted as aliases by from_string().
    """

    PUSH = "push"
    REVIEW = "review"  # Pull/merge request targeting a branch
    MANUAL = "manual"  # Operator-dispatched run with an explicit action

    @classmethod
    def from_string(cls, value: str) -> "TriggerKind":
        """
        Safe conversion from string.

        Raises:
            ValueError: If value names no trigger kind
        """
        normalized = (value or "").lower().strip()
        aliases = {
            "pull_request": cls.REVIEW,
            "merge_request": cls.REVIEW,
            "workflow_dispatch": cls.MANUAL,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Invalid trigger: '{value}'. Valid: {valid}")


class Action(Enum):
    """Action selector for manual runs."""

    VALIDATE = "validate"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"

    @classmethod
    def from_string(cls, value: str) -> "Action":
        """
        Safe conversion from string.

        Raises:
            ValueError: If value names no action
        """
        normalized = (value or "").lower().strip()
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(a.value for a in cls)
            raise ValueError(f"Invalid action: '{value}'. Valid: {valid}")


class Stage(Enum):
    """Pipeline stage."""

    VALIDATE = "validate"
    PLAN = "plan"
    SCAN = "scan"
    APPLY = "apply"
    DESTROY = "destroy"


class ConcurrencyPolicy(Enum):
    """How a stage dispatches its tasks across environments."""

    PARALLEL = "parallel"  # All environments at once, no ordering
    SEQUENTIAL = "sequential"  # One at a time in environment priority order


class TaskStatus(Enum):
    """Task execution status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Never dispatched (halted chain or cancelled run)
    CANCELLED = "cancelled"  # Aborted while running

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.PENDING, TaskStatus.RUNNING)


class StageStatus(Enum):
    """Aggregated outcome of one stage."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunStatus(Enum):
    """Run lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INVALID = "invalid"  # Rejected at classification, no task created
    CANCELLED = "cancelled"

    @property
    def exit_code(self) -> int:
        """Process exit code for the CLI."""
        return {
            RunStatus.SUCCEEDED: 0,
            RunStatus.FAILED: 1,
            RunStatus.INVALID: 2,
            RunStatus.CANCELLED: 130,
        }.get(self, 1)


class ErrorKind(Enum):
    """
    Why a task failed.

    Reporting only: every kind takes the same control path.
    """

    CONFIGURATION = "configuration"
    TOOL = "tool"
    INFRASTRUCTURE = "infrastructure"
    APPROVAL = "approval"
    CANCELLED = "cancelled"
