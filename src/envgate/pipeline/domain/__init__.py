"""Pipeline domain - environments, stages, tasks and runs."""

from envgate.pipeline.domain.enums import (
    Action,
    ConcurrencyPolicy,
    ErrorKind,
    RunStatus,
    Stage,
    StageStatus,
    TaskStatus,
    TriggerKind,
)
from envgate.pipeline.domain.environments import Environment, EnvironmentCatalog, default_catalog
from envgate.pipeline.domain.models import Run, StageOutcome, StepResult, Task, TriggerRequest
from envgate.pipeline.domain.stages import STAGE_DEFINITIONS, StageDefinition, definition_for

__all__ = [
    "Action",
    "ConcurrencyPolicy",
    "ErrorKind",
    "RunStatus",
    "Stage",
    "StageStatus",
    "TaskStatus",
    "TriggerKind",
    "Environment",
    "EnvironmentCatalog",
    "default_catalog",
    "Run",
    "StageOutcome",
    "StepResult",
    "Task",
    "TriggerRequest",
    "STAGE_DEFINITIONS",
    "StageDefinition",
    "definition_for",
]
