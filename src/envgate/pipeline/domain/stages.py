"""
Static stage table.

Ordering rank, concurrency policy and artifact retention for every stage.
Apply and Destroy share a rank; the trigger classifier never selects both.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from envgate.pipeline.domain.enums import ConcurrencyPolicy, Stage


@dataclass(frozen=True)
class StageDefinition:
    """Immutable scheduling properties of a stage."""

    stage: Stage
    rank: int
    policy: ConcurrencyPolicy
    retention_days: int

    @property
    def is_sequential(self) -> bool:
        return self.policy is ConcurrencyPolicy.SEQUENTIAL


STAGE_DEFINITIONS: Final[dict[Stage, StageDefinition]] = {
    d.stage: d
    for d in (
        StageDefinition(Stage.VALIDATE, rank=1, policy=ConcurrencyPolicy.PARALLEL, retention_days=7),
        StageDefinition(Stage.PLAN, rank=2, policy=ConcurrencyPolicy.PARALLEL, retention_days=7),
        StageDefinition(Stage.SCAN, rank=3, policy=ConcurrencyPolicy.PARALLEL, retention_days=7),
        StageDefinition(Stage.APPLY, rank=4, policy=ConcurrencyPolicy.SEQUENTIAL, retention_days=30),
        StageDefinition(Stage.DESTROY, rank=4, policy=ConcurrencyPolicy.SEQUENTIAL, retention_days=30),
    )
}

if set(STAGE_DEFINITIONS) != set(Stage):
    raise RuntimeError("Every stage needs exactly one StageDefinition")


def definition_for(stage: Stage) -> StageDefinition:
    """Look up the definition of a stage."""
    return STAGE_DEFINITIONS[stage]


def is_rank_ordered(stages: tuple[Stage, ...] | list[Stage]) -> bool:
    """True when ranks strictly increase along the sequence."""
    ranks = [STAGE_DEFINITIONS[s].rank for s in stages]
    return all(a < b for a, b in zip(ranks, ranks[1:]))
