"""
Trigger Classifier.

Maps (trigger kind, branch, action) to the ordered stage list of a run.
Anything not in the table is rejected before a single task exists.
"""

from __future__ import annotations

import re
from typing import Final

from envgate.pipeline.domain.enums import Action, Stage, TriggerKind
from envgate.pipeline.domain.models import TriggerRequest
from envgate.pipeline.domain.stages import is_rank_ordered
from envgate.shared.domain.exceptions import ClassificationError
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SAFE_BRANCH_PATTERN: Final[re.Pattern] = re.compile(r"^[\w\-./]+$")
MAX_BRANCH_LENGTH: Final[int] = 256
BRANCH_REF_PREFIX: Final[str] = "refs/heads/"

CHECKS: Final[tuple[Stage, ...]] = (Stage.VALIDATE, Stage.PLAN, Stage.SCAN)

MANUAL_STAGES: Final[dict[Action, tuple[Stage, ...]]] = {
    Action.VALIDATE: (Stage.VALIDATE,),
    Action.PLAN: CHECKS,
    Action.APPLY: CHECKS + (Stage.APPLY,),
    Action.DESTROY: CHECKS + (Stage.DESTROY,),
}

if not all(is_rank_ordered(stages) for stages in MANUAL_STAGES.values()):
    raise RuntimeError("Manual stage lists must follow stage rank order")


def normalize_branch(branch: str) -> str:
    """
    Validate a branch name, stripping a refs/heads/ prefix.

    Raises:
        ClassificationError: If branch name is empty or malformed
    """
    if not branch or not isinstance(branch, str):
        raise ClassificationError("Branch must be a non-empty string")

    branch = branch.strip()
    if branch.startswith(BRANCH_REF_PREFIX):
        branch = branch[len(BRANCH_REF_PREFIX):]

    if len(branch) > MAX_BRANCH_LENGTH:
        raise ClassificationError(f"Branch name too long: max {MAX_BRANCH_LENGTH} chars")

    if not branch or not SAFE_BRANCH_PATTERN.match(branch) or ".." in branch:
        raise ClassificationError(f"Invalid branch name: '{branch}'")

    return branch


def parse_request(trigger: str, branch: str, action: str | None = None) -> TriggerRequest:
    """
    Build a TriggerRequest from raw CLI / CI strings.

    Raises:
        ClassificationError: If the trigger, action or branch is unrecognized
    """
    try:
        kind = TriggerKind.from_string(trigger)
        parsed_action = Action.from_string(action) if action else None
    except ValueError as e:
        raise ClassificationError(str(e)) from e

    return TriggerRequest(kind=kind, branch=normalize_branch(branch), action=parsed_action)


def classify(request: TriggerRequest, primary_branch: str) -> tuple[Stage, ...]:
    """
    Decide which stages a run executes.

    Rules:
        push to primary           -> validate, plan, scan, apply
        push to any other branch  -> validate, plan, scan
        review targeting primary  -> validate, plan, scan
        manual + action           -> per MANUAL_STAGES

    Raises:
        ClassificationError: For every other combination
    """
    branch = normalize_branch(request.branch)
    context = {
        "trigger": request.kind.value,
        "branch": branch,
        "action": request.action.value if request.action else None,
    }

    if request.kind is TriggerKind.MANUAL:
        if request.action is None:
            raise ClassificationError("Manual runs require an action", context=context)
        stages = MANUAL_STAGES[request.action]

    elif request.action is not None:
        raise ClassificationError(
            f"Action '{request.action.value}' is only accepted on manual runs",
            context=context,
        )

    elif request.kind is TriggerKind.PUSH:
        stages = CHECKS + (Stage.APPLY,) if branch == primary_branch else CHECKS

    elif request.kind is TriggerKind.REVIEW:
        if branch != primary_branch:
            raise ClassificationError(
                f"Review requests are only accepted against '{primary_branch}'",
                context=context,
            )
        stages = CHECKS

    else:
        raise ClassificationError(f"Unrecognized trigger: {request.kind!r}", context=context)

    logger.info("trigger_classified", stages=[s.value for s in stages], **context)
    return stages
