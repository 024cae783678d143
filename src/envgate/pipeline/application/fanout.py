"""
Workspace Fan-Out Planner.

Expands a stage into one task per configured environment. Fan-out is
total: an environment whose variable file is missing still gets its
task, already failed with a configuration error, so it can never be
dropped silently.
"""

from pathlib import Path
from typing import List

from envgate.pipeline.domain.enums import ErrorKind, Stage
from envgate.pipeline.domain.environments import EnvironmentCatalog
from envgate.pipeline.domain.models import Task
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def plan_stage(stage: Stage, catalog: EnvironmentCatalog, terraform_root: Path) -> List[Task]:
    """
    Create the tasks of one stage, in environment priority order.

    Args:
        stage: Stage to fan out
        catalog: Configured environments
        terraform_root: Directory the variable files are relative to

    Returns:
        Exactly len(catalog) tasks with unique (stage, environment) keys
    """
    tasks: List[Task] = []

    for env in catalog:
        task = Task(stage=stage, environment=env)
        var_file = terraform_root / env.var_file

        if not var_file.is_file():
            task.fail(f"configuration not found: {env.var_file}", ErrorKind.CONFIGURATION)
            logger.warning(
                "task_config_missing",
                stage=stage.value,
                environment=env.name,
                var_file=str(env.var_file),
            )

        tasks.append(task)

    if len({t.key for t in tasks}) != len(catalog):
        raise RuntimeError(f"Fan-out produced duplicate tasks for stage {stage.value}")

    logger.debug("stage_planned", stage=stage.value, tasks=len(tasks))
    return tasks
