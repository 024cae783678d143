"""
Stage Gate.

Enforces ordering between stages and the concurrency policy inside a
stage:

- A stage dispatches only after every earlier stage finished and succeeded.
- PARALLEL stages dispatch all environments at once (optionally capped).
- SEQUENTIAL stages drain a single-worker queue in priority order and halt
  at the first failure. Completed environments are never rolled back.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

from envgate.adapters.base import TaskContext, ToolAdapter
from envgate.pipeline.domain.enums import ErrorKind, Stage, StageStatus, TaskStatus
from envgate.pipeline.domain.models import StageOutcome, Task
from envgate.pipeline.domain.stages import definition_for
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Approver = Callable[[Task], Awaitable[bool]]


class StageGate:
    """Sequencing and concurrency enforcement for one run."""

    def __init__(
        self,
        adapter: ToolAdapter,
        approver: Optional[Approver] = None,
        max_parallel: Optional[int] = None,
    ):
        """
        Args:
            adapter: Executes the tools of a task
            approver: Asked before Apply/Destroy touches a protected environment.
                Without one, protected environments are refused.
            max_parallel: Cap for parallel stages; None dispatches everything at once
        """
        self.adapter = adapter
        self.approver = approver
        self.max_parallel = max_parallel

    @staticmethod
    def is_open(stage: Stage, previous: Sequence[StageOutcome]) -> bool:
        """True when every earlier-ranked stage is terminal and succeeded."""
        rank = definition_for(stage).rank
        return all(
            outcome.succeeded and definition_for(outcome.stage).rank < rank
            for outcome in previous
        )

    async def run_stage(self, stage: Stage, tasks: List[Task], context: TaskContext) -> StageOutcome:
        """
        Dispatch the tasks of one stage according to its policy.

        Raises:
            asyncio.CancelledError: after in-flight tasks are marked cancelled
                and undispatched ones skipped
        """
        definition = definition_for(stage)
        logger.info(
            "stage_started",
            stage=stage.value,
            policy=definition.policy.value,
            tasks=len(tasks),
        )

        try:
            if definition.is_sequential:
                await self._run_sequential(tasks, context)
            else:
                await self._run_parallel(tasks, context)
        except asyncio.CancelledError:
            for task in tasks:
                if task.status == TaskStatus.RUNNING:
                    task.cancel()
                elif task.status == TaskStatus.PENDING:
                    task.skip("run cancelled")
            logger.warning("stage_cancelled", stage=stage.value)
            raise

        failed = [t for t in tasks if t.status != TaskStatus.SUCCEEDED]
        status = StageStatus.FAILED if failed else StageStatus.SUCCEEDED

        log = logger.warning if failed else logger.info
        log(
            "stage_completed",
            stage=stage.value,
            status=status.value,
            failed=[t.environment.name for t in failed if t.failed],
        )
        return StageOutcome(stage=stage, status=status, tasks=list(tasks))

    async def _run_parallel(self, tasks: List[Task], context: TaskContext) -> None:
        semaphore = asyncio.Semaphore(self.max_parallel) if self.max_parallel else None

        async def _guarded(task: Task) -> None:
            if semaphore is None:
                await self._dispatch(task, context)
                return
            async with semaphore:
                await self._dispatch(task, context)

        await asyncio.gather(*(_guarded(t) for t in tasks))

    async def _run_sequential(self, tasks: List[Task], context: TaskContext) -> None:
        queue: asyncio.Queue = asyncio.Queue()
        for task in sorted(tasks, key=lambda t: t.environment.priority):
            queue.put_nowait(task)

        while not queue.empty():
            task = queue.get_nowait()

            if not task.status.is_terminal and not await self._approved(task):
                task.fail(f"approval denied for {task.environment.name}", ErrorKind.APPROVAL)

            await self._dispatch(task, context)

            if task.status != TaskStatus.SUCCEEDED:
                halted_at = task.environment.name
                while not queue.empty():
                    queue.get_nowait().skip(f"halted after failure in {halted_at}")
                logger.warning(
                    "sequential_chain_halted",
                    stage=task.stage.value,
                    environment=halted_at,
                )
                return

    async def _approved(self, task: Task) -> bool:
        if not task.environment.requires_approval:
            return True
        if self.approver is None:
            logger.warning("approval_unavailable", environment=task.environment.name)
            return False

        approved = await self.approver(task)
        logger.info(
            "approval_decided",
            stage=task.stage.value,
            environment=task.environment.name,
            approved=approved,
        )
        return approved

    async def _dispatch(self, task: Task, context: TaskContext) -> None:
        """Run one task through the adapter unless it is already terminal."""
        if task.status.is_terminal:
            return

        task.start()
        logger.info("task_started", stage=task.stage.value, environment=task.environment.name)

        try:
            outcome = await self.adapter.execute(task, context)
        except asyncio.CancelledError:
            task.cancel()
            raise
        except Exception as e:
            logger.error(
                "task_adapter_error",
                stage=task.stage.value,
                environment=task.environment.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            task.fail(f"{type(e).__name__}: {e}", ErrorKind.TOOL)
            return

        task.steps.extend(outcome.steps)
        task.artifacts.extend(outcome.artifacts)

        if outcome.passed:
            task.succeed()
            logger.info(
                "task_succeeded",
                stage=task.stage.value,
                environment=task.environment.name,
                duration=task.duration,
            )
        else:
            task.fail(outcome.error or "tool failed", outcome.error_kind or ErrorKind.TOOL)
            logger.warning(
                "task_failed",
                stage=task.stage.value,
                environment=task.environment.name,
                error=task.error,
                error_kind=task.error_kind.value,
            )
