"""
Run orchestrator.

Drives one run end to end:

    classify trigger -> for each stage: gate check -> fan out -> run stage

A classification error rejects the run before any task exists. The
first failed stage ends the run; later stages are never constructed.
cancel() aborts the in-flight stage and ends the run as cancelled.
"""

import asyncio
from typing import Optional

import structlog

from envgate.adapters.base import TaskContext, ToolAdapter
from envgate.artifacts.store import ArtifactStore
from envgate.pipeline.application.fanout import plan_stage
from envgate.pipeline.application.stage_gate import Approver, StageGate
from envgate.pipeline.application.trigger_classifier import classify
from envgate.pipeline.config import PipelineConfig
from envgate.pipeline.domain.enums import StageStatus
from envgate.pipeline.domain.models import Run, StageOutcome, TriggerRequest
from envgate.shared.domain.exceptions import ArtifactError, ClassificationError
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class RunOrchestrator:
    """
    Executes pipeline runs against a fixed environment catalog.

    One run at a time per orchestrator; Apply/Destroy safety relies on it.
    """

    def __init__(
        self,
        config: PipelineConfig,
        adapter: ToolAdapter,
        store: Optional[ArtifactStore] = None,
        approver: Optional[Approver] = None,
        max_parallel: Optional[int] = None,
    ):
        self.config = config
        self.store = store
        self.gate = StageGate(adapter, approver=approver, max_parallel=max_parallel)
        self._current: Optional[asyncio.Task] = None
        self._cancel_requested = False

    @property
    def is_running(self) -> bool:
        return self._current is not None and not self._current.done()

    def cancel(self) -> bool:
        """
        Request cancellation of the active run.

        Returns:
            True if a run was in flight
        """
        if not self.is_running:
            return False
        self._cancel_requested = True
        self._current.cancel()
        logger.warning("run_cancel_requested")
        return True

    async def execute(self, request: TriggerRequest) -> Run:
        """
        Run the pipeline for a trigger.

        Returns:
            The finished Run (succeeded, failed, invalid or cancelled)

        Raises:
            RuntimeError: If another run is still in flight
        """
        if self.is_running:
            raise RuntimeError("A run is already in progress")

        run = Run(request=request)
        structlog.contextvars.bind_contextvars(run_id=run.id)
        try:
            self._cancel_requested = False
            self._current = asyncio.ensure_future(self._execute(run))
            try:
                await self._current
            except asyncio.CancelledError:
                if not self._cancel_requested:
                    # The caller itself was cancelled, not just this run
                    self._finalize_cancelled(run)
                    raise
                self._finalize_cancelled(run)
            self._archive(run)
            return run
        finally:
            self._current = None
            structlog.contextvars.unbind_contextvars("run_id")

    async def _execute(self, run: Run) -> None:
        logger.info(
            "run_received",
            trigger=run.request.kind.value,
            branch=run.request.branch,
            action=run.request.action.value if run.request.action else None,
        )

        try:
            stages = classify(run.request, self.config.primary_branch)
        except ClassificationError as e:
            run.reject(str(e))
            logger.error("run_rejected", error=str(e), **e.context)
            return

        run.start(list(stages))
        context = TaskContext(run_id=run.id, config=self.config)

        for stage in stages:
            if not self.gate.is_open(stage, run.outcomes):
                run.fail(f"stage {stage.value} is gated by an unsuccessful stage")
                return

            tasks = plan_stage(stage, self.config.catalog, self.config.terraform_root)
            outcome = StageOutcome(stage=stage, status=StageStatus.CANCELLED, tasks=tasks)
            run.outcomes.append(outcome)

            result = await self.gate.run_stage(stage, tasks, context)
            outcome.status = result.status

            if not outcome.succeeded:
                failed = ", ".join(t.environment.name for t in outcome.failed_tasks)
                run.fail(f"stage {stage.value} failed: {failed}")
                logger.error("run_failed", stage=stage.value, failed=failed)
                return

        run.succeed()
        logger.info("run_succeeded", stages=[s.value for s in stages], duration=run.duration)

    def _finalize_cancelled(self, run: Run) -> None:
        if run.is_terminal:
            return
        run.cancel()
        logger.warning("run_cancelled", completed_tasks=sum(1 for t in run.tasks if t.succeeded))

    def _archive(self, run: Run) -> None:
        if self.store is None:
            return
        try:
            self.store.archive_run(run)
        except ArtifactError as e:
            logger.error("run_archive_failed", run_id=run.id, error=str(e))
