"""Shared test fixtures for envgate test suite."""

import asyncio
from pathlib import Path

import pytest

from envgate.adapters.base import TaskContext, ToolAdapter, ToolOutcome
from envgate.pipeline.config import load_pipeline_config
from envgate.pipeline.domain.enums import ErrorKind, Stage
from envgate.pipeline.domain.environments import DEFAULT_ENVIRONMENT_NAMES

ENV_ORDER = list(DEFAULT_ENVIRONMENT_NAMES)


class RecordingAdapter(ToolAdapter):
    """
    In-memory tool adapter.

    Records dispatch order and fails the (stage, environment) pairs it is told to.
    """

    def __init__(self, failures=None, delay: float = 0.0, error_kind: ErrorKind = ErrorKind.TOOL):
        self.failures = set(failures or ())
        self.delay = delay
        self.error_kind = error_kind
        self.dispatched = []
        self.completed = []
        self.in_flight = 0
        self.max_in_flight = 0

    def dispatched_for(self, stage: Stage):
        return [env for s, env in self.dispatched if s == stage]

    async def execute(self, task, context: TaskContext) -> ToolOutcome:
        key = (task.stage, task.environment.name)
        self.dispatched.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        self.completed.append(key)

        if key in self.failures:
            return ToolOutcome.failure(f"{task.stage.value} failed", self.error_kind)
        return ToolOutcome(passed=True, artifacts=[f"{context.run_id}/{task.stage.value}/{task.environment.name}"])


async def approve_all(task) -> bool:
    return True


@pytest.fixture
def project_root(tmp_path):
    """Project with a variable file for every default environment."""
    env_dir = tmp_path / "environments"
    env_dir.mkdir()
    for name in ENV_ORDER:
        (env_dir / f"{name}.tfvars").write_text(f'environment = "{name}"\n')
    return tmp_path


@pytest.fixture
def pipeline_config(project_root):
    """Default five-environment pipeline configuration."""
    return load_pipeline_config(project_root)


@pytest.fixture
def task_context(pipeline_config):
    return TaskContext(run_id="run-test", config=pipeline_config)


@pytest.fixture
def recording_adapter():
    return RecordingAdapter()


def write_config(project_root: Path, content: str) -> Path:
    config_dir = project_root / ".envgate"
    config_dir.mkdir(exist_ok=True)
    path = config_dir / "config.yaml"
    path.write_text(content)
    return path
