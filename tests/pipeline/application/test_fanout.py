"""Tests for the workspace fan-out planner."""

import pytest

from envgate.pipeline.application.fanout import plan_stage
from envgate.pipeline.domain.enums import ErrorKind, Stage, TaskStatus

from conftest import ENV_ORDER


class TestFanOut:

    @pytest.mark.parametrize("stage", list(Stage))
    def test_one_task_per_environment(self, stage, pipeline_config):
        tasks = plan_stage(stage, pipeline_config.catalog, pipeline_config.terraform_root)

        assert len(tasks) == 5
        assert len({t.key for t in tasks}) == 5
        assert [t.environment.name for t in tasks] == ENV_ORDER
        assert all(t.stage == stage for t in tasks)
        assert all(t.status == TaskStatus.PENDING for t in tasks)

    def test_missing_var_file_fails_task_not_drops_it(self, project_root, pipeline_config):
        (project_root / "environments" / "uat.tfvars").unlink()

        tasks = plan_stage(Stage.PLAN, pipeline_config.catalog, pipeline_config.terraform_root)

        assert [t.environment.name for t in tasks] == ENV_ORDER
        uat = tasks[2]
        assert uat.status == TaskStatus.FAILED
        assert uat.error_kind == ErrorKind.CONFIGURATION
        assert uat.error.startswith("configuration not found")
        assert "uat.tfvars" in uat.error
        assert all(t.status == TaskStatus.PENDING for t in tasks if t is not uat)

    def test_var_files_resolved_against_terraform_root(self, pipeline_config, tmp_path):
        other_root = tmp_path / "elsewhere"
        other_root.mkdir()

        tasks = plan_stage(Stage.VALIDATE, pipeline_config.catalog, other_root)

        assert all(t.status == TaskStatus.FAILED for t in tasks)
