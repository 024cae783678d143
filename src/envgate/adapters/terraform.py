"""
External tool adapter for Terraform pipelines.

Maps every (stage, environment) task to a fixed sequence of tool steps:

    validate  terraform fmt, terraform init (no backend), terraform validate, tflint
    plan      terraform init, workspace select, terraform plan, terraform show -json
    scan      tfsec, trivy config, opa eval (when a policy directory is configured)
    apply     terraform init, workspace select, terraform apply <plan artifact>
    destroy   terraform init, workspace select, terraform destroy

Steps stop at the first non-zero exit. Tools decide pass/fail through
their own exit-code conventions; thresholds come from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from envgate.adapters.base import TaskContext, ToolAdapter, ToolOutcome
from envgate.artifacts.store import ArtifactStore
from envgate.pipeline.domain.enums import ErrorKind, Stage
from envgate.pipeline.domain.models import StepResult, Task
from envgate.shared.domain.exceptions import ConfigurationError
from envgate.shared.infrastructure.config import Settings, settings as default_settings
from envgate.shared.infrastructure.execution import CommandExecutor, CommandResult
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Output fragments that point at credentials or the state backend, not the code
INFRASTRUCTURE_MARKERS: Final[tuple[str, ...]] = (
    "NoCredentialProviders",
    "no valid credential sources",
    "AccessDenied",
    "ExpiredToken",
    "InvalidClientTokenId",
    "error configuring S3 Backend",
    "Failed to get existing workspaces",
    "Error acquiring the state lock",
    "Error loading state",
    "AssumeRole",
)

OUTPUT_TAIL_CHARS: Final[int] = 500
DATA_DIR_NAME: Final[str] = ".envgate-terraform"


@dataclass(frozen=True)
class ToolStep:
    """One command of a task; stdout is stored under `report` when set."""

    name: str
    command: list[str]
    report: str | None = None


def classify_failure(result: CommandResult) -> ErrorKind:
    """Tell infrastructure problems apart from findings. Reporting only."""
    if result.could_not_execute:
        return ErrorKind.INFRASTRUCTURE
    output = f"{result.stderr}\n{result.stdout}"
    if any(marker.lower() in output.lower() for marker in INFRASTRUCTURE_MARKERS):
        return ErrorKind.INFRASTRUCTURE
    return ErrorKind.TOOL


def _tail(result: CommandResult) -> str:
    text = result.stderr.strip() or result.stdout.strip()
    return text[-OUTPUT_TAIL_CHARS:]


class TerraformToolAdapter(ToolAdapter):
    """Runs terraform, tflint, tfsec, trivy and opa for pipeline tasks."""

    def __init__(
        self,
        store: ArtifactStore,
        executor: CommandExecutor | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.executor = executor or CommandExecutor(default_timeout=self.settings.tool_timeout)

    async def execute(self, task: Task, context: TaskContext) -> ToolOutcome:
        env = task.environment
        terraform_root = context.config.terraform_root

        try:
            steps = self.steps_for(task, context)
        except ConfigurationError as e:
            return ToolOutcome.failure(str(e), ErrorKind.CONFIGURATION)

        process_env = {
            "TF_IN_AUTOMATION": "1",
            "TF_INPUT": "0",
            # Per-environment .terraform so parallel tasks never share local state
            "TF_DATA_DIR": str(terraform_root / DATA_DIR_NAME / env.name),
        }

        results: list[StepResult] = []
        artifacts: list[str] = []

        for step in steps:
            result = await self.executor.run_async(
                step.command,
                cwd=terraform_root,
                env=process_env,
                timeout=self.settings.tool_timeout,
            )
            results.append(
                StepResult(
                    name=step.name,
                    command=result.command,
                    exit_code=result.exit_code,
                    duration=result.duration,
                    passed=result.is_success,
                    output_tail="" if result.is_success else _tail(result),
                )
            )

            if step.report:
                path = self.store.write_text(context.run_id, task.stage, env.name, step.report, result.stdout)
                artifacts.append(str(path))

            if not result.is_success:
                kind = classify_failure(result)
                reason = "timed out" if result.is_timeout else f"exit {result.exit_code}"
                logger.debug(
                    "tool_step_failed",
                    step=step.name,
                    environment=env.name,
                    error_kind=kind.value,
                )
                return ToolOutcome(
                    passed=False,
                    steps=results,
                    artifacts=artifacts,
                    error=f"{step.name} failed ({reason})",
                    error_kind=kind,
                )

        if task.stage is Stage.PLAN:
            artifacts.insert(0, str(self.store.plan_file(context.run_id, env.name)))

        return ToolOutcome(passed=True, steps=results, artifacts=artifacts)

    def steps_for(self, task: Task, context: TaskContext) -> list[ToolStep]:
        """
        Build the command sequence of a task.

        Raises:
            ConfigurationError: If an artifact the stage consumes is missing
        """
        builders = {
            Stage.VALIDATE: self._validate_steps,
            Stage.PLAN: self._plan_steps,
            Stage.SCAN: self._scan_steps,
            Stage.APPLY: self._apply_steps,
            Stage.DESTROY: self._destroy_steps,
        }
        # Creating the directory stamps the stage's retention window
        self.store.task_dir(context.run_id, task.stage, task.environment.name)
        return builders[task.stage](task, context)

    def _backend_steps(self, task: Task) -> list[ToolStep]:
        tf = self.settings.terraform_bin
        init = [tf, "init", "-input=false", "-reconfigure"]
        if task.environment.backend_role:
            init.append(f"-backend-config=role_arn={task.environment.backend_role}")
        return [
            ToolStep("terraform init", init),
            ToolStep(
                "terraform workspace",
                [tf, "workspace", "select", "-or-create", task.environment.name],
            ),
        ]

    def _validate_steps(self, task: Task, context: TaskContext) -> list[ToolStep]:
        tf = self.settings.terraform_bin
        env = task.environment
        return [
            ToolStep("terraform fmt", [tf, "fmt", "-check", "-recursive", "-diff"]),
            ToolStep("terraform init", [tf, "init", "-backend=false", "-input=false"]),
            ToolStep("terraform validate", [tf, "validate", "-json"], report="validate.json"),
            ToolStep("tflint init", [self.settings.tflint_bin, "--init"]),
            ToolStep(
                "tflint",
                [
                    self.settings.tflint_bin,
                    f"--var-file={env.var_file}",
                    f"--minimum-failure-severity={env.lint_failure_threshold}",
                    "--format=json",
                ],
                report="tflint.json",
            ),
        ]

    def _plan_steps(self, task: Task, context: TaskContext) -> list[ToolStep]:
        tf = self.settings.terraform_bin
        env = task.environment
        plan_file = self.store.plan_file(context.run_id, env.name)
        return self._backend_steps(task) + [
            ToolStep(
                "terraform plan",
                [tf, "plan", "-input=false", "-lock-timeout=5m", f"-var-file={env.var_file}", f"-out={plan_file}"],
                report="plan.log",
            ),
            ToolStep("terraform show", [tf, "show", "-json", str(plan_file)], report="tfplan.json"),
        ]

    def _scan_steps(self, task: Task, context: TaskContext) -> list[ToolStep]:
        env = task.environment
        steps = [
            ToolStep(
                "tfsec",
                [
                    self.settings.tfsec_bin,
                    ".",
                    f"--minimum-severity={env.scan_severity}",
                    f"--tfvars-file={env.var_file}",
                    "--format=json",
                    "--no-colour",
                ],
                report="tfsec.json",
            ),
            ToolStep(
                "trivy",
                [
                    self.settings.trivy_bin,
                    "config",
                    f"--severity={','.join(env.scan_severities)}",
                    f"--tf-vars={env.var_file}",
                    "--exit-code=1",
                    "--format=json",
                    ".",
                ],
                report="trivy.json",
            ),
        ]

        policy_dir = context.config.policy_dir
        if policy_dir is None:
            logger.debug("opa_skipped_no_policy_dir", environment=env.name)
            return steps

        plan_json = self.store.plan_json(context.run_id, env.name)
        if not plan_json.is_file():
            raise ConfigurationError(f"plan artifact not found: {plan_json}")

        steps.append(
            ToolStep(
                "opa",
                [
                    self.settings.opa_bin,
                    "eval",
                    "--fail-defined",
                    "--format=pretty",
                    f"--data={context.config.project_root / policy_dir}",
                    f"--input={plan_json}",
                    "data.terraform.deny[msg]",
                ],
                report="opa.txt",
            )
        )
        return steps

    def _apply_steps(self, task: Task, context: TaskContext) -> list[ToolStep]:
        plan_file = self.store.plan_file(context.run_id, task.environment.name)
        if not plan_file.is_file():
            raise ConfigurationError(f"plan artifact not found: {plan_file}")
        return self._backend_steps(task) + [
            ToolStep(
                "terraform apply",
                [self.settings.terraform_bin, "apply", "-input=false", "-auto-approve", str(plan_file)],
                report="apply.log",
            ),
        ]

    def _destroy_steps(self, task: Task, context: TaskContext) -> list[ToolStep]:
        return self._backend_steps(task) + [
            ToolStep(
                "terraform destroy",
                [
                    self.settings.terraform_bin,
                    "destroy",
                    "-input=false",
                    "-auto-approve",
                    f"-var-file={task.environment.var_file}",
                ],
                report="destroy.log",
            ),
        ]

