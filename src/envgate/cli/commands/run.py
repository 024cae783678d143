"""
Run commands for envgate CLI.

- envgate run: execute a pipeline run for a trigger
- envgate stages: show what a trigger would run, without invoking tools

Exit codes: 0 succeeded, 1 failed, 2 invalid (rejected), 130 cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from envgate.adapters import TerraformToolAdapter
from envgate.artifacts import ArtifactStore
from envgate.cli.commands._render import render_run, render_stage_plan
from envgate.pipeline.application.fanout import plan_stage
from envgate.pipeline.application.orchestrator import RunOrchestrator
from envgate.pipeline.application.trigger_classifier import classify, parse_request
from envgate.pipeline.config import DEFAULT_CONFIG_PATH, PipelineConfig, load_pipeline_config
from envgate.pipeline.domain.enums import RunStatus
from envgate.pipeline.domain.models import Task
from envgate.shared.domain.exceptions import ClassificationError, ConfigurationError
from envgate.shared.infrastructure.config import settings

console = Console()
err_console = Console(stderr=True)

TriggerOption = typer.Option(..., "--trigger", "-t", help="push, review (pull_request) or manual (workflow_dispatch)")
BranchOption = typer.Option(..., "--branch", "-b", help="Pushed branch, or the target branch of a review")
ActionOption = typer.Option(None, "--action", "-a", help="Manual runs only: validate, plan, apply or destroy")
ProjectRootOption = typer.Option(Path("."), "--project-root", "-C", help="Project root directory")
ConfigOption = typer.Option(None, "--config", "-c", help="Pipeline config file (default: .envgate/config.yaml)")


def load_config_or_exit(project_root: Path, config: Optional[Path]) -> PipelineConfig:
    """
    Load pipeline configuration; configuration errors exit with code 2.

    Only the default config file may be absent. A path named with --config
    or ENVGATE_CONFIG_PATH must exist.
    """
    if config is None and Path(settings.config_path) != DEFAULT_CONFIG_PATH:
        config = Path(settings.config_path)

    try:
        return load_pipeline_config(
            project_root,
            config_path=config,
            primary_branch=settings.primary_branch,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(RunStatus.INVALID.exit_code)


def _make_approver(auto_approve: bool):
    async def approve(task: Task) -> bool:
        if auto_approve:
            return True
        if not sys.stdin.isatty():
            err_console.print(
                f"[yellow]{task.environment.name} requires approval; "
                f"rerun with --auto-approve to allow {task.stage.value}[/yellow]"
            )
            return False
        return await _confirm(f"Approve {task.stage.value} of {task.environment.name}?")

    return approve


async def _confirm(prompt: str) -> bool:
    """
    Ask a yes/no question without blocking cancellation.

    The prompt runs on a daemon thread, so a run cancelled mid-prompt
    exits without waiting for the operator to press Enter.
    """
    loop = asyncio.get_running_loop()
    answer: asyncio.Future = loop.create_future()

    def _deliver(setter, value) -> None:
        if not answer.done():
            setter(value)

    def _ask() -> None:
        try:
            result = (answer.set_result, typer.confirm(prompt, default=False))
        except typer.Abort:
            result = (answer.set_result, False)
        except Exception as e:
            result = (answer.set_exception, e)
        # The loop is gone once a cancelled run has shut down
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(_deliver, *result)

    threading.Thread(target=_ask, name="envgate-approval", daemon=True).start()
    return await answer


async def _run_with_signals(orchestrator: RunOrchestrator, request):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, orchestrator.cancel)
    try:
        return await orchestrator.execute(request)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(sig)


def run_command(
    trigger: str = TriggerOption,
    branch: str = BranchOption,
    action: Optional[str] = ActionOption,
    project_root: Path = ProjectRootOption,
    config: Optional[Path] = ConfigOption,
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Approve protected environments without prompting"),
    output_json: bool = typer.Option(False, "--json", help="Print the run report as JSON"),
) -> None:
    """
    Execute a pipeline run.

    Examples:
        envgate run --trigger push --branch main
        envgate run -t pull_request -b main
        envgate run -t manual -b main --action destroy --auto-approve
    """
    pipeline_config = load_config_or_exit(project_root, config)

    try:
        request = parse_request(trigger, branch, action)
    except ClassificationError as e:
        console.print(f"[red]Run rejected:[/red] {e}")
        raise typer.Exit(RunStatus.INVALID.exit_code)

    store = ArtifactStore(pipeline_config.project_root / settings.artifacts_dir)
    orchestrator = RunOrchestrator(
        config=pipeline_config,
        adapter=TerraformToolAdapter(store=store, settings=settings),
        store=store,
        approver=_make_approver(auto_approve or settings.auto_approve),
        max_parallel=settings.max_parallel,
    )

    run = asyncio.run(_run_with_signals(orchestrator, request))

    if output_json:
        typer.echo(json.dumps(run.to_json(), indent=2))
    else:
        render_run(console, run)

    raise typer.Exit(run.status.exit_code)


def stages_command(
    trigger: str = TriggerOption,
    branch: str = BranchOption,
    action: Optional[str] = ActionOption,
    project_root: Path = ProjectRootOption,
    config: Optional[Path] = ConfigOption,
) -> None:
    """
    Show the stages and tasks a trigger would run, without invoking tools.

    Examples:
        envgate stages -t push -b feature/vpc
        envgate stages -t manual -b main -a apply
    """
    pipeline_config = load_config_or_exit(project_root, config)

    try:
        request = parse_request(trigger, branch, action)
        stages = classify(request, pipeline_config.primary_branch)
    except ClassificationError as e:
        console.print(f"[red]Run rejected:[/red] {e}")
        raise typer.Exit(RunStatus.INVALID.exit_code)

    tasks_by_stage = {
        stage: plan_stage(stage, pipeline_config.catalog, pipeline_config.terraform_root)
        for stage in stages
    }
    render_stage_plan(console, stages, tasks_by_stage)
