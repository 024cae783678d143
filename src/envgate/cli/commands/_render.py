"""Rich rendering helpers shared by CLI commands."""

from typing import Iterable, List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from envgate.pipeline.domain.enums import RunStatus, Stage, TaskStatus
from envgate.pipeline.domain.environments import EnvironmentCatalog
from envgate.pipeline.domain.models import Run, Task
from envgate.pipeline.domain.stages import definition_for

STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "cyan",
    TaskStatus.SUCCEEDED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.SKIPPED: "yellow",
    TaskStatus.CANCELLED: "magenta",
}

RUN_STYLES = {
    RunStatus.SUCCEEDED: "green",
    RunStatus.FAILED: "red",
    RunStatus.INVALID: "red",
    RunStatus.CANCELLED: "magenta",
}


def render_environments(console: Console, catalog: EnvironmentCatalog) -> None:
    table = Table(title="Environments", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Var file")
    table.add_column("Approval")
    table.add_column("Scan severity")
    table.add_column("Lint threshold")
    table.add_column("Backend role", overflow="fold")

    for env in catalog:
        table.add_row(
            str(env.priority),
            env.name,
            str(env.var_file),
            "[yellow]required[/yellow]" if env.requires_approval else "-",
            env.scan_severity,
            env.lint_failure_threshold,
            env.backend_role or "-",
        )
    console.print(table)


def render_stage_plan(console: Console, stages: Iterable[Stage], tasks_by_stage: dict) -> None:
    """Dry-run view: classified stages and the tasks each would dispatch."""
    table = Table(title="Planned stages")
    table.add_column("Rank", justify="right", style="dim")
    table.add_column("Stage", style="bold")
    table.add_column("Policy")
    table.add_column("Tasks")

    for stage in stages:
        definition = definition_for(stage)
        tasks: List[Task] = tasks_by_stage[stage]
        cells = []
        for task in tasks:
            if task.status == TaskStatus.FAILED:
                cells.append(f"[red]{task.environment.name} ({escape(task.error)})[/red]")
            else:
                cells.append(task.environment.name)
        arrow = " -> " if definition.is_sequential else ", "
        table.add_row(str(definition.rank), stage.value, definition.policy.value, arrow.join(cells))
    console.print(table)


def render_run(console: Console, run: Run) -> None:
    style = RUN_STYLES.get(run.status, "white")

    if run.status == RunStatus.INVALID:
        console.print(Panel.fit(f"[red]{escape(run.error)}[/red]", title="Run rejected", border_style="red"))
        return

    table = Table(title=f"Run {run.id}")
    table.add_column("Stage", style="bold")
    table.add_column("Environment")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Detail", overflow="fold")

    for task in run.tasks:
        task_style = STATUS_STYLES[task.status]
        detail = task.error or ""
        if task.error_kind:
            detail = f"[{task.error_kind.value}] {detail}"
        table.add_row(
            task.stage.value,
            task.environment.name,
            f"[{task_style}]{task.status.value}[/{task_style}]",
            f"{task.duration:.1f}s",
            escape(detail),
        )
    console.print(table)

    summary = f"[{style}]{run.status.value.upper()}[/{style}]"
    if run.error and run.status != RunStatus.SUCCEEDED:
        summary += f"\n[dim]{escape(run.error)}[/dim]"
    console.print(Panel.fit(summary, title="Result", border_style=style))
