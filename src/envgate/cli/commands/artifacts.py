"""
Artifact commands for envgate CLI.

- envgate artifacts prune: delete artifacts past their retention window
"""

from pathlib import Path

import typer
from rich.console import Console

from envgate.artifacts import ArtifactStore
from envgate.cli.commands.run import ProjectRootOption
from envgate.shared.infrastructure.config import settings

console = Console()

artifacts_app = typer.Typer(
    name="artifacts",
    help="Manage locally stored run artifacts",
    no_args_is_help=True,
)


@artifacts_app.command("prune")
def artifacts_prune(project_root: Path = ProjectRootOption) -> None:
    """
    Delete artifacts whose retention window has passed.

    Validate, plan and scan artifacts are kept 7 days; apply and destroy logs 30 days.
    """
    store = ArtifactStore(project_root.resolve() / settings.artifacts_dir)
    removed = store.prune()

    if not removed:
        console.print("[dim]Nothing to prune.[/dim]")
        return

    console.print(f"[bold green]Pruned {len(removed)} artifact director{'y' if len(removed) == 1 else 'ies'}:[/bold green]")
    for path in removed:
        console.print(f"  [red]-[/red] {path}")
