"""
envgate CLI - environment fan-out and stage gating for Terraform pipelines
Main entry point for the command-line interface

Usage:
    envgate run -t push -b main              # Run the pipeline for a trigger
    envgate stages -t manual -b main -a plan # Show what a trigger would run
    envgate environments                     # List configured environments
    envgate artifacts prune                  # Delete expired artifacts
"""

import typer
from rich.console import Console
from rich.panel import Panel

from envgate import __version__
from envgate.cli.commands.artifacts import artifacts_app
from envgate.cli.commands.environments import environments_command
from envgate.cli.commands.run import run_command, stages_command
from envgate.shared.infrastructure.logging import configure_logging

app = typer.Typer(
    name="envgate",
    help="envgate - environment fan-out and stage gating for Terraform pipelines",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


@app.callback()
def _setup() -> None:
    configure_logging()


# Register commands
app.command("run", help="Execute a pipeline run for a trigger")(run_command)
app.command("stages", help="Show the stages and tasks a trigger would run")(stages_command)
app.command("environments", help="List configured environments")(environments_command)
app.add_typer(artifacts_app, name="artifacts", help="Manage locally stored run artifacts")


@app.command()
def version():
    """Show envgate version information"""
    console.print(Panel.fit(
        "[bold cyan]envgate[/bold cyan]\n"
        f"[dim]Version:[/dim] {__version__}\n"
        "[dim]validate -> plan -> scan -> apply/destroy[/dim]\n",
        title="About envgate",
        border_style="cyan"
    ))


def main():
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
