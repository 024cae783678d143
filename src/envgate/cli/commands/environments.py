"""
Environment commands for envgate CLI.

- envgate environments: show the configured catalog in dispatch order
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from envgate.cli.commands._render import render_environments
from envgate.cli.commands.run import ConfigOption, ProjectRootOption, load_config_or_exit

console = Console()


def environments_command(
    project_root: Path = ProjectRootOption,
    config: Optional[Path] = ConfigOption,
    output_json: bool = typer.Option(False, "--json", help="Print the catalog as JSON"),
) -> None:
    """List configured environments in priority (dispatch) order."""
    pipeline_config = load_config_or_exit(project_root, config)

    if output_json:
        typer.echo(json.dumps([env.to_json() for env in pipeline_config.catalog], indent=2))
        return

    render_environments(console, pipeline_config.catalog)
    console.print(f"[dim]Primary branch: {pipeline_config.primary_branch}[/dim]")
