"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from capdock.agent.config import ConfigManager
from capdock.agent.main import run_agent
from capdock.cli.commands import list_containers, show_ip_family
from capdock.errors import CapdockError
from capdock.providers.docker import DockerRuntime


# Create Typer app
app = typer.Typer(
    name="capdock",
    help="capdock - Cluster API machines as Docker containers",
    add_completion=False,
)

# Console for rich output
console = Console()


async def _containers(config_dir: Path, cluster: Optional[str]):
    config = await ConfigManager(config_dir).load()
    runtime = DockerRuntime()
    await runtime.initialize(config, None)
    try:
        await list_containers(runtime, config, cluster=cluster)
    finally:
        await runtime.close()


@app.command("run")
def run_command(
    config_dir: Optional[Path] = typer.Option(
        None, "--config-dir", "-c", help="Directory holding config.yaml"
    ),
):
    """Run the controller until interrupted."""
    try:
        asyncio.run(run_agent(config_dir))
    except KeyboardInterrupt:
        console.print("\nController shutdown requested")
    except CapdockError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("containers")
def containers_command(
    cluster: Optional[str] = typer.Option(None, "--cluster", help="Only this cluster"),
    config_dir: Path = typer.Option(
        Path("./configs"), "--config-dir", "-c", help="Directory holding config.yaml"
    ),
):
    """List node containers managed by capdock."""
    try:
        asyncio.run(_containers(config_dir, cluster))
    except CapdockError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("ip-family")
def ip_family_command(
    cidrs: List[str] = typer.Argument(..., help="CIDR blocks or addresses"),
):
    """Classify CIDR blocks as IPv4, IPv6 or dual-stack."""
    try:
        show_ip_family(cidrs)
    except CapdockError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
