"""Command implementations for CLI."""

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from capdock.models.config import CapdockConfig
from capdock.providers.base import ContainerRuntime
from capdock.utils.network import DualStackFamily, IPv6Family, classify_ip_family


console = Console()


async def list_containers(
    runtime: ContainerRuntime, config: CapdockConfig, cluster: Optional[str] = None
):
    """Show node containers managed by capdock."""
    labels = config.labels
    filters = {labels.cluster: cluster} if cluster else {labels.cluster: None}
    containers = await runtime.list_containers(filters)

    if not containers:
        console.print("No node containers found")
        return

    table = Table(title="Node containers")
    table.add_column("Name", style="cyan")
    table.add_column("Cluster")
    table.add_column("Role", style="magenta")
    table.add_column("Status")
    table.add_column("Address")
    table.add_column("Hash", style="dim", max_width=16)

    for container in sorted(containers, key=lambda c: c.name):
        status_style = "green" if container.running else "yellow"
        table.add_row(
            container.name,
            container.labels.get(labels.cluster, ""),
            container.labels.get(labels.role, ""),
            f"[{status_style}]{container.status}[/{status_style}]",
            container.ipv4_address or container.ipv6_address or "-",
            container.labels.get(labels.content_hash, "")[:12],
        )

    console.print(table)


def show_ip_family(cidrs: List[str]):
    """Print the IP family a set of CIDR blocks falls into."""
    family = classify_ip_family(cidrs)
    match family:
        case DualStackFamily():
            name = "dual-stack"
        case IPv6Family():
            name = "IPv6"
        case _:
            name = "IPv4"

    console.print(f"[bold]{name}[/bold]")
    for cidr in family.cidrs:
        console.print(f"  {cidr}")
