"""
capdock - Cluster API infrastructure provider backed by Docker containers.

Realizes Cluster API Machines as kind node containers, driving each container
through its lifecycle from the DockerMachine resource that owns it.
"""

__version__ = "0.1.0"
__author__ = "capdock Development Team"

# Re-export key components for easier access
from capdock.models.config import CapdockConfig
from capdock.models.container import RunContainerInput
from capdock.models.resources import Cluster, Machine, DockerCluster, DockerMachine

__all__ = [
    "CapdockConfig",
    "RunContainerInput",
    "Cluster",
    "Machine",
    "DockerCluster",
    "DockerMachine",
]
