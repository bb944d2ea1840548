"""Pydantic models for configuration, resources and containers."""

from capdock.models.config import CapdockConfig, AgentConfig, LabelConfig, DockerConfig
from capdock.models.container import (
    Mount,
    PortMapping,
    RunContainerInput,
    ObservedContainer,
    MachineAddress,
)
from capdock.models.resources import Cluster, Machine, DockerCluster, DockerMachine

__all__ = [
    "CapdockConfig",
    "AgentConfig",
    "LabelConfig",
    "DockerConfig",
    "Mount",
    "PortMapping",
    "RunContainerInput",
    "ObservedContainer",
    "MachineAddress",
    "Cluster",
    "Machine",
    "DockerCluster",
    "DockerMachine",
]
