"""Container specification models."""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class Mount(BaseModel):
    """Mount details for a node container."""
    model_config = ConfigDict(frozen=True)

    source: str = Field(default="", description="Host path, empty for an anonymous volume")
    target: str = Field(..., description="Path inside the container")
    read_only: bool = Field(default=False)


class PortMapping(BaseModel):
    """Host to container port mapping."""
    container_port: int = Field(..., gt=0, lt=65536)
    host_port: int = Field(default=0, ge=0, lt=65536)
    protocol: Literal["tcp", "udp", "sctp"] = Field(default="tcp")


class RunContainerInput(BaseModel):
    """Fully resolved configuration for running a node container."""
    image: str = Field(default="")
    name: str = Field(..., description="Container name")
    network: str = Field(default="")
    user: Optional[str] = None
    group: Optional[str] = None
    mounts: List[Mount] = Field(default_factory=list)
    environment_vars: Dict[str, str] = Field(default_factory=dict)
    command_args: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    port_mappings: List[PortMapping] = Field(default_factory=list)

    def user_string(self) -> str:
        """Render user[:group] the way the runtime expects it."""
        if not self.user:
            return ""
        if self.group:
            return f"{self.user}:{self.group}"
        return self.user


class ObservedContainer(BaseModel):
    """Container as reported by the runtime."""
    id: str
    name: str
    image: str = ""
    status: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.status == "running"


class MachineAddress(BaseModel):
    """Address entry reported on DockerMachine status."""
    type: Literal["Hostname", "InternalIP", "ExternalIP", "InternalDNS", "ExternalDNS"]
    address: str
