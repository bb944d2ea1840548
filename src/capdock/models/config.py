"""Configuration models."""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Controller loop configuration."""
    log_level: str = Field(default="INFO")
    requeue_interval: float = Field(default=300, ge=1)
    error_requeue_interval: float = Field(default=300, ge=1)
    finalizer: str = Field(default="cluster.x-k8s.io")
    namespace: Optional[str] = Field(default=None, description="Watch a single namespace")
    worker_limit: int = Field(default=4, ge=1)
    cleanup_max_attempts: int = Field(default=3, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class LabelConfig(BaseModel):
    """Label keys read from resources and written on containers."""
    cluster_name: str = Field(default="cluster.x-k8s.io/cluster-name")
    control_plane: str = Field(default="cluster.x-k8s.io/control-plane")
    cluster: str = Field(default="io.x-k8s.kind.cluster")
    role: str = Field(default="io.x-k8s.kind.role")
    content_hash: str = Field(default="io.x-k8s.container-hash")


class DockerConfig(BaseModel):
    """Container runtime and node defaults."""
    base_url: str = Field(default="unix:///var/run/docker.sock")
    socket_path: str = Field(default="/var/run/docker.sock")
    timeout: int = Field(default=60, ge=1)
    network: str = Field(default="kind")
    default_image: str = Field(default="kindest/node")
    default_version: str = Field(default="v1.27.3")
    api_server_port: int = Field(default=6443, gt=0, lt=65536)
    modules_dir: str = Field(default="/lib/modules")
    environment: Dict[str, str] = Field(default_factory=dict)
    post_create_command: List[str] = Field(default_factory=lambda: ["cat", "/kind/version"])
    port_allocation_attempts: int = Field(default=3, ge=1)
    recreate_on_drift: bool = Field(default=False)


class CapdockConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    agent: AgentConfig = Field(default_factory=AgentConfig)
    labels: LabelConfig = Field(default_factory=LabelConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
