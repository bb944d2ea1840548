"""Docker implementation of the container runtime port."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import docker
from docker.errors import APIError, DockerException, NotFound
from docker.models.containers import Container
from docker.types import Mount as DockerMount

from capdock.errors import (
    ContainerCreateError,
    ContainerRemoveError,
    ContainerRuntimeError,
    PortAllocationError,
)
from capdock.models.container import ObservedContainer, RunContainerInput
from capdock.providers.base import ContainerRuntime

if TYPE_CHECKING:
    from capdock.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


PORT_ALLOCATED_MARKERS = ("port is already allocated", "address already in use")


def _is_port_conflict(error: APIError) -> bool:
    message = str(getattr(error, "explanation", None) or error).lower()
    return any(marker in message for marker in PORT_ALLOCATED_MARKERS)


def to_observed(container: Container, network: str = "") -> ObservedContainer:
    """Convert an SDK container into the runtime-neutral view."""
    attrs = container.attrs or {}
    networks = attrs.get("NetworkSettings", {}).get("Networks") or {}
    endpoint: Dict[str, Any] = networks.get(network) or next(iter(networks.values()), {})

    return ObservedContainer(
        id=container.id,
        name=container.name,
        image=attrs.get("Config", {}).get("Image", ""),
        status=container.status,
        labels=dict(container.labels or {}),
        ipv4_address=endpoint.get("IPAddress") or None,
        ipv6_address=endpoint.get("GlobalIPv6Address") or None,
    )


def to_create_kwargs(spec: RunContainerInput) -> Dict[str, Any]:
    """Translate a resolved spec into docker-py create() arguments."""
    kwargs: Dict[str, Any] = {
        "image": spec.image,
        "name": spec.name,
        "hostname": spec.name,
        "labels": dict(spec.labels),
        "environment": dict(spec.environment_vars),
        "restart_policy": {"Name": "unless-stopped"},
        "security_opt": ["seccomp=unconfined", "apparmor=unconfined"],
        "privileged": True,
        "tty": True,
        "detach": True,
    }

    if spec.network:
        kwargs["network"] = spec.network

    user = spec.user_string()
    if user:
        kwargs["user"] = user

    if spec.command_args is not None:
        kwargs["command"] = spec.command_args

    if spec.entrypoint is not None:
        kwargs["entrypoint"] = spec.entrypoint

    if spec.port_mappings:
        kwargs["ports"] = {
            f"{mapping.container_port}/{mapping.protocol}": mapping.host_port or None
            for mapping in spec.port_mappings
        }

    if spec.mounts:
        kwargs["mounts"] = [
            DockerMount(
                target=mount.target,
                source=mount.source or None,
                type="bind" if mount.source else "volume",
                read_only=mount.read_only,
            )
            for mount in spec.mounts
        ]

    return kwargs


class DockerRuntime(ContainerRuntime):
    """Container runtime backed by the Docker Engine API."""

    def __init__(self):
        """Initialize docker runtime."""
        self.client: Optional[docker.DockerClient] = None
        self.network: str = ""
        self.base_url: Optional[str] = None

    async def initialize(self, config, registry: "ProviderRegistry") -> None:
        """Connect to the Docker daemon."""
        self.network = config.docker.network
        try:
            self.client = await asyncio.to_thread(
                docker.DockerClient,
                base_url=config.docker.base_url,
                timeout=config.docker.timeout,
            )
        except DockerException as e:
            raise ContainerRuntimeError("connect to docker", str(e)) from e
        self.base_url = config.docker.base_url
        logger.debug(f"Connected to docker at {config.docker.base_url}")

    def reconfigure(self, config) -> None:
        """Switch the node network, the daemon connection is kept until restart."""
        self.network = config.docker.network
        if config.docker.base_url != self.base_url:
            logger.warning(
                f"docker.base_url changed to {config.docker.base_url}, "
                f"still connected to {self.base_url} until restart"
            )

    async def close(self) -> None:
        """Close the daemon connection."""
        if self.client:
            await asyncio.to_thread(self.client.close)

    async def list_containers(self, labels: Dict[str, Optional[str]]) -> List[ObservedContainer]:
        """List containers in any state; ones removed while listing are skipped."""
        filters = {
            "label": [
                key if value is None else f"{key}={value}"
                for key, value in sorted(labels.items())
            ]
        }
        try:
            containers = await asyncio.to_thread(
                self.client.containers.list, all=True, filters=filters, ignore_removed=True
            )
        except DockerException as e:
            raise ContainerRuntimeError("list containers", str(e)) from e

        return [to_observed(container, self.network) for container in containers]

    async def create_container(self, spec: RunContainerInput) -> ObservedContainer:
        """Create and start a container from ``spec``.

        A start that fails because the published host port was taken removes
        the container again and raises PortAllocationError, any other failure
        raises ContainerCreateError.
        """
        logger.info(f"Creating container {spec.name} from {spec.image} with labels {spec.labels}")
        try:
            container = await asyncio.to_thread(
                self.client.containers.create, **to_create_kwargs(spec)
            )
        except DockerException as e:
            raise ContainerCreateError(f"create container {spec.name}", str(e)) from e

        try:
            await asyncio.to_thread(container.start)
        except APIError as e:
            if not _is_port_conflict(e):
                raise ContainerCreateError(f"start container {spec.name}", str(e)) from e

            # The container holds no state yet, drop it so a retry can reuse the name
            logger.warning(f"Host port for {spec.name} was taken, removing container")
            await self.delete_container(container.id)
            host_port = spec.port_mappings[0].host_port if spec.port_mappings else 0
            raise PortAllocationError(f"start container {spec.name}", host_port, str(e)) from e
        except DockerException as e:
            raise ContainerCreateError(f"start container {spec.name}", str(e)) from e

        try:
            await asyncio.to_thread(container.reload)
        except DockerException as e:
            raise ContainerRuntimeError(f"inspect container {spec.name}", str(e)) from e

        return to_observed(container, self.network)

    async def delete_container(self, container_id: str) -> str:
        """Force remove a container and its anonymous volumes; a missing one is not an error."""
        logger.info(f"Removing container {container_id}")
        try:
            container = await asyncio.to_thread(self.client.containers.get, container_id)
            await asyncio.to_thread(container.remove, force=True, v=True)
        except NotFound:
            logger.debug(f"Container {container_id} already removed")
        except DockerException as e:
            raise ContainerRemoveError(f"remove container {container_id}", str(e)) from e
        return container_id

    async def exec(self, container_id: str, command: List[str]) -> str:
        """Run ``command`` privileged and return its combined output."""
        try:
            container = await asyncio.to_thread(self.client.containers.get, container_id)
            result = await asyncio.to_thread(
                container.exec_run, command, stdout=True, stderr=True, privileged=True
            )
        except DockerException as e:
            raise ContainerRuntimeError(f"exec {command} in {container_id}", str(e)) from e

        output = result.output.decode(errors="replace") if result.output else ""
        if result.exit_code != 0:
            raise ContainerRuntimeError(
                f"exec {command} in {container_id}",
                f"exit code {result.exit_code}: {output.strip()}",
            )
        return output
