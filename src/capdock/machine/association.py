"""Association of a DockerMachine with its cluster and backing container."""

import logging
from functools import cached_property
from typing import Dict, List, Optional

from capdock.errors import (
    BootstrapSecretNotReady,
    ClusterNotFound,
    ContainerRuntimeError,
    DockerClusterNotFound,
    MachineNotFound,
    PortAllocationError,
)
from capdock.machine import role as roles
from capdock.machine.identity import container_name
from capdock.models.config import CapdockConfig
from capdock.models.container import MachineAddress, ObservedContainer
from capdock.models.resources import Cluster, DockerCluster, DockerMachine, Machine
from capdock.providers.base import ContainerRuntime
from capdock.providers.kube import KubeResources
from capdock.utils.network import ClusterIPFamily, DualStackFamily, IPv6Family, classify_ip_family


logger = logging.getLogger(__name__)


PROVIDER_ID_PREFIX = "docker:////"


class Association:
    """Binds one DockerMachine to its Machine, Cluster, DockerCluster and container.

    An association is rebuilt for every reconciliation and owned by it alone,
    it is never shared between concurrent reconciliations.
    """

    def __init__(
        self,
        docker_machine: DockerMachine,
        machine: Machine,
        cluster: Cluster,
        docker_cluster: DockerCluster,
        runtime: ContainerRuntime,
        config: CapdockConfig,
    ):
        """Initialize association."""
        self.docker_machine = docker_machine
        self.machine = machine
        self.cluster = cluster
        self.docker_cluster = docker_cluster
        self.runtime = runtime
        self.config = config
        self.role = roles.resolve_role(self)
        self.container: Optional[ObservedContainer] = None

    @classmethod
    async def resolve(
        cls,
        docker_machine: DockerMachine,
        resources: KubeResources,
        runtime: ContainerRuntime,
        config: CapdockConfig,
    ) -> "Association":
        """Look up the owning Machine, its Cluster and the Cluster's DockerCluster."""
        namespace = docker_machine.namespace

        owner = docker_machine.owner_machine_name()
        if owner is None:
            raise MachineNotFound("Waiting for Machine Controller to set OwnerRef on DockerMachine")

        machine = await resources.get_machine(namespace, owner)
        if machine is None:
            raise MachineNotFound(f"Owner Machine {namespace}/{owner} not found")

        label = config.labels.cluster_name
        cluster_name = machine.labels.get(label)
        if not cluster_name:
            raise ClusterNotFound(
                f"Please associate this machine with a cluster using the label {label}: <name of cluster>"
            )

        cluster = await resources.get_cluster(namespace, cluster_name)
        if cluster is None:
            raise ClusterNotFound(f"Cluster {namespace}/{cluster_name} not found")

        ref = cluster.spec.infrastructure_ref
        if ref is None or not ref.name:
            raise DockerClusterNotFound("Cluster infrastructureRef is not available yet")

        docker_cluster = await resources.get_docker_cluster(ref.namespace or namespace, ref.name)
        if docker_cluster is None:
            raise DockerClusterNotFound(f"DockerCluster {namespace}/{ref.name} is not available yet")

        return cls(docker_machine, machine, cluster, docker_cluster, runtime, config)

    @cached_property
    def pod_ip_family(self) -> ClusterIPFamily:
        """IP family of the cluster pod network, raises InvalidAddressError on bad CIDRs."""
        return classify_ip_family(self.cluster.pod_cidr_blocks)

    @cached_property
    def service_ip_family(self) -> ClusterIPFamily:
        """IP family of the cluster service network, which picks the reported addresses."""
        return classify_ip_family(self.cluster.service_cidr_blocks)

    def validate_networks(self) -> None:
        """Classify both cluster networks, raising InvalidAddressError on malformed CIDRs."""
        logger.debug(
            f"Cluster {self.cluster.name}: pods {self.pod_ip_family}, services {self.service_ip_family}"
        )

    @property
    def container_name(self) -> str:
        return container_name(self.cluster.name, self.docker_machine.name)

    @property
    def provider_id(self) -> str:
        return f"{PROVIDER_ID_PREFIX}{self.container_name}"

    @property
    def is_control_plane(self) -> bool:
        return isinstance(self.role, roles.ControlPlane)

    async def get_container(self, filters: Optional[Dict[str, str]] = None) -> Optional[ObservedContainer]:
        """Find the container backing this machine, None when there is none."""
        labels = {**roles.filters(self.role), **(filters or {})}
        containers = await self.runtime.list_containers(labels)

        name = self.container_name
        self.container = next((c for c in containers if c.name == name), None)
        return self.container

    def _drifted(self, container: ObservedContainer) -> bool:
        key = self.config.labels.content_hash
        expected = roles.desired_spec(self.role, host_port=0).labels[key]
        return container.labels.get(key) != expected

    async def create(self) -> ObservedContainer:
        """Create the node container unless it already exists."""
        existing = await self.get_container()
        if existing is not None:
            if not self._drifted(existing):
                logger.debug(f"Container {existing.name} already exists")
                return existing

            if not self.config.docker.recreate_on_drift:
                logger.warning(f"Container {existing.name} differs from its desired spec")
                return existing

            logger.info(f"Container {existing.name} differs from its desired spec, recreating")
            await self.delete()

        attempts = self.config.docker.port_allocation_attempts
        for attempt in range(1, attempts + 1):
            try:
                spec = roles.desired_spec(self.role)
                container = await self.runtime.create_container(spec)
                break
            except PortAllocationError as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"Host port {e.host_port} for {self.container_name} was unavailable, "
                    f"retrying with a new port ({attempt}/{attempts})"
                )

        self.container = container
        await self._post_create(container)
        return container

    async def _post_create(self, container: ObservedContainer) -> None:
        command = self.config.docker.post_create_command
        if not command:
            return
        try:
            await self.runtime.exec(container.id, command)
        except ContainerRuntimeError as e:
            logger.warning(f"Post-create command failed on {container.name}: {e}")

    async def delete(self) -> Optional[str]:
        """Remove the node container; nothing to do when it is already gone."""
        container = await self.get_container()
        if container is None:
            logger.debug(f"Container {self.container_name} already absent")
            return None

        removed = await self.runtime.delete_container(container.id)
        self.container = None
        return removed

    def prepare_bootstrap(self) -> str:
        """Return the bootstrap data secret name, raising while it is not set."""
        secret = self.machine.spec.bootstrap.data_secret_name
        if not secret:
            raise BootstrapSecretNotReady(
                f"Waiting for bootstrap data secret of Machine {self.machine.namespace}/{self.machine.name}"
            )
        return secret

    async def set_machine_address(self) -> List[MachineAddress]:
        """Addresses of the live container, ordered hostname first."""
        container = self.container or await self.get_container()
        if container is None:
            return []

        match self.service_ip_family:
            case IPv6Family():
                ips = [container.ipv6_address]
            case DualStackFamily():
                ips = [container.ipv4_address, container.ipv6_address]
            case _:
                ips = [container.ipv4_address]

        addresses = [MachineAddress(type="Hostname", address=container.name)]
        for ip in filter(None, ips):
            addresses.append(MachineAddress(type="InternalIP", address=ip))
            addresses.append(MachineAddress(type="ExternalIP", address=ip))
        return addresses
