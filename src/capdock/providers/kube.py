"""Kubernetes access for Cluster API resources."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, TYPE_CHECKING

from kubernetes import client, config as kube_config
from kubernetes.client.rest import ApiException

from capdock.errors import ResourceApiError
from capdock.models.resources import (
    API_VERSION,
    CLUSTER_API_GROUP,
    INFRASTRUCTURE_GROUP,
    Cluster,
    DockerCluster,
    DockerMachine,
    Machine,
    Resource,
)
from capdock.providers.base import BaseProvider

if TYPE_CHECKING:
    from capdock.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)

# (group, plural) per resource model
RESOURCES = {
    Machine: (CLUSTER_API_GROUP, "machines"),
    Cluster: (CLUSTER_API_GROUP, "clusters"),
    DockerCluster: (INFRASTRUCTURE_GROUP, "dockerclusters"),
    DockerMachine: (INFRASTRUCTURE_GROUP, "dockermachines"),
}


def load_kube_config():
    """Load in-cluster configuration, falling back to kubeconfig."""
    try:
        kube_config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except kube_config.ConfigException:
        try:
            kube_config.load_kube_config()
            logger.info("Loaded kubeconfig")
        except kube_config.ConfigException as e:
            raise ResourceApiError("load Kubernetes configuration", str(e)) from e


class KubeResources(BaseProvider):
    """Reads and patches Cluster API custom resources."""

    def __init__(self, api: Optional[client.CustomObjectsApi] = None):
        """Initialize resource access."""
        self.api = api

    async def initialize(self, config, registry: "ProviderRegistry") -> None:
        """Initialize the Kubernetes API client."""
        if self.api is None:
            await asyncio.to_thread(load_kube_config)
            self.api = client.CustomObjectsApi()

    async def _get(self, model: Type[R], namespace: str, name: str) -> Optional[R]:
        group, plural = RESOURCES[model]
        try:
            data = await asyncio.to_thread(
                self.api.get_namespaced_custom_object,
                group, API_VERSION, namespace, plural, name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise ResourceApiError(f"get {plural} {namespace}/{name}", e.reason or str(e)) from e
        return model.from_dict(data)

    async def get_machine(self, namespace: str, name: str) -> Optional[Machine]:
        """Get a Cluster API Machine, None when it does not exist."""
        return await self._get(Machine, namespace, name)

    async def get_cluster(self, namespace: str, name: str) -> Optional[Cluster]:
        """Get a Cluster, None when it does not exist."""
        return await self._get(Cluster, namespace, name)

    async def get_docker_cluster(self, namespace: str, name: str) -> Optional[DockerCluster]:
        """Get a DockerCluster, None when it does not exist."""
        return await self._get(DockerCluster, namespace, name)

    async def list_docker_machines(
        self, namespace: Optional[str] = None, limit: Optional[int] = None
    ) -> List[DockerMachine]:
        """List DockerMachines in one namespace, or in all of them when none is given."""
        group, plural = RESOURCES[DockerMachine]
        kwargs: Dict[str, Any] = {}
        if limit:
            kwargs["limit"] = limit
        try:
            if namespace:
                data = await asyncio.to_thread(
                    self.api.list_namespaced_custom_object,
                    group, API_VERSION, namespace, plural, **kwargs,
                )
            else:
                data = await asyncio.to_thread(
                    self.api.list_cluster_custom_object,
                    group, API_VERSION, plural, **kwargs,
                )
        except ApiException as e:
            raise ResourceApiError(f"list {plural}", e.reason or str(e)) from e

        return [DockerMachine.from_dict(item) for item in data.get("items", [])]

    async def check_installed(self, namespace: Optional[str] = None) -> None:
        """Raise ResourceApiError when DockerMachines cannot be queried."""
        await self.list_docker_machines(namespace, limit=1)

    async def _patch(self, machine: DockerMachine, body: Dict[str, Any], status: bool = False):
        group, plural = RESOURCES[DockerMachine]
        method = (
            self.api.patch_namespaced_custom_object_status
            if status
            else self.api.patch_namespaced_custom_object
        )
        try:
            data = await asyncio.to_thread(
                method, group, API_VERSION, machine.namespace, plural, machine.name, body,
                _content_type="application/merge-patch+json",
            )
        except ApiException as e:
            what = "status" if status else "object"
            raise ResourceApiError(
                f"patch {plural} {what} {machine.namespace}/{machine.name}", e.reason or str(e)
            ) from e
        return DockerMachine.from_dict(data)

    async def patch_docker_machine_spec(self, machine: DockerMachine, spec: Dict[str, Any]) -> DockerMachine:
        """Merge ``spec`` into the DockerMachine spec."""
        return await self._patch(machine, {"spec": spec})

    async def patch_docker_machine_status(self, machine: DockerMachine, status: Dict[str, Any]) -> DockerMachine:
        """Merge ``status`` into the DockerMachine status subresource."""
        return await self._patch(machine, {"status": status}, status=True)
