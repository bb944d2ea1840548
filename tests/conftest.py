"""Shared fixtures: resource factories and in-memory collaborators."""

from typing import Dict, List, Optional, Tuple

import pytest

from capdock.errors import PortAllocationError
from capdock.models.config import CapdockConfig
from capdock.models.container import ObservedContainer, RunContainerInput
from capdock.models.resources import Cluster, DockerCluster, DockerMachine, Machine
from capdock.providers.base import ContainerRuntime


CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
CONTROL_PLANE_LABEL = "cluster.x-k8s.io/control-plane"


def build_docker_machine(
    name="demo-worker-1",
    namespace="default",
    owner: Optional[str] = "worker-1",
    finalizers=None,
    provider_id=None,
    custom_image=None,
    deleting=False,
    labels=None,
    status=None,
    resource_version="1",
) -> DockerMachine:
    metadata = {
        "name": name,
        "namespace": namespace,
        "resourceVersion": resource_version,
        "labels": labels or {},
        "finalizers": finalizers if finalizers is not None else ["cluster.x-k8s.io"],
        "ownerReferences": [],
    }
    if owner:
        metadata["ownerReferences"].append(
            {"apiVersion": "cluster.x-k8s.io/v1beta1", "kind": "Machine", "name": owner, "uid": "1"}
        )
    if deleting:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"

    spec = {}
    if provider_id:
        spec["providerID"] = provider_id
    if custom_image:
        spec["customImage"] = custom_image

    return DockerMachine.from_dict(
        {"metadata": metadata, "spec": spec, "status": status or {}}
    )


def build_machine(
    name="worker-1",
    namespace="default",
    cluster: Optional[str] = "demo",
    control_plane=False,
    bootstrap: Optional[str] = "worker-1-bootstrap",
    version=None,
) -> Machine:
    labels = {}
    if cluster:
        labels[CLUSTER_NAME_LABEL] = cluster
    if control_plane:
        labels[CONTROL_PLANE_LABEL] = ""
    spec = {"clusterName": cluster or "", "bootstrap": {}}
    if bootstrap:
        spec["bootstrap"]["dataSecretName"] = bootstrap
    if version:
        spec["version"] = version
    return Machine.from_dict(
        {"metadata": {"name": name, "namespace": namespace, "labels": labels}, "spec": spec}
    )


def build_cluster(
    name="demo",
    namespace="default",
    infrastructure_ready=True,
    pods=("10.0.0.0/16",),
    services=("10.96.0.0/12",),
    infrastructure_ref: Optional[str] = "demo",
) -> Cluster:
    spec = {
        "clusterNetwork": {
            "pods": {"cidrBlocks": list(pods)},
            "services": {"cidrBlocks": list(services)},
        }
    }
    if infrastructure_ref:
        spec["infrastructureRef"] = {
            "apiVersion": "infrastructure.cluster.x-k8s.io/v1beta1",
            "kind": "DockerCluster",
            "name": infrastructure_ref,
        }
    return Cluster.from_dict(
        {
            "metadata": {"name": name, "namespace": namespace},
            "spec": spec,
            "status": {"infrastructureReady": infrastructure_ready},
        }
    )


def build_docker_cluster(name="demo", namespace="default") -> DockerCluster:
    return DockerCluster.from_dict({"metadata": {"name": name, "namespace": namespace}})


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime."""

    def __init__(self):
        self.containers: Dict[str, ObservedContainer] = {}
        self.created: List[RunContainerInput] = []
        self.deleted: List[str] = []
        self.executed: List[Tuple[str, List[str]]] = []
        self.port_conflicts = 0
        self.exec_error: Optional[Exception] = None
        self.calls = 0

    async def initialize(self, config, registry):
        pass

    async def list_containers(self, labels):
        self.calls += 1
        return [
            c for c in self.containers.values()
            if all(
                key in c.labels if value is None else c.labels.get(key) == value
                for key, value in labels.items()
            )
        ]

    async def create_container(self, spec):
        self.calls += 1
        if self.port_conflicts:
            self.port_conflicts -= 1
            raise PortAllocationError("start container", spec.port_mappings[0].host_port)
        self.created.append(spec)
        container = ObservedContainer(
            id=f"id-{spec.name}",
            name=spec.name,
            image=spec.image,
            status="running",
            labels=dict(spec.labels),
            ipv4_address="172.18.0.2",
            ipv6_address="fc00:f853:ccd:e793::2",
        )
        self.containers[container.id] = container
        return container

    async def delete_container(self, container_id):
        self.calls += 1
        self.deleted.append(container_id)
        self.containers.pop(container_id, None)
        return container_id

    async def exec(self, container_id, command):
        self.calls += 1
        self.executed.append((container_id, command))
        if self.exec_error:
            raise self.exec_error
        return ""


class FakeResources:
    """In-memory stand-in for KubeResources."""

    def __init__(self):
        self.machines: Dict[Tuple[str, str], Machine] = {}
        self.clusters: Dict[Tuple[str, str], Cluster] = {}
        self.docker_clusters: Dict[Tuple[str, str], DockerCluster] = {}
        self.docker_machines: Dict[Tuple[str, str], DockerMachine] = {}
        self.spec_patches: List[dict] = []
        self.status_patches: List[dict] = []

    def add(self, *objects):
        for obj in objects:
            key = (obj.namespace, obj.name)
            if isinstance(obj, Machine):
                self.machines[key] = obj
            elif isinstance(obj, Cluster):
                self.clusters[key] = obj
            elif isinstance(obj, DockerCluster):
                self.docker_clusters[key] = obj
            elif isinstance(obj, DockerMachine):
                self.docker_machines[key] = obj

    async def get_machine(self, namespace, name):
        return self.machines.get((namespace, name))

    async def get_cluster(self, namespace, name):
        return self.clusters.get((namespace, name))

    async def get_docker_cluster(self, namespace, name):
        return self.docker_clusters.get((namespace, name))

    async def list_docker_machines(self, namespace=None, limit=None):
        return [
            m for m in self.docker_machines.values()
            if namespace is None or m.namespace == namespace
        ]

    async def check_installed(self, namespace=None):
        pass

    def _store(self, machine, update):
        updated = machine.model_copy(update=update, deep=True)
        self.docker_machines[(machine.namespace, machine.name)] = updated
        return updated

    async def patch_docker_machine_spec(self, machine, spec):
        self.spec_patches.append(spec)
        return self._store(machine, {"spec": machine.spec.model_copy(update={"provider_id": spec.get("providerID")})})

    async def patch_docker_machine_status(self, machine, status):
        self.status_patches.append(status)
        return machine


@pytest.fixture
def config():
    """Default configuration."""
    return CapdockConfig()


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def resources():
    """Resources for a ready cluster "demo" with a worker machine."""
    fake = FakeResources()
    fake.add(build_machine(), build_cluster(), build_docker_cluster(), build_docker_machine())
    return fake


@pytest.fixture
def make_docker_machine():
    return build_docker_machine


@pytest.fixture
def make_machine():
    return build_machine


@pytest.fixture
def make_cluster():
    return build_cluster


@pytest.fixture
def make_docker_cluster():
    return build_docker_cluster
