"""Cluster API resource models.

Only the fields the controller reads or writes are modelled, everything else
in the documents returned by the API server is ignored.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from capdock.models.container import MachineAddress


CLUSTER_API_GROUP = "cluster.x-k8s.io"
INFRASTRUCTURE_GROUP = "infrastructure.cluster.x-k8s.io"
API_VERSION = "v1beta1"


class ResourceModel(BaseModel):
    """Base for API documents: camelCase aliases, unknown fields ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OwnerReference(ResourceModel):
    api_version: str = Field(default="", alias="apiVersion")
    kind: str
    name: str
    uid: str = ""


class ObjectReference(ResourceModel):
    api_version: Optional[str] = Field(default=None, alias="apiVersion")
    kind: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None


class ObjectMeta(ResourceModel):
    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: str = Field(default="", alias="resourceVersion")
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    owner_references: List[OwnerReference] = Field(default_factory=list, alias="ownerReferences")
    deletion_timestamp: Optional[datetime] = Field(default=None, alias="deletionTimestamp")


class Resource(ResourceModel):
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.labels

    @property
    def being_deleted(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


# Cluster


class NetworkRanges(ResourceModel):
    cidr_blocks: List[str] = Field(default_factory=list, alias="cidrBlocks")


class ClusterNetwork(ResourceModel):
    pods: Optional[NetworkRanges] = None
    services: Optional[NetworkRanges] = None


class ClusterSpec(ResourceModel):
    cluster_network: Optional[ClusterNetwork] = Field(default=None, alias="clusterNetwork")
    infrastructure_ref: Optional[ObjectReference] = Field(default=None, alias="infrastructureRef")


class ClusterStatus(ResourceModel):
    infrastructure_ready: bool = Field(default=False, alias="infrastructureReady")
    control_plane_ready: bool = Field(default=False, alias="controlPlaneReady")


class Cluster(Resource):
    spec: ClusterSpec = Field(default_factory=ClusterSpec)
    status: ClusterStatus = Field(default_factory=ClusterStatus)

    @property
    def pod_cidr_blocks(self) -> List[str]:
        network = self.spec.cluster_network
        if network and network.pods:
            return list(network.pods.cidr_blocks)
        return []

    @property
    def service_cidr_blocks(self) -> List[str]:
        network = self.spec.cluster_network
        if network and network.services:
            return list(network.services.cidr_blocks)
        return []


# Machine


class Bootstrap(ResourceModel):
    data_secret_name: Optional[str] = Field(default=None, alias="dataSecretName")


class MachineSpec(ResourceModel):
    cluster_name: str = Field(default="", alias="clusterName")
    bootstrap: Bootstrap = Field(default_factory=Bootstrap)
    version: Optional[str] = None
    infrastructure_ref: Optional[ObjectReference] = Field(default=None, alias="infrastructureRef")


class Machine(Resource):
    spec: MachineSpec = Field(default_factory=MachineSpec)


# DockerCluster


class APIEndpoint(ResourceModel):
    host: str = ""
    port: int = 6443


class DockerLoadBalancer(ResourceModel):
    image_repository: Optional[str] = Field(default=None, alias="imageRepository")
    image_tag: Optional[str] = Field(default=None, alias="imageTag")


class FailureDomain(ResourceModel):
    control_plane: Optional[bool] = Field(default=None, alias="controlPlane")
    attributes: Dict[str, str] = Field(default_factory=dict)


class DockerClusterSpec(ResourceModel):
    control_plane_endpoint: Optional[APIEndpoint] = Field(default=None, alias="controlPlaneEndpoint")
    load_balancer: Optional[DockerLoadBalancer] = Field(default=None, alias="loadBalancer")
    failure_domains: Dict[str, FailureDomain] = Field(default_factory=dict, alias="failureDomains")


class DockerClusterStatus(ResourceModel):
    ready: bool = False


class DockerCluster(Resource):
    spec: DockerClusterSpec = Field(default_factory=DockerClusterSpec)
    status: DockerClusterStatus = Field(default_factory=DockerClusterStatus)


# DockerMachine


class DockerMachineSpec(ResourceModel):
    provider_id: Optional[str] = Field(default=None, alias="providerID")
    custom_image: Optional[str] = Field(default=None, alias="customImage")


class DockerMachineStatus(ResourceModel):
    ready: bool = False
    load_balancer_configured: bool = Field(default=False, alias="loadBalancerConfigured")
    addresses: List[MachineAddress] = Field(default_factory=list)


class DockerMachine(Resource):
    spec: DockerMachineSpec = Field(default_factory=DockerMachineSpec)
    status: DockerMachineStatus = Field(default_factory=DockerMachineStatus)

    def owner_machine_name(self) -> Optional[str]:
        """Name of the owning Cluster API Machine, if the owner reference is set."""
        for ref in self.metadata.owner_references:
            if ref.kind == "Machine":
                return ref.name
        return None
