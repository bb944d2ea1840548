"""Node roles and the container specs they resolve to.

A machine is either a control-plane node or a worker. Both variants carry the
association they were resolved from and are dispatched with ``match`` rather
than through a class hierarchy.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union, TYPE_CHECKING

from capdock.machine.identity import container_name, spec_hash
from capdock.models.container import Mount, PortMapping, RunContainerInput
from capdock.utils.network import reserve_host_port

if TYPE_CHECKING:
    from capdock.machine.association import Association


@dataclass
class Worker:
    association: "Association"


@dataclass
class ControlPlane:
    association: "Association"


Role = Union[Worker, ControlPlane]


def resolve_role(association: "Association") -> Role:
    """Control-plane when either the Machine or the DockerMachine carries the label."""
    label = association.config.labels.control_plane
    if label in association.machine.labels or label in association.docker_machine.labels:
        return ControlPlane(association)
    return Worker(association)


def role_name(role: Role) -> str:
    """Value of the kind role label, "control-plane" or "worker"."""
    match role:
        case ControlPlane():
            return "control-plane"
        case Worker():
            return "worker"
    raise TypeError(f"Unknown role: {role!r}")


def role_label(role: Role) -> Dict[str, str]:
    """The role label key mapped to this role's name."""
    return {role.association.config.labels.role: role_name(role)}


def cluster_label(role: Role) -> Dict[str, str]:
    """The kind cluster label, valued with the owning Cluster's name."""
    return {role.association.config.labels.cluster: role.association.cluster.name}


def filters(role: Role) -> Dict[str, str]:
    """Label filter identifying containers of this machine's cluster."""
    return cluster_label(role)


def base_spec(role: Role) -> RunContainerInput:
    """Name, network and the standard node mounts."""
    association = role.association
    docker_config = association.config.docker
    return RunContainerInput(
        name=container_name(association.cluster.name, association.docker_machine.name),
        network=docker_config.network,
        mounts=[
            # Kernel modules for kube-proxy and CNI plugins
            Mount(source=docker_config.modules_dir, target="/lib/modules", read_only=True),
            Mount(source=docker_config.socket_path, target="/var/run/docker.sock"),
            Mount(target="/var"),
            Mount(target="/tmp"),
            Mount(target="/run"),
        ],
    )


def node_image(role: Role) -> str:
    """Custom image, else the default image tagged with the machine version."""
    association = role.association
    docker_config = association.config.docker

    if association.docker_machine.spec.custom_image:
        return association.docker_machine.spec.custom_image

    version = association.machine.spec.version
    if version:
        if not version.startswith("v"):
            version = f"v{version}"
        return f"{docker_config.default_image}:{version}"

    return f"{docker_config.default_image}:{docker_config.default_version}"


def hash_label(role: Role, spec: RunContainerInput) -> Dict[str, str]:
    """Content hash label for ``spec``.

    The hash never covers its own label, so a spec labelled with its hash
    still hashes to the same value.
    """
    key = role.association.config.labels.content_hash
    return {key: spec_hash(spec, exclude_labels=[key])}


def desired_spec(role: Role, host_port: Optional[int] = None) -> RunContainerInput:
    """Fully resolved spec, labelled with role, cluster and content hash.

    Control-plane nodes publish the API server port on a host port; one is
    reserved here unless given.
    """
    spec = base_spec(role)
    spec.image = node_image(role)
    spec.environment_vars = dict(role.association.config.docker.environment)
    spec.labels = {**role_label(role), **cluster_label(role)}

    match role:
        case ControlPlane(association):
            spec.port_mappings = [
                PortMapping(
                    container_port=association.config.docker.api_server_port,
                    host_port=host_port if host_port is not None else reserve_host_port(),
                    protocol="tcp",
                )
            ]
        case Worker():
            spec.port_mappings = []

    spec.labels.update(hash_label(role, spec))
    return spec
