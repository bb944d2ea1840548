"""Machine association, node roles and container identity."""

from capdock.machine.association import Association
from capdock.machine.identity import container_name, spec_hash
from capdock.machine.role import ControlPlane, Worker, resolve_role

__all__ = [
    "Association",
    "ControlPlane",
    "Worker",
    "container_name",
    "resolve_role",
    "spec_hash",
]
