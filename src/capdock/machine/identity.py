"""Deterministic container naming and content hashing."""

import hashlib
import json
from typing import Iterable

from capdock.models.container import RunContainerInput


def container_name(cluster: str, machine: str) -> str:
    """Name of the node container backing a machine.

    Machine names generated by Cluster API usually carry the cluster name as
    a prefix already, those are used unchanged.
    """
    if machine.startswith(cluster):
        return machine
    return f"{cluster}-{machine}"


def spec_hash(spec: RunContainerInput, exclude_labels: Iterable[str] = ()) -> str:
    """Hash a resolved container spec into a stable hex digest.

    Host ports are ephemeral and picked per create attempt, so only the
    container side of port mappings contributes.
    """
    data = spec.model_dump(mode="json")
    excluded = set(exclude_labels)
    data["labels"] = {k: v for k, v in data["labels"].items() if k not in excluded}
    for mapping in data["port_mappings"]:
        mapping["host_port"] = 0

    payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()
