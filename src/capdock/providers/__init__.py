"""External collaborators: container runtime and Kubernetes resources."""

from capdock.providers.base import BaseProvider, ContainerRuntime
from capdock.providers.registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "ContainerRuntime",
    "ProviderRegistry",
]
