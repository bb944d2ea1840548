"""Base provider interfaces."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from capdock.models.container import ObservedContainer, RunContainerInput


class BaseProvider(ABC):
    """Base provider interface that all providers must implement."""

    @abstractmethod
    async def initialize(self, config: Any, registry: Any) -> None:
        """Initialize the provider with configuration."""
        pass

    async def close(self) -> None:
        """Release connections held by the provider."""
        pass

    def reconfigure(self, config: Any) -> None:
        """Pick up a reloaded configuration without reconnecting."""
        pass


class ContainerRuntime(BaseProvider):
    """Operations the reconciler needs from a container runtime.

    Implementations wrap transport failures into capdock.errors and return
    empty results for lookups that simply match nothing.
    """

    @abstractmethod
    async def list_containers(self, labels: Dict[str, Optional[str]]) -> List[ObservedContainer]:
        """List containers, running or not, matching all label filters.

        A None value matches any container carrying the label key.
        """
        pass

    @abstractmethod
    async def create_container(self, spec: RunContainerInput) -> ObservedContainer:
        """Create and start a container."""
        pass

    @abstractmethod
    async def delete_container(self, container_id: str) -> str:
        """Force remove a container together with its volumes."""
        pass

    @abstractmethod
    async def exec(self, container_id: str, command: List[str]) -> str:
        """Run a privileged command in the container and return its output."""
        pass
