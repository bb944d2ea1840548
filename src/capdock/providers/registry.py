"""Provider registry for managing external collaborators."""

import logging
from typing import Dict, Optional, Type

from capdock.providers.base import BaseProvider, ContainerRuntime
from capdock.providers.docker import DockerRuntime
from capdock.providers.kube import KubeResources


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for managing providers."""

    def __init__(self):
        """Initialize provider registry."""
        self._providers: Dict[str, BaseProvider] = {}
        self._provider_classes: Dict[str, Type[BaseProvider]] = {
            "runtime": DockerRuntime,
            "resources": KubeResources,
        }

    async def initialize(self, config):
        """Initialize all providers with two-pass injection."""
        # Phase 1: Instantiate all providers
        for name, provider_class in self._provider_classes.items():
            try:
                self._providers[name] = provider_class()
            except Exception as e:
                logger.error(f"Failed to instantiate provider {name}: {e}")
                raise

        # Phase 2: Initialize and inject registry
        for name, provider in self._providers.items():
            try:
                await provider.initialize(config, self)
                logger.debug(f"Initialized provider: {name}")
            except Exception as e:
                logger.error(f"Failed to initialize provider {name}: {e}")
                raise

    async def close(self):
        """Close all providers."""
        for name, provider in self._providers.items():
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"Failed to close provider {name}: {e}")

    def reconfigure(self, config):
        """Hand a reloaded configuration to every provider."""
        for name, provider in self._providers.items():
            provider.reconfigure(config)
            logger.debug(f"Reconfigured provider: {name}")

    @property
    def runtime(self) -> Optional[ContainerRuntime]:
        """The container runtime the associations drive."""
        return self._providers.get("runtime")

    @property
    def resources(self) -> Optional[KubeResources]:
        """Access to Cluster API resources."""
        return self._providers.get("resources")

