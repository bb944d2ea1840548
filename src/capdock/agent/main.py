"""Main agent implementation."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import kopf
from watchfiles import awatch

from capdock.agent import handlers
from capdock.agent.config import ConfigManager
from capdock.agent.engine import Reconciler
from capdock.errors import ResourceApiError
from capdock.models.config import CapdockConfig
from capdock.providers import ProviderRegistry
from capdock.utils.logging import setup_logging


logger = logging.getLogger(__name__)


# Read once when the operator starts
RESTART_ONLY_SETTINGS = ("finalizer", "namespace", "worker_limit")


class CapdockAgent:
    """Runs the DockerMachine operator and keeps its configuration current."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the agent."""
        self.config_dir = config_dir or Path("./configs")
        self.config_manager = ConfigManager(self.config_dir)
        self.registry: Optional[ProviderRegistry] = None
        self.reconciler: Optional[Reconciler] = None
        self.shutdown_event = asyncio.Event()

    @property
    def config(self) -> Optional[CapdockConfig]:
        return self.config_manager.config

    async def initialize(self, settings: kopf.OperatorSettings):
        """Connect providers, check the CRD and tune kopf.

        Runs from the startup handler, before kopf watches any resource.
        """
        config = self.config
        self.registry = ProviderRegistry()
        await self.registry.initialize(config)

        try:
            await self.registry.resources.check_installed(config.agent.namespace)
        except ResourceApiError as e:
            logger.error(f"DockerMachine is not queryable; {e}. Is the CRD installed?")
            raise kopf.PermanentError(f"DockerMachine is not queryable: {e}") from e

        self.reconciler = Reconciler(
            config=config,
            resources=self.registry.resources,
            runtime=self.registry.runtime,
        )

        settings.persistence.finalizer = config.agent.finalizer
        settings.batching.worker_limit = config.agent.worker_limit
        # Wait states would otherwise flood the API server with events
        settings.posting.enabled = False

        logger.info("Agent initialized successfully")

    def apply_config(self, config: CapdockConfig):
        """Hand a reloaded configuration to the reconciler and providers."""
        if self.reconciler is not None:
            previous = self.reconciler.config.agent
            for name in RESTART_ONLY_SETTINGS:
                if getattr(previous, name) != getattr(config.agent, name):
                    logger.warning(f"agent.{name} changed, it takes effect after a restart")
            self.reconciler.config = config

        if self.registry is not None:
            self.registry.reconfigure(config)

    async def run(self):
        """Run the operator until it is stopped."""
        config = await self.config_manager.load()
        setup_logging(config.agent.log_level)
        namespace = config.agent.namespace

        watcher = asyncio.create_task(self._config_watch_loop())
        try:
            logger.info(f"Starting operator, watching {namespace or 'all namespaces'}")
            await kopf.operator(
                registry=handlers.registry,
                memo=kopf.Memo(agent=self),
                stop_flag=self.shutdown_event,
                standalone=True,
                clusterwide=namespace is None,
                namespaces=[namespace] if namespace else [],
            )
        finally:
            self.shutdown_event.set()
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)

    async def _config_watch_loop(self):
        """Watch for configuration changes."""
        if not self.config_dir.exists():
            logger.debug(f"Config directory {self.config_dir} does not exist, not watching")
            return

        logger.info(f"Starting config watcher on {self.config_dir}")
        try:
            async for _ in awatch(self.config_dir, stop_event=self.shutdown_event):
                await self.reload()
        except Exception as e:
            # Handle cancellation gracefully
            if not self.shutdown_event.is_set():
                logger.error(f"Config watch error: {e}", exc_info=True)

    async def reload(self):
        """Reload the configuration file if it changed."""
        if not self.config_manager.has_changed():
            return
        logger.info("Configuration changed, reloading")
        try:
            config = await self.config_manager.load()
        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}")
            return
        setup_logging(config.agent.log_level)
        self.apply_config(config)

    async def close(self):
        """Release provider connections."""
        logger.info("Cleaning up agent resources")
        if self.registry:
            await self.registry.close()
        logger.info("Agent cleanup completed")


async def run_agent(config_dir: Optional[Path] = None):
    """Run the agent."""
    # Allow config dir override from environment
    if config_dir is None and os.environ.get("CAPDOCK_CONFIG_DIR"):
        config_dir = Path(os.environ["CAPDOCK_CONFIG_DIR"])

    agent = CapdockAgent(config_dir=config_dir)
    await agent.run()
