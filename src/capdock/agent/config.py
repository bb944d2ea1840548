"""Configuration management for the agent."""

import asyncio
import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from pydantic import ValidationError

from capdock.models.config import CapdockConfig


logger = logging.getLogger(__name__)


CONFIG_FILE = "config.yaml"
LOG_LEVEL_ENV = "CAPDOCK_LOG_LEVEL"


class ConfigManager:
    """Manages configuration loading and change detection."""

    def __init__(self, config_dir: Path):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir)
        self.yaml = YAML(typ="safe")
        self.config: Optional[CapdockConfig] = None
        self._config_hash: Optional[str] = None

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILE

    async def load(self) -> CapdockConfig:
        """Load the main configuration file, defaults when it is absent."""
        data: Dict[str, Any] = {}
        if self.config_file.exists():
            logger.info(f"Loading configuration from {self.config_file}")
            data = await self._read_yaml(self.config_file) or {}
        else:
            logger.info(f"No configuration at {self.config_file}, using defaults")
            self._config_hash = None

        log_level = os.environ.get(LOG_LEVEL_ENV)
        if log_level:
            data.setdefault("agent", {})["log_level"] = log_level

        try:
            self.config = CapdockConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise

        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        content = await asyncio.to_thread(file_path.read_text)
        # Store hash for change detection
        self._config_hash = hashlib.md5(content.encode()).hexdigest()
        return self.yaml.load(content)

    def has_changed(self) -> bool:
        """Check if the configuration file differs from the loaded one."""
        if not self.config_file.exists():
            return self._config_hash is not None
        content = self.config_file.read_text()
        return hashlib.md5(content.encode()).hexdigest() != self._config_hash
