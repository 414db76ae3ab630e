"""
Configuration management for TaskTree.

Loads settings from config.ini with environment variable overrides. Nesting
settings may also come from a nesting.toml beside config.ini; the ini file
and then the environment take precedence over it.
"""

import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any

from tasktree.config.nesting_config import NestingConfig
from tasktree.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_DIR = Path.home() / ".tasktree"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{CONFIG_DIR / 'tasktree.db'}"


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file, defaults to ~/.tasktree/config.ini
        """
        self.config_path = config_path or self._default_config_path()
        self.nesting_path = self.config_path.parent / "nesting.toml"
        self._config = configparser.ConfigParser()
        self._load()

    def _default_config_path(self) -> Path:
        """Get default config path."""
        return CONFIG_DIR / "config.ini"

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                self._config.read(self.config_path)
                logger.info(f"Loaded configuration from {self.config_path}")
            except configparser.Error as e:
                logger.warning(f"Failed to read config file: {e}. Using defaults.")
        else:
            logger.debug(f"Config file not found at {self.config_path}. Using defaults.")

    def get_database_config(self) -> Dict[str, Any]:
        """
        Get database configuration with environment overrides.

        Environment variables take precedence over config file:
        - TASKTREE_DATABASE_URL

        Returns:
            Dictionary with database configuration
        """
        config = {
            'url': os.getenv('TASKTREE_DATABASE_URL') or
                   self.get('database', 'url', DEFAULT_DATABASE_URL),
        }

        logger.debug(f"Database config: url={config['url']}")

        return config

    def get_nesting_config(self) -> NestingConfig:
        """
        Get nesting configuration with environment overrides.

        Values are layered: nesting.toml, then the [nesting] section of
        config.ini, then environment variables:
        - TASKTREE_MAX_DEPTH
        - TASKTREE_VALIDATE_REORDER

        Returns:
            NestingConfig instance

        Raises:
            pydantic.ValidationError: If the resulting max_depth is outside 1..10
        """
        base = NestingConfig.from_toml_file(self.nesting_path)
        max_depth = base.max_depth
        validate_reorder = base.validate_reorder

        if self.has_section('nesting'):
            max_depth = self.get_int('nesting', 'max_depth', max_depth)
            validate_reorder = self.get_bool('nesting', 'validate_reorder', validate_reorder)

        if os.getenv('TASKTREE_MAX_DEPTH'):
            max_depth = int(os.environ['TASKTREE_MAX_DEPTH'])
        validate_env = os.getenv('TASKTREE_VALIDATE_REORDER', '').lower()
        if validate_env:
            validate_reorder = validate_env == 'true'

        config = NestingConfig(max_depth=max_depth, validate_reorder=validate_reorder)

        logger.debug(f"Nesting config: max_depth={config.max_depth}, "
                     f"validate_reorder={config.validate_reorder}")

        return config

    def get(self, section: str, key: str, fallback: Any = None) -> Any:
        """
        Get configuration value with fallback.

        Args:
            section: Config section name
            key: Config key name
            fallback: Default value if not found

        Returns:
            Configuration value or fallback
        """
        return self._config.get(section, key, fallback=fallback)

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get boolean configuration value."""
        return self._config.getboolean(section, key, fallback=fallback)

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        """Get integer configuration value."""
        return self._config.getint(section, key, fallback=fallback)

    def has_section(self, section: str) -> bool:
        """Check if config section exists."""
        return self._config.has_section(section)
