"""Configuration module for tasktree."""

from tasktree.config.nesting_config import DEFAULT_MAX_DEPTH, NestingConfig
from tasktree.config.settings import DEFAULT_DATABASE_URL, Config

__all__ = ["Config", "NestingConfig", "DEFAULT_DATABASE_URL", "DEFAULT_MAX_DEPTH"]
