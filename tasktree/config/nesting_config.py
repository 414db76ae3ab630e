"""Nesting configuration model for tasktree.

Provides the pydantic model holding the maximum task depth and the
reorder validation switch, with TOML file loading support.
"""

from pathlib import Path
import sys
import logging

# Use tomllib from stdlib in Python 3.11+, fallback to tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 4


class NestingConfig(BaseModel):
    """Root nesting configuration.

    Attributes:
        max_depth: Deepest allowed task depth, where top-level tasks are depth 1.
            Adjustable at runtime; lowering it does not touch existing tasks.
        validate_reorder: Whether reorder requests must name exactly the
            current members of the sibling group.
    """

    model_config = ConfigDict(validate_assignment=True)

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, le=10)
    validate_reorder: bool = Field(default=True)

    @classmethod
    def from_toml_file(cls, path: Path) -> 'NestingConfig':
        """Load configuration from TOML file with fallback to defaults.

        Args:
            path: Path to the TOML configuration file, read from its
                  [nesting] table.

        Returns:
            NestingConfig instance loaded from file or with default values.
        """
        if not path.exists():
            logger.info(f"Config not found at {path}. Using defaults.")
            return cls()

        with open(path, 'rb') as f:
            data = tomllib.load(f)

        return cls(**data.get('nesting', {}))
