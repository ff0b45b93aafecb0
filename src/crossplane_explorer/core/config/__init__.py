"""Configuration management with Pydantic validation."""

from crossplane_explorer.core.config.models import (
    CONFIG_FILE,
    ExplorerConfig,
    load_config,
)

__all__ = [
    "CONFIG_FILE",
    "ExplorerConfig",
    "load_config",
]
