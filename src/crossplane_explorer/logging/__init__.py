"""Logging configuration for crossplane_explorer."""

from crossplane_explorer.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
