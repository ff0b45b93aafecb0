"""Version information for crossplane_explorer."""

__version__ = "0.1.0"
