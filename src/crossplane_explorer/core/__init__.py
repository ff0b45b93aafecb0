"""Core configuration for crossplane_explorer."""
