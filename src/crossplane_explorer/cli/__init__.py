"""Command-line interface for crossplane_explorer."""
