"""Crossplane Explorer - browse, edit and watch Crossplane and Helm cluster resources."""

from crossplane_explorer.__version__ import __version__

__all__ = ["__version__"]
