"""Shared utilities."""

from crossplane_explorer.utils.editor import get_editor, open_in_editor

__all__ = ["get_editor", "open_in_editor"]
