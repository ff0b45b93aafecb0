"""Reusable TUI components."""

from crossplane_explorer.tui.components.dialogs import ConfirmDialog, PickerDialog

__all__ = [
    "ConfirmDialog",
    "PickerDialog",
]
