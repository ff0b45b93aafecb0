"""Explorer service module.

Tree models, view/edit sessions, live field watches, log tails and
one-shot resource actions. Services report through an ExplorerShell
supplied by the CLI or TUI.
"""

from crossplane_explorer.services.explorer.context import ExplorerContext
from crossplane_explorer.services.explorer.field_watch import (
    FieldWatchManager,
    clean_object,
    diff_objects,
    render_diff,
)
from crossplane_explorer.services.explorer.helm_tree import HelmReleaseService, HelmTreeModel
from crossplane_explorer.services.explorer.log_tail import LogTailManager
from crossplane_explorer.services.explorer.resource_actions import ResourceActions
from crossplane_explorer.services.explorer.sessions import ApplyOutcome, EditSessionManager
from crossplane_explorer.services.explorer.shell import ExplorerShell, OutputSink, TempFileStore
from crossplane_explorer.services.explorer.tree_model import CrossplaneTreeModel

__all__ = [
    "ApplyOutcome",
    "CrossplaneTreeModel",
    "EditSessionManager",
    "ExplorerContext",
    "ExplorerShell",
    "FieldWatchManager",
    "HelmReleaseService",
    "HelmTreeModel",
    "LogTailManager",
    "OutputSink",
    "ResourceActions",
    "TempFileStore",
    "clean_object",
    "diff_objects",
    "render_diff",
]
