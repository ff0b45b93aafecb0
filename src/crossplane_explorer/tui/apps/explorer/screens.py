"""Main explorer screen: resource tree on the left, output on the right."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from rich.text import Text
from textual import on, work
from textual.app import ComposeResult, SuspendNotSupported
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import Footer, Header, Tree

from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError
from crossplane_explorer.integrations.kubernetes.models.identity import (
    ResourceIdentity,
    SessionMode,
)
from crossplane_explorer.integrations.kubernetes.models.tree import (
    NodeRole,
    TreeNode,
)
from crossplane_explorer.services.explorer.field_watch import WatchState
from crossplane_explorer.services.explorer.resource_actions import package_kind
from crossplane_explorer.services.explorer.sessions import ApplyOutcome
from crossplane_explorer.tui.apps.explorer.widgets import OutputPanel
from crossplane_explorer.tui.components import ConfirmDialog, PickerDialog
from crossplane_explorer.tui.theme import status_color
from crossplane_explorer.utils.editor import open_in_editor

if TYPE_CHECKING:
    from textual.notifications import SeverityLevel
    from textual.widgets.tree import TreeNode as WidgetNode

    from crossplane_explorer.integrations.kubernetes.models.helm import HelmRelease
    from crossplane_explorer.services.explorer.context import ExplorerContext
    from crossplane_explorer.tui.apps.explorer.shell import TuiShell

logger = structlog.get_logger()

Source = Literal["crossplane", "helm"]

HELM_ROOT_LABEL = "Helm Releases"
HELM_ROOT_KIND = "helm-root"
RETRY_OUTCOMES = frozenset({ApplyOutcome.INVALID, ApplyOutcome.FAILED, ApplyOutcome.DENIED})
DEBUG_CHOICES = [
    ("Enable debug mode", "enable"),
    ("Disable debug mode", "disable"),
    ("Delete enable-debug DeploymentRuntimeConfig", "cleanup"),
]


@dataclass
class NodeEntry:
    """Data attached to every widget tree node."""

    source: Source
    node: TreeNode

    @property
    def key(self) -> str:
        """Stable key used to restore expansion after a refresh."""
        identity = self.node.identity
        return f"{self.node.kind}:{identity.watch_key if identity else self.node.label}"


def node_text(node: TreeNode) -> Text:
    """Tree label with the derived status appended when not already shown."""
    text = Text(node.label, style="bold" if node.role is NodeRole.CATEGORY else "")
    if node.status and node.status not in node.label:
        text.append(f" ({node.status})", style=status_color(node.status))
    return text


class ExplorerScreen(Screen[None]):
    """Browse Crossplane and Helm resources and act on the selected one.

    Args:
        context: Clients and services shared with the app.
        shell: The app shell; receives the output panel on mount.
    """

    DEFAULT_CSS = """
    ExplorerScreen #explorer-body {
        height: 1fr;
    }

    ExplorerScreen #resource-tree {
        width: 2fr;
        min-width: 30;
    }
    """

    BINDINGS = [
        ("v", "view", "View"),
        ("e", "edit", "Edit"),
        ("w", "watch", "Watch"),
        ("l", "logs", "Logs"),
        ("t", "trace", "Trace"),
        ("p", "pause", "Pause"),
        ("P", "resume", "Resume"),
        ("d", "delete", "Delete"),
        ("k", "kill_pod", "Kill pod"),
        ("R", "restart_pod", "Restart pod"),
        ("D", "debug", "Debug"),
        ("i", "details", "Details"),
        ("b", "rollback", "Rollback"),
        ("u", "upgrade", "Upgrade"),
        ("o", "next_output", "Next output"),
        ("O", "previous_output", "Prev output"),
        ("x", "close_output", "Close output"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, context: ExplorerContext, shell: TuiShell) -> None:
        super().__init__()
        self._ctx = context
        self._shell = shell
        self._loaded: set[int] = set()
        self._expanded: set[tuple[str, ...]] = set()
        self._roots: dict[Source, WidgetNode[NodeEntry]] = {}
        self._unsubscribe: list[Callable[[], None]] = []

    # =========================================================================
    # Layout
    # =========================================================================

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="explorer-body"):
            yield Tree[NodeEntry]("Explorer", id="resource-tree")
            yield OutputPanel(id="output-panel")
        yield Footer()

    def notify_user(self, message: str, severity: SeverityLevel = "information") -> None:
        """Toast ``message``; warnings and errors are also logged."""
        if severity != "information":
            logger.info("explorer_notice", severity=severity, message=message)
        self.app.notify(message, severity=severity)

    def on_mount(self) -> None:
        self._shell.panel = self.query_one(OutputPanel)
        tree = self.query_one("#resource-tree", Tree)
        tree.show_root = False
        tree.root.expand()

        crossplane_root = self._ctx.tree.root()
        helm_root = TreeNode(
            label=HELM_ROOT_LABEL, kind=HELM_ROOT_KIND, role=NodeRole.ROOT, expandable=True
        )
        self._roots["crossplane"] = tree.root.add(
            node_text(crossplane_root), data=NodeEntry("crossplane", crossplane_root)
        )
        self._roots["helm"] = tree.root.add(
            node_text(helm_root), data=NodeEntry("helm", helm_root)
        )
        self._unsubscribe = [
            self._ctx.tree.on_did_change(lambda: self._reset_branch("crossplane")),
            self._ctx.helm_tree.on_did_change(lambda: self._reset_branch("helm")),
        ]
        self._roots["crossplane"].expand()
        tree.focus()

    def on_unmount(self) -> None:
        for remove in self._unsubscribe:
            remove()

    # =========================================================================
    # Tree loading
    # =========================================================================

    def _path(self, widget_node: WidgetNode[NodeEntry]) -> tuple[str, ...]:
        keys: list[str] = []
        current: WidgetNode[NodeEntry] | None = widget_node
        while current is not None and current.data is not None:
            keys.append(current.data.key)
            current = current.parent
        return tuple(reversed(keys))

    @on(Tree.NodeExpanded)
    def handle_expanded(self, event: Tree.NodeExpanded[NodeEntry]) -> None:
        widget_node = event.node
        if widget_node.data is None:
            return
        self._expanded.add(self._path(widget_node))
        if widget_node.id not in self._loaded:
            self._loaded.add(widget_node.id)
            self.load_children(widget_node)

    @on(Tree.NodeCollapsed)
    def handle_collapsed(self, event: Tree.NodeCollapsed[NodeEntry]) -> None:
        if event.node.data is not None:
            self._expanded.discard(self._path(event.node))

    @work(group="tree")
    async def load_children(self, widget_node: WidgetNode[NodeEntry]) -> None:
        entry = widget_node.data
        if entry is None:
            return
        if entry.source == "helm":
            target = None if entry.node.kind == HELM_ROOT_KIND else entry.node
            children = await self._ctx.helm_tree.get_children(target)
        else:
            children = await self._ctx.tree.get_children(entry.node)

        widget_node.remove_children()
        for child in children:
            added = widget_node.add(
                node_text(child),
                data=NodeEntry(entry.source, child),
                allow_expand=child.expandable,
            )
            if child.expandable and self._path(added) in self._expanded:
                added.expand()

    def _reset_branch(self, source: Source) -> None:
        root = self._roots.get(source)
        if root is None:
            return
        # Children are rebuilt; expanded paths are re-expanded as they load.
        root.remove_children()
        if root.is_expanded:
            self.load_children(root)
        else:
            self._loaded.discard(root.id)

    # =========================================================================
    # Selection helpers
    # =========================================================================

    def _selected(self) -> NodeEntry | None:
        widget_node = self.query_one("#resource-tree", Tree).cursor_node
        return widget_node.data if widget_node is not None else None

    def _selected_identity(self) -> ResourceIdentity | None:
        entry = self._selected()
        if entry is None or entry.source != "crossplane" or entry.node.identity is None:
            self.notify_user("Select a Crossplane resource first.", severity="warning")
            return None
        return entry.node.identity

    def _selected_release(self) -> HelmRelease | None:
        entry = self._selected()
        release = entry.node.payload.get("release") if entry is not None else None
        if release is None:
            self.notify_user("Select a Helm release first.", severity="warning")
        return release

    def _selected_pod_source(self) -> ResourceIdentity | None:
        identity = self._selected_identity()
        if identity is None:
            return None
        if identity.kind != "pod" and package_kind(identity.kind) is None:
            self.notify_user(
                "This action can only be performed on pods, providers or functions.",
                severity="warning",
            )
            return None
        return identity

    async def _confirm(self, title: str, body: str, label: str = "Yes") -> bool:
        return bool(await self.app.push_screen_wait(ConfirmDialog(title, body, label)))

    # =========================================================================
    # View / Edit
    # =========================================================================

    def action_view(self) -> None:
        identity = self._selected_identity()
        if identity is not None:
            self.run_session(identity.with_mode(SessionMode.VIEW))

    def action_edit(self) -> None:
        identity = self._selected_identity()
        if identity is not None:
            self.run_session(identity.with_mode(SessionMode.EDIT))

    @work(group="session")
    async def run_session(self, identity: ResourceIdentity) -> None:
        """Open a session document in the editor and apply saves."""
        sessions = self._ctx.sessions
        path = await sessions.request_open(identity)
        if path is None:
            return
        try:
            while True:
                before = path.read_text()
                if not self._open_editor(path):
                    break
                after = path.read_text()
                if after == before:
                    break
                outcome = await sessions.on_document_saved(path, after)
                if outcome not in RETRY_OUTCOMES:
                    break
                if not await self._confirm(
                    "Apply failed", "Re-open the editor to fix the document?", "Re-open"
                ):
                    break
        finally:
            self._shell.close_document(path)
            sessions.on_document_closed(path)

    def _open_editor(self, path: Path) -> bool:
        try:
            with self.app.suspend():
                open_in_editor(path, self._ctx.config.default_editor)
        except SuspendNotSupported:
            self.notify_user("This terminal cannot hand control to an editor.", severity="error")
            return False
        except OSError as e:
            logger.warning("editor_failed", path=str(path), error=str(e))
            self.notify_user(f"Failed to start editor: {e}", severity="error")
            return False
        return True

    # =========================================================================
    # Watch / Logs / Trace
    # =========================================================================

    @work(group="watch")
    async def action_watch(self) -> None:
        identity = self._selected_identity()
        if identity is None:
            return
        field_watch = self._ctx.field_watch
        if field_watch.state(identity) is not WatchState.STOPPED:
            field_watch.stop(identity)
            return
        try:
            await field_watch.start(identity)
        except WatchResolutionError as e:
            self.notify_user(e.message, severity="error")

    @work(group="logs")
    async def action_logs(self) -> None:
        identity = self._selected_pod_source()
        if identity is None:
            return
        pod = await self._ctx.actions.resolve_pod(identity)
        if pod is None:
            return
        target = ResourceIdentity("pod", pod.name, pod.namespace)
        if self._ctx.log_tail.is_running(target):
            self._ctx.log_tail.stop(target)
        else:
            await self._ctx.log_tail.start(target)

    @work(group="action")
    async def action_trace(self) -> None:
        identity = self._selected_identity()
        if identity is not None:
            await self._ctx.actions.trace(identity)

    # =========================================================================
    # Mutations
    # =========================================================================

    @work(group="action")
    async def action_pause(self) -> None:
        identity = self._selected_identity()
        if identity is not None:
            await self._ctx.actions.set_paused(identity, True)

    @work(group="action")
    async def action_resume(self) -> None:
        identity = self._selected_identity()
        if identity is not None:
            await self._ctx.actions.set_paused(identity, False)

    @work(group="action")
    async def action_delete(self) -> None:
        entry = self._selected()
        if entry is not None and entry.source == "helm":
            release = self._selected_release()
            if release is not None and await self._confirm(
                "Uninstall release",
                f"Uninstall Helm release {release.name} from {release.namespace}?",
                "Uninstall",
            ):
                await self._ctx.helm_releases.uninstall(release)
            return
        identity = self._selected_identity()
        if identity is not None and await self._confirm(
            "Delete resource",
            f"Are you sure you want to delete {identity.display}? This action cannot be undone.",
            "Delete",
        ):
            await self._ctx.actions.delete_resource(identity)

    @work(group="action")
    async def action_kill_pod(self) -> None:
        identity = self._selected_pod_source()
        if identity is not None and await self._confirm(
            "Kill pod", f"Force-delete the pod for {identity.name}?", "Kill"
        ):
            await self._ctx.actions.kill_pod(identity)

    @work(group="action")
    async def action_restart_pod(self) -> None:
        identity = self._selected_pod_source()
        if identity is not None:
            await self._ctx.actions.restart_pod(identity)

    @work(group="action")
    async def action_debug(self) -> None:
        entry = self._selected()
        identity = entry.node.identity if entry is not None else None
        choices = DEBUG_CHOICES
        if identity is None or package_kind(identity.kind) is None:
            choices = DEBUG_CHOICES[2:]
        choice = await self.app.push_screen_wait(PickerDialog("Debug mode", choices))
        if choice == "cleanup":
            await self._ctx.actions.delete_debug_runtime_config()
        elif choice is not None and identity is not None:
            await self._ctx.actions.set_debug_mode(identity, choice == "enable")

    # =========================================================================
    # Details / Helm
    # =========================================================================

    @work(group="action")
    async def action_details(self) -> None:
        entry = self._selected()
        if entry is not None and entry.source == "helm":
            release = self._selected_release()
            if release is not None:
                await self._release_details(release)
            return
        identity = self._selected_identity()
        if identity is None:
            return
        if identity.kind != "pod":
            self.notify_user("Details are available for pods and Helm releases.", severity="warning")
            return
        self.run_session(identity.with_mode(SessionMode.VIEW))

    async def _release_details(self, release: HelmRelease) -> None:
        details = await self._ctx.helm_releases.details(release)
        if details is None:
            return
        sink = self._shell.create_sink(f"Helm: {release.name}")
        sink.show()
        sink.append_line(f"# {release.name} ({release.namespace}) revision {release.revision}")
        sink.append_line(f"# Chart: {release.chart}  Status: {release.status}")
        for title, body in (
            ("Values", details.values),
            ("Notes", details.notes),
            ("Manifest", details.manifest),
        ):
            sink.append_line("")
            sink.append_line(f"# {title}")
            sink.append_line(body.rstrip())
        sink.append_line("")
        sink.append_line("# History")
        for entry in details.history:
            sink.append_line(
                f"{entry.revision:>4}  {entry.status:<12} {entry.chart:<30} {entry.description}"
            )
        sink.dispose()

    @work(group="action")
    async def action_rollback(self) -> None:
        release = self._selected_release()
        if release is None:
            return
        candidates = await self._ctx.helm_releases.rollback_candidates(release)
        if not candidates:
            return
        choice = await self.app.push_screen_wait(
            PickerDialog(
                f"Rollback {release.name}",
                [
                    (f"Revision {c.revision}  {c.status}  {c.chart}  {c.updated}", str(c.revision))
                    for c in candidates
                ],
            )
        )
        if choice is None:
            return
        if await self._confirm(
            "Rollback",
            f"Roll back {release.name} from revision {release.revision} to {choice}?",
            "Rollback",
        ):
            await self._ctx.helm_releases.rollback(release, int(choice))

    @work(group="action")
    async def action_upgrade(self) -> None:
        release = self._selected_release()
        if release is None:
            return
        versions = await self._ctx.helm_releases.available_versions(release)
        if not versions:
            return
        choice = await self.app.push_screen_wait(
            PickerDialog(
                f"Upgrade {release.name}",
                [
                    (f"{v} (installed)" if v == release.chart_version else v, v)
                    for v in versions
                ],
            )
        )
        if choice is None:
            return
        if await self._confirm(
            "Upgrade", f"Upgrade {release.name} to version {choice}?", "Upgrade"
        ):
            await self._ctx.helm_releases.upgrade(release, choice)

    # =========================================================================
    # Output / Refresh
    # =========================================================================

    def action_next_output(self) -> None:
        self.query_one(OutputPanel).cycle(1)

    def action_previous_output(self) -> None:
        self.query_one(OutputPanel).cycle(-1)

    def action_close_output(self) -> None:
        self.query_one(OutputPanel).close_current()

    def action_refresh(self) -> None:
        self._ctx.tree.refresh()
        self._ctx.helm_tree.refresh()
        self.notify_user("Refreshing...")
