"""Helm release tree and release lifecycle operations."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from crossplane_explorer.integrations.kubernetes.exceptions import ExplorerError
from crossplane_explorer.integrations.kubernetes.models.helm import (
    HelmRelease,
    HelmReleaseHistory,
)
from crossplane_explorer.integrations.kubernetes.models.tree import (
    ContextTag,
    NodeRole,
    TreeNode,
)
from crossplane_explorer.services.explorer.base import ExplorerService

if TYPE_CHECKING:
    from crossplane_explorer.core.config import ExplorerConfig
    from crossplane_explorer.integrations.kubernetes.helm_client import HelmClient
    from crossplane_explorer.services.explorer.shell import ExplorerShell

LOADING_LABEL = "Loading Helm releases..."
EMPTY_LABEL = "No Helm releases found"
NO_NOTES = "No notes available"


def _placeholder(label: str) -> TreeNode:
    return TreeNode(label=label, kind="placeholder", role=NodeRole.PLACEHOLDER)


def release_tooltip(release: HelmRelease) -> str:
    return "\n".join([
        f"Name: {release.name}",
        f"Namespace: {release.namespace}",
        f"Status: {release.status}",
        f"Revision: {release.revision}",
        f"Chart: {release.chart}",
        f"App Version: {release.app_version or 'N/A'}",
        f"Updated: {release.updated}",
    ])


class HelmTreeModel(ExplorerService):
    """Namespaces and their releases, loaded once per refresh."""

    _entity_name = "helm_tree"

    def __init__(self, helm: HelmClient, shell: ExplorerShell) -> None:
        super().__init__(shell)
        self._helm = helm
        self._releases: list[HelmRelease] | None = None
        self._loading = False
        self._inflight: asyncio.Future[None] | None = None
        self._generation = 0
        self._listeners: list[Callable[[], None]] = []

    def on_did_change(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a re-render listener; returns its remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _fire_changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    @property
    def releases(self) -> list[HelmRelease]:
        """Releases from the last load (empty before the first)."""
        return list(self._releases or [])

    def refresh(self) -> None:
        """Drop the cached releases and signal a re-render.

        A load still in flight is discarded when it completes.
        """
        self._releases = None
        self._loading = False
        self._inflight = None
        self._generation += 1
        self._fire_changed()

    async def _load(self) -> None:
        # Concurrent callers share one fetch; a refresh mid-fetch starts another.
        while self._releases is None:
            if self._inflight is None:
                self._loading = True
                self._inflight = asyncio.ensure_future(self._fetch(self._generation))
            await asyncio.shield(self._inflight)

    async def _fetch(self, generation: int) -> None:
        try:
            releases = await self._helm.list_releases(all_namespaces=True)
        except ExplorerError as e:
            releases = []
            if generation == self._generation:
                self._report_failure("Failed to load Helm releases", e)
        finally:
            if generation == self._generation:
                self._loading = False
                self._inflight = None

        if generation != self._generation:
            self._log.debug("helm_releases_discarded", generation=generation)
            return
        self._releases = releases
        self._log.debug("helm_releases_loaded", count=len(releases))
        self._fire_changed()

    async def get_children(self, node: TreeNode | None = None) -> list[TreeNode]:
        """Return namespace nodes (root) or the releases of a namespace node."""
        if node is None:
            if self._loading:
                return [_placeholder(LOADING_LABEL)]
            if self._releases is None:
                await self._load()
            if not self._releases:
                return [_placeholder(EMPTY_LABEL)]

            by_namespace: dict[str, list[HelmRelease]] = {}
            for release in self._releases:
                by_namespace.setdefault(release.namespace, []).append(release)
            return [
                TreeNode(
                    label=f"{namespace} ({len(releases)})",
                    kind="helm-namespace",
                    role=NodeRole.CATEGORY,
                    expandable=True,
                    context_tags=frozenset({ContextTag.HELM_NAMESPACE}),
                    icon="folder",
                    tooltip=f"Namespace: {namespace}\nReleases: {len(releases)}",
                    payload={"namespace": namespace},
                )
                for namespace, releases in by_namespace.items()
            ]

        if node.has_tag(ContextTag.HELM_NAMESPACE):
            namespace = node.payload.get("namespace", "")
            return [
                TreeNode(
                    label=release.name,
                    kind="helm-release",
                    role=NodeRole.RESOURCE,
                    context_tags=frozenset({
                        ContextTag.HELM_RELEASE_FIRST
                        if release.revision == 1
                        else ContextTag.HELM_RELEASE
                    }),
                    status=release.status,
                    icon=release.icon,
                    tooltip=release_tooltip(release),
                    payload={"release": release},
                )
                for release in self._releases or []
                if release.namespace == namespace
            ]
        return []

    async def find_release(self, name: str, namespace: str | None = None) -> HelmRelease | None:
        """Look up a release by name (and namespace when given), loading if needed."""
        if self._releases is None:
            await self._load()
        for release in self._releases or []:
            if release.name == name and namespace in (None, release.namespace):
                return release
        return None


@dataclass
class ReleaseDetails:
    """Everything shown for one release."""

    release: HelmRelease
    values: str = ""
    notes: str = NO_NOTES
    manifest: str = ""
    history: list[HelmReleaseHistory] = field(default_factory=list)


class HelmReleaseService(ExplorerService):
    """Release lifecycle operations; every mutation refreshes the tree.

    Args:
        helm: Helm CLI wrapper.
        tree: Release tree refreshed after mutations.
        shell: Host shell.
        config: Provides the chart repository mapping.
    """

    _entity_name = "helm_release"

    def __init__(
        self,
        helm: HelmClient,
        tree: HelmTreeModel,
        shell: ExplorerShell,
        config: ExplorerConfig,
    ) -> None:
        super().__init__(shell)
        self._helm = helm
        self._tree = tree
        self._config = config

    def chart_ref(self, release: HelmRelease) -> str:
        """``<repo>/<chart>`` used for version search and upgrade."""
        return f"{self._config.chart_repo(release.chart_name)}/{release.chart_name}"

    async def details(self, release: HelmRelease) -> ReleaseDetails | None:
        """Fetch values, notes, manifest and history of ``release``."""
        ns = release.namespace
        try:
            values, manifest, history = await asyncio.gather(
                self._helm.get_values(release.name, namespace=ns),
                self._helm.get_manifest(release.name, namespace=ns),
                self._helm.history(release.name, namespace=ns),
            )
        except ExplorerError as e:
            self._report_failure("Failed to load release details", e)
            return None
        try:
            notes = await self._helm.get_notes(release.name, namespace=ns) or NO_NOTES
        except ExplorerError as e:
            self._log.debug("helm_notes_unavailable", release=release.name, error=str(e))
            notes = NO_NOTES
        return ReleaseDetails(release, values, notes, manifest, history)

    async def rollback_candidates(self, release: HelmRelease) -> list[HelmReleaseHistory]:
        """Revisions older than the current one, newest first."""
        try:
            history = await self._helm.history(release.name, namespace=release.namespace)
        except ExplorerError as e:
            self._report_failure("Failed to load release history", e)
            return []
        if not history:
            self._shell.show_error("No revision history found for this release")
            return []
        candidates = sorted(
            (entry for entry in history if entry.revision < release.revision),
            key=lambda entry: entry.revision,
            reverse=True,
        )
        if not candidates:
            self._shell.show_warning(
                f'Cannot rollback: No previous revisions available for "{release.name}"'
            )
        return candidates

    async def rollback(self, release: HelmRelease, revision: int) -> bool:
        """Roll ``release`` back to ``revision``."""
        try:
            await self._helm.rollback(release.name, revision, namespace=release.namespace)
        except ExplorerError as e:
            self._report_failure("Helm rollback failed", e)
            return False
        self._tree.refresh()
        self._shell.show_info(
            f'Rollback Success: "{release.name}" rolled back to revision {revision}'
        )
        return True

    async def available_versions(self, release: HelmRelease) -> list[str]:
        """Chart versions available for upgrade, newest first."""
        try:
            versions = await self._helm.search_versions(self.chart_ref(release))
        except ExplorerError as e:
            self._report_failure("Failed to fetch chart versions", e)
            return []
        seen: set[str] = set()
        ordered = []
        for version in sorted(versions, key=lambda v: v.sort_key, reverse=True):
            if version.chart_version and version.chart_version not in seen:
                seen.add(version.chart_version)
                ordered.append(version.chart_version)
        if not ordered:
            self._shell.show_error("No chart versions available")
        return ordered

    async def upgrade(self, release: HelmRelease, version: str) -> bool:
        """Upgrade ``release`` to ``version`` of its chart."""
        try:
            await self._helm.upgrade(
                release.name,
                self.chart_ref(release),
                namespace=release.namespace,
                version=version,
            )
        except ExplorerError as e:
            self._report_failure("Helm upgrade failed", e)
            return False
        self._tree.refresh()
        self._shell.show_info(f"Successfully upgraded {release.name} to version {version}")
        return True

    async def uninstall(self, release: HelmRelease) -> bool:
        """Uninstall ``release``."""
        try:
            await self._helm.uninstall(release.name, namespace=release.namespace)
        except ExplorerError as e:
            self._report_failure("Helm uninstall failed", e)
            return False
        self._tree.refresh()
        self._shell.show_info(f"Successfully uninstalled Helm release: {release.name}")
        return True
