"""Lazy Crossplane resource tree.

Answers "what are the children of this node" either from a fixed
category list, from one combined bulk fetch shared by several
categories, or from a targeted kubectl query. Every failure is turned
into a notification and an empty child list at the expansion boundary.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from crossplane_explorer.integrations.kubernetes.exceptions import ExplorerError
from crossplane_explorer.integrations.kubernetes.models.identity import (
    KIND_ALIASES,
    KindClass,
    ResourceIdentity,
    api_group,
    classify_kind,
    resource_type_for,
)
from crossplane_explorer.integrations.kubernetes.models.tree import (
    ContextTag,
    NodeRole,
    TreeNode,
)
from crossplane_explorer.services.explorer.base import ExplorerService
from crossplane_explorer.services.explorer.status import resolve_status

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
    from crossplane_explorer.services.explorer.shell import ExplorerShell

ROOT_LABEL = "XPExplorer"

ROOT_CATEGORIES = (
    "environmentconfigs",
    "compositions",
    "configurations",
    "deploymentruntimeconfigs",
    "xrds",
    "providers",
    "functions",
    "providerconfigs",
    "crossplane",
    "logs",
    "deployment-flow",
)

BULK_FETCH_TARGET = ",".join([
    "environmentconfigs.apiextensions.crossplane.io",
    "compositions.apiextensions.crossplane.io",
    "configurations.pkg.crossplane.io",
    "deploymentruntimeconfigs.pkg.crossplane.io",
    "compositeresourcedefinitions.apiextensions.crossplane.io",
    "providers.pkg.crossplane.io",
    "functions.pkg.crossplane.io",
    "providerconfigs",
])


@dataclass(frozen=True)
class BulkCategory:
    """A category served by filtering the combined fetch by API kind."""

    api_kind: str
    resource_type: str
    tag: ContextTag


BULK_CATEGORIES = {
    "environmentconfigs": BulkCategory(
        "EnvironmentConfig", "environmentconfigs", ContextTag.ENVIRONMENT_CONFIG
    ),
    "compositions": BulkCategory("Composition", "compositions", ContextTag.COMPOSITION),
    "configurations": BulkCategory("Configuration", "configurations", ContextTag.CONFIGURATION),
    "deploymentruntimeconfigs": BulkCategory(
        "DeploymentRuntimeConfig", "deploymentruntimeconfigs", ContextTag.DEPLOYMENT_RUNTIME_CONFIG
    ),
    "xrds": BulkCategory(
        "CompositeResourceDefinition", "compositeresourcedefinitions", ContextTag.XRD
    ),
    "providers": BulkCategory("Provider", "providers", ContextTag.PROVIDER),
    "functions": BulkCategory("Function", "functions", ContextTag.FUNCTION),
}

PROVIDER_CONFIG_PREFIX = "providerconfigs."
PROVIDER_CONFIG_BUCKETS = ("aws", "azure", "kubernetes", "tf")
PROVIDER_CONFIGS_KIND = "providerconfigs-category"

CROSSPLANE_POD_SELECTOR = "app.kubernetes.io/instance=crossplane"


@dataclass(frozen=True)
class LogCategory:
    """A pod listing under the ``logs`` category."""

    selector: str
    tag: ContextTag


LOG_CATEGORIES = {
    "providers": LogCategory("pkg.crossplane.io/provider", ContextTag.LOGS_PROVIDERS),
    "functions": LogCategory("pkg.crossplane.io/function", ContextTag.LOGS_FUNCTIONS),
    "crossplane": LogCategory("release=crossplane", ContextTag.LOGS_CROSSPLANE),
}
POD_COLUMNS = {"NAMESPACE": ".metadata.namespace", "NAME": ".metadata.name"}
POD_LABEL_WIDTH = 24

# Listings whose labels carry ``Kind.group`` taken from each object.
API_KIND_LISTINGS = frozenset({"composite", "claim", "managed"})
ALL_NAMESPACE_LISTINGS = frozenset({"crds", "functions"})

ChangeListener = Callable[[], None]


def truncate(text: str, width: int = POD_LABEL_WIDTH) -> str:
    """Shorten ``text`` to ``width`` characters with a ``...`` suffix."""
    return text if len(text) <= width else f"{text[: width - 3]}..."


def provider_config_bucket(resource: str) -> str:
    """Return the display bucket for a ``providerconfigs.<group>`` resource."""
    for bucket in PROVIDER_CONFIG_BUCKETS:
        if bucket in resource:
            return bucket
    return resource.split(PROVIDER_CONFIG_PREFIX, 1)[1] or "other"


def _metadata(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("metadata") or {}


def _items(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object with an items list")
    return list(data.get("items") or [])


def _category(label: str, kind: str | None = None, *tags: str, payload: Any = None) -> TreeNode:
    return TreeNode(
        label=label,
        kind=kind or label,
        role=NodeRole.CATEGORY,
        expandable=True,
        context_tags=frozenset(tags),
        payload=payload or {},
    )


def _resource(
    label: str,
    resource_type: str,
    name: str,
    namespace: str = "",
    *,
    tags: Iterable[str] = (),
    kind_class: KindClass | None = None,
    expandable: bool = False,
    status: str | None = None,
    tooltip: str | None = None,
    payload: dict[str, Any] | None = None,
) -> TreeNode:
    return TreeNode(
        label=label,
        kind=resource_type,
        role=NodeRole.RESOURCE,
        identity=ResourceIdentity(kind=resource_type, name=name, namespace=namespace),
        expandable=expandable,
        context_tags=frozenset(tags),
        kind_class=kind_class or classify_kind(resource_type),
        status=status,
        tooltip=tooltip,
        payload=payload or {},
    )


class CrossplaneTreeModel(ExplorerService):
    """Lazy tree over Crossplane packages, definitions and composites.

    The combined bulk fetch is performed at most once per refresh cycle.
    Expansions that arrive while it is in flight return ``[]`` and the
    change listeners fire once the cache is populated so the view can
    render again.

    Args:
        kubectl: kubectl wrapper.
        shell: Host shell for error notifications.
        exclude_crd_suffixes: CRD name suffixes hidden from ``crds`` listings.
    """

    _entity_name = "tree_model"

    def __init__(
        self,
        kubectl: KubectlClient,
        shell: ExplorerShell,
        exclude_crd_suffixes: Iterable[str] = (),
    ) -> None:
        super().__init__(shell)
        self._kubectl = kubectl
        self._exclude_crd_suffixes = tuple(exclude_crd_suffixes)
        self._all_resources: list[dict[str, Any]] | None = None
        self._loading = False
        self._deferred = False
        self._generation = 0
        self._listeners: list[ChangeListener] = []

    # -----------------------------------------------------------------------
    # Change notification
    # -----------------------------------------------------------------------

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener fired when the tree must be re-rendered.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _fire_changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    @property
    def loading(self) -> bool:
        """True while the combined bulk fetch is in flight."""
        return self._loading

    def refresh(self) -> None:
        """Invalidate the bulk cache and signal a re-render.

        A bulk fetch still in flight is discarded when it completes.
        """
        self._all_resources = None
        self._loading = False
        self._deferred = False
        self._generation += 1
        self._log.debug("tree_refreshed", generation=self._generation)
        self._fire_changed()

    # -----------------------------------------------------------------------
    # Expansion boundary
    # -----------------------------------------------------------------------

    def root(self) -> TreeNode:
        """Return the top-level node."""
        return TreeNode(label=ROOT_LABEL, kind=ROOT_LABEL, role=NodeRole.ROOT, expandable=True)

    async def get_children(self, node: TreeNode | None = None) -> list[TreeNode]:
        """Return the children of ``node`` (the root node when None).

        Never raises; failures are notified and yield an empty list.
        """
        if node is None:
            return [self.root()]
        try:
            return await self._children_of(node)
        except ExplorerError as e:
            self._report_failure(f"Error fetching {node.label}", e)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self._log.warning("unexpected_resource_data", node=node.label, error=str(e))
            self._shell.show_error(f"Error fetching {node.label}: unexpected data ({e})")
        return []

    async def list_resources(self, resource_type: str) -> list[TreeNode]:
        """List any resource type as leaf nodes with derived status.

        Never raises; failures are notified and yield an empty list.
        """
        try:
            return await self._list_generic(resource_type)
        except ExplorerError as e:
            self._report_failure(f"Error getting {resource_type}", e)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self._log.warning("unexpected_resource_data", node=resource_type, error=str(e))
            self._shell.show_error(f"Error getting {resource_type}: unexpected data ({e})")
        return []

    async def _children_of(self, node: TreeNode) -> list[TreeNode]:
        if node.role is NodeRole.ROOT:
            return [_category(label) for label in ROOT_CATEGORIES]

        if node.role is NodeRole.CATEGORY:
            if node.kind in BULK_CATEGORIES:
                return await self._bulk_children(node.kind)
            if node.kind == "providerconfigs":
                return await self._provider_config_categories()
            if node.kind == PROVIDER_CONFIGS_KIND:
                return await self._provider_configs(node.payload["resource"])
            if node.kind == "crossplane":
                return await self._crossplane_pods()
            if node.kind == "logs":
                return [
                    _category(label, f"logs-{label}", category.tag)
                    for label, category in LOG_CATEGORIES.items()
                ]
            if node.kind.startswith("logs-"):
                return await self._log_pods(LOG_CATEGORIES[node.kind.removeprefix("logs-")])
            if node.kind == "deployment-flow":
                return await self._deployment_flow()
            return []

        if node.has_tag(ContextTag.DEPLOYMENT_FLOW_CLAIM):
            return [self._composite_node(item) for item in node.payload.get("composites", [])]
        if node.has_tag(ContextTag.COMPOSITE_XR):
            return await self._composite_children(node)
        return []

    # -----------------------------------------------------------------------
    # Bulk categories
    # -----------------------------------------------------------------------

    async def _bulk_items(self) -> list[dict[str, Any]] | None:
        """Return the cached combined listing, fetching it at most once.

        Returns None while another caller's fetch is in flight or when
        the result was invalidated by a refresh during the fetch.
        """
        if self._all_resources is not None:
            return self._all_resources
        if self._loading:
            self._deferred = True
            self._log.debug("bulk_fetch_coalesced")
            return None

        self._loading = True
        generation = self._generation
        try:
            items = _items(await self._kubectl.get_json([BULK_FETCH_TARGET]))
        except Exception:
            if generation == self._generation:
                self._loading = False
                # Coalesced callers are waiting on a change event to re-render.
                if self._deferred:
                    self._deferred = False
                    self._fire_changed()
            raise

        if generation != self._generation:
            self._log.debug("bulk_fetch_discarded", generation=generation)
            return None

        self._loading = False
        self._all_resources = items
        self._log.debug("bulk_fetch_complete", count=len(self._all_resources))
        if self._deferred:
            self._deferred = False
            self._fire_changed()
        return self._all_resources

    async def _bulk_children(self, category_name: str) -> list[TreeNode]:
        items = await self._bulk_items()
        if items is None:
            return []
        category = BULK_CATEGORIES[category_name]
        nodes = []
        for item in items:
            if item.get("kind") != category.api_kind:
                continue
            metadata = _metadata(item)
            name = metadata.get("name", "")
            namespace = metadata.get("namespace") or ""
            nodes.append(
                _resource(
                    f"{name} ({namespace})" if namespace else name,
                    category.resource_type,
                    name,
                    namespace,
                    tags=[category.tag],
                    status=resolve_status(category.resource_type, item),
                )
            )
        return nodes

    # -----------------------------------------------------------------------
    # Provider configs
    # -----------------------------------------------------------------------

    async def _provider_config_categories(self) -> list[TreeNode]:
        resources = await self._kubectl.list_api_resources(namespaced=False)
        buckets: dict[str, str] = {}
        for resource in resources:
            if resource.startswith(PROVIDER_CONFIG_PREFIX):
                buckets[provider_config_bucket(resource)] = resource
        return [
            _category(
                bucket,
                PROVIDER_CONFIGS_KIND,
                ContextTag.PROVIDER_CONFIGS_CATEGORY,
                payload={"resource": resource},
            )
            for bucket, resource in buckets.items()
        ]

    async def _provider_configs(self, resource: str) -> list[TreeNode]:
        data = await self._kubectl.get_json([resource])
        return [
            _resource(
                _metadata(item)["name"],
                resource,
                _metadata(item)["name"],
                tags=[ContextTag.PROVIDER_CONFIG],
            )
            for item in _items(data)
        ]

    # -----------------------------------------------------------------------
    # Pods
    # -----------------------------------------------------------------------

    async def _crossplane_pods(self) -> list[TreeNode]:
        data = await self._kubectl.get_json(
            ["pods"], all_namespaces=True, selector=CROSSPLANE_POD_SELECTOR
        )
        nodes = []
        for item in _items(data):
            metadata = _metadata(item)
            name, namespace = metadata["name"], metadata.get("namespace") or ""
            nodes.append(
                _resource(
                    name,
                    "pod",
                    name,
                    namespace,
                    tags=[ContextTag.CROSSPLANE_POD],
                    status=(item.get("status") or {}).get("phase"),
                    tooltip=f"{name} ({namespace})",
                )
            )
        return nodes

    async def _log_pods(self, category: LogCategory) -> list[TreeNode]:
        rows = await self._kubectl.get_columns(
            ["pods"], POD_COLUMNS, all_namespaces=True, selector=category.selector
        )
        nodes = []
        for row in rows:
            if len(row) < 2:
                continue
            namespace, name = row[0], row[1]
            nodes.append(
                _resource(
                    f"{truncate(name)} ({namespace})",
                    "pod",
                    name,
                    namespace,
                    tags=[ContextTag.LOGS_PROVIDER_POD],
                    tooltip=f"{name} ({namespace})",
                )
            )
        return nodes

    # -----------------------------------------------------------------------
    # Claim -> XR -> MR hierarchy
    # -----------------------------------------------------------------------

    async def _deployment_flow(self) -> list[TreeNode]:
        items = _items(await self._kubectl.get_json(["composite"]))

        claims: dict[str, tuple[dict[str, Any], list[dict[str, Any]]]] = {}
        for item in items:
            ref = (item.get("spec") or {}).get("claimRef") or {}
            if not (ref.get("name") and ref.get("kind") and ref.get("namespace")):
                continue
            resource_type = resource_type_for(ref["kind"], ref.get("apiVersion", ""))
            key = f"{resource_type}|{ref['name']}|{ref['namespace']}"
            claims.setdefault(key, (ref, []))[1].append(item)

        nodes = [self._claim_node(ref, composites) for ref, composites in claims.values()]
        nodes.extend(
            self._composite_node(item)
            for item in items
            if not (item.get("spec") or {}).get("claimRef")
            and not _metadata(item).get("ownerReferences")
        )
        return nodes

    def _claim_node(self, ref: dict[str, Any], composites: list[dict[str, Any]]) -> TreeNode:
        api_version = ref.get("apiVersion", "")
        resource_type = resource_type_for(ref["kind"], api_version)
        return _resource(
            f"[claim] | {resource_type} | {ref['name']} | {ref['namespace']}",
            resource_type,
            ref["name"],
            ref["namespace"],
            tags=[ContextTag.DEPLOYMENT_FLOW_CLAIM],
            kind_class=classify_kind(ref["kind"], api_version, is_claim=True),
            expandable=True,
            payload={"composites": composites},
        )

    def _composite_node(self, item: dict[str, Any]) -> TreeNode:
        kind = item.get("kind", "")
        api_version = item.get("apiVersion", "")
        resource_type = resource_type_for(kind, api_version)
        name = _metadata(item).get("name", "")
        return _resource(
            f"[XR] | {kind} | {name}",
            resource_type,
            name,
            tags=[ContextTag.COMPOSITE_XR],
            kind_class=classify_kind(kind, api_version),
            expandable=True,
            status=resolve_status(resource_type, item),
        )

    async def _composite_children(self, node: TreeNode) -> list[TreeNode]:
        if node.identity is None or node.kind_class is None:
            return []
        composite = await self._kubectl.get_json(node.kind_class.target_args(node.identity.name))
        nodes = []
        for ref in (composite.get("spec") or {}).get("resourceRefs") or []:
            kind = ref.get("kind", "")
            api_version = ref.get("apiVersion", "")
            name = ref.get("name", "")
            resource_type = resource_type_for(kind, api_version)
            if kind.startswith("X"):
                nodes.append(
                    _resource(
                        f"[XR] | {kind} | {name}",
                        resource_type,
                        name,
                        tags=[ContextTag.COMPOSITE_XR],
                        kind_class=classify_kind(kind, api_version),
                        expandable=True,
                    )
                )
            else:
                nodes.append(
                    _resource(
                        f"[MR] | {kind} | {name}",
                        resource_type,
                        name,
                        ref.get("namespace") or "",
                        tags=[ContextTag.MANAGED_RESOURCE],
                        kind_class=classify_kind(kind, api_version),
                    )
                )
        return nodes

    # -----------------------------------------------------------------------
    # Generic listings
    # -----------------------------------------------------------------------

    def _excluded(self, name: str) -> bool:
        return any(name.endswith(suffix) for suffix in self._exclude_crd_suffixes)

    async def _list_generic(self, resource_type: str) -> list[TreeNode]:
        target = KIND_ALIASES.get(resource_type, resource_type)
        data = await self._kubectl.get_json(
            [target], all_namespaces=resource_type in ALL_NAMESPACE_LISTINGS
        )
        nodes = []
        for item in _items(data):
            metadata = _metadata(item)
            name = metadata.get("name", "")
            namespace = metadata.get("namespace") or ""
            if resource_type == "crds" and self._excluded(name):
                continue
            status = resolve_status(resource_type, item)
            where = f"{name} {namespace}" if namespace else name

            if resource_type in API_KIND_LISTINGS:
                kind = item.get("kind", "")
                api_version = item.get("apiVersion", "")
                group = api_group(api_version)
                display_kind = f"{kind}.{group}" if group else kind
                tags = {
                    "composite": [ContextTag.COMPOSITE_XR],
                    "managed": [ContextTag.MANAGED_RESOURCE],
                }.get(resource_type, [ContextTag.RESOURCE])
                nodes.append(
                    _resource(
                        f"{display_kind} | {where} | {status}",
                        resource_type_for(kind, api_version),
                        name,
                        namespace,
                        tags=tags,
                        kind_class=classify_kind(
                            kind, api_version, is_claim=resource_type == "claim"
                        ),
                        status=status,
                    )
                )
                continue

            node_type = "crd" if resource_type == "crds" else resource_type
            tag = {
                "providers": ContextTag.PROVIDER,
                "functions": ContextTag.FUNCTION,
            }.get(resource_type, ContextTag.RESOURCE)
            nodes.append(
                _resource(
                    f"{where} | {status}",
                    node_type,
                    name,
                    namespace,
                    tags=[tag],
                    status=status,
                )
            )
        return nodes
