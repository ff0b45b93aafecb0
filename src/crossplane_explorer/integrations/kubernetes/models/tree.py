"""Display node models for the resource tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from crossplane_explorer.integrations.kubernetes.models.identity import (
    KindClass,
    ResourceIdentity,
)


class NodeRole(StrEnum):
    """Structural role of a tree node."""

    ROOT = "root"
    CATEGORY = "category"
    RESOURCE = "resource"
    PLACEHOLDER = "placeholder"


class ContextTag(StrEnum):
    """Capability tags deciding which actions apply to a node."""

    XRD = "xrd"
    PROVIDER = "provider"
    FUNCTION = "function"
    COMPOSITION = "composition"
    CONFIGURATION = "configuration"
    DEPLOYMENT_RUNTIME_CONFIG = "deploymentruntimeconfig"
    ENVIRONMENT_CONFIG = "environmentconfig"
    PROVIDER_CONFIG = "providerconfig"
    PROVIDER_CONFIGS_CATEGORY = "providerconfigs-category"
    CROSSPLANE_POD = "crossplane-pod"
    LOGS_PROVIDERS = "logs-providers"
    LOGS_FUNCTIONS = "logs-functions"
    LOGS_CROSSPLANE = "logs-crossplane"
    LOGS_PROVIDER_POD = "logs-provider-pod"
    DEPLOYMENT_FLOW_CLAIM = "deployment-flow-claim"
    COMPOSITE_XR = "composite-xr"
    MANAGED_RESOURCE = "managed-resource"
    RESOURCE = "resource"
    HELM_NAMESPACE = "helm-namespace"
    HELM_RELEASE = "helm-release"
    HELM_RELEASE_FIRST = "helm-release-first"


@dataclass
class TreeNode:
    """A category grouping or a concrete cluster resource.

    Nodes are rebuilt on every expansion; only ``identity`` correlates a
    node with sessions and watches across refreshes. ``children`` stays
    ``None`` until the node has been expanded.
    """

    label: str
    kind: str
    role: NodeRole = NodeRole.RESOURCE
    identity: ResourceIdentity | None = None
    expandable: bool = False
    context_tags: frozenset[str] = frozenset()
    children: list[TreeNode] | None = None
    kind_class: KindClass | None = None
    status: str | None = None
    icon: str | None = None
    tooltip: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def has_tag(self, tag: str) -> bool:
        """Return True if the node carries the given context tag."""
        return tag in self.context_tags

    @property
    def is_resource(self) -> bool:
        """True for nodes backed by a concrete cluster object."""
        return self.identity is not None
