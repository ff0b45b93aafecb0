"""Data models for explorer resources."""

from crossplane_explorer.integrations.kubernetes.models.composition import (
    ProviderPackage,
    ProvidersMetadata,
    ValidationOutcome,
    ValidationSummary,
    crd_filename,
    format_validation_line,
)
from crossplane_explorer.integrations.kubernetes.models.helm import (
    HelmChartVersion,
    HelmCommandResult,
    HelmRelease,
    HelmReleaseHistory,
    status_icon,
)
from crossplane_explorer.integrations.kubernetes.models.identity import (
    KindCategory,
    KindClass,
    ResourceIdentity,
    SessionMode,
    classify_kind,
    resource_type_for,
)
from crossplane_explorer.integrations.kubernetes.models.tree import (
    ContextTag,
    NodeRole,
    TreeNode,
)

__all__ = [
    "ContextTag",
    "HelmChartVersion",
    "HelmCommandResult",
    "HelmRelease",
    "HelmReleaseHistory",
    "KindCategory",
    "KindClass",
    "NodeRole",
    "ProviderPackage",
    "ProvidersMetadata",
    "ResourceIdentity",
    "SessionMode",
    "TreeNode",
    "ValidationOutcome",
    "ValidationSummary",
    "classify_kind",
    "crd_filename",
    "format_validation_line",
    "resource_type_for",
    "status_icon",
]
