"""Kubernetes integration - CLI wrappers, process runner and watch transport."""

from crossplane_explorer.integrations.kubernetes.crd_client import CrdDownloadClient
from crossplane_explorer.integrations.kubernetes.crossplane_client import CrossplaneClient
from crossplane_explorer.integrations.kubernetes.docker_client import DockerClient
from crossplane_explorer.integrations.kubernetes.exceptions import (
    AmbiguousTargetError,
    BinaryNotFoundError,
    CleanupError,
    CrdDownloadError,
    ExplorerError,
    GenericCommandError,
    HelmCommandError,
    ParseError,
    PermissionDeniedError,
    ProcessError,
    ProcessTimeoutError,
    SpawnError,
    VerificationMismatch,
    WatchResolutionError,
)
from crossplane_explorer.integrations.kubernetes.helm_client import HelmClient
from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
from crossplane_explorer.integrations.kubernetes.process import (
    LongLivedProcess,
    ProcessResult,
    ProcessRunner,
)
from crossplane_explorer.integrations.kubernetes.watch_client import (
    KubernetesWatchClient,
    ResourceDefinition,
    WatchEvent,
    WatchEventType,
    WatchSubscription,
)

__all__ = [
    "AmbiguousTargetError",
    "BinaryNotFoundError",
    "CleanupError",
    "CrdDownloadClient",
    "CrdDownloadError",
    "CrossplaneClient",
    "DockerClient",
    "ExplorerError",
    "GenericCommandError",
    "HelmClient",
    "HelmCommandError",
    "KubectlClient",
    "KubernetesWatchClient",
    "LongLivedProcess",
    "ParseError",
    "PermissionDeniedError",
    "ProcessError",
    "ProcessResult",
    "ProcessRunner",
    "ProcessTimeoutError",
    "ResourceDefinition",
    "SpawnError",
    "VerificationMismatch",
    "WatchEvent",
    "WatchEventType",
    "WatchResolutionError",
    "WatchSubscription",
]
