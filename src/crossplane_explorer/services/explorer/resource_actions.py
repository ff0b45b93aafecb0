"""One-shot actions on selected resources.

Every public coroutine here is a notification boundary: failures are
logged, surfaced through the shell and reported as a False/None result.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from crossplane_explorer.integrations.kubernetes.exceptions import (
    BinaryNotFoundError,
    ExplorerError,
    ProcessError,
)
from crossplane_explorer.integrations.kubernetes.models.identity import (
    ResourceIdentity,
    SessionMode,
)
from crossplane_explorer.services.explorer.base import ExplorerService
from crossplane_explorer.services.explorer.sessions import sanitize_resource

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.crossplane_client import CrossplaneClient
    from crossplane_explorer.integrations.kubernetes.docker_client import DockerClient
    from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
    from crossplane_explorer.services.explorer.sessions import EditSessionManager
    from crossplane_explorer.services.explorer.shell import ExplorerShell

PAUSED_ANNOTATION = "crossplane.io/paused"
DEBUG_RUNTIME_CONFIG = "enable-debug"
DEFAULT_RUNTIME_CONFIG = "default"

PROVIDER_TYPES = frozenset({"provider", "providers", "providers.pkg.crossplane.io"})
FUNCTION_TYPES = frozenset({"function", "functions", "functions.pkg.crossplane.io"})
PACKAGE_LABELS = {
    "provider": "pkg.crossplane.io/provider",
    "function": "pkg.crossplane.io/function",
}
PACKAGE_TARGETS = {
    "provider": "providers.pkg.crossplane.io",
    "function": "functions.pkg.crossplane.io",
}
# Deleted without a namespace flag.
CLUSTER_DELETE_TYPES = frozenset({"xrd", "crd"})

LINT_FILES = ("composition.yaml", "definition.yaml")
LINT_MOUNT = "/code"


def package_kind(resource_type: str) -> str | None:
    """Return ``provider`` or ``function`` for package types, else None."""
    if resource_type in PROVIDER_TYPES:
        return "provider"
    if resource_type in FUNCTION_TYPES:
        return "function"
    return None


@dataclass(frozen=True)
class TraceSummary:
    """Top-level row of a ``crossplane beta trace`` result."""

    name: str
    synced: str
    ready: str
    status: str

    @classmethod
    def from_trace(cls, data: dict[str, Any]) -> TraceSummary:
        obj = data["object"]
        conditions = {
            condition.get("type"): condition
            for condition in (obj.get("status") or {}).get("conditions") or []
        }
        synced = conditions.get("Synced") or {}
        ready = conditions.get("Ready") or {}
        return cls(
            name=f"{obj['kind']}/{obj['metadata']['name']}",
            synced=synced.get("status") or "-",
            ready=ready.get("status") or "-",
            status=synced.get("message") or "-",
        )

    def lines(self) -> list[str]:
        return [
            f"{'NAME':<40} {'SYNCED':<7} {'READY':<6} STATUS",
            f"{self.name:<40} {self.synced:<7} {self.ready:<6} {self.status}",
        ]


@dataclass(frozen=True)
class PodRef:
    """Name and namespace of a located pod."""

    name: str
    namespace: str


class ResourceActions(ExplorerService):
    """Pause/resume, delete, pod, debug, trace, file and lint actions.

    Args:
        kubectl: kubectl wrapper.
        shell: Host shell.
        sessions: Session manager used for pod details.
        crossplane: Factory for the crossplane CLI wrapper.
        docker: Factory for the docker CLI wrapper.
        on_changed: Called after a mutation that changes the tree.
        yamllint_image: Image used by :meth:`lint_folder`.
    """

    _entity_name = "resource_actions"

    def __init__(
        self,
        kubectl: KubectlClient,
        shell: ExplorerShell,
        *,
        sessions: EditSessionManager | None = None,
        crossplane: Callable[[], CrossplaneClient] | None = None,
        docker: Callable[[], DockerClient] | None = None,
        on_changed: Callable[[], None] | None = None,
        yamllint_image: str = "registry.gitlab.com/pipeline-components/yamllint:latest",
    ) -> None:
        super().__init__(shell)
        self._kubectl = kubectl
        self._sessions = sessions
        self._crossplane = crossplane
        self._docker = docker
        self._on_changed = on_changed
        self._yamllint_image = yamllint_image

    def _changed(self) -> None:
        if self._on_changed is not None:
            self._on_changed()

    # -----------------------------------------------------------------------
    # Pause / resume
    # -----------------------------------------------------------------------

    async def set_paused(self, identity: ResourceIdentity, paused: bool) -> bool:
        """Set the Crossplane pause annotation and verify it took effect."""
        verb = "Pause" if paused else "Resume"
        expected = "true" if paused else "false"
        namespace = identity.namespace or None
        try:
            await self._kubectl.annotate(
                identity.kind,
                identity.name,
                f"{PAUSED_ANNOTATION}={expected}",
                namespace=namespace,
            )
            obj = await self._kubectl.get_json([identity.kind, identity.name], namespace=namespace)
        except ExplorerError as e:
            self._report_failure(f"Failed to {verb.lower()} resource", e)
            return False

        annotations = (obj.get("metadata") or {}).get("annotations") or {}
        if annotations.get(PAUSED_ANNOTATION) != expected:
            self._log.info("pause_not_applied", identity=identity.watch_key, paused=paused)
            self._shell.show_warning(
                f"{verb} annotation was not applied. You may not have sufficient permissions."
            )
            return False

        self._log.info("pause_updated", identity=identity.watch_key, paused=paused)
        self._shell.show_info(f"{verb}d {identity.kind} {identity.name}")
        return True

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_resource(self, identity: ResourceIdentity) -> bool:
        """Delete the object and refresh the tree."""
        namespace = None if identity.kind in CLUSTER_DELETE_TYPES else identity.namespace or None
        try:
            await self._kubectl.delete(identity.kind, identity.name, namespace=namespace)
        except ExplorerError as e:
            self._report_failure("Failed to delete", e)
            return False
        self._shell.show_info(f"{identity.kind} '{identity.name}' deleted.")
        self._changed()
        return True

    # -----------------------------------------------------------------------
    # Pods
    # -----------------------------------------------------------------------

    async def find_package_pod(self, identity: ResourceIdentity) -> PodRef | None:
        """Locate the pod running a provider or function package.

        Raises:
            ValueError: If ``identity`` is not a provider or function.
            ProcessError: If the pod listing failed.
        """
        kind = package_kind(identity.kind)
        if kind is None:
            raise ValueError("This action can only be performed on provider or function objects.")
        data = await self._kubectl.get_json(
            ["pods"], all_namespaces=True, selector=PACKAGE_LABELS[kind]
        )
        needle = identity.name.lower()
        for pod in data.get("items") or []:
            metadata = pod.get("metadata") or {}
            if needle in metadata.get("name", ""):
                return PodRef(metadata["name"], metadata.get("namespace") or "")
        return None

    async def resolve_pod(self, identity: ResourceIdentity) -> PodRef | None:
        if identity.kind in ("pod", "pods"):
            return PodRef(identity.name, identity.namespace)
        try:
            pod = await self.find_package_pod(identity)
        except ValueError as e:
            self._shell.show_error(str(e))
            return None
        except ExplorerError as e:
            self._report_failure("Failed to find pod", e)
            return None
        if pod is None:
            self._shell.show_error(f"No pod found for {package_kind(identity.kind)} {identity.name}")
        return pod

    async def kill_pod(self, identity: ResourceIdentity) -> bool:
        """Force-delete a pod (``--force --grace-period=0``)."""
        return await self._delete_pod(identity, force=True)

    async def restart_pod(self, identity: ResourceIdentity) -> bool:
        """Delete a pod so that its controller recreates it."""
        return await self._delete_pod(identity, force=False)

    async def _delete_pod(self, identity: ResourceIdentity, *, force: bool) -> bool:
        action = "kill" if force else "restart"
        pod = await self.resolve_pod(identity)
        if pod is None:
            return False
        try:
            await self._kubectl.delete("pod", pod.name, namespace=pod.namespace, force=force)
        except ExplorerError as e:
            self._report_failure(f"Failed to {action} pod", e)
            return False
        self._shell.show_info(
            f'Successfully {action}ed pod "{pod.name}" in namespace "{pod.namespace}"'
        )
        self._changed()
        return True

    async def pod_details(self, identity: ResourceIdentity) -> Path | None:
        """Open the pod manifest as a read-only session."""
        if self._sessions is None:
            self._shell.show_error("Pod details are not available in this shell.")
            return None
        pod = ResourceIdentity("pod", identity.name, identity.namespace, SessionMode.VIEW)
        return await self._sessions.request_open(pod)

    # -----------------------------------------------------------------------
    # Debug mode
    # -----------------------------------------------------------------------

    async def set_debug_mode(self, identity: ResourceIdentity, enabled: bool) -> bool:
        """Point a provider or function at the debug or default runtime config."""
        kind = package_kind(identity.kind)
        action = "enable" if enabled else "disable"
        if kind is None:
            self._shell.show_error("This action can only be performed on provider or function objects.")
            return False
        try:
            obj = await self._kubectl.get_json(
                [PACKAGE_TARGETS[kind], identity.name], namespace=identity.namespace or None
            )
            document = sanitize_resource(obj)
            spec = document.setdefault("spec", {})
            ref = spec.setdefault(
                "runtimeConfigRef",
                {"apiVersion": "pkg.crossplane.io/v1beta1", "kind": "DeploymentRuntimeConfig"},
            )
            ref["name"] = DEBUG_RUNTIME_CONFIG if enabled else DEFAULT_RUNTIME_CONFIG
            await self._kubectl.apply(json.dumps(document), server_side=False)
        except ExplorerError as e:
            self._report_failure(f"Failed to {action} debug mode", e)
            return False
        self._log.info("debug_mode_updated", identity=identity.watch_key, enabled=enabled)
        self._shell.show_info(f"Debug mode {action}d for {kind}.")
        return True

    async def delete_debug_runtime_config(self) -> bool:
        """Delete the debug runtime config unless a package still uses it."""
        try:
            data = await self._kubectl.get_json([",".join(PACKAGE_TARGETS.values())])
            referenced = [
                (item.get("metadata") or {}).get("name", "")
                for item in data.get("items") or []
                if ((item.get("spec") or {}).get("runtimeConfigRef") or {}).get("name")
                == DEBUG_RUNTIME_CONFIG
            ]
            if referenced:
                self._log.info("debug_config_in_use", referenced_by=referenced)
                self._shell.show_warning(
                    f'Cannot delete "{DEBUG_RUNTIME_CONFIG}" DeploymentRuntimeConfig: '
                    "it is still referenced by a Provider or Function."
                )
                return False
            await self._kubectl.delete("deploymentruntimeconfig", DEBUG_RUNTIME_CONFIG)
        except ExplorerError as e:
            self._report_failure(f"Failed to check or delete {DEBUG_RUNTIME_CONFIG} config", e)
            return False
        self._shell.show_info(f"{DEBUG_RUNTIME_CONFIG} DeploymentRuntimeConfig deleted.")
        self._changed()
        return True

    # -----------------------------------------------------------------------
    # Trace
    # -----------------------------------------------------------------------

    async def trace(self, identity: ResourceIdentity) -> TraceSummary | None:
        """Run ``crossplane beta trace`` and write a summary to a sink."""
        sink = self._shell.create_sink("Crossplane Trace")
        sink.show()
        sink.append_line(f"# crossplane beta trace {identity.kind} {identity.name}")
        sink.append_line("")
        if self._crossplane is None:
            sink.append_line("Error: crossplane CLI is not configured")
            return None
        try:
            output = await self._crossplane().trace(
                identity.kind, identity.name, namespace=identity.namespace or None
            )
        except ExplorerError as e:
            sink.append_line(f"Error: {e.message}")
            self._log.warning("trace_failed", identity=identity.watch_key, error=str(e))
            return None

        try:
            summary = TraceSummary.from_trace(json.loads(output))
        except (ValueError, KeyError, TypeError, AttributeError):
            sink.append_line(output)
            return None
        for line in summary.lines():
            sink.append_line(line)
        return summary

    # -----------------------------------------------------------------------
    # Local files
    # -----------------------------------------------------------------------

    async def apply_file(self, path: Path) -> bool:
        """``kubectl apply -f <path>``."""
        try:
            await self._kubectl.apply_file(str(path))
        except ExplorerError as e:
            self._report_failure(f"Failed to apply {path.name}", e)
            return False
        self._shell.show_info(f"{path.name} applied successfully.")
        self._changed()
        return True

    async def delete_file(self, path: Path) -> bool:
        """``kubectl delete -f <path>``."""
        try:
            await self._kubectl.delete_file(str(path))
        except ExplorerError as e:
            self._report_failure(f"Failed to delete {path.name}", e)
            return False
        self._shell.show_info(f"{path.name} deleted successfully.")
        self._changed()
        return True

    async def lint_folder(self, folder: Path) -> bool:
        """Run yamllint in a container over the composition and definition files.

        Returns:
            True when yamllint exited cleanly.
        """
        sink = self._shell.create_sink("YAML Lint")
        sink.show()
        sink.append_line("YAML Lint")
        files = [name for name in LINT_FILES if (folder / name).exists()]
        if not files:
            sink.append_line("No composition.yaml or definition.yaml found in the selected folder.")
            return False

        command = ["yamllint", *(f"{LINT_MOUNT}/{name}" for name in files)]
        sink.append_line(f"Image: {self._yamllint_image}")
        sink.append_line(f"$ yamllint {' '.join(command[1:])}")
        sink.append_line("")
        if self._docker is None:
            sink.append_line("Error: docker CLI is not configured")
            return False

        try:
            result = await self._docker().run_container(
                self._yamllint_image,
                command,
                volumes={str(folder.resolve()): LINT_MOUNT},
            )
        except BinaryNotFoundError:
            self._shell.show_error(
                "Docker is not installed or not available in PATH. "
                "Please install Docker to use YAML Lint."
            )
            return False
        except ProcessError as e:
            for text in (e.stdout, e.stderr):
                if text.strip():
                    sink.append_line(text.rstrip())
            self._shell.show_warning("YAML Lint completed with errors. See output for details.")
            return False
        except ExplorerError as e:
            self._report_failure("YAML Lint failed", e)
            return False

        output = "\n".join(text.rstrip() for text in (result.stdout, result.stderr) if text.strip())
        if output:
            sink.append_line(output)
            self._shell.show_info("YAML Lint completed. See output for details.")
            return True
        message = f"yamllint: {' and '.join(files)} meet YAML syntax and style standards."
        sink.append_line(f"✅ {message}")
        self._shell.show_info(message)
        return True
