"""kubectl CLI wrapper.

Every cluster read and mutation except the live field watch goes
through this wrapper; mutating commands classify failures into
permission and generic errors.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from crossplane_explorer.integrations.kubernetes.cli_tool import CliTool
from crossplane_explorer.integrations.kubernetes.exceptions import (
    ParseError,
    PermissionDeniedError,
    ProcessError,
    classify_command_error,
    is_permission_denied,
)
from crossplane_explorer.integrations.kubernetes.process import (
    DataCallback,
    ExitCallback,
    LongLivedProcess,
    ProcessResult,
    ProcessRunner,
)

SERVER_SIDE_APPLY_ARGS = ["--server-side", "--force-conflicts"]


def _scope_args(
    namespace: str | None = None,
    all_namespaces: bool = False,
    selector: str | None = None,
) -> list[str]:
    args: list[str] = []
    if all_namespaces:
        args.append("--all-namespaces")
    elif namespace:
        args.extend(["-n", namespace])
    if selector:
        args.extend(["-l", selector])
    return args


def parse_json(text: str, what: str = "kubectl output") -> Any:
    """Parse JSON command output.

    Raises:
        ParseError: If ``text`` is not valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse {what} as JSON: {e}", original_error=e) from e


class KubectlClient(CliTool):
    """Client for the kubectl CLI."""

    _binary_name = "kubectl"
    _install_hint = "https://kubernetes.io/docs/tasks/tools/"

    def __init__(
        self,
        runner: ProcessRunner,
        binary_path: str | None = None,
        *,
        context: str | None = None,
        kubeconfig: str | None = None,
    ) -> None:
        """Initialize kubectl client.

        Args:
            runner: Process runner used for every invocation.
            binary_path: Optional explicit path to kubectl.
            context: Optional kubeconfig context passed as ``--context``.
            kubeconfig: Optional kubeconfig path passed as ``--kubeconfig``.
        """
        self._context = context
        self._kubeconfig = kubeconfig
        super().__init__(runner, binary_path)

    def _global_args(self) -> list[str]:
        args: list[str] = []
        if self._kubeconfig:
            args.extend(["--kubeconfig", self._kubeconfig])
        if self._context:
            args.extend(["--context", self._context])
        return args

    async def _mutate(self, args: Sequence[str], stdin: str | None = None) -> ProcessResult:
        """Run a mutating command with permission classification.

        Raises:
            PermissionDeniedError: If stderr carries a permission marker.
            GenericCommandError: On any other non-zero exit.
        """
        try:
            result = await self._run(args, stdin=stdin)
        except ProcessError as e:
            classified = classify_command_error(e)
            self._log.info(
                "kubectl_mutation_failed",
                args=list(args),
                error_type=type(classified).__name__,
            )
            raise classified from e
        if is_permission_denied(result.stderr):
            raise PermissionDeniedError(
                message=f"Command failed: {result.stderr.strip()}",
                exit_code=result.exit_code,
                stderr=result.stderr,
                stdout=result.stdout,
                command=[self._binary, *args],
            )
        return result

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def get_json(
        self,
        target: Sequence[str],
        *,
        namespace: str | None = None,
        all_namespaces: bool = False,
        selector: str | None = None,
    ) -> Any:
        """Get resources as parsed JSON.

        Args:
            target: Target arguments, e.g. ``["providers"]`` or ``["pod", "x"]``.
            namespace: Namespace passed as ``-n``.
            all_namespaces: List across all namespaces.
            selector: Label selector passed as ``-l``.

        Returns:
            The decoded JSON document.

        Raises:
            ParseError: If kubectl printed something other than JSON.
        """
        args = ["get", *target, *_scope_args(namespace, all_namespaces, selector), "-o", "json"]
        result = await self._run(args)
        return parse_json(result.stdout)

    async def get_text(
        self,
        target: Sequence[str],
        *,
        namespace: str | None = None,
        output: str = "yaml",
    ) -> str:
        """Get a resource rendered by kubectl (``-o yaml`` by default)."""
        args = ["get", *target, *_scope_args(namespace), "-o", output]
        result = await self._run(args)
        return result.stdout

    async def get_columns(
        self,
        target: Sequence[str],
        columns: dict[str, str],
        *,
        namespace: str | None = None,
        all_namespaces: bool = False,
        selector: str | None = None,
    ) -> list[list[str]]:
        """Get resources as custom-column rows without headers.

        Args:
            target: Target arguments.
            columns: Mapping of column header to JSONPath, in order.
            namespace: Namespace passed as ``-n``.
            all_namespaces: List across all namespaces.
            selector: Label selector passed as ``-l``.

        Returns:
            One list of cell values per non-empty output line.
        """
        spec = ",".join(f"{header}:{path}" for header, path in columns.items())
        args = [
            "get",
            *target,
            *_scope_args(namespace, all_namespaces, selector),
            "-o",
            f"custom-columns={spec}",
            "--no-headers",
        ]
        result = await self._run(args)
        return [line.split() for line in result.stdout.splitlines() if line.strip()]

    async def list_api_resources(self, *, namespaced: bool = False) -> list[str]:
        """List listable API resource names (``name.group``)."""
        args = [
            "api-resources",
            "--verbs=list",
            f"--namespaced={'true' if namespaced else 'false'}",
            "-o",
            "name",
        ]
        result = await self._run(args)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def apply(self, document: str, *, server_side: bool = True) -> ProcessResult:
        """Apply a document piped on stdin.

        Args:
            document: YAML or JSON text of the object.
            server_side: Use server-side apply with forced conflicts.
        """
        args = ["apply", "-f", "-"]
        if server_side:
            args.extend(SERVER_SIDE_APPLY_ARGS)
        result = await self._mutate(args, stdin=document)
        self._log.info("kubectl_apply_success", server_side=server_side)
        return result

    async def apply_file(self, path: str) -> ProcessResult:
        """Apply a manifest file (``apply -f <path>``)."""
        result = await self._mutate(["apply", "-f", path])
        self._log.info("kubectl_apply_file_success", path=path)
        return result

    async def delete_file(self, path: str) -> ProcessResult:
        """Delete the objects in a manifest file (``delete -f <path>``)."""
        result = await self._mutate(["delete", "-f", path])
        self._log.info("kubectl_delete_file_success", path=path)
        return result

    async def delete(
        self,
        resource_type: str,
        name: str,
        *,
        namespace: str | None = None,
        force: bool = False,
    ) -> ProcessResult:
        """Delete one object.

        Args:
            resource_type: kubectl type token.
            name: Object name.
            namespace: Namespace passed as ``-n``.
            force: Add ``--force --grace-period=0``.
        """
        args = ["delete", resource_type, name, *_scope_args(namespace)]
        if force:
            args.extend(["--force", "--grace-period=0"])
        result = await self._mutate(args)
        self._log.info(
            "kubectl_delete_success",
            resource_type=resource_type,
            name=name,
            namespace=namespace,
            force=force,
        )
        return result

    async def annotate(
        self,
        resource_type: str,
        name: str,
        annotation: str,
        *,
        namespace: str | None = None,
    ) -> ProcessResult:
        """Set an annotation with ``--overwrite``.

        Args:
            resource_type: kubectl type token.
            name: Object name.
            annotation: ``key=value`` pair.
            namespace: Namespace passed as ``-n``.
        """
        args = ["annotate", resource_type, name, annotation, "--overwrite", *_scope_args(namespace)]
        return await self._mutate(args)

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def follow_logs(
        self,
        pod: str,
        namespace: str,
        on_data: DataCallback,
        on_exit: ExitCallback | None = None,
    ) -> LongLivedProcess:
        """Start ``logs -f`` for a pod as a long-lived process."""
        args = [*self._global_args(), "logs", "-f", pod, "-n", namespace]
        return await self._runner.spawn(self._binary, args, on_data, on_exit)
