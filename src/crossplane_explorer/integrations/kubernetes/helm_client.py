"""Helm CLI wrapper for release inspection and lifecycle operations.

Wraps the helm binary through the process runner for list, history,
get, rollback, upgrade, uninstall and chart version search.
"""

from __future__ import annotations

from collections.abc import Sequence

from crossplane_explorer.integrations.kubernetes.cli_tool import CliTool
from crossplane_explorer.integrations.kubernetes.exceptions import (
    HelmCommandError,
    ProcessError,
)
from crossplane_explorer.integrations.kubernetes.kubectl_client import parse_json
from crossplane_explorer.integrations.kubernetes.models.helm import (
    HelmChartVersion,
    HelmCommandResult,
    HelmRelease,
    HelmReleaseHistory,
)
from crossplane_explorer.integrations.kubernetes.process import ProcessResult, ProcessRunner


class HelmClient(CliTool):
    """Client for interacting with the Helm CLI.

    Wraps helm binary execution and provides typed results.
    """

    _binary_name = "helm"
    _install_hint = "https://helm.sh/docs/intro/install/"

    def __init__(
        self,
        runner: ProcessRunner,
        binary_path: str | None = None,
        *,
        kube_context: str | None = None,
    ) -> None:
        self._kube_context = kube_context
        super().__init__(runner, binary_path)

    def _global_args(self) -> list[str]:
        return ["--kube-context", self._kube_context] if self._kube_context else []

    async def _run(
        self,
        args: Sequence[str],
        stdin: str | None = None,
        cwd: str | None = None,
    ) -> ProcessResult:
        """Run a helm command.

        Raises:
            HelmCommandError: On non-zero exit.
        """
        self._log.debug("running_helm_command", args=list(args))
        try:
            return await super()._run(args, stdin=stdin, cwd=cwd)
        except HelmCommandError:
            raise
        except ProcessError as e:
            detail = e.stderr.strip() if e.stderr else f"exit code {e.exit_code}"
            raise HelmCommandError(
                message=f"Helm command failed: {detail}",
                exit_code=e.exit_code,
                stderr=e.stderr,
                stdout=e.stdout,
                command=e.command,
            ) from e

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    async def list_releases(
        self,
        *,
        namespace: str | None = None,
        all_namespaces: bool = True,
        filter_pattern: str | None = None,
    ) -> list[HelmRelease]:
        """List Helm releases.

        Args:
            namespace: Namespace to list releases from.
            all_namespaces: List releases across all namespaces.
            filter_pattern: Filter releases by name pattern.

        Returns:
            List of releases.
        """
        args = ["list", "--output", "json"]
        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args.extend(["--namespace", namespace])
        if filter_pattern:
            args.extend(["--filter", filter_pattern])

        result = await self._run(args)
        data = parse_json(result.stdout, "helm list output") if result.stdout.strip() else []
        return [HelmRelease.from_json(entry) for entry in data]

    async def history(self, release_name: str, *, namespace: str) -> list[HelmReleaseHistory]:
        """Get release history, oldest revision first."""
        args = ["history", release_name, "--namespace", namespace, "--output", "json"]
        result = await self._run(args)
        data = parse_json(result.stdout, "helm history output") if result.stdout.strip() else []
        return [HelmReleaseHistory.from_json(entry) for entry in data]

    async def get_manifest(self, release_name: str, *, namespace: str) -> str:
        """Return the rendered manifest of a release."""
        result = await self._run(["get", "manifest", release_name, "--namespace", namespace])
        return result.stdout

    async def get_values(self, release_name: str, *, namespace: str) -> str:
        """Return the user-supplied values of a release."""
        result = await self._run(["get", "values", release_name, "--namespace", namespace])
        return result.stdout

    async def get_notes(self, release_name: str, *, namespace: str) -> str:
        """Return the chart notes of a release."""
        result = await self._run(["get", "notes", release_name, "--namespace", namespace])
        return result.stdout

    async def search_versions(self, chart_ref: str) -> list[HelmChartVersion]:
        """List every version of ``repo/chart`` known to the local repo cache."""
        args = ["search", "repo", chart_ref, "--versions", "--output", "json"]
        result = await self._run(args)
        data = parse_json(result.stdout, "helm search output") if result.stdout.strip() else []
        return [HelmChartVersion.from_json(entry) for entry in data]

    # -----------------------------------------------------------------------
    # Release management
    # -----------------------------------------------------------------------

    async def rollback(
        self,
        release_name: str,
        revision: int | None = None,
        *,
        namespace: str,
    ) -> HelmCommandResult:
        """Rollback a release to a previous revision (default: previous)."""
        args = ["rollback", release_name, "--namespace", namespace]
        if revision is not None:
            args.append(str(revision))

        result = await self._run(args)
        self._log.info("helm_rollback_success", release=release_name, revision=revision)
        return HelmCommandResult(success=True, stdout=result.stdout, stderr=result.stderr)

    async def upgrade(
        self,
        release_name: str,
        chart: str,
        *,
        namespace: str,
        version: str | None = None,
    ) -> HelmCommandResult:
        """Upgrade a release to ``chart`` (optionally pinned to ``version``)."""
        args = ["upgrade", release_name, chart, "--namespace", namespace]
        if version:
            args.extend(["--version", version])

        result = await self._run(args)
        self._log.info("helm_upgrade_success", release=release_name, chart=chart, version=version)
        return HelmCommandResult(success=True, stdout=result.stdout, stderr=result.stderr)

    async def uninstall(self, release_name: str, *, namespace: str) -> HelmCommandResult:
        """Uninstall a release."""
        result = await self._run(["uninstall", release_name, "--namespace", namespace])
        self._log.info("helm_uninstall_success", release=release_name)
        return HelmCommandResult(success=True, stdout=result.stdout, stderr=result.stderr)
