"""Unit tests for HelmClient and the other thin CLI wrappers."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from crossplane_explorer.integrations.kubernetes.crossplane_client import (
    RENDER_ARGS,
    CrossplaneClient,
)
from crossplane_explorer.integrations.kubernetes.docker_client import DockerClient
from crossplane_explorer.integrations.kubernetes.exceptions import HelmCommandError, ProcessError
from crossplane_explorer.integrations.kubernetes.helm_client import HelmClient
from crossplane_explorer.integrations.kubernetes.process import ProcessResult

RELEASES = [
    {
        "name": "crossplane",
        "namespace": "crossplane-system",
        "revision": "3",
        "updated": "2024-05-01 10:00:00",
        "status": "deployed",
        "chart": "crossplane-1.15.2",
        "app_version": "1.15.2",
    },
]


@pytest.fixture
def helm(mock_runner: MagicMock, found_binary: MagicMock) -> HelmClient:
    """Create a HelmClient over the mock runner."""
    return HelmClient(mock_runner, kube_context="kind-dev")


def _args(mock_runner: MagicMock) -> list[str]:
    return list(mock_runner.run.call_args.args[1])


# ===========================================================================
# TestQueries
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestQueries:
    """Tests for HelmClient read commands."""

    @pytest.mark.asyncio
    async def test_list_releases(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """Should parse releases and pass the kube context first."""
        mock_runner.run.return_value = ProcessResult(stdout=json.dumps(RELEASES), stderr="")

        releases = await helm.list_releases()

        assert len(releases) == 1
        assert releases[0].name == "crossplane"
        assert releases[0].revision == 3
        assert releases[0].chart_name == "crossplane"
        assert releases[0].chart_version == "1.15.2"
        assert _args(mock_runner) == [
            "--kube-context",
            "kind-dev",
            "list",
            "--output",
            "json",
            "--all-namespaces",
        ]

    @pytest.mark.asyncio
    async def test_list_releases_empty_output(
        self, helm: HelmClient, mock_runner: MagicMock
    ) -> None:
        """Empty stdout yields no releases."""
        assert await helm.list_releases(all_namespaces=False, namespace="x") == []
        assert _args(mock_runner)[-2:] == ["--namespace", "x"]

    @pytest.mark.asyncio
    async def test_history(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """History entries are parsed in order."""
        mock_runner.run.return_value = ProcessResult(
            stdout=json.dumps([
                {"revision": 1, "status": "superseded", "chart": "c-1.0.0"},
                {"revision": 2, "status": "deployed", "chart": "c-1.1.0"},
            ]),
            stderr="",
        )
        history = await helm.history("c", namespace="ns")
        assert [entry.revision for entry in history] == [1, 2]

    @pytest.mark.asyncio
    async def test_search_versions(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """Chart versions read the version key."""
        mock_runner.run.return_value = ProcessResult(
            stdout=json.dumps([{"name": "bitnami/redis", "version": "18.1.0", "app_version": "7"}]),
            stderr="",
        )
        versions = await helm.search_versions("bitnami/redis")
        assert versions[0].chart_version == "18.1.0"
        assert "--versions" in _args(mock_runner)

    @pytest.mark.asyncio
    async def test_failure_wraps_helm_error(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """Process failures become HelmCommandError with the stderr detail."""
        mock_runner.run.side_effect = ProcessError(
            "Command failed", exit_code=1, stderr="Error: release: not found\n"
        )
        with pytest.raises(HelmCommandError, match="Helm command failed: Error: release: not found"):
            await helm.get_values("missing", namespace="ns")


# ===========================================================================
# TestReleaseManagement
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestReleaseManagement:
    """Tests for rollback, upgrade and uninstall."""

    @pytest.mark.asyncio
    async def test_rollback_with_revision(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """The revision is appended as the last argument."""
        result = await helm.rollback("crossplane", 2, namespace="crossplane-system")
        assert result.success
        assert _args(mock_runner)[2:] == [
            "rollback",
            "crossplane",
            "--namespace",
            "crossplane-system",
            "2",
        ]

    @pytest.mark.asyncio
    async def test_upgrade_with_version(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """Upgrade pins the chart version."""
        await helm.upgrade("cache", "bitnami/redis", namespace="apps", version="18.1.0")
        assert _args(mock_runner)[2:] == [
            "upgrade",
            "cache",
            "bitnami/redis",
            "--namespace",
            "apps",
            "--version",
            "18.1.0",
        ]

    @pytest.mark.asyncio
    async def test_uninstall(self, helm: HelmClient, mock_runner: MagicMock) -> None:
        """Uninstall passes the namespace."""
        await helm.uninstall("cache", namespace="apps")
        assert _args(mock_runner)[2:] == ["uninstall", "cache", "--namespace", "apps"]


# ===========================================================================
# TestOtherWrappers
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestOtherWrappers:
    """Tests for the crossplane and docker wrappers."""

    @pytest.mark.asyncio
    async def test_crossplane_trace(self, mock_runner: MagicMock, found_binary: MagicMock) -> None:
        """trace runs beta trace with JSON output."""
        mock_runner.run.return_value = ProcessResult(stdout="{}", stderr="")
        client = CrossplaneClient(mock_runner)

        output = await client.trace("xnetwork.example.org", "net-1", namespace="team-a")

        assert output == "{}"
        assert _args(mock_runner) == [
            "beta",
            "trace",
            "xnetwork.example.org",
            "net-1",
            "-n",
            "team-a",
            "-o",
            "json",
        ]

    @pytest.mark.asyncio
    async def test_crossplane_render_runs_in_folder(
        self, mock_runner: MagicMock, found_binary: MagicMock, tmp_path: Path
    ) -> None:
        """render passes the standard folder files and runs inside the folder."""
        mock_runner.run.return_value = ProcessResult(stdout="kind: XBucket\n", stderr="")
        client = CrossplaneClient(mock_runner)

        output = await client.render(tmp_path)

        assert output == "kind: XBucket\n"
        assert _args(mock_runner) == list(RENDER_ARGS)
        assert _args(mock_runner)[:4] == ["render", "xr.yaml", "composition.yaml", "function.yaml"]
        assert mock_runner.run.call_args.kwargs["cwd"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_crossplane_validate(
        self, mock_runner: MagicMock, found_binary: MagicMock, tmp_path: Path
    ) -> None:
        """validate runs beta validate next to the rendered resources."""
        schemas = tmp_path / "schema" / "downloaded-crds.yaml"
        rendered = tmp_path / "renderTestOutput.yaml"
        client = CrossplaneClient(mock_runner)

        await client.validate(schemas, rendered)

        assert _args(mock_runner) == ["beta", "validate", str(schemas), str(rendered)]
        assert mock_runner.run.call_args.kwargs["cwd"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_docker_run_container(
        self, mock_runner: MagicMock, found_binary: MagicMock
    ) -> None:
        """run_container mounts volumes and removes the container."""
        client = DockerClient(mock_runner)
        await client.run_container(
            "yamllint:latest", ["yamllint", "/code/a.yaml"], volumes={"/src": "/code"}
        )
        assert _args(mock_runner) == [
            "run",
            "--rm",
            "-v",
            "/src:/code",
            "yamllint:latest",
            "yamllint",
            "/code/a.yaml",
        ]
