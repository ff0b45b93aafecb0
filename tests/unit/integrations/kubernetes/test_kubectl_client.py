"""Unit tests for KubectlClient."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from crossplane_explorer.integrations.kubernetes.exceptions import (
    BinaryNotFoundError,
    GenericCommandError,
    ParseError,
    PermissionDeniedError,
    ProcessError,
)
from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
from crossplane_explorer.integrations.kubernetes.process import ProcessResult


@pytest.fixture
def kubectl(mock_runner: MagicMock, found_binary: MagicMock) -> KubectlClient:
    """Create a KubectlClient over the mock runner."""
    return KubectlClient(mock_runner)


def _argv(mock_runner: MagicMock) -> list[str]:
    binary, args = mock_runner.run.call_args.args
    return [binary, *args]


# ===========================================================================
# Binary lookup
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestBinaryLookup:
    """Tests for locating the kubectl binary."""

    def test_missing_binary_raises(self, mock_runner: MagicMock) -> None:
        """Should raise BinaryNotFoundError when kubectl is not on PATH."""
        with (
            patch(
                "crossplane_explorer.integrations.kubernetes.cli_tool.shutil.which",
                return_value=None,
            ),
            pytest.raises(BinaryNotFoundError, match="kubectl binary not found"),
        ):
            KubectlClient(mock_runner)

    def test_explicit_existing_path(self, mock_runner: MagicMock, tmp_path: Path) -> None:
        """An explicit path that exists is used as-is."""
        binary = tmp_path / "kubectl"
        binary.write_text("")
        client = KubectlClient(mock_runner, str(binary))
        assert client.binary == str(binary.resolve())

    def test_global_args(self, mock_runner: MagicMock, found_binary: MagicMock) -> None:
        """Kubeconfig and context are prepended to every command."""
        client = KubectlClient(mock_runner, context="kind-dev", kubeconfig="/tmp/kc")
        assert client._global_args() == ["--kubeconfig", "/tmp/kc", "--context", "kind-dev"]


# ===========================================================================
# Reads
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestReads:
    """Tests for read commands."""

    @pytest.mark.asyncio
    async def test_get_json_all_namespaces_with_selector(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """Should build the get argv and parse the output."""
        mock_runner.run.return_value = ProcessResult(stdout=json.dumps({"items": []}), stderr="")

        data = await kubectl.get_json(["pods"], all_namespaces=True, selector="app=x")

        assert data == {"items": []}
        assert _argv(mock_runner) == [
            "/usr/bin/kubectl",
            "get",
            "pods",
            "--all-namespaces",
            "-l",
            "app=x",
            "-o",
            "json",
        ]

    @pytest.mark.asyncio
    async def test_get_json_namespace(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """A namespace is passed with -n."""
        mock_runner.run.return_value = ProcessResult(stdout="{}", stderr="")
        await kubectl.get_json(["pod", "p1"], namespace="crossplane-system")
        assert _argv(mock_runner)[2:6] == ["pod", "p1", "-n", "crossplane-system"]

    @pytest.mark.asyncio
    async def test_get_json_invalid_output(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """Non-JSON output raises ParseError."""
        mock_runner.run.return_value = ProcessResult(stdout="not json", stderr="")
        with pytest.raises(ParseError):
            await kubectl.get_json(["providers"])

    @pytest.mark.asyncio
    async def test_get_text_yaml(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """get_text returns raw stdout in yaml by default."""
        mock_runner.run.return_value = ProcessResult(stdout="kind: Provider\n", stderr="")
        text = await kubectl.get_text(["providers", "aws"])
        assert text == "kind: Provider\n"
        assert _argv(mock_runner)[-2:] == ["-o", "yaml"]

    @pytest.mark.asyncio
    async def test_get_columns(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """Custom-column rows are split on whitespace; blank lines are skipped."""
        mock_runner.run.return_value = ProcessResult(
            stdout="ns-a   pod-1\n\nns-b   pod-2\n", stderr=""
        )
        rows = await kubectl.get_columns(
            ["pods"], {"NAMESPACE": ".metadata.namespace", "NAME": ".metadata.name"}
        )
        assert rows == [["ns-a", "pod-1"], ["ns-b", "pod-2"]]
        argv = _argv(mock_runner)
        assert "custom-columns=NAMESPACE:.metadata.namespace,NAME:.metadata.name" in argv
        assert argv[-1] == "--no-headers"

    @pytest.mark.asyncio
    async def test_list_api_resources(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """Resource names are returned one per line."""
        mock_runner.run.return_value = ProcessResult(
            stdout="providerconfigs.aws.upbound.io\nproviderconfigs.kubernetes.crossplane.io\n",
            stderr="",
        )
        resources = await kubectl.list_api_resources()
        assert resources == [
            "providerconfigs.aws.upbound.io",
            "providerconfigs.kubernetes.crossplane.io",
        ]
        assert "--namespaced=false" in _argv(mock_runner)


# ===========================================================================
# Mutations
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestMutations:
    """Tests for mutating commands."""

    @pytest.mark.asyncio
    async def test_apply_server_side_pipes_stdin(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """Server-side apply adds --force-conflicts and pipes the document."""
        await kubectl.apply("kind: Bucket\n")
        assert _argv(mock_runner)[1:] == [
            "apply",
            "-f",
            "-",
            "--server-side",
            "--force-conflicts",
        ]
        assert mock_runner.run.call_args.kwargs["stdin"] == "kind: Bucket\n"

    @pytest.mark.asyncio
    async def test_apply_client_side(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """Client-side apply omits the server-side flags."""
        await kubectl.apply("{}", server_side=False)
        assert _argv(mock_runner)[1:] == ["apply", "-f", "-"]

    @pytest.mark.asyncio
    async def test_delete_force(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """Force delete adds --force --grace-period=0."""
        await kubectl.delete("pod", "p1", namespace="ns", force=True)
        assert _argv(mock_runner)[1:] == [
            "delete",
            "pod",
            "p1",
            "-n",
            "ns",
            "--force",
            "--grace-period=0",
        ]

    @pytest.mark.asyncio
    async def test_annotate_overwrites(self, kubectl: KubectlClient, mock_runner: MagicMock) -> None:
        """annotate always passes --overwrite."""
        await kubectl.annotate("bucket.s3.aws.upbound.io", "b1", "crossplane.io/paused=true")
        assert _argv(mock_runner)[1:] == [
            "annotate",
            "bucket.s3.aws.upbound.io",
            "b1",
            "crossplane.io/paused=true",
            "--overwrite",
        ]

    @pytest.mark.asyncio
    async def test_permission_failure_is_classified(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """A forbidden stderr becomes PermissionDeniedError."""
        mock_runner.run.side_effect = ProcessError(
            "Command failed", exit_code=1, stderr="Error from server (Forbidden)"
        )
        with pytest.raises(PermissionDeniedError):
            await kubectl.delete("providers", "aws")

    @pytest.mark.asyncio
    async def test_generic_failure_is_classified(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """Other failures become GenericCommandError."""
        mock_runner.run.side_effect = ProcessError("Command failed", exit_code=1, stderr="invalid")
        with pytest.raises(GenericCommandError):
            await kubectl.apply_file("/tmp/x.yaml")

    @pytest.mark.asyncio
    async def test_permission_warning_on_success_raises(
        self, kubectl: KubectlClient, mock_runner: MagicMock
    ) -> None:
        """A zero exit that still reports a permission problem is a denial."""
        mock_runner.run.return_value = ProcessResult(
            stdout="", stderr="Warning: permission denied for field"
        )
        with pytest.raises(PermissionDeniedError):
            await kubectl.delete_file("/tmp/x.yaml")


# ===========================================================================
# Streaming
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestFollowLogs:
    """Tests for follow_logs."""

    @pytest.mark.asyncio
    async def test_spawns_logs_follow(self, mock_runner: MagicMock, found_binary: MagicMock) -> None:
        """follow_logs spawns logs -f with the global args first."""
        client = KubectlClient(mock_runner, context="kind-dev")
        on_data = MagicMock()

        await client.follow_logs("crossplane-abc", "crossplane-system", on_data)

        binary, args, data_cb, exit_cb = mock_runner.spawn.call_args.args
        assert binary == "/usr/bin/kubectl"
        assert args == [
            "--context",
            "kind-dev",
            "logs",
            "-f",
            "crossplane-abc",
            "-n",
            "crossplane-system",
        ]
        assert data_cb is on_data
        assert exit_cb is None
