"""Crossplane CLI wrapper."""

from __future__ import annotations

from pathlib import Path

from crossplane_explorer.integrations.kubernetes.cli_tool import CliTool
from crossplane_explorer.integrations.kubernetes.process import ProcessResult

# Resolved relative to the composition folder the command runs in.
RENDER_ARGS = (
    "render",
    "xr.yaml",
    "composition.yaml",
    "function.yaml",
    "--observed-resources=observedResources.yaml",
    "--extra-resources=extraResources.yaml",
    "--context-files",
    "apiextensions.crossplane.io/environment=environmentConfig.json",
    "--function-credentials=function-creds.yaml",
    "--include-full-xr",
)


class CrossplaneClient(CliTool):
    """Client for the ``crossplane`` CLI (beta trace, render, beta validate)."""

    _binary_name = "crossplane"
    _install_hint = "https://docs.crossplane.io/latest/cli/"

    async def trace(self, resource_type: str, name: str, *, namespace: str | None = None) -> str:
        """Run ``crossplane beta trace`` and return its JSON output text."""
        args = ["beta", "trace", resource_type, name]
        if namespace:
            args.extend(["-n", namespace])
        args.extend(["-o", "json"])
        result = await self._run(args)
        return result.stdout

    async def render(self, folder: Path) -> str:
        """Run ``crossplane render`` over the standard files of a composition folder.

        Returns:
            The rendered resources as YAML text.

        Raises:
            ProcessError: If the render fails.
        """
        result = await self._run(RENDER_ARGS, cwd=str(folder))
        return result.stdout

    async def validate(self, schemas: Path, resources: Path) -> ProcessResult:
        """Run ``crossplane beta validate <schemas> <resources>``.

        Raises:
            ProcessError: If any resource fails validation. The report is
                on the error's ``stdout``.
        """
        return await self._run(
            ["beta", "validate", str(schemas), str(resources)], cwd=str(resources.parent)
        )
