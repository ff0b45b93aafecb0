"""Docker CLI wrapper for running one-shot tool containers."""

from __future__ import annotations

from collections.abc import Sequence

from crossplane_explorer.integrations.kubernetes.cli_tool import CliTool
from crossplane_explorer.integrations.kubernetes.process import ProcessResult


class DockerClient(CliTool):
    """Client for ``docker run --rm``."""

    _binary_name = "docker"
    _install_hint = "https://docs.docker.com/get-docker/"

    async def run_container(
        self,
        image: str,
        command: Sequence[str],
        *,
        volumes: dict[str, str] | None = None,
    ) -> ProcessResult:
        """Run ``command`` in a throwaway container.

        Args:
            image: Image reference.
            command: Command and arguments executed in the container.
            volumes: Host path to container path bind mounts.
        """
        args = ["run", "--rm"]
        for host, container in (volumes or {}).items():
            args.extend(["-v", f"{host}:{container}"])
        args.extend([image, *command])
        return await self._run(args)
