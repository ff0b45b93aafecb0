"""Shared base for wrappers around external CLI binaries.

Locates the binary once at construction and routes every invocation
through an injected ProcessRunner.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path

import structlog

from crossplane_explorer.integrations.kubernetes.exceptions import BinaryNotFoundError
from crossplane_explorer.integrations.kubernetes.process import ProcessResult, ProcessRunner

logger = structlog.get_logger()


class CliTool:
    """Base class for CLI wrappers.

    Subclasses set ``_binary_name`` and optionally ``_install_hint``.

    Example:
        >>> class KubectlClient(CliTool):
        ...     _binary_name = "kubectl"
    """

    _binary_name: str = ""
    _install_hint: str | None = None

    def __init__(self, runner: ProcessRunner, binary_path: str | None = None) -> None:
        """Initialize the wrapper.

        Args:
            runner: Process runner used for every invocation.
            binary_path: Optional explicit path to the binary.
                If None, searches PATH.

        Raises:
            BinaryNotFoundError: If the binary is not found.
        """
        self._runner = runner
        self._binary = self._find_binary(binary_path)
        self._log = logger.bind(binary=self._binary)
        self._log.debug(f"{self._binary_name}_client_initialized")

    @property
    def binary(self) -> str:
        """Resolved path of the wrapped binary."""
        return self._binary

    @property
    def runner(self) -> ProcessRunner:
        """Process runner used by this wrapper."""
        return self._runner

    def _find_binary(self, binary_path: str | None) -> str:
        """Locate the binary.

        Args:
            binary_path: Explicit path or None to search PATH.

        Returns:
            Path to the binary.

        Raises:
            BinaryNotFoundError: If not found.
        """
        if binary_path:
            path = Path(binary_path)
            if path.exists():
                return str(path.resolve())
            found = shutil.which(binary_path)
            if not found:
                raise BinaryNotFoundError(binary_path, self._install_hint)
            return found

        found = shutil.which(self._binary_name)
        if not found:
            raise BinaryNotFoundError(self._binary_name, self._install_hint)
        return found

    def _global_args(self) -> list[str]:
        """Arguments prepended to every invocation."""
        return []

    async def _run(
        self,
        args: Sequence[str],
        stdin: str | None = None,
        cwd: str | None = None,
    ) -> ProcessResult:
        """Run the binary with ``args``, optionally inside ``cwd``.

        Raises:
            SpawnError: If the binary cannot be launched.
            ProcessError: On non-zero exit.
        """
        return await self._runner.run(
            self._binary, [*self._global_args(), *args], stdin=stdin, cwd=cwd
        )
