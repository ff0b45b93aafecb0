"""Base class for explorer services.

Provides the shared concerns of every service: the shell used for
notifications and a logger bound to the service entity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from crossplane_explorer.integrations.kubernetes.exceptions import (
    ExplorerError,
    PermissionDeniedError,
)

if TYPE_CHECKING:
    from crossplane_explorer.services.explorer.shell import ExplorerShell

logger = structlog.get_logger()


class ExplorerService:
    """Base class for explorer services.

    Subclasses set ``_entity_name`` for structured log context.

    Example:
        >>> class LogTailManager(ExplorerService):
        ...     _entity_name = "log_tail"
    """

    _entity_name: str = ""

    def __init__(self, shell: ExplorerShell) -> None:
        """Initialize the service.

        Args:
            shell: Host shell receiving notifications.
        """
        self._shell = shell
        self._log = logger.bind(entity=self._entity_name)

    @property
    def shell(self) -> ExplorerShell:
        """Host shell receiving notifications."""
        return self._shell

    def _report_failure(self, prefix: str, error: ExplorerError) -> None:
        """Log a failed operation and surface it as an error notification.

        Permission denials are reported with their stderr text.
        """
        self._log.warning(
            "operation_failed",
            operation=prefix,
            error_type=type(error).__name__,
            error=str(error),
        )
        if isinstance(error, PermissionDeniedError):
            self._shell.show_error(f"Permission denied: {error.stderr.strip() or error.message}")
        else:
            self._shell.show_error(f"{prefix}: {error.message}")
