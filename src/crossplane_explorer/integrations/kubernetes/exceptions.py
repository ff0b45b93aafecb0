"""Explorer integration custom exceptions."""

from __future__ import annotations

from collections.abc import Sequence

PERMISSION_MARKERS = ("forbidden", "permission")


class ExplorerError(Exception):
    """Base exception for explorer operations.

    Attributes:
        message: Human-readable error message.
        resource_kind: Kind or resource type involved (e.g., "providers").
        resource_name: Name of the resource involved.
        namespace: Namespace of the resource (if applicable).
    """

    def __init__(
        self,
        message: str,
        resource_kind: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        """Initialize ExplorerError.

        Args:
            message: Human-readable error message.
            resource_kind: Kind or resource type involved.
            resource_name: Name of the resource involved.
            namespace: Namespace of the resource.
        """
        super().__init__(message)
        self.message = message
        self.resource_kind = resource_kind
        self.resource_name = resource_name
        self.namespace = namespace

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]
        if self.resource_kind and self.resource_name:
            loc = f"[{self.resource_kind}/{self.resource_name}"
            if self.namespace:
                loc += f" in {self.namespace}"
            loc += "]"
            parts.append(loc)
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Process boundary
# ---------------------------------------------------------------------------


class SpawnError(ExplorerError):
    """Raised when an external executable cannot be launched."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message=message)
        self.command = command
        self.original_error = original_error


class BinaryNotFoundError(SpawnError):
    """Raised when a required CLI binary is not found in PATH."""

    def __init__(self, binary: str, install_hint: str | None = None) -> None:
        message = f"{binary} binary not found in PATH."
        if install_hint:
            message += f" Install from: {install_hint}"
        super().__init__(message=message, command=binary)
        self.binary = binary
        self.install_hint = install_hint


class ProcessError(ExplorerError):
    """Raised when a subprocess runs and exits with a non-zero status.

    Attributes:
        exit_code: Process exit code (None when the process was killed).
        stderr: Captured error stream text.
        stdout: Captured output stream text.
        command: The argv that was executed.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str = "",
        stdout: str = "",
        command: Sequence[str] | None = None,
    ) -> None:
        super().__init__(message=message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        self.command = list(command) if command else []


class PermissionDeniedError(ProcessError):
    """Raised when the cluster rejects an operation for lack of permissions."""


class GenericCommandError(ProcessError):
    """Raised when a mutating command fails for any non-permission reason."""


class ProcessTimeoutError(ProcessError):
    """Raised when a subprocess exceeds the configured timeout and is killed."""

    def __init__(
        self,
        timeout_seconds: float,
        command: Sequence[str] | None = None,
    ) -> None:
        super().__init__(
            message=f"Command timed out after {timeout_seconds}s",
            command=command,
        )
        self.timeout_seconds = timeout_seconds


class HelmCommandError(ProcessError):
    """Raised when a helm command fails."""


# ---------------------------------------------------------------------------
# Session and watch errors
# ---------------------------------------------------------------------------


class AmbiguousTargetError(ExplorerError):
    """Raised when a get resolves to a list wrapper instead of a single object."""

    def __init__(
        self,
        message: str = "Selected item is not a single resource. Please select a specific object.",
        resource_kind: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            resource_kind=resource_kind,
            resource_name=resource_name,
            namespace=namespace,
        )


class ParseError(ExplorerError):
    """Raised when command output or document text is not valid JSON/YAML."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message=message)
        self.original_error = original_error


class VerificationMismatch(ExplorerError):
    """Raised when a post-apply read does not reflect the submitted change."""


class WatchResolutionError(ExplorerError):
    """Raised when the type definition for a watched kind cannot be resolved."""

    def __init__(
        self,
        definition_name: str,
        original_error: Exception | None = None,
    ) -> None:
        message = f"Could not fetch CRD details for {definition_name}"
        if original_error is not None:
            message += f": {original_error}"
        super().__init__(message=message, resource_kind="crd", resource_name=definition_name)
        self.definition_name = definition_name
        self.original_error = original_error


class CleanupError(ExplorerError):
    """Raised when a temp file or directory cannot be removed."""

    def __init__(self, path: str, original_error: Exception | None = None) -> None:
        message = f"Failed to clean up {path}"
        if original_error is not None:
            message += f": {original_error}"
        super().__init__(message=message)
        self.path = path
        self.original_error = original_error


# ---------------------------------------------------------------------------
# Composition workflow errors
# ---------------------------------------------------------------------------


class CrdDownloadError(ExplorerError):
    """Raised when a provider CRD file cannot be downloaded.

    Attributes:
        url: The URL that was requested.
        status_code: HTTP status, or None when no response was received.
    """

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message=message)
        self.url = url
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def is_permission_denied(stderr: str) -> bool:
    """Return True when stderr carries a permission-denial marker."""
    lowered = stderr.lower()
    return any(marker in lowered for marker in PERMISSION_MARKERS)


def classify_command_error(error: ProcessError) -> ProcessError:
    """Map a raw ProcessError onto the permission or generic subclass.

    Args:
        error: The failure raised by the process runner.

    Returns:
        A PermissionDeniedError or GenericCommandError carrying the same
        exit code and streams.
    """
    if isinstance(error, PermissionDeniedError | GenericCommandError):
        return error
    cls = PermissionDeniedError if is_permission_denied(error.stderr) else GenericCommandError
    return cls(
        message=error.message,
        exit_code=error.exit_code,
        stderr=error.stderr,
        stdout=error.stdout,
        command=error.command,
    )
