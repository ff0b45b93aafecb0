"""Temp-file backed view/edit sessions.

A session maps a ResourceIdentity (including its mode) to a local YAML
file in its own temp directory. Saving an edit-mode file applies it with
server-side apply; closing the file removes it and forgets the session.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from crossplane_explorer.integrations.kubernetes.exceptions import (
    AmbiguousTargetError,
    CleanupError,
    ExplorerError,
    ParseError,
    PermissionDeniedError,
    VerificationMismatch,
)
from crossplane_explorer.integrations.kubernetes.models.identity import (
    LIST_KIND,
    ResourceIdentity,
    SessionMode,
    classify_kind,
    resource_type_for,
)
from crossplane_explorer.services.explorer.base import ExplorerService
from crossplane_explorer.services.explorer.shell import TempFileStore

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
    from crossplane_explorer.services.explorer.shell import ExplorerShell

VIEW_BANNER = "# VIEW MODE: This file is read-only"
EDIT_BANNER = "# EDIT MODE: You can edit and apply changes to this resource"

LAST_APPLIED_ANNOTATION = "kubectl.kubernetes.io/last-applied-configuration"
VOLATILE_METADATA_KEYS = ("uid", "resourceVersion", "creationTimestamp", "managedFields")


def sanitize_resource(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``obj`` without server-managed fields.

    Removes ``metadata.uid``, ``resourceVersion``, ``creationTimestamp``,
    ``managedFields``, the last-applied-configuration annotation and the
    whole ``status`` subtree. ``obj`` itself is never modified.
    """
    clean = copy.deepcopy(obj)
    metadata = clean.get("metadata")
    if isinstance(metadata, dict):
        for key in VOLATILE_METADATA_KEYS:
            metadata.pop(key, None)
        annotations = metadata.get("annotations")
        if isinstance(annotations, dict):
            annotations.pop(LAST_APPLIED_ANNOTATION, None)
            if not annotations:
                del metadata["annotations"]
    clean.pop("status", None)
    return clean


def session_filename(identity: ResourceIdentity) -> str:
    """Return ``<kind>-<name>-<mode>.yaml``."""
    return f"{identity.kind}-{identity.name}-{identity.mode.value}.yaml"


class SessionState(StrEnum):
    """Lifecycle state of one identity+mode."""

    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


class ApplyOutcome(StrEnum):
    """Result of handling a document save."""

    IGNORED = "ignored"
    READ_ONLY = "read_only"
    INVALID = "invalid"
    DENIED = "denied"
    FAILED = "failed"
    UNVERIFIED = "unverified"
    APPLIED = "applied"


_OPPOSITE_MODE = {SessionMode.VIEW: SessionMode.EDIT, SessionMode.EDIT: SessionMode.VIEW}


class EditSessionManager(ExplorerService):
    """Owns the identity <-> temp file maps for view and edit sessions.

    Args:
        kubectl: kubectl wrapper used to fetch and apply.
        shell: Host shell for documents and notifications.
        store: Temp file store (a fresh one by default).
        on_applied: Called after a successful apply, typically a tree refresh.
        verify_after_apply: Re-read the object after apply and compare specs.
    """

    _entity_name = "edit_session"

    def __init__(
        self,
        kubectl: KubectlClient,
        shell: ExplorerShell,
        store: TempFileStore | None = None,
        on_applied: Callable[[], None] | None = None,
        verify_after_apply: bool = True,
    ) -> None:
        super().__init__(shell)
        self._kubectl = kubectl
        self._store = store or TempFileStore()
        self._on_applied = on_applied
        self._verify_after_apply = verify_after_apply
        self._files: dict[ResourceIdentity, Path] = {}
        self._identities: dict[Path, ResourceIdentity] = {}
        self._opening: set[ResourceIdentity] = set()

    @property
    def files(self) -> dict[ResourceIdentity, Path]:
        """Snapshot of identity -> file for open sessions."""
        return dict(self._files)

    @property
    def identities(self) -> dict[Path, ResourceIdentity]:
        """Snapshot of file -> identity for open sessions."""
        return dict(self._identities)

    def session_state(self, identity: ResourceIdentity) -> SessionState:
        """Return the lifecycle state of ``identity`` (mode included)."""
        if identity in self._opening:
            return SessionState.OPENING
        if identity in self._files:
            return SessionState.OPEN
        return SessionState.CLOSED

    def identity_for(self, path: Path) -> ResourceIdentity | None:
        """Return the identity backed by ``path``, if tracked."""
        return self._identities.get(path)

    # -----------------------------------------------------------------------
    # Open
    # -----------------------------------------------------------------------

    async def open_resource(self, identity: ResourceIdentity) -> Path | None:
        """Open ``identity`` in its mode, reusing an existing session.

        Args:
            identity: Resource identity with mode VIEW or EDIT.

        Returns:
            The session file, or None when an open for the same identity
            is already in flight.

        Raises:
            ValueError: If the identity has no session mode.
            AmbiguousTargetError: If the get returned a list wrapper.
            ParseError: If kubectl returned unparseable YAML.
            ProcessError: If the get failed.
            SpawnError: If kubectl could not be launched.
        """
        if identity.mode not in _OPPOSITE_MODE:
            raise ValueError(f"Cannot open a session with mode {identity.mode.value!r}")
        read_only = identity.mode is SessionMode.VIEW

        existing = self._files.get(identity)
        if existing is not None:
            try:
                if self._store.exists(existing):
                    self._shell.open_document(existing, read_only=read_only)
                    self._log.debug("session_reused", identity=identity.watch_key)
                    return existing
            except OSError as e:
                self._log.info("session_reopen_failed", path=str(existing), error=str(e))
            self._forget(existing)

        if identity in self._opening:
            self._log.debug("session_open_in_flight", identity=identity.watch_key)
            return None

        self._opening.add(identity)
        try:
            content = await self._render(identity)
            opposite = identity.with_mode(_OPPOSITE_MODE[identity.mode])
            if opposite in self._files:
                self.close_session(opposite)
            path = self._store.write(session_filename(identity), content)
            self._files[identity] = path
            self._identities[path] = identity
        finally:
            self._opening.discard(identity)

        self._log.info(
            "session_opened",
            identity=identity.watch_key,
            mode=identity.mode.value,
            path=str(path),
        )
        self._shell.open_document(path, read_only=read_only)
        return path

    async def _render(self, identity: ResourceIdentity) -> str:
        kind_class = classify_kind(identity.kind)
        text = await self._kubectl.get_text(
            kind_class.target_args(identity.name),
            namespace=identity.namespace or None,
        )
        try:
            obj = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParseError(f"Failed to parse resource YAML: {e}", original_error=e) from e
        if not isinstance(obj, dict):
            raise ParseError("Resource YAML is not a mapping")
        if obj.get("kind") == LIST_KIND:
            raise AmbiguousTargetError(
                resource_kind=identity.kind,
                resource_name=identity.name,
                namespace=identity.namespace or None,
            )

        if identity.mode is SessionMode.VIEW:
            return f"{VIEW_BANNER}\n{text}"
        body = yaml.safe_dump(sanitize_resource(obj), default_flow_style=False, sort_keys=False)
        return f"{EDIT_BANNER}\n{body}"

    async def request_open(self, identity: ResourceIdentity) -> Path | None:
        """Open ``identity``, converting failures into notifications."""
        try:
            return await self.open_resource(identity)
        except AmbiguousTargetError as e:
            self._log.info("ambiguous_open_target", identity=identity.watch_key)
            self._shell.show_error(e.message)
        except ExplorerError as e:
            self._report_failure("Failed to get resource YAML", e)
        except OSError as e:
            self._log.warning("document_open_failed", error=str(e))
            self._shell.show_error(f"Failed to open document: {e}")
        return None

    # -----------------------------------------------------------------------
    # Save
    # -----------------------------------------------------------------------

    async def on_document_saved(self, path: Path, text: str) -> ApplyOutcome:
        """Validate and apply a saved session document.

        Never raises; every outcome is notified through the shell.
        """
        identity = self._identities.get(path)
        if identity is None:
            return ApplyOutcome.IGNORED
        if identity.mode is SessionMode.VIEW:
            self._shell.show_warning(
                "This file is read-only. Open the resource in edit mode to apply changes."
            )
            return ApplyOutcome.READ_ONLY

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            self._shell.show_error(f"YAML Error: {e}")
            return ApplyOutcome.INVALID
        if not isinstance(document, dict):
            self._shell.show_error("YAML Error: document must be a single mapping")
            return ApplyOutcome.INVALID

        try:
            await self._kubectl.apply(text)
        except PermissionDeniedError as e:
            self._log.info("apply_denied", identity=identity.watch_key)
            self._shell.show_error(f"Permission denied: {e.stderr.strip() or e.message}")
            return ApplyOutcome.DENIED
        except ExplorerError as e:
            self._log.warning("apply_failed", identity=identity.watch_key, error=str(e))
            self._shell.show_error(f"Failed to apply changes: {e.message}")
            return ApplyOutcome.FAILED

        if self._verify_after_apply:
            try:
                await self._verify(identity, document)
            except VerificationMismatch as e:
                self._log.info("apply_not_reflected", identity=identity.watch_key)
                self._shell.show_warning(e.message)
                return ApplyOutcome.UNVERIFIED
            except (ExplorerError, yaml.YAMLError) as e:
                self._log.info("apply_verification_failed", error=str(e))
                self._shell.show_warning("Could not verify if the resource was updated.")

        self._log.info("apply_success", identity=identity.watch_key)
        self._shell.show_info(f"Successfully applied changes to {path.name}")
        if self._on_applied is not None:
            self._on_applied()
        return ApplyOutcome.APPLIED

    async def _verify(self, identity: ResourceIdentity, document: dict[str, Any]) -> None:
        """Compare the submitted spec with the live one.

        Raises:
            VerificationMismatch: If the live spec differs.
        """
        metadata = document.get("metadata") or {}
        resource_type = resource_type_for(document.get("kind", ""), document.get("apiVersion", ""))
        live_text = await self._kubectl.get_text(
            [resource_type or identity.kind, metadata.get("name", identity.name)],
            namespace=metadata.get("namespace") or identity.namespace or None,
        )
        live = yaml.safe_load(live_text) or {}
        if live.get("spec") != document.get("spec"):
            raise VerificationMismatch(
                "Resource was not updated as expected. You may not have sufficient permissions.",
                resource_kind=identity.kind,
                resource_name=identity.name,
                namespace=identity.namespace or None,
            )

    # -----------------------------------------------------------------------
    # Close
    # -----------------------------------------------------------------------

    def _forget(self, path: Path) -> ResourceIdentity | None:
        identity = self._identities.pop(path, None)
        if identity is not None and self._files.get(identity) == path:
            del self._files[identity]
        return identity

    def on_document_closed(self, path: Path) -> bool:
        """Delete the session file and forget the session.

        Map entries are removed even when deletion fails; cleanup errors
        are logged only.

        Returns:
            True if ``path`` belonged to a session.
        """
        identity = self._forget(path)
        if identity is None:
            return False
        try:
            self._store.delete(path)
        except (CleanupError, OSError) as e:
            self._log.warning("session_cleanup_failed", path=str(path), error=str(e))
        else:
            self._log.info("session_closed", identity=identity.watch_key, mode=identity.mode.value)
        return True

    def close_session(self, identity: ResourceIdentity) -> bool:
        """Close the document of ``identity`` and clean up its session."""
        path = self._files.get(identity)
        if path is None:
            return False
        self._shell.close_document(path)
        return self.on_document_closed(path)

    def close_all(self) -> None:
        """Close every open session."""
        for identity in list(self._files):
            self.close_session(identity)
