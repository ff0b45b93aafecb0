"""Live field watch: structural diffs between successive object states.

The diff helpers are pure functions; FieldWatchManager owns the
identity -> stop-function and identity -> sink maps and consumes one
watch subscription per watched resource.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError
from crossplane_explorer.integrations.kubernetes.models.identity import (
    ResourceIdentity,
    SessionMode,
)
from crossplane_explorer.integrations.kubernetes.watch_client import (
    WatchEvent,
    WatchEventType,
)
from crossplane_explorer.services.explorer.base import ExplorerService

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.watch_client import (
        KubernetesWatchClient,
        WatchSubscription,
    )
    from crossplane_explorer.services.explorer.shell import ExplorerShell, OutputSink

INDENT = "  "
NOISY_METADATA_KEYS = ("managedFields", "resourceVersion", "creationTimestamp", "generation", "uid")

ALREADY_RUNNING = "[INFO] Field Watch is already running for this resource."
STOPPED = "[INFO] Field Watch stopped."
NOT_RUNNING = "No active Field Watch for this resource."

PathSegment = str | int


# ---------------------------------------------------------------------------
# Cleaning and diffing
# ---------------------------------------------------------------------------


def clean_object(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``obj`` without fields that churn on every reconcile.

    Idempotent: ``clean_object(clean_object(x)) == clean_object(x)``.
    """
    clean = copy.deepcopy(obj)
    metadata = clean.get("metadata")
    if isinstance(metadata, dict):
        for key in NOISY_METADATA_KEYS:
            metadata.pop(key, None)
    status = clean.get("status")
    if isinstance(status, dict):
        status.pop("conditions", None)
    return clean


class ChangeKind(StrEnum):
    """Kind of change at one leaf path."""

    EDITED = "E"
    NEW = "N"
    DELETED = "D"


@dataclass(frozen=True)
class FieldChange:
    """A single leaf-level difference."""

    kind: ChangeKind
    path: tuple[PathSegment, ...]
    old: Any = None
    new: Any = None


_MISSING: Any = object()


def _children(value: Any) -> list[tuple[PathSegment, Any]]:
    if isinstance(value, dict):
        return list(value.items())
    return list(enumerate(value))


def _is_branch(value: Any) -> bool:
    # Empty containers are leaves so that {} -> {"a": 1} and {} -> [] both register.
    return isinstance(value, dict | list) and len(value) > 0


def _same(old: Any, new: Any) -> bool:
    return type(old) is type(new) and old == new


def _walk(old: Any, new: Any, path: tuple[PathSegment, ...], out: list[FieldChange]) -> None:
    if old is _MISSING:
        if _is_branch(new):
            for key, child in _children(new):
                _walk(_MISSING, child, (*path, key), out)
        else:
            out.append(FieldChange(ChangeKind.NEW, path, new=new))
        return

    if new is _MISSING:
        if _is_branch(old):
            for key, child in _children(old):
                _walk(child, _MISSING, (*path, key), out)
        else:
            out.append(FieldChange(ChangeKind.DELETED, path, old=old))
        return

    if isinstance(old, dict) and isinstance(new, dict) and (old or new):
        keys = [*old, *(key for key in new if key not in old)]
        for key in keys:
            _walk(old.get(key, _MISSING), new.get(key, _MISSING), (*path, key), out)
        return

    if isinstance(old, list) and isinstance(new, list) and (old or new):
        for index in range(max(len(old), len(new))):
            _walk(
                old[index] if index < len(old) else _MISSING,
                new[index] if index < len(new) else _MISSING,
                (*path, index),
                out,
            )
        return

    if not _same(old, new):
        out.append(FieldChange(ChangeKind.EDITED, path, old=old, new=new))


def diff_objects(old: Any, new: Any) -> list[FieldChange]:
    """Compute leaf-level changes from ``old`` to ``new``.

    Dicts are compared by key and lists by index; added or removed
    subtrees are expanded down to their leaves.
    """
    changes: list[FieldChange] = []
    _walk(old, new, (), changes)
    return changes


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str, ensure_ascii=False)


def _segment(segment: PathSegment) -> str:
    return f"[{segment}]" if isinstance(segment, int) else segment


def _change_line(change: FieldChange) -> str:
    if change.kind is ChangeKind.EDITED:
        return f"~ {_to_json(change.old)} → {_to_json(change.new)}"
    if change.kind is ChangeKind.NEW:
        return f"+ {_to_json(change.new)}"
    return f"- {_to_json(change.old)}"


def render_diff(changes: Sequence[FieldChange]) -> list[str]:
    """Render changes as an indented tree.

    Parent keys are printed once per new branch; each leaf key is
    followed by its change line one level deeper.
    """
    lines: list[str] = []
    printed: tuple[PathSegment, ...] = ()
    for change in changes:
        if not change.path:
            lines.append(_change_line(change))
            continue
        parent = change.path[:-1]
        shared = 0
        while shared < min(len(printed), len(parent)) and printed[shared] == parent[shared]:
            shared += 1
        for depth in range(shared, len(parent)):
            lines.append(f"{INDENT * depth}{_segment(parent[depth])}:")
        printed = parent

        depth = len(parent)
        lines.append(f"{INDENT * depth}{_segment(change.path[-1])}:")
        lines.append(f"{INDENT * (depth + 1)}{_change_line(change)}")
    return lines


def render_event(
    event: WatchEvent,
    previous: dict[str, Any] | None,
) -> tuple[list[str], dict[str, Any] | None]:
    """Render one watch event against the previous snapshot.

    Returns:
        The output lines (empty when nothing changed after cleaning) and
        the snapshot to keep for the next event.
    """
    header = f"# [{event.type.value}] event (resourceVersion: {event.resource_version or '-'})"
    if event.type is WatchEventType.DELETED:
        changes = diff_objects(previous or {}, {})
        preamble, snapshot = ["# Resource deleted"], None
    else:
        current = clean_object(event.object or {})
        if event.type is WatchEventType.ADDED:
            changes = diff_objects({}, current)
            preamble = ["# Baseline diff (initial state):"]
        else:
            changes = diff_objects(previous or {}, current)
            preamble = []
        snapshot = current

    body = render_diff(changes)
    if not body:
        return [], snapshot
    return [header, *preamble, *body, ""], snapshot


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class WatchState(StrEnum):
    """Lifecycle state of a field watch."""

    STOPPED = "stopped"
    STARTING = "starting"
    WATCHING = "watching"


class FieldWatchManager(ExplorerService):
    """Starts and stops at most one field watch per resource.

    Args:
        watch_client: Kubernetes watch transport.
        shell: Host shell creating the output sinks.
    """

    _entity_name = "field_watch"

    def __init__(self, watch_client: KubernetesWatchClient, shell: ExplorerShell) -> None:
        super().__init__(shell)
        self._watch_client = watch_client
        self._stoppers: dict[ResourceIdentity, Callable[[], None]] = {}
        self._sinks: dict[ResourceIdentity, OutputSink] = {}
        self._tasks: dict[ResourceIdentity, asyncio.Task[None]] = {}
        self._starting: set[ResourceIdentity] = set()

    @staticmethod
    def _key(identity: ResourceIdentity) -> ResourceIdentity:
        return identity.with_mode(SessionMode.NONE)

    def state(self, identity: ResourceIdentity) -> WatchState:
        """Return the watch state of ``identity``."""
        key = self._key(identity)
        if key in self._starting:
            return WatchState.STARTING
        if key in self._stoppers:
            return WatchState.WATCHING
        return WatchState.STOPPED

    @property
    def active(self) -> list[ResourceIdentity]:
        """Identities with a starting or running watch."""
        return list(self._sinks)

    async def start(self, identity: ResourceIdentity) -> bool:
        """Start watching ``identity``.

        A start while a watch is already starting or running shows the
        existing sink with a notice and returns False.

        Returns:
            True if a new watch was started.

        Raises:
            WatchResolutionError: If the resource type cannot be resolved.
                No subscription is created and both maps are cleared.
        """
        key = self._key(identity)
        existing = self._sinks.get(key)
        if existing is not None:
            existing.show()
            existing.append_line(ALREADY_RUNNING)
            return False

        sink = self._shell.create_sink(f"Field Watch: {key.name}")
        self._sinks[key] = sink
        self._starting.add(key)
        sink.show()
        header = f"# Field Watch for {key.kind} {key.name}"
        if key.namespace:
            header += f" -n {key.namespace}"
        sink.append_line(header)
        sink.append_line("")

        try:
            definition = await self._watch_client.resolve_definition(key.kind)
        except WatchResolutionError as e:
            sink.append_line(f"[ERROR] {e.message}")
            sink.append_line("Try running 'kubectl get crd' to see available CRDs.")
            self._starting.discard(key)
            self._sinks.pop(key, None)
            self._log.warning("field_watch_resolution_failed", identity=key.watch_key)
            raise

        if key not in self._starting:
            # Stopped while the definition was being resolved.
            return False

        subscription = self._watch_client.subscribe(definition, key.name, key.namespace or None)
        self._starting.discard(key)
        self._stoppers[key] = subscription.cancel
        task = asyncio.create_task(self._consume(key, subscription, sink))
        task.add_done_callback(functools.partial(self._on_consume_done, key))
        self._tasks[key] = task
        self._log.info(
            "field_watch_started",
            identity=key.watch_key,
            path=definition.collection_path(key.namespace or None),
        )
        return True

    async def _consume(
        self,
        key: ResourceIdentity,
        subscription: WatchSubscription,
        sink: OutputSink,
    ) -> None:
        previous: dict[str, Any] | None = None
        async for event in subscription:
            if event.type is WatchEventType.ERROR:
                sink.append_line(f"[ERROR] Watch error: {event.error}")
                continue
            lines, previous = render_event(event, previous)
            for line in lines:
                sink.append_line(line)
        self._log.debug("field_watch_stream_ended", identity=key.watch_key)

    def _on_consume_done(self, key: ResourceIdentity, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        self._log.error("field_watch_failed", identity=key.watch_key, error=str(error))
        if self._tasks.get(key) is not task:
            return
        del self._tasks[key]
        stopper = self._stoppers.pop(key, None)
        if stopper is not None:
            stopper()
        sink = self._sinks.pop(key, None)
        if sink is not None:
            sink.append_line(f"[ERROR] Field Watch failed: {error}")

    async def wait(self, identity: ResourceIdentity, timeout: float | None = None) -> None:
        """Wait until the event stream of ``identity`` ends or ``timeout`` passes."""
        task = self._tasks.get(self._key(identity))
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)

    def stop(self, identity: ResourceIdentity) -> bool:
        """Stop the watch on ``identity``.

        No further output reaches the sink once this returns.

        Returns:
            False (with an info notification) if nothing was running.
        """
        key = self._key(identity)
        if key in self._starting:
            self._starting.discard(key)
        else:
            stopper = self._stoppers.pop(key, None)
            if stopper is None:
                self._shell.show_info(NOT_RUNNING)
                return False
            stopper()
            task = self._tasks.pop(key, None)
            if task is not None:
                task.cancel()

        sink = self._sinks.pop(key, None)
        if sink is not None:
            sink.append_line(STOPPED)
            sink.dispose()
        self._log.info("field_watch_stopped", identity=key.watch_key)
        return True

    def stop_all(self) -> None:
        """Stop every running or starting watch."""
        for key in list(self._sinks):
            self.stop(key)
