"""Unit tests for the Kubernetes watch transport."""

from __future__ import annotations

import asyncio
import threading
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError
from crossplane_explorer.integrations.kubernetes.watch_client import (
    KubernetesWatchClient,
    ResourceDefinition,
    WatchEvent,
    WatchEventType,
    WatchSubscription,
    definition_name,
)

CRD = {
    "metadata": {"name": "xnetworks.example.org"},
    "spec": {
        "group": "example.org",
        "names": {"plural": "xnetworks"},
        "scope": "Namespaced",
        "versions": [
            {"name": "v1alpha1", "served": True, "storage": False},
            {"name": "v1", "served": True, "storage": True},
        ],
    },
}


def _obj(rv: str, **spec: Any) -> dict[str, Any]:
    return {"metadata": {"name": "net-1", "resourceVersion": rv}, "spec": spec}


class FakeWatch:
    """Stand-in for kubernetes.watch.Watch.

    Each stream yields the scripted events, then raises ``error`` if set
    or blocks until stopped.
    """

    def __init__(
        self,
        events: list[dict[str, Any]],
        calls: list[dict[str, Any]],
        error: Exception | None = None,
    ) -> None:
        self._events = events
        self._calls = calls
        self._error = error
        self._stopped = threading.Event()

    def stream(self, fn: Any, **kwargs: Any) -> Any:
        self._calls.append(kwargs)
        yield from self._events
        if self._error is not None:
            raise self._error
        self._stopped.wait(5)

    def stop(self) -> None:
        self._stopped.set()


async def _next(subscription: WatchSubscription) -> WatchEvent:
    return await asyncio.wait_for(subscription.__anext__(), timeout=5)


# ===========================================================================
# Definitions
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestResourceDefinition:
    """Tests for CRD name derivation and parsing."""

    @pytest.mark.parametrize(
        ("resource_type", "expected"),
        [
            ("xnetwork.example.org", "xnetworks.example.org"),
            ("Bucket.s3.aws.upbound.io", "buckets.s3.aws.upbound.io"),
            ("pod", "pods"),
        ],
    )
    def test_definition_name(self, resource_type: str, expected: str) -> None:
        """The kind is lower-cased and pluralised with s."""
        assert definition_name(resource_type) == expected

    def test_from_crd_prefers_storage_version(self) -> None:
        """The served storage version is chosen."""
        definition = ResourceDefinition.from_crd(CRD)
        assert definition.version == "v1"
        assert definition.plural == "xnetworks"
        assert definition.namespaced

    def test_from_crd_incomplete(self) -> None:
        """A definition without versions is rejected."""
        with pytest.raises(ValueError):
            ResourceDefinition.from_crd({"spec": {"group": "g", "names": {"plural": "p"}}})

    def test_collection_path(self) -> None:
        """Namespaced types include the namespace segment."""
        definition = ResourceDefinition.from_crd(CRD)
        assert definition.collection_path("team-a") == (
            "/apis/example.org/v1/namespaces/team-a/xnetworks"
        )
        cluster = ResourceDefinition("x", "example.org", "v1", "xthings")
        assert cluster.collection_path("team-a") == "/apis/example.org/v1/xthings"

    def test_event_resource_version(self) -> None:
        """Events expose the object's resourceVersion."""
        assert WatchEvent(WatchEventType.ADDED, object=_obj("7")).resource_version == "7"
        assert WatchEvent(WatchEventType.ERROR, error="x").resource_version is None


# ===========================================================================
# Subscription
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestWatchSubscription:
    """Tests for WatchSubscription."""

    @pytest.mark.asyncio
    async def test_yields_events_and_skips_bookmarks(self) -> None:
        """Known event types are yielded; bookmarks are not."""
        calls: list[dict[str, Any]] = []
        events = [
            {"type": "ADDED", "raw_object": _obj("1", size=1)},
            {"type": "BOOKMARK", "raw_object": _obj("2")},
            {"type": "MODIFIED", "raw_object": _obj("3", size=2)},
        ]
        subscription = WatchSubscription(
            MagicMock(),
            "metadata.name=net-1",
            timeout_seconds=60,
            watch_factory=lambda: FakeWatch(events, calls),
        )
        try:
            first = await _next(subscription)
            second = await _next(subscription)
        finally:
            subscription.cancel()

        assert first.type is WatchEventType.ADDED
        assert second.type is WatchEventType.MODIFIED
        assert second.resource_version == "3"
        assert calls[0] == {"field_selector": "metadata.name=net-1", "timeout_seconds": 60}

    @pytest.mark.asyncio
    async def test_server_error_carries_status_message(self) -> None:
        """An ERROR event from the server exposes the Status message."""
        status = {"kind": "Status", "code": 500, "message": "etcdserver: request timed out"}
        subscription = WatchSubscription(
            MagicMock(),
            "metadata.name=net-1",
            watch_factory=lambda: FakeWatch(
                [
                    {"type": "ERROR", "raw_object": status},
                    {"type": "ERROR", "raw_object": {"code": 410}},
                ],
                [],
            ),
        )
        try:
            first = await _next(subscription)
            second = await _next(subscription)
        finally:
            subscription.cancel()

        assert first.type is WatchEventType.ERROR
        assert first.error == "etcdserver: request timed out"
        assert first.object == status
        assert second.error == "{'code': 410}"

    @pytest.mark.asyncio
    async def test_cancel_ends_iteration(self) -> None:
        """Nothing is yielded after cancel."""
        subscription = WatchSubscription(
            MagicMock(), "metadata.name=x", watch_factory=lambda: FakeWatch([], [])
        )
        subscription.cancel()
        subscription.cancel()
        assert subscription.cancelled
        with pytest.raises(StopAsyncIteration):
            await _next(subscription)

    @pytest.mark.asyncio
    async def test_reconnects_from_last_resource_version(self) -> None:
        """A stream failure is reported and the next stream resumes."""
        calls: list[dict[str, Any]] = []
        watches = iter([
            FakeWatch([{"type": "ADDED", "raw_object": _obj("5")}], calls, RuntimeError("boom")),
            FakeWatch([{"type": "MODIFIED", "raw_object": _obj("6")}], calls),
        ])
        subscription = WatchSubscription(
            MagicMock(), "metadata.name=net-1", watch_factory=lambda: next(watches)
        )
        try:
            added = await _next(subscription)
            error = await _next(subscription)
            modified = await _next(subscription)
        finally:
            subscription.cancel()

        assert added.type is WatchEventType.ADDED
        assert error.type is WatchEventType.ERROR
        assert error.error == "boom"
        assert modified.type is WatchEventType.MODIFIED
        assert calls[1]["resource_version"] == "5"


# ===========================================================================
# Client
# ===========================================================================


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesWatchClient:
    """Tests for KubernetesWatchClient."""

    @pytest.mark.asyncio
    async def test_resolve_definition(self) -> None:
        """The CRD is read by its derived name."""
        client = KubernetesWatchClient()
        api = MagicMock()
        api.read_custom_resource_definition.return_value = CRD
        client._apiextensions_v1 = api

        with patch("kubernetes.client.ApiClient") as api_client:
            api_client.return_value.sanitize_for_serialization.side_effect = lambda obj: obj
            definition = await client.resolve_definition("xnetwork.example.org")

        api.read_custom_resource_definition.assert_called_once_with("xnetworks.example.org")
        assert definition.version == "v1"

    @pytest.mark.asyncio
    async def test_resolve_definition_failure(self) -> None:
        """Lookup failures raise WatchResolutionError."""
        client = KubernetesWatchClient()
        api = MagicMock()
        api.read_custom_resource_definition.side_effect = RuntimeError("404 Not Found")
        client._apiextensions_v1 = api

        with pytest.raises(WatchResolutionError) as exc_info:
            await client.resolve_definition("xnetwork.example.org")
        assert exc_info.value.definition_name == "xnetworks.example.org"

    @pytest.mark.asyncio
    async def test_subscribe_namespaced(self) -> None:
        """Namespaced definitions watch the namespaced collection."""
        calls: list[dict[str, Any]] = []
        client = KubernetesWatchClient(watch_factory=lambda: FakeWatch([], calls))

        api = MagicMock()
        client._custom_objects = api

        subscription = client.subscribe(ResourceDefinition.from_crd(CRD), "net-1", "team-a")
        subscription.cancel()
        subscription._list_fn(watch=True)

        api.list_namespaced_custom_object.assert_called_once_with(
            "example.org", "v1", "team-a", "xnetworks", watch=True
        )
        api.list_cluster_custom_object.assert_not_called()
