"""Kubernetes API watch transport for the live field watch.

This is the only component that talks to the API server directly. CRD
lookups and the blocking watch stream from the official kubernetes
client run on worker threads; events are handed to the event loop
through a queue and consumed as an async iterator.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    wait_exponential,
)

from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError

if TYPE_CHECKING:
    from kubernetes.client import ApiextensionsV1Api, CustomObjectsApi

logger = structlog.get_logger()

DEFAULT_WATCH_TIMEOUT_SECONDS = 300
MAX_BACKOFF_SECONDS = 30
HTTP_GONE = 410


def definition_name(resource_type: str) -> str:
    """Return the CRD name for a ``kind[.group]`` type token.

    The kind is pluralised by appending ``s``.
    """
    kind, _, group = resource_type.partition(".")
    plural = f"{kind.lower()}s"
    return f"{plural}.{group}" if group else plural


@dataclass(frozen=True)
class ResourceDefinition:
    """Schema coordinates of a custom resource type."""

    name: str
    group: str
    version: str
    plural: str
    scope: str = "Cluster"

    @property
    def namespaced(self) -> bool:
        """True when objects of this type live in namespaces."""
        return self.scope == "Namespaced"

    def collection_path(self, namespace: str | None = None) -> str:
        """Return the REST collection path for the watch."""
        path = f"/apis/{self.group}/{self.version}"
        if self.namespaced and namespace:
            path += f"/namespaces/{namespace}"
        return f"{path}/{self.plural}"

    @classmethod
    def from_crd(cls, crd: dict[str, Any]) -> ResourceDefinition:
        """Build from a serialized CustomResourceDefinition.

        The served storage version is preferred, else the first listed.

        Raises:
            ValueError: If the definition lacks group, plural or versions.
        """
        spec = crd.get("spec") or {}
        group = spec.get("group")
        plural = (spec.get("names") or {}).get("plural")
        versions = spec.get("versions") or []
        if not group or not plural or not versions:
            raise ValueError("definition is missing group, plural or versions")
        chosen = next(
            (v for v in versions if v.get("served") and v.get("storage")),
            versions[0],
        )
        return cls(
            name=str((crd.get("metadata") or {}).get("name", f"{plural}.{group}")),
            group=str(group),
            version=str(chosen["name"]),
            plural=str(plural),
            scope=str(spec.get("scope", "Cluster")),
        )


class WatchEventType(StrEnum):
    """Event types yielded by a subscription."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class WatchEvent:
    """One change notification for the watched object."""

    type: WatchEventType
    object: dict[str, Any] | None = None
    error: str | None = None

    @property
    def resource_version(self) -> str | None:
        """``metadata.resourceVersion`` of the carried object."""
        if not self.object:
            return None
        return (self.object.get("metadata") or {}).get("resourceVersion")


_END = object()


class WatchSubscription:
    """Cancellable, single-use async iterator over watch events.

    The blocking stream runs on a daemon thread. It reconnects with
    exponential backoff, resuming from the last seen resourceVersion, and
    reports each failure as an ``ERROR`` event. Nothing is yielded after
    :meth:`cancel` returns.

    Args:
        list_fn: Bound list call from ``CustomObjectsApi`` with its
            positional coordinates already applied.
        field_selector: Selector restricting the watch to one object.
        timeout_seconds: Server-side timeout of a single stream.
        watch_factory: Factory for ``kubernetes.watch.Watch`` objects.
    """

    def __init__(
        self,
        list_fn: Callable[..., Any],
        field_selector: str,
        *,
        timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
        watch_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._list_fn = list_fn
        self._field_selector = field_selector
        self._timeout_seconds = timeout_seconds
        self._watch_factory = watch_factory or _default_watch_factory
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._stopped = threading.Event()
        self._cancelled = False
        self._resource_version: str | None = None
        self._watch: Any = None
        self._log = logger.bind(field_selector=field_selector)
        self._thread = threading.Thread(
            target=self._pump,
            name=f"field-watch-{field_selector}",
            daemon=True,
        )
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        """True once :meth:`cancel` has been called."""
        return self._cancelled

    def __aiter__(self) -> WatchSubscription:
        return self

    async def __anext__(self) -> WatchEvent:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END or self._cancelled:
            raise StopAsyncIteration
        return item

    def cancel(self) -> None:
        """Stop the subscription. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._stopped.set()
        if self._watch is not None:
            self._watch.stop()
        self._queue.put_nowait(_END)
        self._log.debug("watch_subscription_cancelled")

    # -----------------------------------------------------------------------
    # Worker thread
    # -----------------------------------------------------------------------

    def _publish(self, item: Any) -> None:
        # The loop may already be closed during interpreter shutdown.
        with contextlib.suppress(RuntimeError):
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def _should_stop(self, retry_state: RetryCallState) -> bool:
        return self._stopped.is_set()

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self._log.warning(
            "watch_stream_error",
            attempt=retry_state.attempt_number,
            error=str(error),
        )
        if not self._stopped.is_set():
            self._publish(WatchEvent(WatchEventType.ERROR, error=str(error)))

    def _pump(self) -> None:
        retrying = Retrying(
            retry=retry_if_exception_type(Exception),
            wait=wait_exponential(multiplier=1, min=1, max=MAX_BACKOFF_SECONDS),
            stop=self._should_stop,
            sleep=self._stopped.wait,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        try:
            while not self._stopped.is_set():
                retrying(self._stream_once)
        except Exception as e:
            if not self._stopped.is_set():
                self._publish(WatchEvent(WatchEventType.ERROR, error=str(e)))
        finally:
            self._publish(_END)

    def _stream_once(self) -> None:
        from kubernetes.client.exceptions import ApiException

        self._watch = self._watch_factory()
        kwargs: dict[str, Any] = {
            "field_selector": self._field_selector,
            "timeout_seconds": self._timeout_seconds,
        }
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version

        try:
            for event in self._watch.stream(self._list_fn, **kwargs):
                if self._stopped.is_set():
                    return
                obj = event.get("raw_object") or event.get("object")
                if not isinstance(obj, dict):
                    continue
                rv = (obj.get("metadata") or {}).get("resourceVersion")
                if rv:
                    self._resource_version = rv
                try:
                    event_type = WatchEventType(event.get("type", ""))
                except ValueError:
                    # BOOKMARK and unknown types only advance the resume point.
                    continue
                if event_type is WatchEventType.ERROR:
                    # The object is a Status; carry its message to subscribers.
                    self._publish(
                        WatchEvent(event_type, object=obj, error=obj.get("message") or str(obj))
                    )
                    continue
                self._publish(WatchEvent(event_type, object=obj))
        except ApiException as e:
            if e.status == HTTP_GONE:
                self._resource_version = None
            raise
        finally:
            self._watch.stop()


def _default_watch_factory() -> Any:
    from kubernetes import watch

    return watch.Watch()


class KubernetesWatchClient:
    """Watch transport backed by the official kubernetes client.

    Kubeconfig loading and API object creation are deferred until the
    first watch is started.

    Args:
        kubeconfig: Optional kubeconfig path.
        context: Optional kubeconfig context.
        timeout_seconds: Server-side timeout of each watch stream.
    """

    def __init__(
        self,
        *,
        kubeconfig: str | None = None,
        context: str | None = None,
        timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
        watch_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._kubeconfig = kubeconfig
        self._context = context
        self._timeout_seconds = timeout_seconds
        self._watch_factory = watch_factory
        self._config_loaded = False
        self._apiextensions_v1: ApiextensionsV1Api | None = None
        self._custom_objects: CustomObjectsApi | None = None

    def _load_config(self) -> None:
        """Load kubeconfig, falling back to in-cluster configuration."""
        if self._config_loaded:
            return
        from kubernetes import config
        from kubernetes.config import ConfigException

        try:
            config.load_kube_config(config_file=self._kubeconfig, context=self._context)
            logger.debug("loaded_kubeconfig", context=self._context, kubeconfig=self._kubeconfig)
        except ConfigException:
            config.load_incluster_config()
            logger.debug("loaded_incluster_config")
        self._config_loaded = True

    @property
    def apiextensions_v1(self) -> ApiextensionsV1Api:
        """Get ApiextensionsV1Api instance (CustomResourceDefinitions)."""
        if self._apiextensions_v1 is None:
            from kubernetes.client import ApiextensionsV1Api

            self._load_config()
            self._apiextensions_v1 = ApiextensionsV1Api()
        return self._apiextensions_v1

    @property
    def custom_objects(self) -> CustomObjectsApi:
        """Get CustomObjectsApi instance."""
        if self._custom_objects is None:
            from kubernetes.client import CustomObjectsApi

            self._load_config()
            self._custom_objects = CustomObjectsApi()
        return self._custom_objects

    async def resolve_definition(self, resource_type: str) -> ResourceDefinition:
        """Resolve plural, served version and scope of a type token.

        Raises:
            WatchResolutionError: If the definition cannot be read or is malformed.
        """
        name = definition_name(resource_type)
        try:
            from kubernetes.client import ApiClient

            crd = await asyncio.to_thread(self.apiextensions_v1.read_custom_resource_definition, name)
            definition = ResourceDefinition.from_crd(ApiClient().sanitize_for_serialization(crd))
        except Exception as e:
            logger.warning("crd_resolution_failed", definition=name, error=str(e))
            raise WatchResolutionError(name, e) from e
        logger.debug(
            "crd_resolved",
            definition=name,
            version=definition.version,
            scope=definition.scope,
        )
        return definition

    def subscribe(
        self,
        definition: ResourceDefinition,
        name: str,
        namespace: str | None = None,
    ) -> WatchSubscription:
        """Open a watch on the single object ``name``.

        Must be called from a running event loop.
        """
        api = self.custom_objects
        if definition.namespaced and namespace:

            def list_fn(**kwargs: Any) -> Any:
                return api.list_namespaced_custom_object(
                    definition.group, definition.version, namespace, definition.plural, **kwargs
                )

        else:

            def list_fn(**kwargs: Any) -> Any:
                return api.list_cluster_custom_object(
                    definition.group, definition.version, definition.plural, **kwargs
                )

        logger.info(
            "watch_subscribed",
            path=definition.collection_path(namespace),
            name=name,
        )
        return WatchSubscription(
            list_fn,
            f"metadata.name={name}",
            timeout_seconds=self._timeout_seconds,
            watch_factory=self._watch_factory,
        )
