"""Follow pod logs into output sinks, one tail per pod."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from crossplane_explorer.integrations.kubernetes.exceptions import ExplorerError
from crossplane_explorer.integrations.kubernetes.models.identity import (
    ResourceIdentity,
    SessionMode,
)
from crossplane_explorer.services.explorer.base import ExplorerService

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
    from crossplane_explorer.integrations.kubernetes.process import LongLivedProcess
    from crossplane_explorer.services.explorer.shell import ExplorerShell, OutputSink

ALREADY_OPEN = (
    "A log watch for this pod is already open. "
    "Please stop the existing log watch before starting a new one."
)
NOT_RUNNING = "No active log watch for this pod."


@dataclass
class LogTail:
    """A running ``kubectl logs -f`` and the sink it writes to."""

    sink: OutputSink
    process: LongLivedProcess | None = None


class LogTailManager(ExplorerService):
    """Starts and stops log tails keyed by pod identity."""

    _entity_name = "log_tail"

    def __init__(self, kubectl: KubectlClient, shell: ExplorerShell) -> None:
        super().__init__(shell)
        self._kubectl = kubectl
        self._tails: dict[ResourceIdentity, LogTail] = {}

    @property
    def active(self) -> list[ResourceIdentity]:
        """Pods with a running tail."""
        return list(self._tails)

    async def start(self, pod: ResourceIdentity) -> bool:
        """Start following the logs of ``pod``.

        Returns:
            True if a new tail was started.
        """
        key = pod.with_mode(SessionMode.NONE)
        existing = self._tails.get(key)
        if existing is not None:
            self._shell.show_error(ALREADY_OPEN)
            existing.sink.show()
            return False

        sink = self._shell.create_sink(f"Logs: {key.name}")
        tail = LogTail(sink=sink)
        self._tails[key] = tail
        sink.show()
        sink.append_line("[INFO] Log stream started for this pod.")
        sink.append_line(f"# kubectl logs -f {key.name} -n {key.namespace}")

        def on_exit(code: int) -> None:
            # A stopped tail has already disposed its sink.
            if self._tails.get(key) is not tail:
                return
            del self._tails[key]
            sink.append_line(f"\n[Process exited with code {code}]")
            self._log.info("log_tail_exited", pod=key.watch_key, exit_code=code)

        try:
            tail.process = await self._kubectl.follow_logs(
                key.name, key.namespace, sink.append, on_exit
            )
        except ExplorerError as e:
            self._tails.pop(key, None)
            sink.append_line(f"[ERROR] {e.message}")
            self._report_failure("Failed to start log stream", e)
            return False

        self._log.info("log_tail_started", pod=key.watch_key, pid=tail.process.pid)
        return True

    async def wait(self, pod: ResourceIdentity) -> int | None:
        """Wait for the tail of ``pod`` to end; None if nothing is running."""
        tail = self._tails.get(pod.with_mode(SessionMode.NONE))
        if tail is None or tail.process is None:
            return None
        return await tail.process.wait()

    def is_running(self, pod: ResourceIdentity) -> bool:
        """Return True while a tail for ``pod`` is active."""
        return pod.with_mode(SessionMode.NONE) in self._tails

    def stop(self, pod: ResourceIdentity) -> bool:
        """Stop the tail of ``pod`` and dispose its sink."""
        key = pod.with_mode(SessionMode.NONE)
        tail = self._tails.pop(key, None)
        if tail is None:
            self._shell.show_info(NOT_RUNNING)
            return False
        tail.sink.append_line("[INFO] Log stream stopped for this pod.")
        if tail.process is not None:
            tail.process.kill()
        tail.sink.dispose()
        self._log.info("log_tail_stopped", pod=key.watch_key)
        return True

    def stop_all(self) -> None:
        """Stop every running tail."""
        for key in list(self._tails):
            self.stop(key)
