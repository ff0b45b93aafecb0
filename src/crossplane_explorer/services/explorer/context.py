"""Wiring of clients and services for one CLI invocation or TUI session.

Clients are created on first use so that a missing optional binary
(helm, crossplane, docker) only fails the command that needs it.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from crossplane_explorer.integrations.kubernetes.crd_client import CrdDownloadClient
from crossplane_explorer.integrations.kubernetes.crossplane_client import CrossplaneClient
from crossplane_explorer.integrations.kubernetes.docker_client import DockerClient
from crossplane_explorer.integrations.kubernetes.helm_client import HelmClient
from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
from crossplane_explorer.integrations.kubernetes.process import ProcessRunner
from crossplane_explorer.integrations.kubernetes.watch_client import KubernetesWatchClient
from crossplane_explorer.services.explorer.composition import CompositionWorkflow
from crossplane_explorer.services.explorer.field_watch import FieldWatchManager
from crossplane_explorer.services.explorer.helm_tree import HelmReleaseService, HelmTreeModel
from crossplane_explorer.services.explorer.log_tail import LogTailManager
from crossplane_explorer.services.explorer.resource_actions import ResourceActions
from crossplane_explorer.services.explorer.sessions import EditSessionManager
from crossplane_explorer.services.explorer.tree_model import CrossplaneTreeModel

if TYPE_CHECKING:
    from crossplane_explorer.core.config import ExplorerConfig
    from crossplane_explorer.services.explorer.shell import ExplorerShell


class ExplorerContext:
    """Lazily constructed clients and services sharing one shell.

    Args:
        config: Explorer configuration.
        shell: Host shell for notifications, documents and sinks.
    """

    def __init__(self, config: ExplorerConfig, shell: ExplorerShell) -> None:
        self.config = config
        self.shell = shell

    # -----------------------------------------------------------------------
    # Clients
    # -----------------------------------------------------------------------

    @cached_property
    def runner(self) -> ProcessRunner:
        return ProcessRunner(timeout=self.config.command_timeout)

    @cached_property
    def kubectl(self) -> KubectlClient:
        return KubectlClient(
            self.runner,
            self.config.kubectl_binary,
            context=self.config.context,
            kubeconfig=self.config.kubeconfig,
        )

    @cached_property
    def helm(self) -> HelmClient:
        return HelmClient(self.runner, self.config.helm_binary, kube_context=self.config.context)

    @cached_property
    def crossplane(self) -> CrossplaneClient:
        return CrossplaneClient(self.runner, self.config.crossplane_binary)

    @cached_property
    def docker(self) -> DockerClient:
        return DockerClient(self.runner, self.config.docker_binary)

    def crd_downloader(self) -> CrdDownloadClient:
        """Return a new CRD download client; callers close it."""
        return CrdDownloadClient(timeout=self.config.crd_download_timeout)

    @cached_property
    def watch_client(self) -> KubernetesWatchClient:
        return KubernetesWatchClient(
            kubeconfig=self.config.kubeconfig,
            context=self.config.context,
            timeout_seconds=self.config.watch_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Services
    # -----------------------------------------------------------------------

    @cached_property
    def tree(self) -> CrossplaneTreeModel:
        return CrossplaneTreeModel(
            self.kubectl, self.shell, exclude_crd_suffixes=self.config.exclude_crd_suffixes
        )

    @cached_property
    def sessions(self) -> EditSessionManager:
        return EditSessionManager(
            self.kubectl,
            self.shell,
            on_applied=self.tree.refresh,
            verify_after_apply=self.config.verify_after_apply,
        )

    @cached_property
    def field_watch(self) -> FieldWatchManager:
        return FieldWatchManager(self.watch_client, self.shell)

    @cached_property
    def log_tail(self) -> LogTailManager:
        return LogTailManager(self.kubectl, self.shell)

    @cached_property
    def actions(self) -> ResourceActions:
        return ResourceActions(
            self.kubectl,
            self.shell,
            sessions=self.sessions,
            crossplane=lambda: self.crossplane,
            docker=lambda: self.docker,
            on_changed=self.tree.refresh,
            yamllint_image=self.config.yamllint_image,
        )

    @cached_property
    def composition(self) -> CompositionWorkflow:
        return CompositionWorkflow(
            lambda: self.kubectl,
            self.shell,
            crossplane=lambda: self.crossplane,
            crds=self.crd_downloader,
            on_changed=lambda: self.tree.refresh(),
        )

    @cached_property
    def helm_tree(self) -> HelmTreeModel:
        return HelmTreeModel(self.helm, self.shell)

    @cached_property
    def helm_releases(self) -> HelmReleaseService:
        return HelmReleaseService(self.helm, self.helm_tree, self.shell, self.config)

    def shutdown(self) -> None:
        """Stop every watch and tail and close every session."""
        if "field_watch" in self.__dict__:
            self.field_watch.stop_all()
        if "log_tail" in self.__dict__:
            self.log_tail.stop_all()
        if "sessions" in self.__dict__:
            self.sessions.close_all()
