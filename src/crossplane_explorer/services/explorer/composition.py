"""Composition development workflow on a local folder.

A composition folder holds ``definition.yaml``, ``composition.yaml``,
``xr.yaml`` and the inputs ``crossplane render`` needs. The workflow
scaffolds those files, renders the XR locally, validates the rendered
resources against provider CRDs and deploys or removes the folder's
objects in dependency order.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import TYPE_CHECKING

from crossplane_explorer.integrations.kubernetes.crossplane_client import RENDER_ARGS
from crossplane_explorer.integrations.kubernetes.exceptions import (
    CrdDownloadError,
    ExplorerError,
    ProcessError,
)
from crossplane_explorer.integrations.kubernetes.models.composition import (
    ProviderPackage,
    ProvidersMetadata,
    ValidationSummary,
    crd_filename,
    format_validation_line,
    strip_ansi,
)
from crossplane_explorer.integrations.kubernetes.process import ProcessResult
from crossplane_explorer.services.explorer.base import ExplorerService

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.crd_client import CrdDownloadClient
    from crossplane_explorer.integrations.kubernetes.crossplane_client import CrossplaneClient
    from crossplane_explorer.integrations.kubernetes.kubectl_client import KubectlClient
    from crossplane_explorer.services.explorer.shell import ExplorerShell, OutputSink

TEMPLATE_PACKAGE = "crossplane_explorer.templates"
TEMPLATE_FILES = (
    "composition.yaml",
    "definition.yaml",
    "function.yaml",
    "observedResources.yaml",
    "xr.yaml",
    "environmentConfig.json",
    "function-creds.yaml",
    "providers-metadata.json",
    "extraResources.yaml",
)

DEFINITION_FILE = "definition.yaml"
COMPOSITION_FILE = "composition.yaml"
XR_FILE = "xr.yaml"
RENDER_OUTPUT = "renderTestOutput.yaml"
PROVIDERS_METADATA = "providers-metadata.json"
SCHEMA_DIR = "schema"
MERGED_CRDS = "downloaded-crds.yaml"

_LEADING_SEPARATOR_RE = re.compile(r"^---\n?")


def template_text(name: str) -> str:
    """Return the bundled template ``name``."""
    return (files(TEMPLATE_PACKAGE) / "composition" / name).read_text(encoding="utf-8")


@dataclass
class InitResult:
    """Files written and skipped by :meth:`CompositionWorkflow.init_folder`."""

    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        parts = []
        if self.created:
            parts.append(f"Created: {', '.join(self.created)}")
        if self.skipped:
            parts.append(f"Skipped (already exist): {', '.join(self.skipped)}")
        return " | ".join(parts) or "No files created."


class CompositionWorkflow(ExplorerService):
    """Scaffold, render, validate, deploy and undeploy a composition folder.

    Every public method reports its own failures through the shell and
    a titled sink, and returns a falsy result instead of raising.

    Args:
        kubectl: Factory for the kubectl wrapper used by deploy and undeploy.
        shell: Host shell.
        crossplane: Factory for the crossplane CLI wrapper.
        crds: Factory for the CRD download client.
        on_changed: Called after objects were applied or deleted.
    """

    _entity_name = "composition"

    def __init__(
        self,
        kubectl: Callable[[], KubectlClient],
        shell: ExplorerShell,
        *,
        crossplane: Callable[[], CrossplaneClient] | None = None,
        crds: Callable[[], CrdDownloadClient] | None = None,
        on_changed: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(shell)
        self._kubectl = kubectl
        self._crossplane = crossplane
        self._crds = crds
        self._on_changed = on_changed

    def _changed(self) -> None:
        if self._on_changed is not None:
            self._on_changed()

    # -----------------------------------------------------------------------
    # Scaffold
    # -----------------------------------------------------------------------

    def init_folder(self, folder: Path) -> InitResult:
        """Write the template files into ``folder``, never overwriting."""
        result = InitResult()
        folder.mkdir(parents=True, exist_ok=True)
        for name in TEMPLATE_FILES:
            target = folder / name
            if target.exists():
                result.skipped.append(name)
                continue
            try:
                target.write_text(template_text(name), encoding="utf-8")
            except OSError as e:
                self._log.warning("template_write_failed", path=str(target), error=str(e))
                self._shell.show_error(f"Failed to write {name}: {e}")
                break
            result.created.append(name)

        self._log.info(
            "composition_initialized",
            folder=str(folder),
            created=len(result.created),
            skipped=len(result.skipped),
        )
        self._shell.show_info(result.message)
        return result

    # -----------------------------------------------------------------------
    # Render
    # -----------------------------------------------------------------------

    async def render(self, folder: Path) -> bool:
        """Run ``crossplane render`` in ``folder`` and save the result.

        Returns:
            True when ``renderTestOutput.yaml`` was written.
        """
        sink = self._shell.create_sink("Crossplane Render Test")
        sink.show()
        sink.append_line(f"# Running: crossplane {' '.join(RENDER_ARGS)} > {RENDER_OUTPUT}")
        if self._crossplane is None:
            sink.append_line("Error: crossplane CLI is not configured")
            return False

        try:
            rendered = await self._crossplane().render(folder)
        except ProcessError as e:
            sink.append_line(f"[ERROR] crossplane render failed with code {e.exit_code}")
            if e.stderr:
                sink.append_line(e.stderr.rstrip())
            self._log.warning("render_failed", folder=str(folder), exit_code=e.exit_code)
            self._shell.show_error("Render Test failed. See output for details.")
            return False
        except ExplorerError as e:
            sink.append_line(f"[ERROR] {e.message}")
            self._report_failure("Render Test failed", e)
            return False

        (folder / RENDER_OUTPUT).write_text(rendered, encoding="utf-8")
        sink.append_line(f"Render completed. Output written to {RENDER_OUTPUT}.")
        self._log.info("render_completed", folder=str(folder))
        return True

    # -----------------------------------------------------------------------
    # Schema validation
    # -----------------------------------------------------------------------

    async def download_crds(self, folder: Path, sink: OutputSink) -> Path | None:
        """Merge the provider CRDs listed in ``providers-metadata.json``.

        Kinds that fail to download are listed in the sink and skipped.
        ``definition.yaml`` is appended when present so that the XR
        itself can be validated.

        Returns:
            Path of ``schema/downloaded-crds.yaml``, or None when the
            metadata file is missing or invalid.
        """
        metadata_path = folder / PROVIDERS_METADATA
        if not metadata_path.exists():
            sink.append_line(f"[ERROR] {PROVIDERS_METADATA} not found in the selected folder.")
            return None
        try:
            metadata = ProvidersMetadata.from_json(metadata_path.read_text(encoding="utf-8"))
        except ValueError as e:
            sink.append_line(f"[ERROR] Invalid {PROVIDERS_METADATA}: {e}")
            return None
        if self._crds is None:
            sink.append_line("Error: CRD download client is not configured")
            return None

        schema_dir = folder / SCHEMA_DIR
        schema_dir.mkdir(exist_ok=True)
        output = schema_dir / MERGED_CRDS
        output.unlink(missing_ok=True)
        relative = f"{SCHEMA_DIR}/{MERGED_CRDS}"

        documents: list[str] = []
        async with self._crds() as client:
            for provider in metadata.providers:
                documents.extend(
                    await self._download_provider(client, metadata.github_org, provider, sink)
                )

        definition = folder / DEFINITION_FILE
        if definition.exists():
            documents.append(f"---\n{definition.read_text(encoding='utf-8')}\n")
        output.write_text("".join(documents), encoding="utf-8")
        if definition.exists():
            sink.append_line(f"Appended {DEFINITION_FILE} to: {relative}")
        sink.append_line(f"All CRDs merged into: {relative}")
        return output

    async def _download_provider(
        self,
        client: CrdDownloadClient,
        github_org: str,
        provider: ProviderPackage,
        sink: OutputSink,
    ) -> list[str]:
        sink.append_line(f"Downloading CRDs for {provider.name} ({provider.version})...")
        documents: list[str] = []
        failed: list[str] = []
        for kind in provider.kinds:
            url = provider.crd_url(github_org, kind)
            try:
                content = await client.fetch(url)
            except CrdDownloadError as e:
                self._log.debug("crd_skipped", url=url, error=e.message)
                failed.append(f"{crd_filename(kind)} ({kind})")
                continue
            documents.append(f"---\n{_LEADING_SEPARATOR_RE.sub('', content, count=1)}\n")

        sink.append_line(
            f"Downloaded {len(documents)} CRDs for {provider.name} ({provider.version})"
        )
        if failed:
            sink.append_line(f"[ERROR] Failed to download for {provider.name}:")
            for entry in failed:
                sink.append_line(f"   - {entry}")
        return documents

    async def validate(self, folder: Path) -> bool:
        """Download CRDs, then run ``crossplane beta validate`` on the render output.

        Returns:
            True when the validation command succeeded.
        """
        sink = self._shell.create_sink("Crossplane Schema Validation")
        sink.show()
        schemas = await self.download_crds(folder, sink)
        if schemas is None:
            self._shell.show_error("Schema Validation failed. See output for details.")
            return False

        rendered = folder / RENDER_OUTPUT
        sink.append_line(
            f"# Validating: crossplane beta validate {SCHEMA_DIR}/{MERGED_CRDS} {RENDER_OUTPUT}"
        )
        if not rendered.exists():
            sink.append_line(f"[ERROR] {RENDER_OUTPUT} not found. Run the render test first.")
            self._shell.show_error("Schema Validation failed. See output for details.")
            return False
        if self._crossplane is None:
            sink.append_line("Error: crossplane CLI is not configured")
            return False

        exit_code = 0
        try:
            result = await self._crossplane().validate(schemas, rendered)
        except ProcessError as e:
            exit_code = e.exit_code if e.exit_code is not None else -1
            result = ProcessResult(stdout=e.stdout, stderr=e.stderr, exit_code=exit_code)
        except ExplorerError as e:
            sink.append_line(f"[ERROR] {e.message}")
            self._report_failure("Schema Validation failed", e)
            return False

        summary = None
        if result.stdout:
            for line in result.stdout.splitlines():
                formatted = format_validation_line(line)
                if formatted is None:
                    continue
                summary = ValidationSummary.parse(line) or summary
                sink.append_line(formatted)
            sink.append_line("")
        if result.stderr:
            sink.append_line(strip_ansi(result.stderr).rstrip())

        if exit_code != 0:
            sink.append_line(f"[ERROR] crossplane beta validate failed with code {exit_code}")
            self._log.warning("validation_failed", folder=str(folder), exit_code=exit_code)
            self._shell.show_error("Schema Validation failed. See output for details.")
            return False
        sink.append_line("Validation succeeded.")
        self._log.info(
            "validation_succeeded",
            folder=str(folder),
            outcome=summary.outcome if summary else None,
        )
        return True

    # -----------------------------------------------------------------------
    # Deploy / undeploy
    # -----------------------------------------------------------------------

    async def deploy(self, folder: Path) -> bool:
        """Apply ``definition.yaml``, ``composition.yaml`` and then ``xr.yaml`` if present.

        Stops at the first failure.
        """
        sink = self._shell.create_sink("Crossplane Deploy")
        sink.show()
        for name in (DEFINITION_FILE, COMPOSITION_FILE):
            if not (folder / name).exists():
                sink.append_line(f"[ERROR] {name} not found.")
                self._shell.show_error(f"{name} not found in the selected folder.")
                return False

        steps = [DEFINITION_FILE, COMPOSITION_FILE]
        if (folder / XR_FILE).exists():
            steps.append(XR_FILE)
        for name in steps:
            if not await self._run_step(sink, "apply", folder / name):
                return False
        if XR_FILE not in steps:
            sink.append_line(f"[INFO] {XR_FILE} not found, skipping.")

        sink.append_line("Deploy completed.")
        self._shell.show_info(
            "Deploy completed: definition.yaml, composition.yaml, "
            "and (if present) xr.yaml applied."
        )
        return True

    async def undeploy(self, folder: Path) -> bool:
        """Delete ``xr.yaml`` if present, then ``composition.yaml``, then ``definition.yaml``.

        Stops at the first failure or missing required file.
        """
        sink = self._shell.create_sink("Crossplane UnDeploy")
        sink.show()
        if (folder / XR_FILE).exists():
            if not await self._run_step(sink, "delete", folder / XR_FILE):
                return False
        else:
            sink.append_line(f"[INFO] {XR_FILE} not found, skipping.")

        for name in (COMPOSITION_FILE, DEFINITION_FILE):
            path = folder / name
            if not path.exists():
                sink.append_line(f"[ERROR] {name} not found.")
                self._shell.show_error(f"{name} not found in the selected folder.")
                return False
            if not await self._run_step(sink, "delete", path):
                return False

        sink.append_line("UnDeploy completed.")
        self._shell.show_info("UnDeploy completed.")
        return True

    async def _run_step(self, sink: OutputSink, verb: str, path: Path) -> bool:
        label = "Applying" if verb == "apply" else "Deleting"
        past = "applied" if verb == "apply" else "deleted"
        sink.append_line(f"# {label}: kubectl {verb} -f {path.name}")
        try:
            kubectl = self._kubectl()
            command = kubectl.apply_file if verb == "apply" else kubectl.delete_file
            result = await command(str(path))
        except ExplorerError as e:
            sink.append_line(f"[ERROR] Failed to {verb} {path.name}: {e.message}")
            self._report_failure(f"Failed to {verb} {path.name}", e)
            return False
        if result.stdout:
            sink.append_line(result.stdout.rstrip())
        if result.stderr:
            sink.append_line(result.stderr.rstrip())
        self._shell.show_info(f"{path.name} {past} successfully.")
        self._changed()
        return True
