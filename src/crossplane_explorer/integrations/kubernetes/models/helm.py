"""Data models for Helm releases.

Typed dataclasses for releases, revisions, chart versions and command
results, plus the status-to-icon table used by the release tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

STATUS_ICONS = {
    "deployed": "check",
    "failed": "error",
    "uninstalling": "trash",
    "superseded": "replace",
}
PENDING_ICON = "clock"
UNKNOWN_ICON = "question"

_CHART_VERSION_RE = re.compile(r"^(?P<name>.+?)-(?P<version>v?\d[\w.+-]*)$")


def status_icon(status: str) -> str:
    """Return the icon name for a release status."""
    normalized = status.lower()
    if normalized.startswith("pending"):
        return PENDING_ICON
    return STATUS_ICONS.get(normalized, UNKNOWN_ICON)


def split_chart(chart: str) -> tuple[str, str]:
    """Split ``<name>-<version>`` as reported by ``helm list``.

    >>> split_chart("ingress-nginx-4.10.1")
    ('ingress-nginx', '4.10.1')
    """
    match = _CHART_VERSION_RE.match(chart)
    if not match:
        return chart, ""
    return match.group("name"), match.group("version")


@dataclass
class HelmRelease:
    """A deployed Helm release."""

    name: str
    namespace: str
    revision: int
    status: str
    chart: str
    app_version: str
    updated: str

    @property
    def chart_name(self) -> str:
        """Chart name without its version suffix."""
        return split_chart(self.chart)[0]

    @property
    def chart_version(self) -> str:
        """Chart version parsed from the chart field."""
        return split_chart(self.chart)[1]

    @property
    def icon(self) -> str:
        """Status icon name."""
        return status_icon(self.status)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> HelmRelease:
        """Create a HelmRelease from ``helm list --output json`` entry."""
        return cls(
            name=str(data.get("name", "")),
            namespace=str(data.get("namespace", "")),
            revision=int(data.get("revision", 0)),
            status=str(data.get("status", "")),
            chart=str(data.get("chart", "")),
            app_version=str(data.get("app_version", "")),
            updated=str(data.get("updated", "")),
        )


@dataclass
class HelmReleaseHistory:
    """A single revision entry from ``helm history``."""

    revision: int
    status: str
    chart: str
    app_version: str
    description: str
    updated: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> HelmReleaseHistory:
        """Create from ``helm history --output json`` entry."""
        return cls(
            revision=int(data.get("revision", 0)),
            status=str(data.get("status", "")),
            chart=str(data.get("chart", "")),
            app_version=str(data.get("app_version", "")),
            description=str(data.get("description", "")),
            updated=str(data.get("updated", "")),
        )


@dataclass
class HelmChartVersion:
    """One version of a chart from ``helm search repo --versions``."""

    name: str
    chart_version: str
    app_version: str
    description: str

    @property
    def sort_key(self) -> tuple[int, ...]:
        """Numeric key for ordering versions, ignoring non-numeric parts."""
        return tuple(int(part) for part in re.findall(r"\d+", self.chart_version))

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> HelmChartVersion:
        """Create from ``helm search --output json`` entry."""
        return cls(
            name=str(data.get("name", "")),
            chart_version=str(data.get("version", "")),
            app_version=str(data.get("app_version", "")),
            description=str(data.get("description", "")),
        )


@dataclass
class HelmCommandResult:
    """Generic result from a Helm command."""

    success: bool
    stdout: str
    stderr: str = ""

    @property
    def output(self) -> str:
        """Return the primary output (stdout)."""
        return self.stdout
