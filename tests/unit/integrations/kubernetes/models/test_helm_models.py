"""Unit tests for Helm data models."""

from __future__ import annotations

import pytest

from crossplane_explorer.integrations.kubernetes.models.helm import (
    HelmChartVersion,
    HelmRelease,
    split_chart,
    status_icon,
)


@pytest.mark.unit
class TestSplitChart:
    """Tests for split_chart."""

    @pytest.mark.parametrize(
        ("chart", "expected"),
        [
            ("ingress-nginx-4.10.1", ("ingress-nginx", "4.10.1")),
            ("crossplane-1.15.2-rc.1", ("crossplane", "1.15.2-rc.1")),
            ("cert-manager-v1.14.4", ("cert-manager", "v1.14.4")),
            ("noversion", ("noversion", "")),
        ],
    )
    def test_split(self, chart: str, expected: tuple[str, str]) -> None:
        """Chart name and version are split at the version suffix."""
        assert split_chart(chart) == expected


@pytest.mark.unit
class TestStatusIcon:
    """Tests for release status icons."""

    @pytest.mark.parametrize(
        ("status", "icon"),
        [
            ("deployed", "check"),
            ("failed", "error"),
            ("pending-upgrade", "clock"),
            ("uninstalling", "trash"),
            ("superseded", "replace"),
            ("whatever", "question"),
        ],
    )
    def test_icons(self, status: str, icon: str) -> None:
        """Each status maps to one icon."""
        assert status_icon(status) == icon
        release = HelmRelease("r", "ns", 1, status, "c-1.0.0", "", "")
        assert release.icon == icon


@pytest.mark.unit
class TestChartVersion:
    """Tests for HelmChartVersion."""

    def test_sort_key_is_numeric(self) -> None:
        """10.0.0 sorts after 9.1.0."""
        versions = [
            HelmChartVersion.from_json({"name": "bitnami/redis", "version": v})
            for v in ("9.1.0", "10.0.0", "9.10.0")
        ]
        ordered = sorted(versions, key=lambda v: v.sort_key, reverse=True)
        assert [v.chart_version for v in ordered] == ["10.0.0", "9.10.0", "9.1.0"]
