"""Unit tests for explorer configuration."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from crossplane_explorer.core.config.models import ExplorerConfig, load_config


@pytest.mark.unit
class TestExplorerConfig:
    """Tests for ExplorerConfig model."""

    def test_defaults(self) -> None:
        """Defaults hide Crossplane CRDs and verify applies."""
        config = ExplorerConfig()
        assert config.exclude_crd_suffixes == ["crossplane.io", "upbound.io", "cattle.io"]
        assert config.verify_after_apply is True
        assert config.command_timeout is None
        assert config.default_editor is None

    def test_unknown_keys_rejected(self) -> None:
        """Typos in config files are errors."""
        with pytest.raises(ValidationError):
            ExplorerConfig(kubectl_path="/bin/kubectl")  # type: ignore[call-arg]

    def test_timeout_must_be_positive(self) -> None:
        """A zero timeout is rejected."""
        with pytest.raises(ValidationError):
            ExplorerConfig(command_timeout=0)
        with pytest.raises(ValidationError):
            ExplorerConfig(crd_download_timeout=-1)

    def test_suffixes_are_trimmed(self) -> None:
        """Blank suffixes are dropped."""
        config = ExplorerConfig(exclude_crd_suffixes=[" upbound.io ", "", "  "])
        assert config.exclude_crd_suffixes == ["upbound.io"]

    def test_kubeconfig_expanded(self) -> None:
        """~ is expanded in the kubeconfig path."""
        config = ExplorerConfig(kubeconfig="~/kube/config")
        assert config.kubeconfig == str(Path.home() / "kube" / "config")

    def test_chart_repo(self) -> None:
        """Mapped charts use their repo; others the default."""
        config = ExplorerConfig()
        assert config.chart_repo("redis") == "bitnami"
        assert config.chart_repo("crossplane") == "stable"


@pytest.mark.unit
class TestFromEnv:
    """Tests for environment overrides."""

    def test_env_overrides_base(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables take precedence over file values."""
        monkeypatch.setenv("XPX_CONTEXT", "kind-prod")
        monkeypatch.setenv("XPX_EXCLUDE_CRD_SUFFIXES", "a.io,b.io")
        monkeypatch.setenv("XPX_COMMAND_TIMEOUT", "12.5")
        monkeypatch.setenv("XPX_VERIFY_AFTER_APPLY", "no")
        monkeypatch.setenv("XPX_CRD_DOWNLOAD_TIMEOUT", "5")

        config = ExplorerConfig.from_env({"context": "kind-dev"})

        assert config.context == "kind-prod"
        assert config.exclude_crd_suffixes == ["a.io", "b.io"]
        assert config.command_timeout == 12.5
        assert config.verify_after_apply is False
        assert config.crd_download_timeout == 5.0

    def test_invalid_bool(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unrecognised booleans are rejected."""
        monkeypatch.setenv("XPX_VERIFY_AFTER_APPLY", "maybe")
        with pytest.raises(ValueError, match="XPX_VERIFY_AFTER_APPLY"):
            ExplorerConfig.from_env()


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_file(self, temp_config_file: Path) -> None:
        """Values come from the YAML file."""
        config = load_config(temp_config_file)
        assert config.context == "kind-test"
        assert config.exclude_crd_suffixes == ["crossplane.io"]
        assert config.chart_repo("ingress-nginx") == "ingress-nginx"

    def test_explicit_missing_file(self, temp_dir: Path) -> None:
        """An explicit path that does not exist is an error."""
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "missing.yaml")

    def test_missing_default_file_uses_defaults(self, temp_dir: Path) -> None:
        """Without the default file the built-in defaults apply."""
        with patch(
            "crossplane_explorer.core.config.models.CONFIG_FILE", temp_dir / "config.yaml"
        ):
            config = load_config()
        assert config == ExplorerConfig()

    def test_empty_file(self, temp_dir: Path) -> None:
        """An empty file yields the defaults."""
        path = temp_dir / "config.yaml"
        path.write_text("")
        assert load_config(path) == ExplorerConfig()

    def test_non_mapping_rejected(self, temp_dir: Path) -> None:
        """A YAML list is not a valid config."""
        path = temp_dir / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must contain a YAML mapping"):
            load_config(path)
