"""Explorer configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

CONFIG_DIR = Path.home() / ".config" / "xpx"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_EXCLUDE_CRD_SUFFIXES = ["crossplane.io", "upbound.io", "cattle.io"]
DEFAULT_YAMLLINT_IMAGE = "registry.gitlab.com/pipeline-components/yamllint:latest"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


class ExplorerConfig(BaseModel):
    """Complete explorer configuration."""

    model_config = ConfigDict(extra="forbid")

    kubectl_binary: str | None = None
    helm_binary: str | None = None
    crossplane_binary: str | None = None
    docker_binary: str | None = None

    kubeconfig: str | None = None
    context: str | None = None

    exclude_crd_suffixes: list[str] = list(DEFAULT_EXCLUDE_CRD_SUFFIXES)
    yamllint_image: str = DEFAULT_YAMLLINT_IMAGE
    command_timeout: float | None = None
    verify_after_apply: bool = True
    watch_timeout_seconds: int = 300
    crd_download_timeout: float = 30.0
    default_editor: str | None = None

    helm_default_repo: str = "stable"
    helm_chart_repos: dict[str, str] = {"redis": "bitnami"}

    @field_validator("command_timeout")
    @classmethod
    def validate_command_timeout(cls, v: float | None) -> float | None:
        """Validate timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("command_timeout must be positive")
        return v

    @field_validator("watch_timeout_seconds")
    @classmethod
    def validate_watch_timeout(cls, v: int) -> int:
        """Validate watch timeout is positive."""
        if v <= 0:
            raise ValueError("watch_timeout_seconds must be positive")
        return v

    @field_validator("crd_download_timeout")
    @classmethod
    def validate_crd_download_timeout(cls, v: float) -> float:
        """Validate the CRD download timeout is positive."""
        if v <= 0:
            raise ValueError("crd_download_timeout must be positive")
        return v

    @field_validator("exclude_crd_suffixes")
    @classmethod
    def validate_suffixes(cls, v: list[str]) -> list[str]:
        """Drop blank entries and surrounding whitespace."""
        return [suffix.strip() for suffix in v if suffix.strip()]

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        return str(Path(v).expanduser()) if v else v

    def chart_repo(self, chart_name: str) -> str:
        """Return the repository a chart is upgraded from."""
        return self.helm_chart_repos.get(chart_name, self.helm_default_repo)

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> ExplorerConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            XPX_KUBECTL: Path or name of the kubectl binary
            XPX_HELM: Path or name of the helm binary
            XPX_CROSSPLANE: Path or name of the crossplane binary
            XPX_DOCKER: Path or name of the docker binary
            XPX_KUBECONFIG: Kubeconfig path
            XPX_CONTEXT: Kubeconfig context
            XPX_EXCLUDE_CRD_SUFFIXES: Comma-separated CRD name suffixes to hide
            XPX_YAMLLINT_IMAGE: Container image used by ``xpx lint``
            XPX_COMMAND_TIMEOUT: Timeout in seconds for buffered commands
            XPX_CRD_DOWNLOAD_TIMEOUT: Timeout in seconds for provider CRD downloads
            XPX_VERIFY_AFTER_APPLY: Re-read objects after apply (true/false)
            XPX_DEFAULT_EDITOR: Editor command for view/edit sessions
        """
        config_dict = base_config.copy() if base_config else {}

        for env_name, key in (
            ("XPX_KUBECTL", "kubectl_binary"),
            ("XPX_HELM", "helm_binary"),
            ("XPX_CROSSPLANE", "crossplane_binary"),
            ("XPX_DOCKER", "docker_binary"),
            ("XPX_KUBECONFIG", "kubeconfig"),
            ("XPX_CONTEXT", "context"),
            ("XPX_YAMLLINT_IMAGE", "yamllint_image"),
            ("XPX_DEFAULT_EDITOR", "default_editor"),
        ):
            if value := os.environ.get(env_name):
                config_dict[key] = value

        if suffixes := os.environ.get("XPX_EXCLUDE_CRD_SUFFIXES"):
            config_dict["exclude_crd_suffixes"] = suffixes.split(",")

        if timeout := os.environ.get("XPX_COMMAND_TIMEOUT"):
            config_dict["command_timeout"] = float(timeout)

        if crd_timeout := os.environ.get("XPX_CRD_DOWNLOAD_TIMEOUT"):
            config_dict["crd_download_timeout"] = float(crd_timeout)

        if verify := os.environ.get("XPX_VERIFY_AFTER_APPLY"):
            config_dict["verify_after_apply"] = _parse_bool("XPX_VERIFY_AFTER_APPLY", verify)

        return cls(**config_dict)


def load_config(path: Path | None = None) -> ExplorerConfig:
    """Load configuration from YAML, then apply environment overrides.

    Args:
        path: Config file path. Defaults to ``~/.config/xpx/config.yaml``;
            a missing default file yields the built-in defaults.

    Returns:
        The validated configuration.

    Raises:
        FileNotFoundError: If an explicit ``path`` does not exist.
        ValueError: If the file is not a YAML mapping.
    """
    config_path = path or CONFIG_FILE
    base: dict[str, Any] = {}

    if config_path.exists():
        with config_path.open() as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping")
        base = data or {}
    elif path is not None:
        raise FileNotFoundError(f"Config file not found: {path}")

    return ExplorerConfig.from_env(base)
