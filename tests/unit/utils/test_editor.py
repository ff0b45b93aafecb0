"""Tests for editor utility functions."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from crossplane_explorer.utils.editor import get_editor, open_in_editor


@pytest.mark.unit
class TestGetEditor:
    """Tests for get_editor function."""

    def test_configured_editor_first(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the configured editor takes priority."""
        monkeypatch.setenv("XPX_DEFAULT_EDITOR", "nano")
        assert get_editor("code --wait") == "code --wait"

    def test_xpx_default_editor_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test XPX_DEFAULT_EDITOR env var is used."""
        monkeypatch.setenv("XPX_DEFAULT_EDITOR", "nano")
        monkeypatch.setenv("EDITOR", "emacs")
        assert get_editor() == "nano"

    def test_editor_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test EDITOR env var is used when XPX_DEFAULT_EDITOR not set."""
        monkeypatch.setenv("EDITOR", "emacs")
        monkeypatch.delenv("VISUAL", raising=False)
        assert get_editor() == "emacs"

    def test_visual_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test VISUAL env var is used as fallback."""
        monkeypatch.delenv("EDITOR", raising=False)
        monkeypatch.setenv("VISUAL", "subl")
        assert get_editor() == "subl"

    def test_fallback_to_vi(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test vi is the final fallback."""
        monkeypatch.delenv("EDITOR", raising=False)
        monkeypatch.delenv("VISUAL", raising=False)
        assert get_editor() == "vi"


@pytest.mark.unit
class TestOpenInEditor:
    """Tests for open_in_editor."""

    def test_splits_command_and_appends_path(self) -> None:
        """Editor arguments are split and the file appended."""
        with patch(
            "crossplane_explorer.utils.editor.subprocess.run",
            return_value=MagicMock(returncode=0),
        ) as mock_run:
            code = open_in_editor(Path("/tmp/b1.yaml"), "code --wait")

        assert code == 0
        mock_run.assert_called_once_with(["code", "--wait", "/tmp/b1.yaml"], check=False)

    def test_missing_editor_raises(self) -> None:
        """A missing executable surfaces as OSError."""
        with pytest.raises(OSError):
            open_in_editor(Path("/tmp/b1.yaml"), "definitely-not-an-editor-xpx")
