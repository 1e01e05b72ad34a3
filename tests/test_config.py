"""Tests for maconomy_auth.config: XDG paths, atomic writes, settings precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from maconomy_auth.config import atomic_write, get_config_dir, get_data_dir, load_settings
from maconomy_auth.exceptions import ConfigError
from maconomy_auth.models import CaptureMode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write *data* as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG paths
# ---------------------------------------------------------------------------


class TestXdgPaths:
    def test_config_dir_honours_xdg(self, isolated_config: Path) -> None:
        with patch("maconomy_auth.config.platform.system", return_value="Linux"):
            assert get_config_dir() == isolated_config / "config" / "maconomy-auth"
        assert (isolated_config / "config" / "maconomy-auth").is_dir()

    def test_data_dir_honours_xdg(self, isolated_config: Path) -> None:
        with patch("maconomy_auth.config.platform.system", return_value="Linux"):
            assert get_data_dir() == isolated_config / "data" / "maconomy-auth"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_content_with_mode(self, tmp_path: Path) -> None:
        target = tmp_path / "secret"
        atomic_write(target, "value", mode=0o600)
        assert target.read_text() == "value"
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failure_leaves_no_temp_file(self, tmp_path: Path) -> None:
        target = tmp_path / "secret"
        with patch("maconomy_auth.config.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write(target, "value")
        assert os.listdir(tmp_path) == []


# ---------------------------------------------------------------------------
# Settings precedence
# ---------------------------------------------------------------------------


class TestLoadSettings:
    @pytest.fixture(autouse=True)
    def _linux(self):
        with patch("maconomy_auth.config.platform.system", return_value="Linux"):
            yield

    def test_defaults(self, isolated_config: Path) -> None:
        settings = load_settings()
        assert settings.redirect_uri == "https://localhost:8080"
        assert settings.cookie_name_prefix == "Maconomy-"
        assert settings.capture_mode == CaptureMode.REACTIVE
        assert settings.flow_timeout == 300.0

    def test_full_precedence_chain(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(
            isolated_config / "config" / "maconomy-auth" / "config.json",
            {"client_id": "user", "scope": "user", "redirect_port": 1001, "browser": "firefox"},
        )
        _write_json(
            isolated_config / "maconomy-auth.json",
            {"client_id": "project", "scope": "project", "redirect_port": 1002},
        )
        explicit = isolated_config / "explicit.json"
        _write_json(explicit, {"client_id": "file", "redirect_port": 1003})
        monkeypatch.setenv("MACONOMY_AUTH_CLIENT_ID", "env")

        settings = load_settings(config_file=explicit, overrides={"redirect_port": 1004})

        assert settings.browser == "firefox"
        assert settings.scope == "project"
        assert settings.client_id == "env"
        assert settings.redirect_port == 1004

    def test_none_overrides_are_ignored(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "maconomy-auth.json", {"flow_timeout": 60})
        settings = load_settings(overrides={"flow_timeout": None})
        assert settings.flow_timeout == 60.0

    def test_env_values_are_coerced(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MACONOMY_AUTH_REDIRECT_PORT", "9443")
        monkeypatch.setenv("MACONOMY_AUTH_ENFORCE_STATE", "false")
        monkeypatch.setenv("MACONOMY_AUTH_CAPTURE_MODE", "checkpoint")

        settings = load_settings()

        assert settings.redirect_port == 9443
        assert settings.enforce_state is False
        assert settings.capture_mode == CaptureMode.CHECKPOINT

    def test_missing_config_file(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_settings(config_file=isolated_config / "nope.json")

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "maconomy-auth.json").write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_settings()

    def test_non_object_json(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "maconomy-auth.json", ["client_id"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_settings()

    def test_invalid_value(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "maconomy-auth.json", {"redirect_port": 70000})
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings()

    def test_unknown_key(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "maconomy-auth.json", {"client_secret": "nope"})
        with pytest.raises(ConfigError):
            load_settings()
