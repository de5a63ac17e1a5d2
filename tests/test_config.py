"""Tests for configuration loading and API key lookup."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import keyring.errors
import pytest
import yaml

from relationscope.config import (
    AppConfig,
    APIKeyNotFoundError,
    get_api_key,
    get_config,
    load_config,
    reset_config,
)


@pytest.fixture(autouse=True)
def _in_tmp_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run from an empty directory so no stray relationscope.yaml is picked up."""
    monkeypatch.chdir(tmp_path)


def write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaults:
    """Tests for in-code defaults."""

    def test_ai_defaults(self):
        cfg = AppConfig()

        assert cfg.ai.model_name == "gemini-2.5-flash"
        assert cfg.ai.max_transcript_chars == 3_000_000
        assert cfg.ai.max_retries == 3

    def test_history_defaults(self):
        cfg = AppConfig()

        assert cfg.history.capacity == 10
        assert cfg.history.namespace == "relationScopeHistory"
        assert cfg.history_path == cfg.paths.data_dir / "history.json"

    def test_log_dir_follows_data_dir(self, tmp_path: Path):
        cfg = AppConfig(paths={"data_dir": str(tmp_path / "state")})
        assert cfg.paths.log_dir == (tmp_path / "state" / "logs").resolve()

    def test_paths_expanded(self):
        cfg = AppConfig(paths={"data_dir": "~/rs-data"})
        assert cfg.paths.data_dir == (Path.home() / "rs-data").resolve()


class TestLoadConfig:
    """Tests for load_config()."""

    def test_yaml_values(self, tmp_path: Path):
        path = write_yaml(tmp_path / "custom.yaml", {"ai": {"temperature": 0.3}, "history": {"capacity": 5}})

        cfg = load_config(path)

        assert cfg.ai.temperature == 0.3
        assert cfg.history.capacity == 5

    def test_default_file_in_cwd(self, tmp_path: Path):
        write_yaml(tmp_path / "relationscope.yaml", {"report": {"page_width": 800}})
        assert load_config().report.page_width == 800

    def test_environment_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test RELATIONSCOPE_* variables override values from the YAML file."""
        path = write_yaml(tmp_path / "custom.yaml", {"ai": {"temperature": 0.9, "max_retries": 1}})
        monkeypatch.setenv("RELATIONSCOPE_AI__TEMPERATURE", "0.2")

        cfg = load_config(path)

        assert cfg.ai.temperature == 0.2
        assert cfg.ai.max_retries == 1

    def test_malformed_yaml_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "broken.yaml"
        path.write_text("ai: [unclosed", encoding="utf-8")

        assert load_config(path).ai.temperature == 0.7

    def test_non_mapping_yaml_uses_defaults(self, tmp_path: Path):
        path = write_yaml(tmp_path / "list.yaml", ["not", "a", "mapping"])
        assert load_config(path).history.capacity == 10

    def test_invalid_values_use_defaults(self, tmp_path: Path):
        path = write_yaml(tmp_path / "bad.yaml", {"history": {"capacity": 0}})
        assert load_config(path).history.capacity == 10

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

        first = get_config()
        reset_config()
        assert get_config() is not first


class TestApiKey:
    """Tests for get_api_key()."""

    def test_gemini_key_first(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        monkeypatch.setenv("API_KEY", "generic-key")

        assert get_api_key().get_secret_value() == "gemini-key"

    def test_generic_key_fallback(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("API_KEY", "generic-key")
        assert get_api_key().get_secret_value() == "generic-key"

    def test_keyring_fallback(self):
        with patch("relationscope.config.keyring.get_password", return_value="ring-key") as get_password:
            assert get_api_key().get_secret_value() == "ring-key"

        get_password.assert_called_once_with("relationscope", "gemini")

    def test_no_key_anywhere(self):
        with patch("relationscope.config.keyring.get_password", return_value=None):
            with pytest.raises(APIKeyNotFoundError):
                get_api_key()

    def test_keyring_failure_is_not_fatal(self):
        with patch(
            "relationscope.config.keyring.get_password",
            side_effect=keyring.errors.NoKeyringError("no backend"),
        ):
            with pytest.raises(APIKeyNotFoundError):
                get_api_key()

    def test_secret_not_in_repr(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GEMINI_API_KEY", "super-secret")
        assert "super-secret" not in repr(get_api_key())
