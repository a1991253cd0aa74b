"""Tests for configuration loading and the context override system."""

from pathlib import Path

import pytest

from src.pantry.runtime.config.config_data import ConfigData, SyncConfig
from src.pantry.runtime.config.config_template import load_templated_yaml, substitute_env_vars
from src.pantry.runtime.context import get_config, with_context

REPO_ROOT = Path(__file__).resolve().parents[2]


class TestSubstituteEnvVars:
    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("PANTRY_TEST_URL", raising=False)
        assert substitute_env_vars("url: ${PANTRY_TEST_URL:-http://x}") == "url: http://x"

    def test_variable_wins_over_default(self, monkeypatch):
        monkeypatch.setenv("PANTRY_TEST_URL", "http://api")
        assert substitute_env_vars("${PANTRY_TEST_URL:-http://x}") == "http://api"

    def test_missing_required_variable(self, monkeypatch):
        monkeypatch.delenv("PANTRY_TEST_URL", raising=False)
        with pytest.raises(ValueError, match="PANTRY_TEST_URL"):
            substitute_env_vars("${PANTRY_TEST_URL}")
        with pytest.raises(ValueError, match="needed"):
            substitute_env_vars("${PANTRY_TEST_URL:?needed}")

    def test_comment_lines_are_not_substituted(self, monkeypatch):
        monkeypatch.delenv("PANTRY_TEST_URL", raising=False)
        text = "# Use ${PANTRY_TEST_URL} here\nurl: ${PANTRY_TEST_URL:-http://x}\n"

        assert substitute_env_vars(text) == "# Use ${PANTRY_TEST_URL} here\nurl: http://x\n"


class TestLoadTemplatedYaml:
    def test_repository_config_loads(self, monkeypatch):
        for name in (
            "APP_ENVIRONMENT",
            "PANTRY_API_URL",
            "PANTRY_STORAGE_BACKEND",
            "PANTRY_CONFLICT_POLICY",
        ):
            monkeypatch.delenv(name, raising=False)

        config = load_templated_yaml(REPO_ROOT / "config.yaml")

        assert config.app.environment == "development"
        assert config.sync.api_base_url == "http://localhost:8000"
        assert config.sync.storage_backend == "file"
        assert config.sync.conflict_policy == "pending_wins"
        assert config.sync.queue_key == "sync_queue"

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_templated_yaml(tmp_path / "absent.yaml")

        assert config == ConfigData()
        assert config.sync.conflict_policy == "pending_wins"
        assert config.sync.timeout_seconds == 2.0

    def test_sync_section(self, tmp_path, monkeypatch):
        monkeypatch.setenv("APP_ENVIRONMENT", "test")
        monkeypatch.setenv("TEST_PANTRY_API_URL", "http://api.test")
        # Registered so the value copied from TEST_PANTRY_API_URL is undone.
        monkeypatch.setenv("PANTRY_API_URL", "http://unused")
        path = tmp_path / "config.yaml"
        path.write_text(
            "config:\n"
            "  sync:\n"
            "    api_base_url: ${PANTRY_API_URL:-http://localhost:8000}\n"
            "    storage_backend: memory\n"
            "    conflict_policy: local_wins\n"
            "    max_attempts: 2\n"
        )

        config = load_templated_yaml(path)

        assert config.sync.api_base_url == "http://api.test"
        assert config.sync.storage_backend == "memory"
        assert config.sync.conflict_policy == "local_wins"
        assert config.sync.max_attempts == 2

    def test_invalid_values_are_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  sync:\n    conflict_policy: newest_wins\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_templated_yaml(path)


class TestContextManager:
    """Test the context manager functionality."""

    def test_with_context_override(self):
        original = get_config()
        override = ConfigData(sync=SyncConfig(storage_backend="memory", max_attempts=9))

        with with_context(override):
            current = get_config()
            assert current.sync.storage_backend == "memory"
            assert current.sync.max_attempts == 9
            assert current.database.url == original.database.url

        assert get_config() is original

    def test_nested_overrides(self):
        outer = ConfigData(sync=SyncConfig(max_attempts=2))
        inner = ConfigData(sync=SyncConfig(conflict_policy="server_wins"))

        original_policy = get_config().sync.conflict_policy

        with with_context(outer):
            with with_context(inner):
                assert get_config().sync.max_attempts == 2
                assert get_config().sync.conflict_policy == "server_wins"
            assert get_config().sync.conflict_policy == original_policy
            assert get_config().sync.max_attempts == 2

    def test_none_override_is_a_no_op(self):
        original = get_config()
        with with_context(None):
            assert get_config() is original

    def test_rejects_other_types(self):
        with pytest.raises(ValueError):
            with with_context({"sync": {}}):
                pass
