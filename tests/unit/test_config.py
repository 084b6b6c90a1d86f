"""
Unit tests for configuration loading and validation.
"""

import pytest

from socialgraph.config import DEFAULT_RELAYS, GraphConfig
from socialgraph.errors import ConfigError


class TestValidation:
    """Reject unusable values."""

    def test_defaults_are_valid(self):
        config = GraphConfig()
        assert config.relays == DEFAULT_RELAYS
        assert config.query_timeout_ms == 10_000
        assert config.max_concurrent_connections == 4
        assert config.lookback_seconds == 7 * 24 * 3600

    @pytest.mark.parametrize("field,value", [
        ("query_timeout_ms", 0),
        ("max_concurrent_connections", 0),
        ("lookback_days", -1),
        ("cache_max_age_ms", 0),
        ("connect_stagger_ms", -5),
    ])
    def test_invalid_values_raise(self, field, value):
        with pytest.raises(ConfigError):
            GraphConfig(**{field: value})

    def test_no_relays_raises(self):
        with pytest.raises(ConfigError):
            GraphConfig(relays=[])

    def test_paths(self):
        config = GraphConfig(data_dir="/tmp/graph")
        assert str(config.snapshot_path) == "/tmp/graph/social-graph.json"
        assert str(config.registry_path) == "/tmp/graph/known-pubkeys.json"


class TestFromEnv:
    """Environment overrides."""

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOCIALGRAPH_RELAYS", "wss://a, wss://b")
        monkeypatch.setenv("SOCIALGRAPH_QUERY_TIMEOUT_MS", "2500")
        monkeypatch.setenv("SOCIALGRAPH_MAX_CONNECTIONS", "2")
        monkeypatch.setenv("SOCIALGRAPH_DATA_DIR", str(tmp_path))

        config = GraphConfig.from_env(str(tmp_path / "missing.env"))

        assert config.relays == ["wss://a", "wss://b"]
        assert config.query_timeout_ms == 2500
        assert config.max_concurrent_connections == 2
        assert config.data_dir == str(tmp_path)

    def test_env_file_values(self, monkeypatch, tmp_path):
        # load_dotenv writes into os.environ; register the key so teardown removes it
        monkeypatch.setenv("SOCIALGRAPH_LOOKBACK_DAYS", "")
        monkeypatch.delenv("SOCIALGRAPH_LOOKBACK_DAYS")
        env_file = tmp_path / ".env"
        env_file.write_text("SOCIALGRAPH_LOOKBACK_DAYS=3\n")

        config = GraphConfig.from_env(str(env_file))

        assert config.lookback_days == 3

    def test_non_integer_env_raises(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOCIALGRAPH_QUERY_TIMEOUT_MS", "soon")
        with pytest.raises(ConfigError):
            GraphConfig.from_env(str(tmp_path / "missing.env"))
