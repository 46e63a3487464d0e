"""Tests for configuration loading."""
from __future__ import annotations

import pytest

from grampsweb_agents.config import DEFAULT_TIMEOUT, ConfigError, GrampsConfig

REQUIRED = {
    "GRAMPS_API_URL": "https://gramps.example.com/",
    "GRAMPS_USERNAME": "owner",
    "GRAMPS_PASSWORD": "secret",
}


@pytest.fixture
def env(monkeypatch):
    for name in (*REQUIRED, "GRAMPS_TREE_ID", "GRAMPS_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestFromEnv:
    """Tests for GrampsConfig.from_env."""

    def test_loads_required(self, env):
        config = GrampsConfig.from_env(load_env_file=False)

        assert config.api_url == "https://gramps.example.com"
        assert config.username == "owner"
        assert config.password == "secret"
        assert config.tree_id is None
        assert config.timeout == DEFAULT_TIMEOUT

    def test_optional_values(self, env):
        env.setenv("GRAMPS_TREE_ID", "family")
        env.setenv("GRAMPS_TIMEOUT", "12.5")

        config = GrampsConfig.from_env(load_env_file=False)

        assert config.tree_id == "family"
        assert config.timeout == 12.5

    def test_bad_timeout_falls_back(self, env):
        env.setenv("GRAMPS_TIMEOUT", "soon")

        assert GrampsConfig.from_env(load_env_file=False).timeout == DEFAULT_TIMEOUT

    def test_missing_variables_listed(self, env):
        env.delenv("GRAMPS_USERNAME")
        env.setenv("GRAMPS_PASSWORD", "   ")

        with pytest.raises(ConfigError) as exc_info:
            GrampsConfig.from_env(load_env_file=False)

        message = str(exc_info.value)
        assert "GRAMPS_USERNAME, GRAMPS_PASSWORD" in message
        assert "GRAMPS_API_URL" in message  # described in the help block


class TestGrampsConfig:
    """Tests for derived URLs and validation."""

    def test_urls(self):
        config = GrampsConfig(api_url="https://g.test//", username="u", password="p")

        assert config.api_url == "https://g.test"
        assert config.base_url == "https://g.test/api"
        assert config.token_url == "https://g.test/api/token/"

    def test_tree_scoped_base_url(self):
        config = GrampsConfig(api_url="https://g.test", username="u", password="p", tree_id="t1")

        assert config.base_url == "https://g.test/api/trees/t1"
        assert config.token_url == "https://g.test/api/token/"

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigError):
            GrampsConfig(api_url="https://g.test", username="u", password="p", timeout=0)

    def test_immutable(self):
        config = GrampsConfig(api_url="https://g.test", username="u", password="p")
        with pytest.raises(AttributeError):
            config.username = "other"
