"""Tests for the command-line interface."""
from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from grampsweb_agents.cli import app
from grampsweb_agents.config import ConfigError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def wired(server, config):
    """Route the CLI's config and client construction to the fake server."""
    with patch("grampsweb_agents.cli.GrampsConfig.from_env", return_value=config), patch(
        "grampsweb_agents.cli.GrampsWebClient", side_effect=server.client
    ):
        yield server


class TestCli:
    """Tests for gramps-agents commands."""

    def test_missing_configuration(self, runner):
        error = ConfigError("Missing required environment variables: GRAMPS_API_URL")
        with patch("grampsweb_agents.cli.GrampsConfig.from_env", side_effect=error):
            result = runner.invoke(app, ["stats"])

        assert result.exit_code == 1
        assert "GRAMPS_API_URL" in result.output

    def test_check_auth(self, runner, wired):
        result = runner.invoke(app, ["check-auth"])

        assert result.exit_code == 0
        assert "Authenticated with https://gramps.test" in result.output
        assert wired.token_requests == 1

    def test_check_auth_rejected(self, runner, wired):
        wired.reject_credentials = True

        result = runner.invoke(app, ["check-auth"])

        assert result.exit_code == 1
        assert "Failed to authenticate" in result.output

    def test_ancestors_table(self, runner, wired):
        wired.add_person("root", "Ann", "Lee", parent_families=("f",))
        wired.add_family("f", father="dad", mother="mom")
        wired.add_person("dad", "Abe", "Lee")
        wired.add_person("mom", "Bea", "Kay")

        result = runner.invoke(app, ["ancestors", "root", "-g", "2"])

        assert result.exit_code == 0
        assert "Father" in result.output
        assert "Bea Kay" in result.output
        assert "3 people across 2 generation(s)" in result.output

    def test_descendants_unknown_person(self, runner, wired):
        result = runner.invoke(app, ["descendants", "ghost"])

        assert result.exit_code == 0
        assert "No person found" in result.output

    def test_generations_out_of_range(self, runner, wired):
        result = runner.invoke(app, ["ancestors", "root", "--generations", "11"])

        assert result.exit_code != 0
        assert wired.requests == []

    def test_stats(self, runner, wired):
        wired.routes[("GET", "/api/metadata/")] = lambda request: httpx.Response(
            200, json={"object_counts": {"people": 12, "families": 4}}
        )

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "16 total records" in result.output

    def test_get_unknown_type_fails(self, runner, wired):
        result = runner.invoke(app, ["get", "spaceships", "x1"])

        assert result.exit_code == 1
        assert "Unknown entity type" in result.output
