"""Fixtures for CLI tests.

Commands run in-process against the seeded in-memory database from
tests/conftest.py instead of the configured one.
"""

import pytest
from typer.testing import CliRunner

from devforge import cli
from devforge.mcp_server.main import build_registry


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def local_registry(monkeypatch, platform, session_factory, runner):
    """Point the CLI's tool registry at the test session."""
    monkeypatch.setattr(cli, "build_registry", lambda: build_registry(session_factory=session_factory, runner=runner))
    monkeypatch.setattr(cli, "get_session", session_factory)
