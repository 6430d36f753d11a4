"""Fixtures for CLI tests."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def cli_env(config_home: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate settings and keep Rich from wrapping long paths."""
    monkeypatch.setenv("COLUMNS", "300")
    return config_home


@pytest.fixture
def patched_engine(engine) -> Iterator:
    """Make every command use the in-process engine."""
    with (
        patch("partree.cli.session.get_engine", return_value=engine),
        patch("partree.cli.commands.config.get_engine", return_value=engine),
    ):
        yield engine
