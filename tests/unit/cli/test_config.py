"""Unit tests for settings CLI commands."""

from pathlib import Path

import pytest
from partree.cli.main import app
from partree.core.config import load_config
from typer.testing import CliRunner

runner = CliRunner()


class TestShow:
    """Tests for partree config show."""

    def test_defaults(self, config_home: Path, patched_engine) -> None:
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0, result.output
        assert "Redundancy" in result.output
        assert "10%" in result.output
        assert "par2j" in result.output
        assert "(found)" in result.output

    def test_engine_not_found(self, config_home: Path, patched_engine) -> None:
        patched_engine.available = False

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0, result.output
        assert "(not found)" in result.output

    def test_broken_settings_file(self, config_home: Path, patched_engine) -> None:
        path = config_home / "partree" / "config.toml"
        path.parent.mkdir(parents=True)
        path.write_text("redundancy_percent = [")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1


class TestSetRedundancy:
    """Tests for partree config set-redundancy."""

    def test_rounds_and_saves(self, config_home: Path) -> None:
        result = runner.invoke(app, ["config", "set-redundancy", "12.345"])

        assert result.exit_code == 0, result.output
        assert "Redundancy set to 12.3%." in result.output
        assert load_config().redundancy_percent == pytest.approx(12.3)

    @pytest.mark.parametrize("value", ["5000", "0"])
    def test_rejects_out_of_range(self, config_home: Path, value: str) -> None:
        result = runner.invoke(app, ["config", "set-redundancy", value])

        assert result.exit_code == 1
        assert "Invalid setting" in result.output
        assert not (config_home / "partree" / "config.toml").exists()


class TestSetEngine:
    """Tests for partree config set-engine."""

    def test_set_path(self, config_home: Path, tmp_path: Path) -> None:
        engine = tmp_path / "tools" / "par2j64.exe"

        result = runner.invoke(app, ["config", "set-engine", str(engine)])

        assert result.exit_code == 0, result.output
        assert f"Engine set to {engine}." in result.output
        assert load_config().engine_path == engine

    def test_reset_to_path_lookup(self, config_home: Path, tmp_path: Path) -> None:
        runner.invoke(app, ["config", "set-engine", str(tmp_path / "par2j")])

        result = runner.invoke(app, ["config", "set-engine"])

        assert result.exit_code == 0, result.output
        assert load_config().engine_path is None
