"""Tests for bashmcp.cli."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from bashmcp.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("BASHMCP_ALLOWED_DIRECTORIES", raising=False)
    monkeypatch.delenv("BASHMCP_DEFAULT_MODE", raising=False)
    monkeypatch.chdir(tmp_path)


class TestRun:
    def test_missing_directories_aborts(self) -> None:
        result = runner.invoke(app, ["run", "echo hi"])
        assert result.exit_code == 1
        assert "allowed_directories" in result.output

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["run", "echo hi", "--config", str(tmp_path / "x.json")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_stateless(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("BASHMCP_ALLOWED_DIRECTORIES", str(tmp_path))
        result = runner.invoke(app, ["run", "echo hi"])
        assert result.exit_code == 0
        assert "hi" in result.output

    def test_exit_code_forwarded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("BASHMCP_ALLOWED_DIRECTORIES", str(tmp_path))
        result = runner.invoke(app, ["run", "ls /definitely/missing"])
        assert result.exit_code != 0

    def test_rejected_command(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("BASHMCP_ALLOWED_DIRECTORIES", str(tmp_path))
        result = runner.invoke(app, ["run", "rm -rf x"])
        assert result.exit_code == 1
