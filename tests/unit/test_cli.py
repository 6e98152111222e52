"""
cachestack — Command Line Interface Tests

Runs main() against a SQLite-backed driver so values persist across
invocations, the way separate processes would see them.
"""

import json
from pathlib import Path

import pytest

from cachestack.__main__ import main


@pytest.fixture
def sql_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("CACHE_STACK", raising=False)
    monkeypatch.setenv("CACHE_DRIVER", "sql")
    monkeypatch.setenv("CACHE_SQL_URL", f"sqlite+aiosqlite:///{tmp_path}/cli.db")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    return tmp_path


def test_set_then_get(sql_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["set", "greeting", "hello", "--lifetime", "600"]) == 0
    assert main(["get", "greeting", "--lifetime", "600"]) == 0

    assert capsys.readouterr().out == "hello\n"


def test_get_miss(sql_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["get", "missing"]) == 1
    assert capsys.readouterr().out == ""


def test_json_value(sql_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["set", "n", "42", "--json"]) == 0
    assert main(["get", "n", "-l", "0"]) == 0

    assert capsys.readouterr().out == "42\n"


def test_invalid_json_value(sql_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["set", "n", "{oops", "--json"]) == 2
    assert "not valid JSON" in capsys.readouterr().err


def test_exists_and_expire(sql_env: Path) -> None:
    assert main(["exists", "k"]) == 1

    assert main(["set", "k", "v", "-l", "0"]) == 0
    assert main(["exists", "k", "-l", "0"]) == 0

    assert main(["expire", "k"]) == 0
    assert main(["exists", "k", "-l", "0"]) == 1
    assert main(["expire", "k"]) == 0


def test_configuration_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CACHE_DRIVER", "stack")
    monkeypatch.setenv("CACHE_STACK", "not json")

    assert main(["get", "k"]) == 2

    error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert error["error_code"] == "CONFIGURATION_ERROR"


def test_subcommand_required() -> None:
    with pytest.raises(SystemExit):
        main([])
