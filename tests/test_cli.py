import pytest

from hatchmsg.cli import build_parser, main, serve
from hatchmsg.config import Config, DatabaseSettings
from hatchmsg.db import DatabaseError


def test_parser_serve_defaults():
    args = build_parser().parse_args(["serve"])
    assert args.command == "serve"
    assert args.config == ""
    assert args.toggle is False


def test_parser_config_and_toggle():
    args = build_parser().parse_args(["--config", "custom.yaml", "-t", "serve"])
    assert args.config == "custom.yaml"
    assert args.toggle is True


def test_main_without_command_prints_help(capsys):
    assert main([]) == 0
    assert "hms serve" in capsys.readouterr().out


def test_main_unknown_command():
    assert main(["bogus"]) == 255


def test_main_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "serve" in capsys.readouterr().out


def test_serve_rejects_bad_listen_address():
    config = Config(listen_address="nope", database=DatabaseSettings(name=":memory:"))
    with pytest.raises(ValueError):
        serve(config)


def test_serve_reports_unreachable_database(tmp_path):
    config = Config(
        listen_address=":0",
        database=DatabaseSettings(name=str(tmp_path / "missing" / "hms.db")),
    )
    with pytest.raises(DatabaseError):
        serve(config)


def test_main_serve_failure_returns_two(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("LISTEN_ADDRESS", "nope")
    monkeypatch.setenv("DB_NAME", ":memory:")
    assert main(["serve"]) == 2