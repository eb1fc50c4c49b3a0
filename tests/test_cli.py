"""Тесты командной строки."""
import runpy
import sys
from pathlib import Path

import pytest
import uvicorn
import yaml

from pushr.cli import main


def _write_config(tmp_path: Path, app_path: Path, command: str) -> Path:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "application": "Shop",
        "path": str(app_path),
        "environments": ["production", "staging"],
        "install_command": "true",
        "commands": {"default": command},
        "auth": {"scheme": "token", "token": "s3cret"},
    }))
    return config_file


def test_init_creates_config(tmp_path: Path, capsys):
    config_file = tmp_path / "config.yaml"

    main(["init", "--config", str(config_file)])

    data = yaml.safe_load(config_file.read_text())
    assert data["default_environment"] == "production"
    assert "{environment}" in data["commands"]["default"]


def test_init_refuses_to_overwrite(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("path: /srv\n")

    with pytest.raises(SystemExit) as exc_info:
        main(["init", "--config", str(config_file)])

    assert exc_info.value.code == 1
    assert config_file.read_text() == "path: /srv\n"


def test_deploy_runs_command(tmp_path: Path, app_path: Path, capsys):
    config_file = _write_config(tmp_path, app_path, "echo deploying {branch} to {environment}")

    main(["deploy", "-e", "staging", "-b", "feature-x", "-n", "alice", "--config", str(config_file)])

    out = capsys.readouterr().out
    assert "deploying feature-x to staging" in out
    assert "Deployed Shop to staging from feature-x" in out
    assert "staging" in yaml.safe_load((tmp_path / "deploy_stats.yml").read_text())


def test_deploy_failure_exits_nonzero(tmp_path: Path, app_path: Path, capsys):
    config_file = _write_config(tmp_path, app_path, "echo nope; exit 3")

    with pytest.raises(SystemExit) as exc_info:
        main(["deploy", "--config", str(config_file)])

    assert exc_info.value.code == 1
    assert "nope" in capsys.readouterr().out
    assert not (tmp_path / "deploy_stats.yml").exists()


def test_missing_config(tmp_path: Path, capsys):
    with pytest.raises(SystemExit):
        main(["info", "--config", str(tmp_path / "missing.yaml")])

    assert "Config file not found" in capsys.readouterr().out


def test_info_without_repository(tmp_path: Path, app_path: Path, capsys):
    config_file = _write_config(tmp_path, app_path, "true")

    main(["info", "--config", str(config_file)])

    assert "repository info unavailable" in capsys.readouterr().out


def test_run_script_starts_server(tmp_path: Path, app_path: Path, monkeypatch):
    config_file = _write_config(tmp_path, app_path, "true")
    started = {}

    def fake_run(app, host, port, log_level):
        started.update(app=app, host=host, port=port)

    monkeypatch.setattr(uvicorn, "run", fake_run)
    monkeypatch.setattr(sys, "argv", ["run.py", "--config", str(config_file), "--port", "9001"])

    runpy.run_path(str(Path(__file__).parent.parent / "run.py"), run_name="__main__")

    assert started["port"] == 9001
    assert started["host"] == "0.0.0.0"
    assert started["app"].title == "pushr"
