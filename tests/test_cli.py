import json

import pytest
import yaml
from typer.testing import CliRunner

from editmcp import server as server_module
from editmcp.__main__ import app, build_overrides
from editmcp.config import get_config, reset_config

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("EDIT_MCP_SERVER__TRANSPORT", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def started(monkeypatch):
    calls = []
    monkeypatch.setattr(server_module, "start_server", lambda: calls.append("http"))
    monkeypatch.setattr(server_module, "start_stdio", lambda: calls.append("stdio"))
    return calls


def test_build_overrides():
    assert build_overrides() == {}
    assert build_overrides(stdio=True, port=8080, max_instances=2, timeout=30.0, debug=True) == {
        "server": {"transport": "stdio", "port": 8080, "debug": True, "log_level": "debug"},
        "edit": {"max_instances": 2, "instance_timeout": 30.0},
    }


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "edit-mcp" in result.output
    assert "0.1.0" in result.output


def test_serve_defaults_to_http(started):
    result = runner.invoke(app, ["serve", "--port", "9001", "--max-instances", "3"])

    assert result.exit_code == 0
    assert started == ["http"]
    assert get_config().server.port == 9001
    assert get_config().edit.max_instances == 3


def test_serve_stdio(started, tmp_path):
    result = runner.invoke(app, ["serve", "--stdio", "--edit-path", "/opt/edit/bin/edit"])

    assert result.exit_code == 0
    assert started == ["stdio"]
    assert get_config().edit.executable == "/opt/edit/bin/edit"


def test_serve_rejects_invalid_settings(started):
    result = runner.invoke(app, ["serve", "--max-instances", "0"])

    assert result.exit_code == 1
    assert started == []


def test_serve_with_missing_config_file(started, tmp_path):
    result = runner.invoke(app, ["serve", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert started == []


def test_config_show_json(tmp_path):
    config_file = tmp_path / "edit.yaml"
    config_file.write_text(yaml.safe_dump({"edit": {"max_instances": 4}}))

    result = runner.invoke(app, ["config", "show", "--format", "json", "--config", str(config_file)])

    assert result.exit_code == 0
    shown = json.loads(result.output)
    assert shown["edit"]["max_instances"] == 4
    assert set(shown) == {"server", "edit", "router"}


def test_config_save(tmp_path):
    target = tmp_path / "saved" / "config.yaml"

    result = runner.invoke(app, ["config", "save", str(target)])

    assert result.exit_code == 0
    assert yaml.safe_load(target.read_text())["server"]["transport"] == "http"
