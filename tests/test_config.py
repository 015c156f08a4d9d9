import json
import os

import pytest
import yaml

from editmcp import config as config_module
from editmcp.config import (
    get_config,
    load_config,
    load_config_from_env,
    merge_configs,
    reset_config,
    save_config,
)
from editmcp.utils.errors import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run each test without default config files or EDIT_MCP_ variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", ["./edit-mcp.yaml"])
    for key in list(os.environ):
        if key.startswith("EDIT_MCP_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


def test_defaults():
    config = load_config()

    assert config.server.transport == "http"
    assert config.edit.max_instances == 5
    assert config.edit.timeout_policy == "idle"
    assert config.edit.completion_marker == "Command completed"
    assert config.router.simple_operation_threshold == 1000
    assert config.router.batch_threshold == 100
    assert config.router.batch_size == 50


def test_yaml_file_is_loaded(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.safe_dump({"edit": {"max_instances": 3, "executable": "/usr/bin/edit"}}))

    config = load_config(str(path))

    assert config.edit.max_instances == 3
    assert config.edit.executable == "/usr/bin/edit"


def test_default_file_is_discovered(tmp_path):
    (tmp_path / "edit-mcp.yaml").write_text("server:\n  port: 9100\n")

    assert load_config().server.port == 9100


def test_json_file_and_bad_formats(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"router": {"batch_size": 10}}))
    assert load_config(str(path)).router.batch_size == 10

    bad = tmp_path / "config.json"
    bad.write_text("{not json")
    with pytest.raises(ValueError):
        load_config(str(bad))

    other = tmp_path / "config.toml"
    other.write_text("")
    with pytest.raises(ValueError):
        load_config(str(other))

    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.safe_dump({"edit": {"max_instances": 3}}))
    monkeypatch.setenv("EDIT_MCP_EDIT__MAX_INSTANCES", "7")
    monkeypatch.setenv("EDIT_MCP_EDIT__INSTANCE_TIMEOUT", "12.5")
    monkeypatch.setenv("EDIT_MCP_SERVER__DEBUG", "true")

    config = load_config(str(path))

    assert config.edit.max_instances == 7
    assert config.edit.instance_timeout == 12.5
    assert config.server.debug is True

    assert load_config(str(path), env_override=False).edit.max_instances == 3


def test_explicit_overrides_win(monkeypatch):
    monkeypatch.setenv("EDIT_MCP_EDIT__MAX_INSTANCES", "7")

    config = load_config(overrides={"edit": {"max_instances": 2}, "server": {"transport": "STDIO"}})

    assert config.edit.max_instances == 2
    assert config.server.transport == "stdio"


def test_env_values_are_typed(monkeypatch):
    monkeypatch.setenv("EDIT_MCP_SERVER__HOST", "0.0.0.0")
    monkeypatch.setenv("EDIT_MCP_SERVER__AUTH_ENABLED", "False")
    monkeypatch.setenv("EDIT_MCP_ROUTER__BATCH_SIZE", "25")

    assert load_config_from_env() == {
        "server": {"host": "0.0.0.0", "auth_enabled": False},
        "router": {"batch_size": 25},
    }


@pytest.mark.parametrize(
    "overrides",
    [
        {"edit": {"max_instances": 0}},
        {"edit": {"timeout_policy": "forever"}},
        {"edit": {"completion_marker": "two\nlines"}},
        {"server": {"log_level": "chatty"}},
        {"server": {"transport": "carrier-pigeon"}},
    ],
)
def test_invalid_values_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        load_config(overrides=overrides)


def test_merge_configs_is_recursive():
    base = {"edit": {"max_instances": 3, "args": ["-q"]}, "server": {"port": 1}}
    merged = merge_configs(base, {"edit": {"max_instances": 4}})

    assert merged == {"edit": {"max_instances": 4, "args": ["-q"]}, "server": {"port": 1}}
    assert base["edit"]["max_instances"] == 3


def test_get_config_loads_once():
    first = get_config()
    assert get_config() is first

    reset_config()
    assert get_config() is not first


@pytest.mark.parametrize("name", ["saved.yaml", "saved.json"])
def test_save_config_round_trips(tmp_path, name):
    load_config(overrides={"edit": {"max_instances": 4}})
    path = tmp_path / "out" / name

    save_config(str(path))
    reset_config()

    assert load_config(str(path)).edit.max_instances == 4


def test_save_config_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        save_config(str(tmp_path / "config.ini"))


def test_unreadable_default_file_is_skipped(tmp_path):
    (tmp_path / "edit-mcp.yaml").write_text("server: [unclosed\n")

    assert load_config().server.port == 3000
