"""
Configuration management for the edit-mcp server.

Settings come from three layers merged in order: a YAML or JSON file, then
``EDIT_MCP_`` environment variables, then explicit overrides (normally the
command line). The merged mapping is validated by pydantic models.
"""
import os
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from editmcp.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_COMPLETION_MARKER,
    DEFAULT_MAX_INSTANCES,
    DEFAULT_INSTANCE_TIMEOUT,
    DEFAULT_TERMINATE_GRACE,
    DEFAULT_SIMPLE_OPERATION_THRESHOLD,
    DEFAULT_BATCH_THRESHOLD,
    DEFAULT_BATCH_SIZE,
    DEFAULT_COMPLEXITY_FACTORS,
)
from editmcp.utils.errors import ConfigurationError
from editmcp.utils.logging import logger

# Searched in order when no file is named explicitly
DEFAULT_CONFIG_PATHS = [
    "./edit-mcp.yaml",
    "./edit-mcp.yml",
    "./edit-mcp.json",
    "~/.config/edit-mcp/config.yaml",
    "~/.edit-mcp.yaml",
]

ENV_PREFIX = "EDIT_MCP_"

# Loaded lazily by get_config
_config = None


class ServerConfig(BaseModel):
    """Server configuration settings."""

    host: str = Field(DEFAULT_HOST, description="Host to bind the HTTP server to")
    port: int = Field(DEFAULT_PORT, description="Port to bind the HTTP server to")
    debug: bool = Field(False, description="Enable debug mode")
    log_level: str = Field("info", description="Logging level")
    log_file: Optional[str] = Field(None, description="Optional rotating log file")
    cors_origins: List[str] = Field(["*"], description="CORS allowed origins")
    transport: str = Field("http", description="Transport to serve on (http, stdio)")
    auth_enabled: bool = Field(False, description="Require an API key on /api routes")
    api_key: Optional[str] = Field(None, description="API key expected in X-API-Key")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["debug", "info", "warning", "error", "critical"]
        if v.lower() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.lower()

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v):
        allowed = ["http", "stdio"]
        if v.lower() not in allowed:
            raise ValueError(f"Transport must be one of {allowed}")
        return v.lower()


class EditConfig(BaseModel):
    """Configuration for the external edit worker pool."""

    executable: Optional[str] = Field(None, description="Path to the edit executable")
    args: List[str] = Field(default_factory=list, description="Extra arguments for each worker")
    max_instances: int = Field(DEFAULT_MAX_INSTANCES, ge=1, description="Maximum live workers")
    instance_timeout: float = Field(
        DEFAULT_INSTANCE_TIMEOUT, gt=0, description="Seconds before a worker is reclaimed"
    )
    timeout_policy: str = Field("idle", description="Reclamation policy (idle, lifetime)")
    completion_marker: str = Field(
        DEFAULT_COMPLETION_MARKER, description="Output line that ends a command response"
    )
    terminate_grace: float = Field(
        DEFAULT_TERMINATE_GRACE, ge=0, description="Seconds to wait for a worker to exit"
    )

    @field_validator("timeout_policy")
    @classmethod
    def validate_timeout_policy(cls, v):
        """Validate reclamation policy."""
        allowed = ["idle", "lifetime"]
        if v.lower() not in allowed:
            raise ValueError(f"Timeout policy must be one of {allowed}")
        return v.lower()

    @field_validator("completion_marker")
    @classmethod
    def validate_completion_marker(cls, v):
        if not v or "\n" in v:
            raise ValueError("Completion marker must be a non-empty single line")
        return v


class RouterConfig(BaseModel):
    """Operation router settings."""

    simple_operation_threshold: int = Field(
        DEFAULT_SIMPLE_OPERATION_THRESHOLD, ge=0, description="Byte size below which I/O stays direct"
    )
    # Reserved weighting hook; the plan rules do not read it
    complexity_factors: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_COMPLEXITY_FACTORS),
        description="Complexity weighting factors",
    )
    batch_threshold: int = Field(DEFAULT_BATCH_THRESHOLD, ge=1, description="File count that triggers batching")
    batch_size: int = Field(DEFAULT_BATCH_SIZE, ge=1, description="Files per batch")


class EditMCPConfig(BaseModel):
    """Main edit-mcp configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    edit: EditConfig = Field(default_factory=EditConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)


def _resolve(path: str) -> Path:
    return Path(os.path.expandvars(path)).expanduser()


def _read_yaml(stream: TextIO) -> Dict[str, Any]:
    try:
        return yaml.safe_load(stream) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file: {e}") from e


def _read_json(stream: TextIO) -> Dict[str, Any]:
    try:
        return json.load(stream)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in configuration file: {e}") from e


_READERS: Dict[str, Callable[[TextIO], Dict[str, Any]]] = {
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
    ".json": _read_json,
}

_WRITERS: Dict[str, Callable[[Dict[str, Any], TextIO], None]] = {
    ".yaml": lambda data, stream: yaml.safe_dump(data, stream, default_flow_style=False, sort_keys=False),
    ".yml": lambda data, stream: yaml.safe_dump(data, stream, default_flow_style=False, sort_keys=False),
    ".json": lambda data, stream: json.dump(data, stream, indent=2),
}


def load_config_from_file(path: str) -> Dict[str, Any]:
    """Read a configuration mapping from a ``.yaml``, ``.yml`` or ``.json`` file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the suffix is unknown or the content does not parse
    """
    resolved = _resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"Configuration file not found: {resolved}")

    reader = _READERS.get(resolved.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported configuration file format: {resolved}")

    logger.debug(f"Loading configuration from {resolved}", component="config", operation="load_config")
    with resolved.open("r") as stream:
        return reader(stream)


def _coerce_env_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    digits = raw[1:] if raw.startswith("-") else raw
    if digits.isdigit():
        return int(raw)
    if digits.count(".") == 1 and digits.replace(".", "", 1).isdigit():
        return float(raw)
    return raw


def load_config_from_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect ``EDIT_MCP_`` variables into a nested mapping.

    A double underscore separates nesting levels, so
    ``EDIT_MCP_EDIT__MAX_INSTANCES=3`` becomes ``{"edit": {"max_instances": 3}}``.
    Booleans and numbers are converted; everything else stays a string.
    """
    environ = os.environ if environ is None else environ
    loaded: Dict[str, Any] = {}

    for name in sorted(environ):
        if not name.startswith(ENV_PREFIX):
            continue
        *parents, leaf = name[len(ENV_PREFIX):].lower().split("__")
        section = loaded
        for parent in parents:
            section = section.setdefault(parent, {})
        section[leaf] = _coerce_env_value(environ[name])

    return loaded


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``override``, merging nested mappings key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def _default_config_file() -> Optional[Path]:
    for candidate in map(_resolve, DEFAULT_CONFIG_PATHS):
        if candidate.is_file():
            return candidate
    return None


def load_config(
    config_file: Optional[str] = None,
    env_override: bool = True,
    overrides: Optional[Dict[str, Any]] = None,
) -> EditMCPConfig:
    """Build, validate and cache the configuration.

    An explicitly named file must exist and parse. A file discovered on the
    default search path is skipped with a warning when it does not parse.

    Raises:
        FileNotFoundError: If ``config_file`` does not exist
        ValueError: If ``config_file`` cannot be read
        ConfigurationError: If the merged settings fail validation
    """
    global _config

    layers: List[Dict[str, Any]] = []

    if config_file:
        layers.append(load_config_from_file(config_file))
    else:
        discovered = _default_config_file()
        if discovered is not None:
            try:
                layers.append(load_config_from_file(str(discovered)))
            except ValueError as e:
                logger.warning(
                    f"Ignoring unreadable config file {discovered}: {e}",
                    component="config",
                    operation="load_config",
                )

    if env_override:
        from_env = load_config_from_env()
        if from_env:
            logger.debug(
                "Environment overrides present",
                component="config",
                operation="load_config",
                context={"sections": sorted(from_env)},
            )
        layers.append(from_env)

    layers.append(overrides or {})

    settings: Dict[str, Any] = {}
    for layer in layers:
        settings = merge_configs(settings, layer)

    try:
        _config = EditMCPConfig(**settings)
    except ValidationError as e:
        logger.error("Invalid configuration", component="config", operation="load_config", exception=e)
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            details={"errors": [error["msg"] for error in e.errors()]},
        ) from e

    logger.set_level(_config.server.log_level)
    logger.debug(
        "Configuration loaded",
        component="config",
        operation="load_config",
        context={"max_instances": _config.edit.max_instances, "transport": _config.server.transport},
    )
    return _config


def get_config() -> EditMCPConfig:
    """Return the cached configuration, loading it on first use."""
    return _config if _config is not None else load_config()


def reset_config() -> None:
    global _config
    _config = None


def save_config(path: str) -> None:
    """Write the current configuration as YAML or JSON, chosen by suffix."""
    target = _resolve(path)
    writer = _WRITERS.get(target.suffix.lower())
    if writer is None:
        raise ValueError(f"Unsupported file format for saving configuration: {target}")

    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w") as stream:
        writer(get_config().model_dump(), stream)
