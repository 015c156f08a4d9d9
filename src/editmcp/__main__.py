"""
Command-line interface for edit-mcp.

This module provides the main entry point for the edit-mcp command-line interface.
"""
import sys
import json
from typing import Any, Dict, Optional

import typer
import yaml
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from editmcp.config import load_config, save_config
from editmcp.utils.errors import ConfigurationError
from editmcp.utils.logging import logger, console
from editmcp.version import get_version_info

# Create the Typer app
app = typer.Typer(
    name="edit-mcp",
    help="edit-mcp - Model Context Protocol server for file editing",
    add_completion=False,
)

config_app = typer.Typer(help="Configuration management commands")
app.add_typer(config_app, name="config")


def _load(config_file: Optional[str], overrides: Optional[Dict[str, Any]] = None):
    try:
        return load_config(config_file, overrides=overrides)
    except (FileNotFoundError, ValueError, ConfigurationError) as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        raise typer.Exit(code=1)


def build_overrides(
    stdio: bool = False,
    host: Optional[str] = None,
    port: Optional[int] = None,
    edit_path: Optional[str] = None,
    max_instances: Optional[int] = None,
    timeout: Optional[float] = None,
    debug: bool = False,
) -> Dict[str, Any]:
    """Translate serve options into a nested configuration override."""
    server: Dict[str, Any] = {}
    edit: Dict[str, Any] = {}

    if stdio:
        server["transport"] = "stdio"
    if host:
        server["host"] = host
    if port is not None:
        server["port"] = port
    if debug:
        server["debug"] = True
        server["log_level"] = "debug"
    if edit_path:
        edit["executable"] = edit_path
    if max_instances is not None:
        edit["max_instances"] = max_instances
    if timeout is not None:
        edit["instance_timeout"] = timeout

    overrides: Dict[str, Any] = {}
    if server:
        overrides["server"] = server
    if edit:
        overrides["edit"] = edit
    return overrides


@app.command()
def serve(
    stdio: bool = typer.Option(False, "--stdio", help="Serve MCP over stdin/stdout instead of HTTP"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind to"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind to"),
    edit_path: Optional[str] = typer.Option(None, "--edit-path", help="Path to the edit executable"),
    max_instances: Optional[int] = typer.Option(
        None, "--max-instances", help="Maximum number of live edit workers"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds before an edit worker is reclaimed"
    ),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Start the edit-mcp server."""
    from editmcp.server import start_server, start_stdio

    overrides = build_overrides(stdio, host, port, edit_path, max_instances, timeout, debug)
    config = _load(config_file, overrides)

    if config.server.transport == "stdio":
        start_stdio()
    else:
        start_server()


@app.command()
def version():
    """Show version information."""
    info = get_version_info()

    title = Text()
    title.append("✏️  ", style="bright_blue")
    title.append("edit-mcp", style="bold bright_blue")

    version_table = Table(box=None, show_header=False, padding=(0, 2))
    version_table.add_column("Key", style="bright_black")
    version_table.add_column("Value", style="bright_blue")

    version_table.add_row("Version", info["package_version"])
    version_table.add_row("Protocol Version", info["protocol_version"])
    version_table.add_row("Min Python Version", info["minimum_python_version"])
    version_table.add_row("Python", info["python_version"])

    console.print(Panel(version_table, title=title, border_style="bright_blue", padding=(1, 2)))


# Configuration commands


@config_app.command("show")
def config_show(
    format: str = typer.Option("table", "--format", "-f", help="Output format (table, json, yaml)"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration file"),
):
    """Show the current configuration."""
    config_dict = _load(config_file).model_dump()

    if format.lower() == "json":
        console.print_json(json.dumps(config_dict, indent=2))
    elif format.lower() == "yaml":
        console.print(yaml.dump(config_dict, default_flow_style=False))
    else:
        for section, data in config_dict.items():
            table = Table(title=f"{section.title()} Configuration")
            table.add_column("Setting", style="bright_blue")
            table.add_column("Value", style="")
            for key, value in data.items():
                table.add_row(key, str(value))
            console.print(table)


@config_app.command("save")
def config_save(
    path: str = typer.Argument(..., help="Path to save configuration to"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration file"),
):
    """Save the current configuration to a file."""
    _load(config_file)

    try:
        save_config(path)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to save configuration: {e}", component="cli", exception=e)
        raise typer.Exit(code=1)

    console.print(f"[green]Configuration saved to {path}[/]")


# Main entry point
def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
