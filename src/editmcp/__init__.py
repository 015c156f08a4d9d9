"""
edit-mcp - Model Context Protocol server for file editing.

Exposes file editing tools to MCP clients and decides per request whether to
satisfy it with direct filesystem I/O or through a pool of external edit
worker processes.
"""

from .version import __version__

# Initialize logging early
from editmcp.utils.logging import logger

from editmcp.config import load_config, get_config

# Package metadata
__title__ = "edit-mcp"
__description__ = "Model Context Protocol server for file editing"
__license__ = "MIT"

__all__ = [
    "load_config",
    "get_config",
    "logger",
    "__version__",
]
