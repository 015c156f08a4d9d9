"""Package, protocol and interpreter versions reported by edit-mcp."""

import platform

__version__ = "0.1.0"

# MCP revision answered in the initialize handshake
PROTOCOL_VERSION = "2025-03-26"

MINIMUM_PYTHON_VERSION = "3.10"


def get_version_info():
    """Versions shown by ``edit-mcp version`` and ``GET /api/version``."""
    return {
        "package_version": __version__,
        "protocol_version": PROTOCOL_VERSION,
        "minimum_python_version": MINIMUM_PYTHON_VERSION,
        "python_version": platform.python_version(),
    }
