"""
Global constants for the edit-mcp server.
"""

from editmcp.version import __version__, PROTOCOL_VERSION

SERVER_NAME = "edit-mcp"
SERVER_VERSION = __version__
LATEST_PROTOCOL_VERSION = PROTOCOL_VERSION
JSONRPC_VERSION = "2.0"

# Worker defaults
DEFAULT_EDIT_EXECUTABLE = "edit"
DEFAULT_COMPLETION_MARKER = "Command completed"
DEFAULT_MAX_INSTANCES = 5
DEFAULT_INSTANCE_TIMEOUT = 300.0  # seconds
DEFAULT_TERMINATE_GRACE = 2.0  # seconds

# Router defaults
DEFAULT_SIMPLE_OPERATION_THRESHOLD = 1000  # bytes
DEFAULT_BATCH_THRESHOLD = 100  # files
DEFAULT_BATCH_SIZE = 50  # files
DEFAULT_COMPLEXITY_FACTORS = {
    "fileSize": 0.3,
    "operationType": 0.4,
    "contextRequirement": 0.3,
}

# Find context
DEFAULT_CONTEXT_LINES = 2

# Server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

# Locations searched when no worker executable is configured
EDIT_EXECUTABLE_LOCATIONS = [
    "/usr/local/bin/edit",
    "/usr/bin/edit",
    "/opt/edit/bin/edit",
    "~/.local/bin/edit",
]
