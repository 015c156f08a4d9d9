"""
edit-mcp Utilities Package.

Logging and error definitions shared by every edit-mcp component.
"""

from editmcp.utils.logging import logger
from editmcp.utils.errors import (
    EditMCPError,
    ConfigurationError,
    ValidationError,
    FilesystemError,
    CapacityError,
    NotFoundError,
    ProcessFailureError,
    UnsupportedOperationError,
    ProtocolStateError,
    ParseError,
    OperationError,
    ToolError,
    rpc_code_for,
)

__all__ = [
    "logger",
    "EditMCPError",
    "ConfigurationError",
    "ValidationError",
    "FilesystemError",
    "CapacityError",
    "NotFoundError",
    "ProcessFailureError",
    "UnsupportedOperationError",
    "ProtocolStateError",
    "ParseError",
    "OperationError",
    "ToolError",
    "rpc_code_for",
]
