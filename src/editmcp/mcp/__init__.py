"""
MCP protocol layer for edit-mcp.
"""

from editmcp.mcp.protocol import (
    JSONRPCRequest,
    JSONRPCNotification,
    MessageKind,
    parse_message,
    classify_message,
    create_success_response,
    create_error_response,
    create_notification,
    create_request,
    to_jsonable,
)
from editmcp.mcp.models import (
    Tool,
    ToolAnnotations,
    Resource,
    ServerCapabilities,
    InitializeResult,
    CallToolResult,
    TextContent,
)
from editmcp.mcp.server import MCPServer
from editmcp.mcp.tools import register_edit_tools, build_operation

__all__ = [
    "JSONRPCRequest",
    "JSONRPCNotification",
    "MessageKind",
    "parse_message",
    "classify_message",
    "create_success_response",
    "create_error_response",
    "create_notification",
    "create_request",
    "to_jsonable",
    "Tool",
    "ToolAnnotations",
    "Resource",
    "ServerCapabilities",
    "InitializeResult",
    "CallToolResult",
    "TextContent",
    "MCPServer",
    "register_edit_tools",
    "build_operation",
]
