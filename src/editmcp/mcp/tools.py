"""
Edit tools exposed over MCP.

Most tools build an Operation from their arguments and hand it to the
operation router. The session tools talk to the worker pool directly so a
client can drive an interactive session it opened earlier.
"""
from typing import Any, Dict, List, Optional

from editmcp.edit.manager import EditInstanceManager
from editmcp.mcp.models import Tool, ToolAnnotations
from editmcp.mcp.server import MCPServer
from editmcp.router.models import Operation
from editmcp.router.operation_router import OperationRouter
from editmcp.utils.errors import ValidationError

# Tool name -> router operation type, where they differ
TOOL_OPERATION_TYPES = {
    "read_file": "read_file_content",
    "write_file": "write_file_content",
    "append_file": "append_to_file",
}

_PATH = {"type": "string", "description": "Path to the file"}
_FILES = {"type": "array", "items": {"type": "string"}, "description": "Files to operate on"}
_REAL_TIME = {"type": "boolean", "description": "Prefer a fast answer over a thorough one"}
_EDIT_COMMAND = {
    "type": "object",
    "description": "Worker command applied to each file",
    "properties": {
        "type": {"type": "string", "enum": ["open", "close", "save", "edit", "find", "replace", "goto"]},
        "params": {"type": "object"},
    },
    "required": ["type"],
}


def _schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


ROUTED_TOOLS = [
    Tool(
        name="read_file",
        description="Read the contents of a file",
        input_schema=_schema({"path": _PATH, "realTime": _REAL_TIME}, ["path"]),
        annotations=ToolAnnotations(title="Read File", read_only_hint=True, open_world_hint=False),
    ),
    Tool(
        name="write_file",
        description="Write content to a file, creating it if needed",
        input_schema=_schema(
            {"path": _PATH, "content": {"type": "string", "description": "New file content"}, "realTime": _REAL_TIME},
            ["path", "content"],
        ),
        annotations=ToolAnnotations(title="Write File", destructive_hint=True, idempotent_hint=True),
    ),
    Tool(
        name="append_file",
        description="Append content to the end of a file",
        input_schema=_schema(
            {"path": _PATH, "content": {"type": "string", "description": "Content to append"}},
            ["path", "content"],
        ),
        annotations=ToolAnnotations(title="Append To File", destructive_hint=False),
    ),
    Tool(
        name="list_files",
        description="List files in a directory, optionally filtered by a regular expression",
        input_schema=_schema(
            {
                "directory": {"type": "string", "description": "Directory to list"},
                "pattern": {"type": "string", "description": "Regular expression matched against each path"},
            },
            ["directory"],
        ),
        annotations=ToolAnnotations(title="List Files", read_only_hint=True, open_world_hint=False),
    ),
    Tool(
        name="find_in_file",
        description="Find lines matching a regular expression, with surrounding context",
        input_schema=_schema(
            {
                "path": _PATH,
                "pattern": {"type": "string", "description": "Regular expression"},
                "flags": {"type": "string", "description": "Regex flags (i, m, s)"},
                "contextLines": {"type": "integer", "description": "Lines of context", "default": 2},
            },
            ["path", "pattern"],
        ),
        annotations=ToolAnnotations(title="Find In File", read_only_hint=True, open_world_hint=False),
    ),
    Tool(
        name="get_file_info",
        description="Get size and timestamps of a file",
        input_schema=_schema({"path": _PATH}, ["path"]),
        annotations=ToolAnnotations(title="File Info", read_only_hint=True, open_world_hint=False),
    ),
    Tool(
        name="format_code",
        description="Format source files with the edit worker",
        input_schema=_schema(
            {"path": _PATH, "files": _FILES, "language": {"type": "string", "description": "Source language"}},
        ),
        annotations=ToolAnnotations(title="Format Code", destructive_hint=False, idempotent_hint=True),
    ),
    Tool(
        name="complex_find_replace",
        description="Find and replace with worker-side options such as whole word or case folding",
        input_schema=_schema(
            {
                "path": _PATH,
                "files": _FILES,
                "pattern": {"type": "string"},
                "replacement": {"type": "string"},
                "options": {"type": "object", "description": "Worker replace options"},
            },
            ["pattern", "replacement"],
        ),
        annotations=ToolAnnotations(title="Find And Replace", destructive_hint=True),
    ),
    Tool(
        name="interactive_edit_session",
        description="Open files in a worker session that stays open for edit_session_command",
        input_schema=_schema({"files": _FILES}, ["files"]),
        annotations=ToolAnnotations(title="Start Edit Session", read_only_hint=False, destructive_hint=False),
    ),
    Tool(
        name="smart_refactor",
        description="Rename an identifier across files, editing only the files that contain it",
        input_schema=_schema(
            {
                "files": _FILES,
                "oldName": {"type": "string", "description": "Identifier to replace"},
                "newName": {"type": "string", "description": "Replacement identifier"},
            },
            ["files", "oldName", "newName"],
        ),
        annotations=ToolAnnotations(title="Smart Refactor", destructive_hint=True),
    ),
    Tool(
        name="validate_and_edit",
        description="Check every file against validation rules, then apply a command to all of them",
        input_schema=_schema(
            {
                "files": _FILES,
                "validationRules": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"pattern": {"type": "string"}, "message": {"type": "string"}},
                        "required": ["pattern"],
                    },
                },
                "operation": _EDIT_COMMAND,
            },
            ["files", "validationRules", "operation"],
        ),
        annotations=ToolAnnotations(title="Validate And Edit", destructive_hint=True),
    ),
    Tool(
        name="backup_and_edit",
        description="Back up files, run an edit operation and restore the backups if it fails",
        input_schema=_schema(
            {
                "files": _FILES,
                "operation": {
                    "type": "object",
                    "description": "Edit operation; its type selects the edit (e.g. format_code)",
                    "properties": {"type": {"type": "string"}},
                    "required": ["type"],
                },
                "language": {"type": "string"},
                "pattern": {"type": "string"},
                "replacement": {"type": "string"},
            },
            ["files", "operation"],
        ),
        annotations=ToolAnnotations(title="Backup And Edit", destructive_hint=True),
    ),
    Tool(
        name="atomic_multi_file_edit",
        description="Run several operations in order, stopping at the first failure (completed steps are kept)",
        input_schema=_schema(
            {
                "operations": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {"type": "string"},
                            "params": {"type": "object"},
                            "affectedFiles": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["type"],
                    },
                },
            },
            ["operations"],
        ),
        annotations=ToolAnnotations(title="Sequenced Multi-File Edit", destructive_hint=True),
    ),
]

SESSION_TOOLS = [
    Tool(
        name="edit_session_command",
        description="Send one command to an open edit session",
        input_schema=_schema(
            {"sessionId": {"type": "string"}, "command": _EDIT_COMMAND},
            ["sessionId", "command"],
        ),
        annotations=ToolAnnotations(title="Edit Session Command", destructive_hint=True),
    ),
    Tool(
        name="close_edit_session",
        description="Close an edit session and stop its worker",
        input_schema=_schema({"sessionId": {"type": "string"}}, ["sessionId"]),
        annotations=ToolAnnotations(title="Close Edit Session", idempotent_hint=False),
    ),
]


def build_operation(tool_name: str, arguments: Dict[str, Any]) -> Operation:
    """Turn tool arguments into a router operation."""
    affected_files: List[str] = []
    if arguments.get("path"):
        affected_files.append(arguments["path"])
    files = arguments.get("files") or []
    if not isinstance(files, list):
        raise ValidationError("files must be a list of paths", field="files")
    affected_files.extend(path for path in files if path not in affected_files)

    return Operation(
        type=TOOL_OPERATION_TYPES.get(tool_name, tool_name),
        method=tool_name,
        params=dict(arguments),
        affected_files=affected_files,
        requires_real_time_response=bool(arguments.get("realTime", False)),
        priority=arguments.get("priority"),
    )


def _check_required(tool: Tool, arguments: Dict[str, Any]) -> None:
    for field in tool.input_schema.get("required", []):
        if arguments.get(field) is None:
            raise ValidationError(f"Missing required argument '{field}' for {tool.name}", field=field)


def register_edit_tools(server: MCPServer, router: OperationRouter, pool: EditInstanceManager) -> None:
    """Register the edit tool set on a server."""

    def routed(tool: Tool):
        async def handler(arguments: Dict[str, Any]) -> Any:
            _check_required(tool, arguments)
            return await router.execute(build_operation(tool.name, arguments))

        return handler

    for tool in ROUTED_TOOLS:
        server.register_tool(tool, routed(tool))

    session_command, close_session = SESSION_TOOLS

    async def edit_session_command(arguments: Dict[str, Any]) -> Any:
        _check_required(session_command, arguments)
        return await pool.execute_edit_command(arguments["sessionId"], arguments["command"])

    async def close_edit_session(arguments: Dict[str, Any]) -> Any:
        _check_required(close_session, arguments)
        await pool.close_edit_session(arguments["sessionId"])
        return {"success": True, "sessionId": arguments["sessionId"]}

    server.register_tool(session_command, edit_session_command)
    server.register_tool(close_session, close_edit_session)
