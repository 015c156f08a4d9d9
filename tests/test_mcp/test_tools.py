import json

import pytest

from conftest import MemoryFileSystem, RecordingPool
from editmcp.mcp.protocol import INVALID_PARAMS
from editmcp.mcp.server import MCPServer
from editmcp.mcp.tools import ROUTED_TOOLS, SESSION_TOOLS, build_operation, register_edit_tools
from editmcp.router.operation_router import OperationRouter
from editmcp.utils.errors import NotFoundError, ToolError, ValidationError


def _server(files=None, pool=None):
    filesystem = MemoryFileSystem(files)
    pool = pool or RecordingPool()
    server = MCPServer()
    register_edit_tools(server, OperationRouter(filesystem, pool), pool)
    return server, filesystem, pool


def _text(result):
    return result["content"][0]["text"]


def test_every_tool_is_registered():
    server, _, _ = _server()

    names = [tool.name for tool in server.list_tools()]

    assert names == [tool.name for tool in ROUTED_TOOLS + SESSION_TOOLS]
    assert "read_file" in names
    assert "close_edit_session" in names


def test_build_operation_maps_tool_names_and_files():
    operation = build_operation("read_file", {"path": "a.txt", "realTime": True})
    assert operation.type == "read_file_content"
    assert operation.method == "read_file"
    assert operation.affected_files == ["a.txt"]
    assert operation.requires_real_time_response is True

    operation = build_operation("format_code", {"path": "a.rs", "files": ["a.rs", "b.rs"], "priority": "high"})
    assert operation.type == "format_code"
    assert operation.affected_files == ["a.rs", "b.rs"]
    assert operation.priority == "high"


def test_build_operation_rejects_non_list_files():
    with pytest.raises(ValidationError):
        build_operation("smart_refactor", {"files": "a.py"})


@pytest.mark.asyncio
async def test_read_and_write_through_the_router():
    server, filesystem, _ = _server({"a.txt": "hello"})

    assert _text(await server.call_tool("read_file", {"path": "a.txt"})) == "hello"

    result = await server.call_tool("write_file", {"path": "b.txt", "content": "new"})
    assert json.loads(_text(result)) == {"success": True, "path": "b.txt"}
    assert filesystem.files["b.txt"] == "new"


@pytest.mark.asyncio
async def test_missing_required_argument():
    server, _, _ = _server()

    with pytest.raises(ToolError) as exc_info:
        await server.call_tool("write_file", {"path": "b.txt"})

    assert "content" in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, ValidationError)


@pytest.mark.asyncio
async def test_session_tools_use_the_pool_directly():
    server, _, pool = _server({"a.txt": "x"})

    result = await server.call_tool("interactive_edit_session", {"files": ["a.txt"]})
    session_id = json.loads(_text(result))["sessionId"]
    assert pool.sessions_created == [["a.txt"]]

    result = await server.call_tool(
        "edit_session_command",
        {"sessionId": session_id, "command": {"type": "find", "params": {"pattern": "x"}}},
    )
    assert json.loads(_text(result))["message"] == "ok find"

    result = await server.call_tool("close_edit_session", {"sessionId": session_id})
    assert json.loads(_text(result)) == {"success": True, "sessionId": session_id}
    assert pool.sessions_closed == [session_id]


@pytest.mark.asyncio
async def test_unknown_session_surfaces_as_not_found(make_pool):
    pool = make_pool()
    server = MCPServer()
    register_edit_tools(server, OperationRouter(MemoryFileSystem(), pool), pool)

    with pytest.raises(ToolError) as exc_info:
        await server.call_tool("close_edit_session", {"sessionId": "nope"})

    assert isinstance(exc_info.value.__cause__, NotFoundError)


@pytest.mark.asyncio
async def test_session_round_trip_with_worker(make_pool):
    pool = make_pool()
    server = MCPServer()
    register_edit_tools(server, OperationRouter(MemoryFileSystem(), pool), pool)

    result = await server.call_tool("interactive_edit_session", {"files": ["a.txt"]})
    session_id = json.loads(_text(result))["sessionId"]
    assert pool.has_instance(session_id)

    result = await server.call_tool(
        "edit_session_command", {"sessionId": session_id, "command": {"type": "goto", "params": {"line": 4}}}
    )
    assert json.loads(_text(result))["message"] == "ok goto 4 1"

    await server.call_tool("close_edit_session", {"sessionId": session_id})
    assert not pool.has_instance(session_id)


async def _wire_call(server, name, arguments):
    await server.handle_wire_message(
        json.dumps({"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {"protocolVersion": "2025-03-26"}})
    )
    await server.handle_wire_message(json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}))
    request = {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": name, "arguments": arguments}}
    return json.loads(await server.handle_wire_message(json.dumps(request)))


@pytest.mark.asyncio
async def test_malformed_edit_command_is_invalid_params():
    server, _, pool = _server({"a.py": "x = 1\n"})

    response = await _wire_call(
        server,
        "validate_and_edit",
        {"files": ["a.py"], "validationRules": [], "operation": {"type": "format"}},
    )

    assert response["error"]["code"] == INVALID_PARAMS
    assert response["error"]["data"]["field"] == "operation"
    assert pool.multi_file_edits == []


@pytest.mark.asyncio
async def test_malformed_step_is_rejected_before_any_step_runs():
    server, filesystem, _ = _server()

    response = await _wire_call(
        server,
        "atomic_multi_file_edit",
        {
            "operations": [
                {"type": "write_file_content", "affectedFiles": ["b.txt"], "params": {"content": "new"}},
                {"type": "write_file_content", "affectedFiles": ["c.txt"], "params": "not an object"},
            ]
        },
    )

    assert response["error"]["code"] == INVALID_PARAMS
    assert "b.txt" not in filesystem.files


@pytest.mark.asyncio
async def test_bulk_edit_with_bad_command_raises_validation_error():
    server, _, _ = _server()

    with pytest.raises(ToolError) as exc_info:
        await server.call_tool("validate_and_edit", {"files": [], "validationRules": [], "operation": {"params": {}}})

    assert isinstance(exc_info.value.__cause__, ValidationError)
    assert exc_info.value.rpc_code == INVALID_PARAMS
