import dataclasses
import json

import pytest

from editmcp.mcp.models import Tool
from editmcp.mcp.protocol import (
    INTERNAL_ERROR,
    JSONRPCNotification,
    JSONRPCRequest,
    MessageKind,
    classify_message,
    create_error_response,
    create_notification,
    create_success_response,
    parse_message,
    to_jsonable,
)
from editmcp.router.models import ExecutorType
from editmcp.utils.errors import ParseError


def test_parse_message_accepts_text_and_bytes():
    assert parse_message('{"a": 1}') == {"a": 1}
    assert parse_message(b"[1, 2]") == [1, 2]

    with pytest.raises(ParseError) as exc_info:
        parse_message("{oops")
    assert "reason" in exc_info.value.details


@pytest.mark.parametrize(
    "message, kind",
    [
        ({"jsonrpc": "2.0", "id": 1, "method": "ping"}, MessageKind.REQUEST),
        ({"jsonrpc": "2.0", "id": "abc", "method": "ping"}, MessageKind.REQUEST),
        ({"jsonrpc": "2.0", "method": "notifications/initialized"}, MessageKind.NOTIFICATION),
        ({"jsonrpc": "2.0", "id": 1, "result": {}}, MessageKind.INVALID),
        ({"jsonrpc": "2.0", "id": True, "method": "ping"}, MessageKind.INVALID),
        ({"jsonrpc": "2.0", "id": 1.5, "method": "ping"}, MessageKind.INVALID),
        ({"jsonrpc": "1.0", "method": "ping"}, MessageKind.INVALID),
        ("ping", MessageKind.INVALID),
    ],
)
def test_classify_message(message, kind):
    assert classify_message(message)[0] == kind


def test_classified_payloads_are_models():
    _, request = classify_message({"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "x"}})
    assert isinstance(request, JSONRPCRequest)
    assert request.params == {"name": "x"}

    _, notification = classify_message({"jsonrpc": "2.0", "method": "notifications/cancelled"})
    assert isinstance(notification, JSONRPCNotification)


def test_envelopes():
    assert create_success_response(1, {"ok": True}) == {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}

    error = create_error_response("r-1", "boom")
    assert error == {"jsonrpc": "2.0", "id": "r-1", "error": {"code": INTERNAL_ERROR, "message": "boom"}}

    error = create_error_response(None, "bad", -32602, {"field": "path"})
    assert error["id"] is None
    assert error["error"]["data"] == {"field": "path"}

    assert create_notification("notifications/progress", {"progress": 1}) == {
        "jsonrpc": "2.0",
        "method": "notifications/progress",
        "params": {"progress": 1},
    }


def test_to_jsonable_handles_models_dataclasses_and_enums():
    @dataclasses.dataclass
    class Point:
        x: int
        y: int

    value = {
        "tool": Tool(name="read_file"),
        "point": Point(1, 2),
        "executor": ExecutorType.EDIT,
        "items": (1, "two"),
    }

    result = to_jsonable(value)

    assert result["tool"]["inputSchema"] == {"type": "object", "properties": {}}
    assert result["point"] == {"x": 1, "y": 2}
    assert result["executor"] == "edit"
    assert result["items"] == [1, "two"]
    json.dumps(result)
