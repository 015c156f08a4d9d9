import json

import httpx
import pytest
import pytest_asyncio

from editmcp.config import EditMCPConfig, ServerConfig
from editmcp.core.filesystem import FileSystemManager
from editmcp.mcp.server import MCPServer
from editmcp.mcp.tools import register_edit_tools
from editmcp.router.operation_router import OperationRouter
from editmcp.server import ServerComponents, build_logging_config, create_server
from editmcp.version import __version__


def _components(pool) -> ServerComponents:
    filesystem = FileSystemManager()
    router = OperationRouter(filesystem, pool)
    server = MCPServer(filesystem=filesystem)
    register_edit_tools(server, router, pool)
    return ServerComponents(filesystem=filesystem, pool=pool, router=router, server=server)


@pytest_asyncio.fixture
async def make_client(make_pool):
    """Factory for httpx clients talking to an in-process app."""
    clients = []

    def factory(**server_settings):
        config = EditMCPConfig(server=ServerConfig(**server_settings))
        app = create_server(config, _components(make_pool()))
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()


def _rpc(request_id, method, params=None):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest.mark.asyncio
async def test_health(make_client):
    client = make_client()

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__, "initialized": False, "instances": 0}


@pytest.mark.asyncio
async def test_jsonrpc_handshake_and_tool_call(make_client, tmp_path):
    client = make_client()
    path = tmp_path / "a.txt"
    path.write_text("over http")

    response = await client.post("/jsonrpc", json=_rpc(1, "initialize", {"protocolVersion": "2025-03-26"}))
    assert response.status_code == 200
    assert response.json()["result"]["serverInfo"]["name"] == "edit-mcp"

    response = await client.post("/jsonrpc", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert response.status_code == 204

    response = await client.post(
        "/jsonrpc", json=_rpc(2, "tools/call", {"name": "read_file", "arguments": {"path": str(path)}})
    )
    assert response.json()["result"]["content"][0]["text"] == "over http"

    health = (await client.get("/health")).json()
    assert health["initialized"] is True


@pytest.mark.asyncio
async def test_jsonrpc_parse_error(make_client):
    client = make_client()

    response = await client.post("/jsonrpc", content=b"{broken", headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32700
    assert response.json()["id"] is None


@pytest.mark.asyncio
async def test_rest_tools(make_client, tmp_path):
    client = make_client()
    path = tmp_path / "b.txt"

    tools = (await client.get("/api/tools")).json()["tools"]
    assert {"read_file", "edit_session_command"} <= {tool["name"] for tool in tools}

    response = await client.post("/api/tools/write_file", json={"path": str(path), "content": "rest"})
    assert response.status_code == 200
    assert json.loads(response.json()["content"][0]["text"]) == {"success": True, "path": str(path)}
    assert path.read_text() == "rest"


@pytest.mark.asyncio
async def test_rest_errors_map_to_status_codes(make_client, tmp_path):
    client = make_client()

    response = await client.post("/api/tools/no_such_tool", json={})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"

    response = await client.post("/api/tools/write_file", json={"path": str(tmp_path / "c.txt")})
    assert response.status_code == 400
    assert "content" in response.json()["error"]["message"]

    response = await client.post("/api/tools/read_file", json={"path": str(tmp_path / "missing.txt")})
    assert response.status_code == 500
    assert response.json()["error"]["details"]["tool"] == "read_file"


@pytest.mark.asyncio
async def test_api_key_is_enforced_when_enabled(make_client):
    client = make_client(auth_enabled=True, api_key="s3cret")

    response = await client.get("/api/version")
    assert response.status_code == 401
    assert response.json()["detail"] == "API key is required"
    assert response.headers["WWW-Authenticate"] == "ApiKey"

    response = await client.get("/api/version", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid API key"

    response = await client.get("/api/version", headers={"X-API-Key": "s3cret"})
    assert response.status_code == 200
    assert response.json()["package_version"] == __version__

    assert (await client.get("/health")).status_code == 200


def test_logging_config_levels_and_file(tmp_path):
    log_file = str(tmp_path / "logs" / "edit-mcp.log")

    config = build_logging_config("debug", log_file)

    assert config["loggers"]["editmcp"]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn"]["level"] == "DEBUG"
    assert "rotating_file" in config["loggers"]["editmcp"]["handlers"]
    assert config["handlers"]["rotating_file"]["filename"] == log_file
    assert (tmp_path / "logs").is_dir()

    config = build_logging_config("warning")
    assert config["root"]["level"] == "WARNING"
    assert config["loggers"]["uvicorn"]["level"] == "INFO"
    assert "rotating_file" not in config["handlers"]
