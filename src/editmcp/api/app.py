"""
Routers for the edit-mcp HTTP transport.

`mcp_router` carries the JSON-RPC endpoint used by MCP clients. `api_router`
is a plain REST surface for calling tools directly, mounted under /api and
optionally protected by an API key.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status

from editmcp.api.dependencies import get_api_key, get_mcp_server
from editmcp.mcp.server import MCPServer
from editmcp.utils.logging import logger
from editmcp.version import get_version_info

mcp_router = APIRouter(tags=["MCP"])


@mcp_router.post("/jsonrpc")
async def jsonrpc(request: Request, server: MCPServer = Depends(get_mcp_server)) -> Response:
    """Forward one JSON-RPC message or batch to the protocol server."""
    raw = await request.body()
    response = await server.handle_wire_message(raw)
    if response is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(content=response, media_type="application/json")


api_router = APIRouter(dependencies=[Depends(get_api_key)])


@api_router.get("/version", tags=["System"])
async def version():
    return get_version_info()


@api_router.get("/tools", tags=["Tools"])
async def list_tools(server: MCPServer = Depends(get_mcp_server)):
    return {"tools": [tool.to_wire() for tool in server.list_tools()]}


@api_router.post("/tools/{name}", tags=["Tools"])
async def call_tool(
    name: str,
    arguments: Optional[Dict[str, Any]] = Body(None),
    server: MCPServer = Depends(get_mcp_server),
):
    """Call a tool directly; the MCP handshake is not required here."""
    logger.info(f"Direct tool call: {name}", component="http", operation="execute")
    return await server.call_tool(name, arguments or {})
