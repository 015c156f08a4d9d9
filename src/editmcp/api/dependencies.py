"""
FastAPI dependencies: the objects stored on app.state and the API key check.
"""
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from editmcp.config import EditMCPConfig
from editmcp.mcp.server import MCPServer


def get_mcp_server(request: Request) -> MCPServer:
    """Protocol server attached to the application at startup."""
    return request.app.state.mcp_server


def get_app_config(request: Request) -> EditMCPConfig:
    return request.app.state.config


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def get_api_key(
    request: Request,
    api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """Check ``X-API-Key`` against the configured key when auth is enabled.

    Returns None without looking at the header when auth is disabled. An
    enabled server with no configured key rejects every request.
    """
    server_config = get_app_config(request).server
    if not server_config.auth_enabled:
        return None

    if api_key is None:
        raise _unauthorized("API key is required")
    if not server_config.api_key or not secrets.compare_digest(api_key, server_config.api_key):
        raise _unauthorized("Invalid API key")
    return api_key
