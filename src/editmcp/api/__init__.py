"""
HTTP API for edit-mcp.
"""

from editmcp.api.app import api_router, mcp_router
from editmcp.api.errors import add_error_handlers

__all__ = ["api_router", "mcp_router", "add_error_handlers"]
