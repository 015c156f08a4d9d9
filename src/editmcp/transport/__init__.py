"""
Transports that carry MCP messages to and from the protocol server.
"""

from editmcp.transport.stdio import StdioTransport, serve_stdio

__all__ = ["StdioTransport", "serve_stdio"]
