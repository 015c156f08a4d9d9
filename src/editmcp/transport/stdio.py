"""
Newline-delimited JSON-RPC over stdin/stdout.

Each input line is one message. Responses are written as single lines in the
order their requests finish; stdout carries nothing else, so logging must be
routed to stderr while this transport runs.
"""
import sys
import asyncio
from typing import Optional, Set, TextIO

from editmcp.edit.manager import EditInstanceManager
from editmcp.mcp.server import MCPServer
from editmcp.utils.logging import logger


class StdioTransport:
    """Reads messages from a text stream and writes responses to another."""

    def __init__(
        self,
        server: MCPServer,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
    ):
        self.server = server
        self.input_stream = input_stream or sys.stdin
        self.output_stream = output_stream or sys.stdout
        self._write_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def _read_line(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.input_stream.readline)

    async def _write(self, text: str) -> None:
        async with self._write_lock:
            self.output_stream.write(text + "\n")
            self.output_stream.flush()

    async def _handle_line(self, line: str) -> None:
        response = await self.server.handle_wire_message(line)
        if response is not None:
            await self._write(response)

    async def send(self, message: str) -> None:
        """Write a server-initiated message (notification or request)."""
        await self._write(message)

    async def run(self) -> None:
        """Serve until end of input, then wait for in-flight messages."""
        logger.info("Serving MCP on stdio", component="stdio", operation="startup")

        while True:
            line = await self._read_line()
            if not line:
                break
            line = line.strip()
            if not line:
                continue

            task = asyncio.create_task(self._handle_line(line))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        if self._pending:
            await asyncio.gather(*self._pending)

        logger.info("End of input reached", component="stdio", operation="shutdown")


async def serve_stdio(
    server: MCPServer,
    pool: Optional[EditInstanceManager] = None,
    input_stream: Optional[TextIO] = None,
    output_stream: Optional[TextIO] = None,
) -> None:
    """Run the stdio transport and release every worker once input ends."""
    transport = StdioTransport(server, input_stream, output_stream)
    try:
        await transport.run()
    finally:
        if pool is not None:
            await pool.shutdown()
