"""
MCP protocol dispatch.

`MCPServer` owns the initialization handshake and the handler, tool and
resource registries. Transports hand it raw messages through
`handle_wire_message` and send back whatever it returns.
"""
import json
import asyncio
import inspect
import itertools
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import unquote, urlparse

from editmcp.constants import LATEST_PROTOCOL_VERSION, SERVER_NAME, SERVER_VERSION
from editmcp.core.filesystem import FileSystemCapability
from editmcp.mcp.models import (
    CallToolResult,
    Implementation,
    InitializeResult,
    Resource,
    ServerCapabilities,
    TextContent,
    TextResourceContents,
    Tool,
)
from editmcp.mcp.protocol import (
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JSONRPCNotification,
    JSONRPCRequest,
    MessageKind,
    classify_message,
    create_error_response,
    create_notification,
    create_request,
    create_success_response,
    parse_message,
    to_jsonable,
)
from editmcp.utils.errors import (
    EditMCPError,
    NotFoundError,
    ParseError,
    ProtocolStateError,
    ToolError,
    ValidationError,
    rpc_code_for,
)
from editmcp.utils.logging import logger

RequestHandler = Callable[[Dict[str, Any]], Awaitable[Any]]
NotificationHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]
ResourceReader = Callable[[str], Awaitable[str]]


class MCPServer:
    """Dispatches JSON-RPC messages to registered handlers."""

    def __init__(
        self,
        name: str = SERVER_NAME,
        version: str = SERVER_VERSION,
        capabilities: Optional[ServerCapabilities] = None,
        instructions: Optional[str] = None,
        filesystem: Optional[FileSystemCapability] = None,
    ):
        self.name = name
        self.version = version
        self.capabilities = capabilities or ServerCapabilities()
        self.instructions = instructions
        self.filesystem = filesystem

        self._initialize_received = False
        self._initialized = False
        self._request_handlers: Dict[str, RequestHandler] = {}
        self._notification_handlers: Dict[str, NotificationHandler] = {}
        self._tools: Dict[str, Tool] = {}
        self._tool_handlers: Dict[str, ToolHandler] = {}
        self._resources: Dict[str, Resource] = {}
        self._resource_readers: Dict[str, ResourceReader] = {}
        self._request_ids = itertools.count(1)

        self.register_request_handler("initialize", self._handle_initialize)
        self.register_request_handler("ping", self._handle_ping)
        self.register_request_handler("tools/list", self._handle_tools_list)
        self.register_request_handler("tools/call", self._handle_tools_call)
        self.register_request_handler("resources/list", self._handle_resources_list)
        self.register_request_handler("resources/read", self._handle_resources_read)
        self.register_notification_handler("notifications/initialized", self._handle_initialized)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def state(self) -> str:
        if self._initialized:
            return "ready"
        if self._initialize_received:
            return "initializing"
        return "uninitialized"

    # Registration

    def register_request_handler(self, method: str, handler: RequestHandler) -> None:
        self._request_handlers[method] = handler

    def register_notification_handler(self, method: str, handler: NotificationHandler) -> None:
        self._notification_handlers[method] = handler

    def register_tool(self, tool: Tool, handler: ToolHandler) -> None:
        """Register a tool and the coroutine that runs it."""
        self._tools[tool.name] = tool
        self._tool_handlers[tool.name] = handler
        logger.debug(f"Registered tool: {tool.name}", component="mcp", operation="register_handler")

    def register_resource(self, resource: Resource, reader: Optional[ResourceReader] = None) -> None:
        self._resources[resource.uri] = resource
        if reader is not None:
            self._resource_readers[resource.uri] = reader

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError(f"Tool not found: {name}", kind="tool", name=name)
        return tool

    # Wire entry points

    async def handle_wire_message(self, raw: Union[str, bytes]) -> Optional[str]:
        """Handle one raw message or batch.

        Returns:
            The serialized response, or None when nothing should be sent
        """
        try:
            message = parse_message(raw)
        except ParseError as e:
            logger.warning(
                "Error parsing JSON-RPC message",
                component="mcp",
                operation="handle_request",
                context=e.details,
            )
            return json.dumps(create_error_response(None, "Parse error", PARSE_ERROR))

        response = await self.handle_message(message)
        if response is None:
            return None
        return json.dumps(response)

    async def handle_message(self, message: Any) -> Optional[Union[Dict[str, Any], List[Dict[str, Any]]]]:
        """Handle an already decoded message or batch."""
        if isinstance(message, list):
            responses = await asyncio.gather(*(self._process_message(item) for item in message))
            responses = [response for response in responses if response is not None]
            return responses or None

        return await self._process_message(message)

    async def _process_message(self, message: Any) -> Optional[Dict[str, Any]]:
        kind, payload = classify_message(message)

        if kind == MessageKind.REQUEST:
            return await self._handle_request(payload)

        if kind == MessageKind.NOTIFICATION:
            await self._handle_notification(payload)
            return None

        request_id = message.get("id") if isinstance(message, dict) else None
        if isinstance(request_id, (str, int)) and not isinstance(request_id, bool):
            return create_error_response(request_id, "Invalid Request", INVALID_REQUEST)

        logger.warning(
            "Received an unexpected message type",
            component="mcp",
            operation="handle_request",
            context={"message_type": type(message).__name__},
        )
        return None

    async def _handle_request(self, request: JSONRPCRequest) -> Dict[str, Any]:
        logger.debug(
            f"Received request: {request.method}",
            component="mcp",
            operation="handle_request",
            context={"id": request.id},
        )

        if request.method == "initialize" and self._initialized:
            return create_error_response(
                request.id,
                "Server is already initialized",
                ProtocolStateError.rpc_code,
            )

        if request.method != "initialize" and not self._initialized:
            return create_error_response(
                request.id,
                "Server is not initialized",
                ProtocolStateError.rpc_code,
            )

        handler = self._request_handlers.get(request.method)
        if handler is None:
            return create_error_response(
                request.id,
                f"Method not found: {request.method}",
                METHOD_NOT_FOUND,
            )

        params = request.params if isinstance(request.params, dict) else {}
        try:
            result = await handler(params)
        except Exception as e:
            if isinstance(e, EditMCPError):
                logger.warning(
                    f"Error handling request {request.method}: {e}",
                    component="mcp",
                    operation="handle_request",
                    context={"id": request.id, "code": e.code},
                )
                data = e.details or None
            else:
                logger.error(
                    f"Error handling request {request.method}",
                    component="mcp",
                    operation="handle_request",
                    exception=e,
                )
                data = getattr(e, "data", None)
            return create_error_response(request.id, str(e) or "Internal error", rpc_code_for(e), data)

        return create_success_response(request.id, to_jsonable(result))

    async def _handle_notification(self, notification: JSONRPCNotification) -> None:
        logger.debug(
            f"Received notification: {notification.method}",
            component="mcp",
            operation="handle_notification",
        )

        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            logger.warning(
                f"No handler registered for notification: {notification.method}",
                component="mcp",
                operation="handle_notification",
            )
            return

        params = notification.params if isinstance(notification.params, dict) else {}
        try:
            outcome = handler(params)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(
                f"Error handling notification {notification.method}",
                component="mcp",
                operation="handle_notification",
                exception=e,
            )

    # Outgoing messages

    def create_notification(self, method: str, params: Optional[Any] = None) -> str:
        return json.dumps(create_notification(method, params))

    def create_request(self, method: str, params: Optional[Any] = None) -> Dict[str, Any]:
        """Serialize an outgoing request with the next integer id."""
        request_id = next(self._request_ids)
        return {"id": request_id, "message": json.dumps(create_request(request_id, method, params))}

    # Built-in handlers

    async def _handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        client_info = params.get("clientInfo") or {}
        logger.info(
            "Initializing server",
            component="mcp",
            operation="handle_request",
            context={
                "client_protocol_version": params.get("protocolVersion"),
                "client": f"{client_info.get('name', 'unknown')} {client_info.get('version', '')}".strip(),
            },
        )
        self._initialize_received = True

        return InitializeResult(
            protocol_version=LATEST_PROTOCOL_VERSION,
            capabilities=self.capabilities,
            server_info=Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        ).to_wire()

    def _handle_initialized(self, params: Dict[str, Any]) -> None:
        if self._initialized:
            return
        if not self._initialize_received:
            logger.warning(
                "Ignoring initialized notification received before initialize",
                component="mcp",
                operation="handle_notification",
            )
            return
        self._initialized = True
        logger.success("Server initialized", component="mcp", operation="handle_notification")

    async def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _handle_tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": [tool.to_wire() for tool in self._tools.values()]}

    async def _handle_tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        if not name:
            raise ValidationError("Tool name is required", field="name")
        return await self.call_tool(name, params.get("arguments") or {})

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a tool and wrap its result as text content.

        Raises:
            NotFoundError: If no such tool is registered
            ToolError: If the tool handler fails
        """
        self.get_tool(name)
        handler = self._tool_handlers[name]

        try:
            result = await handler(arguments or {})
        except Exception as e:
            details = dict(e.details) if isinstance(e, EditMCPError) else {}
            if not isinstance(e, EditMCPError):
                logger.error(f"Tool {name} failed", component="mcp", operation="execute", exception=e)
            raise ToolError(str(e), tool=name, rpc_code=rpc_code_for(e), details=details) from e

        result = to_jsonable(result)
        text = result if isinstance(result, str) else json.dumps(result, indent=2)
        return CallToolResult(content=[TextContent(text=text)]).to_wire()

    async def _handle_resources_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"resources": [resource.to_wire() for resource in self._resources.values()]}

    async def _handle_resources_read(self, params: Dict[str, Any]) -> Dict[str, Any]:
        uri = params.get("uri")
        if not uri:
            raise ValidationError("URI is required", field="uri")

        resource = self._resources.get(uri)
        if resource is None:
            raise NotFoundError(f"Resource not found: {uri}", kind="resource", name=uri)

        reader = self._resource_readers.get(uri)
        if reader is not None:
            text = await reader(uri)
        else:
            parsed = urlparse(uri)
            if parsed.scheme != "file" or self.filesystem is None:
                raise NotFoundError(f"No reader available for resource: {uri}", kind="resource", name=uri)
            text = await self.filesystem.read_file(unquote(parsed.path))

        contents = TextResourceContents(uri=uri, mime_type=resource.mime_type or "text/plain", text=text)
        return {"contents": [contents.to_wire()]}
