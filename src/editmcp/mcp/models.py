"""
Data models for MCP protocol payloads.

Field names follow Python conventions; aliases carry the camelCase names used
on the wire, so payloads are dumped with `by_alias=True`.
"""
from typing import Dict, List, Any, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MCPModel(BaseModel):
    """Base for wire payloads with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Implementation(MCPModel):
    name: str
    version: str


class ToolAnnotations(MCPModel):
    """Hints describing a tool's behaviour to clients."""

    title: Optional[str] = None
    read_only_hint: Optional[bool] = None
    destructive_hint: Optional[bool] = None
    idempotent_hint: Optional[bool] = None
    open_world_hint: Optional[bool] = None


class Tool(MCPModel):
    """A tool clients can call."""

    name: str = Field(..., description="Tool name")
    description: Optional[str] = Field(None, description="What the tool does")
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema of the tool arguments",
    )
    annotations: Optional[ToolAnnotations] = None


class Resource(MCPModel):
    """A resource the server can read."""

    uri: str
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None


class TextResourceContents(MCPModel):
    uri: str
    mime_type: Optional[str] = None
    text: str


class TextContent(MCPModel):
    type: Literal["text"] = "text"
    text: str


class CallToolResult(MCPModel):
    content: List[TextContent] = Field(default_factory=list)
    is_error: Optional[bool] = None


class ServerCapabilities(MCPModel):
    """Capabilities advertised during initialization."""

    experimental: Optional[Dict[str, Any]] = None
    logging: Optional[Dict[str, Any]] = Field(default_factory=dict)
    prompts: Optional[Dict[str, Any]] = None
    resources: Optional[Dict[str, Any]] = Field(
        default_factory=lambda: {"subscribe": False, "listChanged": True}
    )
    tools: Optional[Dict[str, Any]] = Field(default_factory=lambda: {"listChanged": True})


class InitializeResult(MCPModel):
    protocol_version: str
    capabilities: ServerCapabilities
    server_info: Implementation
    instructions: Optional[str] = None
