"""
JSON-RPC 2.0 message structures for the Model Context Protocol.

This module parses raw wire messages, classifies them as requests,
notifications or something else, and builds the response envelopes sent
back to clients.
"""
import json
import dataclasses
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from editmcp.constants import JSONRPC_VERSION
from editmcp.utils.errors import (
    ParseError,
    PARSE_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
)

RequestId = Union[str, int]

__all__ = [
    "RequestId",
    "MessageKind",
    "JSONRPCRequest",
    "JSONRPCNotification",
    "JSONRPCErrorObject",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "parse_message",
    "classify_message",
    "create_success_response",
    "create_error_response",
    "create_notification",
    "create_request",
    "to_jsonable",
]


class MessageKind(str, Enum):
    REQUEST = "request"
    NOTIFICATION = "notification"
    INVALID = "invalid"


class JSONRPCRequest(BaseModel):
    """A request expecting a response."""

    jsonrpc: str = Field(JSONRPC_VERSION, description="Protocol version, always 2.0")
    id: RequestId = Field(..., description="Request identifier")
    method: str = Field(..., description="Method to invoke")
    params: Optional[Any] = Field(None, description="Method parameters")

    @field_validator("jsonrpc")
    @classmethod
    def validate_version(cls, v):
        if v != JSONRPC_VERSION:
            raise ValueError(f"Unsupported JSON-RPC version: {v}")
        return v

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        # bool is an int subclass but never a valid id
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("Request id must be a string or an integer")
        return v


class JSONRPCNotification(BaseModel):
    """A message without an id; it never gets a response."""

    jsonrpc: str = Field(JSONRPC_VERSION, description="Protocol version, always 2.0")
    method: str = Field(..., description="Notification method")
    params: Optional[Any] = Field(None, description="Notification parameters")

    @field_validator("jsonrpc")
    @classmethod
    def validate_version(cls, v):
        if v != JSONRPC_VERSION:
            raise ValueError(f"Unsupported JSON-RPC version: {v}")
        return v


class JSONRPCErrorObject(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None


def parse_message(raw: Union[str, bytes]) -> Any:
    """Decode a raw wire message.

    Raises:
        ParseError: If the message is not valid JSON
    """
    try:
        return json.loads(raw)
    except (ValueError, TypeError) as e:
        raise ParseError(details={"reason": str(e)})


def classify_message(
    message: Any,
) -> Tuple[MessageKind, Union[JSONRPCRequest, JSONRPCNotification, None]]:
    """Decide whether a decoded object is a request, a notification or neither."""
    if not isinstance(message, dict) or "method" not in message:
        return MessageKind.INVALID, None

    try:
        if "id" in message:
            return MessageKind.REQUEST, JSONRPCRequest.model_validate(message)
        return MessageKind.NOTIFICATION, JSONRPCNotification.model_validate(message)
    except PydanticValidationError:
        return MessageKind.INVALID, None


def create_success_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    """Create a successful response envelope."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def create_error_response(
    request_id: Optional[RequestId],
    message: str,
    code: int = INTERNAL_ERROR,
    data: Optional[Any] = None,
) -> Dict[str, Any]:
    """Create an error response envelope.

    Args:
        request_id: Id of the failed request, None when it could not be read
        message: Human-readable error message
        code: JSON-RPC error code
        data: Optional structured error data

    Returns:
        Error envelope ready for serialization
    """
    error = JSONRPCErrorObject(code=code, message=message, data=to_jsonable(data) if data else None)
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error.model_dump(exclude_none=True),
    }


def create_notification(method: str, params: Optional[Any] = None) -> Dict[str, Any]:
    notification = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        notification["params"] = to_jsonable(params)
    return notification


def create_request(request_id: RequestId, method: str, params: Optional[Any] = None) -> Dict[str, Any]:
    request = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        request["params"] = to_jsonable(params)
    return request


def to_jsonable(value: Any) -> Any:
    """Convert models, dataclasses and containers into plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True, mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(dataclasses.asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    return value
