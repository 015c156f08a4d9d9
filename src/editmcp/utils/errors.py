"""
edit-mcp Error Definitions.

This module defines the exception hierarchy used throughout edit-mcp. Every
error carries a machine-readable code, a details dict and the JSON-RPC error
code it maps to when it reaches the wire.
"""

from typing import Optional, Dict, Any

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def _details(details: Optional[Dict[str, Any]], **fields: Any) -> Dict[str, Any]:
    """Copy of `details` with the non-None `fields` added."""
    merged = dict(details or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    return merged


class EditMCPError(Exception):
    """Base exception class for all edit-mcp errors."""

    rpc_code: int = INTERNAL_ERROR

    def __init__(
        self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        """Initialize an EditMCPError with optional error code and details.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error context and details
        """
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class ConfigurationError(EditMCPError):
    """Error raised when there's an issue with edit-mcp configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ValidationError(EditMCPError):
    """Error raised when input validation fails."""

    rpc_code = INVALID_PARAMS

    def __init__(
        self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, "VALIDATION_ERROR", _details(details, field=field))


class FilesystemError(EditMCPError):
    """Error raised when there's an issue with filesystem operations."""

    def __init__(
        self, message: str, path: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, "FILESYSTEM_ERROR", _details(details, path=path))


class CapacityError(EditMCPError):
    """Error raised when the worker pool has no room for another instance."""

    def __init__(self, message: str, limit: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CAPACITY_ERROR", _details(details, limit=limit))


class NotFoundError(EditMCPError):
    """Error raised for unknown sessions, tools, resources or methods."""

    rpc_code = INVALID_PARAMS

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "NOT_FOUND", _details(details, kind=kind, name=name))
        if kind == "method":
            self.rpc_code = METHOD_NOT_FOUND


class ProcessFailureError(EditMCPError):
    """Error raised when a worker process exits or a command fails."""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        exit_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.exit_code = exit_code
        error_details = _details(details, session_id=session_id, exit_code=exit_code)
        super().__init__(message, "PROCESS_FAILURE", error_details)


class UnsupportedOperationError(EditMCPError):
    """Error raised when an executor does not recognise an operation type."""

    def __init__(
        self,
        message: str,
        operation_type: Optional[str] = None,
        executor: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.operation_type = operation_type
        self.executor = executor
        super().__init__(
            message,
            "UNSUPPORTED_OPERATION",
            _details(details, operation_type=operation_type, executor=executor),
        )


class ProtocolStateError(EditMCPError):
    """Error raised when a message violates the initialization handshake."""

    rpc_code = INVALID_PARAMS

    def __init__(self, message: str, method: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PROTOCOL_STATE_ERROR", _details(details, method=method))


class ParseError(EditMCPError):
    """Error raised for malformed wire messages."""

    rpc_code = PARSE_ERROR

    def __init__(self, message: str = "Parse error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PARSE_ERROR", details)


class OperationError(EditMCPError):
    """Error raised when a multi-step edit fails part way through."""

    def __init__(
        self,
        message: str,
        operation_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "OPERATION_ERROR", _details(details, operation_type=operation_type))


class ToolError(EditMCPError):
    """Error raised when a tool call fails; carries the wire code of its cause."""

    def __init__(
        self,
        message: str,
        tool: Optional[str] = None,
        rpc_code: int = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "TOOL_ERROR", _details(details, tool=tool))
        self.rpc_code = rpc_code


def rpc_code_for(error: BaseException) -> int:
    """Map an exception to the JSON-RPC error code it should surface as."""
    if isinstance(error, EditMCPError):
        return error.rpc_code
    code = getattr(error, "code", None)
    if isinstance(code, int):
        return code
    return INTERNAL_ERROR
