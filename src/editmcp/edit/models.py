"""
Data models for edit worker sessions.

Commands sent to a worker, the results handed back to callers and the
snapshot of a worker's state.
"""
from typing import Dict, List, Any, Optional, Literal, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as ModelValidationError
from pydantic.alias_generators import to_camel

from editmcp.utils.errors import ValidationError

EditCommandType = Literal["open", "close", "save", "edit", "find", "replace", "goto"]

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model: Type[ModelT], value: Any, field: str) -> ModelT:
    """Validate caller input as `model`; bad input is a ValidationError on `field`."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ModelValidationError as e:
        raise ValidationError(
            f"Invalid {field}: {e}",
            field=field,
            details={"errors": [error["msg"] for error in e.errors()]},
        ) from e


class EditCommand(BaseModel):
    """One structured command for a worker session."""

    type: EditCommandType = Field(..., description="Command verb")
    params: Dict[str, Any] = Field(default_factory=dict, description="Command parameters")


class EditResult(BaseModel):
    """Outcome of a command; failures are reported here rather than raised."""

    success: bool = Field(..., description="Whether the command succeeded")
    message: Optional[str] = Field(None, description="Worker response or failure message")
    data: Optional[Any] = Field(None, description="Structured result data")


class EditInstanceState(BaseModel):
    """Snapshot of one worker instance."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    open_files: List[str] = Field(default_factory=list)
    active_file: Optional[str] = None
    running: bool
    pid: Optional[int] = None
    created_at: float
    last_activity: float
    pending_commands: int = 0
    exit_code: Optional[int] = None


class MultiFileEditOperation(BaseModel):
    """A command applied once per file inside a single session."""

    files: List[str] = Field(..., description="Files to open and edit, in order")
    operation: EditCommand = Field(..., description="Command applied to every file")


class ComplexEditOperation(BaseModel):
    """A worker-interpreted edit such as merge resolution."""

    type: str = Field(..., description="Complex edit kind")
    params: Dict[str, Any] = Field(default_factory=dict)
