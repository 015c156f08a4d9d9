"""
Data models for operation routing.

An Operation is what a tool call asks for; the router derives a complexity
class, a file context and performance requirements from it and turns them
into an ExecutionPlan.
"""
from enum import Enum
from typing import Dict, List, Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as ModelValidationError

from editmcp.utils.errors import ValidationError


class ComplexityLevel(str, Enum):
    """How much editing machinery an operation needs."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ExecutorType(str, Enum):
    """Subsystems able to carry out an operation."""

    FILESYSTEM = "filesystem"
    EDIT = "edit"
    HYBRID = "hybrid"


class CoordinationStrategy(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    INTELLIGENT = "intelligent"


class Operation(BaseModel):
    """One unit of work submitted by a caller. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Operation type, e.g. read_file_content")
    method: str = Field("", description="Method name the request arrived under")
    params: Dict[str, Any] = Field(default_factory=dict, description="Operation parameters")
    affected_files: List[str] = Field(default_factory=list, description="Paths the operation touches")
    requires_real_time_response: bool = Field(False, description="Prefer latency over completeness")
    priority: Optional[str] = Field(None, description="Caller priority hint")

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Operation":
        """Build an operation from a camelCase wire object."""
        if not isinstance(data, dict) or not data.get("type"):
            raise ValidationError("Operation requires a type", field="type")
        try:
            return cls(
                type=data["type"],
                method=data.get("method") or data["type"],
                params=data.get("params") or {},
                affected_files=data.get("affectedFiles", data.get("affected_files")) or [],
                requires_real_time_response=bool(
                    data.get("requiresRealTimeResponse", data.get("requires_real_time_response", False))
                ),
                priority=data.get("priority"),
            )
        except ModelValidationError as e:
            raise ValidationError(
                f"Invalid operation: {e}",
                field="operation",
                details={"errors": [error["msg"] for error in e.errors()]},
            ) from e

    def with_files(self, files: List[str]) -> "Operation":
        """Copy of this operation scoped to a slice of its files."""
        return self.model_copy(update={"affected_files": list(files)})

    def with_type(self, operation_type: str) -> "Operation":
        return self.model_copy(update={"type": operation_type})


class FileContext(BaseModel):
    """What the router learns about an operation's files."""

    file_count: int = 0
    is_multi_file: bool = False
    total_file_size: int = 0
    requires_advanced_features: bool = False


class PerformanceRequirements(BaseModel):
    requires_real_time_response: bool = False
    is_high_priority: bool = False


class ExecutionPlan(BaseModel):
    """Which executor runs an operation, with optional fallback and preprocessing."""

    model_config = ConfigDict(frozen=True)

    executor: ExecutorType
    fallback: Optional[ExecutorType] = None
    preprocessing: Optional[ExecutorType] = None
    coordination_strategy: Optional[CoordinationStrategy] = None


class OptimizedOperation(BaseModel):
    """An operation with its final plan and, for large fan-outs, its batches."""

    original: Operation
    plan: ExecutionPlan
    batches: Optional[List[List[Operation]]] = None
