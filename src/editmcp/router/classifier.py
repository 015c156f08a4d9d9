"""
Operation classification and planning.

Everything here is a pure function of its inputs. The router feeds these
functions with file statistics it has gathered; tests can call them directly.

Unlisted operation types are scored:

    +0.5  method name mentions "edit" or "format"
    +0.3  params carry a truthy contextAware or advanced flag
    +0.2  params carry a truthy regex or pattern

A score below 0.3 is simple, below 0.7 medium, anything else complex.
"""
import os
from typing import Any, Dict, Iterable, Optional

from editmcp.constants import DEFAULT_SIMPLE_OPERATION_THRESHOLD
from editmcp.router.models import (
    ComplexityLevel,
    CoordinationStrategy,
    ExecutionPlan,
    ExecutorType,
    FileContext,
    Operation,
    PerformanceRequirements,
)

SIMPLE_OPERATIONS = frozenset([
    "read_file_content",
    "write_file_content",
    "append_to_file",
    "get_file_info",
    "list_files",
    "create_directory",
    "delete_file",
    "simple_find_replace",
])

COMPLEX_OPERATIONS = frozenset([
    "interactive_edit_session",
    "format_code",
    "complex_find_replace",
    "merge_conflicts_resolution",
    "bulk_edit_operation",
    "edit_with_context_awareness",
])

HYBRID_OPERATIONS = frozenset([
    "smart_refactor",
    "validate_and_edit",
    "backup_and_edit",
    "atomic_multi_file_edit",
])

HIGH_PRIORITY_OPERATIONS = frozenset([
    "save_file",
    "emergency_backup",
    "critical_edit",
])

# Languages whose edits need structural awareness
ADVANCED_EXTENSIONS = frozenset(["rs", "go", "cpp", "c", "h", "hpp", "java"])
ADVANCED_PARAM_FLAGS = ("syntax", "formatting", "indentation", "contextAware")

METHOD_WEIGHT = 0.5
CONTEXT_WEIGHT = 0.3
PATTERN_WEIGHT = 0.2
SIMPLE_SCORE_LIMIT = 0.3
MEDIUM_SCORE_LIMIT = 0.7


def score_complexity(method: str, params: Optional[Dict[str, Any]] = None) -> float:
    """Score an operation whose type is not in any fixed list."""
    params = params or {}
    score = 0.0

    method = method or ""
    if "edit" in method or "format" in method:
        score += METHOD_WEIGHT

    if params.get("contextAware") or params.get("advanced"):
        score += CONTEXT_WEIGHT

    if params.get("regex") or params.get("pattern"):
        score += PATTERN_WEIGHT

    return round(score, 10)


def complexity_from_score(score: float) -> ComplexityLevel:
    if score < SIMPLE_SCORE_LIMIT:
        return ComplexityLevel.SIMPLE
    if score < MEDIUM_SCORE_LIMIT:
        return ComplexityLevel.MEDIUM
    return ComplexityLevel.COMPLEX


def classify(operation: Operation) -> ComplexityLevel:
    """Classify an operation by its type, falling back to scoring."""
    if operation.type in SIMPLE_OPERATIONS:
        return ComplexityLevel.SIMPLE
    if operation.type in COMPLEX_OPERATIONS:
        return ComplexityLevel.COMPLEX
    if operation.type in HYBRID_OPERATIONS:
        return ComplexityLevel.MEDIUM

    return complexity_from_score(score_complexity(operation.method, operation.params))


def has_advanced_extension(paths: Iterable[str]) -> bool:
    for path in paths:
        extension = os.path.splitext(path)[1].lstrip(".").lower()
        if extension in ADVANCED_EXTENSIONS:
            return True
    return False


def has_advanced_flags(params: Dict[str, Any]) -> bool:
    return any(params.get(flag) for flag in ADVANCED_PARAM_FLAGS)


def analyze_performance(operation: Operation) -> PerformanceRequirements:
    is_high_priority = (
        operation.type in HIGH_PRIORITY_OPERATIONS
        or operation.priority == "high"
        or operation.params.get("priority") == "high"
    )
    return PerformanceRequirements(
        requires_real_time_response=operation.requires_real_time_response,
        is_high_priority=is_high_priority,
    )


def build_plan(
    complexity: ComplexityLevel,
    context: FileContext,
    performance: PerformanceRequirements,
    simple_operation_threshold: int = DEFAULT_SIMPLE_OPERATION_THRESHOLD,
) -> ExecutionPlan:
    """Pick an executor. The rules are a priority list; the first match wins."""
    small = context.total_file_size < simple_operation_threshold

    if complexity == ComplexityLevel.SIMPLE and not context.requires_advanced_features and small:
        return ExecutionPlan(executor=ExecutorType.FILESYSTEM, fallback=ExecutorType.EDIT)

    if complexity == ComplexityLevel.COMPLEX or context.requires_advanced_features:
        return ExecutionPlan(executor=ExecutorType.EDIT, preprocessing=ExecutorType.FILESYSTEM)

    if complexity == ComplexityLevel.MEDIUM and context.is_multi_file:
        return ExecutionPlan(
            executor=ExecutorType.HYBRID,
            coordination_strategy=CoordinationStrategy.INTELLIGENT,
        )

    if performance.requires_real_time_response and small:
        return ExecutionPlan(executor=ExecutorType.FILESYSTEM, fallback=ExecutorType.EDIT)

    return ExecutionPlan(
        executor=ExecutorType.HYBRID,
        coordination_strategy=CoordinationStrategy.SEQUENTIAL,
    )
