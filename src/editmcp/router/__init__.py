"""
Operation routing.

Classification, planning and execution of operations across the filesystem
capability and the edit worker pool.
"""

from editmcp.router.models import (
    ComplexityLevel,
    ExecutorType,
    CoordinationStrategy,
    Operation,
    FileContext,
    PerformanceRequirements,
    ExecutionPlan,
    OptimizedOperation,
)
from editmcp.router.classifier import (
    classify,
    score_complexity,
    complexity_from_score,
    build_plan,
    analyze_performance,
)
from editmcp.router.operation_router import OperationRouter, compile_pattern

__all__ = [
    "ComplexityLevel",
    "ExecutorType",
    "CoordinationStrategy",
    "Operation",
    "FileContext",
    "PerformanceRequirements",
    "ExecutionPlan",
    "OptimizedOperation",
    "classify",
    "score_complexity",
    "complexity_from_score",
    "build_plan",
    "analyze_performance",
    "OperationRouter",
    "compile_pattern",
]
