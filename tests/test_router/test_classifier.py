import pytest

from editmcp.router import classifier
from editmcp.router.models import (
    ComplexityLevel,
    CoordinationStrategy,
    ExecutionPlan,
    ExecutorType,
    FileContext,
    Operation,
    PerformanceRequirements,
)


def _context(size=0, files=1, advanced=False):
    return FileContext(
        file_count=files,
        is_multi_file=files > 1,
        total_file_size=size,
        requires_advanced_features=advanced,
    )


NO_RUSH = PerformanceRequirements()


@pytest.mark.parametrize("operation_type", sorted(classifier.SIMPLE_OPERATIONS))
def test_simple_operations_on_small_files_go_to_filesystem(operation_type):
    complexity = classifier.classify(Operation(type=operation_type))
    plan = classifier.build_plan(complexity, _context(size=999), NO_RUSH, 1000)

    assert complexity == ComplexityLevel.SIMPLE
    assert plan == ExecutionPlan(executor=ExecutorType.FILESYSTEM, fallback=ExecutorType.EDIT)


@pytest.mark.parametrize("size", [0, 10, 10_000_000])
@pytest.mark.parametrize("operation_type", sorted(classifier.COMPLEX_OPERATIONS))
def test_complex_operations_go_to_edit_regardless_of_size(operation_type, size):
    complexity = classifier.classify(Operation(type=operation_type))
    plan = classifier.build_plan(complexity, _context(size=size), NO_RUSH)

    assert plan.executor == ExecutorType.EDIT
    assert plan.preprocessing == ExecutorType.FILESYSTEM
    assert plan.fallback is None


def test_simple_operation_at_threshold_is_not_direct():
    plan = classifier.build_plan(ComplexityLevel.SIMPLE, _context(size=1000), NO_RUSH, 1000)
    assert plan.executor == ExecutorType.HYBRID
    assert plan.coordination_strategy == CoordinationStrategy.SEQUENTIAL


def test_advanced_features_force_edit_for_simple_operations():
    plan = classifier.build_plan(ComplexityLevel.SIMPLE, _context(size=5, advanced=True), NO_RUSH)
    assert plan == ExecutionPlan(executor=ExecutorType.EDIT, preprocessing=ExecutorType.FILESYSTEM)


def test_medium_multi_file_is_intelligent_hybrid():
    plan = classifier.build_plan(ComplexityLevel.MEDIUM, _context(size=50, files=2), NO_RUSH)
    assert plan == ExecutionPlan(
        executor=ExecutorType.HYBRID, coordination_strategy=CoordinationStrategy.INTELLIGENT
    )


def test_real_time_small_medium_operation_goes_direct():
    performance = PerformanceRequirements(requires_real_time_response=True)
    plan = classifier.build_plan(ComplexityLevel.MEDIUM, _context(size=50), performance)
    assert plan == ExecutionPlan(executor=ExecutorType.FILESYSTEM, fallback=ExecutorType.EDIT)


def test_default_plan_is_sequential_hybrid():
    plan = classifier.build_plan(ComplexityLevel.MEDIUM, _context(size=5000), NO_RUSH)
    assert plan.executor == ExecutorType.HYBRID
    assert plan.coordination_strategy == CoordinationStrategy.SEQUENTIAL


def test_hybrid_recipes_classify_as_medium():
    for operation_type in classifier.HYBRID_OPERATIONS:
        assert classifier.classify(Operation(type=operation_type)) == ComplexityLevel.MEDIUM


@pytest.mark.parametrize(
    "method, params, expected",
    [
        ("rename_things", {}, 0.0),
        ("quick_edit", {}, 0.5),
        ("reformat", {"pattern": "x"}, 0.7),
        ("inspect", {"contextAware": True}, 0.3),
        ("inspect", {"advanced": True, "regex": "a+"}, 0.5),
        ("edit_all", {"contextAware": True, "pattern": "x"}, 1.0),
    ],
)
def test_score_complexity(method, params, expected):
    assert classifier.score_complexity(method, params) == pytest.approx(expected)


def test_complexity_from_score_boundaries():
    assert classifier.complexity_from_score(0.0) == ComplexityLevel.SIMPLE
    assert classifier.complexity_from_score(0.29) == ComplexityLevel.SIMPLE
    assert classifier.complexity_from_score(0.3) == ComplexityLevel.MEDIUM
    assert classifier.complexity_from_score(0.69) == ComplexityLevel.MEDIUM
    assert classifier.complexity_from_score(0.7) == ComplexityLevel.COMPLEX


def test_unlisted_types_are_scored_by_method_and_params():
    operation = Operation(type="custom", method="format_edit", params={"pattern": "foo"})
    assert classifier.classify(operation) == ComplexityLevel.COMPLEX

    operation = Operation(type="custom", method="lookup")
    assert classifier.classify(operation) == ComplexityLevel.SIMPLE


def test_advanced_extensions():
    assert classifier.has_advanced_extension(["src/main.rs"])
    assert classifier.has_advanced_extension(["a.txt", "lib/util.HPP"])
    assert not classifier.has_advanced_extension(["a.ts", "notes.md", "Makefile"])


def test_advanced_flags():
    assert classifier.has_advanced_flags({"indentation": 4})
    assert not classifier.has_advanced_flags({"syntax": False, "other": True})


def test_high_priority_detection():
    assert classifier.analyze_performance(Operation(type="critical_edit")).is_high_priority
    assert classifier.analyze_performance(Operation(type="x", priority="high")).is_high_priority
    assert classifier.analyze_performance(Operation(type="x", params={"priority": "high"})).is_high_priority
    assert not classifier.analyze_performance(Operation(type="read_file_content")).is_high_priority
