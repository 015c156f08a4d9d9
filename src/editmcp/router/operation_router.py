"""
Operation router.

Classifies each operation, gathers file metadata, picks an execution plan and
runs the operation through the filesystem capability, the edit worker pool or
a multi-step hybrid recipe.
"""
import re
import time
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from editmcp.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_BATCH_THRESHOLD,
    DEFAULT_COMPLEXITY_FACTORS,
    DEFAULT_CONTEXT_LINES,
    DEFAULT_SIMPLE_OPERATION_THRESHOLD,
)
from editmcp.core.filesystem import FileSystemCapability
from editmcp.edit.manager import EditInstanceManager
from editmcp.edit.models import (
    EditCommand,
    EditResult,
    MultiFileEditOperation,
    ComplexEditOperation,
    parse_model,
)
from editmcp.router import classifier
from editmcp.router.models import (
    ComplexityLevel,
    CoordinationStrategy,
    ExecutionPlan,
    ExecutorType,
    FileContext,
    OptimizedOperation,
    Operation,
    PerformanceRequirements,
)
from editmcp.utils.errors import (
    EditMCPError,
    OperationError,
    UnsupportedOperationError,
    ValidationError,
)
from editmcp.utils.logging import logger

FILESYSTEM_OPERATIONS = frozenset([
    "read_file_content",
    "write_file_content",
    "append_to_file",
    "get_file_info",
    "list_files",
    "create_directory",
    "delete_file",
    "simple_find_replace",
    "find_in_file",
])

EDIT_OPERATIONS = frozenset([
    "interactive_edit_session",
    "format_code",
    "complex_find_replace",
    "merge_conflicts_resolution",
    "bulk_edit_operation",
    "edit_with_context_awareness",
    "simple_find_replace",
    "write_file_content",
    "append_to_file",
    "find_in_file",
])

HYBRID_RECIPES = frozenset(classifier.HYBRID_OPERATIONS)

NO_OCCURRENCES_MESSAGE = "No occurrences found to refactor"

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def compile_pattern(pattern: str, flags: Optional[str] = None) -> "re.Pattern[str]":
    """Compile a pattern with JavaScript-style flag letters (g is implied)."""
    value = 0
    for letter in flags or "":
        value |= _REGEX_FLAGS.get(letter, 0)
    try:
        return re.compile(pattern, value)
    except re.error as e:
        raise ValidationError(f"Invalid pattern {pattern!r}: {e}", field="pattern")


def _require(operation: Operation, key: str) -> Any:
    value = operation.params.get(key)
    if value is None:
        raise ValidationError(f"Missing required parameter '{key}' for {operation.type}", field=key)
    return value


def _target_path(operation: Operation) -> str:
    path = operation.params.get("path")
    if path:
        return path
    if operation.affected_files:
        return operation.affected_files[0]
    raise ValidationError(f"Missing required parameter 'path' for {operation.type}", field="path")


def _dump(result: Any) -> Any:
    if isinstance(result, EditResult):
        return result.model_dump()
    if isinstance(result, list):
        return [_dump(item) for item in result]
    return result


class OperationRouter:
    """Plans and executes operations over the filesystem and the worker pool."""

    def __init__(
        self,
        filesystem: FileSystemCapability,
        pool: EditInstanceManager,
        simple_operation_threshold: int = DEFAULT_SIMPLE_OPERATION_THRESHOLD,
        complexity_factors: Optional[Dict[str, float]] = None,
        batch_threshold: int = DEFAULT_BATCH_THRESHOLD,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.filesystem = filesystem
        self.pool = pool
        self.simple_operation_threshold = simple_operation_threshold
        # Reserved for future weighting; the plan rules do not read it
        self.complexity_factors = dict(complexity_factors or DEFAULT_COMPLEXITY_FACTORS)
        self.batch_threshold = batch_threshold
        self.batch_size = batch_size

    @classmethod
    def from_config(cls, router_config, filesystem: FileSystemCapability, pool: EditInstanceManager) -> "OperationRouter":
        return cls(
            filesystem,
            pool,
            simple_operation_threshold=router_config.simple_operation_threshold,
            complexity_factors=router_config.complexity_factors,
            batch_threshold=router_config.batch_threshold,
            batch_size=router_config.batch_size,
        )

    # Analysis

    def classify(self, operation: Operation) -> ComplexityLevel:
        return classifier.classify(operation)

    async def build_file_context(self, operation: Operation) -> FileContext:
        """Stat every affected file; missing files count as size 0."""
        files = list(operation.affected_files)
        stats = await asyncio.gather(
            *(self.filesystem.get_file_stats(path) for path in files),
            return_exceptions=True,
        )

        total_size = 0
        for path, stat in zip(files, stats):
            if isinstance(stat, (EditMCPError, OSError)):
                continue
            if isinstance(stat, BaseException):
                raise stat
            total_size += stat.size

        return FileContext(
            file_count=len(files),
            is_multi_file=len(files) > 1,
            total_file_size=total_size,
            requires_advanced_features=(
                classifier.has_advanced_extension(files) or classifier.has_advanced_flags(operation.params)
            ),
        )

    def analyze_performance(self, operation: Operation) -> PerformanceRequirements:
        return classifier.analyze_performance(operation)

    async def build_plan(self, operation: Operation) -> ExecutionPlan:
        complexity = self.classify(operation)
        context = await self.build_file_context(operation)
        performance = self.analyze_performance(operation)
        return classifier.build_plan(complexity, context, performance, self.simple_operation_threshold)

    async def route(self, operation: Operation) -> ExecutionPlan:
        return await self.build_plan(operation)

    async def optimize(self, operation: Operation) -> OptimizedOperation:
        """Plan an operation, then batch large fan-outs or favour latency."""
        plan = await self.build_plan(operation)
        files = operation.affected_files

        # Batches must be strictly smaller than the operation or they would be re-batched
        if len(files) > self.batch_threshold and len(files) > self.batch_size:
            batches = [
                [operation.with_files(files[start:start + self.batch_size])]
                for start in range(0, len(files), self.batch_size)
            ]
            plan = plan.model_copy(update={"coordination_strategy": CoordinationStrategy.PARALLEL})
            return OptimizedOperation(original=operation, plan=plan, batches=batches)

        if operation.requires_real_time_response and plan.executor == ExecutorType.HYBRID:
            plan = plan.model_copy(update={"executor": ExecutorType.FILESYSTEM})

        return OptimizedOperation(original=operation, plan=plan)

    # Execution

    async def execute(self, operation: Operation) -> Any:
        """Optimize and run an operation, applying preprocessing and fallback."""
        optimized = await self.optimize(operation)
        plan = optimized.plan

        logger.debug(
            f"Routing {operation.type} to {plan.executor.value}",
            component="router",
            operation="route",
            context={
                "fallback": plan.fallback.value if plan.fallback else None,
                "preprocessing": plan.preprocessing.value if plan.preprocessing else None,
                "batches": len(optimized.batches) if optimized.batches else 0,
            },
        )

        if optimized.batches is not None:
            return await self._execute_batches(optimized.batches, plan.coordination_strategy)

        if plan.preprocessing:
            await self._execute_with(operation, plan.preprocessing, preprocessing=True)

        try:
            return await self._execute_with(operation, plan.executor)
        except EditMCPError as e:
            if plan.fallback:
                logger.warning(
                    f"Executor {plan.executor.value} failed for {operation.type}, trying fallback {plan.fallback.value}",
                    component="router",
                    operation="execute",
                    context={"error": str(e)},
                )
                try:
                    return await self._execute_with(operation, plan.fallback)
                except UnsupportedOperationError:
                    # The fallback cannot run this type; the primary failure is the useful one
                    if not isinstance(e, UnsupportedOperationError):
                        raise e

            if isinstance(e, UnsupportedOperationError):
                alternate = self._supporting_executor(operation.type, exclude=(plan.executor, plan.fallback))
                if alternate is not None:
                    logger.info(
                        f"Executor {plan.executor.value} cannot run {operation.type}, using {alternate.value}",
                        component="router",
                        operation="execute",
                    )
                    return await self._execute_with(operation, alternate)

            raise

    async def _execute_batches(
        self, batches: List[List[Operation]], strategy: Optional[CoordinationStrategy]
    ) -> List[Any]:
        if strategy == CoordinationStrategy.PARALLEL:
            batch_results = await asyncio.gather(
                *(asyncio.gather(*(self.execute(op) for op in batch)) for batch in batches)
            )
        else:
            batch_results = []
            for batch in batches:
                batch_results.append(await asyncio.gather(*(self.execute(op) for op in batch)))

        return [result for batch in batch_results for result in batch]

    def supports(self, executor: ExecutorType, operation_type: str) -> bool:
        if executor == ExecutorType.FILESYSTEM:
            return operation_type in FILESYSTEM_OPERATIONS
        if executor == ExecutorType.EDIT:
            return operation_type in EDIT_OPERATIONS
        return (
            operation_type in HYBRID_RECIPES
            or operation_type in FILESYSTEM_OPERATIONS
            or operation_type in EDIT_OPERATIONS
        )

    def _supporting_executor(self, operation_type: str, exclude: Tuple[Optional[ExecutorType], ...]) -> Optional[ExecutorType]:
        for executor in (ExecutorType.FILESYSTEM, ExecutorType.EDIT, ExecutorType.HYBRID):
            if executor not in exclude and self.supports(executor, operation_type):
                return executor
        return None

    async def _execute_with(self, operation: Operation, executor: ExecutorType, preprocessing: bool = False) -> Any:
        start_time = time.time()
        try:
            if preprocessing and executor == ExecutorType.FILESYSTEM:
                return await self._validate_paths(operation)
            if executor == ExecutorType.FILESYSTEM:
                return await self._execute_with_filesystem(operation)
            if executor == ExecutorType.EDIT:
                return await self._execute_with_edit(operation)
            return await self._execute_with_hybrid(operation)
        finally:
            logger.debug(
                f"{executor.value} {'preprocessed' if preprocessing else 'executed'} {operation.type}",
                component="router",
                operation="execute",
                context={"elapsed": round(time.time() - start_time, 4), "files": len(operation.affected_files)},
            )

    async def _validate_paths(self, operation: Operation) -> None:
        for path in operation.affected_files:
            try:
                stat = await self.filesystem.get_file_stats(path)
            except (EditMCPError, OSError):
                # Not created yet
                continue
            if stat.is_directory:
                raise ValidationError(f"Expected a file but {path} is a directory", field="affectedFiles")

    # Filesystem executor

    async def _execute_with_filesystem(self, operation: Operation) -> Any:
        params = operation.params
        operation_type = operation.type

        if operation_type == "read_file_content":
            return await self.filesystem.read_file(_target_path(operation))

        if operation_type == "write_file_content":
            path = _target_path(operation)
            await self.filesystem.write_file(path, _require(operation, "content"))
            return {"success": True, "path": path}

        if operation_type == "append_to_file":
            path = _target_path(operation)
            await self.filesystem.append_file(path, _require(operation, "content"))
            return {"success": True, "path": path}

        if operation_type == "get_file_info":
            path = _target_path(operation)
            stats = await self.filesystem.get_file_stats(path)
            return {"path": path, **stats.to_dict()}

        if operation_type == "list_files":
            directory = params.get("directory") or _target_path(operation)
            return await self.filesystem.list_files(directory, params.get("pattern"))

        if operation_type == "create_directory":
            path = _target_path(operation)
            await self.filesystem.create_directory(path)
            return {"success": True, "path": path}

        if operation_type == "delete_file":
            path = _target_path(operation)
            await self.filesystem.delete_file(path)
            return {"success": True, "path": path}

        if operation_type == "simple_find_replace":
            path = _target_path(operation)
            pattern = compile_pattern(_require(operation, "pattern"), params.get("flags"))
            count = await self.filesystem.replace_in_file(path, pattern, params.get("replacement", ""))
            return {"path": path, "replacements": count}

        if operation_type == "find_in_file":
            path = _target_path(operation)
            pattern = compile_pattern(_require(operation, "pattern"), params.get("flags"))
            matches = await self.filesystem.find_in_file(
                path, pattern, params.get("contextLines", DEFAULT_CONTEXT_LINES)
            )
            return [match.to_dict() for match in matches]

        raise UnsupportedOperationError(
            f"Unsupported operation type for file system: {operation_type}",
            operation_type=operation_type,
            executor=ExecutorType.FILESYSTEM.value,
        )

    # Edit executor

    async def _execute_with_edit(self, operation: Operation) -> Any:
        operation_type = operation.type
        params = operation.params

        if operation_type not in EDIT_OPERATIONS:
            raise UnsupportedOperationError(
                f"Unsupported operation type for Edit: {operation_type}",
                operation_type=operation_type,
                executor=ExecutorType.EDIT.value,
            )

        if operation_type == "bulk_edit_operation":
            results = await self.pool.coordinate_multi_file_edit(
                MultiFileEditOperation(
                    files=list(operation.affected_files),
                    operation=parse_model(EditCommand, _require(operation, "operation"), "operation"),
                )
            )
            return _dump(results)

        session_id = await self.pool.create_edit_session(list(operation.affected_files))
        try:
            if operation_type == "interactive_edit_session":
                return {"sessionId": session_id}

            if operation_type == "format_code":
                result = await self.pool.execute_edit_command(
                    session_id,
                    EditCommand(type="edit", params={"action": "format", "language": params.get("language")}),
                )
            elif operation_type == "complex_find_replace":
                result = await self.pool.execute_edit_command(
                    session_id,
                    EditCommand(
                        type="replace",
                        params={
                            "pattern": _require(operation, "pattern"),
                            "replacement": params.get("replacement", ""),
                            "options": params.get("options"),
                        },
                    ),
                )
            elif operation_type == "merge_conflicts_resolution":
                result = await self.pool.perform_complex_edit(
                    session_id,
                    ComplexEditOperation(type="merge_conflicts", params={"strategy": params.get("strategy")}),
                )
            elif operation_type == "edit_with_context_awareness":
                result = await self.pool.perform_complex_edit(
                    session_id,
                    ComplexEditOperation(
                        type="context_aware_edit",
                        params={"surroundingFiles": params.get("surroundingFiles", [])},
                    ),
                )
            else:
                result = await self._translate_to_worker(session_id, operation)

            return _dump(result)
        finally:
            if operation_type != "interactive_edit_session":
                await self._close_session(session_id)

    async def _translate_to_worker(self, session_id: str, operation: Operation) -> EditResult:
        """Run a plain file operation through a worker session."""
        params = operation.params
        path = _target_path(operation)

        if operation.type == "find_in_file":
            return await self.pool.execute_edit_command(
                session_id, EditCommand(type="find", params={"pattern": _require(operation, "pattern")})
            )

        if operation.type == "simple_find_replace":
            command = EditCommand(
                type="replace",
                params={"pattern": _require(operation, "pattern"), "replacement": params.get("replacement", "")},
            )
        else:
            action = "write" if operation.type == "write_file_content" else "append"
            command = EditCommand(
                type="edit",
                params={"action": action, "path": path, "content": _require(operation, "content")},
            )

        result = await self.pool.execute_edit_command(session_id, command)
        if not result.success:
            return result
        return await self.pool.execute_edit_command(session_id, EditCommand(type="save", params={"path": path}))

    async def _close_session(self, session_id: str) -> None:
        try:
            await self.pool.close_edit_session(session_id)
        except Exception as e:
            logger.warning(
                f"Failed to close edit session {session_id}: {e}",
                component="router",
                operation="terminate",
            )

    # Hybrid executor

    async def _execute_with_hybrid(self, operation: Operation) -> Any:
        operation_type = operation.type

        if operation_type == "smart_refactor":
            return await self._smart_refactor(operation)
        if operation_type == "validate_and_edit":
            return await self._validate_and_edit(operation)
        if operation_type == "backup_and_edit":
            return await self._backup_and_edit(operation)
        if operation_type == "atomic_multi_file_edit":
            return await self._atomic_multi_file_edit(operation)

        if operation_type in FILESYSTEM_OPERATIONS:
            return await self._execute_with_filesystem(operation)
        if operation_type in EDIT_OPERATIONS:
            return await self._execute_with_edit(operation)

        raise UnsupportedOperationError(
            f"Unsupported operation type for hybrid: {operation_type}",
            operation_type=operation_type,
            executor=ExecutorType.HYBRID.value,
        )

    async def _smart_refactor(self, operation: Operation) -> Any:
        old_name = _require(operation, "oldName")
        new_name = _require(operation, "newName")
        files = list(operation.affected_files)

        pattern = re.compile(re.escape(old_name))
        search_results = await asyncio.gather(*(self.filesystem.find_in_file(path, pattern) for path in files))
        files_to_edit = [path for path, matches in zip(files, search_results) if matches]

        logger.info(
            f"Refactoring {old_name!r} to {new_name!r} in {len(files_to_edit)} of {len(files)} files",
            component="router",
            operation="refactor",
        )

        if not files_to_edit:
            return {"message": NO_OCCURRENCES_MESSAGE}

        results = await self.pool.coordinate_multi_file_edit(
            MultiFileEditOperation(
                files=files_to_edit,
                operation=EditCommand(type="replace", params={"pattern": old_name, "replacement": new_name}),
            )
        )
        return _dump(results)

    async def _validate_and_edit(self, operation: Operation) -> Any:
        rules = operation.params.get("validationRules") or []
        compiled = []
        for rule in rules:
            if not isinstance(rule, dict) or not rule.get("pattern"):
                raise ValidationError("Each validation rule needs a pattern", field="validationRules")
            compiled.append((compile_pattern(rule["pattern"]), rule.get("message", rule["pattern"])))

        for path in operation.affected_files:
            content = await self.filesystem.read_file(path)
            for pattern, message in compiled:
                if not pattern.search(content):
                    raise ValidationError(
                        f"Validation failed for {path}: {message}",
                        details={"path": path, "pattern": pattern.pattern},
                    )

        logger.debug(
            f"Validated {len(operation.affected_files)} files against {len(rules)} rules",
            component="router",
            operation="validate",
        )
        return await self._execute_with_edit(operation.with_type("bulk_edit_operation"))

    async def _backup_and_edit(self, operation: Operation) -> Any:
        inner = _require(operation, "operation")
        inner_type = inner.get("type") if isinstance(inner, dict) else None
        if not inner_type:
            raise ValidationError("backup_and_edit requires operation.type", field="operation")

        files = list(operation.affected_files)
        backups = list(await asyncio.gather(*(self.filesystem.create_backup(path) for path in files)))

        try:
            result = await self._execute_with_edit(operation.with_type(inner_type))
        except Exception:
            restored = await asyncio.gather(
                *(self.filesystem.restore_backup(backup, path) for backup, path in zip(backups, files)),
                return_exceptions=True,
            )
            for path, outcome in zip(files, restored):
                if isinstance(outcome, Exception):
                    logger.error(
                        f"Failed to restore backup of {path}: {outcome}",
                        component="router",
                        operation="restore",
                    )
            raise

        if isinstance(result, dict):
            return {**result, "backups": backups}
        return {"result": result, "backups": backups}

    async def _atomic_multi_file_edit(self, operation: Operation) -> List[Any]:
        """Run sub-operations in order. Steps already applied are not undone."""
        steps = operation.params.get("operations") or []
        if not isinstance(steps, list):
            raise ValidationError("operations must be a list", field="operations")
        # Every step is checked before the first one runs
        sub_operations = [step if isinstance(step, Operation) else Operation.from_wire(step) for step in steps]
        results = []

        for index, sub_operation in enumerate(sub_operations):
            try:
                results.append(await self.execute(sub_operation))
            except EditMCPError as e:
                raise OperationError(
                    f"Step {index + 1} of {len(steps)} failed: {e.message}",
                    operation_type=operation.type,
                    details={
                        "completed_steps": index,
                        "failed_step": index,
                        "cause": e.code,
                        "cause_details": e.details,
                    },
                ) from e

        return results
