"""
Bounded pool of edit worker instances.

The pool owns the registry of live workers keyed by session id. Capacity
checks and registration happen together under the pool's lock so concurrent
callers can never push the registry past `max_instances`. Every worker gets a
reaper task that force-destroys it once its timeout policy expires.
"""
import os
import uuid
import time
import shutil
import asyncio
from typing import Any, Dict, List, Optional, Set, Union

from editmcp.constants import (
    DEFAULT_EDIT_EXECUTABLE,
    DEFAULT_COMPLETION_MARKER,
    DEFAULT_MAX_INSTANCES,
    DEFAULT_INSTANCE_TIMEOUT,
    DEFAULT_TERMINATE_GRACE,
    EDIT_EXECUTABLE_LOCATIONS,
)
from editmcp.edit.instance import EditInstance, format_command
from editmcp.edit.models import (
    EditCommand,
    EditResult,
    EditInstanceState,
    MultiFileEditOperation,
    ComplexEditOperation,
    parse_model,
)
from editmcp.utils.errors import (
    CapacityError,
    NotFoundError,
    ProcessFailureError,
    ValidationError,
)
from editmcp.utils.logging import logger

# Worker output lines can be long (whole file dumps)
STREAM_LIMIT = 4 * 1024 * 1024

TIMEOUT_POLICIES = ("idle", "lifetime")


def resolve_edit_executable(configured: Optional[str] = None) -> str:
    """Locate the edit executable.

    Order: the configured path, `edit` on PATH, common install locations,
    then the bare name so the spawn error names what was missing.
    """
    if configured:
        return os.path.expandvars(os.path.expanduser(configured))

    found = shutil.which(DEFAULT_EDIT_EXECUTABLE)
    if found:
        return found

    for location in EDIT_EXECUTABLE_LOCATIONS:
        candidate = os.path.expanduser(location)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate

    return DEFAULT_EDIT_EXECUTABLE


def _require(params: Dict[str, Any], key: str, command_type: str) -> Any:
    if key not in params or params[key] is None:
        raise ValidationError(f"Missing required parameter '{key}' for {command_type}", field=key)
    return params[key]


class EditInstanceManager:
    """Creates, tracks and reclaims edit worker instances."""

    def __init__(
        self,
        executable: Optional[str] = None,
        args: Optional[List[str]] = None,
        max_instances: int = DEFAULT_MAX_INSTANCES,
        instance_timeout: float = DEFAULT_INSTANCE_TIMEOUT,
        timeout_policy: str = "idle",
        completion_marker: str = DEFAULT_COMPLETION_MARKER,
        terminate_grace: float = DEFAULT_TERMINATE_GRACE,
    ):
        if timeout_policy not in TIMEOUT_POLICIES:
            raise ValueError(f"Timeout policy must be one of {list(TIMEOUT_POLICIES)}")

        self.executable = resolve_edit_executable(executable)
        self.args = list(args or [])
        self.max_instances = max_instances
        self.instance_timeout = instance_timeout
        self.timeout_policy = timeout_policy
        self.completion_marker = completion_marker
        self.terminate_grace = terminate_grace

        self._instances: Dict[str, EditInstance] = {}
        self._reapers: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, edit_config) -> "EditInstanceManager":
        """Build a pool from the `edit` configuration section."""
        return cls(
            executable=edit_config.executable,
            args=edit_config.args,
            max_instances=edit_config.max_instances,
            instance_timeout=edit_config.instance_timeout,
            timeout_policy=edit_config.timeout_policy,
            completion_marker=edit_config.completion_marker,
            terminate_grace=edit_config.terminate_grace,
        )

    @property
    def instance_count(self) -> int:
        return len(self._instances)

    def has_instance(self, session_id: str) -> bool:
        return session_id in self._instances

    def _get_instance(self, session_id: str) -> EditInstance:
        instance = self._instances.get(session_id)
        if instance is None:
            raise NotFoundError(f"Edit instance {session_id} not found", kind="session", name=session_id)
        return instance

    # Lifecycle

    async def _spawn(self) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.executable,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise ProcessFailureError(
                f"Failed to start edit process {self.executable}: {e}",
                details={"executable": self.executable},
            )

    async def create_instance(self, session_id: Optional[str] = None) -> EditInstance:
        """Spawn and register a new worker.

        Raises:
            CapacityError: If `max_instances` workers are already live; nothing is spawned
            ProcessFailureError: If the executable cannot be started
        """
        session_id = session_id or str(uuid.uuid4())

        async with self._lock:
            if session_id in self._instances:
                raise ValidationError(f"Edit instance {session_id} already exists", field="session_id")

            if len(self._instances) >= self.max_instances:
                raise CapacityError(
                    f"Maximum number of Edit instances ({self.max_instances}) reached",
                    limit=self.max_instances,
                )

            process = await self._spawn()
            instance = EditInstance(process, session_id, completion_marker=self.completion_marker)
            instance.on("exit", lambda code: self._on_instance_exit(session_id, instance))
            instance.start()

            self._instances[session_id] = instance
            self._reapers[session_id] = asyncio.create_task(self._reap(session_id, instance))

        logger.debug(
            f"Spawned edit instance {session_id}",
            component="pool",
            operation="spawn",
            context={"pid": instance.pid, "live_instances": len(self._instances)},
        )
        return instance

    def _on_instance_exit(self, session_id: str, instance: EditInstance) -> None:
        if self._instances.get(session_id) is instance:
            del self._instances[session_id]

        reaper = self._reapers.pop(session_id, None)
        if reaper is not None and reaper is not asyncio.current_task():
            reaper.cancel()

    def _deadline(self, instance: EditInstance) -> float:
        if self.timeout_policy == "lifetime":
            return instance.created_at + self.instance_timeout
        return instance.last_activity + self.instance_timeout

    async def _reap(self, session_id: str, instance: EditInstance) -> None:
        while True:
            delay = self._deadline(instance) - time.time()
            if delay <= 0:
                break
            await asyncio.sleep(delay)

        if self._instances.get(session_id) is not instance:
            return

        logger.warning(
            f"Edit instance {session_id} timed out, destroying",
            component="pool",
            operation="reclaim",
            context={"policy": self.timeout_policy, "timeout": self.instance_timeout},
        )
        async with self._lock:
            if self._instances.get(session_id) is instance:
                del self._instances[session_id]
            self._reapers.pop(session_id, None)

        instance.kill()
        await instance.wait_closed()

    async def destroy_instance(self, session_id: str) -> None:
        """Terminate a worker and remove it from the registry.

        Raises:
            NotFoundError: If no such session exists
        """
        async with self._lock:
            instance = self._get_instance(session_id)
            del self._instances[session_id]
            reaper = self._reapers.pop(session_id, None)

        if reaper is not None and reaper is not asyncio.current_task():
            reaper.cancel()

        await instance.terminate(self.terminate_grace)
        logger.debug(f"Destroyed edit instance {session_id}", component="pool", operation="terminate")

    # Commands

    async def execute_edit_command(
        self, session_id: str, command: Union[EditCommand, Dict[str, Any]]
    ) -> EditResult:
        """Run one structured command in a session.

        Failures of the command itself come back as `success=False`; only an
        unknown session raises.
        """
        instance = self._get_instance(session_id)

        try:
            if not isinstance(command, EditCommand):
                command = EditCommand.model_validate(command)
            params = command.params

            if command.type == "open":
                await instance.open_file(_require(params, "path", "open"))
                return EditResult(success=True)

            if command.type == "close":
                await instance.close_file(_require(params, "path", "close"))
                return EditResult(success=True)

            if command.type == "save":
                line = format_command("save", _require(params, "path", "save"))
            elif command.type == "edit":
                line = format_command("edit", params)
            elif command.type == "find":
                line = format_command("find", _require(params, "pattern", "find"))
            elif command.type == "replace":
                line = format_command(
                    "replace",
                    _require(params, "pattern", "replace"),
                    _require(params, "replacement", "replace"),
                )
            else:
                line = format_command("goto", _require(params, "line", "goto"), params.get("column", 1))

            return EditResult(success=True, message=await instance.execute_command(line))
        except Exception as e:
            logger.warning(
                f"Edit command failed: {e}",
                component="pool",
                operation="execute",
                context={"session_id": session_id, "command": getattr(command, "type", None)},
            )
            return EditResult(success=False, message=str(e))

    async def create_edit_session(self, files: List[str]) -> str:
        """Allocate a worker and open every file in order."""
        instance = await self.create_instance()
        try:
            for path in files:
                await instance.open_file(path)
        except Exception:
            await self._discard(instance.session_id)
            raise
        return instance.session_id

    async def close_edit_session(self, session_id: str) -> None:
        await self.destroy_instance(session_id)

    async def _discard(self, session_id: str) -> None:
        try:
            await self.destroy_instance(session_id)
        except Exception as e:
            logger.warning(
                f"Failed to close edit session {session_id}: {e}",
                component="pool",
                operation="terminate",
            )

    async def perform_complex_edit(
        self, session_id: str, operation: Union[ComplexEditOperation, Dict[str, Any]]
    ) -> EditResult:
        instance = self._get_instance(session_id)
        try:
            if not isinstance(operation, ComplexEditOperation):
                operation = ComplexEditOperation.model_validate(operation)
            response = await instance.execute_command(format_command("complex-edit", operation.model_dump()))
            return EditResult(success=True, message=response)
        except Exception as e:
            return EditResult(success=False, message=str(e))

    async def coordinate_multi_file_edit(
        self, operation: Union[MultiFileEditOperation, Dict[str, Any]]
    ) -> List[EditResult]:
        """Apply one command to every file inside a single session.

        The session is always torn down afterwards.
        """
        operation = parse_model(MultiFileEditOperation, operation, "operation")

        session_id = await self.create_edit_session(operation.files)
        results = []
        try:
            for path in operation.files:
                file_command = EditCommand(
                    type=operation.operation.type,
                    params={**operation.operation.params, "path": path},
                )
                results.append(await self.execute_edit_command(session_id, file_command))
        finally:
            await self._discard(session_id)

        return results

    # Introspection

    def get_instance_state(self, session_id: str) -> EditInstanceState:
        return self._get_instance(session_id).get_state()

    def get_all_instance_states(self) -> Dict[str, EditInstanceState]:
        return {session_id: instance.get_state() for session_id, instance in self._instances.items()}

    # Shutdown

    def dispose(self) -> None:
        """Terminate every worker without waiting for them to finish."""
        instances = list(self._instances.values())
        self._instances.clear()
        for reaper in self._reapers.values():
            reaper.cancel()
        self._reapers.clear()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for instance in instances:
            if loop is None:
                instance.kill()
                continue
            task = loop.create_task(instance.terminate(self.terminate_grace))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def shutdown(self) -> None:
        """Terminate every worker and wait until all have exited."""
        async with self._lock:
            instances = list(self._instances.values())
            self._instances.clear()
            reapers = list(self._reapers.values())
            self._reapers.clear()

        for reaper in reapers:
            reaper.cancel()

        results = await asyncio.gather(
            *(instance.terminate(self.terminate_grace) for instance in instances),
            return_exceptions=True,
        )
        for instance, result in zip(instances, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Failed to terminate edit instance {instance.session_id}: {result}",
                    component="pool",
                    operation="terminate",
                )

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
