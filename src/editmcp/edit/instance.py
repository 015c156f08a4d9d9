"""
A single external edit worker.

Each worker is one child process talking a line protocol: the coordinator
writes one command per line and the worker answers with any number of output
lines followed by a line equal to the completion marker. Commands are
serialized; the next one is written only after the previous one's marker
line has been read.
"""
import re
import json
import time
import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from editmcp.constants import DEFAULT_COMPLETION_MARKER, DEFAULT_TERMINATE_GRACE
from editmcp.edit.models import EditInstanceState
from editmcp.utils.errors import EditMCPError, ProcessFailureError
from editmcp.utils.logging import logger

_PLAIN_TOKEN = re.compile(r"[\w./:@%+,=~-]+")

LIFECYCLE_EVENTS = ("stdout", "stderr", "exit")


def format_argument(value: Any) -> str:
    """Render one command argument.

    Plain tokens are written as-is; anything else (whitespace, quotes,
    brackets, non-string values other than numbers) is JSON-encoded so a
    command never spans more than one line.
    """
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and _PLAIN_TOKEN.fullmatch(value):
        return value
    return json.dumps(value, ensure_ascii=False)


def format_command(verb: str, *args: Any) -> str:
    return " ".join([verb, *(format_argument(arg) for arg in args)])


@dataclass
class _QueuedCommand:
    text: str
    future: "asyncio.Future[str]"


class EditInstance:
    """One worker process with a FIFO command queue.

    The head of the queue is the command in flight while
    `command_in_progress` is set. When the process exits every queued command
    is rejected and the instance stays non-running for good.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        session_id: str,
        completion_marker: str = DEFAULT_COMPLETION_MARKER,
        encoding: str = "utf-8",
    ):
        self.process = process
        self.session_id = session_id
        self.completion_marker = completion_marker
        self.encoding = encoding

        self.open_files: List[str] = []
        self.active_file: Optional[str] = None
        self.running = True
        self.exit_code: Optional[int] = None
        self.created_at = time.time()
        self.last_activity = self.created_at

        self.command_in_progress = False
        self._queue: Deque[_QueuedCommand] = deque()
        self._output_lines: List[str] = []
        self._error_lines: List[str] = []
        self._listeners: Dict[str, List[Callable[..., None]]] = {event: [] for event in LIFECYCLE_EVENTS}
        self._tasks: List[asyncio.Task] = []
        self._exited = asyncio.Event()

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    @property
    def pending_commands(self) -> int:
        return len(self._queue)

    def start(self) -> None:
        """Start reading the worker's streams."""
        if self._tasks:
            return
        stdout_task = asyncio.create_task(self._read_stdout())
        stderr_task = asyncio.create_task(self._read_stderr())
        self._tasks = [stdout_task, stderr_task, asyncio.create_task(self._watch_exit(stdout_task))]

    def on(self, event: str, listener: Callable[..., None]) -> None:
        """Register a listener for `stdout`, `stderr` or `exit`."""
        if event not in self._listeners:
            raise ValueError(f"Unknown lifecycle event: {event}")
        self._listeners[event].append(listener)

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception as e:
                logger.warning(
                    f"Edit instance {event} listener failed: {e}",
                    component="worker",
                    context={"session_id": self.session_id},
                )

    def _touch(self) -> None:
        self.last_activity = time.time()

    # Stream handling

    async def _read_stdout(self) -> None:
        reader = self.process.stdout
        while True:
            try:
                raw = await reader.readline()
            except ValueError as e:
                # Line longer than the stream limit; the oversized chunk is dropped
                logger.warning(
                    f"Discarding oversized worker output: {e}",
                    component="worker",
                    context={"session_id": self.session_id},
                )
                continue
            if not raw:
                break

            complete = raw.endswith(b"\n")
            line = raw.decode(self.encoding, errors="replace").rstrip("\r\n")
            self._emit("stdout", line)
            self._handle_output_line(line, complete)

    async def _read_stderr(self) -> None:
        reader = self.process.stderr
        if reader is None:
            return
        while True:
            raw = await reader.readline()
            if not raw:
                break
            line = raw.decode(self.encoding, errors="replace").rstrip("\r\n")
            self._error_lines.append(line)
            self._emit("stderr", line)

    async def _watch_exit(self, stdout_task: asyncio.Task) -> None:
        # Drain stdout first so a marker written just before exit still counts
        await asyncio.gather(stdout_task, return_exceptions=True)
        exit_code = await self.process.wait()
        self._handle_exit(exit_code)

    def _handle_output_line(self, line: str, complete: bool) -> None:
        if complete and line == self.completion_marker:
            if not (self.command_in_progress and self._queue):
                logger.debug(
                    "Completion marker received with no command in flight",
                    component="worker",
                    context={"session_id": self.session_id},
                )
                self._output_lines = []
                return

            command = self._queue.popleft()
            self.command_in_progress = False
            response = "\n".join(self._output_lines)
            self._output_lines = []
            self._error_lines = []
            self._touch()
            if not command.future.done():
                command.future.set_result(response)
            self._dispatch_next()
            return

        if self.command_in_progress:
            self._output_lines.append(line)

    def _handle_exit(self, exit_code: Optional[int]) -> None:
        self.running = False
        self.command_in_progress = False
        self.exit_code = exit_code

        rejected = 0
        while self._queue:
            command = self._queue.popleft()
            if not command.future.done():
                command.future.set_exception(
                    ProcessFailureError(
                        f"Edit process exited with code {exit_code}",
                        session_id=self.session_id,
                        exit_code=exit_code,
                        details={"stderr": self._error_lines[-20:]},
                    )
                )
                rejected += 1

        logger.debug(
            f"Edit process for session {self.session_id} exited with code {exit_code}",
            component="worker",
            operation="terminate",
            context={"rejected_commands": rejected},
        )
        self._exited.set()
        self._emit("exit", exit_code)

    def _dispatch_next(self) -> None:
        while self._queue and self._queue[0].future.cancelled():
            self._queue.popleft()

        if not self._queue or self.command_in_progress or not self.running:
            return

        command = self._queue[0]
        self.command_in_progress = True
        try:
            self.process.stdin.write((command.text + "\n").encode(self.encoding))
        except (BrokenPipeError, ConnectionResetError) as e:
            # The exit watcher rejects the command once the process is reaped
            logger.warning(
                f"Failed to write command to edit process: {e}",
                component="worker",
                context={"session_id": self.session_id},
            )

    # Commands

    async def execute_command(self, command: str) -> str:
        """Queue a command line and wait for its response.

        Returns:
            The output lines the worker printed before the completion marker

        Raises:
            ProcessFailureError: If the worker is not running or exits first
        """
        if not self.running:
            raise ProcessFailureError("Edit process is not running", session_id=self.session_id)

        future = asyncio.get_running_loop().create_future()
        self._queue.append(_QueuedCommand(command, future))
        self._touch()

        if not self.command_in_progress:
            self._dispatch_next()

        return await future

    async def open_file(self, path: str) -> None:
        await self.execute_command(format_command("open", path))
        if path not in self.open_files:
            self.open_files.append(path)
        self.active_file = path

    async def close_file(self, path: str) -> None:
        await self.execute_command(format_command("close", path))
        if path in self.open_files:
            self.open_files.remove(path)
        if self.active_file == path:
            self.active_file = None

    def get_state(self) -> EditInstanceState:
        return EditInstanceState(
            session_id=self.session_id,
            open_files=list(self.open_files),
            active_file=self.active_file,
            running=self.running,
            pid=self.pid,
            created_at=self.created_at,
            last_activity=self.last_activity,
            pending_commands=self.pending_commands,
            exit_code=self.exit_code,
        )

    # Shutdown

    def kill(self) -> None:
        """Force the process to stop; exit handling rejects pending commands."""
        if not self.running:
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            pass

    async def wait_closed(self) -> None:
        await self._exited.wait()

    async def terminate(self, grace: float = DEFAULT_TERMINATE_GRACE) -> None:
        """Ask the worker to exit, then kill it if it is still running."""
        if not self.running:
            return

        try:
            await asyncio.wait_for(self.execute_command("exit"), timeout=grace)
        except (EditMCPError, asyncio.TimeoutError) as e:
            # Workers normally exit without acknowledging the exit command
            logger.debug(
                f"Exit command did not complete: {e}",
                component="worker",
                operation="terminate",
                context={"session_id": self.session_id},
            )

        if self.running:
            self.kill()

        await self.wait_closed()
