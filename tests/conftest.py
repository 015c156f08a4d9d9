import sys
import time
import textwrap
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from editmcp.core.filesystem import FileStats, SearchResult, _compile, expand_replacement
from editmcp.edit.manager import EditInstanceManager
from editmcp.edit.models import EditCommand, EditResult, MultiFileEditOperation
from editmcp.utils.errors import FilesystemError, ProcessFailureError

MARKER = "Command completed"

# A stand-in for the edit executable that speaks the worker line protocol.
WORKER_SCRIPT = textwrap.dedent(
    """
    import sys
    import time

    MARKER = "Command completed"

    def reply(*lines):
        for line in lines:
            sys.stdout.write(line + "\\n")
        sys.stdout.write(MARKER + "\\n")
        sys.stdout.flush()

    for raw in sys.stdin:
        command = raw.rstrip("\\n")
        verb, _, rest = command.partition(" ")
        if verb == "exit":
            sys.exit(0)
        if verb == "crash":
            sys.stderr.write("worker crashed\\n")
            sys.stderr.flush()
            sys.exit(3)
        if verb == "slow":
            time.sleep(float(rest))
            reply("slept " + rest)
        elif verb == "noise":
            reply("the word " + MARKER + " inside a line", "done")
        elif verb == "silent":
            reply()
        else:
            reply("ok " + command)
    """
)


@pytest.fixture
def worker_script(tmp_path):
    path = tmp_path / "fake_edit_worker.py"
    path.write_text(WORKER_SCRIPT)
    return str(path)


@pytest_asyncio.fixture
async def make_pool(worker_script):
    """Factory for pools backed by the fake worker; every pool is shut down afterwards."""
    pools: List[EditInstanceManager] = []

    def factory(**kwargs) -> EditInstanceManager:
        kwargs.setdefault("max_instances", 5)
        kwargs.setdefault("instance_timeout", 30.0)
        kwargs.setdefault("terminate_grace", 1.0)
        pool = EditInstanceManager(executable=sys.executable, args=["-u", worker_script], **kwargs)
        pools.append(pool)
        return pool

    yield factory

    for pool in pools:
        await pool.shutdown()


class MemoryFileSystem:
    """In-memory filesystem capability used by router tests."""

    def __init__(self, files: Optional[Dict[str, str]] = None, directories: Optional[List[str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.directories = set(directories or [])
        self.calls: List[tuple] = []
        self.fail_restore = False

    async def read_file(self, path: str) -> str:
        self.calls.append(("read_file", path))
        if path not in self.files:
            raise FilesystemError(f"Failed to read file {path}: not found", path=path)
        return self.files[path]

    async def write_file(self, path: str, content: str) -> None:
        self.calls.append(("write_file", path))
        self.files[path] = content

    async def append_file(self, path: str, content: str) -> None:
        self.calls.append(("append_file", path))
        self.files[path] = self.files.get(path, "") + content

    async def delete_file(self, path: str) -> None:
        self.calls.append(("delete_file", path))
        if path not in self.files:
            raise FilesystemError(f"Failed to delete file {path}: not found", path=path)
        del self.files[path]

    async def create_directory(self, path: str) -> None:
        self.calls.append(("create_directory", path))
        self.directories.add(path)

    async def get_file_stats(self, path: str) -> FileStats:
        now = time.time()
        if path in self.directories:
            return FileStats(0, True, False, now, now, now)
        if path not in self.files:
            raise FilesystemError(f"Failed to get file stats for {path}: not found", path=path)
        return FileStats(len(self.files[path].encode("utf-8")), False, True, now, now, now)

    async def list_files(self, directory: str, pattern: Optional[str] = None) -> List[str]:
        prefix = directory.rstrip("/") + "/"
        return sorted(path for path in self.files if path.startswith(prefix))

    async def find_in_file(self, path: str, pattern, context_lines: int = 2) -> List[SearchResult]:
        self.calls.append(("find_in_file", path))
        regex = _compile(pattern)
        lines = (await self.read_file(path)).split("\n")
        results = []
        for index, line in enumerate(lines):
            match = regex.search(line)
            if match:
                results.append(SearchResult(line=index + 1, column=match.start() + 1, text=line))
        return results

    async def replace_in_file(self, path: str, pattern, replacement: str) -> int:
        self.calls.append(("replace_in_file", path))
        content, count = _compile(pattern).subn(
            lambda match: expand_replacement(match, replacement), await self.read_file(path)
        )
        if count:
            self.files[path] = content
        return count

    async def create_backup(self, path: str) -> str:
        self.calls.append(("create_backup", path))
        backup = f"{path}.backup.1"
        self.files[backup] = await self.read_file(path)
        return backup

    async def restore_backup(self, backup_path: str, original_path: str) -> None:
        self.calls.append(("restore_backup", original_path))
        if self.fail_restore:
            raise FilesystemError(f"Failed to restore backup {backup_path}", path=original_path)
        self.files[original_path] = self.files[backup_path]


class RecordingPool:
    """Worker pool double that records what the router asks of it."""

    def __init__(self, fail_commands: bool = False, raise_on_command: Optional[Exception] = None):
        self.sessions_created: List[List[str]] = []
        self.sessions_closed: List[str] = []
        self.commands: List[tuple] = []
        self.complex_edits: List[tuple] = []
        self.multi_file_edits: List[MultiFileEditOperation] = []
        self.fail_commands = fail_commands
        self.raise_on_command = raise_on_command

    async def create_edit_session(self, files: List[str]) -> str:
        self.sessions_created.append(list(files))
        return f"session-{len(self.sessions_created)}"

    async def close_edit_session(self, session_id: str) -> None:
        self.sessions_closed.append(session_id)

    async def execute_edit_command(self, session_id: str, command: Any) -> EditResult:
        if not isinstance(command, EditCommand):
            command = EditCommand.model_validate(command)
        self.commands.append((session_id, command))
        if self.raise_on_command is not None:
            raise self.raise_on_command
        if self.fail_commands:
            return EditResult(success=False, message="worker refused")
        return EditResult(success=True, message=f"ok {command.type}")

    async def perform_complex_edit(self, session_id: str, operation: Any) -> EditResult:
        self.complex_edits.append((session_id, operation))
        return EditResult(success=True, message="ok complex-edit")

    async def coordinate_multi_file_edit(self, operation: MultiFileEditOperation) -> List[EditResult]:
        self.multi_file_edits.append(operation)
        if self.raise_on_command is not None:
            raise self.raise_on_command
        return [EditResult(success=True, message=f"ok {path}") for path in operation.files]


@pytest.fixture
def memory_fs():
    return MemoryFileSystem()


@pytest.fixture
def recording_pool():
    return RecordingPool()


def worker_failure(message: str = "Edit process exited with code 1") -> ProcessFailureError:
    return ProcessFailureError(message, exit_code=1)
