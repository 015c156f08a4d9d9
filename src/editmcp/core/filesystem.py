"""
Filesystem capability for edit-mcp.

`FileSystemManager` performs plain local file operations asynchronously by
running blocking calls in the default executor. The router only depends on
the `FileSystemCapability` protocol so other implementations can be injected.
"""
import os
import stat as stat_module
import re
import time
import asyncio
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional, Union, Callable, Pattern, Protocol

from editmcp.constants import DEFAULT_CONTEXT_LINES
from editmcp.utils.errors import FilesystemError
from editmcp.utils.logging import logger

PatternLike = Union[str, Pattern[str]]


@dataclass
class FileStats:
    """Metadata for one path."""

    size: int
    is_directory: bool
    is_file: bool
    created_at: float
    modified_at: float
    accessed_at: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchResult:
    """One matching line, with 1-based line and column."""

    line: int
    column: int
    text: str
    lines_before: List[str] = field(default_factory=list)
    lines_after: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FileChangeEvent:
    type: str  # create, update or delete
    path: str


class FileSystemCapability(Protocol):
    """File operations consumed by the operation router."""

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def append_file(self, path: str, content: str) -> None: ...

    async def delete_file(self, path: str) -> None: ...

    async def create_directory(self, path: str) -> None: ...

    async def get_file_stats(self, path: str) -> FileStats: ...

    async def list_files(self, directory: str, pattern: Optional[str] = None) -> List[str]: ...

    async def find_in_file(
        self, path: str, pattern: PatternLike, context_lines: int = DEFAULT_CONTEXT_LINES
    ) -> List[SearchResult]: ...

    async def replace_in_file(self, path: str, pattern: PatternLike, replacement: str) -> int: ...

    async def create_backup(self, path: str) -> str: ...

    async def restore_backup(self, backup_path: str, original_path: str) -> None: ...


def _compile(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


_REPLACEMENT_TOKEN = re.compile(r"\$(\$|&|\d{1,2})")


def expand_replacement(match: "re.Match[str]", replacement: str) -> str:
    """Expand `$&`, `$1`..`$99` and `$$` for one match.

    Backslashes and any `$` reference to a group the pattern lacks are kept
    as literal text. A two digit reference falls back to one digit followed
    by a literal digit when the two digit group does not exist.
    """
    groups = match.re.groups

    def substitute(token: "re.Match[str]") -> str:
        ref = token.group(1)
        if ref == "$":
            return "$"
        if ref == "&":
            return match.group(0)
        trailing = ""
        if len(ref) == 2 and not 1 <= int(ref) <= groups:
            ref, trailing = ref[0], ref[1]
        if not 1 <= int(ref) <= groups:
            return token.group(0)
        return (match.group(int(ref)) or "") + trailing

    return _REPLACEMENT_TOKEN.sub(substitute, replacement)


class FileSystemManager:
    """Asynchronous local filesystem operations with change notifications."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self.backups: Dict[str, str] = {}
        self._listeners: List[Callable[[FileChangeEvent], None]] = []

    async def _run(self, func: Callable, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def add_listener(self, listener: Callable[[FileChangeEvent], None]) -> None:
        """Register a callback fired on create, update and delete."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[FileChangeEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_change(self, change_type: str, path: str) -> None:
        event = FileChangeEvent(type=change_type, path=path)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    f"File change listener failed: {e}",
                    component="filesystem",
                    context={"path": path, "type": change_type},
                )

    # Reading and writing

    async def read_file(self, path: str) -> str:
        def read():
            with open(path, "r", encoding=self.encoding) as f:
                return f.read()

        try:
            return await self._run(read)
        except (OSError, UnicodeDecodeError) as e:
            raise FilesystemError(f"Failed to read file {path}: {e}", path=path)

    async def write_file(self, path: str, content: str) -> None:
        """Write a file, creating missing parent directories."""

        def write():
            existed = os.path.exists(path)
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            with open(path, "w", encoding=self.encoding) as f:
                f.write(content)
            return existed

        try:
            existed = await self._run(write)
        except OSError as e:
            raise FilesystemError(f"Failed to write file {path}: {e}", path=path)

        self._emit_change("update" if existed else "create", path)

    async def append_file(self, path: str, content: str) -> None:
        def append():
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            with open(path, "a", encoding=self.encoding) as f:
                f.write(content)

        try:
            await self._run(append)
        except OSError as e:
            raise FilesystemError(f"Failed to append to file {path}: {e}", path=path)

        self._emit_change("update", path)

    async def delete_file(self, path: str) -> None:
        try:
            await self._run(os.unlink, path)
        except OSError as e:
            raise FilesystemError(f"Failed to delete file {path}: {e}", path=path)

        self._emit_change("delete", path)

    async def create_directory(self, path: str) -> None:
        try:
            await self._run(lambda: os.makedirs(path, exist_ok=True))
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {path}: {e}", path=path)

        self._emit_change("create", path)

    async def get_file_stats(self, path: str) -> FileStats:
        """Stat a path.

        Raises:
            FilesystemError: If the path does not exist or cannot be read
        """
        try:
            st = await self._run(os.stat, path)
        except OSError as e:
            raise FilesystemError(f"Failed to get file stats for {path}: {e}", path=path)

        return FileStats(
            size=st.st_size,
            is_directory=stat_module.S_ISDIR(st.st_mode),
            is_file=stat_module.S_ISREG(st.st_mode),
            created_at=getattr(st, "st_birthtime", st.st_ctime),
            modified_at=st.st_mtime,
            accessed_at=st.st_atime,
        )

    async def list_files(self, directory: str, pattern: Optional[str] = None) -> List[str]:
        """List regular files directly inside a directory.

        Args:
            directory: Directory to list
            pattern: Optional regular expression matched against the joined path

        Returns:
            Joined paths of the matching files
        """

        def list_dir():
            with os.scandir(directory) as entries:
                return [os.path.join(directory, entry.name) for entry in entries if entry.is_file()]

        try:
            files = await self._run(list_dir)
        except OSError as e:
            raise FilesystemError(f"Failed to list files in {directory}: {e}", path=directory)

        if pattern:
            try:
                regex = re.compile(pattern)
            except re.error as e:
                raise FilesystemError(f"Failed to list files in {directory}: {e}", path=directory)
            files = [path for path in files if regex.search(path)]

        return sorted(files)

    # Searching and replacing

    async def find_in_file(
        self, path: str, pattern: PatternLike, context_lines: int = DEFAULT_CONTEXT_LINES
    ) -> List[SearchResult]:
        """Find the first match of a pattern on every line of a file."""
        try:
            regex = _compile(pattern)
        except re.error as e:
            raise FilesystemError(f"Failed to search in file {path}: {e}", path=path)

        content = await self.read_file(path)
        lines = content.split("\n")
        results = []

        for index, line in enumerate(lines):
            match = regex.search(line)
            if not match:
                continue

            results.append(
                SearchResult(
                    line=index + 1,
                    column=match.start() + 1,
                    text=line,
                    lines_before=lines[max(0, index - context_lines):index],
                    lines_after=lines[index + 1:index + 1 + context_lines],
                )
            )

        return results

    async def replace_in_file(self, path: str, pattern: PatternLike, replacement: str) -> int:
        """Replace every match of a pattern in a file.

        `replacement` is literal text apart from the `$` references that
        `expand_replacement` understands.

        Returns:
            Number of replacements; the file is only rewritten when non-zero
        """
        try:
            regex = _compile(pattern)
        except re.error as e:
            raise FilesystemError(f"Failed to replace in file {path}: {e}", path=path)

        content = await self.read_file(path)
        new_content, count = regex.subn(lambda match: expand_replacement(match, replacement), content)

        if count > 0:
            await self.write_file(path, new_content)

        return count

    # Backups

    async def create_backup(self, path: str) -> str:
        """Copy a file to `<path>.backup.<milliseconds>` and return the copy's path."""
        content = await self.read_file(path)
        backup_path = f"{path}.backup.{int(time.time() * 1000)}"
        await self.write_file(backup_path, content)
        self.backups[path] = backup_path
        logger.debug(f"Backed up {path}", component="filesystem", operation="backup", context={"backup": backup_path})
        return backup_path

    async def restore_backup(self, backup_path: str, original_path: str) -> None:
        try:
            content = await self.read_file(backup_path)
            await self.write_file(original_path, content)
        except FilesystemError as e:
            raise FilesystemError(
                f"Failed to restore backup {backup_path} to {original_path}: {e.message}",
                path=original_path,
                details={"backup_path": backup_path},
            )
        logger.debug(f"Restored {original_path}", component="filesystem", operation="restore")

    # Batches

    async def batch_read(self, paths: List[str]) -> Dict[str, str]:
        """Read several files concurrently, skipping the ones that fail."""
        contents = await asyncio.gather(*(self.read_file(path) for path in paths), return_exceptions=True)
        results = {}
        for path, content in zip(paths, contents):
            if isinstance(content, FilesystemError):
                logger.debug(f"Skipping unreadable file {path}", component="filesystem")
                continue
            if isinstance(content, BaseException):
                raise content
            results[path] = content
        return results

    async def batch_write(self, files: Dict[str, str]) -> None:
        await asyncio.gather(*(self.write_file(path, content) for path, content in files.items()))

    def dispose(self) -> None:
        self.backups.clear()
        self._listeners.clear()
