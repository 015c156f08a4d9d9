"""
Core services for edit-mcp.
"""

from editmcp.core.filesystem import (
    FileSystemCapability,
    FileSystemManager,
    FileStats,
    SearchResult,
    FileChangeEvent,
)

__all__ = [
    "FileSystemCapability",
    "FileSystemManager",
    "FileStats",
    "SearchResult",
    "FileChangeEvent",
]
