"""
Edit worker pool.

Long-lived external edit processes driven over a line protocol, managed by a
bounded pool keyed by session id.
"""

from editmcp.edit.models import (
    EditCommand,
    EditResult,
    EditInstanceState,
    MultiFileEditOperation,
    ComplexEditOperation,
)
from editmcp.edit.instance import EditInstance, format_command, format_argument
from editmcp.edit.manager import EditInstanceManager, resolve_edit_executable

__all__ = [
    "EditCommand",
    "EditResult",
    "EditInstanceState",
    "MultiFileEditOperation",
    "ComplexEditOperation",
    "EditInstance",
    "EditInstanceManager",
    "format_command",
    "format_argument",
    "resolve_edit_executable",
]
