"""
Rendering of edit-mcp log records.

``RichLoggingHandler`` turns each standard ``logging.LogRecord`` into an
``EditLogRecord`` and hands it to a formatter. The simple formatter renders a
single line; the detailed one adds the context mapping as a small table and
the traceback of any attached exception.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from rich.console import Console, ConsoleRenderable, Group
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.traceback import Traceback

from .themes import get_component_style, get_level_style, symbol_for


@dataclass
class EditLogRecord:
    """The fields a formatter needs, lifted out of a ``logging.LogRecord``."""

    level: str
    message: str
    component: Optional[str] = None
    operation: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    created: float = 0.0
    exc_info: Optional[Tuple] = None

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "EditLogRecord":
        # Records logged through Logger carry the level "success" in `edit_level`
        level = getattr(record, "edit_level", None) or record.levelname
        component = getattr(record, "component", None)
        operation = getattr(record, "operation", None)
        return cls(
            level=level.lower(),
            message=record.getMessage(),
            component=component.lower() if component else None,
            operation=operation.lower() if operation else None,
            context=getattr(record, "context", None) or {},
            created=record.created,
            exc_info=record.exc_info or None,
        )

    @property
    def style(self) -> Style:
        return get_level_style(self.level)

    @property
    def clock(self) -> str:
        return datetime.fromtimestamp(self.created).strftime("%H:%M:%S.%f")[:-3]


class SimpleLogFormatter:
    """One line per record: time, symbol, level, component, operation, message."""

    def __init__(self, show_time: bool = True, show_level: bool = True, show_component: bool = True):
        self.show_time = show_time
        self.show_level = show_level
        self.show_component = show_component

    def headline(self, record: EditLogRecord) -> Text:
        parts = []
        if self.show_time:
            parts.append((f"[{record.clock}] ", "timestamp"))
        parts.append((f"{symbol_for(record.level, record.operation)} ", record.style))
        if self.show_level:
            parts.append((f"[{record.level.upper()}] ", record.style))
        if self.show_component and record.component:
            parts.append((f"[{record.component}] ", get_component_style(record.component)))
        if record.operation:
            parts.append((f"{record.operation}: ", "operation"))
        parts.append(record.message)
        return Text.assemble(*parts)

    def format_record(self, record: EditLogRecord) -> ConsoleRenderable:
        return self.headline(record)


def _summarize(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)) and value:
        return f"<{type(value).__name__} with {len(value)} items>"
    return str(value)


class DetailedLogFormatter(SimpleLogFormatter):
    """Headline followed by the record's context and traceback, when present."""

    def __init__(self, show_context: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.show_context = show_context

    def format_record(self, record: EditLogRecord) -> ConsoleRenderable:
        body = [self.headline(record)]

        if self.show_context and record.context:
            table = Table.grid(padding=(0, 1))
            table.add_column(style="bright_black")
            table.add_column()
            for key, value in record.context.items():
                table.add_row(str(key), _summarize(value))
            body.append(table)

        if record.exc_info:
            body.append(Traceback.from_exception(*record.exc_info))

        return body[0] if len(body) == 1 else Group(*body)


class RichLoggingHandler(RichHandler):
    """RichHandler whose output is produced by an edit-mcp formatter."""

    def __init__(
        self,
        level: int = logging.NOTSET,
        console: Optional[Console] = None,
        formatter: Optional[SimpleLogFormatter] = None,
        **kwargs
    ):
        super().__init__(level=level, console=console, **kwargs)
        self.edit_formatter = formatter or DetailedLogFormatter()

    def render(
        self,
        *,
        record: logging.LogRecord,
        traceback: Optional[Traceback],
        message_renderable: ConsoleRenderable,
    ) -> ConsoleRenderable:
        return self.edit_formatter.format_record(EditLogRecord.from_record(record))


def create_rich_console_handler(level=logging.NOTSET, show_path=False, rich_tracebacks=True, **kwargs):
    """dictConfig factory for the stderr console handler."""
    from .console import stderr_console

    return RichLoggingHandler(
        level=level,
        console=stderr_console,
        show_path=show_path,
        markup=False,
        rich_tracebacks=rich_tracebacks,
    )
