"""
edit-mcp logging.

``logger`` is the package-wide structured logger. Handlers are installed by
``editmcp.server.configure_logging`` through dictConfig, so importing this
package never touches the logging tree beyond creating loggers.
"""

import logging
from typing import Any, Dict, List, Optional

from editmcp.utils.logging.console import console, stderr_console
from editmcp.utils.logging.logger import Logger
from editmcp.utils.logging.formatter import (
    EditLogRecord,
    SimpleLogFormatter,
    DetailedLogFormatter,
    RichLoggingHandler,
    create_rich_console_handler,
)

logger = Logger("editmcp")


class LogCapture(logging.Handler):
    """Handler that records everything logged under ``editmcp`` while active.

    Used as a context manager::

        with capture_logs() as logs:
            ...
        assert logs.contains("worker exited", level="warning")
    """

    def __init__(self, level: Optional[str] = None):
        super().__init__(getattr(logging, level.upper()) if level else logging.DEBUG)
        self.records: List[Dict[str, Any]] = []
        self._target = logging.getLogger("editmcp")
        self._saved_level = logging.NOTSET

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(
            {
                "levelno": record.levelno,
                "message": record.getMessage(),
                "component": getattr(record, "component", None),
                "operation": getattr(record, "operation", None),
                "context": getattr(record, "context", None),
            }
        )

    def __enter__(self) -> "LogCapture":
        self._saved_level = self._target.level
        self._target.setLevel(self.level)
        self._target.addHandler(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._target.removeHandler(self)
        self._target.setLevel(self._saved_level)

    def messages(self, level: Optional[str] = None) -> List[str]:
        floor = getattr(logging, level.upper()) if level else logging.NOTSET
        return [entry["message"] for entry in self.records if entry["levelno"] >= floor]

    def contains(self, text: str, level: Optional[str] = None) -> bool:
        return any(text in message for message in self.messages(level))


def capture_logs(level: Optional[str] = None) -> LogCapture:
    return LogCapture(level)


__all__ = [
    "console",
    "stderr_console",
    "logger",
    "Logger",
    "capture_logs",
    "LogCapture",
    "EditLogRecord",
    "SimpleLogFormatter",
    "DetailedLogFormatter",
    "RichLoggingHandler",
    "create_rich_console_handler",
]
