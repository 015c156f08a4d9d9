"""
The structured logger every edit-mcp component logs through.

Calls take the message plus three optional keywords: ``component`` (router,
pool, worker, mcp...), ``operation`` (route, spawn, handle_request...) and a
``context`` mapping. They travel to handlers as ``extra`` attributes on the
standard record, which is what the Rich handler and ``LogCapture`` read.
"""
import logging
from typing import Any, Dict, Optional


class Logger:
    """Thin wrapper over a stdlib logger that attaches edit-mcp fields."""

    def __init__(self, name: str = "editmcp", component: Optional[str] = None):
        self.name = name
        self.component = component
        self.python_logger = logging.getLogger(name)

    def set_level(self, level: str) -> None:
        self.python_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    def _emit(
        self,
        levelno: int,
        message: str,
        component: Optional[str],
        operation: Optional[str],
        context: Optional[Dict[str, Any]],
        edit_level: Optional[str] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        if not self.python_logger.isEnabledFor(levelno):
            return
        extra = {
            "component": component or self.component,
            "operation": operation,
            "context": context,
            "edit_level": edit_level,
        }
        exc_info = (type(exception), exception, exception.__traceback__) if exception is not None else None
        self.python_logger.log(levelno, message, exc_info=exc_info, extra=extra)

    def debug(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(logging.DEBUG, message, component, operation, context)

    def info(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(logging.INFO, message, component, operation, context)

    def success(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log at INFO, rendered as a success."""
        self._emit(logging.INFO, message, component, operation, context, edit_level="success")

    def warning(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(logging.WARNING, message, component, operation, context)

    def error(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        """Log an error, attaching ``exception``'s traceback when one is given."""
        self._emit(logging.ERROR, message, component, operation, context, exception=exception)

    def critical(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        self._emit(logging.CRITICAL, message, component, operation, context, exception=exception)
