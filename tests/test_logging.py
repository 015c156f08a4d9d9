import logging

from rich.console import Console
from rich.text import Text

from editmcp.utils.logging import (
    DetailedLogFormatter,
    EditLogRecord,
    Logger,
    RichLoggingHandler,
    SimpleLogFormatter,
    capture_logs,
)
from editmcp.utils.logging.themes import STYLES, get_component_style, symbol_for


def _record(**extra):
    record = logging.LogRecord("editmcp.test", logging.INFO, __file__, 1, "pool %s", ("full",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_capture_respects_level():
    log = Logger("editmcp.test")

    with capture_logs("warning") as logs:
        log.info("spawned worker", component="pool", operation="spawn")
        log.warning("worker idle", component="pool", operation="reclaim", context={"session": "abc"})

    assert logs.messages() == ["worker idle"]
    assert logs.records[0]["operation"] == "reclaim"
    assert logs.records[0]["context"] == {"session": "abc"}
    assert not logs.contains("spawned")


def test_success_logs_at_info():
    with capture_logs() as logs:
        Logger("editmcp.test").success("ready", component="mcp")

    assert logs.records[0]["levelno"] == logging.INFO
    assert logs.contains("ready", level="info")
    assert not logs.contains("ready", level="error")


def test_error_attaches_exception():
    seen = []

    class Keep(logging.Handler):
        def emit(self, record):
            seen.append(record)

    handler = Keep()
    target = logging.getLogger("editmcp.test.errors")
    target.addHandler(handler)
    try:
        error = RuntimeError("boom")
        Logger("editmcp.test.errors").error("worker crashed", component="worker", exception=error)
    finally:
        target.removeHandler(handler)

    assert seen[0].exc_info[1] is error
    assert seen[0].component == "worker"


def test_record_from_logging_record():
    record = EditLogRecord.from_record(_record(component="Pool", operation="SPAWN", edit_level="success"))

    assert record.level == "success"
    assert record.message == "pool full"
    assert record.component == "pool"
    assert record.operation == "spawn"
    assert record.context == {}


def test_simple_formatter_headline():
    record = EditLogRecord.from_record(_record(component="router", operation="route"))

    text = SimpleLogFormatter(show_time=False).format_record(record)

    assert isinstance(text, Text)
    assert text.plain == f"{symbol_for('info', 'route')} [INFO] [router] route: pool full"


def test_detailed_formatter_renders_context():
    record = EditLogRecord.from_record(_record(context={"files": [1, 2, 3], "limit": 5}))
    console = Console(record=True, width=120)

    console.print(DetailedLogFormatter(show_time=False).format_record(record))

    output = console.export_text()
    assert "<list with 3 items>" in output
    assert "limit" in output


def test_handler_renders_through_formatter():
    console = Console(record=True, width=120)
    handler = RichLoggingHandler(console=console, formatter=SimpleLogFormatter(show_time=False))

    handler.emit(_record(component="stdio"))

    assert "[stdio] pool full" in console.export_text()


def test_symbols_and_styles():
    assert symbol_for("error") != symbol_for("info")
    assert symbol_for("info", "spawn") == symbol_for("error", "spawn")
    assert symbol_for("unheard-of") == "❓"
    assert get_component_style("nonsense") == STYLES["info"]
    assert get_component_style("Pool") == STYLES["pool"]
