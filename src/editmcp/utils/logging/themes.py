"""
Styles and symbols used when rendering edit-mcp log records.

Every level and every component gets a Rich style; operations that show up
in the router, the worker pool and the protocol layer get a symbol so a busy
log can be scanned by eye.
"""
from typing import Dict

from rich.style import Style
from rich.theme import Theme

# level -> (color, symbol)
LEVELS = {
    "debug": ("bright_black", "🔍"),
    "info": ("bright_blue", "ℹ️"),
    "success": ("green", "✅"),
    "warning": ("yellow", "⚠️"),
    "error": ("red", "❌"),
    "critical": ("bright_red", "🚨"),
}

COMPONENT_COLORS = {
    "router": "cyan",
    "pool": "magenta",
    "worker": "bright_magenta",
    "filesystem": "green",
    "mcp": "bright_blue",
    "http": "bright_yellow",
    "stdio": "yellow",
    "config": "bright_cyan",
    "cli": "blue",
}

OPERATION_SYMBOLS: Dict[str, str] = {
    "route": "🧭",
    "execute": "⚙️",
    "spawn": "🐣",
    "reclaim": "♻️",
    "terminate": "🛑",
    "backup": "💾",
    "restore": "⏪",
    "refactor": "🔀",
    "validate": "✔️",
    "handle_request": "📡",
    "handle_notification": "📨",
    "load_config": "🗂️",
    "startup": "🔆",
    "shutdown": "🔅",
}

UNKNOWN_SYMBOL = "❓"


def _level_style(level: str, color: str) -> Style:
    if level == "critical":
        return Style(color=color, bold=True, reverse=True)
    return Style(color=color, bold=level not in ("debug", "info"))


STYLES: Dict[str, Style] = {level: _level_style(level, color) for level, (color, _) in LEVELS.items()}
STYLES.update({name: Style(color=color, bold=True) for name, color in COMPONENT_COLORS.items()})
STYLES.update(
    operation=Style(color="magenta", bold=True),
    timestamp=Style(color="bright_black", dim=True),
    path=Style(color="bright_blue", underline=True),
)

RICH_THEME = Theme(STYLES)


def get_level_style(level: str) -> Style:
    return STYLES.get(level.lower(), STYLES["info"])


def get_component_style(component: str) -> Style:
    """Style for a component name; unknown components render like info."""
    if component.lower() not in COMPONENT_COLORS:
        return STYLES["info"]
    return STYLES[component.lower()]


def symbol_for(level: str, operation: str = None) -> str:
    """Pick the symbol for a record, preferring the operation's own symbol."""
    if operation and operation in OPERATION_SYMBOLS:
        return OPERATION_SYMBOLS[operation]
    if level in LEVELS:
        return LEVELS[level][1]
    return UNKNOWN_SYMBOL
