"""
Rich consoles shared by the CLI and the logging handler.

While the server speaks the protocol over stdio, stdout belongs to the
protocol; log output is therefore bound to ``stderr_console``.
"""
from rich.console import Console

from .themes import RICH_THEME

console = Console(theme=RICH_THEME, highlight=True, color_system="auto")

stderr_console = Console(theme=RICH_THEME, stderr=True, highlight=False, color_system="auto")
