"""
Centralized console configuration for the content library CLI.

- console: main console for tables and status output
- log_console: handler target for log records (writes to stderr)
"""

from rich.console import Console

console = Console(
    color_system="auto",
)

# Log records go to stderr so they never interleave with table output
log_console = Console(
    stderr=True,
    color_system="auto",
)
