"""Rich console helpers for terminal output.

Everything goes to stderr so that ``--json`` output on stdout stays
machine-readable.
"""

from typing import Any

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.status import Status


class Console:
    """Wrapper around rich.Console with convenience methods."""

    def __init__(self) -> None:
        self._console = RichConsole(stderr=True)
        self._json_mode = False

    def set_json_mode(self, enabled: bool) -> None:
        """Enable or disable JSON mode (suppresses rich output)."""
        self._json_mode = enabled

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console (suppressed in JSON mode)."""
        if not self._json_mode:
            self._console.print(*args, **kwargs)

    def print_success(self, message: str) -> None:
        """Print a success message in green."""
        if not self._json_mode:
            self._console.print(f"[green]✓[/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        """Print an error message in red (shown even in JSON mode)."""
        self._console.print(f"[red]✗[/red] {escape(message)}")

    def print_info(self, message: str) -> None:
        """Print an info message in blue."""
        if not self._json_mode:
            self._console.print(f"[blue]ℹ[/blue] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print a warning message in yellow."""
        if not self._json_mode:
            self._console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def print_fields(self, fields: dict[str, Any]) -> None:
        """Print ``label: value`` rows with the values aligned.

        Rows whose value is None are skipped.
        """
        if self._json_mode:
            return

        rows = {label: value for label, value in fields.items() if value is not None}
        if not rows:
            return

        width = max(len(label) for label in rows) + 1
        self._console.print()
        for label, value in rows.items():
            self._console.print(f"  {label + ':':<{width}}  {escape(str(value))}")
        self._console.print()

    def status(self, message: str) -> Status:
        """Create a status spinner context manager."""
        return self._console.status(message)


# Global console instance
console = Console()
