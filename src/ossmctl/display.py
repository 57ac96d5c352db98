"""
Display manager for Rich-based console output and live updates.

Handles all console output including the state table, the pattern list
and the toggle-able live state view.
"""

import logging
from typing import Optional, Sequence

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from .models import DeviceState, PatternDescriptor

logger = logging.getLogger(__name__)


class DisplayManager:
    """Manages console output with Rich library."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize display manager.

        Args:
            console: Rich Console instance (creates one if None)
        """
        self.console = console or Console()
        self.live_enabled = False
        self._live: Optional[Live] = None
        self._pattern_names: dict[int, str] = {}

    def print_banner(self) -> None:
        """Print startup banner."""
        panel = Panel(
            "[bold cyan]ossmctl - OSSM Control Console[/bold cyan]\n"
            "[dim]Type 'help' for commands, 'quit' to exit[/dim]",
            expand=False,
        )
        self.console.print(panel)

    def set_pattern_names(self, patterns: Sequence[PatternDescriptor]) -> None:
        """Remember pattern names so state tables can show them."""
        self._pattern_names = {p.idx: p.name for p in patterns}

    def print_state(self, state: Optional[DeviceState]) -> None:
        """Display one-time device state table."""
        self.console.print(self.format_state_table(state))

    def print_patterns(self, patterns: Sequence[PatternDescriptor]) -> None:
        """Display the pattern list."""
        table = Table(title="Patterns", show_header=True, header_style="bold cyan")
        table.add_column("Index", style="magenta", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Description", style="white")
        for pattern in patterns:
            table.add_row(str(pattern.idx), pattern.name, pattern.description)
        self.console.print(table)

    def print_success(self, message: str) -> None:
        """Print green success message."""
        self.console.print(f"[green]✓[/green] {message}", highlight=False)

    def print_error(self, message: str) -> None:
        """Print red error message.

        Args:
            message: Error message text
        """
        self.console.print(f"[red]Error:[/red] {message}", highlight=False)

    def print_info(self, message: str) -> None:
        """Print blue info message.

        Args:
            message: Info message text
        """
        self.console.print(f"[cyan]Info:[/cyan] {message}", highlight=False)

    def print_help(self, commands: list) -> None:
        """Display command reference.

        Args:
            commands: List of Command objects
        """
        table = Table(title="Available Commands", show_header=True)
        table.add_column("Command", style="cyan")
        table.add_column("Aliases", style="magenta")
        table.add_column("Description", style="white")
        table.add_column("Usage", style="yellow")

        for cmd in commands:
            aliases = ", ".join(cmd.aliases) if cmd.aliases else "-"
            table.add_row(cmd.name, aliases, cmd.description, cmd.usage)

        self.console.print(table)
        self.console.print(
            "[dim]Keyboard shortcuts: Ctrl+C to interrupt, Ctrl+D to exit[/dim]"
        )

    def start_live(self, state: Optional[DeviceState] = None) -> None:
        """Start live display refresh mode."""
        if self.live_enabled:
            return

        self.live_enabled = True
        self._live = Live(
            self.format_state_table(state), console=self.console, refresh_per_second=4
        )
        self._live.start()
        self.console.print("[dim]Live display enabled ['live' to disable][/dim]")

    def stop_live(self) -> None:
        """Stop live display refresh mode."""
        if not self.live_enabled:
            return

        self.live_enabled = False
        if self._live is not None:
            self._live.stop()
            self._live = None

    def update_live(self, state: DeviceState) -> None:
        """Update live display with a newly published state."""
        if not self.live_enabled or self._live is None:
            return

        try:
            self._live.update(self.format_state_table(state))
        except Exception as e:
            logger.error(f"Live update error: {e}")

    def toggle_live(self, state: Optional[DeviceState] = None) -> bool:
        """Toggle live display on/off.

        Returns:
            New live display state (True = on, False = off)
        """
        if self.live_enabled:
            self.stop_live()
        else:
            self.start_live(state)
        return self.live_enabled

    def format_state_table(self, state: Optional[DeviceState]) -> Table:
        """Create Rich Table for a device state.

        Args:
            state: State to show; None renders a placeholder

        Returns:
            Rich Table object
        """
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="yellow")

        if state is None:
            table.add_row("Status", "UNKNOWN")
            return table

        table.add_row("Status", state.status)
        table.add_row("Page", state.page.value if state.page else "-")
        table.add_row("Speed", self.format_percent(state.speed))
        table.add_row("Stroke", self.format_percent(state.stroke))
        table.add_row("Depth", self.format_percent(state.depth))
        table.add_row("Sensation", self.format_percent(state.sensation))
        table.add_row("Pattern", self.format_pattern(state.pattern))
        return table

    def format_pattern(self, idx: int) -> str:
        name = self._pattern_names.get(idx)
        return f"{idx} ({name})" if name else str(idx)

    @staticmethod
    def format_percent(value: int) -> str:
        """Format a 0-100 level.

        Args:
            value: Percentage value

        Returns:
            Formatted percentage string
        """
        return f"{value}%"
