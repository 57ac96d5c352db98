"""
Command definitions and auto-completion for the console.

Defines all available commands with metadata and provides a completer
for prompt_toolkit auto-completion.
"""

from dataclasses import dataclass
from typing import Any, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Page


@dataclass
class Command:
    """Command definition with metadata."""

    name: str
    aliases: List[str]
    description: str
    usage: str
    handler: str


COMMANDS = [
    Command(
        name="connect",
        aliases=["c"],
        description="Connect and keep reconnecting",
        usage="connect",
        handler="cmd_connect",
    ),
    Command(
        name="disconnect",
        aliases=["dc"],
        description="Stop the device and disconnect",
        usage="disconnect",
        handler="cmd_disconnect",
    ),
    Command(
        name="stop",
        aliases=["x"],
        description="Emergency stop (speed 0)",
        usage="stop",
        handler="cmd_stop",
    ),
    Command(
        name="speed",
        aliases=["sp"],
        description="Set speed percentage",
        usage="speed <0-100>",
        handler="cmd_speed",
    ),
    Command(
        name="stroke",
        aliases=["sk"],
        description="Set stroke length percentage",
        usage="stroke <0-100>",
        handler="cmd_stroke",
    ),
    Command(
        name="depth",
        aliases=["d"],
        description="Set depth percentage",
        usage="depth <0-100>",
        handler="cmd_depth",
    ),
    Command(
        name="sensation",
        aliases=["se"],
        description="Set sensation percentage",
        usage="sensation <0-100>",
        handler="cmd_sensation",
    ),
    Command(
        name="pattern",
        aliases=["pt"],
        description="Select pattern by index",
        usage="pattern <index>",
        handler="cmd_pattern",
    ),
    Command(
        name="patterns",
        aliases=["ls"],
        description="List device patterns",
        usage="patterns",
        handler="cmd_patterns",
    ),
    Command(
        name="go",
        aliases=["g"],
        description="Navigate to a page",
        usage="go <menu|simplePenetration|strokeEngine>",
        handler="cmd_go",
    ),
    Command(
        name="run",
        aliases=["r"],
        description="Run a stroke engine pattern",
        usage="run <pattern> <speed> <min> <max> [intensity] [invert|normal]",
        handler="cmd_run",
    ),
    Command(
        name="move",
        aliases=["m"],
        description="Move to an absolute position",
        usage="move <position> <speed>",
        handler="cmd_move",
    ),
    Command(
        name="knob",
        aliases=["k"],
        description="Show or set speed knob as limit",
        usage="knob [on|off]",
        handler="cmd_knob",
    ),
    Command(
        name="status",
        aliases=["st"],
        description="Show current device state",
        usage="status",
        handler="cmd_status",
    ),
    Command(
        name="live",
        aliases=["l"],
        description="Toggle live display mode",
        usage="live",
        handler="cmd_live",
    ),
    Command(
        name="help",
        aliases=["h", "?"],
        description="Show all available commands",
        usage="help",
        handler="cmd_help",
    ),
    Command(
        name="quit",
        aliases=["q", "exit"],
        description="Exit the console",
        usage="quit",
        handler="cmd_quit",
    ),
]

_LEVEL_COMMANDS = ("speed", "sp", "stroke", "sk", "depth", "d", "sensation", "se")
_LEVEL_SUGGESTIONS = [str(v) for v in range(0, 101, 10)]


def get_command(name: str) -> Command | None:
    """Get command by name or alias.

    Args:
        name: Command name or alias

    Returns:
        Command object if found, None otherwise
    """
    for cmd in COMMANDS:
        if cmd.name == name or name in cmd.aliases:
            return cmd
    return None


class CommandCompleter(Completer):
    """Auto-completion for commands and arguments."""

    def __init__(self) -> None:
        """Initialize completer."""
        self._command_names = set()
        self._command_aliases = set()

        for cmd in COMMANDS:
            self._command_names.add(cmd.name)
            self._command_aliases.update(cmd.aliases)

    def get_completions(self, document: Document, complete_event) -> Any:  # type: ignore[no-untyped-def]
        """Get completion suggestions for current input.

        Args:
            document: Current input document
            complete_event: Completion event

        Yields:
            Completion objects for matching commands/arguments
        """
        text = document.text_before_cursor.lstrip()
        parts = text.split()

        if not text:
            return []

        # First part: complete command name
        if len(parts) <= 1 and not text.endswith(" "):
            partial_cmd = parts[0].lower() if parts else ""
            all_names = self._command_names | self._command_aliases

            for name in sorted(all_names):
                if name.startswith(partial_cmd):
                    yield Completion(
                        name,
                        start_position=-len(partial_cmd),
                        display=f"({name})",
                    )
            return

        first_cmd = parts[0].lower()
        partial = "" if text.endswith(" ") else parts[-1]

        if first_cmd in ("go", "g"):
            candidates = [page.value for page in Page]
        elif first_cmd in _LEVEL_COMMANDS:
            candidates = _LEVEL_SUGGESTIONS
        elif first_cmd in ("knob", "k"):
            candidates = ["on", "off"]
        else:
            return

        for candidate in candidates:
            if candidate.startswith(partial):
                yield Completion(
                    candidate,
                    start_position=-len(partial),
                    display=candidate,
                )
