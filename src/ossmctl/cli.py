"""
Interactive console for OSSM control.

Command loop with async support, auto-completion and a live state view
fed by the controller's STATE_CHANGED events.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import InMemoryHistory

from .commands import COMMANDS, CommandCompleter, get_command
from .config import ClientConfig, clear_address_cache
from .controller import OssmController
from .display import DisplayManager
from .errors import OssmError
from .models import DeviceState, EventType
from .motion import StrokePattern

logger = logging.getLogger(__name__)

READY_TIMEOUT = 30.0


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value}") from None


class OssmConsole:
    """Interactive console for OSSM control."""

    def __init__(self, address: Optional[str] = None, config: Optional[ClientConfig] = None) -> None:
        """Initialize console; the device is located on first connect."""
        self.address = address
        self.config = config or ClientConfig()
        self.controller: Optional[OssmController] = None
        self.display = DisplayManager()
        self.running = False

        self.session = PromptSession(
            completer=CommandCompleter(),
            history=InMemoryHistory(),
            enable_history_search=True,
        )

    async def run(self) -> None:
        """Run the main console loop."""
        self.running = True
        self.display.print_banner()

        self.display.console.print("Attempting to connect to OSSM...")
        try:
            await self.cmd_connect([])
        except Exception as e:
            self.display.console.print(f"⚠ Connection failed: {e}\n")

        try:
            while self.running:
                try:
                    text = await self.session.prompt_async(self._get_prompt())
                    if text.strip():
                        await self._handle_input(text.strip())
                except KeyboardInterrupt:
                    self.display.console.print()
                    continue
        except EOFError:
            await self.cmd_quit([])
        finally:
            self.running = False

    def _get_prompt(self) -> FormattedText:
        """Get dynamic prompt based on connection state."""
        if self.controller is not None and self.controller.is_ready:
            state = self.controller.get_cached_state()
            label = state.status if state else "OSSM"
            return FormattedText([("class:prompt", f"[{label}] > ")])
        return FormattedText([("class:prompt", "[disconnected] > ")])

    async def _handle_input(self, text: str) -> None:
        """Parse and dispatch command."""
        parts = text.split()
        cmd_name = parts[0].lower()
        args = parts[1:]

        cmd = get_command(cmd_name)
        if not cmd:
            self.display.print_error(
                f"Unknown command: {cmd_name}. Type 'help' for available commands."
            )
            return

        handler = getattr(self, cmd.handler, None)
        if handler is None:
            self.display.print_error(f"Handler not found: {cmd.handler}")
            return

        try:
            await handler(args)
        except (OssmError, ValueError) as e:
            self.display.print_error(str(e))
        except Exception as e:
            self.display.print_error(f"Command failed: {e}")
            logger.exception("Command exception")

    def _on_state_changed(self, state: DeviceState) -> None:
        if self.display.live_enabled:
            self.display.update_live(state)

    def _on_disconnected(self, _data: None) -> None:
        if self.display.live_enabled:
            self.display.stop_live()
        self.display.print_info("Device disconnected")

    def _on_connected(self, _data: None) -> None:
        self.display.print_info("Device connected")

    def _require_controller(self) -> OssmController:
        if self.controller is None or not self.controller.is_ready:
            raise OssmError("Not connected. Use 'connect' first.")
        return self.controller

    # ========== Command Handlers ==========

    async def cmd_connect(self, args: list) -> None:
        """Locate the device and start connection management."""
        if self.controller is not None and self.controller.is_ready:
            self.display.print_info("Already connected")
            return

        if self.controller is None:
            self.display.print_info("Looking for OSSM...")
            self.controller = await OssmController.pair(self.address, config=self.config)
            self.controller.add_event_listener(EventType.STATE_CHANGED, self._on_state_changed)
            self.controller.add_event_listener(EventType.DISCONNECTED, self._on_disconnected)
            self.controller.add_event_listener(EventType.CONNECTED, self._on_connected)

        self.controller.begin()
        await self.controller.wait_for_ready(READY_TIMEOUT)
        state = await self.controller.get_state(READY_TIMEOUT)
        self.display.print_state(state)

    async def cmd_disconnect(self, args: list) -> None:
        """Stop the device and disconnect."""
        if self.controller is None or not self.controller.is_connected:
            self.display.print_info("Not connected")
            return

        if self.display.live_enabled:
            self.display.stop_live()
        await self.controller.end()

    async def cmd_stop(self, args: list) -> None:
        """Emergency stop."""
        await self._require_controller().stop()
        self.display.print_success("Stopped")

    async def _set_level(self, args: list, name: str) -> None:
        controller = self._require_controller()
        if len(args) != 1:
            raise ValueError(f"Usage: {name} <0-100>")
        value = _parse_int(args[0], name)
        await getattr(controller, f"set_{name}")(value)
        self.display.print_success(f"{name.capitalize()} set to {value}%")

    async def cmd_speed(self, args: list) -> None:
        """Set speed percentage."""
        await self._set_level(args, "speed")

    async def cmd_stroke(self, args: list) -> None:
        """Set stroke percentage."""
        await self._set_level(args, "stroke")

    async def cmd_depth(self, args: list) -> None:
        """Set depth percentage."""
        await self._set_level(args, "depth")

    async def cmd_sensation(self, args: list) -> None:
        """Set sensation percentage."""
        await self._set_level(args, "sensation")

    async def cmd_pattern(self, args: list) -> None:
        """Select pattern by index."""
        controller = self._require_controller()
        if len(args) != 1:
            raise ValueError("Usage: pattern <index>")
        idx = _parse_int(args[0], "pattern")
        await controller.set_pattern(idx)
        self.display.print_success(f"Pattern set to {self.display.format_pattern(idx)}")

    async def cmd_patterns(self, args: list) -> None:
        """List device patterns."""
        patterns = await self._require_controller().get_pattern_list()
        self.display.set_pattern_names(patterns)
        self.display.print_patterns(patterns)

    async def cmd_go(self, args: list) -> None:
        """Navigate to a page."""
        controller = self._require_controller()
        if len(args) != 1:
            raise ValueError("Usage: go <page>")
        await controller.navigate_to(args[0])
        self.display.print_success(f"Navigated to {args[0]}")

    async def cmd_run(self, args: list) -> None:
        """Run a stroke engine pattern."""
        controller = self._require_controller()
        if len(args) < 4 or len(args) > 6:
            raise ValueError(
                "Usage: run <pattern> <speed> <min> <max> [intensity] [invert|normal]"
            )
        invert = None
        if len(args) == 6:
            if args[5] not in ("invert", "normal"):
                raise ValueError(f"Invalid direction: {args[5]}")
            invert = args[5] == "invert"
        pattern = StrokePattern(
            pattern=_parse_int(args[0], "pattern"),
            speed=_parse_int(args[1], "speed"),
            min_depth=_parse_int(args[2], "min depth"),
            max_depth=_parse_int(args[3], "max depth"),
            intensity=_parse_int(args[4], "intensity") if len(args) > 4 else 100,
            invert=invert,
        )
        await controller.run_pattern(pattern)
        self.display.print_success("Pattern running")

    async def cmd_move(self, args: list) -> None:
        """Move to an absolute position."""
        controller = self._require_controller()
        if len(args) != 2:
            raise ValueError("Usage: move <position> <speed>")
        position = _parse_int(args[0], "position")
        speed = _parse_int(args[1], "speed")
        await controller.move_to_position(position, speed)
        self.display.print_success(f"Moving to {position}% at {speed}%")

    async def cmd_knob(self, args: list) -> None:
        """Show or set speed knob as limit."""
        controller = self._require_controller()
        if not args:
            enabled = await controller.get_speed_knob_config()
            self.display.print_info(f"Speed knob as limit: {'on' if enabled else 'off'}")
            return
        if args[0] not in ("on", "off"):
            raise ValueError("Usage: knob [on|off]")
        await controller.set_speed_knob_config(args[0] == "on")
        self.display.print_success(f"Speed knob as limit: {args[0]}")

    async def cmd_status(self, args: list) -> None:
        """Show current device state."""
        controller = self._require_controller()
        self.display.print_state(controller.get_cached_state())

    async def cmd_live(self, args: list) -> None:
        """Toggle live display mode."""
        state = self.controller.get_cached_state() if self.controller else None
        if not self.display.toggle_live(state):
            self.display.print_info("Live display disabled")

    async def cmd_help(self, args: list) -> None:
        """Show all available commands."""
        self.display.print_help(COMMANDS)

    async def cmd_quit(self, args: list) -> None:
        """Exit the console."""
        if self.display.live_enabled:
            self.display.stop_live()

        if self.controller is not None:
            self.display.print_info("Disconnecting...")
            await self.controller.end()

        self.display.console.print("[cyan]Goodbye![/cyan]")
        self.running = False


async def run_cli_command(command: str, address: Optional[str] = None) -> None:
    """Run a single command and exit."""
    display = DisplayManager()

    if command == "clear-cache":
        clear_address_cache()
        display.print_info("Cleared cached device address")
        return

    controller = await OssmController.pair(address)
    controller.begin()
    try:
        display.print_info("Connecting to device...")
        await controller.wait_for_ready(READY_TIMEOUT)

        if command == "status":
            display.print_state(await controller.get_state(READY_TIMEOUT))

        elif command == "patterns":
            patterns = await controller.get_pattern_list()
            display.print_patterns(patterns)

        elif command == "stop":
            await controller.stop()
            display.print_success("Stopped")

        else:
            display.print_error(f"Unknown command: {command}")
            sys.exit(1)

    finally:
        await controller.end()


def main() -> None:
    """Entry point for the console application."""
    parser = argparse.ArgumentParser(
        description="OSSM BLE Control",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ossmctl                    # Start interactive console
  ossmctl --status           # Show device state (auto-connects)
  ossmctl --patterns         # List device patterns
  ossmctl --stop             # Emergency stop
  ossmctl --clear-cache      # Clear cached device address
        """,
    )

    parser.add_argument("--address", help="Device address (skips the cache and scan)")
    parser.add_argument("--status", action="store_true", help="Show device state")
    parser.add_argument("--patterns", action="store_true", help="List device patterns")
    parser.add_argument("--stop", action="store_true", help="Stop the device")
    parser.add_argument(
        "--clear-cache", action="store_true", help="Clear cached device address"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(message)s",
    )

    commands = []
    if args.status:
        commands.append("status")
    if args.patterns:
        commands.append("patterns")
    if args.stop:
        commands.append("stop")
    if args.clear_cache:
        commands.append("clear-cache")

    if not commands:
        try:
            console = OssmConsole(address=args.address)
            asyncio.run(console.run())
        except KeyboardInterrupt:
            print("\nInterrupted")
            sys.exit(0)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        if len(commands) > 1:
            print("Error: Only one command can be specified at a time", file=sys.stderr)
            sys.exit(1)

        try:
            asyncio.run(run_cli_command(commands[0], args.address))
        except KeyboardInterrupt:
            print("\nInterrupted")
            sys.exit(1)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
