#!/usr/bin/env python
"""Basic functionality test for console components without device."""

import asyncio

import pytest
from prompt_toolkit.document import Document
from rich.console import Console

from ossmctl.commands import COMMANDS, CommandCompleter, get_command
from ossmctl.controller import OssmController
from ossmctl.display import DisplayManager
from ossmctl.models import DeviceState, PatternDescriptor

from conftest import FakeOssmTransport

SAMPLE_STATE = DeviceState(
    status="strokeEngine.pattern", speed=40, stroke=60, sensation=50, depth=80, pattern=2
)


@pytest.mark.asyncio
async def test_display():
    """Test display functionality."""
    print("\n=== Testing Display Manager ===")
    console = Console(record=True, width=120)
    display = DisplayManager(console)

    # Test banner
    print("\n1. Testing banner:")
    display.print_banner()

    # Test state display
    print("\n2. Testing state display:")
    display.set_pattern_names(
        [PatternDescriptor(name="Robo Stroke", idx=2, description="Robotic to gradual")]
    )
    display.print_state(SAMPLE_STATE)
    display.print_state(None)

    # Test messages
    print("\n3. Testing messages:")
    display.print_success("Speed set to 40%")
    display.print_info("This is an info message")
    display.print_error("This is an error message")

    # Test formatting
    print("\n4. Testing format functions:")
    assert display.format_percent(40) == "40%"
    assert display.format_pattern(2) == "2 (Robo Stroke)"
    assert display.format_pattern(5) == "5"

    # Test help
    print("\n5. Testing help display:")
    display.print_help(COMMANDS)

    output = console.export_text()
    assert "strokeEngine.pattern" in output
    assert "UNKNOWN" in output
    assert "Available Commands" in output


@pytest.mark.asyncio
async def test_live_toggle():
    """Test live display on/off."""
    display = DisplayManager(Console(record=True, width=120))

    assert display.toggle_live(SAMPLE_STATE) is True
    display.update_live(SAMPLE_STATE)
    assert display.toggle_live() is False
    assert display._live is None
    # Updates while off are ignored
    display.update_live(SAMPLE_STATE)
    assert not display.live_enabled


@pytest.mark.asyncio
async def test_commands():
    """Test command definitions."""
    print("\n=== Testing Commands ===")

    print(f"\n1. Total commands defined: {len(COMMANDS)}")

    print("\n2. Command lookup:")
    for cmd_str in ["connect", "c", "speed", "sp", "go", "g", "help", "?"]:
        cmd = get_command(cmd_str)
        assert cmd is not None
        print(f"  '{cmd_str}' -> {cmd.name} ({cmd.description})")
    assert get_command("warp") is None

    handlers = [cmd.handler for cmd in COMMANDS]
    assert len(handlers) == len(set(handlers))


@pytest.mark.asyncio
async def test_completer():
    """Test command and argument completion."""
    completer = CommandCompleter()

    def complete(text):
        return [c.text for c in completer.get_completions(Document(text), None)]

    assert "stroke" in complete("st")
    assert "status" in complete("st")
    assert complete("go s") == ["simplePenetration", "strokeEngine"]
    assert complete("knob o") == ["on", "off"]
    assert "100" in complete("speed 1")
    assert complete("quit ") == []


@pytest.mark.asyncio
async def test_controller_properties():
    """Test controller properties (without connection)."""
    print("\n=== Testing Controller (Disconnected) ===")
    controller = OssmController(FakeOssmTransport())

    print("\n1. Initial state:")
    print(f"  is_connected: {controller.is_connected}")
    print(f"  is_ready: {controller.is_ready}")
    assert not controller.is_connected
    assert not controller.is_ready
    assert controller.get_cached_state() is None
    assert controller.get_cached_pattern_list() is None
    assert controller.pending_targets == {}

    print("\n2. Timing configuration:")
    print(f"  {controller.config}")
    assert controller.config.command_timeout > 0


if __name__ == "__main__":
    asyncio.run(test_display())
