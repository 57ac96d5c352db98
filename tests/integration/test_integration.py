#!/usr/bin/env python
"""Exercise a real OSSM: connect, watch live state, move, and stop."""

import asyncio
import logging

import pytest
from bleak.exc import BleakError

from ossmctl.controller import OssmController
from ossmctl.display import DisplayManager
from ossmctl.errors import DeviceNotFoundError
from ossmctl.models import EventType, Page
from ossmctl.motion import StrokePattern

# Enable logging
logging.basicConfig(level=logging.INFO, format="%(message)s")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_session():
    """Drive a pattern on a real device with the live display running."""
    display = DisplayManager()

    print("=== Testing Live Session ===")

    print("Pairing...")
    try:
        controller = await OssmController.pair()
    except (DeviceNotFoundError, BleakError):
        pytest.skip("OSSM device not found - skipping integration test")

    controller.add_event_listener(EventType.STATE_CHANGED, display.update_live)
    controller.begin()
    try:
        await controller.wait_for_ready(timeout=30)
        print("Connected!")

        state = await controller.get_state(timeout=5)
        print(f"Initial state: {state}")

        patterns = await controller.get_pattern_list()
        display.set_pattern_names(patterns)
        display.print_patterns(patterns)

        display.start_live(state)

        await controller.navigate_to(Page.STROKE_ENGINE)
        await controller.wait_for_status("strokeEngine.idle", timeout=20)

        await controller.run_pattern(
            StrokePattern(pattern=0, speed=10, min_depth=20, max_depth=40, intensity=50)
        )
        await asyncio.sleep(5)

        await controller.move_to_position(30, 10)
        await asyncio.sleep(3)

        display.stop_live()
    finally:
        # Integration tests must leave devices in a safe state
        print("Stopping...")
        await controller.end()
        print("Disconnected")

    assert not controller.is_ready


if __name__ == "__main__":
    asyncio.run(test_live_session())
