"""Shared fixtures: an in-memory OSSM that speaks the text protocol."""

import asyncio
import json
from typing import Callable, Optional

import pytest
import pytest_asyncio

from ossmctl.config import ClientConfig
from ossmctl.controller import OssmController
from ossmctl.core import (
    COMMAND_CHAR_UUID,
    CURRENT_STATE_CHAR_UUID,
    PATTERN_DESCRIPTION_CHAR_UUID,
    PATTERN_LIST_CHAR_UUID,
    SPEED_KNOB_CONFIGURATION_CHAR_UUID,
)
from ossmctl.transport import Transport

PATTERNS = [
    {"name": "Simple Stroke", "idx": 0},
    {"name": "Teasing Pounding", "idx": 1},
    {"name": "Robo Stroke", "idx": 2},
]

DESCRIPTIONS = {
    0: "Acceleration, coasting, deceleration equally split; no sensation.",
    1: "Speed shifts with sensation; balances faster strokes.",
    2: "Sensation varies acceleration; from robotic to gradual.",
}

# Status the firmware settles on after go:<page>
IDLE_STATUS = {"simplePenetration": "simple.penetration.idle"}


class FakeOssmTransport(Transport):
    """Records every write and answers like the firmware would."""

    def __init__(self) -> None:
        self.connected = False
        self.connect_calls = 0
        self.fail_connects = 0
        self.push_on_subscribe = True
        self.follow_navigation = True
        self.knob_sticky = False
        self.responder: Optional[Callable[[str], str]] = None
        # Command whose next write loses the link instead of reaching the device
        self.drop_on_command: Optional[str] = None
        self.writes: list[tuple[str, str]] = []
        self.device_state = {
            "state": "menu.idle",
            "speed": 0,
            "stroke": 50,
            "sensation": 50,
            "depth": 50,
            "pattern": 0,
        }
        self.knob = False
        self._last_command = ""
        self._description_idx = 0
        self._notify: Optional[Callable[[bytes], None]] = None
        self._on_disconnect: Optional[Callable[[], None]] = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def commands(self) -> list[str]:
        return [text for char, text in self.writes if char == COMMAND_CHAR_UUID]

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise OSError("Simulated connection failure")
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def get_characteristic(self, service_uuid: str, char_uuid: str) -> str:
        if not self.connected:
            raise OSError("Not connected")
        return char_uuid

    async def write_value(self, characteristic: str, data: bytes) -> None:
        text = data.decode("utf-8")
        if characteristic == COMMAND_CHAR_UUID and text == self.drop_on_command:
            self.drop_on_command = None
            self.drop()
            raise OSError("Link lost during write")
        self.writes.append((characteristic, text))
        if characteristic == COMMAND_CHAR_UUID:
            self._last_command = text
            if text.startswith("go:") and self.follow_navigation:
                page = text[len("go:"):]
                status = IDLE_STATUS.get(page, f"{page}.idle")
                asyncio.get_running_loop().call_soon(
                    lambda: self.push_state(state=status)
                )
        elif characteristic == SPEED_KNOB_CONFIGURATION_CHAR_UUID:
            if not self.knob_sticky:
                self.knob = text == "true"
        elif characteristic == PATTERN_DESCRIPTION_CHAR_UUID:
            self._description_idx = int(text)

    async def read_value(self, characteristic: str) -> bytes:
        if characteristic == COMMAND_CHAR_UUID:
            command = self._last_command
            response = self.responder(command) if self.responder else command
            return response.encode("utf-8")
        if characteristic == SPEED_KNOB_CONFIGURATION_CHAR_UUID:
            return b"true" if self.knob else b"false"
        if characteristic == PATTERN_LIST_CHAR_UUID:
            return json.dumps(PATTERNS).encode("utf-8")
        if characteristic == PATTERN_DESCRIPTION_CHAR_UUID:
            return DESCRIPTIONS.get(self._description_idx, "").encode("utf-8")
        raise OSError(f"Characteristic {characteristic} is not readable")

    async def subscribe(self, characteristic: str, on_notify: Callable[[bytes], None]) -> None:
        assert characteristic == CURRENT_STATE_CHAR_UUID
        self._notify = on_notify
        if self.push_on_subscribe:
            asyncio.get_running_loop().call_soon(self.push_state)

    def on_unsolicited_disconnect(self, callback: Callable[[], None]) -> None:
        self._on_disconnect = callback

    def push_state(self, **changes) -> None:
        """Update the simulated device and notify its full state."""
        self.device_state.update(changes)
        if self._notify is not None:
            self._notify(json.dumps(self.device_state).encode("utf-8"))

    def drop(self) -> None:
        """Simulate the link dropping out from under the client."""
        self.connected = False
        if self._on_disconnect is not None:
            self._on_disconnect()


FAST_CONFIG = ClientConfig(
    command_settle_delay=0,
    connect_settle_delay=0,
    reconnect_backoff=0.01,
    poll_interval=0.005,
    command_timeout=1.0,
    navigation_hop_timeout=1.0,
)


async def _eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Wait for ``predicate`` to hold, failing the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually():
    return _eventually


@pytest.fixture
def transport() -> FakeOssmTransport:
    return FakeOssmTransport()


@pytest.fixture
def controller(transport: FakeOssmTransport) -> OssmController:
    return OssmController(transport, config=FAST_CONFIG)


@pytest_asyncio.fixture
async def ready_controller(controller: OssmController):
    """Controller that is connected and has received the first state."""
    controller.begin()
    await controller.wait_for_ready(timeout=1.0)
    await controller.get_state(timeout=1.0)
    yield controller
    await controller.end()
