"""
Encoding and parsing for the OSSM text protocol.

Every payload on the wire is ASCII/UTF-8 text. Commands are echoed back on
the command characteristic, prefixed with ``fail:`` when rejected. Status
notifications and the pattern list are JSON.
"""

import json
from typing import Any, Union

from .core import LEVEL_MAX, LEVEL_MIN
from .errors import DataError, OperationFailedError, UnexpectedResponseError
from .models import COMPENSATED_FIELDS, DeviceState, Field, Page

FAIL_PREFIX = "fail:"

# Device wire names -> DeviceState attribute names
_STATE_FIELD_MAP = {
    "state": "status",
    "speed": "speed",
    "stroke": "stroke",
    "sensation": "sensation",
    "depth": "depth",
    "pattern": "pattern",
}


def encode_text(text: str) -> bytes:
    return text.encode("utf-8")


def decode_text(data: Union[bytes, bytearray]) -> str:
    return bytes(data).decode("utf-8")


def compensate(field: Field, value: int) -> int:
    """Value to put on the wire so the device ends up at ``value``.

    The firmware adds 1 to stroke, depth and sensation values it receives,
    so anything strictly between the range ends is sent one lower.
    """
    if field in COMPENSATED_FIELDS and LEVEL_MIN < value < LEVEL_MAX:
        return value - 1
    return value


def set_command(field: Field, value: int) -> str:
    return f"set:{field.value}:{value}"


def go_command(page: Page) -> str:
    return f"go:{page.value}"


def check_response(command: str, response: str) -> None:
    """Classify the echo read back after writing ``command``.

    Raises:
        OperationFailedError: The device answered ``fail:<command>``
        UnexpectedResponseError: The echo matched nothing expected
    """
    if response == command:
        return
    if response == FAIL_PREFIX + command:
        raise OperationFailedError(f"OSSM failed to process command: {command}")
    raise UnexpectedResponseError(
        f'OSSM returned unexpected response for command "{command}": {response}'
    )


def _as_int(payload: dict, key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DataError(f"Status field {key!r} is not numeric: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise DataError(f"Status field {key!r} is not an integer: {value!r}")
    return int(value)


def parse_state(data: Union[bytes, bytearray]) -> DeviceState:
    """Turn a status notification into a DeviceState.

    Raises:
        DataError: The payload is not a complete status object
    """
    try:
        payload = json.loads(decode_text(data))
    except (UnicodeDecodeError, ValueError) as e:
        raise DataError(f"Malformed status notification: {e}") from e
    if not isinstance(payload, dict):
        raise DataError(f"Status notification is not an object: {payload!r}")

    values: dict[str, Any] = {}
    try:
        for wire_name, attr in _STATE_FIELD_MAP.items():
            if attr == "status":
                values[attr] = str(payload[wire_name])
            else:
                values[attr] = _as_int(payload, wire_name)
    except KeyError as e:
        raise DataError(f"Status notification missing field {e}") from e
    return DeviceState(**values)


def parse_pattern_list(data: Union[bytes, bytearray]) -> list[tuple[str, int]]:
    """Parse the pattern list characteristic into (name, idx) pairs.

    Raises:
        DataError: The payload is not a JSON list of {name, idx}
    """
    try:
        raw = json.loads(decode_text(data))
    except (UnicodeDecodeError, ValueError) as e:
        raise DataError(f"Malformed pattern list: {e}") from e
    if not isinstance(raw, list):
        raise DataError(f"Pattern list is not an array: {raw!r}")

    patterns = []
    for entry in raw:
        try:
            patterns.append((str(entry["name"]), int(entry["idx"])))
        except (KeyError, TypeError, ValueError) as e:
            raise DataError(f"Malformed pattern entry {entry!r}") from e
    return patterns


def encode_knob_config(knob_as_limit: bool) -> bytes:
    return encode_text("true" if knob_as_limit else "false")


def parse_knob_config(data: Union[bytes, bytearray]) -> bool:
    return decode_text(data).strip() == "true"
