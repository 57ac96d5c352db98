"""
Value types shared across the controller.

DeviceState is the immutable snapshot published to observers; the enums
name the pages, statuses, fields and events the protocol knows about.
"""

from dataclasses import dataclass, fields
from enum import Enum, IntEnum
from typing import Optional


class EventType(Enum):
    """Kinds of events fanned out by the controller."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STATE_CHANGED = "state_changed"


class Page(str, Enum):
    """Top-level operating modes reachable with ``go:<page>``."""

    MENU = "menu"
    SIMPLE_PENETRATION = "simplePenetration"
    STROKE_ENGINE = "strokeEngine"


class Status(str, Enum):
    """Dotted status identifiers reported by the device."""

    IDLE = "idle"
    HOMING = "homing"
    HOMING_FORWARD = "homing.forward"
    HOMING_BACKWARD = "homing.backward"
    MENU = "menu"
    MENU_IDLE = "menu.idle"
    SIMPLE_PENETRATION = "simple.penetration"
    SIMPLE_PENETRATION_IDLE = "simple.penetration.idle"
    SIMPLE_PENETRATION_PREFLIGHT = "simple.penetration.preflight"
    STROKE_ENGINE = "strokeEngine"
    STROKE_ENGINE_IDLE = "strokeEngine.idle"
    STROKE_ENGINE_PREFLIGHT = "strokeEngine.preflight"
    STROKE_ENGINE_PATTERN = "strokeEngine.pattern"
    UPDATE = "update"
    UPDATE_CHECKING = "update.checking"
    UPDATE_UPDATING = "update.updating"
    UPDATE_IDLE = "update.idle"
    WIFI = "wifi"
    WIFI_IDLE = "wifi.idle"
    HELP = "help"
    HELP_IDLE = "help.idle"
    ERROR = "error"
    ERROR_IDLE = "error.idle"
    ERROR_HELP = "error.help"
    RESTART = "restart"


class Field(str, Enum):
    """Settable state fields, valued as they appear in ``set:<field>:<n>``."""

    SPEED = "speed"
    STROKE = "stroke"
    DEPTH = "depth"
    SENSATION = "sensation"
    PATTERN = "pattern"


class KnownPattern(IntEnum):
    """Patterns shipped with the stock firmware."""

    SIMPLE_STROKE = 0
    TEASING_POUNDING = 1
    ROBO_STROKE = 2
    HALF_N_HALF = 3
    DEEPER = 4
    STOP_N_GO = 5
    INSIST = 6


# Fields the firmware adds 1 to when the value is below 100
COMPENSATED_FIELDS = frozenset({Field.STROKE, Field.DEPTH, Field.SENSATION})

# Fields holding a 0-100 percentage
LEVEL_FIELDS = (Field.SPEED, Field.STROKE, Field.DEPTH, Field.SENSATION)


@dataclass(frozen=True)
class DeviceState:
    """Snapshot of the device as reported by a status notification."""

    status: str
    speed: int
    stroke: int
    sensation: int
    depth: int
    pattern: int

    @property
    def page(self) -> Optional[Page]:
        """Page the status belongs to, or None outside the navigable pages."""
        # Simple penetration statuses are dotted, unlike its go: page name
        if self.status == Status.SIMPLE_PENETRATION or self.status.startswith(
            Status.SIMPLE_PENETRATION.value + "."
        ):
            return Page.SIMPLE_PENETRATION
        root = self.status.split(".", 1)[0]
        try:
            return Page(root)
        except ValueError:
            return None

    def get(self, field: Field) -> int:
        return getattr(self, field.value)

    def diff(self, other: Optional["DeviceState"]) -> set[str]:
        """Names of the fields whose value differs from ``other``.

        Every field counts as changed when there is nothing to compare with.
        """
        names = {f.name for f in fields(self)}
        if other is None:
            return names
        return {name for name in names if getattr(self, name) != getattr(other, name)}

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class PatternDescriptor:
    """A pattern offered by the device."""

    name: str
    idx: int
    description: str
