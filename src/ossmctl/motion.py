"""
Motion planning: pattern parameters to protocol fields, and write ordering.

StrokeEngine patterns move the actuator backwards from ``depth`` by
``stroke``, i.e. between ``depth - stroke`` and ``depth``. A pattern is
therefore described here by the min/max depth it should travel between.

When several fields change at once the order of the writes matters: raising
speed before shrinking an extended range, for example, briefly drives the
old (longer) range at the new speed.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .core import LEVEL_MAX, LEVEL_MIN
from .errors import InputValidationError
from .models import DeviceState, Field, KnownPattern

# Pattern used by the absolute position controller; with stroke 0 it holds at depth
HOLD_PATTERN = KnownPattern.SIMPLE_STROKE


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def validate_level(name: str, value: object) -> int:
    """Check that ``value`` is an integer percentage.

    Raises:
        InputValidationError: Not an int, or outside 0-100
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(f"{name} must be an integer, got {value!r}")
    if value < LEVEL_MIN or value > LEVEL_MAX:
        raise InputValidationError(
            f"{name} must be between {LEVEL_MIN} and {LEVEL_MAX}, got {value}"
        )
    return value


@dataclass(frozen=True)
class PlayData:
    """Primitive protocol fields for one pattern configuration."""

    speed: int
    stroke: int
    depth: int
    sensation: int
    pattern: int

    def get(self, field: Field) -> int:
        return getattr(self, field.value)

    @property
    def min_depth(self) -> int:
        return self.depth - self.stroke

    @property
    def max_depth(self) -> int:
        return self.depth


@dataclass(frozen=True)
class StrokePattern:
    """High-level pattern request.

    Attributes:
        pattern: Pattern index as defined by the device
        speed: Speed percentage (0-100)
        min_depth: Shallowest point of travel (0-100)
        max_depth: Deepest point of travel (0-100), greater than min_depth
        intensity: How pronounced the pattern effect is (0-100)
        invert: None for plain patterns; True/False for reversible patterns,
            whose sensation is centred on 50
    """

    pattern: int
    speed: int
    min_depth: int
    max_depth: int
    intensity: int = 100
    invert: Optional[bool] = None

    def validate(self) -> None:
        if isinstance(self.pattern, bool) or not isinstance(self.pattern, int) or self.pattern < 0:
            raise InputValidationError(
                f"Pattern must be a non-negative integer, got {self.pattern!r}"
            )
        validate_level("Speed", self.speed)
        validate_level("Minimum depth", self.min_depth)
        validate_level("Maximum depth", self.max_depth)
        validate_level("Intensity", self.intensity)
        if self.min_depth >= self.max_depth:
            raise InputValidationError("Minimum depth must be less than maximum depth")

    def to_play_data(self) -> PlayData:
        self.validate()
        if self.invert is None:
            sensation = self.intensity
        else:
            # Halved: a 0-100 intensity is not spread over 0-50 / 50-100
            half = _round_half_up(self.intensity / 2)
            sensation = 50 - half if self.invert else 50 + half
        return PlayData(
            speed=self.speed,
            stroke=self.max_depth - self.min_depth,
            depth=self.max_depth,
            sensation=sensation,
            pattern=self.pattern,
        )

    @classmethod
    def from_play_data(cls, data: PlayData, reversible: bool = False) -> "StrokePattern":
        if reversible:
            intensity = abs((data.sensation - 50) * 2)
            invert: Optional[bool] = data.sensation < 50
        else:
            intensity = data.sensation
            invert = None
        return cls(
            pattern=data.pattern,
            speed=data.speed,
            min_depth=data.depth - data.stroke,
            max_depth=data.depth,
            intensity=min(intensity, LEVEL_MAX),
            invert=invert,
        )

    @classmethod
    def from_state(cls, state: DeviceState, reversible: bool = False) -> "StrokePattern":
        return cls.from_play_data(
            PlayData(
                speed=state.speed,
                stroke=state.stroke,
                depth=state.depth,
                sensation=state.sensation,
                pattern=state.pattern,
            ),
            reversible=reversible,
        )


def plan_write_order(current: DeviceState, target: PlayData) -> list[Field]:
    """Order in which to write the fields of ``target``.

    The pattern index always goes first. Then:

    - slowing down: speed first, it is always safe to slow down
    - speeding up into a wider range: reshape at the old speed, speed last
    - otherwise: depth, stroke, speed, sensation
    """
    old_min = current.depth - current.stroke
    old_max = current.depth

    if target.speed < current.speed:
        order = [Field.SPEED, Field.DEPTH, Field.STROKE, Field.SENSATION]
    elif target.speed > current.speed and (
        target.min_depth < old_min or target.max_depth > old_max
    ):
        order = [Field.DEPTH, Field.STROKE, Field.SENSATION, Field.SPEED]
    else:
        order = [Field.DEPTH, Field.STROKE, Field.SPEED, Field.SENSATION]
    return [Field.PATTERN] + order


@dataclass(frozen=True)
class PositionPlan:
    """Writes for one absolute position move."""

    strategy: str
    steps: tuple[tuple[Field, int], ...]
    speedup: bool = False


def plan_position_move(
    state: DeviceState, last_position: Optional[int], position: int, speed: int
) -> PositionPlan:
    """Pick the strategy for moving to ``position`` at ``speed``.

    - reconfigure: the device is not holding; stop, switch to the hold
      pattern with no stroke, position, then set speed
    - direct: nothing moved since our last command; write speed and depth
    - reposition: holding, but depth changed elsewhere; stop before moving
      so the actuator never reverses at speed
    """
    primed = state.pattern == HOLD_PATTERN and state.stroke == 0
    if not primed:
        return PositionPlan(
            strategy="reconfigure",
            steps=(
                (Field.SPEED, 0),
                (Field.PATTERN, int(HOLD_PATTERN)),
                (Field.STROKE, 0),
                (Field.DEPTH, position),
                (Field.SPEED, speed),
            ),
        )
    if last_position is not None and last_position == state.depth:
        return PositionPlan(
            strategy="direct",
            steps=((Field.SPEED, speed), (Field.DEPTH, position)),
            speedup=True,
        )
    return PositionPlan(
        strategy="reposition",
        steps=((Field.SPEED, 0), (Field.DEPTH, position), (Field.SPEED, speed)),
    )
