"""Pattern conversion, write ordering and position planning."""

import pytest

from ossmctl.errors import InputValidationError
from ossmctl.models import DeviceState, Field
from ossmctl.motion import (
    PlayData,
    StrokePattern,
    plan_position_move,
    plan_write_order,
    validate_level,
)


def make_state(**overrides) -> DeviceState:
    values = dict(
        status="strokeEngine.pattern", speed=0, stroke=50, sensation=50, depth=50, pattern=0
    )
    values.update(overrides)
    return DeviceState(**values)


def test_validate_level():
    assert validate_level("Speed", 0) == 0
    assert validate_level("Speed", 100) == 100
    for bad in (-1, 101, 5.5, "50", True, None):
        with pytest.raises(InputValidationError):
            validate_level("Speed", bad)


def test_stroke_pattern_to_play_data():
    data = StrokePattern(pattern=2, speed=40, min_depth=20, max_depth=70, intensity=60).to_play_data()
    assert data == PlayData(speed=40, stroke=50, depth=70, sensation=60, pattern=2)
    assert (data.min_depth, data.max_depth) == (20, 70)


def test_reversible_sensation_is_centred():
    normal = StrokePattern(1, 10, 0, 100, intensity=40, invert=False).to_play_data()
    inverted = StrokePattern(1, 10, 0, 100, intensity=40, invert=True).to_play_data()
    assert normal.sensation == 70
    assert inverted.sensation == 30

    # Odd intensities round half up
    assert StrokePattern(1, 10, 0, 100, intensity=25, invert=False).to_play_data().sensation == 63
    assert StrokePattern(1, 10, 0, 100, intensity=25, invert=True).to_play_data().sensation == 37


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(pattern=0, speed=10, min_depth=50, max_depth=50),
        dict(pattern=0, speed=10, min_depth=60, max_depth=40),
        dict(pattern=-1, speed=10, min_depth=0, max_depth=40),
        dict(pattern=0, speed=101, min_depth=0, max_depth=40),
        dict(pattern=0, speed=10, min_depth=0, max_depth=40, intensity=-5),
    ],
)
def test_invalid_stroke_patterns(kwargs):
    with pytest.raises(InputValidationError):
        StrokePattern(**kwargs).to_play_data()


def test_from_play_data_recovers_pattern():
    pattern = StrokePattern.from_play_data(
        PlayData(speed=30, stroke=40, depth=90, sensation=20, pattern=3), reversible=True
    )
    assert pattern == StrokePattern(
        pattern=3, speed=30, min_depth=50, max_depth=90, intensity=60, invert=True
    )

    plain = StrokePattern.from_state(make_state(speed=5, sensation=80))
    assert plain.intensity == 80
    assert plain.invert is None
    assert (plain.min_depth, plain.max_depth) == (0, 50)


def test_write_order_slowing_down_sets_speed_first():
    current = make_state(speed=80, depth=80, stroke=60)
    target = PlayData(speed=20, stroke=20, depth=60, sensation=50, pattern=0)
    assert plan_write_order(current, target) == [
        Field.PATTERN,
        Field.SPEED,
        Field.DEPTH,
        Field.STROKE,
        Field.SENSATION,
    ]


def test_write_order_speeding_into_wider_range_sets_speed_last():
    current = make_state(speed=10, depth=50, stroke=20)
    target = PlayData(speed=80, stroke=70, depth=90, sensation=50, pattern=0)
    assert plan_write_order(current, target) == [
        Field.PATTERN,
        Field.DEPTH,
        Field.STROKE,
        Field.SENSATION,
        Field.SPEED,
    ]


def test_write_order_speeding_up_within_range():
    current = make_state(speed=10, depth=80, stroke=60)
    target = PlayData(speed=50, stroke=20, depth=60, sensation=50, pattern=0)
    assert plan_write_order(current, target) == [
        Field.PATTERN,
        Field.DEPTH,
        Field.STROKE,
        Field.SPEED,
        Field.SENSATION,
    ]


def test_position_move_reconfigures_when_not_holding():
    plan = plan_position_move(make_state(pattern=2, stroke=40), None, 30, 60)
    assert plan.strategy == "reconfigure"
    assert plan.steps == (
        (Field.SPEED, 0),
        (Field.PATTERN, 0),
        (Field.STROKE, 0),
        (Field.DEPTH, 30),
        (Field.SPEED, 60),
    )
    assert plan.speedup is False


def test_position_move_direct_when_nothing_moved():
    plan = plan_position_move(make_state(pattern=0, stroke=0, depth=30), 30, 70, 40)
    assert plan.strategy == "direct"
    assert plan.steps == ((Field.SPEED, 40), (Field.DEPTH, 70))
    assert plan.speedup is True


def test_position_move_repositions_after_external_change():
    plan = plan_position_move(make_state(pattern=0, stroke=0, depth=45), 30, 70, 40)
    assert plan.strategy == "reposition"
    assert plan.steps == ((Field.SPEED, 0), (Field.DEPTH, 70), (Field.SPEED, 40))
