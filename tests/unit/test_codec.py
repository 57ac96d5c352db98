"""Text protocol encoding and parsing."""

import json

import pytest

from ossmctl.codec import (
    check_response,
    compensate,
    go_command,
    parse_knob_config,
    parse_pattern_list,
    parse_state,
    set_command,
)
from ossmctl.errors import DataError, OperationFailedError, UnexpectedResponseError
from ossmctl.models import Field, Page


def test_compensation_sends_one_lower_inside_range():
    for field in (Field.STROKE, Field.DEPTH, Field.SENSATION):
        for value in range(1, 100):
            assert compensate(field, value) == value - 1
        assert compensate(field, 0) == 0
        assert compensate(field, 100) == 100


def test_speed_and_pattern_are_not_compensated():
    assert compensate(Field.SPEED, 50) == 50
    assert compensate(Field.PATTERN, 3) == 3


def test_command_text():
    assert set_command(Field.SPEED, 30) == "set:speed:30"
    assert set_command(Field.PATTERN, 2) == "set:pattern:2"
    assert go_command(Page.STROKE_ENGINE) == "go:strokeEngine"


def test_check_response_classifies_echo():
    check_response("set:speed:10", "set:speed:10")
    with pytest.raises(OperationFailedError):
        check_response("set:speed:10", "fail:set:speed:10")
    with pytest.raises(UnexpectedResponseError):
        check_response("set:speed:10", "set:speed:11")
    with pytest.raises(DataError):
        check_response("set:speed:10", "")


def test_parse_state_maps_state_to_status():
    payload = {
        "state": "strokeEngine.idle",
        "speed": 10,
        "stroke": 20,
        "sensation": 30,
        "depth": 40,
        "pattern": 2,
    }
    state = parse_state(json.dumps(payload).encode())

    assert state.status == "strokeEngine.idle"
    assert state.page == Page.STROKE_ENGINE
    assert (state.speed, state.stroke, state.sensation, state.depth, state.pattern) == (
        10,
        20,
        30,
        40,
        2,
    )


@pytest.mark.parametrize(
    "status, page",
    [
        ("menu.idle", Page.MENU),
        ("strokeEngine.pattern", Page.STROKE_ENGINE),
        ("simple.penetration.preflight", Page.SIMPLE_PENETRATION),
        ("simplePenetration.idle", Page.SIMPLE_PENETRATION),
        ("homing.forward", None),
        ("wifi", None),
    ],
)
def test_status_page(status, page):
    payload = {"state": status, "speed": 0, "stroke": 0, "sensation": 0, "depth": 0, "pattern": 0}
    assert parse_state(json.dumps(payload).encode()).page == page


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[]",
        json.dumps({"state": "menu", "speed": 1}).encode(),
        json.dumps(
            {
                "state": "menu",
                "speed": "fast",
                "stroke": 0,
                "sensation": 0,
                "depth": 0,
                "pattern": 0,
            }
        ).encode(),
    ],
)
def test_parse_state_rejects_malformed_payloads(raw):
    with pytest.raises(DataError):
        parse_state(raw)


def test_parse_state_integral_floats():
    payload = {"state": "menu.idle", "speed": 50.0, "stroke": 0, "sensation": 0, "depth": 0, "pattern": 0}
    assert parse_state(json.dumps(payload).encode()).speed == 50

    payload["speed"] = 50.9
    with pytest.raises(DataError):
        parse_state(json.dumps(payload).encode())


def test_parse_pattern_list():
    raw = json.dumps([{"name": "Simple Stroke", "idx": 0}, {"name": "Deeper", "idx": 4}])
    assert parse_pattern_list(raw.encode()) == [("Simple Stroke", 0), ("Deeper", 4)]

    with pytest.raises(DataError):
        parse_pattern_list(b'{"name": "x"}')
    with pytest.raises(DataError):
        parse_pattern_list(b'[{"idx": 1}]')


def test_parse_knob_config():
    assert parse_knob_config(b"true") is True
    assert parse_knob_config(b"false") is False
