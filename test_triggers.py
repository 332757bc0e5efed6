"""Tests for the trigger predicate evaluator."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from geo import Position, distance_meters
from triggers import should_trigger

DUE = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
ORIGIN = Position(0.0, 0.0)


def reminder(trigger_type, details):
    return SimpleNamespace(trigger_type=trigger_type, details=details)


def time_reminder(value="2024-01-01T10:00:00Z"):
    return reminder("time", {"time": value})


def fence(lat=0.0, lon=0.0, radius=500):
    return reminder("location", {"location": {"latitude": lat, "longitude": lon, "radius_meters": radius}})


def weather(label):
    return reminder("condition", {"condition": {"kind": "weather", "label": label}})


# Time

def test_time_fires_at_due_instant():
    assert should_trigger(time_reminder(), None, None, now=DUE)


def test_time_fires_after_due_instant():
    assert should_trigger(time_reminder(), None, None, now=DUE + timedelta(minutes=5))


def test_time_does_not_fire_one_second_early():
    assert not should_trigger(time_reminder(), None, None, now=DUE - timedelta(seconds=1))


def test_time_does_not_fire_one_microsecond_early():
    assert not should_trigger(time_reminder(), None, None, now=DUE - timedelta(microseconds=1))


def test_time_accepts_offsets_and_naive_values():
    assert should_trigger(time_reminder("2024-01-01T11:00:00+01:00"), None, None, now=DUE)
    assert should_trigger(time_reminder("2024-01-01T10:00:00"), None, None, now=DUE)
    assert not should_trigger(time_reminder("2024-01-01T10:00:01"), None, None, now=DUE)


def test_time_with_naive_now_is_taken_as_utc():
    assert should_trigger(time_reminder(), None, None, now=datetime(2024, 1, 1, 10, 0, 0))


def test_time_accepts_datetime_objects():
    assert should_trigger(time_reminder(DUE), None, None, now=DUE)


def test_time_defaults_to_current_clock():
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    assert should_trigger(time_reminder(past), None, None)
    assert not should_trigger(time_reminder(future), None, None)


@pytest.mark.parametrize("details", [{}, {"time": None}, {"time": ""}, {"time": "not a date"}, {"time": 42}])
def test_time_with_missing_or_bad_instant_never_fires(details):
    assert not should_trigger(reminder("time", details), ORIGIN, "rain", now=DUE)


# Location

def test_location_fires_inside_radius():
    assert should_trigger(fence(), Position(0, 0.0044), None)


def test_location_does_not_fire_outside_radius():
    assert not should_trigger(fence(), Position(0, 0.01), None)


def test_location_fires_exactly_on_radius_edge():
    here = Position(0.001, 0.003)
    radius = distance_meters(here.latitude, here.longitude, 0.0, 0.0)
    assert should_trigger(fence(radius=radius), here, None)
    assert not should_trigger(fence(radius=radius - 1e-6), here, None)


def test_location_fires_at_center():
    assert should_trigger(fence(52.52, 13.405, 10), Position(52.52, 13.405), None)


def test_location_without_position_never_fires():
    assert not should_trigger(fence(), None, "rain")


@pytest.mark.parametrize("details", [
    {},
    {"location": None},
    {"location": {"latitude": 0.0, "longitude": 0.0}},
    {"location": {"latitude": "north", "longitude": 0.0, "radius_meters": 500}},
    {"time": "2024-01-01T10:00:00Z"},
])
def test_location_with_missing_or_bad_fence_never_fires(details):
    assert not should_trigger(reminder("location", details), ORIGIN, "rain", now=DUE)


# Condition

@pytest.mark.parametrize("current", ["Rain", "rain", "RAIN"])
def test_condition_matches_case_insensitively(current):
    assert should_trigger(weather("rain"), None, current)
    assert should_trigger(weather("Rain"), None, current)


def test_condition_does_not_fire_on_other_weather():
    assert not should_trigger(weather("rain"), ORIGIN, "Clear")


@pytest.mark.parametrize("current", [None, ""])
def test_condition_with_unknown_weather_never_fires(current):
    assert not should_trigger(weather("rain"), ORIGIN, current)


@pytest.mark.parametrize("details", [
    {},
    {"condition": None},
    {"condition": {"kind": "weather"}},
    {"condition": {"kind": "weather", "label": ""}},
    {"condition": {"kind": "traffic", "label": "rain"}},
])
def test_condition_with_missing_or_bad_payload_never_fires(details):
    assert not should_trigger(reminder("condition", details), ORIGIN, "rain")


# Dispatch

@pytest.mark.parametrize("trigger_type", ["calendar", "", None, "TIME"])
def test_unknown_trigger_type_never_fires(trigger_type):
    details = {
        "time": "2000-01-01T00:00:00Z",
        "location": {"latitude": 0.0, "longitude": 0.0, "radius_meters": 1e9},
        "condition": {"kind": "weather", "label": "rain"},
    }
    assert not should_trigger(reminder(trigger_type, details), ORIGIN, "rain", now=DUE)


def test_details_that_are_not_a_mapping_never_fire():
    for trigger_type in ("time", "location", "condition"):
        assert not should_trigger(reminder(trigger_type, None), ORIGIN, "rain", now=DUE)
        assert not should_trigger(reminder(trigger_type, "oops"), ORIGIN, "rain", now=DUE)


def test_dispatch_uses_only_the_active_variant():
    # A location reminder carrying a stale time payload must not fire on time
    mixed = reminder("location", {
        "time": "2000-01-01T00:00:00Z",
        "location": {"latitude": 10.0, "longitude": 10.0, "radius_meters": 5},
    })
    assert not should_trigger(mixed, ORIGIN, None, now=DUE)
