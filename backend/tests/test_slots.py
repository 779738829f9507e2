"""Tests for slot generation, time helpers and conflict detection."""

from datetime import date, datetime

import pytest

from salon.services.slots import DayWindow, generate_time_slots
from salon.services.slots.config import (
    BookingConfig,
    Weekday,
    minutes_to_time_str,
    time_str_to_minutes,
)
from salon.services.slots.conflicts import (
    BusyInterval,
    assign_staff,
    free_staff,
    has_conflict,
    intervals_overlap,
)


def dt(hhmm: str) -> datetime:
    hour, minute = map(int, hhmm.split(":"))
    return datetime(2026, 11, 2, hour, minute)


class TestGenerateTimeSlots:

    def test_half_hour_grid(self):
        assert generate_time_slots("10:00", "12:00", 30) == ["10:00", "10:30", "11:00", "11:30"]

    def test_close_time_is_never_a_start(self):
        slots = generate_time_slots("10:00", "19:00")
        assert slots[0] == "10:00"
        assert slots[-1] == "18:30"
        assert len(slots) == 18

    def test_interval_not_dividing_window(self):
        assert generate_time_slots("10:00", "11:00", 45) == ["10:00", "10:45"]

    def test_empty_when_open_equals_close(self):
        assert generate_time_slots("10:00", "10:00") == []

    def test_empty_when_close_before_open(self):
        assert generate_time_slots("18:00", "09:00") == []

    def test_all_slots_within_window(self):
        for slot in generate_time_slots("09:15", "21:45", 15):
            assert time_str_to_minutes("09:15") <= time_str_to_minutes(slot) < time_str_to_minutes("21:45")

    @pytest.mark.parametrize("interval", [0, -30])
    def test_non_positive_interval_rejected(self, interval):
        with pytest.raises(ValueError):
            generate_time_slots("10:00", "12:00", interval)

    def test_malformed_time_rejected(self):
        with pytest.raises(ValueError):
            generate_time_slots("10am", "12:00")


class TestTimeHelpers:

    def test_parse_and_format(self):
        assert time_str_to_minutes("00:00") == 0
        assert time_str_to_minutes("18:30") == 1110
        assert time_str_to_minutes("24:00") == 1440
        assert minutes_to_time_str(1110) == "18:30"

    @pytest.mark.parametrize("value", ["", "9:00", "25:00", "24:30", "10:60", None])
    def test_invalid_times(self, value):
        with pytest.raises(ValueError):
            time_str_to_minutes(value)

    def test_weekday_is_sunday_based(self):
        assert Weekday.from_date(date(2026, 10, 18)) == Weekday.SUNDAY
        assert Weekday.from_date(date(2026, 10, 19)) == Weekday.MONDAY
        assert Weekday.from_date(date(2026, 10, 24)) == Weekday.SATURDAY

    def test_booking_config_step_validated(self):
        assert BookingConfig().slot_step_minutes == 30
        with pytest.raises(ValueError):
            BookingConfig(slot_step_minutes=20)


class TestDayWindow:

    def test_json_roundtrip_open(self):
        window = DayWindow(is_open=True, open_minute=600, close_minute=1140)
        restored = DayWindow.from_json(window.to_json())
        assert restored == window
        assert restored.open_time == "10:00"
        assert restored.close_time == "19:00"

    def test_closed_has_no_candidates(self):
        closed = DayWindow.from_json(DayWindow.closed().to_json())
        assert not closed.is_open
        assert closed.candidate_times(30) == []


class TestConflicts:

    def test_overlap_is_half_open(self):
        assert intervals_overlap(dt("10:00"), dt("11:00"), dt("10:30"), dt("11:30"))
        assert not intervals_overlap(dt("10:00"), dt("11:00"), dt("11:00"), dt("12:00"))
        assert not intervals_overlap(dt("11:00"), dt("12:00"), dt("10:00"), dt("11:00"))

    def test_overlap_is_symmetric(self):
        pairs = [
            (("10:00", "11:00"), ("10:30", "11:30")),
            (("10:00", "12:00"), ("10:30", "11:00")),
            (("10:00", "11:00"), ("11:00", "12:00")),
            (("09:00", "09:30"), ("15:00", "16:00")),
        ]
        for (a1, a2), (b1, b2) in pairs:
            assert intervals_overlap(dt(a1), dt(a2), dt(b1), dt(b2)) == \
                intervals_overlap(dt(b1), dt(b2), dt(a1), dt(a2))

    def test_containment_conflicts(self):
        busy = [BusyInterval(1, dt("10:00"), dt("13:00"))]
        assert has_conflict(dt("11:00"), dt("11:30"), busy)

    def test_cancelled_and_noshow_do_not_conflict(self):
        busy = [
            BusyInterval(1, dt("10:00"), dt("11:00"), "cancelled"),
            BusyInterval(1, dt("10:00"), dt("11:00"), "noshow"),
        ]
        assert not has_conflict(dt("10:00"), dt("11:00"), busy)

    def test_visited_conflicts(self):
        busy = [BusyInterval(1, dt("10:00"), dt("11:00"), "visited")]
        assert has_conflict(dt("10:30"), dt("11:30"), busy)

    def test_free_staff_keeps_pool_order(self):
        busy = [BusyInterval(2, dt("10:00"), dt("11:00"))]
        assert free_staff([3, 2, 1], busy, dt("10:30"), dt("11:30")) == [3, 1]

    def test_assign_staff_first_free_or_none(self):
        busy = [
            BusyInterval(1, dt("10:00"), dt("11:00")),
            BusyInterval(2, dt("10:00"), dt("11:00")),
        ]
        assert assign_staff([1, 2], busy, dt("10:00"), dt("11:00")) is None
        assert assign_staff([1, 2], busy, dt("11:00"), dt("12:00")) == 1
        assert assign_staff([], busy, dt("11:00"), dt("12:00")) is None
