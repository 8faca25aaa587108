from datetime import datetime, timedelta, timezone

import pytest

from cronop.schedule import ScheduleError, parse_standard

UTC = timezone.utc
START = datetime(2024, 3, 5, 10, 30, 15, 123456, tzinfo=UTC)


def _walk(schedule, start, count):
    t = start
    for _ in range(count):
        t = schedule.next(t)
        yield t


def test_next_minute_past_hour_pinned():
    assert parse_standard("1 * * * *").next(START) == datetime(2024, 3, 5, 11, 1, tzinfo=UTC)


def test_next_new_year_pinned():
    assert parse_standard("0 0 1 1 *").next(START) == datetime(2025, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    "spec",
    [
        "1 * * * *",
        "*/15 * * * *",
        "0 9-17 * * mon-fri",
        "30 2 1,15 * *",
        "0 0 * feb sun",
        "5/20 3 * * *",
        "* * * * *",
    ],
)
def test_next_times_match_fields_and_increase(spec):
    schedule = parse_standard(spec)
    previous = START
    for nxt in _walk(schedule, START, 25):
        assert nxt > previous
        assert nxt.second == 0
        assert nxt.microsecond == 0
        assert nxt.minute in schedule.minutes
        assert nxt.hour in schedule.hours
        assert nxt.month in schedule.months
        previous = nxt


def test_step_over_star():
    schedule = parse_standard("*/15 * * * *")
    assert schedule.minutes == frozenset(range(0, 60, 15))


def test_single_value_with_step_runs_to_maximum():
    assert parse_standard("5/20 * * * *").minutes == parse_standard("5-59/20 * * * *").minutes


def test_names_are_case_insensitive():
    named = parse_standard("0 0 * JAN Mon")
    numeric = parse_standard("0 0 * 1 1")
    assert named == numeric
    assert list(_walk(named, START, 5)) == list(_walk(numeric, START, 5))


@pytest.mark.parametrize(
    "descriptor, spec",
    [
        ("@hourly", "0 * * * *"),
        ("@daily", "0 0 * * *"),
        ("@midnight", "0 0 * * *"),
        ("@weekly", "0 0 * * 0"),
        ("@monthly", "0 0 1 * *"),
        ("@yearly", "0 0 1 1 *"),
        ("@annually", "0 0 1 1 *"),
    ],
)
def test_descriptors_match_equivalent_lines(descriptor, spec):
    assert list(_walk(parse_standard(descriptor), START, 6)) == list(
        _walk(parse_standard(spec), START, 6)
    )


def test_day_of_month_or_day_of_week_when_both_restricted():
    times = list(_walk(parse_standard("0 0 13 * 5"), START, 30))
    assert all(t.day == 13 or t.weekday() == 4 for t in times)
    assert any(t.day != 13 for t in times)
    assert any(t.weekday() != 4 for t in times)


def test_star_day_of_month_requires_weekday():
    times = list(_walk(parse_standard("0 0 * * 5"), START, 10))
    assert all(t.weekday() == 4 for t in times)


def test_star_day_of_week_requires_day_of_month():
    times = list(_walk(parse_standard("0 0 13 * *"), START, 10))
    assert all(t.day == 13 for t in times)


def test_impossible_date_has_no_next_time():
    assert parse_standard("0 0 30 2 *").next(START) is None


def test_every_interval_adds_to_whole_second():
    expected = START.replace(microsecond=0) + timedelta(seconds=90)
    assert parse_standard("@every 90s").next(START) == expected
    assert parse_standard("@every 1m30s").next(START) == expected


def test_every_interval_has_one_second_minimum():
    schedule = parse_standard("@every 500ms")
    assert schedule.every == timedelta(seconds=1)


def test_timezone_is_kept():
    tz = timezone(timedelta(hours=2))
    after = datetime(2024, 6, 1, 8, 0, tzinfo=tz)
    nxt = parse_standard("1 * * * *").next(after)
    assert nxt.utcoffset() == timedelta(hours=2)
    assert nxt.minute == 1
    assert nxt > after


def test_naive_datetimes_are_supported():
    after = datetime(2024, 6, 1, 8, 0)
    nxt = parse_standard("1 * * * *").next(after)
    assert nxt.tzinfo is None
    assert nxt.minute == 1
    assert nxt > after


@pytest.mark.parametrize(
    "spec",
    [
        "",
        "* * * *",
        "* * * * * *",
        "60 * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 7",
        "5-1 * * * *",
        "*/0 * * * *",
        "1/2/3 * * * *",
        "1-2-3 * * * *",
        "x * * * *",
        "-5 * * * *",
        "* * * foo *",
        "@fortnightly",
        "@every",
        "@every abc",
        "@every 5",
        "@every 5y",
    ],
)
def test_invalid_specs_raise(spec):
    with pytest.raises(ScheduleError):
        parse_standard(spec)


def test_schedule_error_is_value_error():
    with pytest.raises(ValueError):
        parse_standard("not a schedule")