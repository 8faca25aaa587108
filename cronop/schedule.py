"""Standard five-field cron schedules and the times they fire at."""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, timedelta
from fractions import Fraction
from typing import Mapping

_SECOND = timedelta(seconds=1)
_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)


class ScheduleError(ValueError):
    """Raised when a schedule specification cannot be parsed."""


@dataclass(frozen=True)
class _Bounds:
    low: int
    high: int
    names: Mapping[str, int]

    def all(self) -> frozenset[int]:
        return frozenset(range(self.low, self.high + 1))


_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
_DOW_NAMES = {
    name: number
    for number, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}

_SECONDS = _Bounds(0, 59, {})
_MINUTES = _Bounds(0, 59, {})
_HOURS = _Bounds(0, 23, {})
_DOM = _Bounds(1, 31, {})
_MONTHS = _Bounds(1, 12, _MONTH_NAMES)
_DOW = _Bounds(0, 6, _DOW_NAMES)

_INT_RE = re.compile(r"[+-]?\d+")
_DURATION_PART_RE = re.compile(r"(\d*\.?\d*)([^\d.]+)")
_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}


@dataclass(frozen=True)
class CronSchedule:
    """A parsed schedule.

    Either a set of allowed values for each time field, or, for "@every"
    schedules, a fixed interval between runs.
    """

    seconds: frozenset[int] = frozenset()
    minutes: frozenset[int] = frozenset()
    hours: frozenset[int] = frozenset()
    days_of_month: frozenset[int] = frozenset()
    months: frozenset[int] = frozenset()
    days_of_week: frozenset[int] = frozenset()
    dom_star: bool = False
    dow_star: bool = False
    every: timedelta | None = None

    def next(self, after: datetime) -> datetime | None:
        """Return the first activation strictly after ``after``.

        Returns None when no activation exists within five years.
        """
        start = after.replace(microsecond=0)
        if self.every is not None:
            return start + self.every

        t = start + _SECOND
        year_limit = t.year + 5
        added = False
        while t.year <= year_limit:
            t, added, wrapped = self._seek(t, added)
            if not wrapped:
                return t
        return None

    def _seek(self, t: datetime, added: bool) -> tuple[datetime, bool, bool]:
        while t.month not in self.months:
            if not added:
                added = True
                t = t.replace(day=1, hour=0, minute=0, second=0)
            t = _add_month(t)
            if t.month == 1:
                return t, added, True

        while not self._day_matches(t):
            if not added:
                added = True
                t = t.replace(hour=0, minute=0, second=0)
            t += _DAY
            if t.day == 1:
                return t, added, True

        while t.hour not in self.hours:
            if not added:
                added = True
                t = t.replace(minute=0, second=0)
            t += _HOUR
            if t.hour == 0:
                return t, added, True

        while t.minute not in self.minutes:
            if not added:
                added = True
                t = t.replace(second=0)
            t += _MINUTE
            if t.minute == 0:
                return t, added, True

        while t.second not in self.seconds:
            if not added:
                added = True
            t += _SECOND
            if t.second == 0:
                return t, added, True

        return t, added, False

    def _day_matches(self, t: datetime) -> bool:
        dom_match = t.day in self.days_of_month
        dow_match = (t.weekday() + 1) % 7 in self.days_of_week
        if self.dom_star or self.dow_star:
            return dom_match and dow_match
        return dom_match or dow_match


def _add_month(t: datetime) -> datetime:
    year, month = (t.year + 1, 1) if t.month == 12 else (t.year, t.month + 1)
    # Overflowing days roll into the following month.
    days = monthrange(year, month)[1]
    if t.day <= days:
        return t.replace(year=year, month=month)
    return t.replace(year=year, month=month, day=days) + (t.day - days) * _DAY


def parse_standard(spec: str) -> CronSchedule:
    """Parse a five-field cron line or an "@" descriptor."""
    if not spec:
        raise ScheduleError("Empty spec string")
    if spec.startswith("@"):
        return _parse_descriptor(spec)

    fields = spec.split()
    if len(fields) != 5:
        raise ScheduleError(f"Expected exactly 5 fields, found {len(fields)}: {spec}")

    minute, hour, dom, month, dow = fields
    seconds, _ = _parse_field("0", _SECONDS)
    minutes, _ = _parse_field(minute, _MINUTES)
    hours, _ = _parse_field(hour, _HOURS)
    days_of_month, dom_star = _parse_field(dom, _DOM)
    months, _ = _parse_field(month, _MONTHS)
    days_of_week, dow_star = _parse_field(dow, _DOW)
    return CronSchedule(
        seconds=seconds,
        minutes=minutes,
        hours=hours,
        days_of_month=days_of_month,
        months=months,
        days_of_week=days_of_week,
        dom_star=dom_star,
        dow_star=dow_star,
    )


def _parse_field(text: str, bounds: _Bounds) -> tuple[frozenset[int], bool]:
    values: set[int] = set()
    star = False
    for expr in filter(None, text.split(",")):
        part, part_star = _parse_range(expr, bounds)
        values |= part
        star = star or part_star
    return frozenset(values), star


def _parse_range(expr: str, bounds: _Bounds) -> tuple[frozenset[int], bool]:
    range_and_step = expr.split("/")
    low_and_high = range_and_step[0].split("-")
    single = len(low_and_high) == 1
    star = False

    if low_and_high[0] in ("*", "?"):
        start, end = bounds.low, bounds.high
        star = True
    else:
        start = _parse_int_or_name(low_and_high[0], bounds.names)
        if len(low_and_high) == 1:
            end = start
        elif len(low_and_high) == 2:
            end = _parse_int_or_name(low_and_high[1], bounds.names)
        else:
            raise ScheduleError(f"Too many hyphens: {expr}")

    if len(range_and_step) == 1:
        step = 1
    elif len(range_and_step) == 2:
        step = _parse_int(range_and_step[1])
        # "N/step" means "N-max/step".
        if single:
            end = bounds.high
    else:
        raise ScheduleError(f"Too many slashes: {expr}")

    if start < bounds.low:
        raise ScheduleError(
            f"Beginning of range ({start}) below minimum ({bounds.low}): {expr}"
        )
    if end > bounds.high:
        raise ScheduleError(f"End of range ({end}) above maximum ({bounds.high}): {expr}")
    if start > end:
        raise ScheduleError(
            f"Beginning of range ({start}) beyond end of range ({end}): {expr}"
        )
    if step == 0:
        raise ScheduleError(f"Step of range should be a positive number: {expr}")

    return frozenset(range(start, end + 1, step)), star


def _parse_int_or_name(expr: str, names: Mapping[str, int]) -> int:
    named = names.get(expr.lower())
    if named is not None:
        return named
    return _parse_int(expr)


def _parse_int(expr: str) -> int:
    if not _INT_RE.fullmatch(expr):
        raise ScheduleError(f"Failed to parse int from {expr}: invalid syntax")
    number = int(expr)
    if number < 0:
        raise ScheduleError(f"Negative number ({number}) not allowed: {expr}")
    return number


def _parse_descriptor(spec: str) -> CronSchedule:
    zero = frozenset({0})
    if spec in ("@yearly", "@annually"):
        return CronSchedule(
            seconds=zero, minutes=zero, hours=zero,
            days_of_month=frozenset({_DOM.low}), months=frozenset({_MONTHS.low}),
            days_of_week=_DOW.all(), dow_star=True,
        )
    if spec == "@monthly":
        return CronSchedule(
            seconds=zero, minutes=zero, hours=zero,
            days_of_month=frozenset({_DOM.low}), months=_MONTHS.all(),
            days_of_week=_DOW.all(), dow_star=True,
        )
    if spec == "@weekly":
        return CronSchedule(
            seconds=zero, minutes=zero, hours=zero,
            days_of_month=_DOM.all(), months=_MONTHS.all(),
            days_of_week=frozenset({_DOW.low}), dom_star=True,
        )
    if spec in ("@daily", "@midnight"):
        return CronSchedule(
            seconds=zero, minutes=zero, hours=zero,
            days_of_month=_DOM.all(), months=_MONTHS.all(),
            days_of_week=_DOW.all(), dom_star=True, dow_star=True,
        )
    if spec == "@hourly":
        return CronSchedule(
            seconds=zero, minutes=zero, hours=_HOURS.all(),
            days_of_month=_DOM.all(), months=_MONTHS.all(),
            days_of_week=_DOW.all(), dom_star=True, dow_star=True,
        )
    prefix = "@every "
    if spec.startswith(prefix):
        text = spec[len(prefix):]
        try:
            nanos = _parse_duration_nanos(text)
        except ScheduleError as err:
            raise ScheduleError(f"Failed to parse duration {spec}: {err}") from None
        return CronSchedule(every=_every_interval(nanos))
    raise ScheduleError(f"Unrecognized descriptor: {spec}")


def _every_interval(nanos: Fraction) -> timedelta:
    """Round an interval down to whole seconds, with one second as the least."""
    whole_seconds = int(nanos // 1_000_000_000)
    return timedelta(seconds=max(whole_seconds, 1))


def _parse_duration_nanos(text: str) -> Fraction:
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return Fraction(0)
    if not rest:
        raise ScheduleError(f'invalid duration "{text}"')

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART_RE.match(rest, pos)
        if match is None:
            raise ScheduleError(f'missing unit in duration "{text}"')
        number, unit = match.groups()
        if number in ("", "."):
            raise ScheduleError(f'invalid duration "{text}"')
        scale = _UNIT_NANOS.get(unit)
        if scale is None:
            raise ScheduleError(f'unknown unit "{unit}" in duration "{text}"')
        total += Fraction(number) * scale
        pos = match.end()
    return -total if negative else total