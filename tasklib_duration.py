#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Taskwarrior durations: grammar, canonical formatting and arithmetic.

Two notations are understood: ISO-8601 (``P1Y2M3DT4H5M6S``) and the English
phrases Taskwarrior accepts (``3 days``, ``weekly``, ``2 qtrs``, ``weekdays``).
Both collapse years, months and weeks into days with fixed constants
(year = 365 days, month = 30 days). A value parsed from text keeps that text
and prints it back unchanged until arithmetic is done on it, so ``P1M``
survives a read/write cycle even though ``P1M + P1M`` is ``P60D``.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, replace
from datetime import timedelta
from functools import lru_cache

from tasklib_core import DurationSyntaxError, NumericOverflow, MAX_DURATION_LEN


# ==============================================================================
# TABLE OF CONTENTS (major sections)
# 1) Constants
# 2) Duration value & arithmetic
# 3) Canonical formatter
# 4) Grammar: unit families, ISO-8601, top-level dispatch
# ==============================================================================


# ==============================================================================
# SECTION: Constants
# ==============================================================================
U32_MAX = 2**32 - 1

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365
SECONDS_PER_MONTH = DAYS_PER_MONTH * SECONDS_PER_DAY
SECONDS_PER_YEAR = DAYS_PER_YEAR * SECONDS_PER_DAY

# Special marker: Taskwarrior's ``recur:weekdays``
WEEKDAYS = "weekdays"

_FIELDS = ("years", "months", "days", "hours", "minutes", "seconds")


# ==============================================================================
# SECTION: Duration value & arithmetic
# ==============================================================================
@dataclass(frozen=True, eq=False)
class Duration:
    """
    Six non-negative magnitudes plus provenance.

    ``source`` is the exact text this value was parsed from; ``special`` marks
    a bare ``weekdays``. At most one of them is set, and it wins over the ISO
    rendering. Arithmetic drops both.

    Two durations are equal when they span the same number of seconds
    (a month counts as 30 days), not when their fields match.
    """

    years: int = 0
    months: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    special: str | None = None
    source: str | None = None

    def __post_init__(self):
        for name in _FIELDS:
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int):
                raise TypeError(f"Duration.{name} must be int, got {type(v).__name__}")
            if v < 0:
                raise ValueError(f"Duration.{name} must be >= 0, got {v}")
            if v > U32_MAX:
                raise NumericOverflow(name, v, U32_MAX)
        if self.special not in (None, WEEKDAYS):
            raise ValueError(f"Unknown special duration {self.special!r}")
        if self.special is not None and self.source is not None:
            raise ValueError("Duration carries either a source or a special marker, not both")

    # -- conversions -----------------------------------------------------------
    @classmethod
    def parse(cls, text: str) -> Duration:
        return duration_from_str(text)

    @classmethod
    def from_timedelta(cls, td: timedelta) -> Duration:
        """Whole seconds of an elapsed time; call smooth() for a readable form."""
        secs = int(td.total_seconds())
        if secs < 0:
            raise ValueError(f"Negative elapsed time {td!r}")
        return cls(seconds=secs)

    def to_timedelta(self) -> timedelta:
        return timedelta(seconds=self.total_seconds())

    def total_seconds(self) -> int:
        return (
            self.seconds
            + self.minutes * SECONDS_PER_MINUTE
            + self.hours * SECONDS_PER_HOUR
            + self.days * SECONDS_PER_DAY
            + self.months * SECONDS_PER_MONTH
            + self.years * SECONDS_PER_YEAR
        )

    @property
    def is_weekdays(self) -> bool:
        return self.special == WEEKDAYS

    def without_source(self) -> Duration:
        return replace(self, source=None)

    def to_iso(self) -> str:
        return _format_iso(self)

    # -- arithmetic ------------------------------------------------------------
    def __add__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(**{name: getattr(self, name) + getattr(other, name) for name in _FIELDS})

    def smooth(self) -> Duration:
        """
        Carry seconds->minutes->hours->days and months->years.

        Days are never carried into months: a month has no fixed length in
        days. Returns a new value without provenance.
        """
        carry, secs = divmod(self.seconds, 60)
        carry, mins = divmod(self.minutes + carry, 60)
        carry, hrs = divmod(self.hours + carry, 24)
        yrs, mons = divmod(self.months, 12)
        return Duration(
            years=self.years + yrs,
            months=mons,
            days=self.days + carry,
            hours=hrs,
            minutes=mins,
            seconds=secs,
        )

    # -- equality --------------------------------------------------------------
    def __eq__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self.total_seconds() == other.total_seconds()

    def __hash__(self):
        return hash(self.total_seconds())

    def __str__(self):
        return format_duration(self)


def seconds(n: int) -> Duration:
    return Duration(seconds=n)


def minutes(n: int) -> Duration:
    return Duration(minutes=n)


def hours(n: int) -> Duration:
    return Duration(hours=n)


def days(n: int) -> Duration:
    return Duration(days=n)


def weeks(n: int) -> Duration:
    return Duration(days=n * DAYS_PER_WEEK)


def months(n: int) -> Duration:
    return Duration(months=n)


def years(n: int) -> Duration:
    return Duration(years=n)


# ==============================================================================
# SECTION: Canonical formatter
# ==============================================================================
def _format_iso(d: Duration) -> str:
    out = ["P"]
    if d.years:
        out.append(f"{d.years}Y")
    if d.months:
        out.append(f"{d.months}M")
    if d.days:
        out.append(f"{d.days}D")
    if d.hours or d.minutes or d.seconds:
        out.append("T")
    if d.hours:
        out.append(f"{d.hours}H")
    if d.minutes:
        out.append(f"{d.minutes}M")
    if d.seconds:
        out.append(f"{d.seconds}S")
    return "".join(out)


def format_duration(d: Duration) -> str:
    """Source text if retained, else ``weekdays`` for the marker, else ISO-8601."""
    if d.source is not None:
        return d.source
    if d.special == WEEKDAYS:
        return WEEKDAYS
    return _format_iso(d)


# ==============================================================================
# SECTION: Grammar
# ==============================================================================
@dataclass(frozen=True)
class UnitFamily:
    """One phrase family: the synonyms it owns and what one unit is worth."""

    name: str
    unit: str               # Duration field the count lands in
    factor: int             # units of that field per count
    ordinal: tuple[str, ...]
    literal: tuple[str, ...]
    special: str | None = None  # marker for the bare literal form

    def build(self, count: int, special: str | None = None) -> Duration:
        value = count * self.factor
        if value > U32_MAX:
            raise NumericOverflow(self.unit, value, U32_MAX)
        return Duration(**{self.unit: value}, special=special)


# Family order matters only for equal-length matches; the longest match wins.
UNIT_FAMILIES: tuple[UnitFamily, ...] = (
    UnitFamily("sennights", "days", 7, ("sennight",), ("sennight",)),
    UnitFamily("seconds", "seconds", 1, ("seconds", "second", "secs", "sec", "s"), ("second", "sec")),
    UnitFamily("minutes", "minutes", 1, ("minutes", "minute", "mins", "min"), ("minute", "min")),
    UnitFamily("hours", "hours", 1, ("hours", "hour", "hrs", "hr", "h"), ("hour", "hr")),
    UnitFamily("days", "days", 1, ("days", "day", "daily", "d"), ("daily", "day")),
    UnitFamily("weekdays", "days", 1, ("weekdays",), ("weekdays",), special=WEEKDAYS),
    UnitFamily("weeks", "days", DAYS_PER_WEEK,
               ("weeks", "weekly", "week", "wks", "wk", "w"), ("weekly", "week", "wk")),
    UnitFamily("biweekly", "days", 14, ("biweekly",), ("biweekly",)),
    UnitFamily("months", "days", DAYS_PER_MONTH,
               ("months", "monthly", "month", "mo", "m"), ("monthly", "month", "mth", "mo")),
    UnitFamily("bimonthly", "days", 61, ("bimonthly",), ("bimonthly",)),
    UnitFamily("years", "days", DAYS_PER_YEAR,
               ("years", "yearly", "year", "yrs", "yr", "y"), ("yearly", "year", "yr")),
    UnitFamily("quarters", "days", 91,
               ("quarterly", "quarters", "quarter", "qrtrs", "qrtr", "qtrs", "qtr", "q"),
               ("quarterly", "quarter", "qrtr", "qtr")),
    UnitFamily("semiannual", "days", 183, ("semiannual",), ("semiannual",)),
    UnitFamily("annual", "days", DAYS_PER_YEAR, ("annual",), ("annual",)),
    UnitFamily("biannual", "days", 2 * DAYS_PER_YEAR, ("biannual",), ("biannual",)),
    UnitFamily("biyearly", "days", 2 * DAYS_PER_YEAR, ("biyearly",), ("biyearly",)),
    UnitFamily("fortnights", "days", 14, ("fortnight",), ("fortnight",)),
)

# Horizontal whitespace only, like Taskwarrior's own lexer.
_WS = r"[ \t]*"


def _alternation(words: tuple[str, ...]) -> str:
    # longest first: re alternation takes the first branch that matches
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


@lru_cache(maxsize=None)
def _family_patterns(fam: UnitFamily) -> tuple[re.Pattern, re.Pattern]:
    ordinal = re.compile(rf"{_WS}([0-9]+){_WS}(?:{_alternation(fam.ordinal)})")
    literal = re.compile(rf"{_WS}(?:{_alternation(fam.literal)})")
    return ordinal, literal


def _to_u32(digits: str, context: str, text: str) -> int:
    # int() refuses very long digit runs, so reject by width first
    sig = digits.lstrip("0") or "0"
    if len(sig) > len(str(U32_MAX)) or int(sig) > U32_MAX:
        raise DurationSyntaxError(
            f"Invalid duration {text!r}: {context} count {digits} is out of range",
            text,
            (context,),
        )
    return int(sig)


def _match_family(fam: UnitFamily, text: str) -> tuple[int, str | None] | None:
    """Return (end, digits) for the family's ordinal form, else its literal form."""
    ordinal_re, literal_re = _family_patterns(fam)
    m = ordinal_re.match(text)
    if m:
        return m.end(), m.group(1)
    m = literal_re.match(text)
    if m:
        return m.end(), None
    return None


def _best_phrase_match(text: str):
    best = None
    for fam in UNIT_FAMILIES:
        hit = _match_family(fam, text)
        if hit is not None and (best is None or hit[0] > best[1]):
            best = (fam, hit[0], hit[1])
    return best


_PHRASE_CONTEXTS = tuple(f.name for f in UNIT_FAMILIES)


def parse_phrase(text: str) -> tuple[Duration, str]:
    """Parse one English duration phrase at the start of ``text``."""
    best = _best_phrase_match(text)
    if best is None:
        raise DurationSyntaxError(
            f"Invalid duration {text!r}: expected a count and unit such as '3 days' or 'weekly'",
            text,
            _PHRASE_CONTEXTS,
        )
    return _build_phrase(best, text)


def _build_phrase(best, text: str) -> tuple[Duration, str]:
    fam, end, digits = best
    if digits is None:
        value = fam.build(1, special=fam.special)
    else:
        value = fam.build(_to_u32(digits, fam.name, text))
    return value, text[end:]


_ISO_RE = re.compile(
    _WS + r"P"
    r"(?:(?P<years>[0-9]+)Y)?"
    r"(?:(?P<months>[0-9]+)M)?"
    r"(?:(?P<days>[0-9]+)D)?"
    r"(?:T(?=[0-9]+[HMS]))?"
    r"(?:(?P<hours>[0-9]+)H)?"
    r"(?:(?P<minutes>[0-9]+)M)?"
    r"(?:(?P<seconds>[0-9]+)S)?"
)


def parse_iso_8601(text: str) -> tuple[Duration, str]:
    """
    Parse an ISO-8601 duration at the start of ``text``.

    Fields are read in Y, M, D, [T] H, M, S order; anything out of order is
    left in the returned remainder. Years and months become 365/30 days.
    """
    m = _ISO_RE.match(text)
    if not m:
        raise DurationSyntaxError(
            f"Invalid duration {text!r}: ISO-8601 durations start with 'P'",
            text,
            ("iso-8601",),
        )
    f = {k: (_to_u32(v, "iso-8601", text) if v else 0) for k, v in m.groupdict().items()}
    total_days = f["days"] + f["years"] * DAYS_PER_YEAR + f["months"] * DAYS_PER_MONTH
    if total_days > U32_MAX:
        raise NumericOverflow("days", total_days, U32_MAX)
    value = Duration(days=total_days, hours=f["hours"], minutes=f["minutes"], seconds=f["seconds"])
    return value, text[m.end():]


_ISO_MARK_RE = re.compile(_WS + "P")


def parse_duration(text: str) -> tuple[Duration, str]:
    """
    Parse the longest duration at the start of ``text``.

    Returns ``(duration, remaining)``. Text starting with ``P`` is ISO-8601
    and never falls back to the phrase grammar.
    """
    if not isinstance(text, str):
        raise TypeError(f"duration text must be str, got {type(text).__name__}")
    if _ISO_MARK_RE.match(text):
        return parse_iso_8601(text)
    best = _best_phrase_match(text)
    if best is None:
        raise DurationSyntaxError(
            f"Invalid duration {text!r}: expected ISO-8601 (e.g. 'P1D') "
            "or a phrase (e.g. '3 days', 'weekly')",
            text,
            ("iso-8601",) + _PHRASE_CONTEXTS,
        )
    return _build_phrase(best, text)


def duration_from_str(text: str) -> Duration:
    """
    Parse a complete duration string and remember it as the value's source.

    Surrounding spaces and tabs are allowed; anything else left over is an
    error. A bare ``weekdays`` keeps its marker instead of a source.
    """
    if not isinstance(text, str):
        raise TypeError(f"duration text must be str, got {type(text).__name__}")
    if len(text) > MAX_DURATION_LEN:
        raise DurationSyntaxError(
            f"Duration too long (max {MAX_DURATION_LEN} characters).",
            text,
            ("duration",),
        )
    value, rest = parse_duration(text)
    extra = rest.strip(" \t")
    if extra:
        raise DurationSyntaxError(
            f"Invalid duration {text!r}: unexpected {extra!r}",
            text,
            ("duration",),
        )
    if value.special is not None:
        return value
    return replace(value, source=text)
