#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Typed values for Taskwarrior user-defined attributes (UDAs).

A UDA arrives in task JSON as a bare string or number. ``UdaValue`` keeps
what was decoded and reinterprets it on request: a string can become a
number, a timestamp or a duration, but a number never becomes a date.
"""
from __future__ import annotations
import math, re
from dataclasses import dataclass
from datetime import datetime

from tasklib_core import (
    CoercionError,
    ParseError,
    diag,
    ensure_utc,
    format_tw_datetime,
    parse_tw_datetime,
)
from tasklib_duration import Duration, duration_from_str, format_duration


STRING = "string"
NUMERIC = "numeric"
DATE = "date"
DURATION = "duration"
KINDS = (STRING, NUMERIC, DATE, DURATION)

# Finite float literals as JSON producers write them.
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def parse_numeric(s: str) -> float:
    if not isinstance(s, str) or not _FLOAT_RE.fullmatch(s):
        raise ValueError(f"{s!r} is not a number")
    x = float(s)
    if not math.isfinite(x):
        raise ValueError(f"{s!r} is out of range for a JSON number")
    return x


def format_numeric(x: float) -> str:
    """Render like a JSON number: 2.5 -> '2.5', 2.0 -> '2'."""
    if x.is_integer() and abs(x) < 1e16:
        return str(int(x))
    return repr(x)


@dataclass(frozen=True)
class UdaValue:
    kind: str
    value: object

    def __post_init__(self):
        k, v = self.kind, self.value
        if k == STRING:
            ok = isinstance(v, str)
        elif k == NUMERIC:
            ok = isinstance(v, (int, float)) and not isinstance(v, bool)
            if ok:
                if not math.isfinite(v):
                    raise ValueError(f"UDA numeric value must be finite, got {v!r}")
                object.__setattr__(self, "value", float(v))
        elif k == DATE:
            ok = isinstance(v, datetime)
            if ok:
                object.__setattr__(self, "value", ensure_utc(v))
        elif k == DURATION:
            ok = isinstance(v, Duration)
        else:
            raise ValueError(f"Unknown UDA kind {k!r}; expected one of {', '.join(KINDS)}")
        if not ok:
            raise TypeError(f"UDA {k} value cannot hold {type(v).__name__}")

    # -- construction ----------------------------------------------------------
    @classmethod
    def string(cls, s: str) -> UdaValue:
        return cls(STRING, s)

    @classmethod
    def numeric(cls, x: float) -> UdaValue:
        return cls(NUMERIC, x)

    @classmethod
    def date(cls, dt: datetime) -> UdaValue:
        return cls(DATE, dt)

    @classmethod
    def duration(cls, d: Duration) -> UdaValue:
        return cls(DURATION, d)

    @classmethod
    def of(cls, native) -> UdaValue:
        """Wrap a native Python value written programmatically."""
        if isinstance(native, UdaValue):
            return native
        if isinstance(native, Duration):
            return cls.duration(native)
        if isinstance(native, datetime):
            return cls.date(native)
        if isinstance(native, str):
            return cls.string(native)
        if isinstance(native, (int, float)) and not isinstance(native, bool):
            return cls.numeric(native)
        raise CoercionError(type(native).__name__, "uda")

    @classmethod
    def from_json(cls, scalar) -> UdaValue:
        # strings are kept verbatim; no date/duration sniffing at decode time
        if isinstance(scalar, str):
            return cls.string(scalar)
        if isinstance(scalar, (int, float)) and not isinstance(scalar, bool):
            if not math.isfinite(scalar):
                raise CoercionError("json number", "uda", f"{scalar!r} is not finite")
            return cls.numeric(scalar)
        raise CoercionError(f"json {type(scalar).__name__}", "uda", "expected a string or number")

    # -- coercion --------------------------------------------------------------
    def _fail(self, target: str, cause: Exception | None = None) -> CoercionError:
        err = CoercionError(self.kind, target, str(cause) if cause else "")
        diag({"msg": str(err), "kind": self.kind, "target": target}, component="tasklib.uda")
        return err

    def as_string(self) -> UdaValue:
        if self.kind == STRING:
            return self
        return UdaValue.string(self.to_text())

    def as_numeric(self) -> UdaValue:
        if self.kind == NUMERIC:
            return self
        if self.kind == STRING:
            try:
                return UdaValue.numeric(parse_numeric(self.value))
            except ValueError as e:
                raise self._fail(NUMERIC, e) from e
        raise self._fail(NUMERIC)

    def as_date(self) -> UdaValue:
        if self.kind == DATE:
            return self
        if self.kind == STRING:
            try:
                return UdaValue.date(parse_tw_datetime(self.value))
            except ParseError as e:
                raise self._fail(DATE, e) from e
        raise self._fail(DATE)

    def as_duration(self) -> UdaValue:
        if self.kind == DURATION:
            return self
        if self.kind == STRING:
            try:
                return UdaValue.duration(duration_from_str(self.value))
            except (ParseError, OverflowError) as e:
                raise self._fail(DURATION, e) from e
        raise self._fail(DURATION)

    def coerce(self, kind: str) -> UdaValue:
        try:
            method = _COERCIONS[kind]
        except KeyError:
            raise ValueError(f"Unknown UDA kind {kind!r}; expected one of {', '.join(KINDS)}") from None
        return method(self)

    # -- output ----------------------------------------------------------------
    def to_text(self) -> str:
        if self.kind == STRING:
            return self.value
        if self.kind == NUMERIC:
            return format_numeric(self.value)
        if self.kind == DATE:
            return format_tw_datetime(self.value)
        return format_duration(self.value)

    def to_json(self):
        """The bare JSON scalar stored under the attribute's name."""
        if self.kind == NUMERIC:
            return self.value
        return self.to_text()

    def __str__(self):
        return self.to_text()


_COERCIONS = {
    STRING: UdaValue.as_string,
    NUMERIC: UdaValue.as_numeric,
    DATE: UdaValue.as_date,
    DURATION: UdaValue.as_duration,
}
