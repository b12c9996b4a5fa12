#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
tasklib Golden Tests (durations)
 - Imports local tasklib_duration.py / tasklib_core.py
 - Verifies the phrase grammar (every family, spacing variants, literal-only forms),
   ISO-8601 parsing, source fidelity, weekdays marker, arithmetic, smoothing, overflow
 - Covers known ambiguities: 'm' vs 'min' vs 'mo', '5 semiannual' vs '5 s',
   P1M + P1M == P60D

Run:
  python3 tasklib_golden_tests.py
Optional:
  python3 tasklib_golden_tests.py --only iso --verbose
"""

import importlib
import sys, os, json, tempfile
from datetime import datetime, timedelta, timezone

HERE = os.path.dirname(os.path.abspath(__file__))
ROOT = os.path.dirname(HERE)
sys.path.insert(0, ROOT)

core = importlib.import_module("tasklib_core")
dur = importlib.import_module("tasklib_duration")

Duration = dur.Duration

# -------- Helpers -------------------------------------------------------------

def expect(cond, msg):
    if not cond:
        raise AssertionError(msg)

def times(d, n):
    return sum((d for _ in range(n)), Duration())

def fields(d):
    return (d.years, d.months, d.days, d.hours, d.minutes, d.seconds)

def _must_parse(text):
    """Parse a full duration string, raising AssertionError on failure."""
    try:
        return dur.duration_from_str(text)
    except Exception as e:
        raise AssertionError(f"Failed to parse {text!r}: {e}")

def _must_fail(text, exc=None):
    exc = exc or core.DurationSyntaxError
    try:
        d = dur.duration_from_str(text)
    except exc as e:
        return e
    raise AssertionError(f"{text!r} must be rejected, got {d!r}")


# (family, ordinal-capable synonyms, value of one unit)
ORDINAL_CASES = [
    ("seconds", ("seconds", "second", "secs", "sec", "s"), dur.seconds(1)),
    ("minutes", ("minutes", "minute", "mins", "min"), dur.minutes(1)),
    ("hours", ("hours", "hour", "hrs", "hr", "h"), dur.hours(1)),
    ("days", ("days", "day", "daily", "d"), dur.days(1)),
    ("weekdays", ("weekdays",), dur.days(1)),
    ("weeks", ("weeks", "weekly", "week", "wks", "wk", "w"), dur.weeks(1)),
    ("fortnights", ("fortnight",), dur.days(14)),
    ("sennights", ("sennight",), dur.days(7)),
    ("biweekly", ("biweekly",), dur.days(14)),
    ("months", ("months", "monthly", "month", "mo", "m"), dur.days(30)),
    ("bimonthly", ("bimonthly",), dur.days(61)),
    ("years", ("years", "yearly", "year", "yrs", "yr", "y"), dur.days(365)),
    ("quarters", ("quarterly", "quarters", "quarter", "qrtrs", "qrtr", "qtrs", "qtr", "q"), dur.days(91)),
    ("semiannual", ("semiannual",), dur.days(183)),
    ("annual", ("annual",), dur.days(365)),
    ("biannual", ("biannual",), dur.days(730)),
    ("biyearly", ("biyearly",), dur.days(730)),
]

LITERAL_CASES = {
    "second": dur.seconds(1), "sec": dur.seconds(1),
    "minute": dur.minutes(1), "min": dur.minutes(1),
    "hour": dur.hours(1), "hr": dur.hours(1),
    "daily": dur.days(1), "day": dur.days(1),
    "weekdays": dur.days(1),
    "weekly": dur.weeks(1), "week": dur.weeks(1), "wk": dur.weeks(1),
    "fortnight": dur.days(14), "sennight": dur.days(7), "biweekly": dur.days(14),
    "monthly": dur.days(30), "month": dur.days(30), "mth": dur.days(30), "mo": dur.days(30),
    "bimonthly": dur.days(61),
    "yearly": dur.days(365), "year": dur.days(365), "yr": dur.days(365),
    "quarterly": dur.days(91), "quarter": dur.days(91), "qrtr": dur.days(91), "qtr": dur.days(91),
    "semiannual": dur.days(183), "annual": dur.days(365),
    "biannual": dur.days(730), "biyearly": dur.days(730),
}

# -------- Test cases ----------------------------------------------------------

def test_ordinal_forms_all_spacings():
    for family, words, unit in ORDINAL_CASES:
        want = times(unit, 5)
        for w in words:
            for text in (f"5 {w}", f"5{w}", f"5      {w}", f"5\t{w}"):
                got, rest = dur.parse_duration(text)
                expect(rest == "", f"{family}: {text!r} left {rest!r}")
                expect(got == want, f"{family}: {text!r} -> {got!r}, want {want!r}")

def test_literal_only_forms():
    for text, want in LITERAL_CASES.items():
        got, rest = dur.parse_duration(text)
        expect(rest == "", f"{text!r} left {rest!r}")
        expect(got == want, f"{text!r} -> {got!r}, want {want!r}")

def test_leading_and_trailing_whitespace():
    d = _must_parse("   3 days  ")
    expect(d == dur.days(3), "whitespace around a phrase is tolerated")
    got, rest = dur.parse_duration("  weekly  ")
    expect(got == dur.weeks(1) and rest == "  ", f"trailing space stays in remainder, got {rest!r}")
    expect(_must_parse("\t3 days\t") == dur.days(3), "tabs are horizontal whitespace")
    for text in ("3 days\n", "\n3 days", "P1D\r\n", "weekly\r"):
        e = _must_fail(text)
        expect(e.text == text, f"error keeps the input, got {e.text!r}")

def test_unit_collisions_resolved_by_longest_match():
    expect(_must_parse("5 m") == dur.days(150), "'m' is months")
    expect(_must_parse("5 min") == dur.minutes(5), "'min' is minutes")
    expect(_must_parse("5 mo") == dur.days(150), "'mo' is months")
    expect(_must_parse("5 semiannual") == dur.days(5 * 183), "semiannual must not be read as 5 s")
    expect(_must_parse("5 sennight") == dur.days(35), "sennight must not be read as 5 s")
    expect(_must_parse("2 weekdays") == dur.days(2), "weekdays must not be read as 2 weeks")
    expect(_must_parse("weekdays").is_weekdays, "bare weekdays must not be read as week")
    expect(_must_parse("daily") == dur.days(1), "daily, not day + 'ly'")

def test_partial_match_reports_remainder():
    got, rest = dur.parse_duration("5 seconds later")
    expect(got == dur.seconds(5), "prefix parsed")
    expect(rest == " later", f"remainder kept, got {rest!r}")

def test_rejects_unknown_units():
    for text in ("", "   ", "5", "5 parsecs", "xyz", "seconds", "weeks", "5 mth", "fortnights", "Weekly"):
        _must_fail(text)

def test_error_names_grammar_contexts():
    e = _must_fail("5 parsecs")
    expect("iso-8601" in e.contexts and "seconds" in e.contexts and "months" in e.contexts,
           f"contexts should list the alternatives tried: {e.contexts}")
    expect(e.text == "5 parsecs", "error carries the input")
    try:
        dur.parse_iso_8601("3 days")
        raise AssertionError("ISO grammar must reject text without 'P'")
    except core.DurationSyntaxError as e2:
        expect(e2.contexts == ("iso-8601",), f"unexpected contexts {e2.contexts}")

def test_iso_8601_fields():
    cases = {
        "P1Y": dur.days(365),
        "P1M": dur.days(30),
        "P1D": dur.days(1),
        "P1Y2M": dur.days(425),
        "P1000D": dur.days(1000),
        "PT10M": dur.minutes(10),
        "PT50S": dur.seconds(50),
        "PT5H6M7S": dur.hours(5) + dur.minutes(6) + dur.seconds(7),
        "PT12H40M50S": dur.hours(12) + dur.minutes(40) + dur.seconds(50),
        "PT0S": Duration(),
        "P": Duration(),
    }
    for text, want in cases.items():
        got, rest = dur.parse_iso_8601(text)
        expect(rest == "", f"{text!r} left {rest!r}")
        expect(got == want, f"{text!r} -> {got!r}, want {want!r}")

def test_iso_compound_equals_field_sum():
    d = _must_parse("P1Y2M3DT12H40M50S")
    want = dur.years(1) + dur.months(2) + dur.days(3) + dur.hours(12) + dur.minutes(40) + dur.seconds(50)
    expect(d == want, f"compound ISO {d!r} != {want!r}")

def test_iso_collapses_years_and_months_into_days():
    got, _ = dur.parse_duration("P1Y2M3D")
    expect(fields(got) == (0, 0, 428, 0, 0, 0), f"unexpected fields {fields(got)}")
    expect(got.to_iso() == "P428D", got.to_iso())

def test_iso_field_order_is_fixed():
    # out-of-order fields are left unconsumed and rejected by the full parse
    got, rest = dur.parse_iso_8601("P2D1Y")
    expect(got == dur.days(2) and rest == "1Y", f"got {got!r} rest {rest!r}")
    _must_fail("P2D1Y")
    _must_fail("P1S1H")
    # an M after D without T is the minutes slot
    got, rest = dur.parse_iso_8601("P3D2M")
    expect(fields(got) == (0, 0, 3, 0, 2, 0) and rest == "", f"got {fields(got)} rest {rest!r}")

def test_iso_time_designator():
    got, rest = dur.parse_iso_8601("P1DT")
    expect(got == dur.days(1) and rest == "T", "dangling T is not consumed")
    _must_fail("P1DT")
    got, rest = dur.parse_iso_8601("P5H")
    expect(got == dur.hours(5) and rest == "", "T is optional before H")

def test_iso_commits_after_p():
    _must_fail("P3 days")
    _must_fail("Pweekly")

def test_formatter_iso_shapes():
    cases = [
        (Duration(days=3), "P3D"),
        (Duration(minutes=10), "PT10M"),
        (Duration(months=10), "P10M"),
        (Duration(months=2, days=3), "P2M3D"),
        (Duration(years=1, days=3), "P1Y3D"),
        (Duration(minutes=40, seconds=50), "PT40M50S"),
        (Duration(years=1, months=2, days=3, hours=12, minutes=40, seconds=50), "P1Y2M3DT12H40M50S"),
        (Duration(), "P"),
    ]
    for d, want in cases:
        expect(dur.format_duration(d) == want, f"{d!r} -> {dur.format_duration(d)!r}, want {want!r}")
        expect(str(d) == want, "str() goes through the formatter")

def test_source_fidelity():
    for text in ("P1M", "P1Y2M3DT12H40M50S", "3 days", "  3 days ", "5seconds",
                 "5 weekdays", "2 qtrs", "fortnight", "P", "PT0S", "monthly"):
        d = _must_parse(text)
        expect(str(d) == text, f"{text!r} printed back as {str(d)!r}")
        expect(d.source == text, "source retained")

def test_weekdays_marker():
    d, rest = dur.parse_duration("weekdays")
    expect(rest == "" and d == dur.days(1), "weekdays is one day")
    expect(d.is_weekdays and d.source is None, "grammar sets the marker, not the source")
    expect(str(d) == "weekdays", f"marker formats as the token, got {str(d)!r}")
    expect(d.to_iso() == "P1D", "to_iso ignores the marker")

    five, _ = dur.parse_duration("5 weekdays")
    expect(five == dur.days(5), "ordinal weekdays is N days")
    expect(not five.is_weekdays and str(five) == "P5D", f"no marker with an ordinal, got {str(five)!r}")

    full = _must_parse("weekdays")
    expect(full.is_weekdays and full.source is None, "a bare weekdays keeps only its marker")
    expect(str(full) == "weekdays", f"got {str(full)!r}")
    padded = _must_parse(" weekdays\t")
    expect(padded.is_weekdays and str(padded) == "weekdays", f"padded weekdays -> {str(padded)!r}")
    expect(_must_parse("2 weekdays").source == "2 weekdays", "counted weekdays keeps its text")

def test_one_provenance_at_a_time():
    try:
        Duration(days=1, special=dur.WEEKDAYS, source="3 days")
        raise AssertionError("a marker and a source together must be rejected")
    except ValueError:
        pass
    for text in ("weekdays", "P1M", "3 days", "weekly"):
        d = _must_parse(text)
        expect(d.special is None or d.source is None, f"{text!r} carries both {d.special!r} and {d.source!r}")

def test_arithmetic_drops_provenance():
    w, _ = dur.parse_duration("weekdays")
    expect(str(w + w) == "P2D", f"weekdays + weekdays -> {str(w + w)!r}")
    m = _must_parse("P1M")
    expect(str(m) == "P1M", "unmodified value keeps its text")
    expect(m == dur.months(1), "P1M is one month by total seconds")
    s = m + m
    expect(str(s) == "P60D", f"P1M + P1M -> {str(s)!r}")
    expect(s.source is None and s.special is None, "sum carries no provenance")
    expect(str(_must_parse("weekdays") + _must_parse("weekdays")) == "P2D", "parsed weekdays too")

def test_addition_is_fieldwise():
    a = Duration(years=1, months=2, days=3, hours=4, minutes=5, seconds=6)
    b = Duration(years=6, months=5, days=4, hours=3, minutes=2, seconds=1)
    expect(fields(a + b) == (7, 7, 7, 7, 7, 7), f"got {fields(a + b)}")
    expect(fields(dur.seconds(50) + dur.seconds(50)) == (0, 0, 0, 0, 0, 100), "addition does not smooth")

def test_equality_is_total_seconds():
    expect(dur.days(30) == dur.months(1), "30 days == 1 month")
    expect(dur.days(365) == dur.years(1), "365 days == 1 year")
    expect(dur.minutes(120) == dur.hours(2), "120 min == 2 h")
    expect(dur.days(1) != dur.hours(23), "1 day != 23 h")
    expect(hash(dur.weeks(1)) == hash(dur.days(7)), "hash follows equality")
    expect(len({dur.weeks(1), dur.days(7), _must_parse("sennight")}) == 1, "set dedups by seconds")
    expect((Duration() == 0) is False, "no equality with plain numbers")
    expect(dur.years(1).total_seconds() == 31536000, "year constant")
    expect(dur.months(1).total_seconds() == 2592000, "month constant")

def test_smoothing():
    expect((dur.hours(1) + dur.hours(1)).to_iso() == "PT2H", "plain sum")
    expect(Duration(seconds=7200).smooth().to_iso() == "PT2H", "seconds carry up to hours")
    elapsed = Duration.from_timedelta(datetime(2020, 1, 1, 14, tzinfo=timezone.utc)
                                      - datetime(2020, 1, 1, 12, tzinfo=timezone.utc))
    expect(str(elapsed) == "PT7200S", f"unsmoothed elapsed {str(elapsed)!r}")
    expect(str(elapsed.smooth()) == "PT2H", f"smoothed elapsed {str(elapsed.smooth())!r}")
    expect(fields(Duration(seconds=3661).smooth()) == (0, 0, 0, 1, 1, 1), "3661 s")
    expect(fields(Duration(hours=49).smooth()) == (0, 0, 2, 1, 0, 0), "49 h")
    expect(fields(Duration(months=25).smooth()) == (2, 1, 0, 0, 0, 0), "25 months")
    expect(fields(Duration(days=45).smooth()) == (0, 0, 45, 0, 0, 0), "days never carry into months")

def test_smoothing_is_idempotent_and_explicit():
    d = Duration(years=1, months=11, days=400, hours=23, minutes=59, seconds=59)
    expect(fields(d.smooth()) == fields(d), "already in range: no-op")
    big = Duration(months=30, hours=100, seconds=100000)
    once = big.smooth()
    expect(fields(once.smooth()) == fields(once), "second smooth is a no-op")
    expect(once == big, "smoothing keeps total seconds")
    p = _must_parse("PT90S")
    expect(p.seconds == 90, "parsing does not smooth")
    expect(str(p.smooth()) == "PT1M30S" and p.smooth().source is None, "smooth drops the source")

def test_timedelta_conversions():
    expect(_must_parse("1 week").to_timedelta() == timedelta(days=7), "to_timedelta")
    expect(Duration.from_timedelta(timedelta(minutes=3, microseconds=5)) == dur.minutes(3), "whole seconds")
    try:
        Duration.from_timedelta(timedelta(seconds=-1))
        raise AssertionError("negative elapsed must be rejected")
    except ValueError:
        pass

def test_numeric_range_checks():
    e = _must_fail("99999999999 seconds")
    expect(e.contexts == ("seconds",), f"range error names the family: {e.contexts}")
    e = _must_fail("P99999999999D")
    expect(e.contexts == ("iso-8601",), f"range error names iso-8601: {e.contexts}")
    _must_fail("50000000 years", core.NumericOverflow)
    _must_fail("P50000000Y", core.NumericOverflow)
    expect(_must_parse("4294967295 s").seconds == dur.U32_MAX, "U32_MAX itself fits")
    expect(_must_parse("000000000000007 days") == dur.days(7), "leading zeros do not count toward the width")
    long_run = "9" * 5000
    for parse, text, ctx in (
        (dur.parse_duration, long_run + " days", "days"),
        (dur.parse_phrase, long_run + "s", "seconds"),
        (dur.parse_iso_8601, "PT" + long_run + "S", "iso-8601"),
        (dur.parse_duration, "P" + long_run + "D", "iso-8601"),
    ):
        try:
            parse(text)
            raise AssertionError(f"{parse.__name__} must reject a {len(long_run)}-digit count")
        except core.DurationSyntaxError as e:
            expect(e.contexts == (ctx,), f"{parse.__name__} context {e.contexts}")
    try:
        Duration(days=dur.U32_MAX) + dur.days(1)
        raise AssertionError("sum overflow must be reported")
    except core.NumericOverflow as ov:
        expect(ov.field == "days", f"overflow names the field: {ov.field}")
    try:
        Duration(seconds=-1)
        raise AssertionError("negative magnitude must be rejected")
    except ValueError:
        pass

def test_overflow_only_for_the_winning_family():
    # 'm' (months, x30) would overflow but 'min' is the longer match
    d = _must_parse("600000000 min")
    expect(d == dur.minutes(600000000), "minutes win without overflow")

def test_max_length():
    text = "1" * core.MAX_DURATION_LEN + " days"
    e = _must_fail(text)
    expect("too long" in str(e).lower(), f"unexpected message {e}")

def test_parse_classmethod_and_types():
    expect(Duration.parse("2 hrs") == dur.hours(2), "Duration.parse")
    try:
        dur.parse_duration(5)
        raise AssertionError("non-str input must be rejected")
    except TypeError:
        pass

def test_timestamps():
    dt = core.parse_tw_datetime("20220131T083000Z")
    expect(dt == datetime(2022, 1, 31, 8, 30, tzinfo=timezone.utc), f"got {dt!r}")
    expect(core.format_tw_datetime(dt) == "20220131T083000Z", "round trip")
    expect(core.format_tw_datetime(datetime(2022, 1, 31, 8, 30)) == "20220131T083000Z", "naive is UTC")
    for bad in ("2022-01-31", "20220131T083000", "20221331T083000Z", "20220131T083000+0100"):
        try:
            core.parse_tw_datetime(bad)
            raise AssertionError(f"{bad!r} must be rejected")
        except core.TimestampFormatError:
            pass

def test_diag_log_redacts_and_appends():
    old = {k: os.environ.get(k) for k in ("TASKLIB_DIAG_LOG", "TASKDATA")}
    with tempfile.TemporaryDirectory() as td:
        os.environ["TASKLIB_DIAG_LOG"] = "1"
        os.environ["TASKDATA"] = td
        try:
            core.diag_log({"msg": "decode failed", "description": "secret"}, "golden")
            core.diag_log("plain message", "golden")
            with open(os.path.join(td, ".tasklib_diag.jsonl"), encoding="utf-8") as f:
                lines = [json.loads(ln) for ln in f if ln.strip()]
        finally:
            for k, v in old.items():
                if v is None:
                    os.environ.pop(k, None)
                else:
                    os.environ[k] = v
    expect(len(lines) == 2, f"two entries, got {len(lines)}")
    expect(lines[0]["data"]["description"] == "[redacted]", "description redacted")
    expect(lines[0]["msg"] == "decode failed" and lines[1]["msg"] == "plain message", "messages kept")
    expect(lines[0]["component"] == "golden", "component recorded")


# -------- Runner --------------------------------------------------------------

TESTS = [
    test_ordinal_forms_all_spacings,
    test_literal_only_forms,
    test_leading_and_trailing_whitespace,
    test_unit_collisions_resolved_by_longest_match,
    test_partial_match_reports_remainder,
    test_rejects_unknown_units,
    test_error_names_grammar_contexts,
    test_iso_8601_fields,
    test_iso_compound_equals_field_sum,
    test_iso_collapses_years_and_months_into_days,
    test_iso_field_order_is_fixed,
    test_iso_time_designator,
    test_iso_commits_after_p,
    test_formatter_iso_shapes,
    test_source_fidelity,
    test_weekdays_marker,
    test_one_provenance_at_a_time,
    test_arithmetic_drops_provenance,
    test_addition_is_fieldwise,
    test_equality_is_total_seconds,
    test_smoothing,
    test_smoothing_is_idempotent_and_explicit,
    test_timedelta_conversions,
    test_numeric_range_checks,
    test_overflow_only_for_the_winning_family,
    test_max_length,
    test_parse_classmethod_and_types,
    test_timestamps,
    test_diag_log_redacts_and_appends,
]

def main():
    import argparse
    ap = argparse.ArgumentParser()
    ap.add_argument("--only", help="substring filter for test names")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    selected = TESTS
    if args.only:
        selected = [fn for fn in TESTS if args.only.lower() in fn.__name__.lower()]

    fails = 0
    for fn in selected:
        try:
            fn()
            if args.verbose:
                print(f"✓ {fn.__name__}")
        except AssertionError as e:
            fails += 1
            print(f"✗ {fn.__name__}: {e}")
        except Exception as e:
            fails += 1
            print(f"✗ {fn.__name__}: unexpected error {e}")

    total = len(selected)
    print(f"\nDone: {total - fails}/{total} passing")
    sys.exit(1 if fails else 0)

if __name__ == "__main__":
    main()
