#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Check Taskwarrior duration strings the way tasklib reads them.

Run:
  python3 tasklib_duration_check.py "3 days" P1M weekdays
  printf 'fortnight\\n2 qtrs\\n' | python3 tasklib_duration_check.py --json
"""

from __future__ import annotations

import argparse
import json
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import tasklib_core as core  # noqa: E402
from tasklib_duration import duration_from_str  # noqa: E402


def check_one(text: str) -> dict:
    try:
        d = duration_from_str(text)
    except (core.TasklibError, OverflowError) as e:
        return {"input": text, "ok": False, "error": str(e)}
    return {
        "input": text,
        "ok": True,
        "canonical": str(d),
        "iso": d.to_iso(),
        "smoothed": d.smooth().to_iso(),
        "seconds": d.total_seconds(),
        "weekdays": d.is_weekdays,
    }


def _rows(result: dict) -> list[tuple[str, str]]:
    if not result["ok"]:
        return [("input", result["input"]), ("error", result["error"])]
    rows = [
        ("input", result["input"]),
        ("iso", result["iso"]),
        ("smoothed", result["smoothed"]),
        ("seconds", str(result["seconds"])),
    ]
    if result["weekdays"]:
        rows.append(("special", "weekdays"))
    return rows


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Parse and normalize Taskwarrior durations")
    ap.add_argument("durations", nargs="*", help="duration strings (default: read stdin lines)")
    ap.add_argument("--json", action="store_true", help="emit JSON only")
    ap.add_argument("--panel", choices=("rich", "fast", "line"), default=None,
                    help="panel style (default: panel_mode from config)")
    args = ap.parse_args(argv)

    inputs = args.durations
    if not inputs:
        inputs = [ln.rstrip("\n") for ln in sys.stdin if ln.strip()]

    results = [check_one(s) for s in inputs]

    if args.json:
        print(json.dumps(results, ensure_ascii=False, separators=(",", ":")))
    else:
        for r in results:
            core.render_panel(
                r["canonical"] if r["ok"] else "invalid duration",
                _rows(r),
                kind="ok" if r["ok"] else "error",
                panel_mode=args.panel,
                stream=sys.stdout,
            )

    return 0 if all(r["ok"] for r in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
