#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shared core for tasklib: config, diagnostics, errors, timestamps and panels.

"""
from __future__ import annotations
import os, re, sys
import json, time
from datetime import datetime

from dateutil import tz


# ==============================================================================
# TABLE OF CONTENTS (major sections)
# 1) Config & defaults
# 2) Errors
# 3) Diagnostics (diag, diag_log)
# 4) Taskwarrior timestamps
# 5) Panels & formatting helpers
# ==============================================================================


# ==============================================================================
# SECTION: Config & defaults
# ==============================================================================
try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python 3.10 and earlier


_DEFAULTS = {
    "max_duration_len": 256,
    "panel_mode": "rich",
    "fast_color": True,
}

_CONF_CACHE = None


def _diag_enabled() -> bool:
    return os.environ.get("TASKLIB_DIAG") == "1"


def _read_toml(path: str) -> dict:
    if not path or not os.path.isfile(path):
        return {}

    env_path = os.environ.get("TASKLIB_CONFIG") or ""
    env_abs = os.path.abspath(os.path.expanduser(env_path)) if env_path else ""

    try:
        with open(path, "rb") as f:
            return tomllib.load(f) or {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        if env_abs and path == env_abs:
            raise RuntimeError(f"TASKLIB_CONFIG parse failed for {path}: {e}") from e
        if _diag_enabled():
            print(f"[tasklib] Failed to parse TOML: {path}: {e}", file=sys.stderr)
        return {}


def _config_paths() -> list[str]:
    env_path = os.environ.get("TASKLIB_CONFIG")
    if env_path:
        return [os.path.abspath(os.path.expanduser(env_path))]

    def _candidates_in_dir(d: str) -> list[str]:
        d = os.path.abspath(os.path.expanduser(d))
        return [
            os.path.join(d, "config-tasklib.toml"),
            os.path.join(d, "tasklib.toml"),
        ]

    paths: list[str] = []

    trc = os.environ.get("TASKRC")
    if trc:
        paths.extend(_candidates_in_dir(os.path.dirname(os.path.abspath(os.path.expanduser(trc)))))

    # module-adjacent
    paths.extend(_candidates_in_dir(os.path.dirname(os.path.abspath(__file__))))

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.extend(_candidates_in_dir(os.path.join(xdg, "tasklib")))
    paths.extend(_candidates_in_dir("~/.config/tasklib"))
    paths.extend(_candidates_in_dir("~/.task"))

    seen = set()
    out = []
    for p in paths:
        if p in seen:
            continue
        seen.add(p)
        out.append(p)
    return out


def _normalize_keys(d: dict) -> dict:
    # allow users to write keys in any case
    return {str(k).strip().lower(): v for k, v in (d or {}).items()}


def _load_config() -> dict:
    cfg = dict(_DEFAULTS)
    chosen = None

    paths = _config_paths()
    for p in paths:
        data = _read_toml(p)
        if data:
            cfg.update(_normalize_keys(data))
            chosen = p
            break

    if _diag_enabled():
        if chosen:
            print(f"[tasklib] Using config: {chosen}", file=sys.stderr)
        else:
            print("[tasklib] No config file found; using defaults.", file=sys.stderr)
            for p in paths:
                print(f"  - {p}", file=sys.stderr)
    return cfg


def _get_config() -> dict:
    global _CONF_CACHE
    if _CONF_CACHE is None:
        _CONF_CACHE = _load_config()
    return _CONF_CACHE


_CONF = _get_config()


def _conf_raw(key: str):
    return _CONF.get(key)


def _conf_str(key: str, default: str) -> str:
    v = _conf_raw(key)
    if v is None:
        return str(default)
    s = str(v).strip()
    return s if s else str(default)


def _conf_int(
    key: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    v = _conf_raw(key)
    try:
        out = int(str(v).strip())
    except (TypeError, ValueError):
        out = int(default)
    if min_value is not None and out < min_value:
        out = int(min_value)
    if max_value is not None and out > max_value:
        out = int(max_value)
    return out


def _conf_bool(key: str, default: bool = False) -> bool:
    v = _conf_raw(key)
    if v is None:
        return bool(default)
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off", "none"):
        return False
    return bool(default)


MAX_DURATION_LEN = _conf_int("max_duration_len", 256, min_value=16, max_value=4096)
PANEL_MODE = _conf_str("panel_mode", "rich").lower()
FAST_COLOR = _conf_bool("fast_color", True)


# ==============================================================================
# SECTION: Errors
# ==============================================================================
class TasklibError(Exception):
    pass


class ParseError(TasklibError, ValueError):
    pass


class DurationSyntaxError(ParseError):
    """Text matched no duration grammar alternative."""

    def __init__(self, message: str, text: str = "", contexts: tuple[str, ...] = ()):
        super().__init__(message)
        self.text = text
        self.contexts = tuple(contexts)


class TimestampFormatError(ParseError):
    pass


class CoercionError(TasklibError, TypeError):
    """A UDA value cannot be reinterpreted as the requested kind."""

    def __init__(self, source_kind: str, target_kind: str, detail: str = ""):
        msg = f"Cannot coerce {source_kind} to {target_kind}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.source_kind = source_kind
        self.target_kind = target_kind


class NumericOverflow(TasklibError, OverflowError):
    def __init__(self, field: str, value: int, limit: int):
        super().__init__(f"{field} value {value} exceeds {limit}")
        self.field = field
        self.value = value
        self.limit = limit


class TaskDecodeError(TasklibError, ValueError):
    pass


# ==============================================================================
# SECTION: Diagnostics
# ==============================================================================
_DIAG_LOG_REDACT_KEYS = frozenset({"description", "annotation", "annotations"})


def diag_log_redact(data: dict, redact_keys: frozenset | None = None) -> dict:
    """Replace sensitive task fields before they reach the diag log."""
    keys = redact_keys or _DIAG_LOG_REDACT_KEYS
    return {k: ("[redacted]" if k in keys else v) for k, v in (data or {}).items()}


def _diag_log_path(data_dir: str | None = None) -> str:
    base = data_dir or os.environ.get("TASKDATA") or "~/.task"
    return os.path.join(os.path.abspath(os.path.expanduser(base)), ".tasklib_diag.jsonl")


def diag_log(msg, component: str, data_dir: str | None = None) -> None:
    """Append a JSONL diagnostic log entry (when TASKLIB_DIAG_LOG=1)."""
    if os.environ.get("TASKLIB_DIAG_LOG") != "1":
        return
    path = _diag_log_path(data_dir)
    try:
        max_bytes = int(os.environ.get("TASKLIB_DIAG_LOG_MAX_BYTES") or 262144)
    except ValueError:
        max_bytes = 262144
    payload = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "component": component,
        "pid": os.getpid(),
    }
    if isinstance(msg, dict):
        red = diag_log_redact(msg)
        payload["msg"] = str(red.get("msg") or "")
        payload["data"] = red
    else:
        payload["msg"] = str(msg)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        if max_bytes > 0 and os.path.exists(path) and os.stat(path).st_size > max_bytes:
            os.replace(path, path.replace(".jsonl", f".overflow.{int(time.time())}.jsonl"))
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n")
    except OSError:
        # diagnostics must never break the caller
        pass


def diag(msg, component: str = "tasklib", data_dir: str | None = None) -> None:
    """Write diagnostics to stderr when TASKLIB_DIAG=1 and to the diag log when TASKLIB_DIAG_LOG=1."""
    if _diag_enabled():
        text = msg.get("msg", msg) if isinstance(msg, dict) else msg
        try:
            sys.stderr.write(f"[{component}] {text}\n")
        except (OSError, ValueError):
            pass
    diag_log(msg, component, data_dir)


# ==============================================================================
# SECTION: Taskwarrior timestamps
# ==============================================================================
TW_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
UTC_ZONE = tz.tzutc()

_TW_DATE_RE = re.compile(r"[0-9]{8}T[0-9]{6}Z")


def parse_tw_datetime(s: str) -> datetime:
    """Parse the compact YYYYMMDDTHHMMSSZ form into an aware UTC datetime."""
    if not isinstance(s, str) or not _TW_DATE_RE.fullmatch(s):
        raise TimestampFormatError(f"Invalid timestamp {s!r}; expected YYYYMMDDTHHMMSSZ")
    try:
        return datetime.strptime(s, TW_DATE_FORMAT).replace(tzinfo=UTC_ZONE)
    except ValueError as e:
        raise TimestampFormatError(f"Invalid timestamp {s!r}: {e}") from e


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC_ZONE)
    return dt.astimezone(UTC_ZONE)


def format_tw_datetime(dt: datetime) -> str:
    return ensure_utc(dt).strftime(TW_DATE_FORMAT)


# ==============================================================================
# SECTION: Panels & formatting helpers
# ==============================================================================
_RICH_TAG_RE = re.compile(r"\[/\]|\[/?[A-Za-z0-9_ ]+\]")

PANEL_THEMES = {
    "info": {"border": "blue", "title": "cyan", "label": "cyan"},
    "ok": {"border": "green", "title": "bright_green", "label": "green"},
    "error": {"border": "red", "title": "bright_red", "label": "red"},
}


def strip_rich_markup(s: str) -> str:
    # Strip simple Rich tags; preserve bracketed literals with non-word chars.
    if not s:
        return s
    return _RICH_TAG_RE.sub("", s)


def term_width(stream=None, default: int = 80) -> int:
    stream = stream or sys.stderr
    try:
        w = os.get_terminal_size(stream.fileno()).columns
    except (AttributeError, OSError, ValueError):
        w = default
    return max(40, min(100, int(w)))


def fast_color_enabled(stream=None, fast_color: bool = True) -> bool:
    stream = stream or sys.stderr
    if not getattr(stream, "isatty", lambda: False)():
        return False
    if os.environ.get("NO_COLOR"):
        return False
    return bool(fast_color)


def ansi(code: str) -> str:
    return f"\x1b[{code}m"


def panel_line_from_rows(title, rows) -> str:
    title_txt = strip_rich_markup(str(title))
    parts = []
    for k, v in rows or []:
        if k is None or v in (None, ""):
            continue
        parts.append(f"{strip_rich_markup(str(k))}: {strip_rich_markup(str(v))}")
    if not parts:
        return title_txt
    return f"{title_txt} | " + " | ".join(parts)


def _render_fast(title, rows, *, kind: str, stream, fast_color: bool) -> None:
    width = term_width(stream)
    use_color = fast_color_enabled(stream, fast_color=fast_color)
    reset = ansi("0") if use_color else ""
    bold = ansi("1") if use_color else ""
    title_color = (ansi("31") if kind == "error" else ansi("36")) if use_color else ""
    red = ansi("31") if use_color else ""

    label_w = max([len(str(k)) for k, _v in rows if k is not None] or [6])
    label_w = min(14, max(6, label_w))

    delim = "─" * width
    stream.write(delim + "\n")
    stream.write(bold + title_color + strip_rich_markup(str(title)) + reset + "\n")
    for k, v in rows:
        if k is None:
            stream.write("\n")
            continue
        k = strip_rich_markup(str(k))
        v = "" if v is None else strip_rich_markup(str(v))
        style = red if "error" in k.lower() else ""
        stream.write(f"{k:<{label_w}} " + style + v + (reset if style else "") + "\n")
    stream.write(delim + "\n")


def render_panel(
    title,
    rows,
    *,
    kind: str = "info",
    panel_mode: str | None = None,
    fast_color: bool | None = None,
    stream=None,
) -> None:
    """
    Render a titled label/value panel using Rich, or a plain fallback.

    ``panel_mode`` is ``rich`` (default), ``fast`` or ``line``. Rich output
    is only used on a terminal; otherwise the fast layout is written.
    """
    stream = stream or sys.stderr
    mode = str(panel_mode or PANEL_MODE).strip().lower()
    fast_color = FAST_COLOR if fast_color is None else fast_color
    rows = list(rows or [])

    if mode == "line":
        stream.write(panel_line_from_rows(title, rows) + "\n")
        return

    if mode != "rich" or not getattr(stream, "isatty", lambda: False)():
        _render_fast(title, rows, kind=kind, stream=stream, fast_color=fast_color)
        return

    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    theme = PANEL_THEMES.get(kind) or PANEL_THEMES["info"]
    console = Console(file=stream, force_terminal=True)
    t = Table.grid(padding=(0, 1), expand=False)
    t.add_column(style=f"bold {theme['label']}", no_wrap=True, justify="right")
    t.add_column(style="white")
    for k, v in rows:
        if k is None:
            t.add_row("", "" if v is None else str(v))
            continue
        label_text = Text(str(k))
        if "error" in str(k).lower():
            label_text.stylize("bold red")
        t.add_row(label_text, Text("" if v is None else str(v)))

    console.print(
        Panel(
            t,
            title=Text(str(title), style=f"bold {theme['title']}"),
            border_style=theme["border"],
            expand=False,
            padding=(0, 1),
        )
    )
