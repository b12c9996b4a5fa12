#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Task JSON as Taskwarrior exports it and hooks receive it on stdin.

Only the duration, timestamp and UDA fields get real types; every unknown
top-level key is a UDA and is written back flat, as a bare scalar.
"""
from __future__ import annotations
import json, math
from dataclasses import dataclass, field
from datetime import datetime

from tasklib_core import (
    TaskDecodeError,
    TasklibError,
    diag,
    format_tw_datetime,
    parse_tw_datetime,
)
from tasklib_duration import Duration, duration_from_str, format_duration
from tasklib_uda import UdaValue


STATUSES = ("pending", "completed", "deleted", "recurring", "waiting")

_OPTIONAL_DATES = ("start", "end", "due", "wait", "scheduled", "until")
_DURATION_FIELDS = ("elapsed", "recur")
# Core fields tasklib does not model; carried through as decoded JSON
_PASSTHROUGH = ("depends", "parent", "mask", "imask", "rtype", "template", "last")

KNOWN_FIELDS = frozenset(
    ("id", "uuid", "description", "status", "project", "tags", "urgency", "annotations",
     "entry", "modified")
    + _OPTIONAL_DATES
    + _DURATION_FIELDS
    + _PASSTHROUGH
)


def _date(data: dict, key: str) -> datetime:
    try:
        return parse_tw_datetime(data[key])
    except KeyError:
        raise TaskDecodeError(f"Task is missing required field '{key}'") from None
    except TasklibError as e:
        raise TaskDecodeError(f"Task field '{key}': {e}") from e


def _opt_date(data: dict, key: str) -> datetime | None:
    # Taskwarrior writes "" for cleared dates in some exports
    if data.get(key) in (None, ""):
        return None
    return _date(data, key)


def _opt_duration(data: dict, key: str) -> Duration | None:
    v = data.get(key)
    if v in (None, ""):
        return None
    if not isinstance(v, str):
        raise TaskDecodeError(f"Task field '{key}' must be a duration string, got {type(v).__name__}")
    try:
        return duration_from_str(v)
    except (TasklibError, OverflowError) as e:
        raise TaskDecodeError(f"Task field '{key}': {e}") from e


@dataclass
class Annotation:
    entry: datetime
    description: str

    def to_dict(self) -> dict:
        return {"entry": format_tw_datetime(self.entry), "description": self.description}


@dataclass
class Task:
    uuid: str
    description: str
    status: str
    entry: datetime
    modified: datetime
    id: int = 0
    project: str = ""
    tags: list[str] = field(default_factory=list)
    urgency: float = 0.0
    start: datetime | None = None
    end: datetime | None = None
    due: datetime | None = None
    wait: datetime | None = None
    scheduled: datetime | None = None
    until: datetime | None = None
    elapsed: Duration | None = None
    recur: Duration | None = None
    annotations: list[Annotation] = field(default_factory=list)
    udas: dict[str, UdaValue] = field(default_factory=dict)
    extra: dict = field(default_factory=dict)

    # -- decoding --------------------------------------------------------------
    @classmethod
    def from_json(cls, raw) -> Task:
        """Build a task from a JSON string/bytes or an already-decoded dict."""
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise TaskDecodeError(f"Task JSON is invalid: {e}") from e
        if not isinstance(raw, dict):
            raise TaskDecodeError(f"Task JSON must be an object, got {type(raw).__name__}")
        try:
            return cls._from_dict(raw)
        except TaskDecodeError as e:
            diag({"msg": f"task decode failed: {e}", "uuid": raw.get("uuid")}, component="tasklib.task")
            raise

    @classmethod
    def _from_dict(cls, data: dict) -> Task:
        for key in ("uuid", "description", "status"):
            if not isinstance(data.get(key), str):
                raise TaskDecodeError(f"Task field '{key}' is missing or not a string")
        if data["status"] not in STATUSES:
            raise TaskDecodeError(f"Unknown task status {data['status']!r}")

        try:
            task_id = int(data.get("id") or 0)
            urgency = float(data.get("urgency") or 0.0)
        except (TypeError, ValueError) as e:
            raise TaskDecodeError(f"Task id/urgency is not numeric: {e}") from e
        if not math.isfinite(urgency):
            raise TaskDecodeError(f"Task urgency must be finite, got {urgency!r}")

        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise TaskDecodeError("Task field 'tags' must be a list of strings")

        annotations = []
        for a in data.get("annotations") or []:
            if not isinstance(a, dict) or not isinstance(a.get("description"), str):
                raise TaskDecodeError("Task annotation must have an entry and a description")
            annotations.append(Annotation(entry=_date(a, "entry"), description=a["description"]))

        udas = {}
        for key, value in data.items():
            if key in KNOWN_FIELDS:
                continue
            try:
                udas[key] = UdaValue.from_json(value)
            except TasklibError as e:
                raise TaskDecodeError(f"UDA '{key}': {e}") from e

        return cls(
            uuid=data["uuid"],
            description=data["description"],
            status=data["status"],
            entry=_date(data, "entry"),
            modified=_date(data, "modified"),
            id=task_id,
            project=str(data.get("project") or ""),
            tags=list(tags),
            urgency=urgency,
            annotations=annotations,
            udas=udas,
            extra={k: data[k] for k in _PASSTHROUGH if k in data},
            **{k: _opt_date(data, k) for k in _OPTIONAL_DATES},
            **{k: _opt_duration(data, k) for k in _DURATION_FIELDS},
        )

    # -- UDA map ---------------------------------------------------------------
    def get_uda(self, name: str) -> UdaValue | None:
        return self.udas.get(name)

    def set_uda(self, name: str, value) -> UdaValue:
        """Replace the attribute's value; native values are wrapped first."""
        if name in KNOWN_FIELDS:
            raise ValueError(f"'{name}' is a core task field, not a UDA")
        uv = UdaValue.of(value)
        self.udas[name] = uv
        return uv

    def remove_uda(self, name: str) -> UdaValue | None:
        return self.udas.pop(name, None)

    # -- encoding --------------------------------------------------------------
    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "uuid": self.uuid,
            "description": self.description,
            "status": self.status,
        }
        if self.project:
            out["project"] = self.project
        if self.tags:
            out["tags"] = list(self.tags)
        out["entry"] = format_tw_datetime(self.entry)
        out["modified"] = format_tw_datetime(self.modified)
        for key in _OPTIONAL_DATES:
            v = getattr(self, key)
            if v is not None:
                out[key] = format_tw_datetime(v)
        for key in _DURATION_FIELDS:
            v = getattr(self, key)
            if v is not None:
                out[key] = format_duration(v)
        out["urgency"] = self.urgency
        if self.annotations:
            out["annotations"] = [a.to_dict() for a in self.annotations]
        out.update(self.extra)
        for name, uv in self.udas.items():
            out[name] = uv.to_json()
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"), allow_nan=False)
