# vms_api/common/parsing.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from flask import request

_DT_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)


def json_body() -> dict:
    d = request.get_json(silent=True) or {}
    return d if isinstance(d, dict) else {}


def as_int(val: Any, field: str) -> Optional[int]:
    if val in (None, "", "null"):
        return None
    if isinstance(val, bool):
        raise ValueError(f"{field} must be integer")
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be integer")


def as_int_list(val: Any, field: str) -> list[int]:
    if not isinstance(val, (list, tuple)):
        raise ValueError(f"{field} must be a list of integers")
    out = []
    for v in val:
        i = as_int(v, field)
        if i is None:
            raise ValueError(f"{field} must not contain empty entries")
        out.append(i)
    return out


def parse_ts(s: Any, field: str = "timestamp") -> Optional[datetime]:
    """
    ISO-8601 (with 'T' or space) or one of _DT_FORMATS. Timezone-aware input is
    converted to naive UTC to match the stored columns.
    """
    if s in (None, ""):
        return None
    if isinstance(s, datetime):
        return s
    raw = str(s).strip()
    try:
        dt = datetime.fromisoformat(raw.replace(" ", "T").replace("Z", "+00:00"))
    except ValueError:
        dt = None
        for fmt in _DT_FORMATS:
            try:
                dt = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            raise ValueError(f"{field} must be an ISO datetime")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def first_of(d: dict, *keys: str):
    """Body fields arrive as snake_case or camelCase depending on the client."""
    for k in keys:
        if k in d:
            return d[k]
    return None
