# vms_api/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def page_limit():
    """
    ?page=2&size=50  (size also accepted as ?limit=)
    Invalid values fall back to defaults; size is clamped to [1, MAX_SIZE].
    """
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except (TypeError, ValueError):
        page = DEFAULT_PAGE
    raw = request.args.get("size", request.args.get("limit", DEFAULT_SIZE))
    try:
        size = max(1, min(int(raw), MAX_SIZE))
    except (TypeError, ValueError):
        size = DEFAULT_SIZE
    return page, size


def int_arg(name: str, *aliases: str):
    """Read an optional integer query arg; raises ValueError on junk."""
    raw = request.args.get(name)
    for alias in aliases:
        if raw is None:
            raw = request.args.get(alias)
    if raw in (None, "", "null"):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be integer")
