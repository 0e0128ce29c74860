# vms_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Optional, Set

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from vms_api.common.http import fail

STAFF_ROLES = ("admin", "organizer")


# ---------- helpers ----------

def current_user_id() -> Optional[int]:
    """
    Identity shapes accepted:
      - int user id
      - numeric string (flask-jwt-extended >= 4.6 requires string subjects)
      - {"user_id": 7, ...} / {"id": 7, ...}
    """
    ident = get_jwt_identity()
    if isinstance(ident, dict):
        ident = ident.get("user_id") or ident.get("id")
    if ident is None:
        return None
    try:
        return int(ident)
    except (TypeError, ValueError):
        return None


def current_roles() -> Set[str]:
    claims = get_jwt() or {}
    return set(claims.get("roles") or [])


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    Roles come from the token's 'roles' claim; membership lookup lives in the
    identity service that issues the token. 'admin' role always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            if current_user_id() is None:
                return fail("Unauthorized", status=401)

            roles = current_roles()
            if "admin" in roles:
                return fn(*args, **kwargs)

            if codes and not any(r in roles for r in codes):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer


def requires_staff(fn):
    return requires_roles(*STAFF_ROLES)(fn)
