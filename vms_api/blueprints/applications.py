# vms_api/blueprints/applications.py
from __future__ import annotations

from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required

from vms_api.common.auth import current_user_id, requires_staff
from vms_api.common.http import ok, fail
from vms_api.common.parsing import json_body
from vms_api.services import applications as svc

bp = Blueprint("applications", __name__, url_prefix="/api/v1")


@bp.post("/opportunities/<int:opportunity_id>/applications")
@jwt_required()
def apply(opportunity_id: int):
    """
    POST /api/v1/opportunities/{id}/applications   body: { "notes": "..." }
    Capacity is not charged here; only acceptance takes a slot.
    """
    vid = current_user_id()
    if vid is None:
        return fail("Unauthorized", 401)
    d = json_body()
    row = svc.apply(opportunity_id, vid, notes=d.get("notes"))
    return ok(row.to_dict(), status=201)


@bp.put("/applications/<int:application_id>")
@requires_staff
def review(application_id: int):
    """
    PUT /api/v1/applications/{id}   body: { "status": "accepted" | "rejected", "notes": "..." }

    409 CAPACITY_EXCEEDED when the opportunity is full.
    """
    d = json_body()
    status = (d.get("status") or "").strip().lower()
    row = svc.review(
        application_id,
        status,
        notes=d.get("notes"),
        notifier=current_app.extensions.get("notifier"),
    )
    return ok(row.to_dict())


@bp.post("/applications/<int:application_id>/withdraw")
@jwt_required()
def withdraw(application_id: int):
    vid = current_user_id()
    if vid is None:
        return fail("Unauthorized", 401)
    row = svc.withdraw(application_id, vid)
    return ok(row.to_dict())
