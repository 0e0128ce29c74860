# vms_api/blueprints/resource_assignments.py
from __future__ import annotations

from flask import Blueprint, current_app

from vms_api.common.auth import requires_staff
from vms_api.common.http import ok, fail
from vms_api.common.parsing import as_int, first_of, json_body, parse_ts
from vms_api.common.errors import ResourceNotFound
from vms_api.extensions import db
from vms_api.models.resource import Resource, ResourceAssignment
from vms_api.services import resources as svc

bp = Blueprint("resource_assignments", __name__, url_prefix="/api/v1")


@bp.get("/resources/<int:resource_id>/assignments")
@requires_staff
def list_resource_assignments(resource_id: int):
    if not db.session.get(Resource, resource_id):
        raise ResourceNotFound()
    rows = (
        ResourceAssignment.query.filter_by(resource_id=resource_id)
        .order_by(ResourceAssignment.assigned_at.desc())
        .all()
    )
    return ok([r.to_dict() for r in rows])


@bp.post("/resources/<int:resource_id>/assignments")
@requires_staff
def checkout(resource_id: int):
    """
    POST /api/v1/resources/{id}/assignments

    Body:
    {
      "quantity": 2,                       // default 1
      "assignmentType": "volunteer",       // volunteer | event | maintenance
      "relatedId": 10,
      "expectedReturnAt": "2025-10-10T18:00:00",
      "notes": "..."
    }
    """
    d = json_body()
    try:
        qty = as_int(first_of(d, "quantity"), "quantity")
        related_id = as_int(first_of(d, "related_id", "relatedId"), "related_id")
        expected = parse_ts(first_of(d, "expected_return_at", "expectedReturnAt"), "expected_return_at")
    except ValueError as ex:
        return fail(str(ex), 422)

    ra = svc.checkout(
        resource_id,
        quantity=qty if qty is not None else 1,
        assignment_type=first_of(d, "assignment_type", "assignmentType") or ResourceAssignment.TYPE_VOLUNTEER,
        related_id=related_id,
        expected_return_at=expected,
        notes=d.get("notes"),
        notifier=current_app.extensions.get("notifier"),
    )
    return ok(ra.to_dict(), status=201)


@bp.post("/resource-assignments/<int:assignment_id>/return")
@requires_staff
def mark_returned(assignment_id: int):
    """
    POST /api/v1/resource-assignments/{id}/return
    Body: { "condition": "good" | "damaged", "notes": "...", "returnedAt": "..." }
    """
    d = json_body()
    try:
        returned_at = parse_ts(first_of(d, "returned_at", "returnedAt"), "returned_at")
    except ValueError as ex:
        return fail(str(ex), 422)
    ra = svc.mark_returned(
        assignment_id,
        condition=d.get("condition"),
        notes=d.get("notes"),
        returned_at=returned_at,
    )
    return ok(ra.to_dict())
