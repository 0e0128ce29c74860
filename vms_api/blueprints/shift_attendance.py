# vms_api/blueprints/shift_attendance.py
from __future__ import annotations

from flask import Blueprint
from flask_jwt_extended import jwt_required

from vms_api.common.auth import current_user_id, requires_staff
from vms_api.common.http import ok, fail
from vms_api.common.paging import int_arg
from vms_api.services.assignment_engine import get_assignment_manager
from vms_api.services.hours_bridge import hours_for_assignment

bp = Blueprint(
    "shift_attendance",
    __name__,
    url_prefix="/api/v1/shifts",
)


@bp.post("/<int:shift_id>/check-in")
@jwt_required()
def check_in(shift_id: int):
    """
    POST /api/v1/shifts/{shift_id}/check-in
    The caller (JWT identity) is the volunteer.
    """
    vid = current_user_id()
    if vid is None:
        return fail("Unauthorized", 401)

    a = get_assignment_manager().check_in(shift_id, vid)
    return ok(a.to_dict())


@bp.post("/<int:shift_id>/check-out")
@jwt_required()
def check_out(shift_id: int):
    """
    POST /api/v1/shifts/{shift_id}/check-out

    Response:
    {
      "success": true,
      "data": {
        "assignment": {..., "status": "completed", "hours": 4.5},
        "volunteer_hour": {..., "hours": 4.5, "status": "pending"}
      }
    }
    """
    vid = current_user_id()
    if vid is None:
        return fail("Unauthorized", 401)

    a = get_assignment_manager().check_out(shift_id, vid)
    rec = hours_for_assignment(a.id)
    return ok({
        "assignment": a.to_dict(),
        "volunteer_hour": rec.to_dict() if rec else None,
    })


@bp.get("/<int:shift_id>/conflicts")
@requires_staff
def check_conflicts(shift_id: int):
    """
    GET /api/v1/shifts/{shift_id}/conflicts?volunteer_id=10

    Dry run of the admission rules; nothing is written.
    """
    try:
        vid = int_arg("volunteer_id", "volunteerId", "userId")
    except ValueError as ex:
        return fail(str(ex), 422)
    if not vid:
        return fail("volunteer_id is required", 422)
    try:
        task_id = int_arg("task_id", "taskId")
    except ValueError as ex:
        return fail(str(ex), 422)

    return ok(get_assignment_manager().preview(shift_id, vid, task_id=task_id))
