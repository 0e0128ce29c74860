# vms_api/blueprints/shift_assignments.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from vms_api.common.auth import STAFF_ROLES, current_roles, current_user_id, requires_staff
from vms_api.common.http import ok, fail
from vms_api.common.paging import int_arg, page_limit
from vms_api.common.parsing import as_int, as_int_list, first_of, json_body, parse_ts
from vms_api.models.shift_assignment import ShiftAssignment
from vms_api.services.assignment_engine import EDITABLE_FIELDS, get_assignment_manager

bp = Blueprint(
    "shift_assignments",
    __name__,
    url_prefix="/api/v1/shift-assignments",
)


def _is_staff() -> bool:
    return bool(current_roles() & set(STAFF_ROLES))


# ---------- routes ----------

@bp.get("")
@jwt_required()
def list_assignments():
    """
    GET /api/v1/shift-assignments?shift_id=&volunteer_id=&status=&page=&size=

    Volunteers only ever see their own assignments; staff may filter freely.
    """
    try:
        shift_id = int_arg("shift_id", "shiftId")
        volunteer_id = int_arg("volunteer_id", "volunteerId", "user_id")
    except ValueError as ex:
        return fail(str(ex), 422)

    if not _is_staff():
        volunteer_id = current_user_id()

    page, size = page_limit()
    q = ShiftAssignment.query
    if shift_id:
        q = q.filter(ShiftAssignment.shift_id == shift_id)
    if volunteer_id:
        q = q.filter(ShiftAssignment.volunteer_id == volunteer_id)
    status = (request.args.get("status") or "").strip()
    if status:
        q = q.filter(ShiftAssignment.status == status)

    total = q.count()
    items = (
        q.order_by(ShiftAssignment.id.asc())
        .offset((page - 1) * size)
        .limit(size)
        .all()
    )
    return ok([a.to_dict() for a in items], page=page, size=size, total=total)


@bp.post("")
@requires_staff
def create_assignment():
    """
    POST /api/v1/shift-assignments

    Body:
    {
      "shift_id": 3,
      "volunteer_id": 10,        // or "user_id"
      "task_id": 7               // optional
    }

    409 OVERLAP_CONFLICT / HOUR_CAP_EXCEEDED / DUPLICATE_ASSIGNMENT on rejection.
    """
    d = json_body()
    try:
        shift_id = as_int(first_of(d, "shift_id", "shiftId"), "shift_id")
        volunteer_id = as_int(first_of(d, "volunteer_id", "volunteerId", "user_id"), "volunteer_id")
        task_id = as_int(first_of(d, "task_id", "taskId"), "task_id")
    except ValueError as ex:
        return fail(str(ex), 422)
    if not (shift_id and volunteer_id):
        return fail("shift_id and volunteer_id are required", 422)

    a = get_assignment_manager().create(
        shift_id, volunteer_id, task_id=task_id, assigned_by=current_user_id()
    )
    return ok(a.to_dict(), status=201)


@bp.post("/bulk")
@requires_staff
def bulk_create():
    """
    POST /api/v1/shift-assignments/bulk

    Body: { "shift_id": 3, "task_id": null, "volunteer_ids": [10, 11, 12] }

    Always 200 once the shift/task resolve; per-volunteer rejections are in
    data.errors next to data.created.
    """
    d = json_body()
    try:
        shift_id = as_int(first_of(d, "shift_id", "shiftId"), "shift_id")
        task_id = as_int(first_of(d, "task_id", "taskId"), "task_id")
        volunteer_ids = as_int_list(first_of(d, "volunteer_ids", "volunteerIds", "user_ids") or [], "volunteer_ids")
    except ValueError as ex:
        return fail(str(ex), 422)
    if not shift_id:
        return fail("shift_id is required", 422)
    if not volunteer_ids:
        return fail("volunteer_ids must not be empty", 422)

    result = get_assignment_manager().bulk_create(
        shift_id, volunteer_ids, task_id=task_id, assigned_by=current_user_id()
    )
    return ok(result.to_dict(), created=len(result.created), failed=len(result.errors))


@bp.put("/<int:aid>")
@requires_staff
def update_assignment(aid: int):
    """
    PUT /api/v1/shift-assignments/{id}

    Staff correction. Any of: task_id, assigned_by, status, checked_in_at,
    checked_out_at, hours, notes.

    status only advances one step (assigned -> in-progress -> completed);
    409 INVALID_TRANSITION otherwise.
    """
    d = json_body()
    fields = {k: v for k, v in d.items() if k in EDITABLE_FIELDS}
    unknown = sorted(set(d) - set(EDITABLE_FIELDS))
    if unknown:
        return fail(f"fields not editable: {', '.join(unknown)}", 422)
    try:
        for k in ("task_id", "assigned_by"):
            if k in fields:
                fields[k] = as_int(fields[k], k)
        for k in ("checked_in_at", "checked_out_at"):
            if k in fields:
                fields[k] = parse_ts(fields[k], k)
        if fields.get("hours") is not None:
            fields["hours"] = round(float(fields["hours"]), 2)
    except (TypeError, ValueError) as ex:
        return fail(str(ex), 422)

    a = get_assignment_manager().update(aid, fields)
    return ok(a.to_dict())


@bp.delete("/<int:aid>")
@requires_staff
def delete_assignment(aid: int):
    """
    DELETE /api/v1/shift-assignments/{id}

    Response: { "success": true, "data": { "id": 12, "deleted": true } }
    """
    get_assignment_manager().remove(aid)
    return ok({"id": aid, "deleted": True})
