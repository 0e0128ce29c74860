# vms_api/services/hours_bridge.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from vms_api.extensions import db
from vms_api.models.volunteer_hour import VolunteerHour

AUTO_LOG_NOTE = "auto-logged via check-out"


def hours_for_assignment(assignment_id: int) -> Optional[VolunteerHour]:
    return VolunteerHour.query.filter(VolunteerHour.assignment_id == assignment_id).first()


def emit_pending_hours(assignment, shift, hours: float, at: datetime) -> VolunteerHour:
    """
    Add the pending hours entry for a completed assignment to the current
    transaction. Does not commit: the check-out transition and this row are
    committed (or rolled back) together.

    Idempotent per assignment; the unique constraint on assignment_id backs
    this up at the database level.
    """
    existing = hours_for_assignment(assignment.id)
    if existing is not None:
        return existing

    rec = VolunteerHour(
        volunteer_id=assignment.volunteer_id,
        organization_id=shift.organization_id,
        event_id=shift.event_id,
        shift_id=shift.id,
        assignment_id=assignment.id,
        date=at.date(),
        hours=hours,
        status=VolunteerHour.STATUS_PENDING,
        notes=AUTO_LOG_NOTE,
    )
    db.session.add(rec)
    db.session.flush()
    return rec
