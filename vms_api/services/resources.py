# vms_api/services/resources.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update

from vms_api.extensions import db
from vms_api.common.errors import (
    APIError,
    InvalidTransition,
    NotFound,
    ResourceNotFound,
    ValidationFailed,
)
from vms_api.models.resource import Resource, ResourceAssignment
from vms_api.services.capacity import Reservation, resource_pool
from vms_api.services.notifier import Notifier, notify_best_effort

log = logging.getLogger(__name__)

DAMAGED = "damaged"


def checkout(
    resource_id: int,
    quantity: int = 1,
    assignment_type: str = ResourceAssignment.TYPE_VOLUNTEER,
    related_id: Optional[int] = None,
    expected_return_at: Optional[datetime] = None,
    notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> ResourceAssignment:
    if assignment_type not in ResourceAssignment.TYPES:
        raise ValidationFailed(f"assignment_type must be one of {', '.join(ResourceAssignment.TYPES)}")

    try:
        resource_pool.try_reserve(resource_id, quantity)

        ra = ResourceAssignment(
            resource_id=resource_id,
            assignment_type=assignment_type,
            related_id=related_id,
            quantity=int(quantity),
            status=ResourceAssignment.STATUS_ASSIGNED,
            assigned_at=datetime.utcnow(),
            expected_return_at=expected_return_at,
            notes=notes,
        )
        db.session.add(ra)

        resource = db.session.get(Resource, resource_id)
        if assignment_type == ResourceAssignment.TYPE_MAINTENANCE:
            resource.status = Resource.STATUS_MAINTENANCE
        elif resource.serial_number:
            # unique item: it is with someone now
            resource.status = Resource.STATUS_IN_USE
        db.session.commit()
    except APIError:
        db.session.rollback()
        raise

    log.info("[resources] resource %s: %s out (%s)", resource_id, ra.quantity, assignment_type)
    notify_best_effort(
        notifier,
        related_id if assignment_type == ResourceAssignment.TYPE_VOLUNTEER else None,
        "resource.assignment.created",
        {"resourceId": resource_id, "assignmentId": ra.id, "quantity": ra.quantity},
    )
    return ra


def mark_returned(
    assignment_id: int,
    condition: Optional[str] = None,
    notes: Optional[str] = None,
    returned_at: Optional[datetime] = None,
) -> ResourceAssignment:
    """
    Returned units go back to the pool (capped at quantity_total) unless the
    condition is 'damaged', in which case they stay out of circulation.
    """
    ra = db.session.get(ResourceAssignment, assignment_id)
    if not ra:
        raise NotFound("Resource assignment not found", code="RESOURCE_ASSIGNMENT_NOT_FOUND")

    returned_at = returned_at or datetime.utcnow()
    merged_notes = "\n".join(n for n in (ra.notes, notes) if n) or None
    damaged = (condition or "").strip().lower() == DAMAGED

    try:
        res = db.session.execute(
            update(ResourceAssignment)
            .where(
                ResourceAssignment.id == assignment_id,
                ResourceAssignment.status == ResourceAssignment.STATUS_ASSIGNED,
                ResourceAssignment.returned_at.is_(None),
            )
            .values(
                status=ResourceAssignment.STATUS_RETURNED,
                returned_at=returned_at,
                condition=condition,
                notes=merged_notes,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise InvalidTransition("Already returned", code="ALREADY_RETURNED")

        resource = db.session.get(Resource, ra.resource_id)
        if resource is None:
            raise ResourceNotFound()

        if not damaged:
            resource_pool.release(Reservation(resource_pool.name, ra.resource_id, ra.quantity))

        if damaged and resource.serial_number:
            resource.status = Resource.STATUS_DAMAGED
        elif ra.assignment_type == ResourceAssignment.TYPE_MAINTENANCE or resource.serial_number:
            resource.status = Resource.STATUS_AVAILABLE
        db.session.commit()
    except APIError:
        db.session.rollback()
        raise

    db.session.refresh(ra)
    log.info("[resources] assignment %s returned (%s)", assignment_id, condition or "ok")
    return ra
