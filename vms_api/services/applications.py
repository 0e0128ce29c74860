# vms_api/services/applications.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from vms_api.extensions import db
from vms_api.common.errors import (
    APIError,
    ApplicationNotFound,
    BusinessRuleViolation,
    ConcurrentUpdate,
    DuplicateApplication,
    InvalidTransition,
    OpportunityNotFound,
    ValidationFailed,
)
from vms_api.models.opportunity import Application, Opportunity
from vms_api.services.capacity import Reservation, acceptance_pool
from vms_api.services.notifier import Notifier, notify_best_effort

log = logging.getLogger(__name__)

REVIEW_STATES = (Application.STATUS_ACCEPTED, Application.STATUS_REJECTED)


def apply(opportunity_id: int, volunteer_id: int, notes: Optional[str] = None) -> Application:
    """
    Applications are requests only; capacity is charged on acceptance.
    """
    opp = db.session.get(Opportunity, opportunity_id)
    if not opp:
        raise OpportunityNotFound()
    if opp.status != "published":
        raise BusinessRuleViolation("Cannot apply to unpublished opportunity", code="OPPORTUNITY_NOT_PUBLISHED")

    exists = Application.query.filter_by(opportunity_id=opportunity_id, volunteer_id=volunteer_id).first()
    if exists:
        raise DuplicateApplication()

    app_row = Application(
        opportunity_id=opportunity_id,
        volunteer_id=volunteer_id,
        status=Application.STATUS_APPLIED,
        notes=notes,
    )
    db.session.add(app_row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateApplication()
    return app_row


def _move(app_row: Application, from_status: str, to_status: str, now: datetime, notes=None) -> None:
    values = {"status": to_status, "responded_at": now}
    if notes:
        values["notes"] = notes
    res = db.session.execute(
        update(Application)
        .where(Application.id == app_row.id, Application.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdate("Application changed concurrently, please retry")


def review(
    application_id: int,
    status: str,
    notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> Application:
    """
    accepted  -> takes one slot from the opportunity (refused when full)
    rejected  -> gives the slot back if the application held one
    """
    if status not in REVIEW_STATES:
        raise ValidationFailed("Invalid status. Use accepted or rejected.")

    app_row = db.session.get(Application, application_id)
    if not app_row:
        raise ApplicationNotFound()
    current = app_row.status
    if current == status:
        return app_row
    if current == Application.STATUS_WITHDRAWN:
        raise InvalidTransition("Application was withdrawn")

    now = datetime.utcnow()
    try:
        if status == Application.STATUS_ACCEPTED:
            acceptance_pool.try_reserve(app_row.opportunity_id)
        elif current == Application.STATUS_ACCEPTED:
            acceptance_pool.release(Reservation(acceptance_pool.name, app_row.opportunity_id, 1))
        _move(app_row, current, status, now, notes)
        db.session.commit()
    except APIError:
        db.session.rollback()
        raise

    log.info("[applications] %s: %s -> %s", application_id, current, status)
    notify_best_effort(
        notifier,
        app_row.volunteer_id,
        "application_status_changed",
        {"applicationId": app_row.id, "opportunityId": app_row.opportunity_id, "status": status},
    )
    return app_row


def withdraw(application_id: int, volunteer_id: int) -> Application:
    app_row = db.session.get(Application, application_id)
    if not app_row or app_row.volunteer_id != volunteer_id:
        raise ApplicationNotFound()
    current = app_row.status
    if current in (Application.STATUS_WITHDRAWN, Application.STATUS_REJECTED):
        raise InvalidTransition(f"Application already {current}")

    try:
        if current == Application.STATUS_ACCEPTED:
            acceptance_pool.release(Reservation(acceptance_pool.name, app_row.opportunity_id, 1))
        _move(app_row, current, Application.STATUS_WITHDRAWN, datetime.utcnow())
        db.session.commit()
    except APIError:
        db.session.rollback()
        raise
    return app_row
