# vms_api/services/assignment_engine.py
"""
Shift assignment & attendance engine.

Admission (create / bulk) serializes per volunteer: the volunteer's row in
volunteer_schedule_locks is read FOR UPDATE (where the backend supports it)
and its version is bumped with a compare-and-set before the assignment is
inserted, all in one transaction. A writer that lost the race rolls back and
re-runs the checks against the new calendar.

Lifecycle transitions are conditional UPDATEs guarded on the current status,
so a double check-in / check-out can only succeed once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from vms_api.extensions import db
from vms_api.common.errors import (
    APIError,
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    AssignmentNotFound,
    ConcurrentUpdate,
    DuplicateAssignment,
    HourCapExceeded,
    InvalidTransition,
    NotCheckedIn,
    OverlapConflict,
    ShiftNotFound,
    TaskNotFound,
    ValidationFailed,
)
from vms_api.models.shift import Shift, ShiftTask
from vms_api.models.shift_assignment import ShiftAssignment, VolunteerScheduleLock
from vms_api.models.volunteer_hour import VolunteerHour
from vms_api.services.hours_bridge import emit_pending_hours, hours_for_assignment
from vms_api.services.intervals import (
    DEFAULT_DAILY_HOURS_LIMIT,
    CheckOutcome,
    TimeWindow,
    classify_daily_cap,
    classify_overlap,
    committed_hours_on_day,
    find_overlap,
    worked_hours,
)
from vms_api.services.notifier import Notifier, notify_best_effort

log = logging.getLogger(__name__)

NowFn = Callable[[], datetime]

EDITABLE_FIELDS = ("task_id", "assigned_by", "status", "checked_in_at", "checked_out_at", "hours", "notes")

LIFECYCLE = (
    ShiftAssignment.STATUS_ASSIGNED,
    ShiftAssignment.STATUS_IN_PROGRESS,
    ShiftAssignment.STATUS_COMPLETED,
)
# the only status moves a staff correction may make
NEXT_STATUS = {
    ShiftAssignment.STATUS_ASSIGNED: ShiftAssignment.STATUS_IN_PROGRESS,
    ShiftAssignment.STATUS_IN_PROGRESS: ShiftAssignment.STATUS_COMPLETED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class BulkItemError:
    volunteer_id: Any
    code: str
    error: str

    def to_dict(self):
        return {"volunteer_id": self.volunteer_id, "code": self.code, "error": self.error}


@dataclass
class BulkResult:
    created: List[ShiftAssignment] = field(default_factory=list)
    errors: List[BulkItemError] = field(default_factory=list)

    def to_dict(self):
        return {
            "created": [a.to_dict() for a in self.created],
            "errors": [e.to_dict() for e in self.errors],
        }


class AssignmentManager:
    def __init__(
        self,
        daily_hours_limit: float = DEFAULT_DAILY_HOURS_LIMIT,
        notifier: Optional[Notifier] = None,
        now_fn: Optional[NowFn] = None,
        max_retries: int = 3,
    ):
        self.daily_hours_limit = float(daily_hours_limit)
        self.notifier = notifier
        self.now_fn = now_fn or _utcnow
        self.max_retries = max(1, int(max_retries))

    # ---------- lookups ----------

    def _load_shift(self, shift_id) -> Shift:
        shift = db.session.get(Shift, shift_id) if shift_id is not None else None
        if shift is None:
            raise ShiftNotFound(payload={"shift_id": shift_id})
        return shift

    def _ensure_task(self, shift: Shift, task_id) -> None:
        if task_id is None:
            return
        task = db.session.get(ShiftTask, task_id)
        if task is None or task.shift_id != shift.id:
            raise TaskNotFound(payload={"task_id": task_id, "shift_id": shift.id})

    def _committed_windows(self, volunteer_id: int) -> List[TimeWindow]:
        rows = (
            db.session.query(Shift)
            .join(ShiftAssignment, ShiftAssignment.shift_id == Shift.id)
            .filter(ShiftAssignment.volunteer_id == volunteer_id)
            .filter(ShiftAssignment.status.in_(ShiftAssignment.COMMITTED_STATES))
            .all()
        )
        return [TimeWindow.of(s) for s in rows]

    # ---------- admission checks ----------

    def evaluate(self, shift: Shift, volunteer_id: int, task_id=None) -> Dict[str, Any]:
        """
        Run every admission rule without writing. Returns a JSON-safe report;
        `admissible` is False when any rule would reject.
        """
        candidate = TimeWindow.of(shift)
        committed = self._committed_windows(volunteer_id)

        duplicate = self._find_duplicate(shift.id, volunteer_id, task_id)
        overlap = classify_overlap(candidate, committed)
        cap = classify_daily_cap(candidate, committed, self.daily_hours_limit)
        clash = find_overlap(candidate, committed) if overlap is CheckOutcome.CONFLICT else None

        day_hours = committed_hours_on_day(candidate.start, committed) if candidate.is_complete else None
        return {
            "shift_id": shift.id,
            "volunteer_id": volunteer_id,
            "duplicate_assignment_id": duplicate.id if duplicate else None,
            "overlap": overlap.value,
            "overlapping_shift_id": clash.ref if clash else None,
            "hour_cap": cap.value,
            "committed_hours_on_day": round(day_hours, 2) if day_hours is not None else None,
            "candidate_hours": round(candidate.duration_hours, 2) if candidate.is_complete else None,
            "daily_hours_limit": self.daily_hours_limit,
            "admissible": duplicate is None
            and overlap is not CheckOutcome.CONFLICT
            and cap is not CheckOutcome.CONFLICT,
        }

    def preview(self, shift_id, volunteer_id, task_id=None) -> Dict[str, Any]:
        shift = self._load_shift(shift_id)
        self._ensure_task(shift, task_id)
        return self.evaluate(shift, volunteer_id, task_id)

    def _find_duplicate(self, shift_id, volunteer_id, task_id) -> Optional[ShiftAssignment]:
        q = ShiftAssignment.query.filter(
            ShiftAssignment.shift_id == shift_id,
            ShiftAssignment.volunteer_id == volunteer_id,
        )
        if task_id is None:
            q = q.filter(ShiftAssignment.task_id.is_(None))
        else:
            q = q.filter(ShiftAssignment.task_id == task_id)
        return q.first()

    def _check_admission(self, shift: Shift, volunteer_id: int, task_id) -> None:
        if self._find_duplicate(shift.id, volunteer_id, task_id) is not None:
            raise DuplicateAssignment(payload={"volunteer_id": volunteer_id, "shift_id": shift.id})

        candidate = TimeWindow.of(shift)
        committed = self._committed_windows(volunteer_id)
        outcome = classify_overlap(candidate, committed)
        if outcome is CheckOutcome.MISSING_WINDOW_DATA:
            # cannot prove a conflict; the booking is allowed through
            log.info(
                "[assign] shift %s has no complete window; overlap/hour-cap skipped (missing_window_data)",
                shift.id,
            )
            return
        if outcome is CheckOutcome.CONFLICT:
            clash = find_overlap(candidate, committed)
            raise OverlapConflict(payload={"volunteer_id": volunteer_id, "overlapping_shift_id": clash.ref})

        if classify_daily_cap(candidate, committed, self.daily_hours_limit) is CheckOutcome.CONFLICT:
            raise HourCapExceeded(
                payload={
                    "volunteer_id": volunteer_id,
                    "committed_hours": round(committed_hours_on_day(candidate.start, committed), 2),
                    "candidate_hours": round(candidate.duration_hours, 2),
                    "limit": self.daily_hours_limit,
                }
            )

    # ---------- per-volunteer serialization ----------

    def _read_lock_version(self, volunteer_id: int) -> Optional[int]:
        stmt = (
            select(VolunteerScheduleLock.version)
            .where(VolunteerScheduleLock.volunteer_id == volunteer_id)
            .with_for_update()
        )
        return db.session.execute(stmt).scalar_one_or_none()

    def _lock_volunteer(self, volunteer_id: int) -> int:
        version = self._read_lock_version(volunteer_id)
        if version is None:
            db.session.add(VolunteerScheduleLock(volunteer_id=volunteer_id, version=0))
            try:
                db.session.commit()
            except IntegrityError:
                # another writer created it first
                db.session.rollback()
            version = self._read_lock_version(volunteer_id)
        return version

    def _bump_version(self, volunteer_id: int, seen: int) -> bool:
        res = db.session.execute(
            update(VolunteerScheduleLock)
            .where(
                VolunteerScheduleLock.volunteer_id == volunteer_id,
                VolunteerScheduleLock.version == seen,
            )
            .values(version=seen + 1, updated_at=self.now_fn())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def _admit(self, shift: Shift, volunteer_id: int, task_id, assigned_by) -> ShiftAssignment:
        shift_id = shift.id
        for attempt in range(1, self.max_retries + 1):
            try:
                seen = self._lock_volunteer(volunteer_id)
                shift = self._load_shift(shift_id)
                self._check_admission(shift, volunteer_id, task_id)
                if not self._bump_version(volunteer_id, seen):
                    db.session.rollback()
                    log.info("[assign] volunteer %s calendar changed, retry %s", volunteer_id, attempt)
                    continue

                a = ShiftAssignment(
                    shift_id=shift_id,
                    task_id=task_id,
                    volunteer_id=volunteer_id,
                    assigned_by=assigned_by,
                    status=ShiftAssignment.STATUS_ASSIGNED,
                )
                db.session.add(a)
                db.session.commit()
                log.info("[assign] volunteer %s -> shift %s (assignment %s)", volunteer_id, shift_id, a.id)
                return a
            except APIError:
                db.session.rollback()
                raise
            except IntegrityError:
                db.session.rollback()
                raise DuplicateAssignment(payload={"volunteer_id": volunteer_id, "shift_id": shift_id})

        raise ConcurrentUpdate(payload={"volunteer_id": volunteer_id, "attempts": self.max_retries})

    def _notify_assigned(self, a: ShiftAssignment) -> None:
        notify_best_effort(
            self.notifier,
            a.volunteer_id,
            "shift_assigned",
            {"shiftId": a.shift_id, "taskId": a.task_id},
        )

    # ---------- public operations ----------

    def create(self, shift_id, volunteer_id, task_id=None, assigned_by=None) -> ShiftAssignment:
        shift = self._load_shift(shift_id)
        self._ensure_task(shift, task_id)
        a = self._admit(shift, volunteer_id, task_id, assigned_by)
        self._notify_assigned(a)
        return a

    def bulk_create(self, shift_id, volunteer_ids: Iterable, task_id=None, assigned_by=None) -> BulkResult:
        """
        One isolated transaction per volunteer. A rejected volunteer lands in
        `errors`; the others are still admitted.
        """
        shift = self._load_shift(shift_id)
        self._ensure_task(shift, task_id)

        result = BulkResult()
        for vid in volunteer_ids:
            if isinstance(vid, bool) or not isinstance(vid, int):
                result.errors.append(BulkItemError(vid, ValidationFailed.code, "volunteer_id must be an integer"))
                continue
            try:
                a = self._admit(shift, vid, task_id, assigned_by)
            except APIError as e:
                result.errors.append(BulkItemError(vid, e.code, e.message))
                continue
            except SQLAlchemyError:
                db.session.rollback()
                log.exception("[assign.bulk] volunteer %s failed", vid)
                result.errors.append(BulkItemError(vid, "INTERNAL_ERROR", "failed"))
                continue
            result.created.append(a)
            self._notify_assigned(a)

        log.info(
            "[assign.bulk] shift %s: %s created, %s rejected",
            shift_id, len(result.created), len(result.errors),
        )
        return result

    def _pick(self, shift_id, volunteer_id, status: str) -> ShiftAssignment:
        rows = (
            ShiftAssignment.query.filter(
                ShiftAssignment.shift_id == shift_id,
                ShiftAssignment.volunteer_id == volunteer_id,
            )
            .order_by(ShiftAssignment.id.asc())
            .all()
        )
        if not rows:
            raise AssignmentNotFound(payload={"shift_id": shift_id, "volunteer_id": volunteer_id})
        for a in rows:
            if a.status == status:
                return a
        # none in the wanted state: report why
        states = {a.status for a in rows}
        if status == ShiftAssignment.STATUS_ASSIGNED:
            raise AlreadyCheckedIn(payload={"shift_id": shift_id})
        if ShiftAssignment.STATUS_ASSIGNED in states:
            raise NotCheckedIn(payload={"shift_id": shift_id})
        raise AlreadyCheckedOut(payload={"shift_id": shift_id})

    def check_in(self, shift_id, volunteer_id) -> ShiftAssignment:
        a = self._pick(shift_id, volunteer_id, ShiftAssignment.STATUS_ASSIGNED)
        now = self.now_fn()
        res = db.session.execute(
            update(ShiftAssignment)
            .where(
                ShiftAssignment.id == a.id,
                ShiftAssignment.status == ShiftAssignment.STATUS_ASSIGNED,
                ShiftAssignment.checked_in_at.is_(None),
            )
            .values(status=ShiftAssignment.STATUS_IN_PROGRESS, checked_in_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.session.rollback()
            raise AlreadyCheckedIn(payload={"assignment_id": a.id})
        db.session.commit()
        log.info("[attendance] assignment %s checked in at %s", a.id, now.isoformat())
        return a

    def check_out(self, shift_id, volunteer_id) -> ShiftAssignment:
        """
        in-progress -> completed, and the pending hours entry, in one commit.
        If the hours row cannot be written the transition is rolled back too.
        """
        a = self._pick(shift_id, volunteer_id, ShiftAssignment.STATUS_IN_PROGRESS)
        if a.checked_in_at is None:
            raise NotCheckedIn(payload={"assignment_id": a.id})

        now = self.now_fn()
        hours = worked_hours(a.checked_in_at, now)
        try:
            res = db.session.execute(
                update(ShiftAssignment)
                .where(
                    ShiftAssignment.id == a.id,
                    ShiftAssignment.status == ShiftAssignment.STATUS_IN_PROGRESS,
                    ShiftAssignment.checked_out_at.is_(None),
                )
                .values(
                    status=ShiftAssignment.STATUS_COMPLETED,
                    checked_out_at=now,
                    hours=hours,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                db.session.rollback()
                raise AlreadyCheckedOut(payload={"assignment_id": a.id})

            emit_pending_hours(a, a.shift, hours, now)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            log.exception("[attendance] check-out of assignment %s rolled back", a.id)
            raise

        log.info("[attendance] assignment %s checked out, %.2f h", a.id, hours)
        return a

    def update(self, assignment_id, fields: Dict[str, Any]) -> ShiftAssignment:
        """
        Staff correction: merge the given fields into the assignment.

        `status` may only advance one step (assigned -> in-progress ->
        completed). Completing through here emits the pending hours entry like
        check_out does; correcting a completed assignment's times or hours
        rewrites that entry while it is still pending.
        """
        a = db.session.get(ShiftAssignment, assignment_id)
        if a is None:
            raise AssignmentNotFound(payload={"assignment_id": assignment_id})

        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailed(f"fields not editable: {', '.join(unknown)}")

        fields = dict(fields)
        if fields.get("hours") is not None:
            try:
                fields["hours"] = round(float(fields["hours"]), 2)
            except (TypeError, ValueError):
                raise ValidationFailed("hours must be a number")
            if fields["hours"] < 0:
                raise ValidationFailed("hours cannot be negative")

        current = a.status
        target = fields.pop("status", None) or current
        if target not in LIFECYCLE:
            raise ValidationFailed("status must be assigned, in-progress or completed")
        if target != current and NEXT_STATUS.get(current) != target:
            raise InvalidTransition(
                f"Cannot move assignment from {current} to {target}",
                payload={"assignment_id": assignment_id, "status": current},
            )
        if fields.get("task_id") is not None:
            self._ensure_task(a.shift, fields["task_id"])

        touched = {"checked_in_at", "checked_out_at", "hours"} & set(fields)
        try:
            for k, v in fields.items():
                setattr(a, k, v)

            now = self.now_fn()
            if target == ShiftAssignment.STATUS_IN_PROGRESS and a.checked_in_at is None:
                a.checked_in_at = now
            if target == ShiftAssignment.STATUS_COMPLETED:
                if a.checked_in_at is None:
                    raise NotCheckedIn(payload={"assignment_id": assignment_id})
                if a.checked_out_at is None:
                    a.checked_out_at = now
            elif a.checked_out_at is not None:
                raise ValidationFailed("checked_out_at can only be set on a completed assignment")
            if a.checked_in_at and a.checked_out_at and a.checked_out_at < a.checked_in_at:
                raise ValidationFailed("checked_out_at cannot be before checked_in_at")

            completing = target == ShiftAssignment.STATUS_COMPLETED and current != target
            # corrected timestamps without explicit hours -> re-derive
            if a.checked_in_at and a.checked_out_at and "hours" not in fields and (touched or completing):
                a.hours = worked_hours(a.checked_in_at, a.checked_out_at)
            if target == ShiftAssignment.STATUS_COMPLETED and a.hours is None:
                raise ValidationFailed("hours are required on a completed assignment")
            a.status = target

            if completing:
                emit_pending_hours(a, a.shift, a.hours, a.checked_out_at)
            elif target == ShiftAssignment.STATUS_COMPLETED and touched:
                self._resync_hours(a)
            db.session.commit()
        except APIError:
            db.session.rollback()
            raise
        except IntegrityError:
            db.session.rollback()
            raise DuplicateAssignment(payload={"assignment_id": assignment_id})

        if completing:
            log.info("[attendance] assignment %s completed by staff, %.2f h", assignment_id, a.hours)
        return a

    def _resync_hours(self, a: ShiftAssignment) -> None:
        rec = hours_for_assignment(a.id)
        if rec is None:
            emit_pending_hours(a, a.shift, a.hours, a.checked_out_at)
            return
        if rec.hours == a.hours and rec.date == a.checked_out_at.date():
            return
        if rec.status != VolunteerHour.STATUS_PENDING:
            raise InvalidTransition(
                f"Hours entry already {rec.status}",
                payload={"assignment_id": a.id, "volunteer_hour_id": rec.id},
            )
        rec.hours = a.hours
        rec.date = a.checked_out_at.date()

    def remove(self, assignment_id) -> None:
        """Hard delete; only legal before check-in."""
        a = db.session.get(ShiftAssignment, assignment_id)
        if a is None:
            raise AssignmentNotFound(payload={"assignment_id": assignment_id})

        res = db.session.execute(
            delete(ShiftAssignment)
            .where(
                ShiftAssignment.id == assignment_id,
                ShiftAssignment.status == ShiftAssignment.STATUS_ASSIGNED,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.session.rollback()
            raise InvalidTransition(
                "Only assignments that have not been checked in can be removed",
                payload={"assignment_id": assignment_id, "status": a.status},
            )
        db.session.expunge(a)
        db.session.commit()
        log.info("[assign] assignment %s removed", assignment_id)


def get_assignment_manager() -> AssignmentManager:
    return current_app.extensions["assignment_manager"]
