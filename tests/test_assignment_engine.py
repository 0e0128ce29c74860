import pytest
from sqlalchemy.exc import OperationalError

from conftest import RecordingNotifier, at, make_shift, make_task, race
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
from vms_api.models.notification import Notification
from vms_api.models.shift_assignment import ShiftAssignment
from vms_api.models.volunteer_hour import VolunteerHour
from vms_api.services import assignment_engine
from vms_api.services.assignment_engine import AssignmentManager
from vms_api.services.notifier import DbNotifier


# ---------- admission ----------

def test_overlapping_shift_is_rejected(ctx, manager):
    shift_b = make_shift(at(12), at(14), title="B")
    shift_a = make_shift(at(9), at(13), title="A")
    manager.create(shift_b.id, 7)

    with pytest.raises(OverlapConflict) as ei:
        manager.create(shift_a.id, 7)
    assert ei.value.payload["overlapping_shift_id"] == shift_b.id
    assert ShiftAssignment.query.filter_by(volunteer_id=7).count() == 1


def test_back_to_back_shifts_are_allowed(ctx, manager):
    first = make_shift(at(9), at(13))
    second = make_shift(at(13), at(15))
    manager.create(first.id, 7)
    a = manager.create(second.id, 7)
    assert a.status == ShiftAssignment.STATUS_ASSIGNED


def test_other_volunteers_do_not_conflict(ctx, manager):
    s = make_shift(at(9), at(13))
    manager.create(s.id, 7)
    assert manager.create(s.id, 8).volunteer_id == 8


def test_daily_hour_cap(ctx, manager):
    long_shift = make_shift(at(6), at(16))    # 10h
    evening = make_shift(at(17), at(20))      # 3h
    short_evening = make_shift(at(17), at(19))  # 2h
    manager.create(long_shift.id, 7)

    with pytest.raises(HourCapExceeded) as ei:
        manager.create(evening.id, 7)
    assert ei.value.payload["committed_hours"] == 10.0

    # exactly at the cap is still fine
    manager.create(short_evening.id, 7)


def test_hour_cap_is_injected_not_global(ctx, clock, notifier):
    strict = AssignmentManager(daily_hours_limit=4, notifier=notifier, now_fn=clock)
    morning = make_shift(at(8), at(11))
    noon = make_shift(at(12), at(14))
    strict.create(morning.id, 7)
    with pytest.raises(HourCapExceeded):
        strict.create(noon.id, 7)


def test_overnight_commitment_does_not_count_toward_cap(ctx, manager):
    overnight = make_shift(at(20, day=5), at(8, day=6))
    day_shift = make_shift(at(9), at(21))   # 12h
    manager.create(overnight.id, 7)
    assert manager.create(day_shift.id, 7).id is not None


def test_completed_assignments_do_not_block(ctx, manager, clock):
    s = make_shift(at(9), at(13))
    manager.create(s.id, 7)
    clock.set(at(9))
    manager.check_in(s.id, 7)
    clock.set(at(13))
    manager.check_out(s.id, 7)

    again = make_shift(at(10), at(12))
    assert manager.create(again.id, 7).status == ShiftAssignment.STATUS_ASSIGNED


def test_missing_window_is_admitted(ctx, manager, caplog):
    dated = make_shift(at(9), at(13))
    undated = make_shift(None, None, title="TBD")
    manager.create(dated.id, 7)

    with caplog.at_level("INFO", logger="vms_api.services.assignment_engine"):
        a = manager.create(undated.id, 7)
    assert a.id is not None
    assert "missing_window_data" in caplog.text


def test_duplicate_assignment(ctx, manager):
    s = make_shift(at(9), at(10))
    manager.create(s.id, 7)
    with pytest.raises(DuplicateAssignment):
        manager.create(s.id, 7)


def test_same_shift_different_tasks_overlap(ctx, manager):
    s = make_shift(at(9), at(13))
    t1 = make_task(s, "Desk")
    t2 = make_task(s, "Parking")
    manager.create(s.id, 7, task_id=t1.id)
    with pytest.raises(OverlapConflict):
        manager.create(s.id, 7, task_id=t2.id)


def test_unknown_shift_and_foreign_task(ctx, manager):
    with pytest.raises(ShiftNotFound):
        manager.create(999, 7)

    s = make_shift(at(9), at(10))
    other = make_shift(at(11), at(12))
    foreign = make_task(other)
    with pytest.raises(TaskNotFound):
        manager.create(s.id, 7, task_id=foreign.id)


def test_preview_reports_without_writing(ctx, manager):
    b = make_shift(at(12), at(14))
    a = make_shift(at(9), at(13))
    manager.create(b.id, 7)

    report = manager.preview(a.id, 7)
    assert report["admissible"] is False
    assert report["overlap"] == "conflict"
    assert report["overlapping_shift_id"] == b.id
    assert ShiftAssignment.query.filter_by(volunteer_id=7).count() == 1


# ---------- bulk ----------

def test_bulk_collects_per_volunteer_errors(ctx, manager):
    target = make_shift(at(9), at(13))
    busy = make_shift(at(12), at(14))
    manager.create(busy.id, 2)

    result = manager.bulk_create(target.id, [1, 2, 3, 4])
    assert sorted(a.volunteer_id for a in result.created) == [1, 3, 4]
    assert len(result.errors) == 1
    assert result.errors[0].volunteer_id == 2
    assert result.errors[0].code == "OVERLAP_CONFLICT"

    body = result.to_dict()
    assert body["errors"][0]["volunteer_id"] == 2


def test_bulk_unknown_shift_fails_whole_call(ctx, manager):
    with pytest.raises(ShiftNotFound):
        manager.bulk_create(404, [1, 2])


def test_bulk_keeps_going_after_database_error(ctx, manager, monkeypatch):
    s = make_shift(at(9), at(10))
    real = manager._check_admission

    def flaky(shift, vid, task_id):
        if vid == 2:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real(shift, vid, task_id)

    monkeypatch.setattr(manager, "_check_admission", flaky)
    result = manager.bulk_create(s.id, [1, 2, 3])
    assert [a.volunteer_id for a in result.created] == [1, 3]
    assert result.errors[0].code == "INTERNAL_ERROR"


def test_bulk_reports_blank_volunteer_ids(ctx, manager):
    s = make_shift(at(9), at(10))
    result = manager.bulk_create(s.id, [1, None, "x"])
    assert [a.volunteer_id for a in result.created] == [1]
    assert [(e.volunteer_id, e.code) for e in result.errors] == [
        (None, "VALIDATION_FAILED"),
        ("x", "VALIDATION_FAILED"),
    ]


# ---------- notifications ----------

def test_notification_sent_after_create(ctx, manager, notifier):
    s = make_shift(at(9), at(10))
    t = make_task(s)
    manager.create(s.id, 7, task_id=t.id)
    assert notifier.sent == [(7, "shift_assigned", {"shiftId": s.id, "taskId": t.id})]


def test_notification_failure_does_not_fail_create(ctx, clock):
    mgr = AssignmentManager(notifier=RecordingNotifier(fail=True), now_fn=clock)
    s = make_shift(at(9), at(10))
    a = mgr.create(s.id, 7)
    assert db.session.get(ShiftAssignment, a.id) is not None


def test_db_notifier_stores_row(ctx, clock):
    mgr = AssignmentManager(notifier=DbNotifier(), now_fn=clock)
    s = make_shift(at(9), at(10))
    mgr.create(s.id, 7)
    n = Notification.query.filter_by(user_id=7).one()
    assert n.type == "shift_assigned"
    assert n.payload == {"shiftId": s.id, "taskId": None}


# ---------- lock / retry ----------

def test_lost_version_race_is_retried(ctx, manager, monkeypatch):
    s = make_shift(at(9), at(10))
    real = manager._bump_version
    calls = []

    def lose_once(vid, seen):
        calls.append(seen)
        if len(calls) == 1:
            return False
        return real(vid, seen)

    monkeypatch.setattr(manager, "_bump_version", lose_once)
    a = manager.create(s.id, 7)
    assert a.id is not None
    assert len(calls) == 2


def test_retries_exhausted(ctx, clock, monkeypatch):
    mgr = AssignmentManager(now_fn=clock, max_retries=2)
    s = make_shift(at(9), at(10))
    monkeypatch.setattr(mgr, "_bump_version", lambda vid, seen: False)
    with pytest.raises(ConcurrentUpdate):
        mgr.create(s.id, 7)
    assert ShiftAssignment.query.count() == 0


def test_concurrent_overlapping_creates_admit_one(file_app, clock):
    with file_app.app_context():
        a_id = make_shift(at(9), at(13), title="A").id
        b_id = make_shift(at(12), at(14), title="B").id
    mgr = AssignmentManager(now_fn=clock, max_retries=5)

    def book(shift_id):
        def job():
            try:
                mgr.create(shift_id, 7)
                return "created"
            except APIError as e:
                return e.code
        return job

    outcomes = race(file_app, book(a_id), book(b_id))
    assert sorted(outcomes) == ["OVERLAP_CONFLICT", "created"]
    with file_app.app_context():
        assert ShiftAssignment.query.filter_by(volunteer_id=7).count() == 1


# ---------- attendance ----------

def test_check_in_and_out_logs_pending_hours(ctx, manager, clock):
    s = make_shift(at(9), at(14), organization_id=3, event_id=11)
    manager.create(s.id, 7)

    clock.set(at(9))
    a = manager.check_in(s.id, 7)
    assert a.status == ShiftAssignment.STATUS_IN_PROGRESS
    assert a.checked_in_at == at(9)

    clock.set(at(13, 30))
    a = manager.check_out(s.id, 7)
    assert a.status == ShiftAssignment.STATUS_COMPLETED
    assert a.hours == 4.5

    rows = VolunteerHour.query.filter_by(assignment_id=a.id).all()
    assert len(rows) == 1
    rec = rows[0]
    assert rec.hours == 4.5
    assert rec.status == "pending"
    assert (rec.volunteer_id, rec.organization_id, rec.event_id, rec.shift_id) == (7, 3, 11, s.id)
    assert rec.notes == "auto-logged via check-out"


def test_state_machine_guards(ctx, manager, clock):
    s = make_shift(at(9), at(13))
    with pytest.raises(AssignmentNotFound):
        manager.check_in(s.id, 7)

    manager.create(s.id, 7)
    with pytest.raises(NotCheckedIn):
        manager.check_out(s.id, 7)

    clock.set(at(9))
    manager.check_in(s.id, 7)
    with pytest.raises(AlreadyCheckedIn):
        manager.check_in(s.id, 7)

    clock.set(at(12))
    manager.check_out(s.id, 7)
    with pytest.raises(AlreadyCheckedOut):
        manager.check_out(s.id, 7)
    assert VolunteerHour.query.count() == 1


def test_hours_failure_rolls_back_check_out(ctx, manager, clock, monkeypatch):
    s = make_shift(at(9), at(13))
    manager.create(s.id, 7)
    clock.set(at(9))
    manager.check_in(s.id, 7)

    def boom(*args, **kwargs):
        raise OperationalError("INSERT INTO volunteer_hours", {}, Exception("disk full"))

    monkeypatch.setattr(assignment_engine, "emit_pending_hours", boom)
    clock.set(at(12))
    with pytest.raises(OperationalError):
        manager.check_out(s.id, 7)

    a = ShiftAssignment.query.filter_by(volunteer_id=7).one()
    assert a.status == ShiftAssignment.STATUS_IN_PROGRESS
    assert a.checked_out_at is None
    assert VolunteerHour.query.count() == 0


# ---------- update / remove ----------

def test_update_cannot_skip_to_completed(ctx, manager):
    s = make_shift(at(9), at(13))
    a = manager.create(s.id, 7)
    with pytest.raises(InvalidTransition):
        manager.update(a.id, {"status": "completed", "checked_in_at": at(9), "checked_out_at": at(12)})

    a = db.session.get(ShiftAssignment, a.id)
    assert a.status == ShiftAssignment.STATUS_ASSIGNED
    assert a.checked_in_at is None
    assert VolunteerHour.query.count() == 0


def test_update_steps_forward_and_logs_hours(ctx, manager):
    s = make_shift(at(9), at(13))
    a = manager.create(s.id, 7)

    a = manager.update(a.id, {"status": "in-progress", "checked_in_at": at(9)})
    assert a.status == ShiftAssignment.STATUS_IN_PROGRESS

    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"status": "completed", "checked_out_at": at(8)})

    a = manager.update(a.id, {"status": "completed", "checked_out_at": at(12, 15)})
    assert a.status == ShiftAssignment.STATUS_COMPLETED
    assert a.hours == 3.25

    rec = VolunteerHour.query.filter_by(assignment_id=a.id).one()
    assert (rec.hours, rec.status) == (3.25, "pending")


def test_completed_assignment_cannot_be_reopened(ctx, manager, clock):
    s = make_shift(at(9), at(13))
    a = manager.create(s.id, 7)
    clock.set(at(9))
    manager.check_in(s.id, 7)
    clock.set(at(12))
    manager.check_out(s.id, 7)

    for status in ("assigned", "in-progress"):
        with pytest.raises(InvalidTransition):
            manager.update(a.id, {"status": status})
    with pytest.raises(InvalidTransition):
        manager.remove(a.id)

    assert db.session.get(ShiftAssignment, a.id).status == ShiftAssignment.STATUS_COMPLETED
    assert VolunteerHour.query.filter_by(assignment_id=a.id).count() == 1


def test_time_correction_rewrites_pending_hours(ctx, manager, clock):
    s = make_shift(at(9), at(14))
    a = manager.create(s.id, 7)
    clock.set(at(9))
    manager.check_in(s.id, 7)
    clock.set(at(12))
    manager.check_out(s.id, 7)

    a = manager.update(a.id, {"checked_out_at": at(13, 30), "notes": "left late"})
    assert a.hours == 4.5
    rec = VolunteerHour.query.filter_by(assignment_id=a.id).one()
    assert rec.hours == 4.5

    a = manager.update(a.id, {"hours": 4})
    assert VolunteerHour.query.filter_by(assignment_id=a.id).one().hours == 4.0

    # once the hours entry is reviewed it is no longer rewritten
    rec = VolunteerHour.query.filter_by(assignment_id=a.id).one()
    rec.status = VolunteerHour.STATUS_APPROVED
    db.session.commit()
    with pytest.raises(InvalidTransition):
        manager.update(a.id, {"checked_in_at": at(10)})
    assert db.session.get(ShiftAssignment, a.id).hours == 4.0

    # notes alone do not touch the reviewed entry
    assert manager.update(a.id, {"notes": "ok"}).notes == "ok"


def test_update_rejects_bad_input(ctx, manager):
    s = make_shift(at(9), at(13))
    a = manager.create(s.id, 7)
    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"volunteer_id": 9})
    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"hours": "three"})
    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"hours": -1})
    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"status": "removed"})
    with pytest.raises(ValidationFailed):
        manager.update(a.id, {"checked_out_at": at(12)})
    with pytest.raises(AssignmentNotFound):
        manager.update(12345, {"notes": "x"})
    assert db.session.get(ShiftAssignment, a.id).checked_out_at is None


def test_remove_only_before_check_in(ctx, manager, clock):
    s = make_shift(at(9), at(13))
    a = manager.create(s.id, 7)
    manager.remove(a.id)
    assert db.session.get(ShiftAssignment, a.id) is None

    # the slot is free again
    b = manager.create(s.id, 7)
    clock.set(at(9))
    manager.check_in(s.id, 7)
    with pytest.raises(InvalidTransition):
        manager.remove(b.id)

    with pytest.raises(AssignmentNotFound):
        manager.remove(98765)
