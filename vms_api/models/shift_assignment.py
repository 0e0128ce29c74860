# vms_api/models/shift_assignment.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from vms_api.extensions import db


class ShiftAssignment(db.Model):
    """
    Binds one volunteer to one shift (optionally one task inside it).

    Lifecycle:  assigned -> in-progress -> completed
                assigned -> removed   (hard delete, row disappears)
    """
    __tablename__ = "shift_assignments"

    STATUS_ASSIGNED = "assigned"
    STATUS_IN_PROGRESS = "in-progress"
    STATUS_COMPLETED = "completed"
    STATUS_REMOVED = "removed"

    # states that still occupy the volunteer's calendar
    COMMITTED_STATES = (STATUS_ASSIGNED, STATUS_IN_PROGRESS)

    id = db.Column(db.Integer, primary_key=True)
    shift_id       = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="RESTRICT"), nullable=False, index=True)
    task_id        = db.Column(db.Integer, db.ForeignKey("shift_tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    volunteer_id   = db.Column(db.Integer, nullable=False, index=True)
    assigned_by    = db.Column(db.Integer, nullable=True)
    status         = db.Column(db.String(16), nullable=False, default=STATUS_ASSIGNED)
    checked_in_at  = db.Column(db.DateTime, nullable=True)
    checked_out_at = db.Column(db.DateTime, nullable=True)
    hours          = db.Column(db.Float, nullable=True)
    notes          = db.Column(db.String(255), nullable=True)
    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    shift = db.relationship("Shift", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "status in ('assigned','in-progress','completed')",
            name="ck_shift_assignment_status",
        ),
        db.CheckConstraint("hours is null or hours >= 0", name="ck_shift_assignment_hours"),
        # NULL task_id rows are not covered by the DB; the engine checks those under the volunteer lock
        db.UniqueConstraint("volunteer_id", "shift_id", "task_id", name="uq_assignment_volunteer_shift_task"),
        db.Index("ix_assignment_volunteer_status", "volunteer_id", "status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "task_id": self.task_id,
            "volunteer_id": self.volunteer_id,
            "assigned_by": self.assigned_by,
            "status": self.status,
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
            "checked_out_at": self.checked_out_at.isoformat() if self.checked_out_at else None,
            "hours": self.hours,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ShiftAssignment id={self.id} volunteer={self.volunteer_id} shift={self.shift_id} {self.status}>"


class VolunteerScheduleLock(db.Model):
    """
    One row per volunteer. Every admission bumps `version`, so two writers that
    read the same calendar snapshot cannot both commit.
    """
    __tablename__ = "volunteer_schedule_locks"

    volunteer_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    version      = db.Column(db.Integer, nullable=False, default=0)
    updated_at   = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
