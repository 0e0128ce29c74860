# vms_api/models/volunteer_hour.py
from datetime import datetime
from vms_api.extensions import db


class VolunteerHour(db.Model):
    """Worked-hours entry feeding the approval workflow."""
    __tablename__ = "volunteer_hours"

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    id = db.Column(db.Integer, primary_key=True)
    volunteer_id    = db.Column(db.Integer, nullable=False, index=True)
    organization_id = db.Column(db.Integer, nullable=True, index=True)
    event_id        = db.Column(db.Integer, nullable=True, index=True)
    shift_id        = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"), nullable=True, index=True)
    assignment_id   = db.Column(db.Integer, db.ForeignKey("shift_assignments.id", ondelete="RESTRICT"), nullable=True)
    date            = db.Column(db.Date, nullable=False)
    hours           = db.Column(db.Float, nullable=False)
    status          = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    notes           = db.Column(db.String(255), nullable=True)
    created_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        # exactly one hours record per completed assignment
        db.UniqueConstraint("assignment_id", name="uq_volunteer_hours_assignment"),
        db.CheckConstraint("status in ('pending','approved','rejected')", name="ck_volunteer_hours_status"),
        db.CheckConstraint("hours >= 0", name="ck_volunteer_hours_nonneg"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "volunteer_id": self.volunteer_id,
            "organization_id": self.organization_id,
            "event_id": self.event_id,
            "shift_id": self.shift_id,
            "assignment_id": self.assignment_id,
            "date": self.date.isoformat() if self.date else None,
            "hours": self.hours,
            "status": self.status,
            "notes": self.notes,
        }
