# vms_api/models/shift.py
from datetime import datetime
from vms_api.extensions import db


class Shift(db.Model):
    """
    Time-boxed unit of work owned by an organization/event.
    The window is half-open [start_at, end_at). Either bound may be missing on
    legacy rows; the scheduling checks treat such shifts as unprovable.
    """
    __tablename__ = "shifts"

    id = db.Column(db.Integer, primary_key=True)
    title           = db.Column(db.String(160), nullable=False)
    description     = db.Column(db.Text, nullable=True)
    organization_id = db.Column(db.Integer, nullable=True, index=True)
    event_id        = db.Column(db.Integer, nullable=True, index=True)
    start_at        = db.Column(db.DateTime, nullable=True, index=True)
    end_at          = db.Column(db.DateTime, nullable=True)
    capacity        = db.Column(db.Integer, nullable=False, default=0)
    created_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    tasks = db.relationship(
        "ShiftTask",
        back_populates="shift",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "organization_id": self.organization_id,
            "event_id": self.event_id,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "capacity": self.capacity,
        }

    def __repr__(self) -> str:
        return f"<Shift id={self.id} {self.start_at}..{self.end_at}>"


class ShiftTask(db.Model):
    __tablename__ = "shift_tasks"

    id = db.Column(db.Integer, primary_key=True)
    shift_id            = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    title               = db.Column(db.String(160), nullable=False)
    description         = db.Column(db.Text, nullable=True)
    required_volunteers = db.Column(db.Integer, nullable=False, default=1)
    created_at          = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    shift = db.relationship("Shift", back_populates="tasks")
