# vms_api/models/opportunity.py
from datetime import datetime
from vms_api.extensions import db


class Opportunity(db.Model):
    __tablename__ = "opportunities"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, nullable=True, index=True)
    title           = db.Column(db.String(160), nullable=False)
    status          = db.Column(db.String(16), nullable=False, default="draft")  # draft | published | cancelled
    capacity        = db.Column(db.Integer, nullable=False, default=0)           # 0 = unlimited
    accepted_count  = db.Column(db.Integer, nullable=False, default=0)
    created_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    applications = db.relationship(
        "Application",
        back_populates="opportunity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )

    __table_args__ = (
        db.CheckConstraint("accepted_count >= 0", name="ck_opportunity_accepted_nonneg"),
        db.CheckConstraint(
            "capacity = 0 or accepted_count <= capacity",
            name="ck_opportunity_accepted_le_capacity",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "title": self.title,
            "status": self.status,
            "capacity": self.capacity,
            "accepted_count": self.accepted_count,
        }


class Application(db.Model):
    __tablename__ = "applications"

    STATUS_APPLIED = "applied"
    STATUS_ACCEPTED = "accepted"
    STATUS_REJECTED = "rejected"
    STATUS_WITHDRAWN = "withdrawn"

    id = db.Column(db.Integer, primary_key=True)
    opportunity_id = db.Column(db.Integer, db.ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False, index=True)
    volunteer_id   = db.Column(db.Integer, nullable=False, index=True)
    status         = db.Column(db.String(16), nullable=False, default=STATUS_APPLIED)
    notes          = db.Column(db.Text, nullable=True)
    applied_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    responded_at   = db.Column(db.DateTime, nullable=True)

    opportunity = db.relationship("Opportunity", back_populates="applications")

    __table_args__ = (
        db.UniqueConstraint("opportunity_id", "volunteer_id", name="uq_application_opportunity_volunteer"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "opportunity_id": self.opportunity_id,
            "volunteer_id": self.volunteer_id,
            "status": self.status,
            "notes": self.notes,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }
