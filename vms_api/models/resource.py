# vms_api/models/resource.py
from datetime import datetime
from vms_api.extensions import db


class Resource(db.Model):
    """
    Stock item owned by an organization. quantity_available is the live pool;
    0 <= quantity_available <= quantity_total is enforced by the DB as well.
    """
    __tablename__ = "resources"

    STATUS_AVAILABLE = "available"
    STATUS_IN_USE = "in_use"
    STATUS_MAINTENANCE = "maintenance"
    STATUS_RETIRED = "retired"
    STATUS_DAMAGED = "damaged"

    UNASSIGNABLE = (STATUS_MAINTENANCE, STATUS_RETIRED)

    id = db.Column(db.Integer, primary_key=True)
    organization_id    = db.Column(db.Integer, nullable=True, index=True)
    name               = db.Column(db.String(160), nullable=False)
    category           = db.Column(db.String(60), nullable=True)
    serial_number      = db.Column(db.String(80), nullable=True)
    status             = db.Column(db.String(16), nullable=False, default=STATUS_AVAILABLE)
    is_returnable      = db.Column(db.Boolean, nullable=False, default=True)
    quantity_total     = db.Column(db.Integer, nullable=False, default=1)
    quantity_available = db.Column(db.Integer, nullable=False, default=1)
    created_at         = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at         = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "quantity_available >= 0 and quantity_available <= quantity_total",
            name="ck_resource_quantity_bounds",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "category": self.category,
            "serial_number": self.serial_number,
            "status": self.status,
            "is_returnable": self.is_returnable,
            "quantity_total": self.quantity_total,
            "quantity_available": self.quantity_available,
        }


class ResourceAssignment(db.Model):
    __tablename__ = "resource_assignments"

    TYPE_VOLUNTEER = "volunteer"
    TYPE_EVENT = "event"
    TYPE_MAINTENANCE = "maintenance"
    TYPES = (TYPE_VOLUNTEER, TYPE_EVENT, TYPE_MAINTENANCE)

    STATUS_ASSIGNED = "assigned"
    STATUS_RETURNED = "returned"

    id = db.Column(db.Integer, primary_key=True)
    resource_id        = db.Column(db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    assignment_type    = db.Column(db.String(16), nullable=False, default=TYPE_VOLUNTEER)
    related_id         = db.Column(db.Integer, nullable=True, index=True)
    quantity           = db.Column(db.Integer, nullable=False, default=1)
    status             = db.Column(db.String(16), nullable=False, default=STATUS_ASSIGNED)
    assigned_at        = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expected_return_at = db.Column(db.DateTime, nullable=True)
    returned_at        = db.Column(db.DateTime, nullable=True)
    condition          = db.Column(db.String(40), nullable=True)
    notes              = db.Column(db.Text, nullable=True)

    resource = db.relationship("Resource")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_resource_assignment_qty"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "assignment_type": self.assignment_type,
            "related_id": self.related_id,
            "quantity": self.quantity,
            "status": self.status,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "expected_return_at": self.expected_return_at.isoformat() if self.expected_return_at else None,
            "returned_at": self.returned_at.isoformat() if self.returned_at else None,
            "condition": self.condition,
            "notes": self.notes,
        }
