# vms_api/models/notification.py
from datetime import datetime
from vms_api.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id    = db.Column(db.Integer, nullable=False, index=True)
    type       = db.Column(db.String(60), nullable=False)
    payload    = db.Column(db.JSON, nullable=True)
    read       = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
