# vms_api/services/notifier.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from vms_api.extensions import db
from vms_api.models.notification import Notification

log = logging.getLogger(__name__)


class Notifier:
    """Delivery seam. notify() may raise; callers decide whether that matters."""

    def notify(self, user_id: int, type_: str, payload: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


class DbNotifier(Notifier):
    """Stores an in-app notification row (picked up by the bell / socket layer)."""

    def notify(self, user_id, type_, payload=None):
        db.session.add(Notification(user_id=user_id, type=type_, payload=payload or {}, read=False))
        db.session.commit()


def notify_best_effort(notifier: Optional[Notifier], user_id, type_: str, payload=None) -> bool:
    """
    Fire-and-forget: a delivery failure is logged and rolled back, never raised.
    Must only be called after the business write has been committed.
    """
    if notifier is None or user_id is None:
        return False
    try:
        notifier.notify(user_id, type_, payload)
        return True
    except Exception:
        db.session.rollback()
        log.warning("[notify] %s for user %s failed", type_, user_id, exc_info=True)
        return False
