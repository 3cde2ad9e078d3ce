from typing import Optional

import structlog

from ..config import Settings, get_settings
from ..db.models import Admin, Student
from ..db.store import InternshipStore
from ..errors import NotFoundError
from ..notifications import NotificationHub, NotificationType
from .status import StatusStateMachine

logger = structlog.get_logger(__name__)


class Component:
    """Shared wiring for lifecycle components: store, status machine, hub, settings."""

    def __init__(self, store: InternshipStore, hub: Optional[NotificationHub] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self.hub = hub or NotificationHub(self.settings.notification_history_size)
        self.status = StatusStateMachine(store)

    def _require_student(self, student_id: str) -> Student:
        student = self.store.get_student(student_id)
        if student is None:
            raise NotFoundError("Student not found", {"student_id": student_id})
        return student

    def _require_admin(self, admin_id: str) -> Admin:
        admin = self.store.get_admin(admin_id)
        if admin is None or not admin.is_active:
            raise NotFoundError("Admin not found", {"admin_id": admin_id})
        return admin

    def _notify(self, notification_type: NotificationType, student_id: Optional[str] = None,
                recipient_id: Optional[str] = None, **payload):
        """Publish after commit; subscriber failures are recorded by the hub."""
        tracking_id = self.hub.publish(notification_type, student_id=student_id,
                                       recipient_id=recipient_id, **payload)
        logger.debug("Notification published", type=notification_type.value, tracking_id=tracking_id)
        return tracking_id
