import logging
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from ..db.models import utcnow
from .notification_types import Notification, NotificationType, get_notification_subject

logger = logging.getLogger(__name__)

Handler = Callable[[Notification], Any]


class NotificationHub:
    """
    Hook points for lifecycle events.

    Components publish after their transaction commits. Delivery (email,
    push, webhooks) is done by subscribers registered from outside the core.
    A failing subscriber is logged and recorded; it never undoes the
    committed transition and never stops the remaining subscribers.
    """

    def __init__(self, max_history: int = 10000):
        self._handlers: Dict[Optional[NotificationType], List[Handler]] = defaultdict(list)
        self.history: Dict[str, Dict[str, Any]] = {}
        self.MAX_HISTORY = max_history

    def subscribe(self, handler: Handler, notification_type: Optional[NotificationType] = None):
        """
        Register a handler.

        Args:
            handler: Callable receiving the Notification
            notification_type: Only deliver this type; None subscribes to every type
        """
        self._handlers[notification_type].append(handler)

    def unsubscribe(self, handler: Handler, notification_type: Optional[NotificationType] = None):
        if handler in self._handlers.get(notification_type, []):
            self._handlers[notification_type].remove(handler)

    def publish(self, notification_type: NotificationType, student_id: Optional[str] = None,
                recipient_id: Optional[str] = None, **payload) -> str:
        """
        Hand a notification to every matching subscriber.

        Returns:
            Tracking ID of the published notification
        """
        notification = Notification(
            type=notification_type,
            subject=get_notification_subject(notification_type),
            student_id=student_id,
            recipient_id=recipient_id,
            payload=payload,
        )
        tracking_id = str(uuid.uuid4())
        entry = {
            "type": notification_type.value,
            "student_id": student_id,
            "recipient_id": recipient_id,
            "created_at": notification.occurred_at.isoformat(),
            "status": "published",
            "delivered": 0,
            "errors": [],
        }
        self.history[tracking_id] = entry

        for handler in self._handlers.get(notification_type, []) + self._handlers.get(None, []):
            try:
                handler(notification)
                entry["delivered"] += 1
            except Exception as e:
                logger.error(f"Notification handler failed for {notification_type.value}: {e}", exc_info=True)
                entry["errors"].append(str(e))
                entry["status"] = "failed"

        if len(self.history) > self.MAX_HISTORY:
            self._prune_old_entries()

        return tracking_id

    def get_status(self, tracking_id: str) -> Dict[str, Any]:
        return self.history.get(tracking_id, {"status": "not_found"})

    def get_by_type(self, notification_type: NotificationType) -> List[Dict[str, Any]]:
        return [
            {"tracking_id": tid, **data}
            for tid, data in self.history.items()
            if data["type"] == notification_type.value
        ]

    def get_stats(self) -> Dict[str, int]:
        stats = {"total": len(self.history), "published": 0, "failed": 0}
        for entry in self.history.values():
            stats[entry["status"]] += 1
        return stats

    def _prune_old_entries(self):
        """Keep the most recent half of the history."""
        sorted_entries = sorted(
            self.history.items(),
            key=lambda x: x[1]["created_at"],
            reverse=True
        )
        keep_count = self.MAX_HISTORY // 2
        self.history = {k: v for k, v in sorted_entries[:keep_count]}
        logger.debug(f"Pruned notification history to {keep_count} entries at {utcnow().isoformat()}")
