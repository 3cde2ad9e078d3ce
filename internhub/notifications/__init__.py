from .hub import NotificationHub
from .notification_types import Notification, NotificationType, get_notification_subject

__all__ = ["NotificationHub", "Notification", "NotificationType", "get_notification_subject"]
