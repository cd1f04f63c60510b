"""Journal message, user and partner notifications with offline push fallback."""

from .directory import InMemoryUserDirectory, PartnerDirectory, PushTokenDirectory
from .offline_notifier import OfflineNotifier, PushMessage
from .service import NotificationService

__all__ = [
    "InMemoryUserDirectory",
    "NotificationService",
    "OfflineNotifier",
    "PartnerDirectory",
    "PushMessage",
    "PushTokenDirectory",
]
