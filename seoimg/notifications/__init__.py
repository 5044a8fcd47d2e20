"""User-visible notification log."""

from seoimg.notifications.log import NotificationLog

__all__ = ["NotificationLog"]
