"""
Notification service module.

Structure:
- channels.py: Email (SMTP), SMS (REST API) and in-app delivery
- service.py: NotificationService fanning one message out to the channels

Usage:
    from mlm_app.services.notification import NotificationService

    notification_service = NotificationService.from_settings(session)
    await notification_service.notify_transaction(transaction)
"""

from mlm_app.services.notification.channels import (
    EmailChannel,
    InAppChannel,
    SmsChannel,
)
from mlm_app.services.notification.service import NotificationService

__all__ = [
    "EmailChannel",
    "InAppChannel",
    "NotificationService",
    "SmsChannel",
]
