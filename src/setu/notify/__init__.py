"""Notifications: channel protocol, SMTP channel, templates and CSV manifests."""

from setu.notify.base import BaseChannel
from setu.notify.channels import EmailChannel
from setu.notify.protocol import (
    Attachment,
    DeliveryResult,
    Notification,
    NotificationChannel,
    Recipients,
    split_emails,
)
from setu.notify.templates import (
    post_completion_notification,
    pre_trigger_notification,
    results_csv,
    server_list_csv,
)

__all__ = [
    "Attachment",
    "BaseChannel",
    "DeliveryResult",
    "EmailChannel",
    "Notification",
    "NotificationChannel",
    "Recipients",
    "split_emails",
    "post_completion_notification",
    "pre_trigger_notification",
    "results_csv",
    "server_list_csv",
]
