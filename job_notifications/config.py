"""Shared configuration defaults for the notification system."""
from __future__ import annotations

import os
from typing import Optional

NOTIFICATION_FIELDS = (
    "to",
    "from",
    "subject",
    "rich_content",
    "plain_content",
    "attachments",
)

REGISTRY_HOOK = "job_notifications.registry"
PLAIN_TEXT_HOOK = "job_notifications.send_as_plain_text"
HEADER_HOOK = "job_notifications.email_header"
FOOTER_HOOK = "job_notifications.email_footer"

VALID_TRANSPORTS = {"smtp", "api", "outbox"}
TRUTHY = {"1", "true", "yes", "on"}


def field_hook(notification_key: str, field_name: str) -> str:
    return f"job_notifications.email.{notification_key}.{field_name}"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


def admin_email() -> Optional[str]:
    return os.getenv("NOTIFY_ADMIN_EMAIL") or None


def default_sender() -> Optional[str]:
    return os.getenv("NOTIFY_FROM_EMAIL") or os.getenv("SMTP_DEFAULT_SENDER") or None


def plain_text_default() -> bool:
    return _env_flag("NOTIFY_PLAIN_TEXT", False)


def transport_name() -> str:
    name = (os.getenv("NOTIFY_TRANSPORT") or "smtp").strip().lower()
    return name if name in VALID_TRANSPORTS else "smtp"
