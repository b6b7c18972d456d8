"""Deferred email notifications for the job board.

Notifications are scheduled by key while a request is handled and sent
when the request finishes. See :mod:`job_notifications.dispatch`.
"""
from .dispatch import DispatchEngine
from .emails import AdminNewListingNotice
from .flask_ext import Notifications, get_engine, schedule_notification
from .hooks import HookRegistry
from .models import JobListing, NotificationEvent, RegistryEntry
from .queue import DeferredQueue
from .registry import NotificationRegistry, StaticEnablement
from .rendering import ContentRenderer
from .settings_store import SettingsEnablement
from .transport import HttpApiTransport, OutboxTransport, SmtpTransport, build_transport

__all__ = [
    "AdminNewListingNotice",
    "ContentRenderer",
    "DeferredQueue",
    "DispatchEngine",
    "HookRegistry",
    "HttpApiTransport",
    "JobListing",
    "NotificationEvent",
    "NotificationRegistry",
    "Notifications",
    "OutboxTransport",
    "RegistryEntry",
    "SettingsEnablement",
    "SmtpTransport",
    "StaticEnablement",
    "build_transport",
    "get_engine",
    "schedule_notification",
]
