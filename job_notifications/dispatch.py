"""Deferred notification dispatch.

Business code calls :meth:`DispatchEngine.schedule` while handling a
request. Nothing is built or sent at that point; the host calls
:meth:`DispatchEngine.flush_all` once the request is over, and every
scheduled notification is then resolved, validated, rendered and handed
to the mail transport in the order it was scheduled.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from .config import NOTIFICATION_FIELDS, field_hook
from .hooks import HookRegistry
from .models import DispatchRecord, NotificationEvent, normalize_recipients
from .queue import DeferredQueue
from .registry import EnablementResolver, NotificationRegistry
from .rendering import ContentRenderer
from .transport import MailTransport

LOGGER = logging.getLogger(__name__)

_ACCESSORS = {
    "to": "recipients",
    "from": "sender",
    "subject": "subject",
    "rich_content": "rich_content",
    "plain_content": "plain_content",
    "attachments": "attachments",
}


class DispatchEngine:
    def __init__(
        self,
        transport: MailTransport,
        hooks: Optional[HookRegistry] = None,
        registry: Optional[NotificationRegistry] = None,
        renderer: Optional[ContentRenderer] = None,
        queue: Optional[DeferredQueue] = None,
        enablement: Optional[EnablementResolver] = None,
    ) -> None:
        self.hooks = hooks or HookRegistry()
        self.transport = transport
        self.registry = registry or NotificationRegistry(self.hooks, enablement=enablement)
        if registry is not None and enablement is not None:
            self.registry.enablement = enablement
        self.renderer = renderer or ContentRenderer(self.hooks)
        self.queue = queue or DeferredQueue()

    def schedule(self, key: str, args: Any = None) -> None:
        """Queue a notification for the end of the current cycle."""
        self.queue.schedule(key, args)

    def flush_all(self) -> None:
        entries = self.queue.drain()
        if not entries:
            return

        try:
            enabled = self.registry.list_entries(enabled_only=True)
        except Exception:
            LOGGER.exception("Could not resolve notification registry; dropping %d notifications", len(entries))
            return

        sent = 0
        for key, args in entries:
            if not isinstance(key, str) or key not in enabled:
                LOGGER.debug("Skipping unknown or disabled notification %r", key)
                continue
            try:
                event = enabled[key].build(args)
                if self.dispatch_one(key, event):
                    sent += 1
            except Exception:
                LOGGER.exception("Failed to dispatch notification %s", key)
        LOGGER.info("Sent %d of %d scheduled notifications", sent, len(entries))

    def collect_fields(self, key: str, event: NotificationEvent) -> DispatchRecord:
        fields: Dict[str, Any] = {}
        for name in NOTIFICATION_FIELDS:
            value = getattr(event, _ACCESSORS[name])()
            fields[name] = self.hooks.apply_filters(field_hook(key, name), value, event)
        return DispatchRecord.from_fields(fields)

    def build_headers(self, record: DispatchRecord, plain_mode: bool) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if record.sender:
            headers["From"] = str(record.sender)
        if not plain_mode:
            headers["Content-Type"] = "text/html"
        return headers

    def dispatch_one(self, key: str, event: NotificationEvent) -> bool:
        if not event.is_valid():
            LOGGER.info("Notification %s is not valid; not sending", key)
            return False

        record = self.collect_fields(key, event)
        plain_mode = self.renderer.send_as_plain_text()
        headers = self.build_headers(record, plain_mode)
        body = self.renderer.render(key, record, plain_mode)

        return bool(
            self.transport.send(
                normalize_recipients(record.to),
                str(record.subject or ""),
                body,
                headers,
                list(record.attachments),
            )
        )

    @contextmanager
    def cycle(self) -> Iterator["DispatchEngine"]:
        """Flush everything scheduled inside the block, even if it raises."""
        try:
            yield self
        finally:
            self.flush_all()
