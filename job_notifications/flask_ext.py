from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask, current_app, has_app_context

from .dispatch import DispatchEngine
from .hooks import HookRegistry
from .registry import EnablementResolver
from .transport import MailTransport, build_transport

LOGGER = logging.getLogger(__name__)

EXTENSION_KEY = "job_notifications"


class Notifications:
    """Flask extension that sends scheduled notifications after each request."""

    def __init__(
        self,
        app: Optional[Flask] = None,
        transport: Optional[MailTransport] = None,
        enablement: Optional[EnablementResolver] = None,
        hooks: Optional[HookRegistry] = None,
    ) -> None:
        self.transport = transport
        self.enablement = enablement
        self.hooks = hooks
        self.engine: Optional[DispatchEngine] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> DispatchEngine:
        existing = app.extensions.get(EXTENSION_KEY)
        if existing is not None:
            return existing

        engine = DispatchEngine(
            transport=self.transport or build_transport(),
            hooks=self.hooks,
            enablement=self.enablement,
        )
        app.extensions[EXTENSION_KEY] = engine

        @app.teardown_request
        def flush_notifications(exc: Optional[BaseException] = None) -> None:
            engine.flush_all()

        self.engine = engine
        return engine


def get_engine(app: Optional[Flask] = None) -> Optional[DispatchEngine]:
    target = app or (current_app if has_app_context() else None)
    if target is None:
        return None
    return target.extensions.get(EXTENSION_KEY)


def schedule_notification(key: str, args: Any = None) -> None:
    """Ask for ``key`` to be sent once the current request finishes."""
    engine = get_engine()
    if engine is None:
        LOGGER.warning("No notification engine available; dropping %r", key)
        return
    engine.schedule(key, args)
