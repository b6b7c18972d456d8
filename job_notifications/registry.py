from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Protocol

from .config import REGISTRY_HOOK
from .emails import CORE_NOTIFICATIONS
from .hooks import HookRegistry
from .models import REQUIRED_ACCESSORS, RegistryEntry

LOGGER = logging.getLogger(__name__)


class EnablementResolver(Protocol):
    def is_enabled(self, key: str, default: bool = True) -> bool:
        ...


class StaticEnablement:
    """Every notification keeps the enablement it was registered with."""

    def is_enabled(self, key: str, default: bool = True) -> bool:
        return bool(default)


def resolve_handler(reference: Any) -> Optional[type]:
    """Return the class behind ``reference``.

    Accepts a class or an import path (``pkg.module:Class`` or
    ``pkg.module.Class``); anything unresolvable gives ``None``.
    """
    if inspect.isclass(reference):
        return reference
    if not isinstance(reference, str) or not reference.strip():
        return None
    path = reference.strip()
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        return None
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError, ValueError):
        return None
    return target if inspect.isclass(target) else None


def implements_notification(handler: Any) -> bool:
    if not inspect.isclass(handler) or inspect.isabstract(handler):
        return False
    return all(callable(getattr(handler, name, None)) for name in REQUIRED_ACCESSORS)


def build_entry(key: Any, config: Any) -> Optional[RegistryEntry]:
    """Validate one raw registry item, returning ``None`` when it is unusable."""
    if not isinstance(key, str) or not key:
        return None
    if not isinstance(config, Mapping):
        return None
    name = config.get("name")
    if not isinstance(name, str) or "handler" not in config:
        return None
    handler = resolve_handler(config["handler"])
    if handler is None or not implements_notification(handler):
        return None
    return RegistryEntry(
        key=key,
        handler=handler,
        name=name,
        default_enabled=bool(config.get("default_enabled", True)),
    )


class NotificationRegistry:
    """Known notifications: the built-in set plus whatever the registry hook adds."""

    def __init__(
        self,
        hooks: HookRegistry,
        enablement: Optional[EnablementResolver] = None,
        core: Optional[Mapping] = None,
    ) -> None:
        self.hooks = hooks
        self.enablement = enablement or StaticEnablement()
        self._core = dict(CORE_NOTIFICATIONS if core is None else core)

    def raw_entries(self) -> Dict[Any, Any]:
        base = {key: dict(item) if isinstance(item, Mapping) else item for key, item in self._core.items()}
        merged = self.hooks.apply_filters(REGISTRY_HOOK, base)
        if not isinstance(merged, Mapping):
            LOGGER.warning("Registry hook returned %s instead of a mapping", type(merged).__name__)
            return {}
        return dict(merged)

    def list_entries(self, enabled_only: bool = False) -> Dict[str, RegistryEntry]:
        entries: Dict[str, RegistryEntry] = {}
        for key, config in self.raw_entries().items():
            entry = build_entry(key, config)
            if entry is None:
                LOGGER.debug("Dropping malformed notification entry %r", key)
                continue
            if enabled_only and not self.is_enabled(entry):
                continue
            entries[key] = entry
        return entries

    def is_enabled(self, entry: RegistryEntry) -> bool:
        return bool(self.enablement.is_enabled(entry.key, entry.default_enabled))

    def get(self, key: str, enabled_only: bool = False) -> Optional[RegistryEntry]:
        return self.list_entries(enabled_only).get(key)

    def register(self, key: str, handler: Any, name: str, default_enabled: bool = True) -> Callable:
        """Add or replace ``key`` through the registry hook."""
        item = {"handler": handler, "name": name, "default_enabled": default_enabled}

        def _add(entries: Dict[Any, Any]) -> Dict[Any, Any]:
            entries[key] = item
            return entries

        return self.hooks.add_filter(REGISTRY_HOOK, _add)

    def unregister(self, key: str) -> Callable:
        def _remove(entries: Dict[Any, Any]) -> Dict[Any, Any]:
            entries.pop(key, None)
            return entries

        return self.hooks.add_filter(REGISTRY_HOOK, _remove)
