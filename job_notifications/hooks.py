"""Named extension points.

Filters are ordered chains of transforms: each callback receives the
current value (plus any extra arguments) and returns the new value.
Actions are ordered callbacks whose return values are collected.
Callbacks always run in registration order.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List

Callback = Callable[..., Any]


class HookRegistry:
    """Holds filter chains and actions keyed by hook name."""

    def __init__(self) -> None:
        self._filters: Dict[str, List[Callback]] = defaultdict(list)
        self._actions: Dict[str, List[Callback]] = defaultdict(list)

    def add_filter(self, name: str, callback: Callback) -> Callback:
        if not callable(callback):
            raise TypeError(f"Filter for {name!r} must be callable")
        self._filters[name].append(callback)
        return callback

    def remove_filter(self, name: str, callback: Callback) -> bool:
        chain = self._filters.get(name)
        if not chain or callback not in chain:
            return False
        chain.remove(callback)
        return True

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        for callback in list(self._filters.get(name, ())):
            value = callback(value, *args)
        return value

    def add_action(self, name: str, callback: Callback) -> Callback:
        if not callable(callback):
            raise TypeError(f"Action for {name!r} must be callable")
        self._actions[name].append(callback)
        return callback

    def remove_action(self, name: str, callback: Callback) -> bool:
        chain = self._actions.get(name)
        if not chain or callback not in chain:
            return False
        chain.remove(callback)
        return True

    def do_action(self, name: str, *args: Any) -> List[Any]:
        return [callback(*args) for callback in list(self._actions.get(name, ()))]
