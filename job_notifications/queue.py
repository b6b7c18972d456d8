from __future__ import annotations

import threading
from typing import Any, List, Tuple

QueueEntry = Tuple[Any, Any]


class DeferredQueue:
    """Notifications scheduled during the current request cycle.

    Entries live in thread-local storage so concurrent requests served on
    different threads never flush each other's notifications.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def _entries(self) -> List[QueueEntry]:
        entries = getattr(self._local, "entries", None)
        if entries is None:
            entries = self._local.entries = []
        return entries

    def schedule(self, key: Any, args: Any = None) -> None:
        self._entries().append((key, args))

    def drain(self) -> List[QueueEntry]:
        """Hand back everything scheduled so far and start an empty queue.

        Anything scheduled while the returned entries are processed lands
        in the new queue and waits for the next flush.
        """
        entries = self._entries()
        self._local.entries = []
        return entries

    def pending(self) -> int:
        return len(self._entries())

    def clear(self) -> None:
        self._local.entries = []
