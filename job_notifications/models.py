from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .rendering import strip_tags

Addresses = Union[str, Sequence[str]]

REQUIRED_ACCESSORS = (
    "subject",
    "sender",
    "recipients",
    "rich_content",
    "plain_content",
    "attachments",
    "is_valid",
)


@dataclass(frozen=True, slots=True)
class JobListing:
    """A submitted job listing as handed to notifications."""

    id: str
    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    url: str = ""
    author_email: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationArgs(Mapping):
    """Read-only snapshot of the arguments a notification was scheduled with.

    Anything that is not a mapping becomes an empty snapshot.
    """

    __slots__ = ("_data",)

    def __init__(self, args: Any = None) -> None:
        data = dict(args) if isinstance(args, Mapping) else {}
        self._data = MappingProxyType(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"NotificationArgs({dict(self._data)!r})"


class NotificationEvent(ABC):
    """Email notification built from the arguments it was scheduled with.

    Every accessor must depend on ``self.args`` only. Notifications are sent
    at the end of the request, after request-scoped state is gone, so any
    value a notification needs has to be passed in when scheduling it.
    """

    def __init__(self, args: Any = None) -> None:
        self._args = NotificationArgs(args)

    @property
    def args(self) -> NotificationArgs:
        return self._args

    @abstractmethod
    def subject(self) -> str:
        """Email subject line."""

    @abstractmethod
    def sender(self) -> Optional[str]:
        """``From:`` value, plain or ``Name <address>``; ``None`` uses the default sender."""

    @abstractmethod
    def recipients(self) -> Optional[Addresses]:
        """One address, a comma-separated string, or a sequence of addresses."""

    @abstractmethod
    def rich_content(self) -> str:
        """HTML body."""

    @abstractmethod
    def is_valid(self) -> bool:
        """Whether the arguments carry everything needed to address and justify the email."""

    def plain_content(self) -> str:
        return strip_tags(self.rich_content() or "")

    def attachments(self) -> Sequence[str]:
        return ()


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """A notification key resolved to the class that builds it."""

    key: str
    handler: type
    name: str
    default_enabled: bool = True

    def build(self, args: Any) -> NotificationEvent:
        return self.handler(NotificationArgs(args))


@dataclass(frozen=True, slots=True)
class DispatchRecord:
    """Field values of one notification after the per-field filters ran."""

    to: Any
    sender: Any
    subject: Any
    rich_content: Any
    plain_content: Any
    attachments: Tuple[str, ...] = ()

    @classmethod
    def from_fields(cls, fields: Dict[str, Any]) -> "DispatchRecord":
        return cls(
            to=fields.get("to"),
            sender=fields.get("from"),
            subject=fields.get("subject"),
            rich_content=fields.get("rich_content"),
            plain_content=fields.get("plain_content"),
            attachments=normalize_attachments(fields.get("attachments")),
        )


@dataclass(slots=True)
class OutgoingMessage:
    """Payload handed to a mail transport."""

    recipients: List[str]
    subject: str
    body: str
    headers: Dict[str, str] = field(default_factory=dict)
    attachments: List[str] = field(default_factory=list)

    @property
    def is_html(self) -> bool:
        return self.headers.get("Content-Type", "").startswith("text/html")


def normalize_recipients(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, (set, frozenset)):
        items = sorted(str(item) for item in value if item)
    else:
        return []
    return [str(item).strip() for item in items if item and str(item).strip()]


def normalize_attachments(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(path) for path in value if path)
    return ()
