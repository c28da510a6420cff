"""Data models for the Messenger webhook pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PAGE_OBJECT = "page"


@dataclass(frozen=True)
class MessagingItem:
    """One messaging event inside a page entry."""

    sender_id: str
    text: str | None = None


@dataclass(frozen=True)
class PageEntry:
    """A page entry: the page id plus its messaging events."""

    id: str
    messaging: list[MessagingItem] = field(default_factory=list)


@dataclass(frozen=True)
class PageEvent:
    """Inbound payload with ``object == "page"``."""

    entries: list[PageEntry]


@dataclass(frozen=True)
class UnrecognizedEvent:
    """Any payload the pipeline does not handle. Processing it is a no-op."""

    object_type: str | None = None


InboundEvent = PageEvent | UnrecognizedEvent


@dataclass
class VerificationResult:
    """Outcome of the webhook subscription handshake."""

    status_code: int
    body: str = ""

    @property
    def accepted(self) -> bool:
        return self.status_code == 200


def parse_inbound_event(payload: Any) -> InboundEvent:
    """Validate a raw webhook payload into a tagged event.

    Entries and messaging items lacking the fields the pipeline needs are
    dropped individually; the rest of the payload is still processed.
    """
    if not isinstance(payload, dict):
        return UnrecognizedEvent()
    object_type = payload.get("object")
    if object_type != PAGE_OBJECT:
        return UnrecognizedEvent(object_type if isinstance(object_type, str) else None)

    entries: list[PageEntry] = []
    raw_entries = payload.get("entry")
    for raw_entry in raw_entries if isinstance(raw_entries, list) else []:
        entry = _parse_entry(raw_entry)
        if entry is not None:
            entries.append(entry)
    return PageEvent(entries=entries)


def _parse_entry(raw: Any) -> PageEntry | None:
    if not isinstance(raw, dict):
        return None
    entry_id = raw.get("id")
    if not isinstance(entry_id, (str, int)) or isinstance(entry_id, bool):
        return None

    items: list[MessagingItem] = []
    raw_messaging = raw.get("messaging")
    for raw_item in raw_messaging if isinstance(raw_messaging, list) else []:
        item = _parse_messaging_item(raw_item)
        if item is not None:
            items.append(item)
    return PageEntry(id=str(entry_id), messaging=items)


def _parse_messaging_item(raw: Any) -> MessagingItem | None:
    if not isinstance(raw, dict):
        return None
    sender = raw.get("sender")
    sender_id = sender.get("id") if isinstance(sender, dict) else None
    if not isinstance(sender_id, (str, int)) or isinstance(sender_id, bool):
        return None

    message = raw.get("message")
    text = message.get("text") if isinstance(message, dict) else None
    return MessagingItem(
        sender_id=str(sender_id),
        text=text if isinstance(text, str) else None,
    )
