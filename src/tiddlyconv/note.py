"""Core Note dataclass and its TiddlyWiki JSON projection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

#: Keys always written by :meth:`Note.to_dict`; side-fields may not override them.
BUILTIN_KEYS = frozenset({"title", "text", "tags", "created", "modified"})


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format *value* as ``YYYYMMDDhhmmssSSS`` in UTC.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y%m%d%H%M%S") + f"{value.microsecond // 1000:03d}"


@dataclass
class Note:
    """A single tiddler: title, body, tags, timestamps and side-fields."""

    title: str
    text: str
    #: Whitespace-delimited tag string, ``[[multi word]]`` for tags with spaces
    tags: str = ""
    created: datetime = field(default_factory=now_utc)
    modified: datetime | None = None
    fields: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.modified is None:
            self.modified = self.created

    def stamp(self, when: datetime | None) -> "Note":
        """Set both timestamps to *when* (no-op for ``None``) and return self."""
        if when is not None:
            self.created = when
            self.modified = when
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "text": self.text,
            "created": format_timestamp(self.created),
            "modified": format_timestamp(self.modified or self.created),
        }
        if self.tags:
            data["tags"] = self.tags
        for key, value in self.fields.items():
            if key in BUILTIN_KEYS:
                logger.debug("Ignoring field %r on %r: clashes with a built-in key", key, self.title)
                continue
            data[key] = value
        return data


def system_note(title: str, text: str) -> Note:
    """Return a ``$:/`` system note consumed by the rendering template."""
    return Note(title=title, text=text)


def dedupe_title(title: str, seen: set[str]) -> str:
    """Return *title*, or ``title (n)`` if it was already handed out.

    The returned title is recorded in *seen*.
    """
    candidate = title
    n = 2
    while candidate in seen:
        candidate = f"{title} ({n})"
        n += 1
    seen.add(candidate)
    return candidate


def fallback_title(*candidates: str) -> str:
    """First candidate that is not blank, stripped; ``"untitled"`` if none is."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return "untitled"
