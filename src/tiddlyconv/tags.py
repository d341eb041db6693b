"""Tag-string building and parsing.

TiddlyWiki stores tags as one whitespace-delimited string.  Tags that
contain whitespace are wrapped in double square brackets::

    [[foo bar]] baz
"""

from __future__ import annotations

import re
from collections.abc import Iterable

# [[multi word tag]] or a bare token
_TAG_TOKEN_RE = re.compile(r"\[\[([^\]]*)\]\]|(\S+)")
_HASHNODE_TAG_RE = re.compile(r"[^a-zA-Z0-9-]+")


def wrap_tag(tag: str) -> str:
    """Return *tag* bracketed when it contains whitespace."""
    return f"[[{tag}]]" if any(ch.isspace() for ch in tag) else tag


def build_tag_string(tags: Iterable[str]) -> str:
    """Join *tags* into a tag string, skipping empty entries."""
    return " ".join(wrap_tag(t) for t in (tag.strip() for tag in tags) if t)


def split_tag_string(value: str) -> list[str]:
    """Return the individual tags of a tag string (order kept)."""
    result: list[str] = []
    for m in _TAG_TOKEN_RE.finditer(value):
        tag = m.group(1) if m.group(1) is not None else m.group(2)
        if tag:
            result.append(tag)
    return result


def parent_tag(title: str) -> str:
    """Tag pointing at the note titled *title*, always bracketed."""
    return f"[[{title}]]"


def list_links(title: str) -> str:
    """Macro listing every note tagged with *title*."""
    return f'<<list-links "[tag[{title}]]">>'


def sanitize_tag(tag: str) -> str:
    """Hashnode-style tag: spaces become dashes, anything non-ASCII-alnum goes."""
    return _HASHNODE_TAG_RE.sub("", tag.replace(" ", "-"))
