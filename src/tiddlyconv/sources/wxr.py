"""WordPress eXtended RSS (WXR) export importer.

Elements are matched by local name, with the namespace consulted only where
two namespaces share a local name (``content:encoded`` vs
``excerpt:encoded``).  Exports from any WXR version (1.0 to 1.2) therefore
load the same way.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path

from tiddlyconv.errors import DependencyError
from tiddlyconv.note import Note, dedupe_title, fallback_title
from tiddlyconv.threads import quoted_comment
from tiddlyconv.tags import build_tag_string

logger = logging.getLogger(__name__)

_CONTENT_NS = "purl.org/rss/1.0/modules/content/"
_COMMENT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _split(tag: str) -> tuple[str, str]:
    """``{ns}local`` → ``(ns, local)``."""
    if tag.startswith("{"):
        ns, _, local = tag[1:].partition("}")
        return ns, local
    return "", tag


def _child(elem: ET.Element, local: str, ns_hint: str = "") -> ET.Element | None:
    for child in elem:
        ns, name = _split(child.tag)
        if name == local and ns_hint in ns:
            return child
    return None


def _text(elem: ET.Element, local: str, ns_hint: str = "") -> str:
    child = _child(elem, local, ns_hint)
    return (child.text or "").strip() if child is not None else ""


def _children(elem: ET.Element, local: str) -> list[ET.Element]:
    return [c for c in elem if _split(c.tag)[1] == local]


def parse_pub_date(value: str) -> datetime | None:
    """RFC 1123 with numeric zone, e.g. ``Wed, 01 Jan 2020 10:00:00 +0000``."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Unparseable pubDate %r", value)
        return None


def parse_comment_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, _COMMENT_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.debug("Unparseable comment date %r", value)
        return None


class WxrSource:
    """Import published posts and their comments from a WXR file."""

    def __init__(self, xml_path: Path | str) -> None:
        self.xml_path = Path(xml_path)

    def convert(self) -> list[Note]:
        try:
            tree = ET.parse(self.xml_path)
        except OSError as exc:
            raise DependencyError(f"cannot open {self.xml_path}: {exc}") from exc
        except ET.ParseError as exc:
            raise DependencyError(f"invalid XML in {self.xml_path}: {exc}") from exc

        channel = _child(tree.getroot(), "channel")
        if channel is None:
            raise DependencyError(f"{self.xml_path} has no <channel>; not a WXR export")

        titles: set[str] = set()
        notes: list[Note] = []
        posts = 0
        for item in _children(channel, "item"):
            if _text(item, "post_type") != "post" or _text(item, "status") != "publish":
                continue
            posts += 1
            notes.extend(self.item_notes(item, titles))
        logger.info("Imported %d published posts from %s", posts, self.xml_path)
        return notes

    def item_notes(self, item: ET.Element, titles: set[str]) -> list[Note]:
        post_id = _text(item, "post_id")
        title = dedupe_title(
            fallback_title(_text(item, "title"), _text(item, "post_name"), _text(item, "link"), f"post-{post_id}"),
            titles,
        )
        tags = build_tag_string(
            (c.text or "").strip() for c in _children(item, "category") if c.get("domain") == "post_tag"
        )
        content = _child(item, "encoded", _CONTENT_NS)

        post = Note(
            title=title,
            text=(content.text or "") if content is not None else "",
            tags=tags,
        ).stamp(parse_pub_date(_text(item, "pubDate")))
        post.fields["post-id"] = post_id
        notes = [post]

        for comment in _children(item, "comment"):
            author = _text(comment, "comment_author")
            note = Note(
                title=dedupe_title(f"Комментарий от {author} к посту «{title}»", titles),
                text=quoted_comment(_text(comment, "comment_content"), author),
                tags="comment",
            ).stamp(parse_comment_date(_text(comment, "comment_date_gmt")))
            note.fields["parent-post"] = post_id
            notes.append(note)
        return notes
