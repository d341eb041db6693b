"""Threaded-comment materializer.

Comment sources hand over a flat list of records, each carrying its own id
and the id of the comment it answers (``0`` for a top-level comment).  The
thread is expressed in the output purely through tags: every comment note is
tagged with its parent's title, and every comment that has replies ends with
a ``list-links`` macro that lists them.

Because that trailer depends on whether a node has children, the parent map
is built in a first pass and the notes are emitted in a second one.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from tiddlyconv.note import Note
from tiddlyconv.tags import list_links, parent_tag

HIDDEN_COMMENT = "''Комментарий скрыт или удален.''"
_COMMENT_TITLE_RE = re.compile(r".-comment-\d+\Z")


@dataclass
class CommentRecord:
    id: int
    parent_id: int
    author: str
    body: str | None
    created: datetime | None = None
    url: str = ""
    date_label: str = ""   # shown verbatim in the header when set


def comment_title(post_title: str, comment_id: int) -> str:
    return f"{post_title}-comment-{comment_id}"


def is_comment_title(title: str) -> bool:
    return _COMMENT_TITLE_RE.search(title) is not None


def _header(record: CommentRecord) -> str:
    lines = [f"''Автор:'' {record.author}\n"]
    if record.date_label:
        lines.append(f"''Дата:'' {record.date_label}\n")
    if record.url:
        lines.append(f"''Ссылка:'' <a href=\"{record.url}\" target=\"_blank\">{record.url}</a>\n")
    return "".join(lines)


def materialize_thread(records: Iterable[CommentRecord], post_title: str) -> list[Note]:
    """Turn *records* into comment notes hanging off the note *post_title*.

    A record whose parent is not part of the batch is attached to the post.
    Records without an id are dropped.
    """
    batch = [r for r in records if r.id]
    known = {r.id for r in batch}

    parent_of: dict[int, int] = {}
    has_children: dict[int, bool] = {}
    for r in batch:
        if r.parent_id and r.parent_id != r.id and r.parent_id in known:
            parent_of[r.id] = r.parent_id
            has_children[r.parent_id] = True

    notes: list[Note] = []
    for r in batch:
        title = comment_title(post_title, r.id)
        parent = parent_of.get(r.id)
        parent_title = comment_title(post_title, parent) if parent else post_title

        text = _header(r) + "\n---\n\n" + (r.body or HIDDEN_COMMENT)
        if has_children.get(r.id):
            text += "\n\n---\n\n" + list_links(title)

        notes.append(Note(title=title, text=text, tags=parent_tag(parent_title)).stamp(r.created))
    return notes


def quoted_comment(text: str, author: str) -> str:
    """Body of an unthreaded comment note: the quote, then the author."""
    return f"<blockquote>{text}</blockquote>\n\n''- {author}''"
