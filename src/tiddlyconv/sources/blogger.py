"""Blogger v3 REST source.

The blog is found either by its public URL (``/blogs/byurl``) or directly by
id.  Posts come back in pages linked by ``nextPageToken``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from tiddlyconv.errors import ConfigurationError, DependencyError
from tiddlyconv.http import PAGE_DELAY, fetch_page, get_json, make_client, pause
from tiddlyconv.note import Note, dedupe_title, fallback_title, system_note
from tiddlyconv.tags import build_tag_string

logger = logging.getLogger(__name__)

BLOGGER_API = "https://www.googleapis.com/blogger/v3"
MAX_RESULTS = 20


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def post_note(post: dict[str, Any]) -> Note:
    """One note per Blogger post resource."""
    url = str(post.get("url") or "")
    author = str((post.get("author") or {}).get("displayName") or "")

    text = str(post.get("content") or "")
    if author:
        text += f"\n\n<p>''Автор: {author}''</p>"
    if url:
        text += f"\n\n---\n\n''Оригинал поста:'' <a href=\"{url}\" target=\"_blank\">{url}</a>"

    created = _parse_date(post.get("published"))
    note = Note(
        title=fallback_title(str(post.get("title") or ""), url, str(post.get("id") or "")),
        text=text,
        tags=build_tag_string(str(label) for label in post.get("labels") or []),
    ).stamp(created)
    updated = _parse_date(post.get("updated"))
    if updated is not None:
        note.modified = updated
    note.fields["post-id"] = str(post.get("id") or "")
    if url:
        note.fields["url"] = url
    return note


class BloggerSource:
    """Pull every post of a Blogger blog."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str = "",
        blog_id: str = "",
        transport: httpx.BaseTransport | None = None,
        page_delay: float = PAGE_DELAY,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Blogger needs --api_key")
        if not url and not blog_id:
            raise ConfigurationError("Blogger needs --url or --blog_id")
        self.api_key = api_key
        self.url = url
        self.blog_id = blog_id
        self.page_delay = page_delay
        self._transport = transport

    def resolve_blog(self, client: httpx.Client) -> dict[str, Any]:
        """Return the blog resource; only ``id`` is guaranteed to be present."""
        if self.blog_id:
            try:
                blog = get_json(client, f"{BLOGGER_API}/blogs/{self.blog_id}", {"key": self.api_key})
            except DependencyError as exc:
                logger.warning("Blog info unavailable: %s", exc)
                return {"id": self.blog_id}
            return blog if isinstance(blog, dict) else {"id": self.blog_id}

        blog = get_json(
            client, f"{BLOGGER_API}/blogs/byurl", {"url": self.url, "key": self.api_key}
        )
        if not isinstance(blog, dict) or not blog.get("id"):
            raise DependencyError(f"no Blogger blog found at {self.url!r}")
        logger.info("Resolved %s to blog id %s", self.url, blog["id"])
        return blog

    def posts(self, client: httpx.Client, blog_id: str) -> list[dict[str, Any]]:
        posts: list[dict[str, Any]] = []
        token = ""
        page = 1
        while True:
            params: dict[str, Any] = {"key": self.api_key, "maxResults": MAX_RESULTS}
            if token:
                params["pageToken"] = token
            data = fetch_page(client, f"{BLOGGER_API}/blogs/{blog_id}/posts", page, params)
            if not isinstance(data, dict):
                if page == 1 and data is not None:
                    raise DependencyError("unexpected posts response from Blogger")
                break
            batch = [p for p in data.get("items") or [] if isinstance(p, dict)]
            if not batch:
                break
            posts.extend(batch)
            logger.info("Loaded %d posts from page %d", len(batch), page)
            token = str(data.get("nextPageToken") or "")
            if not token:
                break
            page += 1
            pause(self.page_delay)
        return posts

    def convert(self) -> list[Note]:
        with make_client(self._transport) as client:
            blog = self.resolve_blog(client)
            posts = self.posts(client, str(blog["id"]))

        notes: list[Note] = []
        if blog.get("name") is not None:
            notes.append(system_note("$:/SiteTitle", str(blog.get("name") or "")))
            notes.append(system_note("$:/SiteSubtitle", str(blog.get("description") or "")))
        titles: set[str] = set()
        for raw in posts:
            note = post_note(raw)
            note.title = dedupe_title(note.title, titles)
            notes.append(note)
        logger.info("Converted %d Blogger posts", len(posts))
        return notes
