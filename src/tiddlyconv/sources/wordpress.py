"""WordPress REST sources.

Two API dialects are supported:

* **WordPress.com** (host ends in ``.wordpress.com``) through the public v1.1
  API at ``https://public-api.wordpress.com/rest/v1.1/sites/<host>/``.
  Comments are fetched per post from ``/posts/<id>/replies/``.
* **Self-hosted** sites through ``https://<host>/wp-json/wp/v2/``.  Comments
  for the whole site are paged from ``/comments`` and grouped by post.

Both produce one note per post followed by that post's threaded comments.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit

import httpx

from tiddlyconv.errors import ConfigurationError, DependencyError
from tiddlyconv.http import PAGE_DELAY, fetch_page, get_json, make_client, pause
from tiddlyconv.note import Note, dedupe_title, fallback_title, system_note
from tiddlyconv.tags import build_tag_string, list_links
from tiddlyconv.threads import CommentRecord, materialize_thread

logger = logging.getLogger(__name__)

WPCOM_API = "https://public-api.wordpress.com/rest/v1.1/sites"
WPCOM_POST_FIELDS = "ID,URL,date,title,content,author,tags,slug"
COMMENTS_PER_PAGE = 100


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def post_title(raw: str) -> str:
    """Unescape a rendered WordPress title and make it a single token."""
    return html.unescape(raw).replace(" ", "_")


@dataclass
class WordPressPost:
    id: int
    title: str
    content: str
    url: str
    slug: str = ""
    date: datetime | None = None
    author: str = ""
    tags: list[str] = field(default_factory=list)
    comments: list[CommentRecord] = field(default_factory=list)

    def to_notes(self) -> list[Note]:
        comments = materialize_thread(self.comments, self.title)
        text = self.content
        if self.author:
            text += f"\n\n<p>''Автор: {self.author}''</p>"
        if self.url:
            text += f"\n\n---\n\n''Оригинал поста:'' <a href=\"{self.url}\" target=\"_blank\">{self.url}</a>"
        if comments:
            text += "\n\n---\n\n" + list_links(self.title)
        note = Note(title=self.title, text=text, tags=build_tag_string(self.tags)).stamp(self.date)
        note.fields["post-id"] = str(self.id)
        if self.url:
            note.fields["url"] = self.url
        return [note, *comments]


def wpcom_parent_id(parent: Any) -> int:
    """``parent`` is ``false``/``null`` for top-level comments, else an object."""
    if isinstance(parent, dict):
        pid = parent.get("id", parent.get("ID"))
        if isinstance(pid, (int, float)) and not isinstance(pid, bool) and pid > 0:
            return int(pid)
    return 0


class WordPressSource:
    """Pull posts and comments from a WordPress site's REST API."""

    def __init__(
        self,
        url: str,
        *,
        transport: httpx.BaseTransport | None = None,
        page_delay: float = PAGE_DELAY,
    ) -> None:
        self.host = urlsplit(url).netloc
        if not self.host:
            raise ConfigurationError(f"invalid WordPress URL: {url!r}")
        self.is_wpcom = self.host.endswith(".wordpress.com")
        self.page_delay = page_delay
        self._transport = transport

    def convert(self) -> list[Note]:
        with make_client(self._transport) as client:
            if self.is_wpcom:
                notes = self._site_notes(client, f"{WPCOM_API}/{self.host}")
                posts = self._wpcom_posts(client)
            else:
                notes = self._site_notes(client, f"https://{self.host}/wp-json/")
                posts = self._selfhosted_posts(client)
        titles: set[str] = set()
        for post in posts:
            post.title = dedupe_title(fallback_title(post.title, post.slug, f"post-{post.id}"), titles)
            notes.extend(post.to_notes())
        logger.info("Converted %d posts from %s", len(posts), self.host)
        return notes

    # ------------------------------------------------------------------
    # Site info
    # ------------------------------------------------------------------

    def _site_notes(self, client: httpx.Client, url: str) -> list[Note]:
        try:
            info = get_json(client, url)
        except DependencyError as exc:
            logger.warning("Site info unavailable: %s", exc)
            return []
        if not isinstance(info, dict):
            return []
        return [
            system_note("$:/SiteTitle", html.unescape(str(info.get("name") or ""))),
            system_note("$:/SiteSubtitle", html.unescape(str(info.get("description") or ""))),
        ]

    # ------------------------------------------------------------------
    # WordPress.com
    # ------------------------------------------------------------------

    def _wpcom_posts(self, client: httpx.Client) -> list[WordPressPost]:
        posts: list[WordPressPost] = []
        page = 1
        while True:
            data = fetch_page(
                client, f"{WPCOM_API}/{self.host}/posts", page, {"page": page, "fields": WPCOM_POST_FIELDS}
            )
            if data is None:
                break
            if not isinstance(data, dict) or not isinstance(data.get("posts"), list):
                if page == 1:
                    raise DependencyError(f"unexpected posts response from {self.host}")
                break
            batch = data["posts"]
            if not batch:
                break
            for raw in batch:
                posts.append(self._wpcom_post(client, raw))
            logger.info("Loaded %d posts from page %d", len(batch), page)
            page += 1
            pause(self.page_delay)
        return posts

    def _wpcom_post(self, client: httpx.Client, raw: dict[str, Any]) -> WordPressPost:
        tags = raw.get("tags") or {}
        post = WordPressPost(
            id=int(raw.get("ID") or 0),
            title=post_title(str(raw.get("title") or "")),
            content=str(raw.get("content") or ""),
            url=str(raw.get("URL") or ""),
            slug=str(raw.get("slug") or ""),
            date=parse_iso(raw.get("date")),
            author=str((raw.get("author") or {}).get("name") or ""),
            tags=[str(t.get("name") or name) for name, t in tags.items()] if isinstance(tags, dict) else [],
        )
        post.comments = self._wpcom_comments(client, post.id)
        return post

    def _wpcom_comments(self, client: httpx.Client, post_id: int) -> list[CommentRecord]:
        url = f"{WPCOM_API}/{self.host}/posts/{post_id}/replies/"
        try:
            data = get_json(client, url, {"order": "ASC"})
        except DependencyError as exc:
            logger.warning("Comments for post %d unavailable: %s", post_id, exc)
            return []
        finally:
            pause(self.page_delay)
        comments = data.get("comments") if isinstance(data, dict) else None
        return [
            CommentRecord(
                id=int(c.get("ID") or 0),
                parent_id=wpcom_parent_id(c.get("parent")),
                author=str((c.get("author") or {}).get("name") or ""),
                body=c.get("content"),
                created=parse_iso(c.get("date")),
                url=str(c.get("URL") or ""),
            )
            for c in comments or []
            if isinstance(c, dict)
        ]

    # ------------------------------------------------------------------
    # Self-hosted
    # ------------------------------------------------------------------

    def _paged(self, client: httpx.Client, url: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            data = fetch_page(client, url, page, {**params, "page": page})
            if data is None:
                break
            if not isinstance(data, list):
                if page == 1:
                    raise DependencyError(f"unexpected response from {url}")
                break
            if not data:
                break
            items.extend(d for d in data if isinstance(d, dict))
            logger.info("Loaded %d items from %s page %d", len(data), url, page)
            page += 1
            pause(self.page_delay)
        return items

    def _selfhosted_posts(self, client: httpx.Client) -> list[WordPressPost]:
        base = f"https://{self.host}/wp-json/wp/v2"
        raw_posts = self._paged(client, f"{base}/posts", {"_embed": "author,wp:term"})
        try:
            raw_comments = self._paged(
                client, f"{base}/comments", {"per_page": COMMENTS_PER_PAGE, "order": "asc"}
            )
        except DependencyError as exc:
            logger.warning("Comments unavailable: %s", exc)
            raw_comments = []

        by_post: dict[int, list[CommentRecord]] = {}
        for c in raw_comments:
            by_post.setdefault(int(c.get("post") or 0), []).append(
                CommentRecord(
                    id=int(c.get("id") or 0),
                    parent_id=int(c.get("parent") or 0),
                    author=html.unescape(str(c.get("author_name") or "")),
                    body=html.unescape(str((c.get("content") or {}).get("rendered") or "")),
                    created=parse_iso(c.get("date_gmt") or c.get("date")),
                    url=str(c.get("link") or ""),
                )
            )

        posts: list[WordPressPost] = []
        for raw in raw_posts:
            embedded = raw.get("_embedded") or {}
            authors = embedded.get("author") or []
            terms = embedded.get("wp:term") or []
            post = WordPressPost(
                id=int(raw.get("id") or 0),
                title=post_title(str((raw.get("title") or {}).get("rendered") or "")),
                content=html.unescape(str((raw.get("content") or {}).get("rendered") or "")),
                url=str(raw.get("link") or ""),
                slug=str(raw.get("slug") or ""),
                date=parse_iso(raw.get("date_gmt") or raw.get("date")),
                author=html.unescape(str(authors[0].get("name") or "")) if authors else "",
                tags=[str(t.get("name") or "") for group in terms for t in group or []],
            )
            post.comments = by_post.get(post.id, [])
            posts.append(post)
        return posts
