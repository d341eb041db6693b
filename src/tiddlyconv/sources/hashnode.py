"""Hashnode source (GraphQL API at ``https://gql.hashnode.com/``).

The blog is addressed by its publication host.  When only a username is
known, one preliminary query looks up the user's first publication.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
import markdown

from tiddlyconv.errors import ConfigurationError, DependencyError
from tiddlyconv.http import PAGE_DELAY, make_client, pause
from tiddlyconv.note import Note, dedupe_title, fallback_title, system_note
from tiddlyconv.tags import build_tag_string, sanitize_tag
from tiddlyconv.threads import quoted_comment

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://gql.hashnode.com/"
POSTS_PER_PAGE = 20

USER_HOST_QUERY = """
query UserHost($username: String!) {
  user(username: $username) {
    publications(first: 1) {
      edges { node { host } }
    }
  }
}
"""

POSTS_QUERY = """
query Posts($host: String!, $first: Int!, $after: String) {
  publication(host: $host) {
    posts(first: $first, after: $after) {
      pageInfo { endCursor hasNextPage }
      edges {
        node {
          title
          slug
          publishedAt
          content { markdown }
          tags { name slug }
          comments(first: 50) {
            edges {
              node {
                author { name }
                content { text }
                dateAdded
                replies(first: 50) {
                  edges { node { author { name } content { text } dateAdded } }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _edges(connection: Any) -> list[dict[str, Any]]:
    if not isinstance(connection, dict):
        return []
    return [e["node"] for e in connection.get("edges") or [] if isinstance(e, dict) and e.get("node")]


class HashnodeSource:
    """Convert a Hashnode publication's posts, comments and replies."""

    def __init__(
        self,
        *,
        host: str = "",
        username: str = "",
        transport: httpx.BaseTransport | None = None,
        page_delay: float = PAGE_DELAY,
    ) -> None:
        if not host and not username:
            raise ConfigurationError("Hashnode needs --url, --host or --user")
        self.host = host
        self.username = username
        self.page_delay = page_delay
        self._transport = transport
        self._titles: set[str] = set()

    def query(self, client: httpx.Client, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run one GraphQL query and return its ``data`` member."""
        try:
            r = client.post(GRAPHQL_URL, json={"query": query, "variables": variables})
        except httpx.HTTPError as exc:
            raise DependencyError(f"Hashnode request failed: {exc}") from exc
        if not r.is_success:
            raise DependencyError(f"Hashnode returned HTTP {r.status_code}")
        try:
            payload = r.json()
        except ValueError as exc:
            raise DependencyError(f"Hashnode returned invalid JSON: {exc}") from exc
        if payload.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in payload["errors"])
            raise DependencyError(f"Hashnode query failed: {messages}")
        return payload.get("data") or {}

    def resolve_host(self, client: httpx.Client) -> str:
        if self.host:
            return self.host
        logger.info("Looking up the publication of Hashnode user %s", self.username)
        data = self.query(client, USER_HOST_QUERY, {"username": self.username})
        publications = _edges((data.get("user") or {}).get("publications"))
        if not publications:
            raise DependencyError(f"user {self.username!r} has no publications")
        host = str(publications[0].get("host") or "")
        logger.info("Found publication host %s", host)
        return host

    def convert(self) -> list[Note]:
        notes: list[Note] = []
        with make_client(self._transport) as client:
            host = self.resolve_host(client)
            cursor: str | None = None
            while True:
                data = self.query(
                    client, POSTS_QUERY, {"host": host, "first": POSTS_PER_PAGE, "after": cursor}
                )
                publication = data.get("publication")
                if publication is None:
                    raise DependencyError(f"no Hashnode publication at {host!r}")
                posts = publication.get("posts") or {}
                batch = _edges(posts)
                if not batch and not notes:
                    raise DependencyError(f"no posts found on {host!r}")
                for post in batch:
                    notes.extend(self.post_notes(post, host))

                page_info = posts.get("pageInfo") or {}
                logger.info("Loaded %d posts, more: %s", len(batch), bool(page_info.get("hasNextPage")))
                if not page_info.get("hasNextPage"):
                    break
                cursor = page_info.get("endCursor")
                pause(self.page_delay)

        notes.append(system_note("$:/SiteTitle", "Hashnode"))
        notes.append(system_note("$:/SiteSubtitle", host))
        return notes

    def post_notes(self, post: dict[str, Any], host: str) -> list[Note]:
        slug = str(post.get("slug") or "")
        title = dedupe_title(fallback_title(str(post.get("title") or ""), slug), self._titles)
        body = markdown.markdown(str((post.get("content") or {}).get("markdown") or ""))
        tags = build_tag_string(sanitize_tag(str(t.get("name") or "")) for t in post.get("tags") or [])

        note = Note(title=title, text=body, tags=tags).stamp(_parse_date(post.get("publishedAt")))
        note.fields["post-slug"] = slug
        note.fields["source-url"] = f"https://{host}/{slug}"
        notes = [note]

        for comment in _edges(post.get("comments")):
            notes.append(self._comment_note(comment, title, slug, reply=False))
            for reply in _edges(comment.get("replies")):
                notes.append(self._comment_note(reply, title, slug, reply=True))
        return notes

    def _comment_note(self, comment: dict[str, Any], post_title: str, slug: str, *, reply: bool) -> Note:
        author = str((comment.get("author") or {}).get("name") or "")
        text = str((comment.get("content") or {}).get("text") or "")
        if reply:
            title = f"Ответ от {author} на комментарий к посту «{post_title}»"
            tags = "comment reply"
        else:
            title = f"Комментарий от {author} к посту «{post_title}»"
            tags = "comment"
        note = Note(
            title=dedupe_title(title, self._titles),
            text=quoted_comment(text, author),
            tags=tags,
        ).stamp(_parse_date(comment.get("dateAdded")))
        note.fields["parent-post"] = slug
        return note
