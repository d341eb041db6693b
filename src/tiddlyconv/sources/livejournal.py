"""HTML blog crawler (LiveJournal and look-alikes).

Given one URL, the crawler decides lexically what it points at and converts
everything reachable from it:

* a single post (``/123456.html``);
* a day or month archive page;
* a year (its twelve month archives);
* a whole blog (every month from ``start_year`` to the current year).

Pipeline
--------
Archive pages are walked one after another by a single producer that streams
every discovered post permalink into a queue.  A dispatcher takes a
semaphore permit (capacity 10) for each URL and spawns a worker task; each
worker fetches the post page and its ``?view=comments`` page and pushes the
parsed post into a results queue read by one collector, which makes post
titles unique before the comment threads are built.  Post order in
the output follows worker completion; a post's own note always precedes its
comments.  A failed post is logged and skipped.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup

from tiddlyconv.errors import DependencyError, PostParseError
from tiddlyconv.http import make_async_client
from tiddlyconv.note import Note, dedupe_title, system_note
from tiddlyconv.tags import build_tag_string, list_links
from tiddlyconv.threads import CommentRecord, materialize_thread

logger = logging.getLogger(__name__)

#: First year visited when walking a whole blog
DEFAULT_START_YEAR = 1999
WORKER_LIMIT = 10
RESULTS_BUFFER = 10
DISCOVERY_BUFFER = 100

_POST_RE = re.compile(r"/\d+\.html$")
_DAY_RE = re.compile(r"/\d{4}/\d{2}/\d{2}/?$")
_MONTH_RE = re.compile(r"/\d{4}/\d{2}/?$")
_YEAR_RE = re.compile(r"/\d{4}/?$")
_PERMALINK_RE = re.compile(r"/\d+\.html")
_USERPIC_RE = re.compile(r'"url_userpic":"([^"]*)"')
_SITE_PAGE_RE = re.compile(r"Site\.page\s*=\s*")

_BODY_CLASSES = ("entry-content", "aentry-post__text", "asset-body")
_TITLE_SUFFIX = " — ЖЖ"
MISSING_BODY = "Тело поста не найдено."


# ---------------------------------------------------------------------------
# URL classification
# ---------------------------------------------------------------------------


class UrlKind(str, Enum):
    POST = "post"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"
    BLOG = "blog"


def classify_url(url: str) -> UrlKind:
    """Classify *url* by its path alone; anything unrecognised is the blog."""
    path = urlsplit(url).path
    if _POST_RE.search(path):
        return UrlKind.POST
    if _DAY_RE.search(path):
        return UrlKind.DAY
    if _MONTH_RE.search(path):
        return UrlKind.MONTH
    if _YEAR_RE.search(path):
        return UrlKind.YEAR
    return UrlKind.BLOG


def site_root(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def archive_urls(url: str, kind: UrlKind, start_year: int, current_year: int) -> list[str]:
    """Archive pages to walk for a non-post URL, in crawl order."""
    if kind in (UrlKind.DAY, UrlKind.MONTH):
        return [url]
    if kind is UrlKind.YEAR:
        base = url.rstrip("/")
        return [f"{base}/{month:02d}/" for month in range(1, 13)]
    if kind is UrlKind.BLOG:
        root = site_root(url)
        return [
            f"{root}/{year}/{month:02d}/"
            for year in range(start_year, current_year + 1)
            for month in range(1, 13)
        ]
    raise ValueError(f"{url} is a post, not an archive")


# ---------------------------------------------------------------------------
# Archive pages
# ---------------------------------------------------------------------------


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def iter_post_links(html: str, page_url: str, seen: set[str] | None = None) -> Iterator[str]:
    """Yield post permalinks found in the ``<body>`` of an archive page.

    Links must stay on the page's host, look like ``/<digits>.html`` and not
    point at a comment thread.  Query and fragment are dropped and each URL
    is yielded once (*seen* may be shared across pages).
    """
    seen = set() if seen is None else seen
    host = urlsplit(page_url).netloc
    body = BeautifulSoup(html, "html.parser").body
    if body is None:
        logger.warning("No <body> on archive page %s", page_url)
        return
    for a in body.find_all("a", href=True):
        href = a["href"]
        if urlsplit(href).netloc not in ("", host):
            continue
        if not _PERMALINK_RE.search(href) or "?thread=" in href or "#comments" in href:
            continue
        url = _strip_query(urljoin(page_url, href))
        if url not in seen:
            seen.add(url)
            yield url


# ---------------------------------------------------------------------------
# Post pages
# ---------------------------------------------------------------------------


@dataclass
class BlogPost:
    title: str
    url: str = ""
    description: str = ""
    body: str = MISSING_BODY
    tags: list[str] = field(default_factory=list)
    published: datetime | None = None


def _has_body_class(tag) -> bool:
    if tag.name != "div":
        return False
    classes = " ".join(tag.get("class") or [])
    return any(name in classes for name in _BODY_CLASSES)


def parse_post_page(html: str) -> BlogPost:
    """Extract title, permalink, tags and body HTML from a post page."""
    soup = BeautifulSoup(html, "html.parser")
    meta: dict[str, str] = {}
    tags: list[str] = []
    for tag in soup.find_all("meta", attrs={"property": True}):
        prop, content = tag["property"], tag.get("content", "")
        if prop == "article:tag":
            if content:
                tags.append(content)
        elif prop not in meta:
            meta[prop] = content

    title = meta.get("og:title", "")
    if not title and soup.title is not None:
        title = soup.title.get_text().removesuffix(_TITLE_SUFFIX).strip()
    if not title:
        raise PostParseError("post title not found")

    post = BlogPost(
        title=title,
        url=meta.get("og:url", ""),
        description=meta.get("og:description", ""),
        tags=tags,
    )
    body = soup.find(_has_body_class)
    if body is not None:
        post.body = body.decode_contents()
    if meta.get("article:published_time"):
        try:
            post.published = datetime.fromisoformat(meta["article:published_time"])
        except ValueError:
            pass
    return post


def _first_number(data: dict, *keys: str) -> int:
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return 0


def extract_comment_records(html: str) -> list[CommentRecord]:
    """Read comments from the ``Site.page = {...};`` blob of a comments page.

    The page may assign ``Site.page`` several times; the largest JSON object
    is the one carrying the comments.
    """
    decoder = json.JSONDecoder()
    best: dict | None = None
    best_len = 0
    for m in _SITE_PAGE_RE.finditer(html):
        try:
            obj, end = decoder.raw_decode(html, m.end())
        except ValueError:
            continue
        if isinstance(obj, dict) and end - m.end() > best_len:
            best, best_len = obj, end - m.end()
    if best is None or not isinstance(best.get("comments"), list):
        return []

    records: list[CommentRecord] = []
    for c in best["comments"]:
        if not isinstance(c, dict):
            continue
        article = c.get("article")
        records.append(
            CommentRecord(
                id=_first_number(c, "thread", "dtalkid"),
                parent_id=_first_number(c, "parent", "above"),
                author=str(c.get("dname") or ""),
                body=article if isinstance(article, str) else None,
                url=str(c.get("thread_url") or ""),
                date_label=str(c.get("ctime") or ""),
            )
        )
    logger.debug("Found %d comment records", len(records))
    return records


def post_notes(post: BlogPost, records: list[CommentRecord]) -> list[Note]:
    """Build the post note followed by its threaded comment notes."""
    comments = materialize_thread(records, post.title)
    text = post.body
    if post.url:
        text += f"\n\n---\n\n''Оригинал поста:'' <a href=\"{post.url}\" target=\"_blank\">{post.url}</a>"
    if comments:
        text += "\n\n---\n\n" + list_links(post.title)
    note = Note(title=post.title, text=text, tags=build_tag_string(post.tags)).stamp(post.published)
    if post.url:
        note.fields["url"] = post.url
    return [note, *comments]


async def fetch_post(client: httpx.AsyncClient, url: str) -> tuple[BlogPost, list[CommentRecord]]:
    """Fetch one post and its comments page."""
    logger.info("Fetching post %s", url)
    r = await client.get(url)
    r.raise_for_status()
    post = parse_post_page(r.text)

    r = await client.get(f"{url}?view=comments")
    r.raise_for_status()
    records = extract_comment_records(r.text)
    logger.info("Post %r done: %d comments", post.title, len(records))
    return post, records


# ---------------------------------------------------------------------------
# System notes
# ---------------------------------------------------------------------------


def split_site_title(full_title: str) -> tuple[str, str]:
    """Split ``"<title>: <blog> — <platform>"`` into title and subtitle."""
    main, _, platform = full_title.partition(" — ")
    head, sep, blog = main.rpartition(": ")
    if not sep:
        return main.strip(), platform.strip()
    blog = blog.strip()
    subtitle = f"{blog}: {platform.strip()}" if platform.strip() else blog
    return head.strip(), subtitle


async def build_system_notes(client: httpx.AsyncClient, url: str) -> list[Note]:
    """Site title, subtitle, default story list and favicon from the blog root."""
    root = site_root(url) + "/"
    r = await client.get(root)
    r.raise_for_status()
    soup = BeautifulSoup(r.text, "html.parser")

    full_title = soup.title.get_text() if soup.title is not None else ""
    title, subtitle = split_site_title(full_title)
    notes = [
        system_note("$:/SiteTitle", title),
        system_note("$:/SiteSubtitle", subtitle),
        system_note("$:/DefaultTiddlers", "[list[$:/StoryList]]"),
    ]

    userpic = ""
    for script in soup.find_all("script"):
        m = _USERPIC_RE.search(script.string or "")
        if m:
            userpic = urljoin(root, m.group(1).replace("\\/", "/"))
            break
    if userpic:
        try:
            icon = await client.get(userpic)
            icon.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Favicon %s not fetched: %s", userpic, exc)
        else:
            favicon = system_note("$:/favicon.ico", base64.b64encode(icon.content).decode("ascii"))
            favicon.fields["type"] = icon.headers.get("content-type", "")
            notes.append(favicon)
    return notes


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class LiveJournalSource:
    """Crawl a blog, archive page or single post into notes."""

    def __init__(
        self,
        url: str,
        *,
        start_year: int = DEFAULT_START_YEAR,
        current_year: int | None = None,
        concurrency: int = WORKER_LIMIT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.start_year = start_year
        self.current_year = current_year or datetime.now().year
        self.concurrency = concurrency
        self._transport = transport

    def convert(self) -> list[Note]:
        return asyncio.run(self.aconvert())

    async def aconvert(self) -> list[Note]:
        kind = classify_url(self.url)
        logger.info("Crawling %s as %s", self.url, kind.value)
        async with make_async_client(self._transport) as client:
            try:
                notes = await build_system_notes(client, self.url)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.warning("Could not build site notes from %s: %s", self.url, exc)
                notes = []

            if kind is UrlKind.POST:
                try:
                    notes.extend(post_notes(*await fetch_post(client, self.url)))
                except (httpx.HTTPError, httpx.InvalidURL, PostParseError) as exc:
                    raise DependencyError(f"cannot convert post {self.url}: {exc}") from exc
            else:
                pages = archive_urls(self.url, kind, self.start_year, self.current_year)
                notes.extend(await self.crawl(client, pages))

        logger.info("Crawl finished: %d notes", len(notes))
        return notes

    async def _fetch_archive(self, client: httpx.AsyncClient, url: str) -> str | None:
        try:
            r = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Archive %s failed: %s", url, exc)
            return None
        if r.status_code == 404:
            logger.info("No archive at %s (404)", url)
            return None
        if not r.is_success:
            logger.warning("Archive %s returned HTTP %d", url, r.status_code)
            return None
        return r.text

    async def crawl(self, client: httpx.AsyncClient, pages: list[str]) -> list[Note]:
        """Walk *pages* and fetch every discovered post with bounded parallelism."""
        discovered: asyncio.Queue[str | None] = asyncio.Queue(maxsize=DISCOVERY_BUFFER)
        results: asyncio.Queue[tuple[BlogPost, list[CommentRecord]] | None]
        results = asyncio.Queue(maxsize=RESULTS_BUFFER)
        permits = asyncio.Semaphore(self.concurrency)

        async def produce() -> None:
            seen: set[str] = set()
            try:
                for page in pages:
                    html = await self._fetch_archive(client, page)
                    if html is None:
                        continue
                    for post_url in iter_post_links(html, page, seen):
                        await discovered.put(post_url)
            finally:
                await discovered.put(None)

        async def work(url: str) -> None:
            try:
                await results.put(await fetch_post(client, url))
            except Exception as exc:  # noqa: BLE001
                # One broken post must not sink the crawl
                logger.warning("Skipping post %s: %s", url, exc)
            finally:
                permits.release()

        async def dispatch() -> None:
            workers: list[asyncio.Task[None]] = []
            try:
                while True:
                    url = await discovered.get()
                    if url is None:
                        break
                    await permits.acquire()
                    workers.append(asyncio.create_task(work(url)))
                await asyncio.gather(*workers)
            finally:
                await results.put(None)

        producer = asyncio.create_task(produce())
        dispatcher = asyncio.create_task(dispatch())

        collected: list[Note] = []
        titles: set[str] = set()
        while True:
            item = await results.get()
            if item is None:
                break
            post, records = item
            post.title = dedupe_title(post.title, titles)
            collected.extend(post_notes(post, records))

        await asyncio.gather(producer, dispatcher)
        return collected
