"""httpx client factories and request helpers shared by the sources.

Every client enforces a 30 second per-request timeout.  Sources accept an
optional ``transport`` so tests can plug in :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from tiddlyconv.errors import DependencyError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
#: Pause between successive page requests of a paginated listing
PAGE_DELAY = 0.25
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


def make_client(
    transport: httpx.BaseTransport | None = None,
    *,
    headers: dict[str, str] | None = None,
) -> httpx.Client:
    return httpx.Client(
        transport=transport,
        headers=headers,
        timeout=REQUEST_TIMEOUT,
        follow_redirects=True,
    )


def make_async_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Async client for the blog crawler, presenting a desktop browser UA."""
    return httpx.AsyncClient(
        transport=transport,
        headers={"User-Agent": DESKTOP_USER_AGENT},
        timeout=REQUEST_TIMEOUT,
        follow_redirects=True,
    )


def get_json(client: httpx.Client, url: str, params: Mapping[str, Any] | None = None) -> Any:
    """GET *url* with query *params* and decode JSON.

    Raises :class:`DependencyError` on transport errors, non-2xx statuses and
    bodies that are not JSON.
    """
    try:
        r = client.get(url, params=dict(params) if params else None)
    except httpx.HTTPError as exc:
        raise DependencyError(f"request to {url} failed: {exc}") from exc
    if not r.is_success:
        raise DependencyError(f"{url} returned HTTP {r.status_code}")
    try:
        return r.json()
    except ValueError as exc:
        raise DependencyError(f"{url} returned invalid JSON: {exc}") from exc


def fetch_page(
    client: httpx.Client, url: str, page: int, params: Mapping[str, Any] | None = None
) -> Any | None:
    """Fetch one page of a paginated listing.

    Page 1 failures raise :class:`DependencyError`; a failure on a later page
    returns ``None`` so the caller stops paginating.
    """
    try:
        return get_json(client, url, params)
    except DependencyError as exc:
        if page == 1:
            raise
        logger.info("Stopping pagination at page %d: %s", page, exc)
        return None


def pause(delay: float) -> None:
    if delay > 0:
        time.sleep(delay)
