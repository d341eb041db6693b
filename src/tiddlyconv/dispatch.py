"""Platform registry: validate settings and build the matching source.

Builders only check settings and construct a source object; nothing is
fetched or opened until :meth:`Source.convert` runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from urllib.parse import urlsplit

from tiddlyconv.config import Settings
from tiddlyconv.errors import ConfigurationError
from tiddlyconv.sources.base import Source
from tiddlyconv.sources.blogger import BloggerSource
from tiddlyconv.sources.hashnode import HashnodeSource
from tiddlyconv.sources.livejournal import LiveJournalSource
from tiddlyconv.sources.wikipedia import WikipediaSource
from tiddlyconv.sources.wordpress import WordPressSource
from tiddlyconv.sources.wxr import WxrSource

logger = logging.getLogger(__name__)

Builder = Callable[[Settings], Source]

#: platform name → builder; keys are the accepted ``--platform`` values
BUILDERS: dict[str, Builder] = {}


def register(platform: str) -> Callable[[Builder], Builder]:
    def decorator(builder: Builder) -> Builder:
        BUILDERS[platform] = builder
        return builder

    return decorator


@register("hashnode")
def _hashnode(settings: Settings) -> Source:
    host = settings.host
    if settings.url and not host:
        host = urlsplit(settings.url).netloc
        if not host:
            raise ConfigurationError(f"invalid Hashnode URL: {settings.url!r}")
        logger.info("Using host %s from --url", host)
    return HashnodeSource(host=host, username=settings.username)


@register("wordpress")
def _wordpress(settings: Settings) -> Source:
    if settings.xml_path:
        return WxrSource(settings.xml_path)
    if settings.url:
        return WordPressSource(settings.url)
    raise ConfigurationError("WordPress needs --url or --xml_path")


@register("blogger")
def _blogger(settings: Settings) -> Source:
    return BloggerSource(settings.api_key, url=settings.url, blog_id=settings.blog_id)


@register("wikipedia")
def _wikipedia(settings: Settings) -> Source:
    if not settings.url:
        raise ConfigurationError("Wikipedia needs --url")
    return WikipediaSource(settings.url)


@register("livejournal")
def _livejournal(settings: Settings) -> Source:
    if not settings.url:
        raise ConfigurationError("LiveJournal needs --url")
    return LiveJournalSource(settings.url)


def build_source(settings: Settings) -> Source:
    """Return the source for ``settings.platform``.

    Raises
    ------
    ConfigurationError
        Unknown platform, or settings the platform cannot work with.
    """
    if not settings.platform:
        raise ConfigurationError("no platform given (--platform)")
    builder = BUILDERS.get(settings.platform)
    if builder is None:
        known = ", ".join(sorted(BUILDERS))
        raise ConfigurationError(f"unknown platform {settings.platform!r} (expected one of: {known})")
    return builder(settings)
