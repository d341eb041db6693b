"""Unit tests for tiddlyconv.dispatch."""

import pytest

from tiddlyconv.config import Settings
from tiddlyconv.dispatch import BUILDERS, build_source
from tiddlyconv.errors import ConfigurationError
from tiddlyconv.sources import Source
from tiddlyconv.sources.blogger import BloggerSource
from tiddlyconv.sources.hashnode import HashnodeSource
from tiddlyconv.sources.livejournal import LiveJournalSource
from tiddlyconv.sources.wikipedia import WikipediaSource
from tiddlyconv.sources.wordpress import WordPressSource
from tiddlyconv.sources.wxr import WxrSource


class TestBuildSource:
    def test_platforms_registered(self):
        assert set(BUILDERS) == {"hashnode", "wordpress", "blogger", "wikipedia", "livejournal"}

    def test_missing_platform(self):
        with pytest.raises(ConfigurationError):
            build_source(Settings())

    def test_unknown_platform(self):
        with pytest.raises(ConfigurationError, match="medium"):
            build_source(Settings(platform="medium", url="https://x/"))

    def test_sources_satisfy_protocol(self):
        source = build_source(Settings(platform="livejournal", url="https://u.livejournal.com/"))
        assert isinstance(source, Source)
        assert isinstance(source, LiveJournalSource)


class TestHashnode:
    def test_host_from_url(self):
        source = build_source(Settings(platform="hashnode", url="https://blog.example.dev/some-post"))
        assert isinstance(source, HashnodeSource)
        assert source.host == "blog.example.dev"

    def test_explicit_host_wins(self):
        source = build_source(Settings(platform="hashnode", url="https://a.dev/", host="b.dev"))
        assert source.host == "b.dev"

    def test_username_only(self):
        source = build_source(Settings(platform="hashnode", username="alice"))
        assert source.username == "alice"
        assert source.host == ""

    def test_nothing_given(self):
        with pytest.raises(ConfigurationError):
            build_source(Settings(platform="hashnode"))


class TestWordPress:
    def test_xml_path_preferred(self):
        source = build_source(Settings(platform="wordpress", xml_path="export.xml", url="https://x.com/"))
        assert isinstance(source, WxrSource)

    def test_url(self):
        source = build_source(Settings(platform="wordpress", url="https://x.wordpress.com/"))
        assert isinstance(source, WordPressSource)
        assert source.is_wpcom

    def test_self_hosted(self):
        assert not build_source(Settings(platform="wordpress", url="https://blog.example.org")).is_wpcom

    def test_neither(self):
        with pytest.raises(ConfigurationError):
            build_source(Settings(platform="wordpress"))


class TestBlogger:
    def test_needs_api_key(self):
        with pytest.raises(ConfigurationError, match="api_key"):
            build_source(Settings(platform="blogger", url="https://x.blogspot.com/"))

    def test_needs_url_or_blog_id(self):
        with pytest.raises(ConfigurationError):
            build_source(Settings(platform="blogger", api_key="k"))

    def test_blog_id(self):
        source = build_source(Settings(platform="blogger", api_key="k", blog_id="42"))
        assert isinstance(source, BloggerSource)
        assert source.blog_id == "42"


class TestUrlPlatforms:
    @pytest.mark.parametrize("platform", ["wikipedia", "livejournal"])
    def test_url_required(self, platform):
        with pytest.raises(ConfigurationError):
            build_source(Settings(platform=platform))

    def test_wikipedia(self):
        source = build_source(Settings(platform="wikipedia", url="https://ru.wikipedia.org/wiki/Python"))
        assert isinstance(source, WikipediaSource)
        assert source.article == "Python"

    def test_wikipedia_bad_host(self):
        with pytest.raises(ConfigurationError):
            build_source(Settings(platform="wikipedia", url="https://localhost/wiki/Python"))
