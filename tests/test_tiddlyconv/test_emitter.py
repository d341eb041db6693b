"""Unit tests for tiddlyconv.emitter."""

import json
import re
from pathlib import Path

import pytest

from tiddlyconv.emitter import (
    DEFAULT_TEMPLATE,
    STORE_SENTINEL,
    embed_store,
    generate_html,
    render_store,
)
from tiddlyconv.errors import EmitterError
from tiddlyconv.note import Note

_STORE_RE = re.compile(r'<script id="storeArea" type="application/json">\n(.*)\n</script>', re.S)


@pytest.fixture()
def template(tmp_path: Path) -> Path:
    path = tmp_path / "template.html"
    path.write_text(f"<html><body>\n<p>before</p>\n{STORE_SENTINEL}\n<p>after</p>\n</body></html>", encoding="utf-8")
    return path


def _store(html: str) -> list[dict]:
    m = _STORE_RE.search(html)
    assert m is not None
    return json.loads(m.group(1))


# ---------------------------------------------------------------------------
# render_store / embed_store
# ---------------------------------------------------------------------------


class TestRenderStore:
    def test_script_close_escaped(self):
        payload = render_store([Note(title="A", text="<script>x()</script>")])
        assert "</script>" not in payload
        assert "<\\/script>" in payload

    def test_unicode_kept(self):
        payload = render_store([Note(title="Привет", text="мир")])
        assert "Привет" in payload

    def test_indented(self):
        assert render_store([Note(title="A", text="x")]).startswith("[\n  {")


class TestEmbedStore:
    def test_replaces_sentinel(self):
        html = embed_store(f"a{STORE_SENTINEL}b", "[1]")
        assert html == 'a<script id="storeArea" type="application/json">\n[1]\n</script>b'

    def test_first_occurrence_only(self):
        html = embed_store(STORE_SENTINEL + STORE_SENTINEL, "[1]")
        assert html is not None
        assert html.count(STORE_SENTINEL) == 1

    def test_missing_sentinel(self):
        assert embed_store("<html></html>", "[]") is None


# ---------------------------------------------------------------------------
# generate_html
# ---------------------------------------------------------------------------


class TestGenerateHtml:
    def test_round_trip(self, template: Path, tmp_path: Path):
        notes = [
            Note(title="Post", text="hello </script> world", tags="[[foo bar]]"),
            Note(title="Post-comment-1", text="c", tags="[[Post]]", fields={"url": "u"}),
        ]
        out = generate_html(notes, template, tmp_path / "out.html")
        html = out.read_text(encoding="utf-8")
        store = _store(html)
        assert [n["title"] for n in store] == ["Post", "Post-comment-1"]
        assert store[0]["text"] == "hello </script> world"
        assert store[1]["url"] == "u"

    def test_template_outside_store_kept(self, template: Path, tmp_path: Path):
        html = generate_html([], template, tmp_path / "out.html").read_text(encoding="utf-8")
        assert html.startswith("<html><body>\n<p>before</p>\n")
        assert html.endswith("\n<p>after</p>\n</body></html>")
        assert html.count('id="storeArea"') == 1

    def test_missing_sentinel_writes_error(self, tmp_path: Path):
        bad = tmp_path / "bad.html"
        bad.write_text("<html></html>", encoding="utf-8")
        out = tmp_path / "out.html"
        with pytest.raises(EmitterError):
            generate_html([Note(title="A", text="x")], bad, out)
        assert out.read_text(encoding="utf-8").startswith("ОШИБКА:")

    def test_missing_template(self, tmp_path: Path):
        with pytest.raises(EmitterError):
            generate_html([], tmp_path / "nope.html", tmp_path / "out.html")

    def test_bundled_template_has_sentinel(self, tmp_path: Path):
        assert DEFAULT_TEMPLATE.read_text(encoding="utf-8").count(STORE_SENTINEL) == 1
        out = generate_html([Note(title="A", text="x")], DEFAULT_TEMPLATE, tmp_path / "out.html")
        assert _store(out.read_text(encoding="utf-8"))[0]["title"] == "A"
