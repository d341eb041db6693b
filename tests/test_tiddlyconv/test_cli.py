"""End-to-end tests for the tiddlyconv command line."""

import json
import re
from pathlib import Path

import pytest

from tiddlyconv import dispatch
from tiddlyconv.cli import main
from tiddlyconv.errors import DependencyError
from tiddlyconv.note import Note

_STORE_RE = re.compile(r'<script id="storeArea" type="application/json">\n(.*)\n</script>', re.S)


class StubSource:
    def __init__(self, notes=None, error=None):
        self.notes = notes or []
        self.error = error

    def convert(self):
        if self.error is not None:
            raise self.error
        return self.notes


@pytest.fixture()
def stub(monkeypatch):
    """Register a ``stub`` platform and return the settings it was built with."""
    seen = {}

    def install(source: StubSource):
        def builder(settings):
            seen["settings"] = settings
            return source

        monkeypatch.setitem(dispatch.BUILDERS, "stub", builder)
        return seen

    return install


class TestMain:
    def test_writes_artifact(self, stub, tmp_path: Path):
        stub(StubSource([Note(title="Post", text="</script>"), Note(title="Post-comment-1", text="c", tags="[[Post]]")]))
        out = tmp_path / "wiki.html"
        assert main(["--platform", "stub", "--url", "https://x.example/", "--output", str(out)]) == 0
        store = json.loads(_STORE_RE.search(out.read_text(encoding="utf-8")).group(1))
        assert [n["title"] for n in store] == ["Post", "Post-comment-1"]
        assert store[0]["text"] == "</script>"

    def test_default_output_name(self, stub, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        stub(StubSource([Note(title="A", text="x")]))
        assert main(["--platform", "stub", "--url", "https://blog.example.com/2020/"]) == 0
        assert (tmp_path / "blog.example.com_2020__import.html").exists()

    def test_user_flag_and_config_file(self, stub, tmp_path: Path):
        config = tmp_path / "conf.yaml"
        config.write_text("platform: stub\nurl: https://from-file/\n", encoding="utf-8")
        seen = stub(StubSource([Note(title="A", text="x")]))
        out = tmp_path / "o.html"
        assert main(["--config", str(config), "--user", "ann", "--output", str(out)]) == 0
        assert seen["settings"].username == "ann"
        assert seen["settings"].url == "https://from-file/"

    def test_source_error(self, stub, tmp_path: Path, capsys):
        stub(StubSource(error=DependencyError("server said no")))
        code = main(["--platform", "stub", "--url", "u", "--output", str(tmp_path / "o.html")])
        assert code == 1
        err = capsys.readouterr().err.strip().splitlines()
        assert err[-1] == "tiddlyconv: error: server said no"

    def test_unknown_platform(self, capsys):
        assert main(["--platform", "medium"]) == 1
        assert "tiddlyconv: error: unknown platform 'medium'" in capsys.readouterr().err

    def test_missing_platform(self, capsys):
        assert main([]) == 1
        assert "--platform" in capsys.readouterr().err

    def test_bad_template(self, stub, tmp_path: Path, capsys):
        template = tmp_path / "t.html"
        template.write_text("<html></html>", encoding="utf-8")
        out = tmp_path / "o.html"
        stub(StubSource([Note(title="A", text="x")]))
        assert main(["--platform", "stub", "--template", str(template), "--output", str(out)]) == 1
        assert out.read_text(encoding="utf-8").startswith("ОШИБКА:")

    def test_duplicate_titles_warned(self, stub, tmp_path: Path, caplog):
        stub(StubSource([Note(title="A", text="1"), Note(title="A", text="2")]))
        with caplog.at_level("WARNING"):
            assert main(["--platform", "stub", "--output", str(tmp_path / "o.html")]) == 0
        assert "Duplicate title 'A'" in caplog.text

    def test_missing_parent_warned(self, stub, tmp_path: Path, caplog):
        stub(StubSource([Note(title="Post-comment-3", text="c", tags="[[Post]]")]))
        with caplog.at_level("WARNING"):
            assert main(["--platform", "stub", "--output", str(tmp_path / "o.html")]) == 0
        assert "Comment 'Post-comment-3' is tagged with missing parent 'Post'" in caplog.text
