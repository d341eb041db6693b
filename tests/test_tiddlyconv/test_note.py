"""Unit tests for tiddlyconv.note."""

from datetime import datetime, timedelta, timezone

from tiddlyconv.note import Note, dedupe_title, fallback_title, format_timestamp, system_note

# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


class TestFormatTimestamp:
    def test_seventeen_digits_with_millis(self):
        dt = datetime(2021, 3, 4, 5, 6, 7, 89_000, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "20210304050607089"

    def test_converted_to_utc(self):
        msk = timezone(timedelta(hours=3))
        dt = datetime(2021, 1, 1, 2, 0, 0, tzinfo=msk)
        assert format_timestamp(dt) == "20201231230000000"

    def test_naive_treated_as_utc(self):
        assert format_timestamp(datetime(2020, 1, 1, 10, 0, 0)) == "20200101100000000"

    def test_millis_zero_padded(self):
        dt = datetime(2020, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=5)
        assert format_timestamp(dt).endswith("005")


# ---------------------------------------------------------------------------
# Note
# ---------------------------------------------------------------------------


class TestNote:
    def test_modified_defaults_to_created(self):
        note = Note(title="A", text="x")
        assert note.modified == note.created
        assert note.created.tzinfo is not None

    def test_stamp_sets_both(self):
        when = datetime(2019, 5, 1, tzinfo=timezone.utc)
        note = Note(title="A", text="x").stamp(when)
        assert note.created == when
        assert note.modified == when

    def test_stamp_none_keeps_now(self):
        note = Note(title="A", text="x")
        before = note.created
        assert note.stamp(None).created == before

    def test_to_dict_required_keys(self):
        when = datetime(2020, 1, 1, tzinfo=timezone.utc)
        data = Note(title="A", text="body").stamp(when).to_dict()
        assert data == {
            "title": "A",
            "text": "body",
            "created": "20200101000000000",
            "modified": "20200101000000000",
        }

    def test_tags_only_when_present(self):
        assert "tags" not in Note(title="A", text="x").to_dict()
        assert Note(title="A", text="x", tags="foo").to_dict()["tags"] == "foo"

    def test_fields_flattened(self):
        note = Note(title="A", text="x", fields={"post-id": "7", "url": "https://e.x/"})
        data = note.to_dict()
        assert data["post-id"] == "7"
        assert data["url"] == "https://e.x/"

    def test_builtin_keys_win_over_fields(self):
        note = Note(title="A", text="real", fields={"text": "shadow", "title": "B"})
        data = note.to_dict()
        assert data["text"] == "real"
        assert data["title"] == "A"

    def test_system_note(self):
        note = system_note("$:/SiteTitle", "My blog")
        assert note.title == "$:/SiteTitle"
        assert note.text == "My blog"
        assert note.tags == ""


class TestDedupeTitle:
    def test_first_use_unchanged(self):
        seen: set[str] = set()
        assert dedupe_title("Post", seen) == "Post"
        assert "Post" in seen

    def test_suffixes_count_up(self):
        seen: set[str] = set()
        titles = [dedupe_title("Post", seen) for _ in range(3)]
        assert titles == ["Post", "Post (2)", "Post (3)"]


class TestFallbackTitle:
    def test_first_non_blank(self):
        assert fallback_title("", "  ", " my-slug ", "post-3") == "my-slug"

    def test_title_kept(self):
        assert fallback_title("Hello", "slug") == "Hello"

    def test_nothing_usable(self):
        assert fallback_title("", " ") == "untitled"
