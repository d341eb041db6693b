"""Unit tests for tiddlyconv.threads."""

from datetime import datetime, timezone

from tiddlyconv.note import format_timestamp
from tiddlyconv.threads import (
    HIDDEN_COMMENT,
    CommentRecord,
    comment_title,
    is_comment_title,
    materialize_thread,
    quoted_comment,
)

_TRAILER = "\n\n---\n\n<<list-links"


def _by_title(notes):
    return {n.title: n for n in notes}


class TestMaterializeThread:
    def test_four_record_forest(self):
        records = [
            CommentRecord(id=10, parent_id=0, author="a", body="x"),
            CommentRecord(id=11, parent_id=10, author="b", body="x"),
            CommentRecord(id=12, parent_id=11, author="c", body="x"),
            CommentRecord(id=13, parent_id=0, author="d", body="x"),
        ]
        notes = materialize_thread(records, "P")
        assert [n.title for n in notes] == ["P-comment-10", "P-comment-11", "P-comment-12", "P-comment-13"]
        assert [n.tags for n in notes] == ["[[P]]", "[[P-comment-10]]", "[[P-comment-11]]", "[[P]]"]
        assert [_TRAILER in n.text for n in notes] == [True, True, False, False]

    def test_reply_chain(self):
        records = [
            CommentRecord(id=10, parent_id=0, author="a", body="root"),
            CommentRecord(id=11, parent_id=10, author="b", body="reply"),
            CommentRecord(id=12, parent_id=0, author="c", body=None),
        ]
        notes = _by_title(materialize_thread(records, "P"))

        assert set(notes) == {"P-comment-10", "P-comment-11", "P-comment-12"}
        assert notes["P-comment-10"].tags == "[[P]]"
        assert notes["P-comment-11"].tags == "[[P-comment-10]]"
        assert notes["P-comment-12"].tags == "[[P]]"

        assert notes["P-comment-10"].text.endswith('<<list-links "[tag[P-comment-10]]">>')
        assert _TRAILER not in notes["P-comment-11"].text
        assert _TRAILER not in notes["P-comment-12"].text
        assert notes["P-comment-12"].text.endswith(HIDDEN_COMMENT)

    def test_input_order_kept(self):
        records = [
            CommentRecord(id=3, parent_id=1, author="x", body="late reply"),
            CommentRecord(id=1, parent_id=0, author="y", body="first"),
        ]
        titles = [n.title for n in materialize_thread(records, "P")]
        assert titles == ["P-comment-3", "P-comment-1"]

    def test_orphan_attached_to_post(self):
        records = [CommentRecord(id=5, parent_id=99, author="x", body="lost")]
        (note,) = materialize_thread(records, "P")
        assert note.tags == "[[P]]"

    def test_orphan_parent_gets_no_trailer(self):
        records = [
            CommentRecord(id=1, parent_id=0, author="x", body="a"),
            CommentRecord(id=2, parent_id=77, author="y", body="b"),
        ]
        notes = _by_title(materialize_thread(records, "P"))
        assert _TRAILER not in notes["P-comment-1"].text

    def test_zero_id_skipped(self):
        records = [
            CommentRecord(id=0, parent_id=0, author="x", body="ghost"),
            CommentRecord(id=1, parent_id=0, author="y", body="real"),
        ]
        assert [n.title for n in materialize_thread(records, "P")] == ["P-comment-1"]

    def test_empty_body_placeholder(self):
        (note,) = materialize_thread([CommentRecord(id=1, parent_id=0, author="x", body="")], "P")
        assert note.text.endswith(HIDDEN_COMMENT)

    def test_header_lines(self):
        record = CommentRecord(
            id=1, parent_id=0, author="bob", body="hi", url="https://b.x/1.html?thread=1", date_label="2020-01-01"
        )
        (note,) = materialize_thread([record], "P")
        assert note.text.startswith("''Автор:'' bob\n''Дата:'' 2020-01-01\n''Ссылка:'' <a href=")
        assert "\n---\n\nhi" in note.text

    def test_created_stamped(self):
        when = datetime(2018, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
        (note,) = materialize_thread([CommentRecord(id=1, parent_id=0, author="x", body="b", created=when)], "P")
        assert format_timestamp(note.created) == "20180203040506000"
        assert note.modified == when


class TestHelpers:
    def test_comment_title(self):
        assert comment_title("Post", 42) == "Post-comment-42"

    def test_quoted_comment(self):
        assert quoted_comment("nice", "ann") == "<blockquote>nice</blockquote>\n\n''- ann''"

    def test_is_comment_title(self):
        assert is_comment_title(comment_title("Big post", 7))
        assert not is_comment_title("Big post")
        assert not is_comment_title("-comment-7")
        assert not is_comment_title("Post-comment-x")
