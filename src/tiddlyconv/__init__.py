"""tiddlyconv: blog and wiki content to TiddlyWiki converter."""

from tiddlyconv.emitter import generate_html
from tiddlyconv.errors import ConfigurationError, ConverterError, DependencyError, EmitterError
from tiddlyconv.index import NoteIndex
from tiddlyconv.note import Note
from tiddlyconv.threads import CommentRecord, materialize_thread

__all__ = [
    "Note",
    "NoteIndex",
    "CommentRecord",
    "materialize_thread",
    "generate_html",
    "ConverterError",
    "ConfigurationError",
    "DependencyError",
    "EmitterError",
]
