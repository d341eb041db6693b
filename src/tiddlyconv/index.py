"""NoteIndex: in-memory index of a converted run's titles, tags and threads."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from tiddlyconv.note import Note
from tiddlyconv.tags import parent_tag, split_tag_string
from tiddlyconv.threads import is_comment_title


class NoteIndex:
    """Indexes notes by title and tag, and builds the tag-parenthood graph.

    A tag that equals the title of another note in the run is a parent edge
    (comment → post, reply → comment, sub-navbox → navbox); any other tag is
    a plain label.
    """

    def __init__(self, notes: Iterable[Note]) -> None:
        self.notes: dict[str, Note] = {}
        self.duplicates: list[str] = []
        self.tags: dict[str, list[str]] = {}
        for note in notes:
            if note.title in self.notes:
                self.duplicates.append(note.title)
                continue
            self.notes[note.title] = note
        self._build_tags()
        self.graph = self._build_graph()

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _build_tags(self) -> None:
        for title, note in self.notes.items():
            for tag in split_tag_string(note.tags):
                self.tags.setdefault(tag, [])
                if title not in self.tags[tag]:
                    self.tags[tag].append(title)

    def _build_graph(self) -> nx.DiGraph:
        graph: nx.DiGraph = nx.DiGraph()
        graph.add_nodes_from(self.notes)
        for child, parent in self.edges():
            graph.add_edge(child, parent)
        return graph

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def edges(self) -> list[tuple[str, str]]:
        """Return ``(child_title, parent_title)`` pairs for every parent tag."""
        return [
            (child, tag)
            for tag, children in self.tags.items()
            if tag in self.notes
            for child in children
            if child != tag
        ]

    def is_forest(self) -> bool:
        """True when following parent tags can never loop back."""
        return nx.is_directed_acyclic_graph(self.graph)

    def dangling(self) -> list[tuple[str, str]]:
        """Comment notes whose parent tag names no note of the run.

        Returns ``(comment_title, missing_parent)`` pairs.  Only comment notes
        are checked: their single ``[[parent]]`` tag is always a reference,
        whereas a bracketed tag elsewhere may be a multi-word label.
        """
        missing: list[tuple[str, str]] = []
        for title, note in self.notes.items():
            if not is_comment_title(title):
                continue
            tags = split_tag_string(note.tags)
            if len(tags) == 1 and note.tags == parent_tag(tags[0]) and tags[0] not in self.notes:
                missing.append((title, tags[0]))
        return missing
