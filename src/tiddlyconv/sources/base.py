"""Source protocol shared by every platform adapter."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tiddlyconv.note import Note


@runtime_checkable
class Source(Protocol):
    """Common interface of all sources.

    Sources are built from already-validated settings, so construction does
    no I/O; all network and file access happens in :meth:`convert`.
    """

    def convert(self) -> list[Note]:
        """Fetch the source material and return it as notes, in output order."""
        ...
