"""Platform adapters.  Each module exposes one class implementing :class:`Source`."""

from tiddlyconv.sources.base import Source

__all__ = ["Source"]
