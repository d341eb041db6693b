"""Exception hierarchy shared by sources, the emitter and the CLI."""

from __future__ import annotations


class ConverterError(Exception):
    """Base class for every error the converter reports to the user."""


class ConfigurationError(ConverterError):
    """Missing, conflicting or invalid settings.  Raised before any I/O."""


class DependencyError(ConverterError):
    """A remote service or input file returned something unusable."""


class PostParseError(ConverterError):
    """A single crawled post could not be turned into notes."""


class EmitterError(ConverterError):
    """The HTML artifact could not be produced."""
