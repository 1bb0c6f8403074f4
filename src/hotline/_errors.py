"""Hotline error hierarchy.

All hotline-specific errors inherit from HotlineError for easy catching.
Packager-reported failures carry the fields the HMR client displays.
"""

from __future__ import annotations


class HotlineError(Exception):
    """Base error for all hotline operations."""


class ConfigError(HotlineError):
    """Invalid or missing configuration."""


class PackagerError(HotlineError):
    """A failure reported by the packager while resolving or transforming code.

    Subclasses set ``type`` to the name the HMR client expects in the
    ``error`` message body.

    Attributes:
        description: Human-readable message, passed to the client verbatim.
        filename: Source file the error refers to, if known.
        line_number: 1-based line in ``filename``, if known.

    """

    type: str = "PackagerError"

    def __init__(
        self,
        description: str,
        *,
        filename: str | None = None,
        line_number: int | None = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.filename = filename
        self.line_number = line_number


class TransformError(PackagerError):
    """Source code could not be transformed (syntax error, plugin failure)."""

    type = "TransformError"


class NotFoundError(PackagerError):
    """A file referenced by the bundle does not exist."""

    type = "NotFoundError"


class UnableToResolveError(PackagerError):
    """A require specifier could not be resolved to a module."""

    type = "UnableToResolveError"
