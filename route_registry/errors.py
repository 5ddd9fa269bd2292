"""
Error taxonomy for the route registry.

Every error raised by the scanner, the artifact layer, the vectorizers and
the vector store derives from :class:`RegistryError`, and also from the
closest built-in exception so callers that only know about ``OSError`` or
``ValueError`` keep working.
"""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for all route registry errors."""


class RegistryIOError(RegistryError, OSError):
    """The filesystem could not be read or written."""


class NotFoundError(RegistryError, FileNotFoundError):
    """No entry file exists for a route, or no artifact exists for it."""


class ParseError(RegistryError, ValueError):
    """An entry file (or a persisted artifact) could not be analysed."""


class EmbeddingError(RegistryError, RuntimeError):
    """The vectorizer failed, e.g. the embedding provider is unavailable."""


class UsageError(RegistryError, ValueError):
    """A caller broke a contract, e.g. mixed vector dimensionalities."""
