"""
Exception hierarchy for the handbook chat backend.

Only CompletionFailure ever reaches a request caller.  Load errors put the
service into context-free mode and search errors become "no snippet".
"""
from __future__ import annotations


class HandbookRAGError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(HandbookRAGError):
    """Required configuration (completion credentials) is missing or invalid."""


class LoadError(HandbookRAGError):
    """The source document could not be loaded."""


class SourceNotFound(LoadError):
    """The source document does not exist at the configured path."""


class ParseFailure(LoadError):
    """The source document exists but its text could not be extracted."""


class CompletionFailure(HandbookRAGError):
    """
    The chat-completion call failed or returned a malformed payload.

    `retryable` is True for transient causes (timeout, connection loss,
    rate limiting) that a client may reasonably retry.
    """

    def __init__(self, message: str, retryable: bool = False, timed_out: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.timed_out = timed_out


class SearchFailure(HandbookRAGError):
    """The web-search call failed."""
