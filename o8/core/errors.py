"""
O8 Error Types

Exceptions raised by the declaration core. Verification outcomes are never
raised: fingerprint and identity mismatches are reported as data on the
verification report. Only malformed input and infrastructure failures
(unreachable store, unparseable payload) surface as exceptions.
"""

from typing import Iterable, List, Optional


class O8Error(Exception):
    """Base class for all O8 errors."""


class FormatError(O8Error, ValueError):
    """Malformed identifier, content address or reference."""


class InvalidReferenceError(FormatError):
    """A verification reference could not be resolved to a content address."""


class ValidationError(O8Error, ValueError):
    """
    Schema or invariant violation.

    Attributes:
        errors: Field-qualified messages, e.g. ``"identity.primary_artist.name: Artist name is required"``
    """

    def __init__(self, errors: Iterable[str], message: Optional[str] = None):
        self.errors: List[str] = list(errors)
        if message is None:
            message = "Invalid declaration: " + "; ".join(self.errors)
        super().__init__(message)


class NotFoundError(O8Error, LookupError):
    """A local file or a remote object does not exist."""


class UnsupportedFormatError(O8Error, ValueError):
    """Audio container not in the supported set."""


class StoreError(O8Error):
    """
    Content store failure.

    Raised when the retry budget is exhausted, when a non-retryable error
    occurs, or when the store returns a payload that cannot be used.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None, attempts: int = 0):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class FetchFailedError(O8Error):
    """Verification could not retrieve the declaration bytes."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class BuilderError(O8Error):
    """Builder used after it produced its declaration."""
