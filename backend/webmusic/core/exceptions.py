"""
Exception classes for the music aggregator.

Hierarchy:
    WebMusicError (base)
        ProviderError - any failure talking to a third-party catalog
            ProviderRequestError - transport errors and non-2xx responses
            ProviderResponseError - payload could not be decoded or used
            EndpointsExhaustedError - every endpoint of a fallback chain failed
        UnsupportedProviderError - unknown source tag
"""
from typing import List, Optional


class WebMusicError(Exception):
    """
    Base exception for all aggregator errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (source, url, ...).
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ProviderError(WebMusicError):
    """Raised when a provider call fails."""
    pass


class ProviderRequestError(ProviderError):
    """Raised when the HTTP request itself fails or returns an error status."""
    pass


class ProviderResponseError(ProviderError):
    """Raised when a response arrives but its payload is unusable."""
    pass


class EndpointsExhaustedError(ProviderError):
    """
    Raised when every endpoint in a fallback chain has been tried.

    ``errors`` holds the failures collected along the way, in order. Attempts
    that answered without an error but had nothing usable do not appear there.
    """

    def __init__(self, message: str, errors: Optional[List[ProviderError]] = None,
                 attempts: int = 0, details: Optional[dict] = None) -> None:
        super().__init__(message, details)
        self.errors = errors or []
        self.attempts = attempts

    @property
    def all_failed(self) -> bool:
        return self.attempts > 0 and len(self.errors) == self.attempts


class UnsupportedProviderError(WebMusicError):
    """Raised when a source tag does not name a registered provider."""

    def __init__(self, source: str) -> None:
        super().__init__(f"Unsupported music source: {source}", {"source": source})
        self.source = source
