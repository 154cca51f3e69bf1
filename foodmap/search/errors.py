"""
Error taxonomy for the proximity search engine.

Every engine error carries the HTTP status the API layer answers with.
None of them may subclass ``ValueError``: pydantic would wrap it in a
``ValidationError`` when raised from a model validator.
"""
from __future__ import annotations


class SearchError(Exception):
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidCoordinate(SearchError):
    """Latitude outside [-90, 90] or longitude outside [-180, 180]."""

    http_status = 400


class InvalidQueryParameter(SearchError):
    """Radius, page, limit or price outside the accepted bounds."""

    http_status = 400


class InvalidFilter(InvalidQueryParameter):
    """Negative price bound or malformed category identifier."""


class UpstreamUnavailable(SearchError):
    """The candidate source failed while answering a box query."""

    http_status = 503


class EngineAborted(SearchError):
    """The candidate fetch was cancelled before it produced rows."""

    http_status = 504
