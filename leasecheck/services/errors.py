"""
Exception types for contract analysis.

Per-endpoint errors (TransportError, ShapeError, ParseError) are absorbed by
the Gemini client while it fails over; only ServiceUnavailable and
MalformedResult reach the orchestrator, and only AnalysisFailed reaches the
web layer.
"""
from typing import Optional


class LeaseCheckError(Exception):
    """Base exception for lease analysis failures."""
    pass


class ConfigurationError(LeaseCheckError):
    """Required configuration (the API key) is missing or invalid."""
    pass


class EndpointError(LeaseCheckError):
    """A single endpoint attempt failed; the client moves on to the next variant."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class TransportError(EndpointError):
    """Network failure or non-success HTTP status."""

    def __init__(self, message: str, endpoint: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, endpoint)
        self.status_code = status_code


class ShapeError(EndpointError):
    """Response envelope is missing candidates/content/parts."""
    pass


class ParseError(EndpointError):
    """Model output did not contain a parseable JSON object."""
    pass


class ServiceUnavailable(LeaseCheckError):
    """Every endpoint variant failed."""

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.last_error = last_error


class MalformedResult(LeaseCheckError):
    """Parsed JSON does not satisfy the analysis result schema."""
    pass


class AnalysisFailed(LeaseCheckError):
    """Both the Gemini path and the keyword fallback failed."""

    DEFAULT_MESSAGE = (
        "We could not complete the analysis of this contract. "
        "Please review the agreement manually or consult the BC Residential Tenancy Branch."
    )

    def __init__(self, message: str = DEFAULT_MESSAGE, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
