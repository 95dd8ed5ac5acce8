"""
Service layer exceptions and failure classification.
"""

from dataclasses import dataclass
from enum import Enum

import httpx
from loguru import logger


class ErrorKind(str, Enum):
    """Broad failure family used for retry decisions."""

    TRANSIENT_NETWORK = "transient-network"
    TRANSIENT_UPSTREAM = "transient-upstream"
    PERMANENT_INPUT = "permanent-input"
    PERMANENT_UPSTREAM = "permanent-upstream"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """User-facing severity, also used to pick the log level."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(str, Enum):
    """Specific failure reason, drives the message shown to the user."""

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    API_NOT_FOUND = "API_NOT_FOUND"
    API_ERROR = "API_ERROR"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class ErrorClassification:
    """Classification result for a failure."""

    code: ErrorCode
    kind: ErrorKind
    retryable: bool
    severity: Severity


_CLASSIFICATIONS: dict[ErrorCode, ErrorClassification] = {
    code: ErrorClassification(code, kind, retryable, severity)
    for code, kind, retryable, severity in (
        (ErrorCode.NETWORK_TIMEOUT, ErrorKind.TRANSIENT_NETWORK, True, Severity.WARNING),
        (ErrorCode.NETWORK_ERROR, ErrorKind.TRANSIENT_NETWORK, True, Severity.ERROR),
        (ErrorCode.API_SERVER_ERROR, ErrorKind.TRANSIENT_UPSTREAM, True, Severity.ERROR),
        (ErrorCode.RATE_LIMIT_EXCEEDED, ErrorKind.TRANSIENT_UPSTREAM, True, Severity.WARNING),
        (ErrorCode.API_NOT_FOUND, ErrorKind.PERMANENT_UPSTREAM, False, Severity.INFO),
        (ErrorCode.API_ERROR, ErrorKind.PERMANENT_UPSTREAM, False, Severity.INFO),
        (ErrorCode.API_INVALID_RESPONSE, ErrorKind.TRANSIENT_UPSTREAM, True, Severity.ERROR),
        (ErrorCode.INVALID_IDENTIFIER, ErrorKind.PERMANENT_INPUT, False, Severity.INFO),
        (ErrorCode.UNKNOWN_ERROR, ErrorKind.UNKNOWN, False, Severity.ERROR),
    )
}


def classification_for(code: ErrorCode) -> ErrorClassification:
    """Get the fixed classification for an error code."""
    return _CLASSIFICATIONS[code]


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class InvalidIdentifierError(ServiceError):
    """Input could not be normalized into a lookup identifier."""

    def __init__(self, raw_input: str, reason: str = "invalid identifier"):
        self.raw_input = raw_input
        super().__init__(f"{reason}: {raw_input!r}")


class InvalidResponseError(ServiceError):
    """Upstream answered, but without the expected success envelope."""

    pass


class LookupFailedError(ServiceError):
    """External lookup failed after retries; carries its classification."""

    def __init__(
        self,
        classification: ErrorClassification,
        attempts: int,
        service_id: str | None = None,
        detail: str = "",
    ):
        self.classification = classification
        self.attempts = attempts
        msg = f"Lookup failed with {classification.code.value} after {attempts} attempt(s)"
        if detail:
            msg += f": {detail}"
        super().__init__(msg, service_id=service_id)


def classify_status(status_code: int) -> ErrorClassification:
    """Classify an HTTP error status."""
    if status_code == 429:
        return _CLASSIFICATIONS[ErrorCode.RATE_LIMIT_EXCEEDED]
    if status_code >= 500:
        return _CLASSIFICATIONS[ErrorCode.API_SERVER_ERROR]
    if status_code == 404:
        return _CLASSIFICATIONS[ErrorCode.API_NOT_FOUND]
    if 400 <= status_code < 500:
        return _CLASSIFICATIONS[ErrorCode.API_ERROR]
    return _CLASSIFICATIONS[ErrorCode.UNKNOWN_ERROR]


def classify_error(exc: BaseException) -> ErrorClassification:
    """
    Map a raised failure to exactly one classification.

    Total over every exception type: shapes the fetcher never produces fall
    back to UNKNOWN_ERROR (non-retryable, error severity).
    """
    if isinstance(exc, LookupFailedError):
        return exc.classification

    if isinstance(exc, InvalidIdentifierError):
        return _CLASSIFICATIONS[ErrorCode.INVALID_IDENTIFIER]

    if isinstance(exc, InvalidResponseError):
        return _CLASSIFICATIONS[ErrorCode.API_INVALID_RESPONSE]

    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)

    # TimeoutException is a TransportError subclass, check it first
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return _CLASSIFICATIONS[ErrorCode.NETWORK_TIMEOUT]

    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return _CLASSIFICATIONS[ErrorCode.NETWORK_ERROR]

    return _CLASSIFICATIONS[ErrorCode.UNKNOWN_ERROR]


_LOG_LEVELS = {
    Severity.INFO: "INFO",
    Severity.WARNING: "WARNING",
    Severity.ERROR: "ERROR",
    Severity.CRITICAL: "CRITICAL",
}


def log_classified(
    exc: BaseException, context: dict[str, object] | None = None
) -> ErrorClassification:
    """Log a failure at the level matching its severity and return the classification."""
    classification = classify_error(exc)
    logger.log(
        _LOG_LEVELS[classification.severity],
        f"{classification.code.value} ({classification.kind.value}): {exc} "
        f"context={context or {}}",
    )
    return classification
