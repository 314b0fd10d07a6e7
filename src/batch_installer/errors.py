"""Error taxonomy for listing, detection and installation failures."""

from __future__ import annotations

from enum import StrEnum


class FailureKind(StrEnum):
    """Categories of repository listing failures."""

    ACCOUNT_NOT_FOUND = "account_not_found"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    NETWORK_FAILURE = "network_failure"


class FetchError(Exception):
    """Base class for listing failures raised by the fetch strategies."""

    kind: FailureKind = FailureKind.INVALID_RESPONSE

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AccountNotFoundError(FetchError):
    """The account does not exist as a user or an organization."""

    kind = FailureKind.ACCOUNT_NOT_FOUND


class RateLimitedError(FetchError):
    """The upstream refused the request because of rate limiting."""

    kind = FailureKind.RATE_LIMITED


class InvalidResponseError(FetchError):
    """The upstream answered with a malformed payload or markup."""

    kind = FailureKind.INVALID_RESPONSE


class NetworkFailureError(FetchError):
    """Timeout, DNS failure, connection reset or server error."""

    kind = FailureKind.NETWORK_FAILURE


class DetectionFailure(Exception):
    """Raised inside the detector when a scan cannot complete.

    Never escapes ``ComponentDetector.detect``; it is downgraded to a
    failed verdict there.
    """


class InstallError(Exception):
    """Installation reported as failed by the orchestrator."""


class ActivationError(Exception):
    """Activation or deactivation reported as failed by the orchestrator."""
