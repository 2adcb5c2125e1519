"""Domain exceptions for the chat routing pipeline.

Four families, separated by where they surface:

- AdmissionError: raised before any streaming starts. Carries a ``kind``
  that the API layer maps to an HTTP status. Never retried automatically.
- SegmentationConfigError: a non-positive chunk budget. Internal error.
- ProviderError: anything that goes wrong while a provider is streaming.
  The orchestrator turns it into an ``error`` event; it never escapes the
  stream.
- AccountingError: the quota commit after a delivered response failed.
  Logged only; the caller already has their answer.
"""

from __future__ import annotations

from enum import StrEnum


class AdmissionKind(StrEnum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"


class AdmissionError(Exception):
    """Request rejected during admission."""

    kind: AdmissionKind = AdmissionKind.BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(AdmissionError):
    kind = AdmissionKind.UNAUTHORIZED


class InvalidRequestError(AdmissionError):
    kind = AdmissionKind.BAD_REQUEST


class QuotaExceededError(AdmissionError):
    kind = AdmissionKind.FORBIDDEN


class TierForbiddenError(AdmissionError):
    kind = AdmissionKind.FORBIDDEN


class ModelNotFoundError(AdmissionError):
    kind = AdmissionKind.NOT_FOUND


class NoEligibleModelError(AdmissionError):
    kind = AdmissionKind.BAD_REQUEST


class SegmentationConfigError(ValueError):
    """Chunk budget must be positive."""


class ProviderError(Exception):
    """Base exception for all provider streaming failures."""


class ProviderRateLimitError(ProviderError):
    """Upstream provider rate limit exceeded."""


class ProviderUnavailableError(ProviderError):
    """Provider is not configured or not reachable."""


class ProviderTimeoutError(ProviderError):
    """A segment did not finish within the configured timeout."""


class AccountingError(Exception):
    """Usage could not be read or committed for a caller."""
