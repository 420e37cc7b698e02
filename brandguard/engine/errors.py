"""Error taxonomy shared by the fetch client and the pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from ..models import Enrichment


class BrandGuardError(Exception):
    """Base class for all pipeline errors."""


class FetchErrorKind(str, Enum):
    INVALID_URL = "InvalidUrl"
    MISSING_CREDENTIAL = "MissingCredential"
    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    PAYMENT_REQUIRED = "PaymentRequired"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    REQUEST_TIMEOUT = "RequestTimeout"
    RATE_LIMITED = "RateLimited"
    SERVER_ERROR = "ServerError"
    INVALID_RESPONSE = "InvalidResponse"
    NETWORK_FAILURE = "NetworkFailure"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        FetchErrorKind.REQUEST_TIMEOUT,
        FetchErrorKind.RATE_LIMITED,
        FetchErrorKind.SERVER_ERROR,
        FetchErrorKind.NETWORK_FAILURE,
    }
)

_DEFAULT_MESSAGES = {
    FetchErrorKind.INVALID_URL: "Invalid URL format",
    FetchErrorKind.MISSING_CREDENTIAL: "Content fetch credential is required",
    FetchErrorKind.BAD_REQUEST: "Bad request",
    FetchErrorKind.UNAUTHORIZED: "Unauthorized: invalid content fetch credential",
    FetchErrorKind.PAYMENT_REQUIRED: "Payment required: fetch service credit limit reached",
    FetchErrorKind.FORBIDDEN: "Access denied: the target website blocked the crawler",
    FetchErrorKind.NOT_FOUND: "Page not found: the URL does not exist",
    FetchErrorKind.REQUEST_TIMEOUT: "Request timeout: the fetch service took too long to respond",
    FetchErrorKind.RATE_LIMITED: "Rate limit exceeded",
    FetchErrorKind.SERVER_ERROR: "Fetch service server error",
    FetchErrorKind.INVALID_RESPONSE: "Failed to retrieve valid data from the fetch service",
    FetchErrorKind.NETWORK_FAILURE: "Network failure while contacting the fetch service",
}


class FetchError(BrandGuardError):
    """A classified failure of the content fetch client."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str | None = None,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.url = url
        self.status_code = status_code
        self.detail = message or _DEFAULT_MESSAGES[kind]
        super().__init__(f"{kind.value}: {self.detail}")

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class PipelineError(BrandGuardError):
    """Failure that aborts a whole comparison run."""

    def __init__(self, message: str, enrichments: Sequence[Enrichment] = ()) -> None:
        super().__init__(message)
        self.enrichments = list(enrichments)


class ReferenceFetchError(PipelineError):
    """A reference source could not be fetched."""

    def __init__(
        self, ordinal: int, cause: FetchError, enrichments: Sequence[Enrichment] = ()
    ) -> None:
        self.ordinal = ordinal
        self.cause = cause
        super().__init__(f"Source #{ordinal}: {cause}", enrichments)


class MissingPrimaryContent(PipelineError):
    def __init__(self, enrichments: Sequence[Enrichment] = ()) -> None:
        super().__init__(
            "Reference content is missing. Paste content or provide a valid URL to scrape "
            "for the primary source.",
            enrichments,
        )


class ComparisonError(BrandGuardError):
    """The comparison engine failed or returned output violating its contract."""


__all__ = [
    "BrandGuardError",
    "ComparisonError",
    "FetchError",
    "FetchErrorKind",
    "MissingPrimaryContent",
    "PipelineError",
    "ReferenceFetchError",
]
