"""Content fetch client with typed error classification and bounded retries."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlparse

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from ..config import FetchServiceConfig
from .errors import FetchError, FetchErrorKind

NO_MARKDOWN_PLACEHOLDER = "No markdown content returned."

_STATUS_KINDS: dict[int, FetchErrorKind] = {
    400: FetchErrorKind.BAD_REQUEST,
    401: FetchErrorKind.UNAUTHORIZED,
    402: FetchErrorKind.PAYMENT_REQUIRED,
    403: FetchErrorKind.FORBIDDEN,
    404: FetchErrorKind.NOT_FOUND,
    408: FetchErrorKind.REQUEST_TIMEOUT,
    429: FetchErrorKind.RATE_LIMITED,
}


def is_valid_url(url: str | None) -> bool:
    """True when ``url`` parses as an absolute URL with scheme and host."""

    if not url or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
        _ = parsed.port  # raises on an out-of-range port
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def classify_status(status_code: int) -> FetchErrorKind | None:
    """Map a non-success HTTP status to an error kind; ``None`` for 2xx."""

    if 200 <= status_code < 300:
        return None
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code >= 500:
        return FetchErrorKind.SERVER_ERROR
    if 400 <= status_code < 500:
        return FetchErrorKind.BAD_REQUEST
    return FetchErrorKind.INVALID_RESPONSE


class ScrapeData(BaseModel):
    """The ``data`` object of a successful scrape response."""

    markdown: str | None = None
    screenshot: str | None = None
    metadata: Any = None


class ScrapeEnvelope(BaseModel):
    success: bool = False
    data: ScrapeData | None = None


@dataclass(slots=True)
class FetchOptions:
    """Per-call overrides; ``None`` falls back to the service config."""

    wait_for_ms: int | None = None
    timeout_ms: int | None = None


@dataclass(slots=True)
class FetchResult:
    url: str
    content: str
    screenshot: str | None = None
    attempts: int = 1
    metadata: dict[str, Any] = field(default_factory=dict, repr=False)


class Fetcher:
    """Fetch page content through the content fetch service.

    Each call is independent: the only state kept between calls is the
    configuration and the underlying HTTP client.
    """

    def __init__(
        self,
        config: FetchServiceConfig | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or FetchServiceConfig()
        self._client = client or httpx.Client(follow_redirects=True)
        self._owns_client = client is None
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("brandguard.fetcher")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def fetch(
        self, url: str, credential: str | None, options: FetchOptions | None = None
    ) -> FetchResult:
        if not credential or not credential.strip():
            raise FetchError(FetchErrorKind.MISSING_CREDENTIAL, url=url)
        if not is_valid_url(url):
            raise FetchError(FetchErrorKind.INVALID_URL, f"Invalid URL format: {url}", url=url)

        options = options or FetchOptions()
        wait_for_ms = (
            options.wait_for_ms if options.wait_for_ms is not None else self.config.wait_for_ms
        )
        timeout_ms = options.timeout_ms if options.timeout_ms is not None else self.config.timeout_ms
        max_attempts = self.config.max_retries + 1

        attempt = 0
        while True:
            try:
                result = self._attempt(url, credential.strip(), wait_for_ms, timeout_ms)
                result.attempts = attempt + 1
                return result
            except FetchError as exc:
                if not exc.retryable or attempt + 1 >= max_attempts:
                    self.logger.error(
                        "fetch_failed",
                        url=url,
                        attempt=attempt + 1,
                        kind=exc.kind.value,
                        status_code=exc.status_code,
                        error=exc.detail,
                    )
                    raise
                backoff_ms = self.config.initial_backoff_ms * (2**attempt)
                self.logger.warning(
                    "fetch_retry",
                    url=url,
                    attempt=attempt + 1,
                    kind=exc.kind.value,
                    backoff_ms=backoff_ms,
                )
                self._sleep(backoff_ms / 1000.0)
                attempt += 1

    # ------------------------------------------------------------------
    def _attempt(
        self, url: str, credential: str, wait_for_ms: int, timeout_ms: int
    ) -> FetchResult:
        try:
            response = self._client.post(
                self.config.endpoint,
                json={
                    "url": url,
                    "formats": ["markdown", "screenshot"],
                    "waitFor": wait_for_ms,
                },
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {credential}",
                },
                timeout=timeout_ms / 1000.0,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(FetchErrorKind.REQUEST_TIMEOUT, str(exc) or None, url=url) from exc
        except httpx.TransportError as exc:
            raise FetchError(FetchErrorKind.NETWORK_FAILURE, str(exc) or None, url=url) from exc

        kind = classify_status(response.status_code)
        if kind is not None:
            raise FetchError(
                kind,
                self._error_detail(response),
                url=url,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(
                FetchErrorKind.INVALID_RESPONSE,
                "Fetch service returned a non-JSON body",
                url=url,
                status_code=response.status_code,
            ) from exc

        try:
            envelope = ScrapeEnvelope.model_validate(payload)
        except ValidationError as exc:
            raise FetchError(
                FetchErrorKind.INVALID_RESPONSE,
                f"Fetch service returned a malformed payload: {exc.error_count()} invalid fields",
                url=url,
                status_code=response.status_code,
            ) from exc
        data = envelope.data
        if not envelope.success or data is None:
            raise FetchError(FetchErrorKind.INVALID_RESPONSE, url=url, status_code=response.status_code)

        metadata = data.metadata
        return FetchResult(
            url=url,
            content=data.markdown or NO_MARKDOWN_PLACEHOLDER,
            screenshot=data.screenshot or None,
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("error"):
            return f"{body['error']} (status {response.status_code})"
        return None


__all__ = [
    "FetchOptions",
    "FetchResult",
    "Fetcher",
    "NO_MARKDOWN_PLACEHOLDER",
    "classify_status",
    "is_valid_url",
]
