from __future__ import annotations

import json

import httpx
import pytest

from brandguard.engine.errors import FetchError, FetchErrorKind
from brandguard.engine.fetcher import (
    NO_MARKDOWN_PLACEHOLDER,
    FetchOptions,
    Fetcher,
    classify_status,
    is_valid_url,
)


def _make_fetcher(fetch_config, make_mock_client, handler, delays: list[float]) -> Fetcher:
    return Fetcher(fetch_config, client=make_mock_client(handler), sleep=delays.append)


def test_fetch_returns_markdown_and_screenshot(fetch_config, make_mock_client, make_scrape_response) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=make_scrape_response("# Hello"))

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    result = fetcher.fetch("https://shop.test/a", "  fc-key  ")

    assert result.content == "# Hello"
    assert result.screenshot == "https://cdn.test/shot.png"
    assert result.attempts == 1
    assert result.metadata == {"title": "Page"}
    assert delays == []

    request = captured[0]
    assert str(request.url) == "https://fetch.test/v1/scrape"
    assert request.headers["Authorization"] == "Bearer fc-key"
    body = json.loads(request.content)
    assert body == {
        "url": "https://shop.test/a",
        "formats": ["markdown", "screenshot"],
        "waitFor": 2000,
    }


def test_fetch_options_override_wait(fetch_config, make_mock_client, make_scrape_response) -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=make_scrape_response())

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    fetcher.fetch("https://shop.test/a", "key", FetchOptions(wait_for_ms=500))
    assert bodies[0]["waitFor"] == 500


def test_server_errors_retry_with_exponential_backoff(fetch_config, make_mock_client) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503, json={"error": "overloaded"})

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")

    assert len(calls) == 3
    assert delays == [1.0, 2.0]
    assert excinfo.value.kind is FetchErrorKind.SERVER_ERROR
    assert excinfo.value.status_code == 503
    assert "overloaded" in excinfo.value.detail


def test_unauthorized_is_not_retried(fetch_config, make_mock_client) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(401, json={"error": "bad key"})

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")

    assert len(calls) == 1
    assert delays == []
    assert excinfo.value.kind is FetchErrorKind.UNAUTHORIZED
    assert not excinfo.value.retryable


def test_rate_limit_then_success(fetch_config, make_mock_client, make_scrape_response) -> None:
    responses = [
        httpx.Response(429, json={"error": "slow down"}),
        httpx.Response(200, json=make_scrape_response("# Later")),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    result = fetcher.fetch("https://shop.test/a", "key")

    assert result.content == "# Later"
    assert result.attempts == 2
    assert delays == [1.0]


def test_timeouts_are_retried_and_classified(fetch_config, make_mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")

    assert excinfo.value.kind is FetchErrorKind.REQUEST_TIMEOUT
    assert delays == [1.0, 2.0]


def test_connection_errors_are_network_failures(fetch_config, make_mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")
    assert excinfo.value.kind is FetchErrorKind.NETWORK_FAILURE


def test_invalid_url_makes_no_request(fetch_config, make_mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("no request expected")

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("not a url", "key")
    assert excinfo.value.kind is FetchErrorKind.INVALID_URL


def test_missing_credential_is_checked_first(fetch_config, make_mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("no request expected")

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("not a url", "   ")
    assert excinfo.value.kind is FetchErrorKind.MISSING_CREDENTIAL


def test_unsuccessful_payload_is_invalid_response_without_retry(fetch_config, make_mock_client) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"success": False})

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")

    assert excinfo.value.kind is FetchErrorKind.INVALID_RESPONSE
    assert len(calls) == 1
    assert delays == []


@pytest.mark.parametrize(
    "data",
    [
        {"markdown": ["not", "text"]},
        {"markdown": {"body": "text"}},
        {"markdown": 42},
        {"markdown": "# Page", "screenshot": ["a.png"]},
    ],
)
def test_mistyped_payload_fields_are_invalid_response(fetch_config, make_mock_client, data) -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"success": True, "data": data})

    delays: list[float] = []
    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, delays)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")

    assert excinfo.value.kind is FetchErrorKind.INVALID_RESPONSE
    assert len(calls) == 1
    assert delays == []


def test_non_object_payload_is_invalid_response(fetch_config, make_mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["success"])

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://shop.test/a", "key")
    assert excinfo.value.kind is FetchErrorKind.INVALID_RESPONSE


def test_missing_markdown_uses_placeholder(fetch_config, make_mock_client, make_scrape_response) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=make_scrape_response(markdown=None, screenshot=None))

    fetcher = _make_fetcher(fetch_config, make_mock_client, handler, [])
    result = fetcher.fetch("https://shop.test/a", "key")
    assert result.content == NO_MARKDOWN_PLACEHOLDER
    assert result.screenshot is None


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (200, None),
        (400, FetchErrorKind.BAD_REQUEST),
        (401, FetchErrorKind.UNAUTHORIZED),
        (402, FetchErrorKind.PAYMENT_REQUIRED),
        (403, FetchErrorKind.FORBIDDEN),
        (404, FetchErrorKind.NOT_FOUND),
        (408, FetchErrorKind.REQUEST_TIMEOUT),
        (418, FetchErrorKind.BAD_REQUEST),
        (429, FetchErrorKind.RATE_LIMITED),
        (500, FetchErrorKind.SERVER_ERROR),
        (504, FetchErrorKind.SERVER_ERROR),
        (302, FetchErrorKind.INVALID_RESPONSE),
    ],
)
def test_classify_status(status: int, expected: FetchErrorKind | None) -> None:
    assert classify_status(status) is expected


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://example.com/page", True),
        ("http://localhost:8080", True),
        ("example.com", False),
        ("", False),
        ("   ", False),
        (None, False),
        ("https://example.com:99999", False),
    ],
)
def test_is_valid_url(url: str | None, valid: bool) -> None:
    assert is_valid_url(url) is valid


def test_retryable_kinds() -> None:
    retryable = {kind for kind in FetchErrorKind if kind.retryable}
    assert retryable == {
        FetchErrorKind.REQUEST_TIMEOUT,
        FetchErrorKind.RATE_LIMITED,
        FetchErrorKind.SERVER_ERROR,
        FetchErrorKind.NETWORK_FAILURE,
    }
