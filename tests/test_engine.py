"""Tests for the HTTP request engine."""

import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import BASE_URL, MockResponse, set_responses
from flowcraft.api.engine import AuthContext, RequestEngine, error_from_response, parse_retry_after
from flowcraft.config import ClientConfig
from flowcraft.errors import (
    APIError,
    AuthenticationError,
    ErrorKind,
    NetworkError,
    QuotaExceededError,
    RateLimitError,
    ResponseDecodeError,
    ValidationError,
)
from flowcraft.models import Provider


class TestBuildRequest:
    def test_url_trims_trailing_slash(self) -> None:
        engine = RequestEngine(ClientConfig(base_url="https://api.test/"))
        assert engine.build_url("/v2/usage") == "https://api.test/v2/usage"

    def test_url_adds_leading_slash(self) -> None:
        engine = RequestEngine(ClientConfig(base_url="https://api.test"))
        assert engine.build_url("v2/usage") == "https://api.test/v2/usage"

    @pytest.mark.parametrize(
        ("provider", "header", "value"),
        [
            (Provider.OPENAI, "X-OpenAI-Key", "k"),
            (Provider.ANTHROPIC, "X-Anthropic-Key", "k"),
            (Provider.GOOGLE, "X-Google-Key", "k"),
            (Provider.FLOWCRAFT, "Authorization", "Bearer k"),
            ("mistral", "X-API-Key", "k"),
        ],
    )
    def test_auth_header_per_provider(self, provider, header, value) -> None:
        headers = RequestEngine.build_headers(AuthContext(provider, "k"))
        assert headers[header] == value
        if header != "Authorization":
            assert "Authorization" not in headers
        assert headers["Content-Type"] == "application/json"

    def test_no_auth_headers_without_context(self) -> None:
        assert RequestEngine.build_headers(None, {"User-Id": "u1"}) == {
            "Content-Type": "application/json",
            "User-Id": "u1",
        }

    def test_auth_context_repr_masks_key(self) -> None:
        assert "secret" not in repr(AuthContext(Provider.OPENAI, "sk-secret"))


class TestSuccess:
    @pytest.mark.asyncio
    async def test_returns_json_body(self, engine) -> None:
        mock_http = set_responses(engine, MockResponse(200, {"ok": True}))

        result = await engine.execute(
            "/v2/usage", auth=AuthContext(Provider.ANTHROPIC, "sk-ant-key")
        )

        assert result == {"ok": True}
        args, kwargs = mock_http.request.call_args
        assert args == ("GET", f"{BASE_URL}/v2/usage")
        assert kwargs["headers"]["X-Anthropic-Key"] == "sk-ant-key"
        assert kwargs["json"] is None

    @pytest.mark.asyncio
    async def test_decoder_applied_once(self, engine) -> None:
        set_responses(engine, MockResponse(200, {"value": 2}))
        calls = []

        def decode(data):
            calls.append(data)
            return data["value"] * 10

        assert await engine.execute("/x", decode=decode) == 20
        assert calls == [{"value": 2}]

    @pytest.mark.asyncio
    async def test_decoder_failure_is_decode_error(self, engine, sleep) -> None:
        mock_http = set_responses(engine, MockResponse(200, {"other": 1}))

        with pytest.raises(ResponseDecodeError):
            await engine.execute("/x", decode=lambda data: data["value"])

        assert mock_http.request.call_count == 1
        assert sleep.delays == []


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("status", "error_type", "kind"),
        [
            (401, AuthenticationError, ErrorKind.AUTHENTICATION),
            (403, AuthenticationError, ErrorKind.AUTHENTICATION),
            (429, RateLimitError, ErrorKind.RATE_LIMIT),
            (400, ValidationError, ErrorKind.VALIDATION),
            (402, QuotaExceededError, ErrorKind.QUOTA_EXCEEDED),
            (500, APIError, ErrorKind.GENERIC),
            (418, APIError, ErrorKind.GENERIC),
        ],
    )
    def test_status_table(self, status, error_type, kind) -> None:
        error = error_from_response(MockResponse(status, {"error": "boom"}))
        assert type(error) is error_type
        assert error.kind == kind
        assert error.status_code == status
        assert error.message == "boom"

    def test_message_falls_back_to_reason_phrase(self) -> None:
        error = error_from_response(
            MockResponse(503, reason_phrase="Service Unavailable", text="<html>")
        )
        assert error.message == "Service Unavailable"
        assert error.status_code == 503

    def test_details_are_kept(self) -> None:
        error = error_from_response(
            MockResponse(400, {"error": "bad prompt", "details": {"field": "prompt"}})
        )
        assert error.details == {"field": "prompt"}

    def test_retry_after_seconds(self) -> None:
        error = error_from_response(MockResponse(429, {}, headers={"Retry-After": "30"}))
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 30


class TestParseRetryAfter:
    def test_missing(self) -> None:
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None

    def test_seconds(self) -> None:
        assert parse_retry_after(" 12 ") == 12

    def test_http_date(self) -> None:
        when = datetime.now(timezone.utc) + timedelta(seconds=120)
        seconds = parse_retry_after(format_datetime(when, usegmt=True))
        assert seconds is not None
        assert 100 <= seconds <= 120

    def test_past_date_is_zero(self) -> None:
        when = datetime.now(timezone.utc) - timedelta(hours=1)
        assert parse_retry_after(format_datetime(when, usegmt=True)) == 0

    def test_garbage(self) -> None:
        assert parse_retry_after("soon") is None


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_generic_errors_with_backoff(self, engine, sleep) -> None:
        mock_http = set_responses(
            engine,
            MockResponse(500, {"error": "first"}),
            MockResponse(502, {"error": "second"}),
            MockResponse(503, {"error": "third"}),
        )

        with pytest.raises(APIError) as exc_info:
            await engine.execute("/v2/diagram", "POST", {"prompt": "x"})

        assert mock_http.request.call_count == 3
        assert sleep.delays == [1.0, 2.0]
        assert exc_info.value.message == "third"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, engine, sleep) -> None:
        mock_http = set_responses(
            engine,
            MockResponse(429, {"error": "slow down"}),
            MockResponse(200, {"ok": 1}),
        )

        assert await engine.execute("/x") == {"ok": 1}
        assert mock_http.request.call_count == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 402, 403])
    async def test_terminal_errors_are_not_retried(self, engine, sleep, status) -> None:
        mock_http = set_responses(engine, MockResponse(status, {"error": "no"}))

        with pytest.raises(APIError) as exc_info:
            await engine.execute("/x")

        assert not exc_info.value.retryable
        assert mock_http.request.call_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_backoff_uses_configured_delay(self, sleep) -> None:
        engine = RequestEngine(
            ClientConfig(base_url=BASE_URL, max_retries=4, retry_delay=0.5), sleep=sleep
        )
        set_responses(engine, *[MockResponse(500) for _ in range(4)])

        with pytest.raises(APIError):
            await engine.execute("/x")

        assert sleep.delays == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, sleep) -> None:
        engine = RequestEngine(ClientConfig(base_url=BASE_URL, max_retries=1), sleep=sleep)
        mock_http = set_responses(engine, MockResponse(500))

        with pytest.raises(APIError):
            await engine.execute("/x")

        assert mock_http.request.call_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_zero_attempts_raises_network_error(self, sleep) -> None:
        engine = RequestEngine(ClientConfig(base_url=BASE_URL, max_retries=0), sleep=sleep)
        mock_http = set_responses(engine)

        with pytest.raises(NetworkError, match="Request failed after retries"):
            await engine.execute("/x")

        mock_http.request.assert_not_called()


class TestBodyErrors:
    @pytest.mark.asyncio
    async def test_error_field_in_success_body(self, engine, sleep) -> None:
        set_responses(engine, *[MockResponse(200, {"error": "model overloaded"}) for _ in range(3)])

        with pytest.raises(APIError, match="model overloaded") as exc_info:
            await engine.execute("/x")

        assert exc_info.value.kind == ErrorKind.GENERIC
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, engine, sleep) -> None:
        mock_http = set_responses(engine, MockResponse(200, text="<html>oops</html>"))

        with pytest.raises(ResponseDecodeError):
            await engine.execute("/x")

        assert mock_http.request.call_count == 1


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_connect_error_becomes_network_error(self, engine, sleep) -> None:
        request = httpx.Request("GET", f"{BASE_URL}/x")
        set_responses(engine, *[httpx.ConnectError("refused", request=request) for _ in range(3)])

        with pytest.raises(NetworkError) as exc_info:
            await engine.execute("/x")

        assert exc_info.value.status_code is None
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_httpx_timeout_becomes_network_error(self, engine) -> None:
        set_responses(
            engine,
            httpx.ReadTimeout("slow"),
            MockResponse(200, {"ok": True}),
        )

        assert await engine.execute("/x") == {"ok": True}

    @pytest.mark.asyncio
    async def test_hard_timeout(self, sleep) -> None:
        engine = RequestEngine(
            ClientConfig(base_url=BASE_URL, timeout=0.01, max_retries=1), sleep=sleep
        )

        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        mock_http = AsyncMock()
        mock_http.request = hang
        engine._client = mock_http

        with pytest.raises(NetworkError, match="timed out"):
            await engine.execute("/x")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_aclose_closes_client(self, engine) -> None:
        mock_http = set_responses(engine)
        await engine.aclose()
        mock_http.aclose.assert_awaited_once()
        assert engine._client is None

    @pytest.mark.asyncio
    async def test_real_client_with_mock_transport(self, sleep) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "3"
            return httpx.Response(200, json={"diagrams": []})

        async with RequestEngine(
            ClientConfig(base_url=BASE_URL),
            transport=httpx.MockTransport(handler),
            sleep=sleep,
        ) as engine:
            assert await engine.execute("/v2/public-diagrams", params={"limit": 3}) == {
                "diagrams": []
            }


class TestAuthHeadersOnTheWire:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("provider", "header"),
        [
            (Provider.OPENAI, "X-OpenAI-Key"),
            (Provider.ANTHROPIC, "X-Anthropic-Key"),
            (Provider.GOOGLE, "X-Google-Key"),
            ("mistral", "X-API-Key"),
        ],
    )
    async def test_provider_key_header_without_authorization(self, sleep, provider, header) -> None:
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"ok": True})

        async with RequestEngine(
            ClientConfig(base_url=BASE_URL),
            transport=httpx.MockTransport(handler),
            sleep=sleep,
        ) as engine:
            await engine.execute("/v2/usage", auth=AuthContext(provider, "key-123"))

        assert len(sent) == 1
        assert sent[0].headers[header] == "key-123"
        assert "Authorization" not in sent[0].headers

    @pytest.mark.asyncio
    async def test_flowcraft_uses_bearer_token(self, sleep) -> None:
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"ok": True})

        async with RequestEngine(
            ClientConfig(base_url=BASE_URL),
            transport=httpx.MockTransport(handler),
            sleep=sleep,
        ) as engine:
            await engine.execute("/v2/usage", auth=AuthContext(Provider.FLOWCRAFT, "fc-token"))

        assert sent[0].headers["Authorization"] == "Bearer fc-token"
        assert "X-API-Key" not in sent[0].headers
