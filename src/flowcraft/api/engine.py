"""
HTTP request engine for the FlowCraft API.

Builds JSON requests, applies the provider authentication header, enforces
a hard per-attempt timeout, classifies responses into the error taxonomy
and retries transient failures with exponential backoff.

Example:
    from flowcraft.api.engine import AuthContext, RequestEngine
    from flowcraft.config import ClientConfig
    from flowcraft.models import Provider

    async with RequestEngine(ClientConfig(base_url="https://api.example.com")) as engine:
        data = await engine.execute(
            "/v2/usage",
            auth=AuthContext(Provider.ANTHROPIC, "sk-ant-..."),
        )
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Literal, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from flowcraft.api.providers import auth_headers
from flowcraft.config import ClientConfig
from flowcraft.errors import (
    APIError,
    AuthenticationError,
    FlowCraftError,
    NetworkError,
    QuotaExceededError,
    RateLimitError,
    ResponseDecodeError,
    ValidationError,
)
from flowcraft.logging import get_logger
from flowcraft.models import Provider

logger = get_logger("api.engine")

T = TypeVar("T")

HTTPMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class AuthContext:
    """Credentials for a single request."""

    provider: Provider | str
    api_key: str

    def __repr__(self) -> str:
        return f"AuthContext(provider={self.provider!r}, api_key='***')"


def parse_retry_after(value: str | None) -> int | None:
    """
    Parse a ``Retry-After`` header into seconds.

    Supports both the delta-seconds and the HTTP-date forms. Returns ``None``
    when the header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, int((when - datetime.now(timezone.utc)).total_seconds()))


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FlowCraftError) and exc.retryable


def error_from_response(response: httpx.Response) -> APIError:
    """Map a non-2xx response to the matching error variant."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    message: Any = None
    details: Any = None
    if isinstance(payload, dict):
        message = payload.get("error")
        details = payload.get("details")
    status = response.status_code
    text = str(message) if message else (response.reason_phrase or f"HTTP {status}")

    if status in (401, 403):
        return AuthenticationError(text, details, status_code=status)
    if status == 429:
        return RateLimitError(
            text,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
            details=details,
        )
    if status == 400:
        return ValidationError(text, details)
    if status == 402:
        return QuotaExceededError(text, details)
    return APIError(text, status, details)


class RequestEngine:
    """
    Executes API requests with timeout, classification and retry.

    Authentication, validation, quota and decode errors are terminal. All
    other failures are retried up to ``config.max_retries`` attempts in
    total, sleeping ``retry_delay * 2 ** attempt`` between attempts.

    Thread Safety:
        Designed for single-threaded async usage. Concurrent ``execute``
        calls are bounded by ``config.max_concurrent_requests``.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._transport = transport
        self._client: Any = None  # httpx.AsyncClient
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_requests))

    async def __aenter__(self) -> RequestEngine:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_url(self, endpoint: str) -> str:
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.config.base_url.rstrip('/')}{endpoint}"

    @staticmethod
    def build_headers(
        auth: AuthContext | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, str]:
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)
        if auth is not None and auth.api_key:
            request_headers.update(auth_headers(auth.provider, auth.api_key))
        return request_headers

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        endpoint: str,
        method: HTTPMethod = "GET",
        body: Any = None,
        auth: AuthContext | None = None,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        decode: Callable[[Any], T] | None = None,
    ) -> Any:
        """
        Perform a request and return the (optionally decoded) JSON body.

        Args:
            endpoint: Path relative to ``config.base_url``
            method: HTTP method
            body: JSON-serialisable request body
            auth: Provider credentials; omitted for public endpoints
            headers: Extra request headers
            params: Query string parameters
            decode: Typed decoder applied once to the successful body

        Raises:
            FlowCraftError: The classified failure from the last attempt
        """
        url = self.build_url(endpoint)
        request_headers = self.build_headers(auth, headers)
        max_attempts = self.config.max_retries
        if max_attempts < 1:
            raise NetworkError("Request failed after retries")

        def log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                "%s %s failed (%s); retrying in %.2fs",
                method,
                url,
                getattr(exc, "message", exc),
                state.next_action.sleep if state.next_action else 0.0,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=self.config.retry_delay, exp_base=2),
            retry=retry_if_exception(_is_retryable),
            sleep=lambda delay: self._sleep(float(delay)),
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    logger.debug(
                        "%s %s (attempt %d/%d)",
                        method,
                        url,
                        attempt.retry_state.attempt_number,
                        max_attempts,
                    )
                    data = await self._attempt(method, url, request_headers, body, params)
        except FlowCraftError as exc:
            if exc.retryable:
                logger.error(
                    "%s %s failed after %d attempts",
                    method,
                    url,
                    max_attempts,
                    extra={"context": {"kind": exc.kind.value, "status": exc.status_code}},
                )
            else:
                logger.debug("%s %s failed with terminal %s", method, url, exc.kind.value)
            raise

        return self._decode(data, decode)

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any,
        params: dict[str, Any] | None,
    ) -> Any:
        client = self._get_client()
        timeout = self.config.timeout

        async with self._semaphore:
            try:
                response = await asyncio.wait_for(
                    client.request(method, url, headers=headers, json=body, params=params),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise NetworkError(f"Request timed out after {timeout:g}s") from None
            except httpx.TimeoutException as exc:
                raise NetworkError(f"Request timed out after {timeout:g}s") from exc
            except httpx.HTTPError as exc:
                raise NetworkError(f"Network request failed: {exc}") from exc
            except OSError as exc:
                raise NetworkError(f"Network request failed: {exc}") from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise error_from_response(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseDecodeError("Response body is not valid JSON", status) from exc

        if isinstance(data, dict) and data.get("error"):
            raise APIError(str(data["error"]), status, data.get("details"))

        return data

    @staticmethod
    def _decode(data: Any, decode: Callable[[Any], T] | None) -> Any:
        if decode is None:
            return data
        try:
            return decode(data)
        except ResponseDecodeError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise ResponseDecodeError(f"Unexpected response shape: {exc}") from exc
