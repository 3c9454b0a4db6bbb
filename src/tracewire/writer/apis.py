"""HTTP transport for log batches and attachment uploads.

Both clients share :class:`TracewireAPI`, an ``httpx.AsyncClient`` wrapper
that retries network failures and transient status codes with exponential
backoff.
"""

from __future__ import annotations

import asyncio
import random
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from tracewire.diagnostics import get_logger
from tracewire.errors import TracewireAPIError
from tracewire.utils import utc_now

log = get_logger(__name__)

API_KEY_HEADER = "x-tracewire-api-key"
LOG_PATH = "/api/sdk/v3/log"
UPLOAD_URL_PATH = "/api/sdk/v1/log-repositories/attachments/upload-url"

DEFAULT_TIMEOUT = 30.0
UPLOAD_TIMEOUT = 120.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_BASE_DELAY = 1.0
MAX_RETRY_DELAY = 16.0
RETRY_JITTER = 0.1

RETRIABLE_STATUS_CODES = frozenset(
    {408, 429, 500, 502, 503, 504, 507, 508, 510, 511, *range(520, 528), 529, 530}
)


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a ``Retry-After`` header (delta or HTTP date)."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, (when - utc_now()).total_seconds())


class TracewireAPI:
    """Authenticated ``httpx.AsyncClient`` with retry.

    Args:
        base_url: Backend root URL.
        api_key: Sent as the ``x-tracewire-api-key`` header.
        max_retries: Retries after the first attempt.
        timeout: Per-request timeout in seconds.
        retry_base_delay: First backoff delay; doubles per retry up to 16 s.
        transport: Optional custom transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={API_KEY_HEADER: api_key},
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _backoff(self, attempt: int) -> float:
        delay = min(self.retry_base_delay * (2**attempt), MAX_RETRY_DELAY)
        return delay + random.uniform(0, delay * RETRY_JITTER)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying transient failures.

        Raises:
            TracewireAPIError: On a non-retriable status, or once retries run out.
        """
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, url, **kwargs)
            except (httpx.NetworkError, httpx.TimeoutException) as e:
                if attempt >= self.max_retries:
                    raise TracewireAPIError(f"{method} {url} failed: {e}") from e
                delay = self._backoff(attempt)
                log.warning(
                    "api_request_retry",
                    method=method,
                    url=url,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                    error=str(e),
                )
                attempt += 1
                await asyncio.sleep(delay)
                continue

            if response.status_code in RETRIABLE_STATUS_CODES and attempt < self.max_retries:
                retry_after = parse_retry_after(response.headers.get("retry-after"))
                delay = retry_after if retry_after is not None else self._backoff(attempt)
                log.warning(
                    "api_request_retry",
                    method=method,
                    url=url,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                    status_code=response.status_code,
                )
                attempt += 1
                await asyncio.sleep(delay)
                continue

            if response.is_error:
                raise TracewireAPIError(
                    f"{method} {url} returned {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )
            return response


class LogsAPI(TracewireAPI):
    """Delivers newline-separated serialized commit entries."""

    async def push_logs(self, repository_id: str, logs: str) -> None:
        await self._request(
            "POST",
            LOG_PATH,
            params={"id": repository_id},
            content=logs.encode("utf-8"),
            headers={"Content-Type": "text/plain"},
        )


class AttachmentAPI(TracewireAPI):
    """Signed-URL attachment uploads."""

    async def get_upload_url(self, key: str, mime_type: str, size: int) -> str:
        """Ask the backend for a signed PUT URL for ``key``.

        Raises:
            TracewireAPIError: If the backend reports an error or omits the URL.
        """
        response = await self._request(
            "GET",
            UPLOAD_URL_PATH,
            params={"key": key, "mimeType": mime_type, "size": size},
        )
        try:
            body = response.json()
        except ValueError as e:
            raise TracewireAPIError("Upload URL response is not JSON", body=response.text) from e
        if "error" in body:
            raise TracewireAPIError(f"Upload URL request failed: {body['error']}", body=response.text)
        url = (body.get("data") or {}).get("url")
        if not url:
            raise TracewireAPIError("Upload URL response has no url", body=response.text)
        return url

    async def upload_to_signed_url(self, url: str, data: bytes, mime_type: str) -> None:
        await self._request(
            "PUT",
            url,
            content=data,
            headers={"Content-Type": mime_type},
            timeout=UPLOAD_TIMEOUT,
        )
