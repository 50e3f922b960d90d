"""httpx-based referral webhook client."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any, Mapping

import httpx

from app.adapters.webhook.base import AbstractWebhookClient, WebhookResponse
from app.core.errors import UpstreamNetworkAppError, UpstreamTimeoutAppError

logger = logging.getLogger(__name__)


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {token}")


def _finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {token}")
    return value


class HttpxWebhookClient(AbstractWebhookClient):
    """POSTs ``{"code": ...}`` to the webhook with a shared-secret header.

    A fresh ``httpx.AsyncClient`` is opened per lookup and closed on every
    path. The whole exchange (connect, send, read) is bounded by
    ``timeout_seconds`` through ``asyncio.wait_for``; httpx's own per-phase
    timeouts use the same value.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the webhook client.

        Args:
            url: Webhook endpoint URL.
            headers: Static headers sent with every request (shared secret).
            timeout_seconds: Deadline for the whole call in seconds.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self.url = url
        self.headers = dict(headers or {})
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _post(self, code: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        ) as client:
            return await client.post(self.url, json={"code": code}, headers=self.headers)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        # NaN, Infinity and overflowing floats cannot be echoed back as JSON
        try:
            return json.loads(
                response.content,
                parse_constant=_reject_constant,
                parse_float=_finite_float,
            )
        except (ValueError, RecursionError):
            return {}

    async def lookup(self, code: str) -> WebhookResponse:
        """Submit the code once and return status plus decoded body.

        Args:
            code: Validated referral code.

        Returns:
            WebhookResponse for any HTTP status the webhook answers with.

        Raises:
            UpstreamTimeoutAppError: If the deadline elapses.
            UpstreamNetworkAppError: On connection, protocol or URL errors.
        """
        try:
            response = await asyncio.wait_for(self._post(code), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamTimeoutAppError(
                code="upstream_timeout",
                message="Request timed out. Please try again.",
                details={
                    "timeout_ms": self.timeout_seconds * 1000,
                    "error_type": type(exc).__name__,
                },
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            raise UpstreamNetworkAppError(
                code="upstream_network_error",
                message="Network error. Please check your connection and try again.",
                details={"error_type": type(exc).__name__},
            ) from exc

        logger.debug(
            "webhook.response",
            extra={
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type"),
            },
        )
        return WebhookResponse(status_code=response.status_code, payload=self._decode(response))
