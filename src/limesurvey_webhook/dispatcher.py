"""
Webhook delivery.

One POST per event over a shared aiohttp ClientSession. Failures (connection
errors, timeouts, non-2xx replies) are captured in the DispatchResult and
never raised: delivery is best-effort and single-attempt.
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

import aiohttp
from aiohttp import ClientError

from core.errors.exceptions import DeliveryError
from core.security.url_validation import sanitize_url
from core.utils.json_serializers import json_serializer
from limesurvey_webhook.models import DispatchResult

if TYPE_CHECKING:
    from limesurvey_webhook.config import WebhookConfig

logger = logging.getLogger(__name__)


class AuthType(Enum):
    """Authentication header sent alongside the api_token body field."""

    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api_key"


def is_http_error(status_code: int) -> bool:
    """True if status code is outside the 2xx success range."""
    return status_code < 200 or status_code >= 300


class WebhookDispatcher:
    """Posts webhook payloads to a single target URL.

    Usage:
        dispatcher = WebhookDispatcher("https://hooks.example.com/survey")
        await dispatcher.start()
        result = await dispatcher.dispatch(payload)
        await dispatcher.close()

    or as an async context manager.
    """

    def __init__(
        self,
        target_url: str,
        timeout_seconds: float = 30,
        connect_timeout_seconds: float = 10,
        auth_type: AuthType = AuthType.NONE,
        auth_token: str | None = None,
        auth_header: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        if isinstance(auth_type, str):
            auth_type = AuthType(auth_type)

        if auth_header is None:
            if auth_type == AuthType.BEARER:
                auth_header = "Authorization"
            elif auth_type == AuthType.API_KEY:
                auth_header = "X-API-Key"

        self.target_url = target_url
        self.timeout_seconds = timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.auth_type = auth_type
        self.auth_header = auth_header
        self._auth_token = auth_token
        self._headers = headers or {}
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, config: "WebhookConfig") -> "WebhookDispatcher":
        return cls(
            target_url=config.target_url,
            timeout_seconds=config.timeout_seconds,
            connect_timeout_seconds=config.connect_timeout_seconds,
            auth_type=config.auth_type,
            auth_token=config.auth_token,
            auth_header=config.auth_header,
        )

    @property
    def is_started(self) -> bool:
        return self._session is not None

    async def start(self) -> None:
        """Open the HTTP session. Must be called before dispatch()."""
        if self._session is not None:
            logger.warning("WebhookDispatcher already started")
            return

        # ssl=True: peer certificate verification stays on
        connector = aiohttp.TCPConnector(ssl=True, enable_cleanup_closed=True)
        self._session = aiohttp.ClientSession(
            connector=connector,
            raise_for_status=False,  # Status codes are recorded, not raised
            timeout=aiohttp.ClientTimeout(
                total=self.timeout_seconds,
                sock_connect=self.connect_timeout_seconds,
            ),
        )
        logger.debug(
            "WebhookDispatcher started",
            extra={"target_url": sanitize_url(self.target_url)},
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is None:
            return
        await self._session.close()
        self._session = None
        logger.debug("WebhookDispatcher closed")

    async def __aenter__(self) -> "WebhookDispatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _build_request_headers(self) -> dict[str, str]:
        """Merge static headers and inject authentication."""
        request_headers = {**self._headers, "Content-Type": "application/json"}

        if self.auth_type == AuthType.BEARER and self._auth_token:
            request_headers[self.auth_header] = f"Bearer {self._auth_token}"
        elif self.auth_type == AuthType.API_KEY and self._auth_token:
            request_headers[self.auth_header] = self._auth_token

        return request_headers

    @staticmethod
    def serialize(payload: dict[str, Any]) -> str:
        return json.dumps(payload, default=json_serializer, ensure_ascii=False)

    async def dispatch(self, payload: dict[str, Any]) -> DispatchResult:
        """POST the payload once and report what happened.

        Raises:
            RuntimeError: If the dispatcher was not started
        """
        if self._session is None:
            raise RuntimeError("WebhookDispatcher not started. Call start() first.")

        body = self.serialize(payload)
        safe_url = sanitize_url(self.target_url)
        start_time = time.perf_counter()

        logger.debug(
            "Posting webhook",
            extra={
                "http_method": "POST",
                "target_url": safe_url,
                "content_length": len(body.encode("utf-8")),
            },
        )

        try:
            async with self._session.post(
                self.target_url,
                data=body.encode("utf-8"),
                headers=self._build_request_headers(),
            ) as response:
                # Bytes that are not valid in the reply charset become U+FFFD
                response_body = await response.text(errors="replace")
                status = response.status
        except (ClientError, asyncio.TimeoutError) as e:
            elapsed = time.perf_counter() - start_time
            error = DeliveryError(
                f"Webhook POST to {safe_url} failed",
                cause=e,
                context={"target_url": safe_url},
            )
            return DispatchResult(success=False, error=error, elapsed_seconds=elapsed)

        elapsed = time.perf_counter() - start_time

        if is_http_error(status):
            error = DeliveryError(
                f"Webhook endpoint returned HTTP {status}",
                status_code=status,
                context={"target_url": safe_url, "body": response_body[:200]},
            )
            return DispatchResult(
                success=False,
                status=status,
                body=response_body,
                error=error,
                elapsed_seconds=elapsed,
            )

        return DispatchResult(
            success=True,
            status=status,
            body=response_body,
            elapsed_seconds=elapsed,
        )
