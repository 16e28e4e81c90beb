# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Single-attempt HTTP primitive for the Gemini generateContent endpoint. Owns an httpx.AsyncClient,
#          attaches the API key header, applies the request timeout and classifies each outcome as success,
#          retryable or fatal so the retry orchestrator can decide what to do next.
# SRP and DRY check: Pass. No retry loop and no payload parsing beyond the parseability check on 2xx bodies.
"""
Transport client for the Gemini REST API.

The client never retries on its own: every call to :meth:`TransportClient.send`
performs exactly one HTTP request. Tests substitute the network by passing an
``httpx.MockTransport``.
"""
import json
import logging
import math
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Dict, Optional, Union

import httpx
from pydantic import SecretStr

from imagecreator.generation.errors import TransportCategory, TransportError
from imagecreator.generation.models import as_credential

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
API_KEY_HEADER = "x-goog-api-key"
USER_AGENT = "imagecreator/0.1.0"

# 408 and 429 are client errors that clear up on their own.
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})
_REDACTED = "***"


@dataclass(frozen=True)
class RawResponse:
    """Successful HTTP exchange: status plus the raw body for the payload codec."""
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


def classify_status(status_code: int) -> Optional[TransportCategory]:
    """Return None for success, otherwise the failure category for ``status_code``."""
    if 200 <= status_code < 300:
        return None
    if status_code in RETRYABLE_CLIENT_STATUSES or status_code >= 500:
        return TransportCategory.RETRYABLE
    return TransportCategory.FATAL


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given either as seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()
    return max(0.0, seconds)


def _extract_api_error(response: httpx.Response) -> str:
    """Pull ``error.status`` / ``error.message`` out of a Google API error body when present."""
    try:
        payload = response.json()
    except (ValueError, UnicodeDecodeError):
        text = response.text.strip()
        return text[:500] if text else response.reason_phrase
    if isinstance(payload, dict):
        error_obj = payload.get("error")
        if isinstance(error_obj, dict):
            status = error_obj.get("status") or "unknown"
            message = error_obj.get("message") or response.reason_phrase
            return f"{status} - {message}"
    return response.reason_phrase


class TransportClient:
    """Sends one encoded generateContent request and classifies the result."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            timeout: Seconds allowed for connect plus response.
            transport: Optional httpx transport (``httpx.MockTransport`` in tests).
            http_client: Pre-built client; takes precedence over ``transport`` and is not closed by us.
        """
        if not math.isfinite(timeout) or timeout <= 0:
            timeout = DEFAULT_TIMEOUT_SECONDS
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(
        self,
        encoded_request: bytes,
        credential: Union[str, SecretStr],
        endpoint: str,
    ) -> RawResponse:
        """Perform exactly one POST to ``endpoint``.

        Raises:
            TransportError: ``fatal`` for 400/401/403/404/413 and other non-retryable 4xx,
                ``retryable`` for timeouts, connection failures, 408, 429, 5xx and unparseable 2xx bodies.
            ConfigurationError: The credential is empty or contains control characters.
        """
        secret = as_credential(credential).get_secret_value()
        headers = {
            "Content-Type": "application/json",
            API_KEY_HEADER: secret,
        }
        logger.debug(f"POST {endpoint} ({len(encoded_request)} bytes)")

        try:
            response = await self._client.post(endpoint, content=encoded_request, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(
                TransportCategory.RETRYABLE,
                self._scrub(f"Request timed out after {self.timeout:g}s ({type(exc).__name__})", secret),
            ) from None
        except httpx.LocalProtocolError as exc:
            # Malformed request on our side; never retried.
            raise TransportError(
                TransportCategory.FATAL,
                self._scrub(f"Request rejected by the HTTP client: {type(exc).__name__}", secret),
            ) from None
        except httpx.TransportError as exc:
            # ConnectError, ReadError, RemoteProtocolError, ... are all transient network faults.
            raise TransportError(
                TransportCategory.RETRYABLE,
                self._scrub(f"Network error: {type(exc).__name__}: {exc}", secret),
            ) from None

        category = classify_status(response.status_code)
        if category is not None:
            detail = self._scrub(_extract_api_error(response), secret)
            retry_after = None
            if category is TransportCategory.RETRYABLE:
                retry_after = parse_retry_after(response.headers.get("retry-after"))
            raise TransportError(
                category,
                f"Gemini API returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
                retry_after=retry_after,
            )

        body = response.content
        try:
            json.loads(body)
        except (UnicodeDecodeError, ValueError):
            raise TransportError(
                TransportCategory.RETRYABLE,
                f"Gemini API returned HTTP {response.status_code} with an unparseable body",
                status_code=response.status_code,
            ) from None

        return RawResponse(
            status_code=response.status_code,
            body=body,
            headers={key.lower(): value for key, value in response.headers.items()},
        )

    @staticmethod
    def _scrub(message: str, secret: str) -> str:
        if not secret:
            return message
        # Header errors echo the value as str, repr or bytes repr.
        forms = {secret, repr(secret)[1:-1], repr(secret.encode("utf-8", "backslashreplace"))[2:-1]}
        for form in sorted(forms, key=len, reverse=True):
            if form and form in message:
                message = message.replace(form, _REDACTED)
        return message
