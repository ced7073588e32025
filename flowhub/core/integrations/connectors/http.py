"""HTTP request action."""

import logging
from typing import Any

import httpx

from flowhub.core.errors import (
    IntegrationError,
    RateLimitException,
    TemporaryException,
    ValidationException,
)
from flowhub.core.integrations.contracts import Action

logger = logging.getLogger(__name__)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class HttpRequestAction(Action):
    """Send an HTTP request and return the response.

    Node input keys: url, method (GET), headers, params, body (JSON), timeout.
    Throttling (429) and server errors are reported as retryable failures;
    other 4xx responses fail the node.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    async def execute(
        self,
        credentials: dict[str, Any],
        config: dict[str, Any],
        resolved_input: dict[str, Any],
    ) -> dict[str, Any]:
        url = resolved_input.get("url")
        if not url:
            raise ValidationException("HTTP request requires a 'url'")

        method = str(resolved_input.get("method", "GET")).upper()
        headers = dict(resolved_input.get("headers") or {})
        if credentials.get("token"):
            headers.setdefault("Authorization", f"Bearer {credentials['token']}")

        try:
            async with httpx.AsyncClient(
                timeout=float(resolved_input.get("timeout", 30.0)), transport=self.transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=resolved_input.get("params"),
                    json=resolved_input.get("body"),
                )
        except httpx.TimeoutException as e:
            raise TemporaryException(f"HTTP request to {url} timed out", {"url": url}) from e
        except httpx.TransportError as e:
            raise TemporaryException(f"HTTP request to {url} failed: {e}", {"url": url}) from e

        if response.status_code == 429:
            raise RateLimitException(
                f"Rate limited by {url}",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                details={"status": 429},
            )
        if response.status_code >= 500:
            raise TemporaryException(
                f"HTTP {response.status_code} from {url}",
                {"status": response.status_code, "body": response.text[:500]},
            )
        if response.status_code >= 400:
            raise IntegrationError(
                f"HTTP {response.status_code} from {url}",
                {"status": response.status_code, "body": response.text[:500]},
            )

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        return {
            "status": response.status_code,
            "headers": dict(response.headers),
            "body": body,
        }
