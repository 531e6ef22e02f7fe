"""Pass-through relay that forwards JSON payloads to one fixed webhook."""
import json
import logging
from typing import Any, Optional

import httpx

from app.config import settings
from app.services.errors import RelayError

logger = logging.getLogger(__name__)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


class WebhookRelay:
    """
    Forwards payloads verbatim to a single configured endpoint.

    No validation, authentication or rate limiting is applied; callers are
    trusted. Passing an httpx transport makes the relay testable without
    network access.
    """

    def __init__(
        self,
        target_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.target_url = target_url or settings.webhook_url
        self.timeout = settings.webhook_timeout if timeout is None else timeout
        self.transport = transport

    @staticmethod
    def encode(payload: Any) -> bytes:
        """Compact JSON, the same bytes a browser's JSON.stringify produces."""
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    async def forward_raw(self, body: bytes) -> str:
        """
        Parse `body` as JSON and forward it.

        Raises:
            RelayError: If the body is not valid JSON or the request fails
        """
        try:
            payload = json.loads(body, parse_constant=_reject_constant)
        except (ValueError, UnicodeDecodeError) as e:
            raise RelayError(f"Invalid JSON body: {e}") from e
        return await self.forward(payload)

    async def forward(self, payload: Any) -> str:
        """
        POST the payload to the target and return its response text.

        An empty response body is reported as "ok".
        """
        content = self.encode(payload)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.target_url,
                    content=content,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("Webhook relay to %s failed: %s", self.target_url, e)
            raise RelayError(str(e) or e.__class__.__name__) from e

        logger.info(
            "Relayed %d bytes to webhook, status=%s", len(content), response.status_code
        )
        return response.text or "ok"


def get_webhook_relay() -> WebhookRelay:
    """FastAPI dependency returning the configured relay."""
    return WebhookRelay()
