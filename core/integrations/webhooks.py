"""
BookSwap Webhook Emitter: Outbound Event Delivery.

Posts events to a configured endpoint with:
- HMAC-SHA256 payload signing
- Retry with exponential backoff
- Delivery tracking and history
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import asyncio
import hashlib
import hmac
import json
import time
import uuid

import httpx


@dataclass
class WebhookDelivery:
    """Record of a webhook delivery attempt."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event: str = ""
    url: str = ""
    status_code: int = 0
    latency_ms: float = 0.0
    attempt: int = 1
    success: bool = False
    error: str | None = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "url": self.url,
            "status_code": self.status_code,
            "latency_ms": round(self.latency_ms, 1),
            "attempt": self.attempt,
            "success": self.success,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat(),
        }


def sign_payload(payload: str, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a payload."""
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class WebhookEmitter:
    """Emits events to one webhook endpoint."""

    HISTORY_LIMIT = 500

    def __init__(
        self,
        url: str,
        secret: str = "",
        max_retries: int = 3,
        backoff_base: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.secret = secret
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.timeout = timeout
        self._transport = transport
        self._deliveries: list[WebhookDelivery] = []

    async def emit(self, event: str, payload: dict[str, Any]) -> WebhookDelivery:
        """Deliver one event, retrying on transport errors and non-2xx replies."""
        body = json.dumps(payload, default=str, sort_keys=True)

        headers = {
            "Content-Type": "application/json",
            "X-BookSwap-Event": event,
            "X-BookSwap-Delivery": str(uuid.uuid4()),
        }
        if self.secret:
            headers["X-BookSwap-Signature"] = f"sha256={sign_payload(body, self.secret)}"

        last_error: str | None = None
        latency = 0.0

        for attempt in range(1, self.max_retries + 1):
            start = time.monotonic()
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    resp = await client.post(
                        self.url,
                        content=body,
                        headers=headers,
                        timeout=self.timeout,
                    )
                latency = (time.monotonic() - start) * 1000

                if 200 <= resp.status_code < 300:
                    return self._record(WebhookDelivery(
                        event=event,
                        url=self.url,
                        status_code=resp.status_code,
                        latency_ms=latency,
                        attempt=attempt,
                        success=True,
                    ))

                last_error = f"HTTP {resp.status_code}"
            except httpx.HTTPError as exc:
                latency = (time.monotonic() - start) * 1000
                last_error = str(exc) or type(exc).__name__

            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))

        return self._record(WebhookDelivery(
            event=event,
            url=self.url,
            status_code=0,
            latency_ms=latency,
            attempt=self.max_retries,
            success=False,
            error=last_error,
        ))

    def _record(self, delivery: WebhookDelivery) -> WebhookDelivery:
        self._deliveries.append(delivery)
        if len(self._deliveries) > self.HISTORY_LIMIT:
            self._deliveries = self._deliveries[-self.HISTORY_LIMIT:]
        return delivery

    def get_deliveries(self, event: str | None = None, limit: int = 50) -> list[WebhookDelivery]:
        """Query delivery history, newest first."""
        results = list(self._deliveries)
        if event:
            results = [d for d in results if d.event == event]
        return sorted(results, key=lambda d: d.delivered_at, reverse=True)[:limit]
