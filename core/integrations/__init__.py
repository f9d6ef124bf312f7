"""
BookSwap Core Integrations: outbound delivery to external services.

- WebhookEmitter: Outbound event delivery with HMAC signing and retries
"""
from core.integrations.webhooks import (
    WebhookDelivery,
    WebhookEmitter,
    sign_payload,
)

__all__ = [
    "WebhookDelivery",
    "WebhookEmitter",
    "sign_payload",
]
