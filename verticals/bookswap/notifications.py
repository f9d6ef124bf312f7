"""Notification boundary: ``notify(user_id, event_kind, match_id)``.

Delivery is best-effort. The dispatcher runs each notification as its own
asyncio task after the triggering transaction committed; a failing
notifier is logged and never reaches the caller.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Protocol

from core.integrations.webhooks import WebhookEmitter
from core.logging import get_logger
from patterns.domain_config import NotificationConfig

logger = get_logger(__name__)


class EventKind(str, Enum):
    MATCH_FOUND = "match_found"
    MATCH_ACCEPTED = "match_accepted"
    MATCH_DECLINED = "match_declined"
    MATCH_COMPLETED = "match_completed"
    MESSAGE_RECEIVED = "message_received"


class Notifier(Protocol):
    async def notify(self, user_id: str, event_kind: EventKind, match_id: str) -> None: ...


class NotificationFailed(Exception):
    pass


class LoggingNotifier:
    """Default notifier: writes the event to the application log."""

    async def notify(self, user_id: str, event_kind: EventKind, match_id: str) -> None:
        logger.info("notify user=%s event=%s match=%s", user_id, event_kind.value, match_id)


class WebhookNotifier:
    """Forwards events to the external notification service over HTTP."""

    def __init__(self, emitter: WebhookEmitter):
        self.emitter = emitter

    @classmethod
    def from_config(cls, config: NotificationConfig) -> "WebhookNotifier":
        if not config.webhook_url:
            raise ValueError("webhook_url is required for WebhookNotifier")
        return cls(WebhookEmitter(
            url=config.webhook_url,
            secret=config.webhook_secret,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base,
            timeout=config.timeout,
        ))

    async def notify(self, user_id: str, event_kind: EventKind, match_id: str) -> None:
        delivery = await self.emitter.emit(
            f"bookswap.{event_kind.value}",
            {"user_id": user_id, "event": event_kind.value, "match_id": match_id},
        )
        if not delivery.success:
            raise NotificationFailed(
                f"{event_kind.value} for user {user_id} not delivered: {delivery.error}"
            )


def build_notifier(config: NotificationConfig) -> Notifier:
    if config.webhook_url:
        return WebhookNotifier.from_config(config)
    return LoggingNotifier()


class NotificationDispatcher:
    """Fire-and-forget wrapper around a Notifier.

    ``fire()`` returns immediately; ``drain()`` waits for everything in
    flight (used on shutdown and in tests).
    """

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def fire(self, user_id: str, event_kind: EventKind, match_id: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self._deliver(user_id, event_kind, match_id)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, user_id: str, event_kind: EventKind, match_id: str) -> None:
        try:
            await self.notifier.notify(user_id, event_kind, match_id)
        except Exception as exc:
            logger.warning(
                "notification %s for user %s on match %s failed: %s",
                event_kind.value, user_id, match_id, exc,
            )

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
