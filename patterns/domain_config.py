"""Dataclass-based domain configuration.

BookSwap's matching rules, message limits and notification delivery
settings live in frozen dataclasses with defaults that work out of the box.
Overrides come from BOOKSWAP_* environment variables via ``from_env()``.
"""

import os
from dataclasses import dataclass, field, replace


def _env_bool(name: str) -> bool | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchingConfig:
    """Reciprocal matching rules."""

    # Exclude sale-only listings (accepts_swap=False) from the offered set
    require_accepts_swap: bool = False
    # Run the match finder after every catalog write made through the API
    recompute_on_catalog_write: bool = True


@dataclass(frozen=True)
class MessagingConfig:
    """Conversation ledger limits."""

    max_length: int = 2000


@dataclass(frozen=True)
class NotificationConfig:
    """Outbound notification delivery."""

    webhook_url: str | None = None
    webhook_secret: str = ""
    max_retries: int = 3
    backoff_base: float = 1.0  # seconds
    timeout: float = 10.0  # seconds


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookSwapConfig:
    """Complete configuration for the BookSwap vertical.

    Usage::

        config = BookSwapConfig.from_env()
        if len(content) > config.messaging.max_length:
            reject(content)
    """

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)

    @classmethod
    def default(cls) -> "BookSwapConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "BOOKSWAP_") -> "BookSwapConfig":
        """Create config from environment variables.

        Example: BOOKSWAP_MESSAGE_MAX_LENGTH=500
        """
        matching = MatchingConfig()
        require_swap = _env_bool(f"{prefix}REQUIRE_ACCEPTS_SWAP")
        if require_swap is not None:
            matching = replace(matching, require_accepts_swap=require_swap)
        recompute = _env_bool(f"{prefix}RECOMPUTE_ON_CATALOG_WRITE")
        if recompute is not None:
            matching = replace(matching, recompute_on_catalog_write=recompute)

        messaging = MessagingConfig()
        max_length = os.getenv(f"{prefix}MESSAGE_MAX_LENGTH")
        if max_length:
            messaging = replace(messaging, max_length=int(max_length))

        notifications = NotificationConfig(
            webhook_url=os.getenv(f"{prefix}NOTIFY_WEBHOOK_URL") or None,
            webhook_secret=os.getenv(f"{prefix}NOTIFY_WEBHOOK_SECRET", ""),
        )
        retries = os.getenv(f"{prefix}NOTIFY_MAX_RETRIES")
        if retries:
            notifications = replace(notifications, max_retries=int(retries))

        return cls(matching=matching, messaging=messaging, notifications=notifications)
