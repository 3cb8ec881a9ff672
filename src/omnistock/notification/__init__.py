"""Notification adapter registry: pluggable customer notification dispatch."""

import os

import structlog

logger = structlog.get_logger(__name__)

_dispatcher_instance = None


def get_dispatcher():
    """Return the configured notification dispatcher (singleton).

    Uses the fake dispatcher by default. Configure via the
    NOTIFICATION_ADAPTER environment variable.
    """
    global _dispatcher_instance
    if _dispatcher_instance is None:
        adapter = os.environ.get("NOTIFICATION_ADAPTER", "fake")
        if adapter == "fake":
            from omnistock.notification.fake_dispatcher import FakeNotificationDispatcher

            _dispatcher_instance = FakeNotificationDispatcher()
        else:
            raise ValueError(f"Unknown notification adapter: {adapter}")
    return _dispatcher_instance


def reset_dispatcher():
    """Reset the dispatcher singleton (useful for testing)."""
    global _dispatcher_instance
    _dispatcher_instance = None


def dispatch(effect) -> dict | None:
    """Send a NotifyCustomer effect without letting delivery problems escape.

    Notifications are fire-and-forget: a failed or raising adapter is logged
    and the caller carries on.
    """
    try:
        result = get_dispatcher().send(effect.channel, effect.recipient, effect.subject, effect.body)
    except Exception:
        logger.exception("notification_dispatch_error", channel=effect.channel, recipient=effect.recipient)
        return None

    if result.get("status") != "sent":
        logger.warning(
            "notification_dispatch_failed",
            channel=effect.channel,
            recipient=effect.recipient,
            error=result.get("error"),
        )
    return result
