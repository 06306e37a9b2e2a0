"""Desktop notifications for review activity."""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

TITLE_LIMIT = 128
SUBTITLE_LIMIT = 256
MESSAGE_LIMIT = 512


class NotificationError(Exception):
    """Raised when a notification could not be displayed."""


@dataclass
class Notification:
    """A single event to show to the user."""

    title: str
    subtitle: str
    message: str
    link: str | None = None


class Notifier(Protocol):
    """Sink for notifications."""

    def notify(self, notification: Notification) -> None: ...


def truncate(text: str, limit: int) -> str:
    """Trim whitespace and cut text to limit characters, marking the cut with an ellipsis.

    Args:
        text: Text to shorten.
        limit: Maximum number of characters kept. Non-positive disables truncation.

    Returns:
        The shortened text.
    """
    text = text.strip()
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit].rstrip() + "…"


class DesktopNotifier:
    """Shows notifications through terminal-notifier (macOS) via pync."""

    def notify(self, notification: Notification) -> None:
        """Send a desktop notification.

        Args:
            notification: The notification to display.

        Raises:
            NotificationError: If pync is unavailable or fails.
        """
        kwargs = {"title": truncate(notification.title, TITLE_LIMIT)}
        subtitle = truncate(notification.subtitle, SUBTITLE_LIMIT)
        if subtitle:
            kwargs["subtitle"] = subtitle
        if notification.link:
            kwargs["open"] = notification.link

        try:
            # pync locates terminal-notifier at import time; keep that out of module import.
            import pync

            pync.notify(truncate(notification.message, MESSAGE_LIMIT), **kwargs)
        except Exception as e:
            raise NotificationError(f"desktop notification failed: {e}") from e


class LogNotifier:
    """Writes notifications to the log instead of displaying them."""

    def notify(self, notification: Notification) -> None:
        logger.info(
            "%s | %s | %s%s",
            notification.title,
            notification.subtitle,
            notification.message,
            f" ({notification.link})" if notification.link else "",
        )
