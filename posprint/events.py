"""Operator notifications for print outcomes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from posprint.log import get_logger

logger = get_logger(__name__)

SEVERITIES = ("information", "warning", "error")


@dataclass(frozen=True)
class Notification:
    message: str
    severity: str = "information"
    printer_id: str | None = None
    order_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.severity not in SEVERITIES:
            raise ValueError(f"severity must be one of {SEVERITIES}, got {self.severity!r}")


Subscriber = Callable[[Notification], None]


class NotificationBus:
    """
    Publish/subscribe channel for operator notifications.

    Construct one per process or session and pass it to whatever publishes or
    listens. close() drops every subscriber; later subscribe() calls raise and
    later publish() calls are dropped.
    Publishing is safe from worker threads.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register subscriber and return a function that unregisters it."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Notification bus is closed")
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, notification: Notification) -> int:
        """Deliver to current subscribers; returns how many received it."""
        with self._lock:
            closed = self._closed
            subscribers = list(self._subscribers)
        if closed:
            logger.debug("Notification dropped, bus is closed", message=notification.message)
            return 0

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(notification)
            except Exception:
                # One broken listener must not hide the notification from the others.
                logger.error("Notification subscriber failed", exc_info=True, message=notification.message)
                continue
            delivered += 1
        return delivered

    def close(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._closed = True
