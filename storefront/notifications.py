"""
Transient user-facing notifications (toasts).

Every notification is logged and kept in a bounded recent-history window;
the UI layer subscribes to render them.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional

from storefront.utils.logger import get_logger

logger = get_logger("notifications")

INFO = "info"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[Notification], None]


class Notifier:
    """Fan-out point for toasts, with a sliding window of recent ones."""

    def __init__(self, history_size: int = 50):
        self.history: Deque[Notification] = deque(maxlen=history_size)
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, level: str, message: str) -> Notification:
        note = Notification(level=level, message=message)
        self.history.append(note)
        if level == ERROR:
            logger.warning("toast level=%s message=%s", level, message)
        else:
            logger.info("toast level=%s message=%s", level, message)
        for listener in list(self._listeners):
            listener(note)
        return note

    def info(self, message: str) -> Notification:
        return self.notify(INFO, message)

    def success(self, message: str) -> Notification:
        return self.notify(SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.notify(ERROR, message)

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def clear(self) -> None:
        self.history.clear()
