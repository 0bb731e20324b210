"""Transient in-app notifications with auto-dismiss timers."""

import asyncio
import logging
import time
from functools import partial
from typing import Callable, Protocol, Sequence

from .actions import Action, ActionType
from .state import (
    DEFAULT_NOTIFICATION_DURATION_MS,
    Notification,
    NotificationAction,
    NotificationType,
)
from .store import Store

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def schedule_on_running_loop(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Default scheduler: a one-shot timer on the running asyncio loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


class NotificationCenter:
    """Shows and hides notifications in the store's UI slice.

    Each notification with a non-zero duration owns exactly one timer, kept in
    an id -> handle map so an early hide() can cancel it.
    """

    def __init__(
        self,
        store: Store,
        schedule: Scheduler | None = None,
        default_duration_ms: int = DEFAULT_NOTIFICATION_DURATION_MS,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._schedule = schedule or schedule_on_running_loop
        self._default_duration_ms = default_duration_ms
        self._clock = clock
        self._timers: dict[int, TimerHandle] = {}
        self._last_id = 0

    @property
    def pending_timers(self) -> frozenset[int]:
        """Ids of notifications whose auto-dismiss has not fired yet."""
        return frozenset(self._timers)

    def show(
        self,
        title: str,
        message: str = "",
        type: NotificationType = NotificationType.INFO,
        duration_ms: int | None = None,
        actions: Sequence[NotificationAction] = (),
        progress: float | None = None,
    ) -> int:
        """Queue a notification and return its id."""
        if duration_ms is None:
            duration_ms = self._default_duration_ms
        notification = Notification(
            id=self._next_id(),
            type=type,
            title=title,
            message=message,
            actions=tuple(actions),
            progress=progress,
            duration_ms=max(0, duration_ms),
        )
        # the timer is armed first so a scheduler failure queues nothing
        if notification.duration_ms > 0:
            self._timers[notification.id] = self._schedule(
                notification.duration_ms / 1000, partial(self._expire, notification.id)
            )
        self._store.dispatch(Action(ActionType.SHOW_NOTIFICATION, notification))
        logger.debug("Showing %s notification %d: %s", type, notification.id, title)
        return notification.id

    def hide(self, notification_id: int) -> None:
        """Remove a notification. Safe to call any number of times."""
        handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
        self._store.dispatch(Action(ActionType.HIDE_NOTIFICATION, notification_id))

    def clear(self) -> None:
        """Hide everything and cancel all timers."""
        for notification in self._store.state.ui.notifications:
            self.hide(notification.id)
        for notification_id in list(self._timers):
            self.hide(notification_id)

    def success(self, title: str, message: str = "", **kwargs) -> int:
        return self.show(title, message, type=NotificationType.SUCCESS, **kwargs)

    def error(self, title: str, message: str = "", **kwargs) -> int:
        return self.show(title, message, type=NotificationType.ERROR, **kwargs)

    def warning(self, title: str, message: str = "", **kwargs) -> int:
        return self.show(title, message, type=NotificationType.WARNING, **kwargs)

    def info(self, title: str, message: str = "", **kwargs) -> int:
        return self.show(title, message, type=NotificationType.INFO, **kwargs)

    def _expire(self, notification_id: int) -> None:
        # After an early hide() the entry is gone and the dispatch is a no-op.
        self._timers.pop(notification_id, None)
        self._store.dispatch(Action(ActionType.HIDE_NOTIFICATION, notification_id))

    def _next_id(self) -> int:
        """Millisecond timestamp, bumped when two notifications share a tick."""
        now_ms = int(self._clock() * 1000)
        self._last_id = max(now_ms, self._last_id + 1)
        return self._last_id
