"""Live Firestore listeners that keep the store's lists current.

Snapshot callbacks arrive on Firestore's listener threads. They are handed to
`post` so every dispatch still happens on the thread that owns the store.
"""

import asyncio
import logging
from functools import partial
from typing import Callable, Protocol

from shareit_shared import Friendship, FriendshipStatus, Photo, Widget

from .actions import Action, ActionType
from .backend import FirestoreBackend
from .store import Store

logger = logging.getLogger(__name__)

Post = Callable[[Callable[[], None]], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


def post_to_loop(loop: asyncio.AbstractEventLoop) -> Post:
    """A Post that runs callbacks on `loop`."""
    return loop.call_soon_threadsafe


def _run_now(callback: Callable[[], None]) -> None:
    callback()


class RealtimeSync:
    """Mirrors photos, widgets and friendships of one user into the store."""

    def __init__(self, store: Store, backend: FirestoreBackend, post: Post | None = None):
        self._store = store
        self._backend = backend
        self._post = post or _run_now
        self._uid: str | None = None
        self._generation = 0
        self._subscriptions: list[Subscription] = []
        self._owned_photos: list[Photo] | None = None
        self._shared_photos: list[Photo] | None = None

    @property
    def active(self) -> bool:
        return self._uid is not None

    def start(self, uid: str) -> None:
        """Start listening for `uid`, replacing any earlier listeners."""
        self.stop()
        self._uid = uid
        self._generation += 1
        generation = self._generation

        def listener(handler: Callable[[list], None]) -> Callable[[list], None]:
            return partial(self._receive, generation, handler)

        backend = self._backend
        self._subscriptions = [
            backend.watch_owned_photos(uid, listener(self._on_owned_photos)),
            backend.watch_shared_photos(uid, listener(self._on_shared_photos)),
            backend.watch_widgets(uid, listener(self._on_widgets)),
            backend.watch_shared_widgets(uid, listener(self._on_shared_widgets)),
            backend.watch_friendships(uid, listener(self._on_friendships)),
        ]
        logger.info("Listening for changes for %s", uid)

    def stop(self) -> None:
        """Unsubscribe everything. Snapshots still in transit are dropped."""
        if self._uid is None:
            return
        for subscription in self._subscriptions:
            try:
                subscription.unsubscribe()
            except Exception:
                logger.exception("Failed to close a snapshot listener")
        logger.info("Stopped listening for %s", self._uid)
        self._subscriptions = []
        self._uid = None
        self._generation += 1
        self._owned_photos = None
        self._shared_photos = None

    def _receive(self, generation: int, handler: Callable[[list], None], items: list) -> None:
        self._post(partial(self._apply, generation, handler, items))

    def _apply(self, generation: int, handler: Callable[[list], None], items: list) -> None:
        if generation != self._generation:
            return
        user = self._store.state.auth.user
        if user is None or user.uid != self._uid:
            logger.debug("Dropping snapshot for a user that is no longer signed in")
            return
        handler(items)

    def _on_owned_photos(self, photos: list[Photo]) -> None:
        self._owned_photos = photos
        self._publish_photos()

    def _on_shared_photos(self, photos: list[Photo]) -> None:
        self._shared_photos = photos
        self._publish_photos()

    def _publish_photos(self) -> None:
        merged = {p.id: p for p in (self._owned_photos or []) + (self._shared_photos or [])}
        newest_first = sorted(merged.values(), key=lambda p: p.created_at, reverse=True)
        self._store.dispatch(Action(ActionType.SET_PHOTOS, newest_first))

    def _on_widgets(self, widgets: list[Widget]) -> None:
        self._store.dispatch(Action(ActionType.SET_WIDGETS, widgets))

    def _on_shared_widgets(self, widgets: list[Widget]) -> None:
        self._store.dispatch(Action(ActionType.SET_SHARED_WIDGETS, widgets))

    def _on_friendships(self, friendships: list[Friendship]) -> None:
        accepted = [f for f in friendships if f.status == FriendshipStatus.ACCEPTED]
        pending = [f for f in friendships if f.status == FriendshipStatus.PENDING]
        self._store.dispatch(Action(ActionType.SET_FRIENDS, accepted))
        self._store.dispatch(Action(ActionType.SET_FRIEND_REQUESTS, pending))
