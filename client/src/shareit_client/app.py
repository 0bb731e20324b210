"""Application facade wiring the store, notifications and gateways together."""

import asyncio
import logging

from shareit_shared import FriendshipStatus

from . import friends, photos, session, widgets
from .actions import Action, ActionType
from .auth import AuthClient
from .backend import FirestoreBackend
from .cache import LocalCache
from .notifications import NotificationCenter, Scheduler
from .operations import OperationResult
from .realtime import Post, RealtimeSync, post_to_loop
from .reducers import SignedIn
from .state import DEFAULT_NOTIFICATION_DURATION_MS, NetworkStatus
from .store import Store

logger = logging.getLogger(__name__)

OFFLINE_TITLE = "You're offline"
OFFLINE_MESSAGE = "Changes will sync when your connection returns."


class ShareItApp:
    """One signed-in (or signed-out) client session."""

    def __init__(
        self,
        backend: FirestoreBackend,
        auth: AuthClient,
        bucket_name: str,
        cache: LocalCache | None = None,
        store: Store | None = None,
        schedule: Scheduler | None = None,
        notification_duration_ms: int = DEFAULT_NOTIFICATION_DURATION_MS,
    ):
        self.store = store or Store()
        self.notifications = NotificationCenter(
            self.store, schedule=schedule, default_duration_ms=notification_duration_ms
        )
        self.backend = backend
        self.auth = auth
        self.bucket_name = bucket_name
        self.cache = cache
        self.realtime: RealtimeSync | None = None
        self._offline_banner: int | None = None

    @property
    def uid(self) -> str | None:
        user = self.store.state.auth.user
        return user.uid if user is not None else None

    async def sign_in(self, email: str, password: str) -> OperationResult[SignedIn]:
        result = await session.sign_in(self.store, self.auth, self.backend, email, password)
        if not result.ok:
            self.notifications.error("Sign in failed", result.error or "")
        return result

    async def sign_up(
        self, email: str, password: str, display_name: str
    ) -> OperationResult[SignedIn]:
        result = await session.sign_up(
            self.store, self.auth, self.backend, email, password, display_name
        )
        if result.ok:
            self.notifications.success("Welcome to ShareIt", display_name)
        else:
            self.notifications.error("Sign up failed", result.error or "")
        return result

    async def sign_out(self) -> OperationResult[None]:
        self.stop_realtime()
        self.notifications.clear()
        self._offline_banner = None
        return await session.sign_out(self.store, self.cache)

    async def refresh(self) -> bool:
        """Reload photos, widgets and friends for the signed-in user.

        Returns True when every fetch succeeded; the snapshot is cached then.
        """
        uid = self.uid
        if uid is None:
            return False
        results = await asyncio.gather(
            photos.fetch_photos(self.store, self.backend, uid),
            widgets.fetch_user_widgets(self.store, self.backend, uid),
            widgets.fetch_shared_widgets(self.store, self.backend, uid),
            friends.fetch_friends(self.store, self.backend, uid),
        )
        failed = [r for r in results if not r.ok]
        if failed:
            logger.warning("%d of %d fetches failed for %s", len(failed), len(results), uid)
            return False
        if self.cache is not None and self.uid == uid:
            await asyncio.to_thread(self.cache.save_snapshot, self.store.state)
        return True

    def start_realtime(self, post: Post | None = None) -> bool:
        """Follow live changes for the signed-in user.

        Without `post`, snapshots are applied on the running event loop.
        """
        uid = self.uid
        if uid is None:
            return False
        self.stop_realtime()
        if post is None:
            post = post_to_loop(asyncio.get_running_loop())
        self.realtime = RealtimeSync(self.store, self.backend, post)
        self.realtime.start(uid)
        return True

    def stop_realtime(self) -> None:
        if self.realtime is not None:
            self.realtime.stop()
            self.realtime = None

    def load_cached(self, uid: str) -> bool:
        """Fill the store from the last snapshot of this user, if there is one."""
        if self.cache is None or self.uid != uid:
            return False
        snapshot = self.cache.load_snapshot(uid)
        if snapshot is None:
            return False
        if snapshot.profile is not None:
            self.store.dispatch(Action(ActionType.SET_PROFILE, snapshot.profile))
        self.store.dispatch(Action(ActionType.SET_PHOTOS, snapshot.photos))
        self.store.dispatch(Action(ActionType.SET_WIDGETS, snapshot.user_widgets))
        self.store.dispatch(Action(ActionType.SET_SHARED_WIDGETS, snapshot.shared_widgets))
        accepted = [f for f in snapshot.friendships if f.status == FriendshipStatus.ACCEPTED]
        pending = [f for f in snapshot.friendships if f.status == FriendshipStatus.PENDING]
        self.store.dispatch(Action(ActionType.SET_FRIENDS, accepted))
        self.store.dispatch(Action(ActionType.SET_FRIEND_REQUESTS, pending))
        logger.info("Loaded cached snapshot for %s from %s", uid, snapshot.cached_at)
        return True

    def set_online(self, online: bool) -> None:
        """Record connectivity; while offline a warning banner stays up."""
        status = NetworkStatus.ONLINE if online else NetworkStatus.OFFLINE
        if self.store.state.ui.network_status == status:
            return
        self.store.dispatch(Action(ActionType.SET_NETWORK_STATUS, status))
        if online:
            if self._offline_banner is not None:
                self.notifications.hide(self._offline_banner)
                self._offline_banner = None
            logger.info("Back online")
        else:
            self._offline_banner = self.notifications.warning(
                OFFLINE_TITLE, OFFLINE_MESSAGE, duration_ms=0
            )
            logger.info("Connection lost")
