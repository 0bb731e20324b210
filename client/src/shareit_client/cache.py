"""Local cache for offline start."""

import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from shareit_shared import Friendship, Photo, UserProfile, Widget

from .state import AppState

logger = logging.getLogger(__name__)


class CachedSnapshot(BaseModel):
    """Last known server data for one user."""

    uid: str
    profile: UserProfile | None = None
    photos: list[Photo] = Field(default_factory=list)
    user_widgets: list[Widget] = Field(default_factory=list)
    shared_widgets: list[Widget] = Field(default_factory=list)
    friendships: list[Friendship] = Field(default_factory=list)
    cached_at: datetime


class LocalCache:
    """Per-user JSON snapshots under one directory."""

    def __init__(self, cache_dir: Path):
        self._cache_dir = cache_dir
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    def _snapshot_path(self, uid: str) -> Path:
        return self._cache_dir / f"{uid}.json"

    def save_snapshot(self, state: AppState) -> None:
        """Cache the signed-in user's data. No-op when signed out."""
        user = state.auth.user
        if user is None:
            return
        snapshot = CachedSnapshot(
            uid=user.uid,
            profile=state.auth.profile,
            photos=list(state.photos.photos),
            user_widgets=list(state.widgets.user_widgets),
            shared_widgets=list(state.widgets.shared_widgets),
            friendships=[*state.friends.friends, *state.friends.requests],
            cached_at=datetime.now(),
        )
        self._snapshot_path(user.uid).write_text(snapshot.model_dump_json(indent=2))
        logger.debug(
            "Saved snapshot for %s (%d photos, %d widgets)",
            user.uid,
            len(snapshot.photos),
            len(snapshot.user_widgets),
        )

    def load_snapshot(self, uid: str) -> CachedSnapshot | None:
        """Load a cached snapshot. Returns None if no cache exists."""
        path = self._snapshot_path(uid)
        if not path.exists():
            return None
        try:
            snapshot = CachedSnapshot.model_validate_json(path.read_text())
        except Exception:
            logger.exception("Failed to load snapshot cache for %s", uid)
            return None
        if snapshot.uid != uid:
            logger.warning("Snapshot at %s belongs to another user, ignoring", path)
            return None
        return snapshot

    def clear_user(self, uid: str) -> None:
        """Remove everything cached for a user."""
        self._snapshot_path(uid).unlink(missing_ok=True)
        logger.debug("Cleared cache for %s", uid)
