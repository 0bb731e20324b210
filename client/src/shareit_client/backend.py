"""Firestore and Cloud Storage gateway for the client."""

import logging
from datetime import UTC, datetime
from typing import Any, Callable, TypeVar

from google.api_core.exceptions import NotFound  # type: ignore[import-untyped]
from google.cloud.firestore import (  # type: ignore[import-untyped]
    Client,
    Increment,
    Query,
    Transaction,
    transactional,
)
from google.cloud.firestore_v1 import FieldFilter  # type: ignore[import-untyped]
from google.cloud.firestore_v1.watch import Watch  # type: ignore[import-untyped]
from google.cloud.storage import Bucket  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from shareit_shared import (
    Comment,
    Friendship,
    FriendshipStatus,
    Photo,
    UserProfile,
    Widget,
)
from shareit_shared.firestore import document_to_model, fields_to_firestore, model_to_firestore
from shareit_shared.storage import public_url

from .errors import ConflictError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# end of the Unicode private use area, closes a prefix range query
PREFIX_END = "\uf8ff"


class FirestoreBackend:
    """Handles all Firestore and Storage operations for the client.

    Methods block; async callers run them through operations.in_thread.
    """

    def __init__(self, db: Client, bucket: Bucket):
        self._db = db
        self._bucket = bucket

    # -- users ---------------------------------------------------------------

    def get_profile(self, uid: str) -> UserProfile:
        doc = self._db.collection("users").document(uid).get()
        if not doc.exists:
            raise NotFoundError(f"User profile {uid} not found")
        return document_to_model(UserProfile, doc)

    def save_profile(self, profile: UserProfile) -> UserProfile:
        """Create or overwrite users/{uid}."""
        self._db.collection("users").document(profile.uid).set(model_to_firestore(profile))
        return profile

    def update_profile(self, uid: str, fields: dict[str, Any]) -> UserProfile:
        """Partially update a profile and return the stored result."""
        doc_ref = self._db.collection("users").document(uid)
        doc_ref.update({**fields_to_firestore(fields), "lastActive": datetime.now(UTC)})
        return self.get_profile(uid)

    def find_user_by_email(self, email: str) -> UserProfile | None:
        query = self._db.collection("users").where(filter=FieldFilter("email", "==", email)).limit(1)
        for doc in query.stream():
            return document_to_model(UserProfile, doc)
        return None

    def search_users(self, term: str, exclude_uid: str, limit: int = 10) -> list[UserProfile]:
        """Visible profiles whose email or display name starts with `term`."""
        users = self._db.collection("users")
        found: dict[str, UserProfile] = {}
        for field in ("email", "displayName"):
            query = (
                users.where(filter=FieldFilter(field, ">=", term))
                .where(filter=FieldFilter(field, "<=", term + PREFIX_END))
                .limit(limit)
            )
            for profile in self._parse_all(UserProfile, query.stream()):
                if profile.uid != exclude_uid and profile.preferences.privacy.profile_visible:
                    found.setdefault(profile.uid, profile)
        return list(found.values())

    # -- storage -------------------------------------------------------------

    def upload_object(self, path: str, data: bytes, content_type: str) -> str:
        """Upload bytes and return the object's URL."""
        blob = self._bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        logger.debug("Uploaded %d bytes to %s", len(data), path)
        return public_url(self._bucket.name, path)

    def delete_object(self, path: str) -> bool:
        """Delete an object. Returns False if it was already gone."""
        try:
            self._bucket.blob(path).delete()
        except NotFound:
            logger.debug("Object %s already deleted", path)
            return False
        return True

    # -- photos --------------------------------------------------------------

    def save_photo(self, photo: Photo) -> Photo:
        self._db.collection("photos").document(photo.id).set(
            model_to_firestore(photo, exclude={"id"})
        )
        return photo

    def get_photo(self, photo_id: str) -> Photo:
        doc = self._db.collection("photos").document(photo_id).get()
        if not doc.exists:
            raise NotFoundError("Photo not found")
        return document_to_model(Photo, doc)

    def list_visible_photos(self, uid: str, limit: int = 50) -> list[Photo]:
        """Photos owned by or shared with `uid`, newest first."""
        photos = self._db.collection("photos")
        queries = [
            photos.where(filter=FieldFilter("sharedWith", "array_contains", uid)),
            photos.where(filter=FieldFilter("userId", "==", uid)),
        ]
        found: dict[str, Photo] = {}
        for query in queries:
            ordered = query.order_by("createdAt", direction=Query.DESCENDING).limit(limit)
            for doc in ordered.stream():
                found[doc.id] = document_to_model(Photo, doc)
        newest_first = sorted(found.values(), key=lambda p: p.created_at, reverse=True)
        return newest_first[:limit]

    def add_like(self, photo_id: str, uid: str) -> list[str]:
        """Append `uid` to the stored likes unless present. Returns the stored likes."""
        photo_ref = self._db.collection("photos").document(photo_id)

        @transactional
        def like_in_transaction(transaction: Transaction) -> list[str]:
            snapshot = photo_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Photo not found")
            likes = list((snapshot.to_dict() or {}).get("likes") or [])
            if uid not in likes:
                likes.append(uid)
                transaction.update(photo_ref, {"likes": likes, "updatedAt": datetime.now(UTC)})
            return likes

        return like_in_transaction(self._db.transaction())

    def remove_like(self, photo_id: str, uid: str) -> list[str]:
        """Remove `uid` from the stored likes if present. Returns the stored likes."""
        photo_ref = self._db.collection("photos").document(photo_id)

        @transactional
        def unlike_in_transaction(transaction: Transaction) -> list[str]:
            snapshot = photo_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Photo not found")
            likes = list((snapshot.to_dict() or {}).get("likes") or [])
            if uid in likes:
                likes = [liker for liker in likes if liker != uid]
                transaction.update(photo_ref, {"likes": likes, "updatedAt": datetime.now(UTC)})
            return likes

        return unlike_in_transaction(self._db.transaction())

    def add_comment(self, photo_id: str, comment: Comment) -> Comment:
        """Append a comment to the stored list inside a transaction."""
        photo_ref = self._db.collection("photos").document(photo_id)

        @transactional
        def comment_in_transaction(transaction: Transaction) -> Comment:
            snapshot = photo_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Photo not found")
            comments = list((snapshot.to_dict() or {}).get("comments") or [])
            if not any(c.get("id") == comment.id for c in comments):
                comments.append(model_to_firestore(comment))
                transaction.update(
                    photo_ref, {"comments": comments, "updatedAt": datetime.now(UTC)}
                )
            return comment

        return comment_in_transaction(self._db.transaction())

    def delete_photo(self, photo_id: str) -> None:
        self._db.collection("photos").document(photo_id).delete()

    # -- widgets -------------------------------------------------------------

    def save_widget(self, widget: Widget) -> Widget:
        """Create a widget document; a blank id gets a server-assigned one."""
        widgets = self._db.collection("widgets")
        doc_ref = widgets.document(widget.id) if widget.id else widgets.document()
        doc_ref.set(model_to_firestore(widget, exclude={"id"}))
        return widget.model_copy(update={"id": doc_ref.id})

    def list_widgets(self, uid: str) -> list[Widget]:
        query = self._db.collection("widgets").where(filter=FieldFilter("userId", "==", uid))
        return [document_to_model(Widget, doc) for doc in query.stream()]

    def list_shared_widgets(self, uid: str) -> list[Widget]:
        query = self._db.collection("widgets").where(
            filter=FieldFilter("sharedWith", "array_contains", uid)
        )
        return [document_to_model(Widget, doc) for doc in query.stream()]

    def update_widget(self, widget_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Partially update a widget. Returns the applied fields plus id."""
        applied = {**fields, "updated_at": datetime.now(UTC)}
        self._db.collection("widgets").document(widget_id).update(fields_to_firestore(applied))
        return {"id": widget_id, **applied}

    def delete_widget(self, widget_id: str) -> None:
        self._db.collection("widgets").document(widget_id).delete()

    # -- friends -------------------------------------------------------------

    def list_friendships(self, uid: str) -> list[Friendship]:
        query = self._db.collection("friends").where(
            filter=FieldFilter("users", "array_contains", uid)
        )
        return [document_to_model(Friendship, doc) for doc in query.stream()]

    def create_friendship(self, requester_id: str, recipient_id: str) -> Friendship:
        """Create a pending request unless the pair already has a live one."""
        for existing in self.list_friendships(requester_id):
            if recipient_id in existing.users and existing.status in (
                FriendshipStatus.PENDING,
                FriendshipStatus.ACCEPTED,
            ):
                raise ConflictError("A friendship with this user already exists")

        now = datetime.now(UTC)
        doc_ref = self._db.collection("friends").document()
        friendship = Friendship(
            id=doc_ref.id,
            users=[requester_id, recipient_id],
            status=FriendshipStatus.PENDING,
            requested_by=requester_id,
            created_at=now,
            updated_at=now,
        )
        doc_ref.set(model_to_firestore(friendship, exclude={"id"}))
        return friendship

    def transition_friendship(
        self, friendship_id: str, actor_id: str, target: FriendshipStatus
    ) -> Friendship:
        """Move a friendship to `target`, refusing any non-monotonic change.

        Accepting bumps stats.friendsCount for both users in the same
        transaction; removing an accepted friendship lowers it again.
        """
        friendship_ref = self._db.collection("friends").document(friendship_id)
        users = self._db.collection("users")

        @transactional
        def transition_in_transaction(transaction: Transaction) -> Friendship:
            snapshot = friendship_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Friend request not found")
            friendship = document_to_model(Friendship, snapshot)

            if actor_id not in friendship.users:
                raise ForbiddenError("You are not part of this friendship")
            answering = target in (FriendshipStatus.ACCEPTED, FriendshipStatus.REJECTED)
            if answering and friendship.requested_by == actor_id:
                raise ForbiddenError("Only the recipient can answer a friend request")
            if not friendship.can_transition(target):
                raise ConflictError(f"Friend request was already {friendship.status}")

            now = datetime.now(UTC)
            updates: dict[str, Any] = {"status": target.value, "updatedAt": now}
            delta = 0
            if target == FriendshipStatus.ACCEPTED:
                updates["acceptedBy"] = actor_id
                updates["acceptedAt"] = now
                delta = 1
            elif friendship.status == FriendshipStatus.ACCEPTED:
                delta = -1

            transaction.update(friendship_ref, updates)
            if delta:
                for uid in friendship.users:
                    transaction.update(
                        users.document(uid),
                        {"stats.friendsCount": Increment(delta), "updatedAt": now},
                    )

            accepted_by = actor_id if target == FriendshipStatus.ACCEPTED else friendship.accepted_by
            return friendship.model_copy(
                update={"status": target, "accepted_by": accepted_by, "updated_at": now}
            )

        return transition_in_transaction(self._db.transaction())

    # -- realtime ------------------------------------------------------------

    def watch_owned_photos(self, uid: str, on_change: Callable[[list[Photo]], None]) -> Watch:
        query = (
            self._db.collection("photos")
            .where(filter=FieldFilter("userId", "==", uid))
            .order_by("createdAt", direction=Query.DESCENDING)
        )
        return self._watch(query, Photo, on_change)

    def watch_shared_photos(self, uid: str, on_change: Callable[[list[Photo]], None]) -> Watch:
        query = (
            self._db.collection("photos")
            .where(filter=FieldFilter("sharedWith", "array_contains", uid))
            .order_by("createdAt", direction=Query.DESCENDING)
        )
        return self._watch(query, Photo, on_change)

    def watch_widgets(self, uid: str, on_change: Callable[[list[Widget]], None]) -> Watch:
        query = self._db.collection("widgets").where(filter=FieldFilter("userId", "==", uid))
        return self._watch(query, Widget, on_change)

    def watch_shared_widgets(self, uid: str, on_change: Callable[[list[Widget]], None]) -> Watch:
        query = self._db.collection("widgets").where(
            filter=FieldFilter("sharedWith", "array_contains", uid)
        )
        return self._watch(query, Widget, on_change)

    def watch_friendships(
        self, uid: str, on_change: Callable[[list[Friendship]], None]
    ) -> Watch:
        query = self._db.collection("friends").where(
            filter=FieldFilter("users", "array_contains", uid)
        )
        return self._watch(query, Friendship, on_change)

    def _watch(self, query: Query, model_cls: type[M], on_change: Callable[[list[M]], None]) -> Watch:
        """Call `on_change` with the full result set on every snapshot.

        Firestore invokes the callback on its own thread.
        """

        def on_snapshot(docs, changes, read_time) -> None:
            try:
                on_change(self._parse_all(model_cls, docs))
            except Exception:
                logger.exception("Snapshot handler for %s failed", model_cls.__name__)

        return query.on_snapshot(on_snapshot)

    @staticmethod
    def _parse_all(model_cls: type[M], docs) -> list[M]:
        """Parse snapshots, skipping documents that don't fit the model."""
        parsed = []
        for doc in docs:
            try:
                parsed.append(document_to_model(model_cls, doc))
            except ValidationError:
                logger.warning("Skipping malformed %s document %s", model_cls.__name__, doc.id)
        return parsed
