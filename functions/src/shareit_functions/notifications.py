"""Push notification fan-out for document changes.

Handlers receive raw Firestore document data (camelCase) and return the uids
that were sent a push. They never raise: failures are logged per recipient
and per handler so one bad token can't block the rest.
"""

import logging
from typing import Any, Iterable

from google.cloud.firestore import Client  # type: ignore[import-untyped]
from pydantic import ValidationError

from shareit_shared import (
    Chat,
    ChatMessage,
    Friendship,
    FriendshipStatus,
    MessageType,
    PushType,
    UserProfile,
)
from shareit_shared.firestore import document_to_model, firestore_to_dict

from .messaging import PushMessage, PushSender

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "Someone"


class Directory:
    """Read-only lookups the handlers need."""

    def __init__(self, db: Client):
        self._db = db

    def get_profile(self, uid: str) -> UserProfile | None:
        doc = self._db.collection("users").document(uid).get()
        if not doc.exists:
            return None
        data = firestore_to_dict(doc.to_dict() or {})
        data.setdefault("uid", doc.id)
        data.setdefault("email", "")
        return UserProfile.model_validate(data)

    def get_chat_participants(self, chat_id: str) -> list[str]:
        doc = self._db.collection("chats").document(chat_id).get()
        if not doc.exists:
            return []
        return document_to_model(Chat, doc).participants


# ---------------------------------------------------------------------------
# pure helpers


def added_recipients(before: Iterable[str], after: Iterable[str]) -> list[str]:
    """Ids present in `after` but not in `before`, in `after` order."""
    previous = set(before)
    return [uid for uid in dict.fromkeys(after) if uid not in previous]


def friend_request_recipient(friendship: Friendship) -> str | None:
    """The member of a pending request who did not send it."""
    if friendship.status != FriendshipStatus.PENDING:
        return None
    return friendship.counterparty(friendship.requested_by)


def is_acceptance(before: Friendship, after: Friendship) -> bool:
    return before.status == FriendshipStatus.PENDING and after.status == FriendshipStatus.ACCEPTED


def summarize_message(message: ChatMessage) -> str:
    if message.type == MessageType.IMAGE:
        return "📷 Sent a photo"
    elif message.type == MessageType.WIDGET:
        return "🔧 Shared a widget"
    return message.text


def _friendship(friendship_id: str, data: dict[str, Any]) -> Friendship:
    return Friendship.model_validate({**firestore_to_dict(data), "id": friendship_id})


def _display_name(directory: Directory, uid: str | None) -> str:
    if uid is None:
        return UNKNOWN_SENDER
    profile = directory.get_profile(uid)
    if profile is None or not profile.display_name:
        return UNKNOWN_SENDER
    return profile.display_name


def _push_token(profile: UserProfile | None, push_type: PushType) -> str | None:
    """The device token to use, or None if this user should not get the push."""
    if profile is None or not profile.fcm_token:
        return None
    if not profile.preferences.notifications.allows(push_type):
        return None
    return profile.fcm_token


def _deliver(
    directory: Directory,
    sender: PushSender,
    recipients: Iterable[str],
    push_type: PushType,
    title: str,
    body: str,
    data: dict[str, str],
    offline_only: bool = False,
) -> list[str]:
    notified = []
    for uid in recipients:
        try:
            profile = directory.get_profile(uid)
            token = _push_token(profile, push_type)
            if token is None:
                logger.debug("Skipping %s push to %s: not eligible", push_type, uid)
                continue
            # a missing presence flag counts as offline
            if offline_only and profile is not None and profile.is_online is True:
                logger.debug("Skipping %s push to %s: online", push_type, uid)
                continue
            sender.send(
                PushMessage(
                    token=token,
                    title=title,
                    body=body,
                    data={"type": push_type.value, **data},
                )
            )
            notified.append(uid)
        except Exception:
            logger.exception("Failed to send %s push to %s", push_type, uid)
    return notified


# ---------------------------------------------------------------------------
# handlers


def handle_widget_shared(
    widget_id: str,
    before: dict[str, Any],
    after: dict[str, Any],
    directory: Directory,
    sender: PushSender,
) -> list[str]:
    """widgets/{widgetId} updated: notify ids newly added to sharedWith."""
    try:
        owner_id = after.get("userId")
        added = added_recipients(before.get("sharedWith") or [], after.get("sharedWith") or [])
        recipients = [uid for uid in added if uid != owner_id]
        if not recipients:
            return []
        owner_name = _display_name(directory, owner_id)
        widget_type = str(after.get("type", ""))
        notified = _deliver(
            directory,
            sender,
            recipients,
            PushType.WIDGET_SHARE,
            title="Widget shared",
            body=f"{owner_name} shared a {widget_type} widget with you",
            data={"widgetId": widget_id, "senderId": str(owner_id), "widgetType": widget_type},
        )
        logger.info("Widget %s shared: notified %d of %d", widget_id, len(notified), len(recipients))
        return notified
    except Exception:
        logger.exception("Error handling share of widget %s", widget_id)
        return []


def handle_friend_request_created(
    friendship_id: str,
    data: dict[str, Any],
    directory: Directory,
    sender: PushSender,
) -> list[str]:
    """friends/{friendshipId} created: notify the recipient of a pending request."""
    try:
        friendship = _friendship(friendship_id, data)
        recipient = friend_request_recipient(friendship)
        if recipient is None:
            return []
        requester_name = _display_name(directory, friendship.requested_by)
        notified = _deliver(
            directory,
            sender,
            [recipient],
            PushType.FRIEND_REQUEST,
            title="Friend request",
            body=f"{requester_name} sent you a friend request",
            data={"friendshipId": friendship_id, "requesterId": friendship.requested_by},
        )
        logger.info("Friend request %s: notified %s", friendship_id, notified)
        return notified
    except ValidationError:
        logger.warning("Ignoring malformed friendship %s", friendship_id)
        return []
    except Exception:
        logger.exception("Error handling friend request %s", friendship_id)
        return []


def handle_friend_request_accepted(
    friendship_id: str,
    before: dict[str, Any],
    after: dict[str, Any],
    directory: Directory,
    sender: PushSender,
) -> list[str]:
    """friends/{friendshipId} updated: on pending -> accepted notify the requester."""
    try:
        previous = _friendship(friendship_id, before)
        current = _friendship(friendship_id, after)
        if not is_acceptance(previous, current):
            return []
        friend_id = current.accepted_by or current.counterparty(current.requested_by)
        friend_name = _display_name(directory, friend_id)
        notified = _deliver(
            directory,
            sender,
            [current.requested_by],
            PushType.FRIEND_ACCEPTED,
            title="Friend request accepted",
            body=f"{friend_name} accepted your friend request",
            data={"friendshipId": friendship_id, "friendId": str(friend_id)},
        )
        logger.info("Friend request %s accepted: notified %s", friendship_id, notified)
        return notified
    except ValidationError:
        logger.warning("Ignoring malformed friendship %s", friendship_id)
        return []
    except Exception:
        logger.exception("Error handling acceptance of %s", friendship_id)
        return []


def handle_chat_message_created(
    chat_id: str,
    message_id: str,
    data: dict[str, Any],
    directory: Directory,
    sender: PushSender,
) -> list[str]:
    """chats/{chatId}/messages/{messageId} created: notify offline participants."""
    try:
        message = ChatMessage.model_validate(firestore_to_dict(data))
        recipients = [
            uid for uid in directory.get_chat_participants(chat_id) if uid != message.sender_id
        ]
        if not recipients:
            return []
        notified = _deliver(
            directory,
            sender,
            recipients,
            PushType.CHAT_MESSAGE,
            title=_display_name(directory, message.sender_id),
            body=summarize_message(message),
            data={
                "chatId": chat_id,
                "senderId": message.sender_id,
                "messageType": message.type.value,
            },
            offline_only=True,
        )
        logger.info("Chat %s message %s: notified %d", chat_id, message_id, len(notified))
        return notified
    except ValidationError:
        logger.warning("Ignoring malformed message %s in chat %s", message_id, chat_id)
        return []
    except Exception:
        logger.exception("Error handling message %s in chat %s", message_id, chat_id)
        return []
