"""Firestore data models for ShareIt.

These models define the schema for all Firestore collections.
The mobile client, this Python client and the cloud functions all read and
write documents in this shape.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator


class WidgetType(StrEnum):
    CLOCK = "clock"
    WEATHER = "weather"
    PHOTOS = "photos"
    NOTES = "notes"
    CALENDAR = "calendar"
    BATTERY = "battery"
    REMINDERS = "reminders"
    STATUS = "status"


class FriendshipStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REMOVED = "removed"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    WIDGET = "widget"


class PushType(StrEnum):
    WIDGET_SHARE = "widget_share"
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    CHAT_MESSAGE = "chat_message"


class Theme(StrEnum):
    LIGHT = "light"
    DARK = "dark"


# Allowed status changes. Anything else is refused.
_FRIENDSHIP_TRANSITIONS: dict[FriendshipStatus, frozenset[FriendshipStatus]] = {
    FriendshipStatus.PENDING: frozenset(
        {FriendshipStatus.ACCEPTED, FriendshipStatus.REJECTED, FriendshipStatus.REMOVED}
    ),
    FriendshipStatus.ACCEPTED: frozenset({FriendshipStatus.REMOVED}),
    FriendshipStatus.REJECTED: frozenset(),
    FriendshipStatus.REMOVED: frozenset(),
}


class NotificationToggles(BaseModel):
    """Per-category push notification switches."""

    new_friend_request: bool = True
    photo_shared: bool = True
    widget_update: bool = True
    friend_activity: bool = True
    chat_messages: bool = True

    def allows(self, push_type: PushType) -> bool:
        """Whether a push of the given type may be delivered."""
        if push_type == PushType.WIDGET_SHARE:
            return self.widget_update
        elif push_type in (PushType.FRIEND_REQUEST, PushType.FRIEND_ACCEPTED):
            return self.new_friend_request
        elif push_type == PushType.CHAT_MESSAGE:
            return self.chat_messages
        return False


class PrivacySettings(BaseModel):
    profile_visible: bool = True
    allow_friend_requests: bool = True
    show_last_active: bool = True


class Preferences(BaseModel):
    notifications: NotificationToggles = Field(default_factory=NotificationToggles)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    theme: Theme = Theme.LIGHT


class UserStats(BaseModel):
    photos_shared: Annotated[int, Field(ge=0)] = 0
    friends_count: Annotated[int, Field(ge=0)] = 0


class UserProfile(BaseModel):
    """Firestore: users/{uid}"""

    uid: str
    email: str
    display_name: str = ""
    photo_url: str = ""
    bio: str = ""
    location: str = ""
    joined_at: datetime | None = None
    last_active: datetime | None = None
    preferences: Preferences = Field(default_factory=Preferences)
    fcm_token: str | None = None
    is_online: bool | None = None
    stats: UserStats = Field(default_factory=UserStats)


class Comment(BaseModel):
    id: str
    user_id: str
    text: str
    created_at: datetime


class Photo(BaseModel):
    """Firestore: photos/{photoId}"""

    id: str
    user_id: str
    file_name: str = ""
    url: str
    thumbnail: str | None = None
    caption: str = ""
    shared_with: list[str] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None
    size: int | None = None
    content_type: str | None = None

    @field_validator("likes")
    @classmethod
    def _unique_likes(cls, likes: list[str]) -> list[str]:
        return list(dict.fromkeys(likes))

    def is_visible_to(self, uid: str) -> bool:
        return uid == self.user_id or uid in self.shared_with


class Widget(BaseModel):
    """Firestore: widgets/{widgetId}"""

    id: str
    user_id: str
    type: WidgetType
    config: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] | None = None
    shared_with: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime | None = None


class Friendship(BaseModel):
    """Firestore: friends/{friendshipId}

    `users` always holds exactly the two members of the pair.
    """

    id: str
    users: Annotated[list[str], Field(min_length=2, max_length=2)]
    status: FriendshipStatus = FriendshipStatus.PENDING
    requested_by: str
    accepted_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def counterparty(self, uid: str) -> str | None:
        """The member of the pair that is not `uid`."""
        others = [member for member in self.users if member != uid]
        return others[0] if len(others) == 1 else None

    def can_transition(self, target: FriendshipStatus) -> bool:
        return target in _FRIENDSHIP_TRANSITIONS[self.status]


class Chat(BaseModel):
    """Firestore: chats/{chatId}"""

    id: str
    participants: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """Firestore: chats/{chatId}/messages/{messageId}"""

    sender_id: str
    text: str = ""
    type: MessageType = MessageType.TEXT
    created_at: datetime | None = None
