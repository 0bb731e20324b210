from .models import (
    Chat,
    ChatMessage,
    Comment,
    Friendship,
    FriendshipStatus,
    MessageType,
    NotificationToggles,
    Photo,
    Preferences,
    PrivacySettings,
    PushType,
    Theme,
    UserProfile,
    UserStats,
    Widget,
    WidgetType,
)

__all__ = [
    "Chat",
    "ChatMessage",
    "Comment",
    "Friendship",
    "FriendshipStatus",
    "MessageType",
    "NotificationToggles",
    "Photo",
    "Preferences",
    "PrivacySettings",
    "PushType",
    "Theme",
    "UserProfile",
    "UserStats",
    "Widget",
    "WidgetType",
]
