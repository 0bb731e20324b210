"""Actions accepted by the application store."""

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Mapping


class ActionType(StrEnum):
    # auth
    SET_USER = "auth/setUser"
    CLEAR_USER = "auth/clearUser"
    SET_PROFILE = "auth/setProfile"
    UPDATE_PROFILE = "auth/updateProfile"
    SET_AUTH_ERROR = "auth/setError"
    CLEAR_AUTH_ERROR = "auth/clearError"

    # photos
    SET_PHOTOS = "photos/setPhotos"
    ADD_PHOTO = "photos/addPhoto"
    UPDATE_PHOTO = "photos/updatePhoto"
    DELETE_PHOTO = "photos/deletePhoto"
    LIKE_PHOTO = "photos/likePhoto"
    UNLIKE_PHOTO = "photos/unlikePhoto"
    ADD_COMMENT = "photos/addComment"
    SELECT_PHOTO = "photos/selectPhoto"

    # friends
    SET_FRIENDS = "friends/setFriends"
    ADD_FRIEND = "friends/addFriend"
    REMOVE_FRIEND = "friends/removeFriend"
    SET_FRIEND_REQUESTS = "friends/setRequests"
    ADD_FRIEND_REQUEST = "friends/addRequest"
    REMOVE_FRIEND_REQUEST = "friends/removeRequest"
    CLEAR_SEARCH_RESULTS = "friends/clearSearch"

    # widgets
    SET_WIDGETS = "widgets/setWidgets"
    SET_SHARED_WIDGETS = "widgets/setSharedWidgets"
    ADD_WIDGET = "widgets/addWidget"
    UPDATE_WIDGET = "widgets/updateWidget"
    DELETE_WIDGET = "widgets/deleteWidget"
    TOGGLE_WIDGET = "widgets/toggleWidget"
    REORDER_WIDGETS = "widgets/reorderWidgets"
    SELECT_WIDGET = "widgets/selectWidget"

    # ui
    SET_LOADING = "ui/setLoading"
    SET_NETWORK_STATUS = "ui/setNetworkStatus"
    SHOW_NOTIFICATION = "ui/showNotification"
    HIDE_NOTIFICATION = "ui/hideNotification"

    # async operation lifecycle, see OperationMeta
    ASYNC_PENDING = "async/pending"
    ASYNC_FULFILLED = "async/fulfilled"
    ASYNC_REJECTED = "async/rejected"


class Operation(StrEnum):
    """Backend operations that report their progress through the store."""

    SIGN_IN = "auth/signIn"
    SIGN_UP = "auth/signUp"
    SIGN_OUT = "auth/signOut"
    RESET_PASSWORD = "auth/resetPassword"
    FETCH_PROFILE = "auth/fetchProfile"
    UPDATE_PROFILE = "auth/updateProfile"

    UPLOAD_PHOTO = "photos/upload"
    FETCH_PHOTOS = "photos/fetch"
    LIKE_PHOTO = "photos/like"
    UNLIKE_PHOTO = "photos/unlike"
    ADD_COMMENT = "photos/comment"
    DELETE_PHOTO = "photos/delete"

    CREATE_WIDGET = "widgets/create"
    FETCH_USER_WIDGETS = "widgets/fetchOwned"
    FETCH_SHARED_WIDGETS = "widgets/fetchShared"
    UPDATE_WIDGET = "widgets/update"
    UPDATE_WIDGET_DATA = "widgets/updateData"
    SHARE_WIDGET = "widgets/share"
    SET_WIDGET_ACTIVE = "widgets/setActive"
    DELETE_WIDGET = "widgets/delete"

    FETCH_FRIENDS = "friends/fetch"
    SEARCH_USERS = "friends/search"
    SEND_FRIEND_REQUEST = "friends/sendRequest"
    ACCEPT_FRIEND_REQUEST = "friends/accept"
    REJECT_FRIEND_REQUEST = "friends/reject"
    REMOVE_FRIEND = "friends/remove"

    @property
    def slice(self) -> str:
        """Name of the state slice that owns this operation."""
        return self.value.split("/", 1)[0]


@dataclass(frozen=True)
class OperationMeta:
    operation: Operation
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    arg: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Action:
    type: ActionType
    payload: Any = None
    meta: OperationMeta | None = None


def pending(meta: OperationMeta) -> Action:
    return Action(ActionType.ASYNC_PENDING, None, meta)


def fulfilled(meta: OperationMeta, result: Any) -> Action:
    return Action(ActionType.ASYNC_FULFILLED, result, meta)


def rejected(meta: OperationMeta, reason: str) -> Action:
    return Action(ActionType.ASYNC_REJECTED, reason, meta)
