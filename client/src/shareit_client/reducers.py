"""Reducers for the application store.

Each reducer is a pure function (state, action) -> state. Unknown actions
return the state unchanged and malformed payloads leave the affected record
alone, so a bad dispatch can never corrupt unrelated state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from shareit_shared import Comment, Friendship, FriendshipStatus, Photo, UserProfile, Widget

from .actions import Action, ActionType, Operation, OperationMeta
from .state import (
    AppState,
    AuthState,
    FriendsState,
    NetworkStatus,
    Notification,
    PhotosState,
    UIState,
    UserSession,
    WidgetsState,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PASSWORD_RESET_MESSAGE = "Password reset email sent"

LIKE_OPERATIONS = (Operation.LIKE_PHOTO, Operation.UNLIKE_PHOTO)


@dataclass(frozen=True)
class SignedIn:
    """Result of a successful sign-in or sign-up."""

    user: UserSession
    profile: UserProfile | None = None


# ---------------------------------------------------------------------------
# payload helpers


def _coerce(model_cls: type[M], value: Any) -> M | None:
    if isinstance(value, model_cls):
        return value
    if isinstance(value, Mapping):
        try:
            return model_cls.model_validate(value)
        except ValidationError:
            logger.debug("Ignoring malformed %s payload", model_cls.__name__)
    return None


def _coerce_many(model_cls: type[M], value: Any) -> tuple[M, ...] | None:
    if not isinstance(value, (list, tuple)):
        return None
    items = (_coerce(model_cls, item) for item in value)
    return tuple(item for item in items if item is not None)


def _merge(record: M, fields: Mapping[str, Any]) -> M | None:
    updates = {key: value for key, value in fields.items() if key != "id"}
    try:
        return type(record).model_validate({**record.model_dump(), **updates})
    except ValidationError:
        logger.debug("Ignoring malformed update for %s %s", type(record).__name__, record.id)
        return None


def _payload_id(payload: Any, key: str = "id") -> str | None:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Mapping):
        value = payload.get(key)
    else:
        value = getattr(payload, key, None)
    return value if isinstance(value, str) else None


def _remove(items: tuple[M, ...], record_id: str) -> tuple[M, ...]:
    return tuple(item for item in items if item.id != record_id)


def _upsert(items: tuple[M, ...], record: M, prepend: bool = False) -> tuple[M, ...]:
    if any(item.id == record.id for item in items):
        return tuple(record if item.id == record.id else item for item in items)
    return (record, *items) if prepend else (*items, record)


def _update(items: tuple[M, ...], record_id: str, fields: Mapping[str, Any]) -> tuple[M, ...]:
    result = []
    for item in items:
        if item.id == record_id:
            merged = _merge(item, fields)
            if merged is None:
                return items
            item = merged
        result.append(item)
    return tuple(result)


def _session(payload: Any) -> UserSession | None:
    if isinstance(payload, UserSession):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("uid"), str):
        try:
            return UserSession(**payload)
        except TypeError:
            logger.debug("Ignoring malformed user payload")
    return None


def _start(in_flight: tuple[OperationMeta, ...], meta: OperationMeta) -> tuple[OperationMeta, ...]:
    if any(m.request_id == meta.request_id for m in in_flight):
        return in_flight
    return (*in_flight, meta)


def _finish(in_flight: tuple[OperationMeta, ...], meta: OperationMeta) -> tuple[OperationMeta, ...]:
    return tuple(m for m in in_flight if m.request_id != meta.request_id)


def _owns(in_flight: tuple[OperationMeta, ...], meta: OperationMeta) -> bool:
    """Whether a result belongs to a request this slice is still waiting on.

    Results for requests dropped by a sign-out are discarded.
    """
    return any(m.request_id == meta.request_id for m in in_flight)


def _async_meta(action: Action, slice_name: str) -> OperationMeta | None:
    meta = action.meta
    if action.type not in (
        ActionType.ASYNC_PENDING,
        ActionType.ASYNC_FULFILLED,
        ActionType.ASYNC_REJECTED,
    ):
        return None
    if not isinstance(meta, OperationMeta) or meta.operation.slice != slice_name:
        return None
    return meta


def _reason(payload: Any) -> str:
    return payload if isinstance(payload, str) else "Something went wrong. Please try again."


# ---------------------------------------------------------------------------
# auth


def auth_reducer(state: AuthState, action: Action) -> AuthState:
    payload = action.payload

    if action.type == ActionType.SET_USER:
        user = _session(payload)
        if user is None:
            return state
        return replace(state, user=user, error=None)

    elif action.type == ActionType.CLEAR_USER:
        return AuthState(in_flight=state.in_flight)

    elif action.type == ActionType.SET_PROFILE:
        profile = _coerce(UserProfile, payload)
        if profile is None:
            return state
        return replace(state, profile=profile)

    elif action.type == ActionType.UPDATE_PROFILE:
        if not isinstance(payload, Mapping):
            return state
        return _apply_profile_fields(state, payload)

    elif action.type == ActionType.SET_AUTH_ERROR:
        return replace(state, error=_reason(payload))

    elif action.type == ActionType.CLEAR_AUTH_ERROR:
        return replace(state, error=None, message=None)

    meta = _async_meta(action, "auth")
    if meta is None:
        return state

    if action.type == ActionType.ASYNC_PENDING:
        return replace(state, in_flight=_start(state.in_flight, meta), error=None, message=None)

    in_flight = _finish(state.in_flight, meta)
    if action.type == ActionType.ASYNC_REJECTED:
        return replace(state, in_flight=in_flight, error=_reason(payload))

    if not _owns(state.in_flight, meta):
        return replace(state, in_flight=in_flight)
    state = replace(state, in_flight=in_flight)

    if meta.operation in (Operation.FETCH_PROFILE, Operation.UPDATE_PROFILE):
        profile = _coerce(UserProfile, payload)
        if profile is not None and state.user is not None and profile.uid == state.user.uid:
            user = replace(
                state.user,
                display_name=profile.display_name,
                photo_url=profile.photo_url,
            )
            return replace(state, profile=profile, user=user)
    elif meta.operation == Operation.RESET_PASSWORD:
        return replace(state, message=PASSWORD_RESET_MESSAGE)
    # sign in/up/out results are applied by reduce() through SET_USER/CLEAR_USER
    return state


def _apply_profile_fields(state: AuthState, fields: Mapping[str, Any]) -> AuthState:
    profile = state.profile
    if profile is not None:
        merged = _merge(profile, fields)
        if merged is None:
            return state
        profile = merged
    user = state.user
    if user is not None:
        changes = {
            key: fields[key]
            for key in ("display_name", "photo_url")
            if isinstance(fields.get(key), str)
        }
        user = replace(user, **changes)
    return replace(state, profile=profile, user=user)


# ---------------------------------------------------------------------------
# photos


def photos_reducer(state: PhotosState, action: Action) -> PhotosState:
    payload = action.payload

    if action.type == ActionType.CLEAR_USER:
        return PhotosState()

    elif action.type == ActionType.SET_PHOTOS:
        photos = _coerce_many(Photo, payload)
        if photos is None:
            return state
        return replace(state, photos=photos, error=None)

    elif action.type == ActionType.ADD_PHOTO:
        photo = _coerce(Photo, payload)
        if photo is None:
            return state
        return replace(state, photos=_upsert(_remove(state.photos, photo.id), photo, prepend=True))

    elif action.type == ActionType.UPDATE_PHOTO:
        photo_id = _payload_id(payload)
        if photo_id is None or not isinstance(payload, Mapping):
            return state
        return replace(state, photos=_update(state.photos, photo_id, payload))

    elif action.type == ActionType.DELETE_PHOTO:
        photo_id = _payload_id(payload)
        if photo_id is None:
            return state
        return _delete_photo(state, photo_id)

    elif action.type == ActionType.LIKE_PHOTO:
        photo_id = _payload_id(payload, "photo_id")
        user_id = _payload_id(payload, "user_id")
        if photo_id is None or user_id is None:
            return state
        return _add_like(state, photo_id, user_id)

    elif action.type == ActionType.UNLIKE_PHOTO:
        photo_id = _payload_id(payload, "photo_id")
        user_id = _payload_id(payload, "user_id")
        if photo_id is None or user_id is None:
            return state
        return _remove_like(state, photo_id, user_id)

    elif action.type == ActionType.ADD_COMMENT:
        photo_id = _payload_id(payload, "photo_id")
        comment = _coerce(Comment, payload.get("comment")) if isinstance(payload, Mapping) else None
        if photo_id is None or comment is None:
            return state
        return _add_comment(state, photo_id, comment)

    elif action.type == ActionType.SELECT_PHOTO:
        if payload is not None and not isinstance(payload, str):
            return state
        return replace(state, selected_photo_id=payload)

    meta = _async_meta(action, "photos")
    if meta is None:
        return state

    if action.type == ActionType.ASYNC_PENDING:
        state = replace(state, in_flight=_start(state.in_flight, meta), error=None)
        if meta.operation in LIKE_OPERATIONS:
            return _like_optimistically(state, meta)
        return state

    owned = _owns(state.in_flight, meta)
    state = replace(state, in_flight=_finish(state.in_flight, meta))

    if not owned:
        return state

    if action.type == ActionType.ASYNC_REJECTED:
        if meta.operation in LIKE_OPERATIONS:
            state = _rollback_like(state, meta)
        return replace(state, error=_reason(payload))

    if meta.operation == Operation.UPLOAD_PHOTO:
        photo = _coerce(Photo, payload)
        if photo is not None:
            return replace(state, photos=_upsert(_remove(state.photos, photo.id), photo, prepend=True))
    elif meta.operation == Operation.FETCH_PHOTOS:
        photos = _coerce_many(Photo, payload)
        if photos is not None:
            return replace(state, photos=photos)
    elif meta.operation in LIKE_OPERATIONS:
        return _confirm_like(state, meta, payload)
    elif meta.operation == Operation.ADD_COMMENT:
        photo_id = meta.arg.get("photo_id")
        comment = _coerce(Comment, payload)
        if isinstance(photo_id, str) and comment is not None:
            return _add_comment(state, photo_id, comment)
    elif meta.operation == Operation.DELETE_PHOTO:
        photo_id = _payload_id(payload)
        if photo_id is not None:
            return _delete_photo(state, photo_id)
    return state


def _delete_photo(state: PhotosState, photo_id: str) -> PhotosState:
    selected = None if state.selected_photo_id == photo_id else state.selected_photo_id
    return replace(state, photos=_remove(state.photos, photo_id), selected_photo_id=selected)


def _set_likes(state: PhotosState, photo_id: str, likes: Iterable[str]) -> PhotosState:
    return replace(state, photos=_update(state.photos, photo_id, {"likes": list(likes)}))


def _add_like(state: PhotosState, photo_id: str, user_id: str) -> PhotosState:
    photo = state.get(photo_id)
    if photo is None or user_id in photo.likes:
        return state
    return _set_likes(state, photo_id, [*photo.likes, user_id])


def _remove_like(state: PhotosState, photo_id: str, user_id: str) -> PhotosState:
    photo = state.get(photo_id)
    if photo is None or user_id not in photo.likes:
        return state
    return _set_likes(state, photo_id, [uid for uid in photo.likes if uid != user_id])


def _like_optimistically(state: PhotosState, meta: OperationMeta) -> PhotosState:
    """Apply a like or unlike before the server answers, remembering the request."""
    photo_id = meta.arg.get("photo_id")
    user_id = meta.arg.get("user_id")
    if not isinstance(photo_id, str) or not isinstance(user_id, str):
        return state
    if meta.operation == Operation.LIKE_PHOTO:
        changed = _add_like(state, photo_id, user_id)
    else:
        changed = _remove_like(state, photo_id, user_id)
    if changed is state:
        return state
    return replace(changed, optimistic_likes=(*changed.optimistic_likes, meta.request_id))


def _confirm_like(state: PhotosState, meta: OperationMeta, likes: Any) -> PhotosState:
    remaining = tuple(r for r in state.optimistic_likes if r != meta.request_id)
    state = replace(state, optimistic_likes=remaining)
    photo_id = meta.arg.get("photo_id")
    if not isinstance(photo_id, str) or not isinstance(likes, (list, tuple)):
        return state
    return _set_likes(state, photo_id, [uid for uid in likes if isinstance(uid, str)])


def _rollback_like(state: PhotosState, meta: OperationMeta) -> PhotosState:
    if meta.request_id not in state.optimistic_likes:
        return state
    remaining = tuple(r for r in state.optimistic_likes if r != meta.request_id)
    state = replace(state, optimistic_likes=remaining)
    photo_id = meta.arg.get("photo_id")
    user_id = meta.arg.get("user_id")
    if not isinstance(photo_id, str) or not isinstance(user_id, str):
        return state
    if meta.operation == Operation.LIKE_PHOTO:
        return _remove_like(state, photo_id, user_id)
    return _add_like(state, photo_id, user_id)


def _add_comment(state: PhotosState, photo_id: str, comment: Comment) -> PhotosState:
    photo = state.get(photo_id)
    if photo is None or any(c.id == comment.id for c in photo.comments):
        return state
    return replace(
        state, photos=_update(state.photos, photo_id, {"comments": [*photo.comments, comment]})
    )


# ---------------------------------------------------------------------------
# friends


def friends_reducer(state: FriendsState, action: Action) -> FriendsState:
    payload = action.payload

    if action.type == ActionType.CLEAR_USER:
        return FriendsState()

    elif action.type == ActionType.SET_FRIENDS:
        friends = _coerce_many(Friendship, payload)
        return state if friends is None else replace(state, friends=friends, error=None)

    elif action.type == ActionType.ADD_FRIEND:
        friendship = _coerce(Friendship, payload)
        return state if friendship is None else _befriend(state, friendship)

    elif action.type == ActionType.REMOVE_FRIEND:
        friendship_id = _payload_id(payload)
        if friendship_id is None:
            return state
        return replace(state, friends=_remove(state.friends, friendship_id))

    elif action.type == ActionType.SET_FRIEND_REQUESTS:
        requests = _coerce_many(Friendship, payload)
        return state if requests is None else replace(state, requests=requests)

    elif action.type == ActionType.ADD_FRIEND_REQUEST:
        friendship = _coerce(Friendship, payload)
        if friendship is None:
            return state
        return replace(state, requests=_upsert(state.requests, friendship))

    elif action.type == ActionType.REMOVE_FRIEND_REQUEST:
        friendship_id = _payload_id(payload)
        if friendship_id is None:
            return state
        return replace(state, requests=_remove(state.requests, friendship_id))

    elif action.type == ActionType.CLEAR_SEARCH_RESULTS:
        return replace(state, search_results=()) if state.search_results else state

    meta = _async_meta(action, "friends")
    if meta is None:
        return state

    if action.type == ActionType.ASYNC_PENDING:
        return replace(state, in_flight=_start(state.in_flight, meta), error=None)

    owned = _owns(state.in_flight, meta)
    state = replace(state, in_flight=_finish(state.in_flight, meta))
    if not owned:
        return state
    if action.type == ActionType.ASYNC_REJECTED:
        return replace(state, error=_reason(payload))

    if meta.operation == Operation.FETCH_FRIENDS:
        friendships = _coerce_many(Friendship, payload)
        if friendships is not None:
            return replace(
                state,
                friends=tuple(f for f in friendships if f.status == FriendshipStatus.ACCEPTED),
                requests=tuple(f for f in friendships if f.status == FriendshipStatus.PENDING),
            )
        return state

    if meta.operation == Operation.SEARCH_USERS:
        profiles = _coerce_many(UserProfile, payload)
        return state if profiles is None else replace(state, search_results=profiles)

    friendship = _coerce(Friendship, payload)
    if friendship is None:
        return state
    if meta.operation == Operation.SEND_FRIEND_REQUEST:
        return replace(state, requests=_upsert(state.requests, friendship))
    elif meta.operation == Operation.ACCEPT_FRIEND_REQUEST:
        return _befriend(state, friendship)
    elif meta.operation in (Operation.REJECT_FRIEND_REQUEST, Operation.REMOVE_FRIEND):
        return replace(
            state,
            friends=_remove(state.friends, friendship.id),
            requests=_remove(state.requests, friendship.id),
        )
    return state


def _befriend(state: FriendsState, friendship: Friendship) -> FriendsState:
    return replace(
        state,
        friends=_upsert(state.friends, friendship),
        requests=_remove(state.requests, friendship.id),
    )


# ---------------------------------------------------------------------------
# widgets


def widgets_reducer(state: WidgetsState, action: Action) -> WidgetsState:
    payload = action.payload

    if action.type == ActionType.CLEAR_USER:
        return WidgetsState()

    elif action.type == ActionType.SET_WIDGETS:
        widgets = _coerce_many(Widget, payload)
        return state if widgets is None else replace(state, user_widgets=widgets, error=None)

    elif action.type == ActionType.SET_SHARED_WIDGETS:
        widgets = _coerce_many(Widget, payload)
        return state if widgets is None else replace(state, shared_widgets=widgets)

    elif action.type == ActionType.ADD_WIDGET:
        widget = _coerce(Widget, payload)
        if widget is None:
            return state
        return replace(state, user_widgets=_upsert(state.user_widgets, widget))

    elif action.type == ActionType.UPDATE_WIDGET:
        widget_id = _payload_id(payload)
        if widget_id is None or not isinstance(payload, Mapping):
            return state
        return _update_widget(state, widget_id, payload)

    elif action.type == ActionType.DELETE_WIDGET:
        widget_id = _payload_id(payload)
        return state if widget_id is None else _delete_widget(state, widget_id)

    elif action.type == ActionType.TOGGLE_WIDGET:
        widget_id = _payload_id(payload)
        widget = state.get(widget_id) if widget_id is not None else None
        if widget is None:
            return state
        is_active = payload.get("is_active") if isinstance(payload, Mapping) else None
        if not isinstance(is_active, bool):
            is_active = not widget.is_active
        return _update_widget(state, widget.id, {"is_active": is_active})

    elif action.type == ActionType.REORDER_WIDGETS:
        if not isinstance(payload, (list, tuple)):
            return state
        return replace(state, user_widgets=_reorder(state.user_widgets, payload))

    elif action.type == ActionType.SELECT_WIDGET:
        if payload is not None and not isinstance(payload, str):
            return state
        return replace(state, selected_widget_id=payload)

    meta = _async_meta(action, "widgets")
    if meta is None:
        return state

    if action.type == ActionType.ASYNC_PENDING:
        state = replace(state, in_flight=_start(state.in_flight, meta), error=None)
        if meta.operation == Operation.SET_WIDGET_ACTIVE:
            return _set_active_from_arg(state, meta, "is_active")
        return state

    owned = _owns(state.in_flight, meta)
    state = replace(state, in_flight=_finish(state.in_flight, meta))

    if not owned:
        return state

    if action.type == ActionType.ASYNC_REJECTED:
        if meta.operation == Operation.SET_WIDGET_ACTIVE:
            state = _set_active_from_arg(state, meta, "previous")
        return replace(state, error=_reason(payload))

    if meta.operation == Operation.CREATE_WIDGET:
        widget = _coerce(Widget, payload)
        if widget is not None:
            return replace(state, user_widgets=_upsert(state.user_widgets, widget))
    elif meta.operation == Operation.FETCH_USER_WIDGETS:
        widgets = _coerce_many(Widget, payload)
        if widgets is not None:
            return replace(state, user_widgets=widgets)
    elif meta.operation == Operation.FETCH_SHARED_WIDGETS:
        widgets = _coerce_many(Widget, payload)
        if widgets is not None:
            return replace(state, shared_widgets=widgets)
    elif meta.operation in (
        Operation.UPDATE_WIDGET,
        Operation.UPDATE_WIDGET_DATA,
        Operation.SHARE_WIDGET,
        Operation.SET_WIDGET_ACTIVE,
    ):
        widget_id = _payload_id(payload)
        if widget_id is not None and isinstance(payload, Mapping):
            return _update_widget(state, widget_id, payload)
    elif meta.operation == Operation.DELETE_WIDGET:
        widget_id = _payload_id(payload)
        if widget_id is not None:
            return _delete_widget(state, widget_id)
    return state


def _update_widget(state: WidgetsState, widget_id: str, fields: Mapping[str, Any]) -> WidgetsState:
    return replace(state, user_widgets=_update(state.user_widgets, widget_id, fields))


def _delete_widget(state: WidgetsState, widget_id: str) -> WidgetsState:
    selected = None if state.selected_widget_id == widget_id else state.selected_widget_id
    return replace(
        state,
        user_widgets=_remove(state.user_widgets, widget_id),
        shared_widgets=_remove(state.shared_widgets, widget_id),
        selected_widget_id=selected,
    )


def _set_active_from_arg(state: WidgetsState, meta: OperationMeta, key: str) -> WidgetsState:
    widget_id = meta.arg.get("widget_id")
    is_active = meta.arg.get(key)
    if not isinstance(widget_id, str) or not isinstance(is_active, bool):
        return state
    return _update_widget(state, widget_id, {"is_active": is_active})


def _reorder(widgets: tuple[Widget, ...], order: Iterable[Any]) -> tuple[Widget, ...]:
    """Move the listed ids to the front in the given order; the rest keep their order."""
    by_id = {w.id: w for w in widgets}
    front = [by_id[i] for i in dict.fromkeys(order) if isinstance(i, str) and i in by_id]
    placed = {w.id for w in front}
    return tuple(front + [w for w in widgets if w.id not in placed])


# ---------------------------------------------------------------------------
# ui


def ui_reducer(state: UIState, action: Action) -> UIState:
    payload = action.payload

    if action.type == ActionType.SET_LOADING:
        if not isinstance(payload, bool):
            return state
        return replace(state, loading=payload)

    elif action.type == ActionType.SET_NETWORK_STATUS:
        try:
            status = NetworkStatus(payload)
        except ValueError:
            return state
        return replace(state, network_status=status)

    elif action.type == ActionType.SHOW_NOTIFICATION:
        if not isinstance(payload, Notification):
            return state
        if any(n.id == payload.id for n in state.notifications):
            return state
        return replace(state, notifications=(*state.notifications, payload))

    elif action.type == ActionType.HIDE_NOTIFICATION:
        remaining = tuple(n for n in state.notifications if n.id != payload)
        if len(remaining) == len(state.notifications):
            return state
        return replace(state, notifications=remaining)

    return state


# ---------------------------------------------------------------------------
# root


def reduce(state: AppState, action: Action) -> AppState:
    """Apply one action to the whole tree."""
    if action.type == ActionType.SET_USER:
        state = _reset_on_account_switch(state, _session(action.payload))

    elif action.type == ActionType.ASYNC_FULFILLED and action.meta is not None:
        operation = action.meta.operation
        if operation in (Operation.SIGN_IN, Operation.SIGN_UP) and isinstance(
            action.payload, SignedIn
        ):
            if _owns(state.auth.in_flight, action.meta):
                state = reduce(state, Action(ActionType.SET_USER, action.payload.user))
                if action.payload.profile is not None:
                    state = reduce(state, Action(ActionType.SET_PROFILE, action.payload.profile))
        elif operation == Operation.SIGN_OUT and _owns(state.auth.in_flight, action.meta):
            state = reduce(state, Action(ActionType.CLEAR_USER))

    auth = auth_reducer(state.auth, action)
    photos = photos_reducer(state.photos, action)
    friends = friends_reducer(state.friends, action)
    widgets = widgets_reducer(state.widgets, action)
    ui = ui_reducer(state.ui, action)

    if (
        auth is state.auth
        and photos is state.photos
        and friends is state.friends
        and widgets is state.widgets
        and ui is state.ui
    ):
        return state
    return AppState(auth=auth, photos=photos, friends=friends, widgets=widgets, ui=ui)


def _reset_on_account_switch(state: AppState, user: UserSession | None) -> AppState:
    current = state.auth.user
    if user is None or current is None or current.uid == user.uid:
        return state
    clear = Action(ActionType.CLEAR_USER)
    return replace(
        state,
        auth=replace(state.auth, profile=None),
        photos=photos_reducer(state.photos, clear),
        friends=friends_reducer(state.friends, clear),
        widgets=widgets_reducer(state.widgets, clear),
    )
