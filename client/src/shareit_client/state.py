"""Application state tree.

Every node is a frozen dataclass; reducers build new nodes with
dataclasses.replace instead of mutating.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from shareit_shared import Friendship, Photo, UserProfile, Widget

from .actions import Operation, OperationMeta

DEFAULT_NOTIFICATION_DURATION_MS = 3000


class NotificationType(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class NetworkStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class UserSession:
    """Signed-in identity as returned by Firebase Auth."""

    uid: str
    email: str
    display_name: str = ""
    photo_url: str = ""
    id_token: str | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class NotificationAction:
    label: str
    key: str


@dataclass(frozen=True)
class Notification:
    """Transient UI notification. duration_ms == 0 means it stays until hidden."""

    id: int
    type: NotificationType
    title: str
    message: str = ""
    actions: tuple[NotificationAction, ...] = ()
    progress: float | None = None
    duration_ms: int = DEFAULT_NOTIFICATION_DURATION_MS


@dataclass(frozen=True)
class AuthState:
    user: UserSession | None = None
    profile: UserProfile | None = None
    error: str | None = None
    message: str | None = None
    in_flight: tuple[OperationMeta, ...] = ()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def loading(self) -> bool:
        return bool(self.in_flight)


@dataclass(frozen=True)
class PhotosState:
    photos: tuple[Photo, ...] = ()
    selected_photo_id: str | None = None
    error: str | None = None
    in_flight: tuple[OperationMeta, ...] = ()
    # request ids of likes and unlikes applied before the server confirmed them
    optimistic_likes: tuple[str, ...] = ()

    @property
    def loading(self) -> bool:
        return any(m.operation != Operation.UPLOAD_PHOTO for m in self.in_flight)

    @property
    def uploading(self) -> bool:
        return any(m.operation == Operation.UPLOAD_PHOTO for m in self.in_flight)

    def get(self, photo_id: str) -> Photo | None:
        return next((p for p in self.photos if p.id == photo_id), None)


@dataclass(frozen=True)
class FriendsState:
    friends: tuple[Friendship, ...] = ()
    requests: tuple[Friendship, ...] = ()
    search_results: tuple[UserProfile, ...] = ()
    error: str | None = None
    in_flight: tuple[OperationMeta, ...] = ()

    @property
    def loading(self) -> bool:
        return bool(self.in_flight)


@dataclass(frozen=True)
class WidgetsState:
    user_widgets: tuple[Widget, ...] = ()
    shared_widgets: tuple[Widget, ...] = ()
    selected_widget_id: str | None = None
    error: str | None = None
    in_flight: tuple[OperationMeta, ...] = ()

    @property
    def active_widgets(self) -> tuple[Widget, ...]:
        """Owned widgets with is_active set, in owned-list order."""
        return tuple(w for w in self.user_widgets if w.is_active)

    @property
    def loading(self) -> bool:
        return bool(self.in_flight)

    def get(self, widget_id: str) -> Widget | None:
        return next((w for w in self.user_widgets if w.id == widget_id), None)


@dataclass(frozen=True)
class UIState:
    loading: bool = False
    network_status: NetworkStatus = NetworkStatus.ONLINE
    notifications: tuple[Notification, ...] = ()


@dataclass(frozen=True)
class AppState:
    auth: AuthState = field(default_factory=AuthState)
    photos: PhotosState = field(default_factory=PhotosState)
    friends: FriendsState = field(default_factory=FriendsState)
    widgets: WidgetsState = field(default_factory=WidgetsState)
    ui: UIState = field(default_factory=UIState)
