"""Tests for the async operation adapters against in-memory gateways."""

import asyncio
from typing import Any

import pytest
from google.api_core.exceptions import ServiceUnavailable  # type: ignore[import-untyped]

from shareit_client import friends, photos, session, widgets
from shareit_client.actions import Action, ActionType, Operation
from shareit_client.errors import AuthError, InputValidationError
from shareit_client.operations import run_operation
from shareit_client.state import AppState
from shareit_client.store import Store
from shareit_shared import FriendshipStatus
from shareit_shared.storage import photo_id_for

from client_fakes import (
    FakeAuth,
    FakeBackend,
    make_friendship,
    make_photo,
    make_profile,
    make_session,
    make_widget,
)

JPEG = b"\xff\xd8\xff" + b"\x00" * 500
PASSWORD = "Sunny!Day42"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def auth() -> FakeAuth:
    fake = FakeAuth()
    fake.add(make_session("alice"), PASSWORD)
    return fake


@pytest.fixture
def store() -> Store:
    store = Store()
    store.dispatch(Action(ActionType.SET_USER, make_session("alice")))
    return store


def record_loading(store: Store) -> list[str]:
    """Subscribe and record whether anything was in flight after each change."""
    seen: list[str] = []

    def listener(state: AppState) -> None:
        seen.append(
            "loading" if state.photos.in_flight or state.widgets.in_flight or state.auth.in_flight
            or state.friends.in_flight else "idle"
        )

    store.subscribe(listener)
    return seen


class TestRunOperation:
    def test_pending_then_fulfilled(self) -> None:
        store = Store()
        seen = record_loading(store)

        async def call() -> list[Any]:
            return [make_photo("p1")]

        result = asyncio.run(run_operation(store, Operation.FETCH_PHOTOS, call))

        assert result.ok
        assert seen == ["loading", "idle"]
        assert [p.id for p in store.state.photos.photos] == ["p1"]

    def test_failure_becomes_rejected_with_readable_reason(self) -> None:
        store = Store()

        async def call() -> None:
            raise ServiceUnavailable("backend down")

        result = asyncio.run(run_operation(store, Operation.FETCH_PHOTOS, call))

        assert not result.ok
        assert result.error == "Network unavailable. Check your connection and try again."
        assert store.state.photos.error == result.error
        assert not store.state.photos.loading

    def test_concurrent_operations_resolve_independently(self) -> None:
        store = Store()

        async def slow() -> list[Any]:
            await asyncio.sleep(0.02)
            return [make_photo("slow")]

        async def fast() -> list[Any]:
            return [make_photo("fast")]

        async def scenario() -> None:
            await asyncio.gather(
                run_operation(store, Operation.FETCH_PHOTOS, slow),
                run_operation(store, Operation.FETCH_PHOTOS, fast),
            )

        asyncio.run(scenario())

        assert [p.id for p in store.state.photos.photos] == ["slow"]
        assert not store.state.photos.loading


class TestSession:
    def test_sign_in_loads_profile(self, auth: FakeAuth, backend: FakeBackend) -> None:
        store = Store()
        backend.profiles["alice"] = make_profile("alice", bio="hello")

        result = asyncio.run(session.sign_in(store, auth, backend, " Alice@Example.com ", PASSWORD))

        assert result.ok
        assert store.state.auth.is_authenticated
        assert store.state.auth.profile is not None
        assert store.state.auth.profile.bio == "hello"

    def test_sign_in_creates_missing_profile(self, auth: FakeAuth, backend: FakeBackend) -> None:
        store = Store()
        asyncio.run(session.sign_in(store, auth, backend, "alice@example.com", PASSWORD))
        assert "alice" in backend.profiles
        assert store.state.auth.profile is not None

    def test_wrong_password_is_rejected(self, auth: FakeAuth, backend: FakeBackend) -> None:
        store = Store()
        result = asyncio.run(session.sign_in(store, auth, backend, "alice@example.com", "nope"))
        assert not result.ok
        assert store.state.auth.error == "Incorrect password."
        assert not store.state.auth.is_authenticated

    def test_invalid_email_fails_before_network(self, auth: FakeAuth, backend: FakeBackend) -> None:
        store = Store()
        with pytest.raises(InputValidationError, match="Invalid email format"):
            asyncio.run(session.sign_in(store, auth, backend, "not-an-email", PASSWORD))
        assert auth.calls == []
        assert not store.state.auth.loading

    def test_weak_password_fails_before_network(self, auth: FakeAuth, backend: FakeBackend) -> None:
        with pytest.raises(InputValidationError):
            asyncio.run(session.sign_up(Store(), auth, backend, "new@example.com", "short", "Newbie"))
        assert auth.calls == []

    def test_sign_up_creates_profile_with_defaults(
        self, auth: FakeAuth, backend: FakeBackend
    ) -> None:
        store = Store()
        result = asyncio.run(
            session.sign_up(store, auth, backend, "new@example.com", PASSWORD, "Newbie")
        )
        assert result.ok
        profile = store.state.auth.profile
        assert profile is not None
        assert profile.display_name == "Newbie"
        assert profile.preferences.notifications.chat_messages
        assert profile.stats.photos_shared == 0

    def test_sign_up_existing_email(self, auth: FakeAuth, backend: FakeBackend) -> None:
        store = Store()
        result = asyncio.run(
            session.sign_up(store, auth, backend, "alice@example.com", PASSWORD, "Alice")
        )
        assert result.error == "An account already exists for this email."

    def test_sign_out_clears_everything(self, store: Store) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))
        result = asyncio.run(session.sign_out(store))
        assert result.ok
        assert not store.state.auth.is_authenticated
        assert store.state.photos.photos == ()

    def test_sign_out_completes_when_cache_cannot_be_cleared(
        self, store: Store, caplog: pytest.LogCaptureFixture
    ) -> None:
        class ReadOnlyCache:
            def clear_user(self, uid: str) -> None:
                raise PermissionError(f"snapshot for {uid} is read-only")

        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))

        result = asyncio.run(session.sign_out(store, ReadOnlyCache()))  # type: ignore[arg-type]

        assert result.ok
        assert not store.state.auth.is_authenticated
        assert store.state.photos.photos == ()
        assert "Could not remove cached data for alice" in caplog.text

    def test_update_profile_rejects_unknown_fields(self, store: Store, backend: FakeBackend) -> None:
        with pytest.raises(InputValidationError):
            asyncio.run(session.update_profile(store, backend, "alice", email="x@y.z"))
        assert backend.calls == []

    def test_update_profile(self, store: Store, backend: FakeBackend) -> None:
        backend.profiles["alice"] = make_profile("alice")
        asyncio.run(session.update_profile(store, backend, "alice", bio="  photographer "))
        assert store.state.auth.profile is not None
        assert store.state.auth.profile.bio == "photographer"

    def test_reset_password(self, auth: FakeAuth) -> None:
        store = Store()
        result = asyncio.run(session.reset_password(store, auth, "alice@example.com"))
        assert result.ok
        assert auth.calls == ["send_password_reset"]


class TestPhotos:
    def test_upload_writes_object_then_record(self, store: Store, backend: FakeBackend) -> None:
        result = asyncio.run(
            photos.upload_photo(
                store, backend, "bucket", "alice", JPEG, "image/jpeg",
                caption=" beach ", shared_with=["bob", "alice", "bob"],
            )
        )

        assert result.ok and result.value is not None
        photo = result.value
        path = f"shared-photos/alice/{photo.file_name}"
        assert backend.calls == ["upload_object", "save_photo"]
        assert path in backend.objects
        assert photo.id == photo_id_for(path)
        assert photo.caption == "beach"
        assert photo.shared_with == ["bob"]
        assert photo.thumbnail is not None and "/thumb_" in photo.thumbnail
        assert store.state.photos.photos[0].id == photo.id
        assert not store.state.photos.uploading

    def test_upload_rejected_when_record_write_fails(
        self, store: Store, backend: FakeBackend
    ) -> None:
        backend.fail["save_photo"] = ServiceUnavailable("down")
        result = asyncio.run(photos.upload_photo(store, backend, "bucket", "alice", JPEG, "image/jpeg"))
        assert not result.ok
        assert store.state.photos.photos == ()
        assert store.state.photos.error is not None

    @pytest.mark.parametrize(
        "data, content_type, message",
        [
            (b"", "image/jpeg", "File is required"),
            (b"x" * 50, "image/jpeg", "File too small"),
            (JPEG, "application/pdf", "not allowed"),
        ],
    )
    def test_invalid_upload_fails_before_network(
        self, store: Store, backend: FakeBackend, data: bytes, content_type: str, message: str
    ) -> None:
        with pytest.raises(InputValidationError, match=message):
            asyncio.run(photos.upload_photo(store, backend, "bucket", "alice", data, content_type))
        assert backend.calls == []

    def test_fetch_returns_owned_and_shared_newest_first(
        self, store: Store, backend: FakeBackend
    ) -> None:
        backend.photos = {
            "p1": make_photo("p1", minutes=1),
            "p2": make_photo("p2", user_id="bob", minutes=3, shared_with=["alice"]),
            "p3": make_photo("p3", user_id="bob", minutes=5),
        }
        asyncio.run(photos.fetch_photos(store, backend, "alice"))
        assert [p.id for p in store.state.photos.photos] == ["p2", "p1"]

    def test_like_shows_immediately_and_rolls_back_on_failure(
        self, store: Store, backend: FakeBackend
    ) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))
        backend.photos["p1"] = make_photo("p1")
        backend.fail["add_like"] = ServiceUnavailable("down")
        likes_seen: list[list[str]] = []
        store.subscribe(lambda s: likes_seen.append(list(s.photos.photos[0].likes)))

        result = asyncio.run(photos.like_photo(store, backend, "p1", "alice"))

        assert not result.ok
        assert likes_seen[0] == ["alice"]
        assert store.state.photos.photos[0].likes == []

    def test_like_uses_server_list(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))
        backend.photos["p1"] = make_photo("p1", likes=["carol"])

        asyncio.run(photos.like_photo(store, backend, "p1", "alice"))

        assert store.state.photos.photos[0].likes == ["carol", "alice"]

    def test_unlike_removes_immediately(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1", likes=["alice", "bob"])]))
        backend.photos["p1"] = make_photo("p1", likes=["alice", "bob"])
        likes_seen: list[list[str]] = []
        store.subscribe(lambda s: likes_seen.append(list(s.photos.photos[0].likes)))

        result = asyncio.run(photos.unlike_photo(store, backend, "p1", "alice"))

        assert result.ok
        assert likes_seen[0] == ["bob"]
        assert store.state.photos.photos[0].likes == ["bob"]
        assert backend.photos["p1"].likes == ["bob"]
        assert store.state.photos.optimistic_likes == ()

    def test_unlike_is_restored_on_failure(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1", likes=["alice"])]))
        backend.photos["p1"] = make_photo("p1", likes=["alice"])
        backend.fail["remove_like"] = ServiceUnavailable("down")

        result = asyncio.run(photos.unlike_photo(store, backend, "p1", "alice"))

        assert not result.ok
        assert store.state.photos.photos[0].likes == ["alice"]

    def test_toggle_like_flips(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))
        backend.photos["p1"] = make_photo("p1")

        asyncio.run(photos.toggle_like(store, backend, "p1", "alice"))
        assert store.state.photos.photos[0].likes == ["alice"]

        asyncio.run(photos.toggle_like(store, backend, "p1", "alice"))
        assert store.state.photos.photos[0].likes == []
        assert backend.calls == ["add_like", "remove_like"]

    def test_add_comment(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_PHOTOS, [make_photo("p1")]))
        backend.photos["p1"] = make_photo("p1")

        asyncio.run(photos.add_comment(store, backend, "p1", "alice", "  lovely  "))

        [comment] = store.state.photos.photos[0].comments
        assert comment.text == "lovely"
        assert comment.user_id == "alice"

    def test_empty_comment_is_invalid(self, store: Store, backend: FakeBackend) -> None:
        with pytest.raises(InputValidationError, match="Comment is required"):
            asyncio.run(photos.add_comment(store, backend, "p1", "alice", "   "))

    def test_delete_by_non_owner_is_refused(self, store: Store, backend: FakeBackend) -> None:
        photo = make_photo("p1", user_id="bob")
        store.dispatch(Action(ActionType.SET_PHOTOS, [photo]))
        result = asyncio.run(photos.delete_photo(store, backend, photo, "alice"))
        assert result.error == "Only the owner can delete a photo"
        assert len(store.state.photos.photos) == 1

    def test_delete_removes_record_and_object(self, store: Store, backend: FakeBackend) -> None:
        photo = make_photo("p1")
        backend.photos["p1"] = photo
        backend.objects["shared-photos/alice/p1.jpg"] = JPEG
        store.dispatch(Action(ActionType.SET_PHOTOS, [photo]))

        asyncio.run(photos.delete_photo(store, backend, photo, "alice"))

        assert store.state.photos.photos == ()
        assert backend.photos == {}
        assert backend.objects == {}


class TestWidgets:
    def test_create_assigns_id(self, store: Store, backend: FakeBackend) -> None:
        result = asyncio.run(widgets.create_widget(store, backend, "alice", "weather", {"city": "Oslo"}))
        assert result.value is not None and result.value.id
        assert [w.id for w in store.state.widgets.active_widgets] == [result.value.id]

    def test_unknown_type_is_invalid(self, store: Store, backend: FakeBackend) -> None:
        with pytest.raises(InputValidationError):
            asyncio.run(widgets.create_widget(store, backend, "alice", "hologram"))
        assert backend.calls == []

    def test_set_active_reverts_on_failure(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_WIDGETS, [make_widget("w1")]))
        backend.widgets["w1"] = make_widget("w1")
        backend.fail["update_widget"] = ServiceUnavailable("down")
        active_seen: list[int] = []
        store.subscribe(lambda s: active_seen.append(len(s.widgets.active_widgets)))

        asyncio.run(widgets.set_widget_active(store, backend, "w1", False))

        assert active_seen[0] == 0
        assert [w.id for w in store.state.widgets.active_widgets] == ["w1"]

    def test_share_replaces_recipients(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_WIDGETS, [make_widget("w1", shared_with=["bob"])]))
        backend.widgets["w1"] = make_widget("w1", shared_with=["bob"])

        asyncio.run(widgets.share_widget(store, backend, "w1", ["bob", "carol", "carol"]))

        assert store.state.widgets.user_widgets[0].shared_with == ["bob", "carol"]
        assert backend.widgets["w1"].shared_with == ["bob", "carol"]

    def test_update_data_and_delete(self, store: Store, backend: FakeBackend) -> None:
        store.dispatch(Action(ActionType.SET_WIDGETS, [make_widget("w1")]))
        backend.widgets["w1"] = make_widget("w1")

        asyncio.run(widgets.update_widget_data(store, backend, "w1", {"temperature": 21}))
        assert store.state.widgets.user_widgets[0].data == {"temperature": 21}

        asyncio.run(widgets.delete_widget(store, backend, "w1"))
        assert store.state.widgets.user_widgets == ()

    def test_fetch_shared(self, store: Store, backend: FakeBackend) -> None:
        backend.widgets["w9"] = make_widget("w9", user_id="bob", shared_with=["alice"])
        asyncio.run(widgets.fetch_shared_widgets(store, backend, "alice"))
        assert [w.id for w in store.state.widgets.shared_widgets] == ["w9"]


class TestFriends:
    @pytest.fixture(autouse=True)
    def people(self, backend: FakeBackend) -> None:
        backend.profiles["alice"] = make_profile("alice")
        backend.profiles["bob"] = make_profile("bob")

    def test_send_request(self, store: Store, backend: FakeBackend) -> None:
        result = asyncio.run(friends.send_friend_request(store, backend, "alice", "bob@example.com"))
        assert result.ok
        assert [f.requested_by for f in store.state.friends.requests] == ["alice"]

    def test_unknown_user(self, store: Store, backend: FakeBackend) -> None:
        result = asyncio.run(friends.send_friend_request(store, backend, "alice", "zed@example.com"))
        assert result.error == "User not found"

    def test_self_request_is_refused(self, store: Store, backend: FakeBackend) -> None:
        result = asyncio.run(friends.send_friend_request(store, backend, "alice", "alice@example.com"))
        assert not result.ok
        assert backend.friendships == {}

    def test_duplicate_request_is_refused(self, store: Store, backend: FakeBackend) -> None:
        asyncio.run(friends.send_friend_request(store, backend, "alice", "bob@example.com"))
        result = asyncio.run(friends.send_friend_request(store, backend, "alice", "bob@example.com"))
        assert result.error == "A friendship with this user already exists"
        assert len(backend.friendships) == 1

    def test_accept_then_remove(self, store: Store, backend: FakeBackend) -> None:
        request = make_friendship("f1", ("bob", "alice"))
        backend.friendships["f1"] = request
        store.dispatch(Action(ActionType.SET_FRIEND_REQUESTS, [request]))

        asyncio.run(friends.accept_friend_request(store, backend, "f1", "alice"))
        assert [f.id for f in store.state.friends.friends] == ["f1"]
        assert store.state.friends.requests == ()
        assert backend.friendships["f1"].accepted_by == "alice"

        asyncio.run(friends.remove_friend(store, backend, "f1", "alice"))
        assert store.state.friends.friends == ()
        assert backend.friendships["f1"].status == FriendshipStatus.REMOVED

    def test_requester_cannot_accept(self, store: Store, backend: FakeBackend) -> None:
        backend.friendships["f1"] = make_friendship("f1", ("alice", "bob"))

        result = asyncio.run(friends.accept_friend_request(store, backend, "f1", "alice"))

        assert result.error == "Only the recipient can answer a friend request"
        assert backend.friendships["f1"].status == FriendshipStatus.PENDING

    def test_search(self, store: Store, backend: FakeBackend) -> None:
        backend.profiles["bobby"] = make_profile("bobby")

        result = asyncio.run(friends.search_users(store, backend, "alice", "  bob "))

        assert result.ok
        assert [p.uid for p in store.state.friends.search_results] == ["bob", "bobby"]

        store.dispatch(Action(ActionType.CLEAR_SEARCH_RESULTS))
        assert store.state.friends.search_results == ()

    def test_search_term_too_short(self, store: Store, backend: FakeBackend) -> None:
        with pytest.raises(InputValidationError, match="at least 3"):
            asyncio.run(friends.search_users(store, backend, "alice", " bo "))
        assert backend.calls == []

    def test_rejected_request_cannot_be_accepted(self, store: Store, backend: FakeBackend) -> None:
        backend.friendships["f1"] = make_friendship(
            "f1", ("bob", "alice"), status=FriendshipStatus.REJECTED
        )
        result = asyncio.run(friends.accept_friend_request(store, backend, "f1", "alice"))
        assert not result.ok
        assert backend.friendships["f1"].status == FriendshipStatus.REJECTED

    def test_fetch(self, store: Store, backend: FakeBackend) -> None:
        backend.friendships = {
            "f1": make_friendship("f1", status=FriendshipStatus.ACCEPTED),
            "f2": make_friendship("f2", ("carol", "alice")),
        }
        asyncio.run(friends.fetch_friends(store, backend, "alice"))
        assert [f.id for f in store.state.friends.friends] == ["f1"]
        assert [f.id for f in store.state.friends.requests] == ["f2"]


def test_auth_error_codes_with_detail_are_described() -> None:
    from shareit_client.errors import describe_error

    error = AuthError("WEAK_PASSWORD : Password should be at least 6 characters")
    assert describe_error(error) == "The password is too weak."
    assert describe_error(AuthError("SOMETHING_NEW")) == "Authentication failed."
    assert describe_error(KeyError("x")) == "Something went wrong. Please try again."
