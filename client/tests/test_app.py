"""Tests for the application facade."""

import asyncio
from pathlib import Path

import pytest
from google.api_core.exceptions import ServiceUnavailable  # type: ignore[import-untyped]

from shareit_client.app import OFFLINE_TITLE, ShareItApp
from shareit_client.cache import LocalCache
from shareit_client.state import NetworkStatus, NotificationType
from shareit_shared import FriendshipStatus

from client_fakes import (
    FakeAuth,
    FakeBackend,
    ManualScheduler,
    make_friendship,
    make_photo,
    make_profile,
    make_session,
    make_widget,
)

PASSWORD = "Sunny!Day42"


@pytest.fixture
def backend() -> FakeBackend:
    backend = FakeBackend()
    backend.profiles["alice"] = make_profile("alice")
    backend.photos["p1"] = make_photo("p1")
    backend.widgets["w1"] = make_widget("w1")
    backend.friendships["f1"] = make_friendship("f1", status=FriendshipStatus.ACCEPTED)
    return backend


@pytest.fixture
def app(backend: FakeBackend, tmp_path: Path) -> ShareItApp:
    auth = FakeAuth()
    auth.add(make_session("alice"), PASSWORD)
    return ShareItApp(
        backend=backend,  # type: ignore[arg-type]
        auth=auth,  # type: ignore[arg-type]
        bucket_name="bucket",
        cache=LocalCache(tmp_path / "cache"),
        schedule=ManualScheduler(),
    )


def test_sign_in_and_refresh_caches_snapshot(app: ShareItApp) -> None:
    async def scenario() -> bool:
        await app.sign_in("alice@example.com", PASSWORD)
        return await app.refresh()

    assert asyncio.run(scenario())
    state = app.store.state
    assert [p.id for p in state.photos.photos] == ["p1"]
    assert [w.id for w in state.widgets.active_widgets] == ["w1"]
    assert [f.id for f in state.friends.friends] == ["f1"]
    assert app.cache is not None and app.cache.load_snapshot("alice") is not None


def test_failed_sign_in_shows_error(app: ShareItApp) -> None:
    result = asyncio.run(app.sign_in("alice@example.com", "Wrong!Pass1"))
    assert not result.ok
    [notification] = app.store.state.ui.notifications
    assert notification.type == NotificationType.ERROR
    assert notification.message == "Incorrect password."


def test_refresh_requires_user(app: ShareItApp) -> None:
    assert asyncio.run(app.refresh()) is False


def test_offline_start_uses_cache(app: ShareItApp, backend: FakeBackend) -> None:
    asyncio.run(app.sign_in("alice@example.com", PASSWORD))
    asyncio.run(app.refresh())

    asyncio.run(app.sign_out())
    asyncio.run(app.sign_in("alice@example.com", PASSWORD))
    # sign-out removed this user's snapshot
    assert not app.load_cached("alice")

    asyncio.run(app.refresh())
    backend.fail["list_visible_photos"] = ServiceUnavailable("down")
    assert not asyncio.run(app.refresh())
    assert app.load_cached("alice")
    assert [p.id for p in app.store.state.photos.photos] == ["p1"]


def test_load_cached_ignores_other_user(app: ShareItApp) -> None:
    assert not app.load_cached("alice")


def test_offline_banner_is_persistent_and_hidden_on_reconnect(app: ShareItApp) -> None:
    app.set_online(False)
    app.set_online(False)

    state = app.store.state
    assert state.ui.network_status == NetworkStatus.OFFLINE
    [banner] = state.ui.notifications
    assert banner.title == OFFLINE_TITLE
    assert banner.type == NotificationType.WARNING
    assert banner.duration_ms == 0

    app.set_online(True)
    assert app.store.state.ui.network_status == NetworkStatus.ONLINE
    assert app.store.state.ui.notifications == ()


def test_sign_out_clears_notifications(app: ShareItApp) -> None:
    asyncio.run(app.sign_in("alice@example.com", PASSWORD))
    app.notifications.info("hello")
    asyncio.run(app.sign_out())
    assert app.store.state.ui.notifications == ()
    assert not app.store.state.auth.is_authenticated
