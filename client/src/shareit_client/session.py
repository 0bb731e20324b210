"""Sign-in, sign-up and profile operations."""

import logging
from datetime import UTC, datetime
from typing import Any

from shareit_shared import Preferences, UserProfile
from shareit_shared.storage import profile_picture_path

from .actions import Operation
from .auth import AuthClient
from .backend import FirestoreBackend
from .cache import LocalCache
from .errors import InputValidationError, NotFoundError
from .operations import OperationResult, in_thread, run_operation
from .reducers import SignedIn
from .state import UserSession
from .store import Store
from .validation import (
    validate_display_name,
    validate_email,
    validate_image,
    validate_password,
    validate_text,
)

logger = logging.getLogger(__name__)

EDITABLE_PROFILE_FIELDS = frozenset({"display_name", "bio", "location", "preferences"})


def default_profile(user: UserSession) -> UserProfile:
    now = datetime.now(UTC)
    return UserProfile(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        photo_url=user.photo_url,
        joined_at=now,
        last_active=now,
        preferences=Preferences(),
    )


async def sign_in(
    store: Store, auth: AuthClient, backend: FirestoreBackend, email: str, password: str
) -> OperationResult[SignedIn]:
    email = validate_email(email)
    if not password:
        raise InputValidationError("Password is required")

    async def call() -> SignedIn:
        user = await in_thread(auth.sign_in, email, password)
        try:
            profile = await in_thread(backend.get_profile, user.uid)
        except NotFoundError:
            logger.info("No profile for %s, creating the default one", user.uid)
            profile = await in_thread(backend.save_profile, default_profile(user))
        return SignedIn(user=user, profile=profile)

    return await run_operation(store, Operation.SIGN_IN, call, {"email": email})


async def sign_up(
    store: Store,
    auth: AuthClient,
    backend: FirestoreBackend,
    email: str,
    password: str,
    display_name: str,
) -> OperationResult[SignedIn]:
    email = validate_email(email)
    password = validate_password(password)
    display_name = validate_display_name(display_name)

    async def call() -> SignedIn:
        user = await in_thread(auth.sign_up, email, password, display_name)
        profile = await in_thread(backend.save_profile, default_profile(user))
        return SignedIn(user=user, profile=profile)

    return await run_operation(store, Operation.SIGN_UP, call, {"email": email})


async def sign_out(store: Store, cache: LocalCache | None = None) -> OperationResult[None]:
    """Forget the session. Cached data for the user is removed as well.

    A cache that cannot be cleared is logged; the sign-out still completes.
    """
    user = store.state.auth.user

    async def call() -> None:
        if cache is not None and user is not None:
            try:
                await in_thread(cache.clear_user, user.uid)
            except OSError:
                logger.exception("Could not remove cached data for %s", user.uid)

    return await run_operation(store, Operation.SIGN_OUT, call)


async def reset_password(store: Store, auth: AuthClient, email: str) -> OperationResult[None]:
    email = validate_email(email)

    async def call() -> None:
        await in_thread(auth.send_password_reset, email)

    return await run_operation(store, Operation.RESET_PASSWORD, call, {"email": email})


async def fetch_profile(
    store: Store, backend: FirestoreBackend, uid: str
) -> OperationResult[UserProfile]:
    async def call() -> UserProfile:
        return await in_thread(backend.get_profile, uid)

    return await run_operation(store, Operation.FETCH_PROFILE, call, {"uid": uid})


async def update_profile(
    store: Store, backend: FirestoreBackend, uid: str, **fields: Any
) -> OperationResult[UserProfile]:
    unknown = set(fields) - EDITABLE_PROFILE_FIELDS
    if unknown:
        raise InputValidationError(f"Cannot update {', '.join(sorted(unknown))}")
    if "display_name" in fields:
        fields["display_name"] = validate_display_name(fields["display_name"])
    if "bio" in fields:
        fields["bio"] = validate_text(fields["bio"], "Bio", 300, required=False)
    if "location" in fields:
        fields["location"] = validate_text(fields["location"], "Location", 100, required=False)
    if isinstance(fields.get("preferences"), Preferences):
        fields["preferences"] = fields["preferences"].model_dump()

    async def call() -> UserProfile:
        return await in_thread(backend.update_profile, uid, fields)

    return await run_operation(store, Operation.UPDATE_PROFILE, call, {"uid": uid})


async def update_profile_picture(
    store: Store, backend: FirestoreBackend, uid: str, data: bytes, content_type: str
) -> OperationResult[UserProfile]:
    """Upload profiles/{uid}/profile.jpg, then point the profile at it."""
    validate_image(data, content_type)

    async def call() -> UserProfile:
        url = await in_thread(backend.upload_object, profile_picture_path(uid), data, content_type)
        return await in_thread(backend.update_profile, uid, {"photo_url": url})

    return await run_operation(store, Operation.UPDATE_PROFILE, call, {"uid": uid})
