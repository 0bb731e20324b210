"""Friend request operations."""

from shareit_shared import Friendship, FriendshipStatus, UserProfile

from .actions import Operation
from .backend import FirestoreBackend
from .errors import ForbiddenError, InputValidationError, NotFoundError
from .operations import OperationResult, in_thread, run_operation
from .store import Store
from .validation import validate_email

MIN_SEARCH_LENGTH = 3


async def fetch_friends(
    store: Store, backend: FirestoreBackend, user_id: str
) -> OperationResult[list[Friendship]]:
    async def call() -> list[Friendship]:
        return await in_thread(backend.list_friendships, user_id)

    return await run_operation(store, Operation.FETCH_FRIENDS, call, {"user_id": user_id})


async def search_users(
    store: Store, backend: FirestoreBackend, user_id: str, term: str
) -> OperationResult[list[UserProfile]]:
    """Find people to befriend by email or display name prefix."""
    term = (term or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        raise InputValidationError(f"Search needs at least {MIN_SEARCH_LENGTH} characters")

    async def call() -> list[UserProfile]:
        return await in_thread(backend.search_users, term, user_id)

    return await run_operation(store, Operation.SEARCH_USERS, call, {"term": term})


async def send_friend_request(
    store: Store, backend: FirestoreBackend, user_id: str, recipient_email: str
) -> OperationResult[Friendship]:
    email = validate_email(recipient_email)

    async def call() -> Friendship:
        recipient = await in_thread(backend.find_user_by_email, email)
        if recipient is None:
            raise NotFoundError("User not found")
        if recipient.uid == user_id:
            raise InputValidationError("You can't send a friend request to yourself")
        if not recipient.preferences.privacy.allow_friend_requests:
            raise ForbiddenError("This user is not accepting friend requests")
        return await in_thread(backend.create_friendship, user_id, recipient.uid)

    return await run_operation(store, Operation.SEND_FRIEND_REQUEST, call, {"email": email})


async def _transition(
    store: Store,
    backend: FirestoreBackend,
    operation: Operation,
    friendship_id: str,
    user_id: str,
    target: FriendshipStatus,
) -> OperationResult[Friendship]:
    async def call() -> Friendship:
        return await in_thread(backend.transition_friendship, friendship_id, user_id, target)

    return await run_operation(store, operation, call, {"friendship_id": friendship_id})


async def accept_friend_request(
    store: Store, backend: FirestoreBackend, friendship_id: str, user_id: str
) -> OperationResult[Friendship]:
    return await _transition(
        store, backend, Operation.ACCEPT_FRIEND_REQUEST, friendship_id, user_id,
        FriendshipStatus.ACCEPTED,
    )


async def reject_friend_request(
    store: Store, backend: FirestoreBackend, friendship_id: str, user_id: str
) -> OperationResult[Friendship]:
    return await _transition(
        store, backend, Operation.REJECT_FRIEND_REQUEST, friendship_id, user_id,
        FriendshipStatus.REJECTED,
    )


async def remove_friend(
    store: Store, backend: FirestoreBackend, friendship_id: str, user_id: str
) -> OperationResult[Friendship]:
    return await _transition(
        store, backend, Operation.REMOVE_FRIEND, friendship_id, user_id,
        FriendshipStatus.REMOVED,
    )
