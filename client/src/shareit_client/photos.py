"""Photo operations: upload, feed, likes, comments and deletion."""

import logging
import mimetypes
import time
import uuid
from datetime import UTC, datetime
from typing import Iterable

from shareit_shared import Comment, Photo
from shareit_shared.storage import photo_id_for, photo_object_path, public_url, thumbnail_path

from .actions import Operation
from .backend import FirestoreBackend
from .errors import ForbiddenError
from .operations import OperationResult, in_thread, run_operation
from .store import Store
from .validation import MAX_CAPTION_LENGTH, MAX_COMMENT_LENGTH, validate_image, validate_text

logger = logging.getLogger(__name__)


def _file_name(content_type: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ".jpg"
    if extension == ".jpe":
        extension = ".jpg"
    return f"{int(time.time() * 1000)}{extension}"


async def upload_photo(
    store: Store,
    backend: FirestoreBackend,
    bucket_name: str,
    user_id: str,
    data: bytes,
    content_type: str,
    caption: str = "",
    shared_with: Iterable[str] = (),
) -> OperationResult[Photo]:
    """Upload the image, then write its metadata record.

    Fulfilled only once both writes succeed. The thumbnail URL points at the
    object the thumbnail trigger will produce.
    """
    validate_image(data, content_type)
    caption = validate_text(caption, "Caption", MAX_CAPTION_LENGTH, required=False)
    recipients = [uid for uid in dict.fromkeys(shared_with) if uid != user_id]
    file_name = _file_name(content_type)
    path = photo_object_path(user_id, file_name)

    async def call() -> Photo:
        url = await in_thread(backend.upload_object, path, data, content_type)
        photo = Photo(
            id=photo_id_for(path),
            user_id=user_id,
            file_name=file_name,
            url=url,
            thumbnail=public_url(bucket_name, thumbnail_path(path)),
            caption=caption,
            shared_with=recipients,
            created_at=datetime.now(UTC),
            size=len(data),
            content_type=content_type,
        )
        try:
            return await in_thread(backend.save_photo, photo)
        except Exception:
            logger.error("Metadata write failed, %s is stored without a photo record", path)
            raise

    return await run_operation(
        store, Operation.UPLOAD_PHOTO, call, {"user_id": user_id, "path": path}
    )


async def fetch_photos(
    store: Store, backend: FirestoreBackend, user_id: str, limit: int = 50
) -> OperationResult[list[Photo]]:
    async def call() -> list[Photo]:
        return await in_thread(backend.list_visible_photos, user_id, limit)

    return await run_operation(store, Operation.FETCH_PHOTOS, call, {"user_id": user_id})


async def like_photo(
    store: Store, backend: FirestoreBackend, photo_id: str, user_id: str
) -> OperationResult[list[str]]:
    """Like a photo. The like shows immediately and is rolled back on failure."""

    async def call() -> list[str]:
        return await in_thread(backend.add_like, photo_id, user_id)

    return await run_operation(
        store, Operation.LIKE_PHOTO, call, {"photo_id": photo_id, "user_id": user_id}
    )


async def unlike_photo(
    store: Store, backend: FirestoreBackend, photo_id: str, user_id: str
) -> OperationResult[list[str]]:
    """Withdraw a like, optimistically like like_photo."""

    async def call() -> list[str]:
        return await in_thread(backend.remove_like, photo_id, user_id)

    return await run_operation(
        store, Operation.UNLIKE_PHOTO, call, {"photo_id": photo_id, "user_id": user_id}
    )


async def toggle_like(
    store: Store, backend: FirestoreBackend, photo_id: str, user_id: str
) -> OperationResult[list[str]]:
    """Like the photo, or unlike it if the user already likes it."""
    photo = store.state.photos.get(photo_id)
    if photo is not None and user_id in photo.likes:
        return await unlike_photo(store, backend, photo_id, user_id)
    return await like_photo(store, backend, photo_id, user_id)


async def add_comment(
    store: Store, backend: FirestoreBackend, photo_id: str, user_id: str, text: str
) -> OperationResult[Comment]:
    text = validate_text(text, "Comment", MAX_COMMENT_LENGTH)
    comment = Comment(
        id=uuid.uuid4().hex,
        user_id=user_id,
        text=text,
        created_at=datetime.now(UTC),
    )

    async def call() -> Comment:
        return await in_thread(backend.add_comment, photo_id, comment)

    return await run_operation(store, Operation.ADD_COMMENT, call, {"photo_id": photo_id})


async def delete_photo(
    store: Store, backend: FirestoreBackend, photo: Photo, user_id: str
) -> OperationResult[str]:
    """Delete the record, then the original image.

    The thumbnail (and the original, if this delete fails) is removed by the
    photo cleanup trigger.
    """

    async def call() -> str:
        if photo.user_id != user_id:
            raise ForbiddenError("Only the owner can delete a photo")
        await in_thread(backend.delete_photo, photo.id)
        if photo.file_name:
            path = photo_object_path(photo.user_id, photo.file_name)
            try:
                await in_thread(backend.delete_object, path)
            except Exception:
                logger.warning("Could not delete %s, leaving it to the cleanup trigger", path)
        return photo.id

    return await run_operation(store, Operation.DELETE_PHOTO, call, {"photo_id": photo.id})
