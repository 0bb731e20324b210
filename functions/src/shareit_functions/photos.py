"""Storage triggers for shared photos: thumbnails, metadata records, cleanup."""

import io
import logging
from typing import Any

from google.api_core.exceptions import AlreadyExists, NotFound  # type: ignore[import-untyped]
from google.cloud.firestore import SERVER_TIMESTAMP, Client, Increment  # type: ignore[import-untyped]
from google.cloud.storage import Bucket  # type: ignore[import-untyped]
from PIL import Image, ImageOps

from shareit_shared.storage import (
    is_shared_photo,
    parse_photo_path,
    photo_id_for,
    photo_object_path,
    public_url,
    thumbnail_path,
)

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (300, 300)
THUMBNAIL_QUALITY = 80
THUMBNAIL_CACHE_CONTROL = "public, max-age=31536000"


def make_thumbnail(data: bytes) -> bytes:
    """Cover-crop an image to THUMBNAIL_SIZE and encode it as JPEG."""
    with Image.open(io.BytesIO(data)) as image:
        image = ImageOps.exif_transpose(image)
        thumb = ImageOps.fit(image.convert("RGB"), THUMBNAIL_SIZE, Image.Resampling.LANCZOS)
    out = io.BytesIO()
    thumb.save(out, format="JPEG", quality=THUMBNAIL_QUALITY)
    return out.getvalue()


def generate_thumbnail(bucket: Bucket, path: str) -> str | None:
    """Write thumb_{file} next to a newly uploaded shared photo.

    Returns the thumbnail path, or None when the object is skipped or fails.
    """
    if not is_shared_photo(path):
        logger.debug("Not a shared photo, skipping thumbnail: %s", path)
        return None
    try:
        data = bucket.blob(path).download_as_bytes()
        thumb_path = thumbnail_path(path)
        blob = bucket.blob(thumb_path)
        blob.cache_control = THUMBNAIL_CACHE_CONTROL
        blob.upload_from_string(make_thumbnail(data), content_type="image/jpeg")
        logger.info("Thumbnail created: %s", thumb_path)
        return thumb_path
    except Exception:
        logger.exception("Error creating thumbnail for %s", path)
        return None


def record_photo_upload(
    db: Client,
    bucket_name: str,
    path: str,
    size: int | str | None = None,
    content_type: str | None = None,
) -> str | None:
    """Create or complete the photos/{id} record for an uploaded object.

    The id is derived from the object path, so a record the client already
    wrote is merged rather than duplicated. stats.photosShared is bumped once
    per object: a processedUploads marker is created in the same batch, and
    a retried event fails on the existing marker.
    """
    if not is_shared_photo(path):
        return None
    try:
        user_id, file_name = parse_photo_path(path)
        photo_id = photo_id_for(path)
        storage_fields = {
            "url": public_url(bucket_name, path),
            "thumbnail": public_url(bucket_name, thumbnail_path(path)),
            "size": int(size) if size is not None else None,
            "contentType": content_type,
            "updatedAt": SERVER_TIMESTAMP,
        }
        photo_ref = db.collection("photos").document(photo_id)
        try:
            photo_ref.create(
                {
                    "userId": user_id,
                    "fileName": file_name,
                    "caption": "",
                    "sharedWith": [],
                    "likes": [],
                    "comments": [],
                    "createdAt": SERVER_TIMESTAMP,
                    **storage_fields,
                }
            )
        except AlreadyExists:
            photo_ref.set(storage_fields, merge=True)

        user_ref = db.collection("users").document(user_id)
        batch = db.batch()
        batch.create(
            user_ref.collection("processedUploads").document(photo_id),
            {"path": path, "processedAt": SERVER_TIMESTAMP},
        )
        batch.set(
            user_ref,
            {"stats": {"photosShared": Increment(1)}, "updatedAt": SERVER_TIMESTAMP},
            merge=True,
        )
        try:
            batch.commit()
        except AlreadyExists:
            logger.info("Upload %s already counted for %s", photo_id, user_id)
        else:
            logger.info("Photo %s recorded for user %s", photo_id, user_id)
        return photo_id
    except Exception:
        logger.exception("Error recording upload %s", path)
        return None


def cleanup_photo_files(bucket: Bucket, photo_id: str, photo_data: dict[str, Any]) -> list[str]:
    """Delete the original and thumbnail of a deleted photo record.

    Each delete is attempted independently. Returns the paths removed.
    """
    user_id = photo_data.get("userId")
    file_name = photo_data.get("fileName")
    if not user_id or not file_name:
        logger.warning("Photo %s has no stored file, nothing to clean up", photo_id)
        return []

    original = photo_object_path(user_id, file_name)
    deleted = []
    for path in (original, thumbnail_path(original)):
        try:
            bucket.blob(path).delete()
            deleted.append(path)
        except NotFound:
            logger.warning("Already gone: %s", path)
        except Exception:
            logger.exception("Error deleting %s", path)
    logger.info("Cleaned up %d files for photo %s", len(deleted), photo_id)
    return deleted
