"""Cloud Storage object path rules shared by the client and the functions."""

import hashlib
import posixpath

SHARED_PHOTOS_PREFIX = "shared-photos/"
PROFILES_PREFIX = "profiles/"
THUMBNAIL_PREFIX = "thumb_"


def photo_object_path(user_id: str, file_name: str) -> str:
    """shared-photos/{userId}/{fileName}"""
    return f"{SHARED_PHOTOS_PREFIX}{user_id}/{file_name}"


def profile_picture_path(uid: str) -> str:
    return f"{PROFILES_PREFIX}{uid}/profile.jpg"


def thumbnail_path(path: str) -> str:
    """Companion thumbnail path, in the same directory as the original."""
    directory, file_name = posixpath.split(path)
    return posixpath.join(directory, THUMBNAIL_PREFIX + file_name)


def is_thumbnail(path: str) -> bool:
    return posixpath.basename(path).startswith(THUMBNAIL_PREFIX)


def is_shared_photo(path: str) -> bool:
    """True for originals under shared-photos/{userId}/{fileName}."""
    if not path.startswith(SHARED_PHOTOS_PREFIX):
        return False
    parts = path.split("/")
    return len(parts) == 3 and all(parts) and not is_thumbnail(path)


def parse_photo_path(path: str) -> tuple[str, str]:
    """Split a shared photo path into (user_id, file_name)."""
    if not is_shared_photo(path):
        raise ValueError(f"Not a shared photo path: {path}")
    _, user_id, file_name = path.split("/")
    return user_id, file_name


def photo_id_for(path: str) -> str:
    """Deterministic photos/{id} for an uploaded object.

    The client and the upload trigger derive the same id, so both write the
    same metadata document.
    """
    return hashlib.sha1(path.encode("utf-8")).hexdigest()[:20]


def public_url(bucket: str, path: str) -> str:
    return f"https://storage.googleapis.com/{bucket}/{path}"
