"""Tests for the storage triggers: thumbnails, upload records and cleanup."""

import io

import pytest
from PIL import Image

from shareit_functions.photos import (
    THUMBNAIL_CACHE_CONTROL,
    THUMBNAIL_SIZE,
    cleanup_photo_files,
    generate_thumbnail,
    record_photo_upload,
)
from shareit_shared.storage import photo_id_for

from firestore_fakes import FIXED_NOW, FakeBucket, FakeFirestore

PATH = "shared-photos/alice/1714560000000.png"
BUCKET = "shareit-test.appspot.com"


def png_bytes(size: tuple[int, int] = (640, 480)) -> bytes:
    out = io.BytesIO()
    Image.new("RGBA", size, (200, 30, 30, 255)).save(out, format="PNG")
    return out.getvalue()


class TestGenerateThumbnail:
    def test_creates_cover_cropped_jpeg(self, bucket: FakeBucket) -> None:
        bucket.objects[PATH] = png_bytes()

        thumb_path = generate_thumbnail(bucket, PATH)

        assert thumb_path == "shared-photos/alice/thumb_1714560000000.png"
        blob = bucket.uploaded[thumb_path]
        assert blob.content_type == "image/jpeg"
        assert blob.cache_control == THUMBNAIL_CACHE_CONTROL
        with Image.open(io.BytesIO(bucket.objects[thumb_path])) as thumb:
            assert thumb.format == "JPEG"
            assert thumb.size == THUMBNAIL_SIZE

    @pytest.mark.parametrize(
        "path",
        [
            "profiles/alice/profile.jpg",
            "shared-photos/alice/thumb_1714560000000.png",
            "shared-photos/alice/nested/file.png",
        ],
    )
    def test_skips_other_objects(self, bucket: FakeBucket, path: str) -> None:
        bucket.objects[path] = png_bytes()
        assert generate_thumbnail(bucket, path) is None
        assert bucket.uploaded == {}

    def test_unreadable_image_is_logged_not_raised(self, bucket: FakeBucket) -> None:
        bucket.objects[PATH] = b"not an image"
        assert generate_thumbnail(bucket, PATH) is None
        assert bucket.uploaded == {}

    def test_missing_object(self, bucket: FakeBucket) -> None:
        assert generate_thumbnail(bucket, PATH) is None


class TestRecordPhotoUpload:
    def test_creates_record_and_counts_once(self, db: FakeFirestore) -> None:
        db.collection("users").document("alice").set({"stats": {"photosShared": 2}})

        photo_id = record_photo_upload(db, BUCKET, PATH, "2048", "image/png")

        assert photo_id == photo_id_for(PATH)
        record = db.doc(f"photos/{photo_id}")
        assert record is not None
        assert record["userId"] == "alice"
        assert record["fileName"] == "1714560000000.png"
        assert record["url"] == f"https://storage.googleapis.com/{BUCKET}/{PATH}"
        assert record["thumbnail"].endswith("/shared-photos/alice/thumb_1714560000000.png")
        assert record["size"] == 2048
        assert record["createdAt"] == FIXED_NOW
        assert db.doc("users/alice")["stats"]["photosShared"] == 3

    def test_redelivered_event_does_not_double_count(self, db: FakeFirestore) -> None:
        record_photo_upload(db, BUCKET, PATH, 2048, "image/png")
        record_photo_upload(db, BUCKET, PATH, 2048, "image/png")

        assert db.doc("users/alice")["stats"]["photosShared"] == 1
        assert [p for p in db.docs if p.startswith("photos/")] == [f"photos/{photo_id_for(PATH)}"]

    def test_merges_into_client_written_record(self, db: FakeFirestore) -> None:
        photo_id = photo_id_for(PATH)
        db.collection("photos").document(photo_id).set(
            {"userId": "alice", "caption": "sunset", "sharedWith": ["bob"], "likes": []}
        )

        record_photo_upload(db, BUCKET, PATH, 2048, "image/png")

        record = db.doc(f"photos/{photo_id}")
        assert record["caption"] == "sunset"
        assert record["sharedWith"] == ["bob"]
        assert record["contentType"] == "image/png"

    def test_ignores_thumbnails(self, db: FakeFirestore) -> None:
        assert record_photo_upload(db, BUCKET, "shared-photos/alice/thumb_x.png") is None
        assert db.docs == {}


class TestCleanupPhotoFiles:
    def test_deletes_original_and_thumbnail(self, bucket: FakeBucket) -> None:
        bucket.objects[PATH] = b"original"
        bucket.objects["shared-photos/alice/thumb_1714560000000.png"] = b"thumb"

        deleted = cleanup_photo_files(
            bucket, "p1", {"userId": "alice", "fileName": "1714560000000.png"}
        )

        assert len(deleted) == 2
        assert bucket.objects == {}

    def test_missing_files_are_tolerated(self, bucket: FakeBucket) -> None:
        bucket.objects[PATH] = b"original"

        deleted = cleanup_photo_files(
            bucket, "p1", {"userId": "alice", "fileName": "1714560000000.png"}
        )

        assert deleted == [PATH]

    def test_failure_on_one_file_still_deletes_the_other(self, bucket: FakeBucket) -> None:
        thumb = "shared-photos/alice/thumb_1714560000000.png"
        bucket.objects[PATH] = b"original"
        bucket.objects[thumb] = b"thumb"
        bucket.fail_deletes.add(PATH)

        deleted = cleanup_photo_files(
            bucket, "p1", {"userId": "alice", "fileName": "1714560000000.png"}
        )

        assert deleted == [thumb]
        assert PATH in bucket.objects

    def test_record_without_file(self, bucket: FakeBucket) -> None:
        assert cleanup_photo_files(bucket, "p1", {"userId": "alice"}) == []
