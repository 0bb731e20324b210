"""Cloud Functions entry point: registers the ShareIt triggers."""

from typing import Any

import firebase_admin  # type: ignore[import-untyped]
from firebase_admin import firestore, storage  # type: ignore[import-untyped]
from firebase_functions import firestore_fn, options, storage_fn

from shareit_functions import notifications, photos
from shareit_functions.messaging import FcmSender

MAX_INSTANCES = 10

firebase_admin.initialize_app()
options.set_global_options(max_instances=MAX_INSTANCES)


def _directory() -> notifications.Directory:
    return notifications.Directory(firestore.client())


def _data(snapshot: Any) -> dict[str, Any]:
    if snapshot is None:
        return {}
    return snapshot.to_dict() or {}


@firestore_fn.on_document_updated(document="widgets/{widgetId}")
def send_widget_share_notification(
    event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot | None]],
) -> None:
    notifications.handle_widget_shared(
        event.params["widgetId"],
        _data(event.data.before),
        _data(event.data.after),
        _directory(),
        FcmSender(),
    )


@firestore_fn.on_document_created(document="friends/{friendshipId}")
def send_friend_request_notification(
    event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None],
) -> None:
    notifications.handle_friend_request_created(
        event.params["friendshipId"], _data(event.data), _directory(), FcmSender()
    )


@firestore_fn.on_document_updated(document="friends/{friendshipId}")
def send_friend_accepted_notification(
    event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot | None]],
) -> None:
    notifications.handle_friend_request_accepted(
        event.params["friendshipId"],
        _data(event.data.before),
        _data(event.data.after),
        _directory(),
        FcmSender(),
    )


@firestore_fn.on_document_created(document="chats/{chatId}/messages/{messageId}")
def send_chat_notification(
    event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None],
) -> None:
    notifications.handle_chat_message_created(
        event.params["chatId"],
        event.params["messageId"],
        _data(event.data),
        _directory(),
        FcmSender(),
    )


@storage_fn.on_object_finalized()
def generate_thumbnail(event: storage_fn.CloudEvent[storage_fn.StorageObjectData]) -> None:
    obj = event.data
    photos.generate_thumbnail(storage.bucket(obj.bucket), obj.name)


@storage_fn.on_object_finalized()
def process_photo_upload(event: storage_fn.CloudEvent[storage_fn.StorageObjectData]) -> None:
    obj = event.data
    photos.record_photo_upload(
        firestore.client(), obj.bucket, obj.name, obj.size, obj.content_type
    )


@firestore_fn.on_document_deleted(document="photos/{photoId}")
def cleanup_photo_files(
    event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None],
) -> None:
    photos.cleanup_photo_files(storage.bucket(), event.params["photoId"], _data(event.data))
