"""Push delivery through Firebase Cloud Messaging."""

import logging
from typing import Protocol

from firebase_admin import messaging  # type: ignore[import-untyped]
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PushMessage(BaseModel):
    """One push to one device. `data` values must be strings."""

    token: str
    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)


class PushSender(Protocol):
    def send(self, message: PushMessage) -> str: ...


class FcmSender:
    """Sends pushes with the default firebase_admin app."""

    def send(self, message: PushMessage) -> str:
        message_id = messaging.send(
            messaging.Message(
                token=message.token,
                notification=messaging.Notification(title=message.title, body=message.body),
                data=message.data,
            )
        )
        logger.debug("Sent %s push: %s", message.data.get("type"), message_id)
        return message_id
