"""Replay handlers for the mutations the client defers while offline."""
from __future__ import annotations

import logging
from typing import Any

from ..clients.backend_client import BackendClient
from ..constants import SEND_FRIEND_REQUEST, SEND_MESSAGE, UPLOAD_PHOTO
from .queue_processor import ActionHandler
from .offline_queue import QueuedAction

logger = logging.getLogger(__name__)


class InvalidActionPayload(ValueError):
    """Raised when a queued payload lacks the fields its handler needs."""


def _require(payload: Any, *fields: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidActionPayload("payload must be an object")
    missing = [name for name in fields if not payload.get(name)]
    if missing:
        raise InvalidActionPayload(f"payload missing {', '.join(missing)}")
    return payload


def build_default_handlers(client: BackendClient) -> dict[str, ActionHandler]:
    async def send_message(action: QueuedAction) -> None:
        payload = _require(action.payload, "conversation_id", "sender_id", "content")
        logger.info("Retrying message send for conversation %s", payload["conversation_id"])
        await client.send_message(
            conversation_id=str(payload["conversation_id"]),
            sender_id=str(payload["sender_id"]),
            content=str(payload["content"]),
            access_token=payload.get("access_token"),
        )

    async def upload_photo(action: QueuedAction) -> None:
        payload = _require(action.payload, "user_id", "image_base64")
        logger.info("Retrying photo upload for user %s", payload["user_id"])
        await client.upload_photo(
            user_id=str(payload["user_id"]),
            image_base64=str(payload["image_base64"]),
            content_type=str(payload.get("content_type") or "image/jpeg"),
            path=payload.get("path"),
            access_token=payload.get("access_token"),
        )

    async def send_friend_request(action: QueuedAction) -> None:
        payload = _require(action.payload, "user_id", "friend_id")
        logger.info("Retrying friend request %s -> %s", payload["user_id"], payload["friend_id"])
        await client.send_friend_request(
            user_id=str(payload["user_id"]),
            friend_id=str(payload["friend_id"]),
            access_token=payload.get("access_token"),
        )

    return {
        SEND_MESSAGE: send_message,
        UPLOAD_PHOTO: upload_photo,
        SEND_FRIEND_REQUEST: send_friend_request,
    }


__all__ = ["InvalidActionPayload", "build_default_handlers"]
