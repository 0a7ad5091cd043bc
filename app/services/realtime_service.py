import json
import logging
import uuid
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def workspace_channel(workspace_id: uuid.UUID | str) -> str:
    return f"workspaces:{workspace_id}:events"


def user_channel(user_id: uuid.UUID | str) -> str:
    return f"users:{user_id}:events"


class RealtimePublisher:
    """Fire-and-forget event fan-out over redis pub/sub."""

    def __init__(self, redis_client: Redis | None):
        self.redis_client = redis_client

    def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        message = json.dumps({"type": event_type, "payload": jsonable_encoder(payload)})
        if self.redis_client is None:
            logger.debug("Realtime disabled, dropping %s on %s", event_type, channel)
            return
        try:
            self.redis_client.publish(channel, message)
        except RedisError:
            logger.warning("Failed to publish %s on %s", event_type, channel, exc_info=True)

    def to_workspace(
        self, workspace_id: uuid.UUID, event_type: str, payload: dict[str, Any]
    ) -> None:
        self.publish(workspace_channel(workspace_id), event_type, payload)

    def to_user(self, user_id: uuid.UUID, event_type: str, payload: dict[str, Any]) -> None:
        self.publish(user_channel(user_id), event_type, payload)


def get_realtime(request: Request) -> RealtimePublisher:
    publisher = getattr(request.app.state, "realtime", None)
    if publisher is None:
        raise RuntimeError("Realtime publisher is not configured on application state")
    return publisher
