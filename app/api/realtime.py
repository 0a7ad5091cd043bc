import asyncio
import logging
import uuid

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from redis.exceptions import RedisError
from sqlalchemy import select

from app.api.deps import authenticate_token
from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.redis import create_async_redis_client
from app.models.workspaces import WorkspaceMember
from app.services.realtime_service import user_channel, workspace_channel

router = APIRouter(prefix="/api/realtime", tags=["realtime"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _resolve_channels(token: str | None, workspace_id: str | None) -> list[str] | None:
    if not token:
        return None
    with SessionLocal() as db:
        user = authenticate_token(token, db)
        if user is None:
            return None
        channels = [user_channel(user.id)]
        if workspace_id:
            try:
                ws_id = uuid.UUID(workspace_id)
            except ValueError:
                return None
            member = db.execute(
                select(WorkspaceMember).where(
                    WorkspaceMember.workspace_id == ws_id,
                    WorkspaceMember.user_id == user.id,
                )
            ).scalar_one_or_none()
            if member is None:
                return None
            channels.append(workspace_channel(ws_id))
        return channels


async def _drain_client(websocket: WebSocket) -> None:
    # Clients only listen; inbound frames are read so disconnects are noticed.
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def _stop_reader(reader: asyncio.Task) -> None:
    reader.cancel()
    (outcome,) = await asyncio.gather(reader, return_exceptions=True)
    if isinstance(outcome, Exception):
        logger.warning("Realtime client reader failed", exc_info=outcome)


@router.websocket("/ws")
async def realtime_ws(
    websocket: WebSocket,
    token: str | None = None,
    workspace_id: str | None = Query(default=None, alias="workspaceId"),
) -> None:
    channels = await run_in_threadpool(_resolve_channels, token, workspace_id)
    if channels is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not settings.redis_url:
        logger.info("Realtime websocket refused, redis is not configured")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    redis_client = create_async_redis_client()
    pubsub = redis_client.pubsub()
    reader = asyncio.create_task(_drain_client(websocket))
    try:
        await pubsub.subscribe(*channels)
        while not reader.done():
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is None:
                continue
            data = message["data"]
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            await websocket.send_text(data)
    except WebSocketDisconnect:
        pass
    except RedisError:
        logger.warning("Realtime relay for %s stopped", channels, exc_info=True)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        await _stop_reader(reader)
        await pubsub.unsubscribe()
        await pubsub.aclose()
        await redis_client.aclose()
