import logging
import queue

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from vetcare.auth.dependencies import user_from_token
from vetcare.core import config
from vetcare.database import get_db
from vetcare.models.veterinarian import Veterinarian
from vetcare.services.notifications import availability_channel, broadcaster, user_channel

logger = logging.getLogger(__name__)

router = APIRouter(tags=['realtime'])

SUBSCRIBED = 'subscribed'


async def _forward_events(websocket: WebSocket, subscriber: queue.Queue) -> None:
    while True:
        try:
            message = await run_in_threadpool(subscriber.get, timeout=config.REALTIME_POLL_SECONDS)
        except queue.Empty:
            continue
        await websocket.send_json(message)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message['type'] == 'websocket.disconnect':
            return


async def stream_channel(websocket: WebSocket, channel: str) -> None:
    """Relay every event published on ``channel`` until the client disconnects."""
    await websocket.accept()
    subscriber = broadcaster.subscribe(channel)
    try:
        await websocket.send_json({'event': SUBSCRIBED, 'data': {'channel': channel}})
        async with anyio.create_task_group() as task_group:
            task_group.start_soon(_forward_events, websocket, subscriber)
            await _wait_for_disconnect(websocket)
            task_group.cancel_scope.cancel()
    finally:
        broadcaster.unsubscribe(channel, subscriber)
        logger.info('Realtime subscriber left %s', channel)


def _user_id_for_token(token: str, db: Session) -> int | None:
    try:
        return user_from_token(token, db).id
    except HTTPException:
        return None
    finally:
        db.close()


def _veterinarian_exists(veterinarian_id: int, db: Session) -> bool:
    try:
        return db.query(Veterinarian.id).filter(Veterinarian.id == veterinarian_id).first() is not None
    finally:
        db.close()


@router.websocket('/ws/notifications')
async def notification_stream(websocket: WebSocket, token: str = Query(...), db: Session = Depends(get_db)):
    user_id = await run_in_threadpool(_user_id_for_token, token, db)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await stream_channel(websocket, user_channel(user_id))


@router.websocket('/ws/doctors/{veterinarian_id}/availability')
async def availability_stream(websocket: WebSocket, veterinarian_id: int, db: Session = Depends(get_db)):
    if not await run_in_threadpool(_veterinarian_exists, veterinarian_id, db):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await stream_channel(websocket, availability_channel(veterinarian_id))
