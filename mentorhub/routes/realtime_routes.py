import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from mentorhub.services.realtime import ChangeEvent, feed

router = APIRouter(tags=['realtime'])

logger = logging.getLogger(__name__)

REALTIME_TABLES = ('mentors', 'mentor_availability', 'mentor_sessions')


@router.websocket('/{table}')
async def stream_table_changes(websocket: WebSocket, table: str) -> None:
    if table not in REALTIME_TABLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()

    def enqueue(change: ChangeEvent) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, change)

    with feed.subscribe(table, enqueue):
        await websocket.accept()
        receiver = asyncio.create_task(websocket.receive_text())
        sender = None
        try:
            while True:
                sender = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if sender in done:
                    await websocket.send_json(sender.result().as_payload())
                else:
                    sender.cancel()
                if receiver in done:
                    # Client messages are ignored; this only surfaces disconnects.
                    receiver.result()
                    receiver = asyncio.create_task(websocket.receive_text())
        except WebSocketDisconnect:
            logger.info('Realtime client left %s feed', table)
        finally:
            receiver.cancel()
            if sender is not None:
                sender.cancel()
