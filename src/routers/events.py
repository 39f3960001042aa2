# src/routers/events.py
# REAL-TIME: WebSocket /ws
# -----------------------------------------------------------------------------
# Каждое соединение - слушатель BroadcastHub. Получает ВСЕ события
# (expense_added, payment_settled) без фильтра по получателю; клиент сам
# решает, что ему релевантно. Пропущенное за время офлайна - через
# GET /api/notifications.
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from src.deps import get_hub
from src.services.broadcast import BroadcastHub, QueueListener

log = logging.getLogger(__name__)

router = APIRouter()


async def _pump(websocket: WebSocket, listener: QueueListener, hub: BroadcastHub) -> None:
    try:
        while True:
            message = await listener.queue.get()
            await websocket.send_text(message)
    except WebSocketDisconnect:
        # клиент ушёл; основной цикл увидит disconnect сам
        return
    except Exception as e:
        # сокет сломан иначе: слушателя снимаем с хаба, соединение закрываем
        log.debug("ws send failed, dropping listener: %s", e)
        hub.disconnect(listener)
        with contextlib.suppress(RuntimeError):
            await websocket.close()


@router.websocket("/ws")
async def events_socket(websocket: WebSocket, hub: BroadcastHub = Depends(get_hub)):
    listener = QueueListener(asyncio.get_running_loop())
    # слушатель регистрируется до accept
    hub.connect(listener)
    sender = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_pump(websocket, listener, hub))
        while True:
            # входящие сообщения игнорируются, ждём disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(listener)
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
