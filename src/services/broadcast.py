# src/services/broadcast.py
# -----------------------------------------------------------------------------
# REAL-TIME FAN-OUT
# -----------------------------------------------------------------------------
# BroadcastHub - процессный набор слушателей:
#   • connect/disconnect меняют набор под локом;
#   • broadcast снимает снапшот под локом и рассылает уже без него;
#   • доставка best-effort: слушатель, у которого send упал, выкидывается,
#     ошибкой для вызывающего это не считается (догонит по Notification).
# Фильтрации по получателю НЕТ: все подключённые получают все события.
#
# Хаб транспорт-агностичен: слушатель - любой объект с send(message: str).
# Для WebSocket есть QueueListener: кладёт сообщение в asyncio.Queue соединения
# через call_soon_threadsafe (синхронные ручки FastAPI работают в threadpool).
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Protocol

from pydantic import BaseModel

log = logging.getLogger(__name__)

# сколько неотправленных сообщений может скопиться у одного сокета
MAX_PENDING = 1000


class Listener(Protocol):
    def send(self, message: str) -> None: ...


class BroadcastHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: set = set()

    def connect(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.add(listener)
        log.debug("listener connected, total=%d", len(self))

    def disconnect(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.discard(listener)
        log.debug("listener disconnected, total=%d", len(self))

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def broadcast(self, event: BaseModel) -> int:
        """Рассылает событие всем подключённым. Возвращает число успешных send."""
        message = event.model_dump_json()
        with self._lock:
            snapshot: List[Listener] = list(self._listeners)

        delivered = 0
        for listener in snapshot:
            try:
                listener.send(message)
                delivered += 1
            except Exception as e:
                log.debug("dropping listener %r: %s", listener, e)
                self.disconnect(listener)
        return delivered


class QueueListener:
    """Мост хаб -> WebSocket: сообщения копятся в очереди соединения, их отправляет pump-задача."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    def send(self, message: str) -> None:
        # переполнение или закрытый цикл (RuntimeError) - хаб выкинет слушателя
        if self.queue.qsize() >= MAX_PENDING:
            raise OverflowError(f"{MAX_PENDING} messages pending")
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)
