# src/services/identity.py
# -----------------------------------------------------------------------------
# СЛОЙ СТАБИЛЬНЫХ ID
# -----------------------------------------------------------------------------
# Ключи хранилища - непрозрачные строки (UUID). Клиентам отдаём маленькие int:
#   • первый раз увиденный ключ получает следующий номер счётчика (1, 2, 3, ...);
#   • дальше ключ <-> номер - биекция до конца жизни процесса;
#   • после рестарта нумерация строится заново (переживать рестарт не обязаны).
# Экземпляр один на процесс: создаётся в main.create_app() и передаётся
# во все хранилища явно (никаких модульных глобалов).
# -----------------------------------------------------------------------------

from __future__ import annotations

import threading
from typing import Dict, Hashable

from src.errors import NotFound


class IdentityMap:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 1
        self._by_key: Dict[Hashable, int] = {}
        self._by_id: Dict[int, Hashable] = {}

    def to_stable_id(self, native_key: Hashable) -> int:
        """Возвращает стабильный id ключа; для нового ключа выделяет следующий номер."""
        # быстрый путь без блокировки: чтение dict атомарно
        sid = self._by_key.get(native_key)
        if sid is not None:
            return sid
        with self._lock:
            # перепроверка под локом: ключ мог зарегистрировать соседний поток
            sid = self._by_key.get(native_key)
            if sid is None:
                sid = self._next_id
                self._next_id += 1
                self._by_id[sid] = native_key
                self._by_key[native_key] = sid
            return sid

    def to_native_key(self, stable_id: int) -> Hashable:
        try:
            return self._by_id[stable_id]
        except KeyError:
            raise NotFound(f"Unknown id {stable_id}") from None

    def __len__(self) -> int:
        return len(self._by_key)
