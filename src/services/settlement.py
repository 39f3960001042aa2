# src/services/settlement.py
# -----------------------------------------------------------------------------
# ПОГАШЕНИЕ СПЛИТОВ
# -----------------------------------------------------------------------------
# Состояния: Unsettled -> Settled (терминальное, назад пути нет).
# Политика повторного settle: идемпотентный no-op - возвращаем сохранённую запись
# как есть (settled_at не меняется), новых уведомлений и broadcast не шлём.
# Гонку двух settle одного сплита разруливает условный UPDATE в хранилище:
# переход выполняет ровно один вызов, второй видит уже погашенную строку.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.services.ledger import LedgerStore
from src.services.notifications import BroadcastChannel

log = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SettlementCoordinator:
    def __init__(
        self,
        ledger: LedgerStore,
        channel: BroadcastChannel,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.ledger = ledger
        self.channel = channel
        self.clock = clock

    def settle(self, split_id: int) -> GroupExpenseSplitOut:
        """Гасит сплит. Неизвестный id -> NotFound; повторный вызов -> та же запись."""
        split, changed = self.ledger.mark_settled(split_id, self.clock())
        if not changed:
            log.info("split %s already settled at %s, no-op", split.id, split.settled_at)
            return split

        log.info("split %s settled: %s %s owed to %s", split.id, split.amount, split.currency_code, split.paid_by)
        self.channel.payment_settled(split)
        return split
