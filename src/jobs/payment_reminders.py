# src/jobs/payment_reminders.py
# НАПОМИНАНИЯ О НЕПОГАШЕННЫХ СПЛИТАХ (РАЗ В СУТКИ)
# -----------------------------------------------------------------------------
# Что делает этот модуль:
#   • Находит сплиты, которые:
#       - ещё не погашены (settled = false),
#       - висят дольше REMINDER_AFTER_DAYS дней (по created_at расхода);
#   • Группирует их по (должник, валюта) и создаёт ОДНО уведомление
#     payment_reminder на каждую пару с общей суммой и количеством.
#   • Напоминания durable-only: в WebSocket они не рассылаются.
#
# Как запускать:
#   Вариант А) Одноразовый прогон вручную:
#       >>> from src.jobs.payment_reminders import send_reminders_once
#       >>> send_reminders_once(IdentityMap(), BroadcastHub())
#
#   Вариант Б) Фоновая задача раз в сутки, стартует на FastAPI startup
#   при PAYMENT_REMINDERS_ENABLED=1 (см. src/main.py).

from __future__ import annotations

import asyncio
import logging
import os
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple

from src.db import SessionLocal
from src.services.broadcast import BroadcastHub
from src.services.identity import IdentityMap
from src.services.ledger import LedgerStore, SqlLedgerStore
from src.services.notifications import BroadcastChannel, SqlNotificationStore

log = logging.getLogger(__name__)

DEFAULT_REMINDER_AFTER_DAYS = 3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _after_days_from_env() -> int:
    raw = os.getenv("REMINDER_AFTER_DAYS")
    if not raw:
        return DEFAULT_REMINDER_AFTER_DAYS
    try:
        return max(0, int(raw))
    except ValueError:
        log.warning("REMINDER_AFTER_DAYS=%r is not an integer, using %d", raw, DEFAULT_REMINDER_AFTER_DAYS)
        return DEFAULT_REMINDER_AFTER_DAYS


def send_reminders(
    ledger: LedgerStore,
    channel: BroadcastChannel,
    *,
    now: datetime,
    after_days: int,
) -> dict:
    """Один проход по непогашенным сплитам. Возвращает сводку."""
    cutoff = now - timedelta(days=after_days)
    pending = ledger.list_unsettled_splits(cutoff)

    buckets: Dict[Tuple[int, str], list] = defaultdict(lambda: [Decimal("0"), 0])
    for split in pending:
        bucket = buckets[(split.user_id, split.currency_code)]
        bucket[0] += split.amount
        bucket[1] += 1

    reminded: list[int] = []
    for (user_id, currency_code), (total, count) in sorted(buckets.items()):
        channel.payment_reminder(user_id, total, count, currency_code)
        reminded.append(user_id)

    summary = {
        "splits_count": len(pending),
        "reminders_count": len(reminded),
        "user_ids": sorted(set(reminded)),
    }
    log.info("payment-reminders summary: %s", summary)
    return summary


def send_reminders_once(ids: IdentityMap, hub: BroadcastHub, after_days: Optional[int] = None) -> dict:
    """Одноразовый прогон на новой сессии БД."""
    if after_days is None:
        after_days = _after_days_from_env()
    with SessionLocal() as db:
        ledger = SqlLedgerStore(db, ids)
        channel = BroadcastChannel(SqlNotificationStore(db, ids), hub)
        return send_reminders(ledger, channel, now=_utc_now(), after_days=after_days)


async def _sleep_until_next_run(hour: int = 10, minute: int = 0) -> None:
    """Спит до следующего окна запуска (по времени сервера); если уже прошло - до завтра."""
    now = datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target = target + timedelta(days=1)
    await asyncio.sleep((target - now).total_seconds())


async def _loop_daily(ids: IdentityMap, hub: BroadcastHub) -> None:
    while True:
        try:
            await _sleep_until_next_run()
            # синхронная работа с БД - в пуле потоков
            await asyncio.to_thread(send_reminders_once, ids, hub)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("payment-reminders loop iteration failed")


def start_payment_reminder_loop(ids: IdentityMap, hub: BroadcastHub) -> None:
    """Запускает фоновую задачу в текущем asyncio-цикле (из FastAPI startup)."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # нет активного event loop - ничего не делаем
        return
    loop.create_task(_loop_daily(ids, hub))
