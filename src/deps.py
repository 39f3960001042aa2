# src/deps.py
# Сборка сервисов ядра для FastAPI (Depends).
#   • IdentityMap и BroadcastHub - по одному на процесс, живут в app.state;
#   • хранилища - на запрос, поверх сессии get_db.
# Тесты подменяют get_ledger / get_notification_store на in-memory реализации
# через app.dependency_overrides - остальная цепочка не меняется.

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from src.db import get_db
from src.services.broadcast import BroadcastHub
from src.services.expenses import ExpenseService
from src.services.identity import IdentityMap
from src.services.ledger import LedgerStore, SqlLedgerStore
from src.services.notifications import BroadcastChannel, NotificationStore, SqlNotificationStore
from src.services.settlement import SettlementCoordinator


def get_identity_map(conn: HTTPConnection) -> IdentityMap:
    return conn.app.state.identity_map


def get_hub(conn: HTTPConnection) -> BroadcastHub:
    return conn.app.state.hub


def get_ledger(
    db: Session = Depends(get_db),
    ids: IdentityMap = Depends(get_identity_map),
) -> LedgerStore:
    return SqlLedgerStore(db, ids)


def get_notification_store(
    db: Session = Depends(get_db),
    ids: IdentityMap = Depends(get_identity_map),
) -> NotificationStore:
    return SqlNotificationStore(db, ids)


def get_channel(
    notifications: NotificationStore = Depends(get_notification_store),
    hub: BroadcastHub = Depends(get_hub),
) -> BroadcastChannel:
    return BroadcastChannel(notifications, hub)


def get_expense_service(
    ledger: LedgerStore = Depends(get_ledger),
    channel: BroadcastChannel = Depends(get_channel),
) -> ExpenseService:
    return ExpenseService(ledger, channel)


def get_settlement_coordinator(
    ledger: LedgerStore = Depends(get_ledger),
    channel: BroadcastChannel = Depends(get_channel),
) -> SettlementCoordinator:
    return SettlementCoordinator(ledger, channel)
