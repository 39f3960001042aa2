# src/services/notifications.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db import new_key
from src.errors import NotFound, ReferenceNotFound
from src.models.notification import Notification
from src.models.user import User
from src.schemas.event import ExpenseAddedEvent, PaymentSettledEvent
from src.schemas.expense import ExpenseOut
from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.schemas.notification import NotificationOut
from src.services.broadcast import BroadcastHub
from src.services.identity import IdentityMap
from src.utils.money import money_str

log = logging.getLogger(__name__)

# Типы уведомлений (они же типы real-time событий, где событие есть)
EXPENSE_ADDED = "expense_added"
PAYMENT_SETTLED = "payment_settled"
PAYMENT_REMINDER = "payment_reminder"


class NotificationStore(Protocol):
    def create_many(self, recipients: Sequence[int], type: str, title: str, message: str) -> List[NotificationOut]: ...

    def create(self, recipient: int, type: str, title: str, message: str) -> NotificationOut: ...

    def list_for_user(self, user_id: int) -> List[NotificationOut]: ...

    def get(self, notification_id: int) -> NotificationOut: ...

    def mark_read(self, notification_id: int) -> NotificationOut: ...


class SqlNotificationStore:
    def __init__(self, db: Session, ids: IdentityMap):
        self.db = db
        self.ids = ids

    def _out(self, row: Notification) -> NotificationOut:
        return NotificationOut(
            id=self.ids.to_stable_id(row.id),
            user_id=self.ids.to_stable_id(row.user_id),
            type=row.type,
            title=row.title,
            message=row.message,
            read=bool(row.read),
            created_at=row.created_at,
        )

    def _user_key(self, user_id: int) -> str:
        try:
            key = self.ids.to_native_key(user_id)
        except NotFound:
            raise ReferenceNotFound(f"user {user_id} not found") from None
        if self.db.get(User, key) is None:
            raise ReferenceNotFound(f"user {user_id} not found")
        return key

    def create_many(self, recipients: Sequence[int], type: str, title: str, message: str) -> List[NotificationOut]:
        """Одна запись на получателя, всё одним commit."""
        keys = [self._user_key(uid) for uid in recipients]
        now = datetime.now(timezone.utc)
        rows = [
            Notification(id=new_key(), user_id=key, type=type, title=title, message=message, read=False, created_at=now)
            for key in keys
        ]
        try:
            self.db.add_all(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return [self._out(r) for r in rows]

    def create(self, recipient: int, type: str, title: str, message: str) -> NotificationOut:
        return self.create_many([recipient], type, title, message)[0]

    def list_for_user(self, user_id: int) -> List[NotificationOut]:
        user_key = self.ids.to_native_key(user_id)
        rows = self.db.scalars(
            select(Notification)
            .where(Notification.user_id == user_key)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        ).all()
        return [self._out(r) for r in rows]

    def _row(self, notification_id: int) -> Notification:
        key = self.ids.to_native_key(notification_id)
        row = self.db.get(Notification, key)
        if row is None:
            raise NotFound(f"Notification {notification_id} not found")
        return row

    def get(self, notification_id: int) -> NotificationOut:
        return self._out(self._row(notification_id))

    def mark_read(self, notification_id: int) -> NotificationOut:
        """Идемпотентно: повторная отметка ничего не меняет."""
        row = self._row(notification_id)
        if not row.read:
            row.read = True
            self.db.commit()
        return self._out(row)


class BroadcastChannel:
    """
    Единая точка доставки событий ядра. Оба пути срабатывают на каждое событие:
      1) durable - строки Notification для затронутых пользователей;
      2) ephemeral - broadcast всем подключённым слушателям.
    Вызывается ТОЛЬКО после commit записи в Ledger Store.
    """

    def __init__(self, notifications: NotificationStore, hub: BroadcastHub):
        self.notifications = notifications
        self.hub = hub

    def expense_added(self, expense: ExpenseOut) -> None:
        recipients = [s.user_id for s in expense.splits]
        if recipients:
            self.notifications.create_many(
                recipients,
                EXPENSE_ADDED,
                "New group expense",
                f"\"{expense.description}\": {money_str(expense.amount)} {expense.currency_code}",
            )
        delivered = self.hub.broadcast(ExpenseAddedEvent(expense=expense, group_id=expense.group_id))
        log.info("expense_added %s: notified=%d, delivered=%d", expense.id, len(recipients), delivered)

    def payment_settled(self, split: GroupExpenseSplitOut) -> None:
        self.notifications.create(
            split.paid_by,
            PAYMENT_SETTLED,
            "Payment settled",
            f"A split of {money_str(split.amount)} {split.currency_code} has been settled",
        )
        delivered = self.hub.broadcast(PaymentSettledEvent(split=split))
        log.info("payment_settled %s: delivered=%d", split.id, delivered)

    def payment_reminder(self, user_id: int, total: Decimal, count: int, currency_code: str) -> NotificationOut:
        # напоминания - только durable, в real-time канал не идут
        return self.notifications.create(
            user_id,
            PAYMENT_REMINDER,
            "Payment reminder",
            f"You have {count} unsettled split(s) totalling {money_str(total)} {currency_code}",
        )
