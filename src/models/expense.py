# src/models/expense.py
# -----------------------------------------------------------------------------
# МОДЕЛЬ: Expense (SQLAlchemy)
# -----------------------------------------------------------------------------
# Расход создаётся один раз и в ядре не меняется/не удаляется.
# group_id IS NULL - личный расход, сплитов у него нет.

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    Numeric,
    DateTime,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from src.db import Base, new_key


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=new_key)

    amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Сумма расхода (NUMERIC(12,2), > 0)",
    )

    description = Column(String, nullable=False, comment="Описание расхода")

    category_id = Column(
        String(36),
        ForeignKey("expense_categories.id"),
        nullable=False,
        comment="Категория расхода",
    )

    paid_by = Column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        comment="Кто оплатил всю сумму",
    )

    group_id = Column(
        String(36),
        ForeignKey("groups.id"),
        nullable=True,
        comment="Группа (NULL - личный расход)",
    )

    currency_code = Column(
        String(3),
        nullable=False,
        comment="Код валюты ISO-4217. Фиксируется на расходе.",
    )

    split_type = Column(
        String(16),
        nullable=True,
        comment="Тип деления ('equal', 'custom'); NULL для личных расходов",
    )

    notes = Column(String, nullable=True, comment="Заметки")

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        comment="Когда создана запись (ставит сервер)",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("ix_expenses_paid_by_created", "paid_by", "created_at"),
        Index("ix_expenses_group", "group_id"),
    )

    category = relationship("ExpenseCategory", lazy="joined")
    payer = relationship("User", foreign_keys=[paid_by], lazy="joined")

    splits = relationship(
        "GroupExpenseSplit",
        back_populates="expense",
        lazy="selectin",
        order_by="GroupExpenseSplit.id",
    )
