# src/models/group_expense_split.py
# -----------------------------------------------------------------------------
# МОДЕЛЬ: GroupExpenseSplit (SQLAlchemy)
# -----------------------------------------------------------------------------
# Одна строка на (расход, участник-не-плательщик): сколько участник должен плательщику.
# Жизненный цикл: создаётся вместе с расходом, один раз переходит unsettled -> settled.

from __future__ import annotations

from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    Numeric,
    Boolean,
    DateTime,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from src.db import Base, new_key


class GroupExpenseSplit(Base):
    __tablename__ = "group_expense_splits"

    id = Column(String(36), primary_key=True, default=new_key)

    expense_id = Column(
        String(36),
        ForeignKey("expenses.id"),
        nullable=False,
        comment="ID расхода",
    )

    user_id = Column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        comment="Должник (участник группы, не плательщик)",
    )

    amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Сколько участник должен плательщику",
    )

    settled = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        comment="Погашено ли",
    )

    settled_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Когда погашено (UTC); NULL пока не погашено",
    )

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        Index("ix_splits_expense", "expense_id"),
        Index("ix_splits_user_settled", "user_id", "settled"),
    )

    expense = relationship("Expense", back_populates="splits", lazy="joined")
