# src/models/expense_category.py
# МОДЕЛЬ СПРАВОЧНИКА КАТЕГОРИЙ: name, icon, color, created_at. Уникальность по name.

from __future__ import annotations

from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from ..db import Base, new_key


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"

    id = Column(String(36), primary_key=True, default=new_key)

    name = Column(String(64), nullable=False, comment="Название категории")

    # Код иконки для фронта (например, 'fas fa-car')
    icon = Column(String, nullable=False, comment="Иконка категории")

    color = Column(String(7), nullable=False, comment="Цвет категории (HEX)")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("name", name="uq_expense_categories_name"),
    )
