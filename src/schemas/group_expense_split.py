# src/schemas/group_expense_split.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: GroupExpenseSplit (доли должников)
# -----------------------------------------------------------------------------
# Все id - стабильные int из IdentityMap, а не ключи хранилища.
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, condecimal

# Денежное поле; точность (2 знака) проверяет движок сплитов, а не схема
Money = condecimal(max_digits=12)


class SplitShareIn(BaseModel):
    user_id: int = Field(..., description="ID участника группы")
    amount: Money = Field(..., description="Доля участника (для split_type='custom')")


class GroupExpenseSplitOut(BaseModel):
    id: int
    expense_id: int
    user_id: int = Field(..., description="Кто должен")
    paid_by: int = Field(..., description="Кому должен (плательщик расхода)")
    amount: Decimal
    currency_code: str
    settled: bool = False
    settled_at: Optional[datetime] = None

    class Config:
        from_attributes = True
