# src/schemas/expense.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: Expense
# -----------------------------------------------------------------------------
# Цели:
#   • Типобезопасные входные/выходные модели для FastAPI.
#   • Сумму НЕ квантуем в схеме: положительность и 2 знака проверяет движок
#     сплитов (InvalidAmount).
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, constr, field_validator, model_validator

from src.schemas.group_expense_split import GroupExpenseSplitOut, Money, SplitShareIn


class ExpenseCreate(BaseModel):
    amount: Money
    description: constr(strip_whitespace=True, min_length=1)
    category_id: int

    # NULL - личный расход (не делится)
    group_id: Optional[int] = None

    # По умолчанию плательщик - текущий пользователь
    paid_by: Optional[int] = None

    split_type: Literal["equal", "custom"] = "equal"
    shares: Optional[List[SplitShareIn]] = None

    # Валюта (если не пришла - берём дефолт группы, для личных - USD)
    currency_code: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("currency_code")
    @classmethod
    def _normalize_currency_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        if v == "":
            return None
        v = v.upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency code must be 3 letters (ISO 4217)")
        return v

    @model_validator(mode="after")
    def _require_shares_when_needed(self):
        """
        Для split_type='custom' нужен список долей. Сверку суммы долей с amount
        делает движок сплитов (SplitMismatch).
        """
        if self.group_id is not None and self.split_type == "custom" and not self.shares:
            raise ValueError("split_type='custom' requires a non-empty 'shares' list")
        return self


class ExpenseDraft(BaseModel):
    """Расход после разрешения дефолтов, готовый к записи в хранилище."""
    amount: Decimal
    description: str
    category_id: int
    paid_by: int
    group_id: Optional[int] = None
    currency_code: str
    split_type: Optional[str] = None
    notes: Optional[str] = None


class ExpenseOut(BaseModel):
    id: int
    amount: Decimal
    description: str
    category_id: int
    paid_by: int
    group_id: Optional[int] = None
    currency_code: str
    split_type: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    splits: List[GroupExpenseSplitOut] = Field(default_factory=list)

    class Config:
        from_attributes = True
