# src/routers/expense_categories.py
# РОУТЕР КАТЕГОРИЙ:
# - GET /api/expense-categories/ → массив ExpenseCategoryOut (по имени)
# Справочник - единственный путь, которым клиент узнаёт id категории.
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from src.deps import get_ledger
from src.schemas.expense_category import ExpenseCategoryOut
from src.services.ledger import LedgerStore
from src.utils.telegram_dep import get_current_user_id  # тот же guard, что и в других ручках

router = APIRouter()


@router.get("/", response_model=List[ExpenseCategoryOut])
def list_categories(
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    return ledger.list_categories()
