# src/routers/splits.py
# РОУТЕР: Сплиты текущего пользователя + погашение
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from src.deps import get_ledger, get_settlement_coordinator
from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.services.ledger import LedgerStore
from src.services.settlement import SettlementCoordinator
from src.utils.telegram_dep import get_current_user_id

router = APIRouter()


@router.get("/", response_model=List[GroupExpenseSplitOut])
def list_my_splits(
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    """Все сплиты (погашенные и нет), где текущий пользователь - должник."""
    return ledger.list_splits_owed_by(current_user_id)


@router.patch("/{split_id}/settle", response_model=GroupExpenseSplitOut)
def settle_split(
    split_id: int,
    ledger: LedgerStore = Depends(get_ledger),
    coordinator: SettlementCoordinator = Depends(get_settlement_coordinator),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Погашение сплита. Может должник или плательщик.
    Повторный вызов для погашенного сплита - no-op, отдаём ту же запись.
    """
    split = ledger.get_split(split_id)
    if current_user_id not in (split.user_id, split.paid_by):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the debtor or the payer can settle")
    return coordinator.settle(split_id)
