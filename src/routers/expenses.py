# src/routers/expenses.py
# -----------------------------------------------------------------------------
# РОУТЕР: Расходы (создание с делением на участников группы + чтение)
# -----------------------------------------------------------------------------
# Доменные ошибки (InvalidAmount, SplitMismatch, ReferenceNotFound, ...) здесь
# не ловим - их переводит в HTTP обработчик LedgerError из main.py.
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from src.deps import get_expense_service, get_ledger
from src.schemas.expense import ExpenseCreate, ExpenseOut
from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.services.expenses import ExpenseService
from src.services.ledger import LedgerStore
from src.utils.telegram_dep import get_current_user_id

router = APIRouter()


def _require_participant(expense: ExpenseOut, user_id: int) -> None:
    """Смотреть расход может плательщик или любой из должников."""
    if expense.paid_by == user_id:
        return
    if any(s.user_id == user_id for s in expense.splits):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant of this expense")


@router.post("/", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: ExpenseCreate,
    service: ExpenseService = Depends(get_expense_service),
    current_user_id: int = Depends(get_current_user_id),
):
    return service.create_expense(payload, current_user_id)


@router.get("/", response_model=List[ExpenseOut])
def list_my_expenses(
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    """Расходы, которые оплатил текущий пользователь (новые сверху)."""
    return ledger.list_expenses_for_user(current_user_id)


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: int,
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    expense = ledger.get_expense(expense_id)
    _require_participant(expense, current_user_id)
    return expense


@router.get("/{expense_id}/splits", response_model=List[GroupExpenseSplitOut])
def list_expense_splits(
    expense_id: int,
    ledger: LedgerStore = Depends(get_ledger),
    current_user_id: int = Depends(get_current_user_id),
):
    _require_participant(ledger.get_expense(expense_id), current_user_id)
    return ledger.list_splits_for_expense(expense_id)
