# src/services/expenses.py
# -----------------------------------------------------------------------------
# СОЗДАНИЕ РАСХОДА: расчёт сплитов -> запись -> уведомления -> broadcast
# -----------------------------------------------------------------------------
# Порядок важен:
#   1) все проверки (сумма, состав группы, политика деления) - до записи;
#   2) расход и сплиты пишутся одной транзакцией (LedgerStore.record_expense);
#   3) только после commit - durable уведомления и real-time событие.
# Личный расход (group_id = NULL) не делится и событий не порождает.
# Права: групповой расход заводит только участник группы; личный - только
# на себя (paid_by = текущий пользователь).
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import List, Optional

from src.errors import Forbidden
from src.schemas.expense import ExpenseCreate, ExpenseDraft, ExpenseOut
from src.services.ledger import LedgerStore
from src.services.notifications import BroadcastChannel
from src.services.splits import SplitPolicy, SplitShare, compute_splits, validate_amount

DEFAULT_CURRENCY = "USD"


class ExpenseService:
    def __init__(self, ledger: LedgerStore, channel: BroadcastChannel):
        self.ledger = ledger
        self.channel = channel

    def _resolve_currency(self, payload: ExpenseCreate) -> str:
        if payload.currency_code:
            return payload.currency_code
        if payload.group_id is not None:
            return self.ledger.get_group_currency(payload.group_id)
        return DEFAULT_CURRENCY

    def create_expense(self, payload: ExpenseCreate, current_user_id: int) -> ExpenseOut:
        amount = validate_amount(payload.amount)
        payer = payload.paid_by if payload.paid_by is not None else current_user_id

        splits: List[SplitShare] = []
        split_type: Optional[str] = None
        if payload.group_id is not None:
            member_ids = self.ledger.get_group_member_ids(payload.group_id)
            if current_user_id not in member_ids:
                raise Forbidden(f"User {current_user_id} is not a member of group {payload.group_id}")
            policy = SplitPolicy(payload.split_type)
            custom = [(s.user_id, s.amount) for s in (payload.shares or [])]
            splits = compute_splits(amount, payer, member_ids, policy, custom_amounts=custom or None)
            split_type = policy.value
        elif payer != current_user_id:
            raise Forbidden("A personal expense can only be paid by the current user")

        draft = ExpenseDraft(
            amount=amount,
            description=payload.description,
            category_id=payload.category_id,
            paid_by=payer,
            group_id=payload.group_id,
            currency_code=self._resolve_currency(payload),
            split_type=split_type,
            notes=payload.notes,
        )
        expense = self.ledger.record_expense(draft, splits)

        if expense.group_id is not None:
            self.channel.expense_added(expense)
        return expense
