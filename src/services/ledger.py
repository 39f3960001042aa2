# src/services/ledger.py
# -----------------------------------------------------------------------------
# ХРАНИЛИЩЕ РАСХОДОВ И СПЛИТОВ (Ledger Store)
# -----------------------------------------------------------------------------
# Контракт LedgerStore один; реализаций две:
#   • SqlLedgerStore      - прод (SQLAlchemy-сессия на запрос);
#   • InMemoryLedgerStore - фейк для тестов (src/services/memory_store.py).
# Выбор - через FastAPI-зависимость get_ledger (src/deps.py).
#
# Гарантии:
#   • record_expense пишет расход и ВСЕ его сплиты одним commit; при любой ошибке
#     rollback - «расход без сплитов» или «сплиты без расхода» не видны никогда;
#   • ссылки (категория/плательщик/группа/должники) проверяются ДО записи;
#   • mark_settled - условный UPDATE ... WHERE settled = false: при гонке
#     переход выполняет ровно один вызов (first-committer-wins).
# Наружу отдаём только stable id (IdentityMap), ключи хранилища не светим.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.db import new_key
from src.errors import NotFound, ReferenceNotFound, SplitMismatch
from src.models.expense import Expense
from src.models.expense_category import ExpenseCategory
from src.models.group import Group
from src.models.group_expense_split import GroupExpenseSplit
from src.models.group_member import GroupMember
from src.models.user import User
from src.schemas.expense import ExpenseDraft, ExpenseOut
from src.schemas.expense_category import ExpenseCategoryOut
from src.schemas.group import GroupOut
from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.services.identity import IdentityMap
from src.services.splits import SplitShare

log = logging.getLogger(__name__)


class LedgerStore(Protocol):
    def get_group_member_ids(self, group_id: int) -> List[int]: ...

    def get_group_currency(self, group_id: int) -> str: ...

    def record_expense(self, draft: ExpenseDraft, splits: Sequence[SplitShare]) -> ExpenseOut: ...

    def get_expense(self, expense_id: int) -> ExpenseOut: ...

    def list_expenses_for_user(self, user_id: int) -> List[ExpenseOut]: ...

    def list_splits_for_expense(self, expense_id: int) -> List[GroupExpenseSplitOut]: ...

    def list_splits_owed_by(self, user_id: int) -> List[GroupExpenseSplitOut]: ...

    def get_split(self, split_id: int) -> GroupExpenseSplitOut: ...

    def mark_settled(self, split_id: int, at: datetime) -> Tuple[GroupExpenseSplitOut, bool]: ...

    def list_unsettled_splits(self, older_than: datetime) -> List[GroupExpenseSplitOut]: ...

    def list_categories(self) -> List[ExpenseCategoryOut]: ...

    def list_groups_for_user(self, user_id: int) -> List[GroupOut]: ...


class SqlLedgerStore:
    def __init__(self, db: Session, ids: IdentityMap):
        self.db = db
        self.ids = ids

    # ===== ключи <-> stable id ==============================================

    def _sid(self, key: Optional[str]) -> Optional[int]:
        return None if key is None else self.ids.to_stable_id(key)

    def _resolve(self, model, stable_id: int, what: str) -> str:
        """stable id -> ключ существующей строки; иначе ReferenceNotFound (до любой записи)."""
        try:
            key = self.ids.to_native_key(stable_id)
        except NotFound:
            raise ReferenceNotFound(f"{what} {stable_id} not found") from None
        if self.db.get(model, key) is None:
            raise ReferenceNotFound(f"{what} {stable_id} not found")
        return key

    # ===== сериализация ======================================================

    def _split_out(self, row: GroupExpenseSplit) -> GroupExpenseSplitOut:
        return GroupExpenseSplitOut(
            id=self._sid(row.id),
            expense_id=self._sid(row.expense_id),
            user_id=self._sid(row.user_id),
            paid_by=self._sid(row.expense.paid_by),
            amount=Decimal(str(row.amount)),
            currency_code=row.expense.currency_code,
            settled=bool(row.settled),
            settled_at=row.settled_at,
        )

    def _splits_sorted(self, rows) -> List[GroupExpenseSplitOut]:
        # порядок строк сплита = порядок должников по stable id
        rows = sorted(rows, key=lambda s: self._sid(s.user_id))
        return [self._split_out(s) for s in rows]

    def _expense_out(self, row: Expense) -> ExpenseOut:
        return ExpenseOut(
            id=self._sid(row.id),
            amount=Decimal(str(row.amount)),
            description=row.description,
            category_id=self._sid(row.category_id),
            paid_by=self._sid(row.paid_by),
            group_id=self._sid(row.group_id),
            currency_code=row.currency_code,
            split_type=row.split_type,
            notes=row.notes,
            created_at=row.created_at,
            splits=self._splits_sorted(row.splits or []),
        )

    @staticmethod
    def _split_row(expense_key: str, user_key: str, amount: Decimal) -> GroupExpenseSplit:
        return GroupExpenseSplit(id=new_key(), expense_id=expense_key, user_id=user_key, amount=amount, settled=False)

    # ===== чтение ============================================================

    def _member_ids(self, group_key: str) -> List[int]:
        rows = self.db.execute(
            select(GroupMember.user_id).where(GroupMember.group_id == group_key)
        ).all()
        return sorted(self.ids.to_stable_id(uid) for (uid,) in rows)

    def get_group_member_ids(self, group_id: int) -> List[int]:
        return self._member_ids(self._resolve(Group, group_id, "group"))

    def get_group_currency(self, group_id: int) -> str:
        group_key = self._resolve(Group, group_id, "group")
        return self.db.get(Group, group_key).default_currency_code or "USD"

    def _expense_row(self, expense_id: int) -> Expense:
        key = self.ids.to_native_key(expense_id)
        row = self.db.get(Expense, key)
        if row is None:
            raise NotFound(f"Expense {expense_id} not found")
        return row

    def get_expense(self, expense_id: int) -> ExpenseOut:
        return self._expense_out(self._expense_row(expense_id))

    def list_expenses_for_user(self, user_id: int) -> List[ExpenseOut]:
        user_key = self.ids.to_native_key(user_id)
        rows = self.db.scalars(
            select(Expense)
            .where(Expense.paid_by == user_key)
            .order_by(Expense.created_at.desc())
        ).all()
        return [self._expense_out(r) for r in rows]

    def list_splits_for_expense(self, expense_id: int) -> List[GroupExpenseSplitOut]:
        row = self._expense_row(expense_id)
        return self._splits_sorted(row.splits or [])

    def list_splits_owed_by(self, user_id: int) -> List[GroupExpenseSplitOut]:
        user_key = self.ids.to_native_key(user_id)
        rows = self.db.scalars(
            select(GroupExpenseSplit)
            .join(Expense, Expense.id == GroupExpenseSplit.expense_id)
            .where(GroupExpenseSplit.user_id == user_key)
            .order_by(Expense.created_at.desc())
        ).all()
        return [self._split_out(r) for r in rows]

    def get_split(self, split_id: int) -> GroupExpenseSplitOut:
        key = self.ids.to_native_key(split_id)
        row = self.db.get(GroupExpenseSplit, key)
        if row is None:
            raise NotFound(f"Split {split_id} not found")
        return self._split_out(row)

    def list_unsettled_splits(self, older_than: datetime) -> List[GroupExpenseSplitOut]:
        rows = self.db.scalars(
            select(GroupExpenseSplit)
            .join(Expense, Expense.id == GroupExpenseSplit.expense_id)
            .where(
                GroupExpenseSplit.settled.is_(False),
                Expense.created_at < older_than,
            )
            .order_by(Expense.created_at.asc())
        ).all()
        return [self._split_out(r) for r in rows]

    # справочники: здесь ключи категорий и групп впервые получают stable id

    def list_categories(self) -> List[ExpenseCategoryOut]:
        rows = self.db.scalars(select(ExpenseCategory).order_by(ExpenseCategory.name.asc())).all()
        return [
            ExpenseCategoryOut(id=self._sid(r.id), name=r.name, icon=r.icon, color=r.color)
            for r in rows
        ]

    def list_groups_for_user(self, user_id: int) -> List[GroupOut]:
        user_key = self.ids.to_native_key(user_id)
        rows = self.db.scalars(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.user_id == user_key)
            .order_by(Group.name.asc(), Group.created_at.asc())
        ).all()
        return [
            GroupOut(
                id=self._sid(g.id),
                name=g.name,
                description=g.description or "",
                default_currency_code=g.default_currency_code or "USD",
                member_ids=self._member_ids(g.id),
            )
            for g in rows
        ]

    # ===== запись ============================================================

    def record_expense(self, draft: ExpenseDraft, splits: Sequence[SplitShare]) -> ExpenseOut:
        if draft.group_id is None and splits:
            raise SplitMismatch("Personal expense cannot have splits")

        category_key = self._resolve(ExpenseCategory, draft.category_id, "category")
        payer_key = self._resolve(User, draft.paid_by, "payer")
        group_key = self._resolve(Group, draft.group_id, "group") if draft.group_id is not None else None
        owing = [(self._resolve(User, s.user_id, "user"), s.amount) for s in splits]

        expense = Expense(
            id=new_key(),
            amount=draft.amount,
            description=draft.description,
            category_id=category_key,
            paid_by=payer_key,
            group_id=group_key,
            currency_code=draft.currency_code,
            split_type=draft.split_type,
            notes=draft.notes,
        )
        try:
            self.db.add(expense)
            self.db.flush()
            self.db.add_all([self._split_row(expense.id, user_key, amount) for user_key, amount in owing])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        out = self.get_expense(self.ids.to_stable_id(expense.id))
        log.info("expense %s recorded: amount=%s %s, splits=%d", out.id, out.amount, out.currency_code, len(out.splits))
        return out

    def mark_settled(self, split_id: int, at: datetime) -> Tuple[GroupExpenseSplitOut, bool]:
        key = self.ids.to_native_key(split_id)
        if self.db.get(GroupExpenseSplit, key) is None:
            raise NotFound(f"Split {split_id} not found")

        res = self.db.execute(
            update(GroupExpenseSplit)
            .where(GroupExpenseSplit.id == key, GroupExpenseSplit.settled.is_(False))
            .values(settled=True, settled_at=at)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        row = self.db.get(GroupExpenseSplit, key)
        return self._split_out(row), res.rowcount == 1
