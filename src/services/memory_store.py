# src/services/memory_store.py
# -----------------------------------------------------------------------------
# IN-MEMORY РЕАЛИЗАЦИИ ХРАНИЛИЩ (для тестов и локальных прогонов без БД)
# -----------------------------------------------------------------------------
# Тот же контракт, что у SqlLedgerStore / SqlNotificationStore:
#   • stable id наружу, непрозрачные ключи внутри (через тот же IdentityMap);
#   • record_expense сначала собирает все строки в «черновик», и только потом
#     публикует их под одним локом - частичной видимости нет;
#   • mark_settled проверяет-и-меняет флаг под локом (first-committer-wins).
# -----------------------------------------------------------------------------

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Sequence, Tuple

from src.db import new_key
from src.errors import NotFound, ReferenceNotFound, SplitMismatch
from src.schemas.expense import ExpenseDraft, ExpenseOut
from src.schemas.expense_category import ExpenseCategoryOut
from src.schemas.group import GroupOut
from src.schemas.group_expense_split import GroupExpenseSplitOut
from src.schemas.notification import NotificationOut
from src.services.identity import IdentityMap
from src.services.splits import SplitShare


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryLedgerStore:
    def __init__(self, ids: IdentityMap):
        self.ids = ids
        self._lock = threading.Lock()
        self._users: set = set()
        self._categories: Dict[str, dict] = {}
        self._groups: Dict[str, List[str]] = {}
        self._group_meta: Dict[str, dict] = {}
        self._expenses: Dict[str, dict] = {}
        self._splits: Dict[str, dict] = {}

    # ===== справочники (в проде их ведут внешние коллабораторы) ==============

    def add_user(self) -> int:
        key = new_key()
        with self._lock:
            self._users.add(key)
        return self.ids.to_stable_id(key)

    def add_category(self, name: str = "Food & Dining", icon: str = "fas fa-utensils", color: str = "#3B82F6") -> str:
        """Заводит категорию и возвращает её ключ; stable id она получит при чтении справочника."""
        key = new_key()
        with self._lock:
            self._categories[key] = {"name": name, "icon": icon, "color": color}
        return key

    def add_group(self, member_ids: Sequence[int], currency_code: str = "USD", name: str = "Group") -> str:
        """Заводит группу из уже известных пользователей и возвращает её ключ."""
        members = [self._resolve(self._users, uid, "user") for uid in member_ids]
        key = new_key()
        with self._lock:
            self._groups[key] = members
            self._group_meta[key] = {"name": name, "currency_code": currency_code, "seq": len(self._group_meta)}
        return key

    # ===== хелперы ===========================================================

    def _resolve(self, pool, stable_id: int, what: str) -> str:
        try:
            key = self.ids.to_native_key(stable_id)
        except NotFound:
            raise ReferenceNotFound(f"{what} {stable_id} not found") from None
        if key not in pool:
            raise ReferenceNotFound(f"{what} {stable_id} not found")
        return key

    def _split_out(self, row: dict) -> GroupExpenseSplitOut:
        expense = self._expenses[row["expense_id"]]
        return GroupExpenseSplitOut(
            id=self.ids.to_stable_id(row["id"]),
            expense_id=self.ids.to_stable_id(row["expense_id"]),
            user_id=self.ids.to_stable_id(row["user_id"]),
            paid_by=self.ids.to_stable_id(expense["paid_by"]),
            amount=row["amount"],
            currency_code=expense["currency_code"],
            settled=row["settled"],
            settled_at=row["settled_at"],
        )

    def _splits_of(self, expense_key: str) -> List[GroupExpenseSplitOut]:
        rows = [s for s in self._splits.values() if s["expense_id"] == expense_key]
        rows.sort(key=lambda s: self.ids.to_stable_id(s["user_id"]))
        return [self._split_out(s) for s in rows]

    def _expense_out(self, row: dict) -> ExpenseOut:
        group_key = row["group_id"]
        return ExpenseOut(
            id=self.ids.to_stable_id(row["id"]),
            amount=row["amount"],
            description=row["description"],
            category_id=self.ids.to_stable_id(row["category_id"]),
            paid_by=self.ids.to_stable_id(row["paid_by"]),
            group_id=None if group_key is None else self.ids.to_stable_id(group_key),
            currency_code=row["currency_code"],
            split_type=row["split_type"],
            notes=row["notes"],
            created_at=row["created_at"],
            splits=self._splits_of(row["id"]),
        )

    @staticmethod
    def _split_row(expense_key: str, user_key: str, amount: Decimal) -> dict:
        return {
            "id": new_key(),
            "expense_id": expense_key,
            "user_id": user_key,
            "amount": amount,
            "settled": False,
            "settled_at": None,
        }

    # ===== чтение ============================================================

    def get_group_member_ids(self, group_id: int) -> List[int]:
        group_key = self._resolve(self._groups, group_id, "group")
        with self._lock:
            members = list(self._groups[group_key])
        return sorted(self.ids.to_stable_id(k) for k in members)

    def get_group_currency(self, group_id: int) -> str:
        return self._group_meta[self._resolve(self._groups, group_id, "group")]["currency_code"]

    def list_categories(self) -> List[ExpenseCategoryOut]:
        with self._lock:
            items = sorted(self._categories.items(), key=lambda kv: kv[1]["name"])
        return [ExpenseCategoryOut(id=self.ids.to_stable_id(k), **v) for k, v in items]

    def list_groups_for_user(self, user_id: int) -> List[GroupOut]:
        user_key = self.ids.to_native_key(user_id)
        with self._lock:
            keys = [k for k, members in self._groups.items() if user_key in members]
            keys.sort(key=lambda k: (self._group_meta[k]["name"], self._group_meta[k]["seq"]))
            snapshot = [(k, self._group_meta[k], list(self._groups[k])) for k in keys]
        return [
            GroupOut(
                id=self.ids.to_stable_id(k),
                name=meta["name"],
                default_currency_code=meta["currency_code"],
                member_ids=sorted(self.ids.to_stable_id(m) for m in members),
            )
            for k, meta, members in snapshot
        ]

    def get_expense(self, expense_id: int) -> ExpenseOut:
        key = self.ids.to_native_key(expense_id)
        with self._lock:
            row = self._expenses.get(key)
            if row is None:
                raise NotFound(f"Expense {expense_id} not found")
            return self._expense_out(row)

    def list_expenses_for_user(self, user_id: int) -> List[ExpenseOut]:
        user_key = self.ids.to_native_key(user_id)
        with self._lock:
            rows = [e for e in self._expenses.values() if e["paid_by"] == user_key]
            rows.sort(key=lambda e: (e["created_at"], e["seq"]), reverse=True)
            return [self._expense_out(e) for e in rows]

    def list_splits_for_expense(self, expense_id: int) -> List[GroupExpenseSplitOut]:
        key = self.ids.to_native_key(expense_id)
        with self._lock:
            if key not in self._expenses:
                raise NotFound(f"Expense {expense_id} not found")
            return self._splits_of(key)

    def list_splits_owed_by(self, user_id: int) -> List[GroupExpenseSplitOut]:
        user_key = self.ids.to_native_key(user_id)
        with self._lock:
            rows = [s for s in self._splits.values() if s["user_id"] == user_key]
            rows.sort(key=lambda s: self._expenses[s["expense_id"]]["seq"], reverse=True)
            return [self._split_out(s) for s in rows]

    def get_split(self, split_id: int) -> GroupExpenseSplitOut:
        key = self.ids.to_native_key(split_id)
        with self._lock:
            row = self._splits.get(key)
            if row is None:
                raise NotFound(f"Split {split_id} not found")
            return self._split_out(row)

    def list_unsettled_splits(self, older_than: datetime) -> List[GroupExpenseSplitOut]:
        with self._lock:
            rows = [
                s for s in self._splits.values()
                if not s["settled"] and self._expenses[s["expense_id"]]["created_at"] < older_than
            ]
            rows.sort(key=lambda s: self._expenses[s["expense_id"]]["seq"])
            return [self._split_out(s) for s in rows]

    # ===== запись ============================================================

    def record_expense(self, draft: ExpenseDraft, splits: Sequence[SplitShare]) -> ExpenseOut:
        if draft.group_id is None and splits:
            raise SplitMismatch("Personal expense cannot have splits")

        category_key = self._resolve(self._categories, draft.category_id, "category")
        payer_key = self._resolve(self._users, draft.paid_by, "payer")
        group_key = self._resolve(self._groups, draft.group_id, "group") if draft.group_id is not None else None
        owing = [(self._resolve(self._users, s.user_id, "user"), s.amount) for s in splits]

        # черновик: ничего не видно снаружи, пока не опубликуем
        expense = {
            "id": new_key(),
            "amount": draft.amount,
            "description": draft.description,
            "category_id": category_key,
            "paid_by": payer_key,
            "group_id": group_key,
            "currency_code": draft.currency_code,
            "split_type": draft.split_type,
            "notes": draft.notes,
            "created_at": _utc_now(),
        }
        staged = [self._split_row(expense["id"], user_key, amount) for user_key, amount in owing]

        with self._lock:
            expense["seq"] = len(self._expenses)
            self._expenses[expense["id"]] = expense
            for row in staged:
                self._splits[row["id"]] = row

        return self.get_expense(self.ids.to_stable_id(expense["id"]))

    def mark_settled(self, split_id: int, at: datetime) -> Tuple[GroupExpenseSplitOut, bool]:
        key = self.ids.to_native_key(split_id)
        with self._lock:
            row = self._splits.get(key)
            if row is None:
                raise NotFound(f"Split {split_id} not found")
            changed = not row["settled"]
            if changed:
                row["settled"] = True
                row["settled_at"] = at
            return self._split_out(row), changed

    # ===== для тестов ========================================================

    def count_rows(self) -> Tuple[int, int]:
        with self._lock:
            return len(self._expenses), len(self._splits)


class InMemoryNotificationStore:
    def __init__(self, ids: IdentityMap):
        self.ids = ids
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._rows: Dict[str, dict] = {}

    def _out(self, row: dict) -> NotificationOut:
        return NotificationOut(
            id=self.ids.to_stable_id(row["id"]),
            user_id=self.ids.to_stable_id(row["user_id"]),
            type=row["type"],
            title=row["title"],
            message=row["message"],
            read=row["read"],
            created_at=row["created_at"],
        )

    def create_many(self, recipients: Sequence[int], type: str, title: str, message: str) -> List[NotificationOut]:
        try:
            keys = [self.ids.to_native_key(uid) for uid in recipients]
        except NotFound as e:
            raise ReferenceNotFound(e.message) from None
        now = _utc_now()
        rows = [
            {
                "id": new_key(),
                "user_id": key,
                "type": type,
                "title": title,
                "message": message,
                "read": False,
                "created_at": now,
            }
            for key in keys
        ]
        with self._lock:
            for row in rows:
                row["seq"] = next(self._seq)
                self._rows[row["id"]] = row
            return [self._out(r) for r in rows]

    def create(self, recipient: int, type: str, title: str, message: str) -> NotificationOut:
        return self.create_many([recipient], type, title, message)[0]

    def list_for_user(self, user_id: int) -> List[NotificationOut]:
        user_key = self.ids.to_native_key(user_id)
        with self._lock:
            rows = [r for r in self._rows.values() if r["user_id"] == user_key]
            rows.sort(key=lambda r: r["seq"], reverse=True)
            return [self._out(r) for r in rows]

    def get(self, notification_id: int) -> NotificationOut:
        key = self.ids.to_native_key(notification_id)
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFound(f"Notification {notification_id} not found")
            return self._out(row)

    def mark_read(self, notification_id: int) -> NotificationOut:
        key = self.ids.to_native_key(notification_id)
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFound(f"Notification {notification_id} not found")
            row["read"] = True
            return self._out(row)
