"""Contract tests for the SQL stores on an in-memory SQLite database."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from src.errors import NotFound, ReferenceNotFound, SplitMismatch
from src.models.expense import Expense
from src.models.group_expense_split import GroupExpenseSplit
from src.schemas.expense import ExpenseDraft
from src.services.ledger import SqlLedgerStore
from src.services.notifications import SqlNotificationStore
from src.services.splits import SplitShare


@pytest.fixture
def store(db, ids):
    return SqlLedgerStore(db, ids)


def _draft(trio, **overrides):
    values = dict(
        amount=Decimal("30.00"),
        description="Dinner",
        category_id=trio["category"],
        paid_by=trio["a"],
        group_id=trio["group"],
        currency_code="EUR",
        split_type="equal",
    )
    values.update(overrides)
    return ExpenseDraft(**values)


def _shares(trio):
    return [SplitShare(trio["b"], Decimal("10.00")), SplitShare(trio["c"], Decimal("10.00"))]


def _row_counts(db):
    return (
        db.scalar(select(func.count()).select_from(Expense)),
        db.scalar(select(func.count()).select_from(GroupExpenseSplit)),
    )


def test_group_lookups(store, sql_trio):
    assert store.get_group_member_ids(sql_trio["group"]) == sorted(
        [sql_trio["a"], sql_trio["b"], sql_trio["c"]]
    )
    assert store.get_group_currency(sql_trio["group"]) == "EUR"



def test_lookups_assign_ids_on_first_read(db, ids, sql_users):
    store = SqlLedgerStore(db, ids)
    a, b, c = sql_users

    categories = store.list_categories()
    groups = store.list_groups_for_user(b)

    assert [(cat.name, cat.icon) for cat in categories] == [("Food & Dining", "fas fa-utensils")]
    assert [g.name for g in groups] == ["Trip"]
    assert groups[0].member_ids == [a, b, c]
    assert groups[0].default_currency_code == "EUR"
    assert store.get_group_member_ids(groups[0].id) == [a, b, c]
    assert store.list_categories()[0].id == categories[0].id


def test_record_and_read_back(store, sql_trio):
    expense = store.record_expense(_draft(sql_trio), _shares(sql_trio))

    assert expense.amount == Decimal("30.00")
    assert [s.user_id for s in expense.splits] == [sql_trio["b"], sql_trio["c"]]
    assert all(s.amount == Decimal("10.00") and s.currency_code == "EUR" for s in expense.splits)
    assert store.get_expense(expense.id).splits == expense.splits
    assert store.list_splits_for_expense(expense.id) == expense.splits
    assert [e.id for e in store.list_expenses_for_user(sql_trio["a"])] == [expense.id]
    assert [s.expense_id for s in store.list_splits_owed_by(sql_trio["c"])] == [expense.id]


def test_failed_split_insert_rolls_back_expense(store, db, sql_trio):
    """Two rows for one debtor violate the unique key; the expense must vanish with them."""
    duplicate = [SplitShare(sql_trio["b"], Decimal("10.00")), SplitShare(sql_trio["b"], Decimal("20.00"))]

    with pytest.raises(IntegrityError):
        store.record_expense(_draft(sql_trio), duplicate)

    assert _row_counts(db) == (0, 0)


def test_unknown_reference_checked_before_write(store, db, ids, sql_trio):
    ghost = ids.to_stable_id("missing-user-key")

    with pytest.raises(ReferenceNotFound):
        store.record_expense(_draft(sql_trio), [SplitShare(ghost, Decimal("30.00"))])

    assert _row_counts(db) == (0, 0)


def test_personal_expense_cannot_carry_splits(store, sql_trio):
    with pytest.raises(SplitMismatch):
        store.record_expense(_draft(sql_trio, group_id=None, split_type=None), _shares(sql_trio))


def test_mark_settled_is_conditional(store, sql_trio):
    split = store.record_expense(_draft(sql_trio), _shares(sql_trio)).splits[0]
    at = datetime(2026, 2, 1, 9, 30)

    first, changed = store.mark_settled(split.id, at)
    second, changed_again = store.mark_settled(split.id, at + timedelta(days=1))

    assert changed is True
    assert changed_again is False
    assert first.settled is True
    assert second.settled_at == first.settled_at
    assert store.get_split(split.id).settled is True


def test_mark_settled_unknown(store):
    with pytest.raises(NotFound):
        store.mark_settled(31337, datetime.now(timezone.utc))


def test_list_unsettled_splits(store, sql_trio):
    expense = store.record_expense(_draft(sql_trio), _shares(sql_trio))
    store.mark_settled(expense.splits[0].id, datetime.now(timezone.utc))

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    pending = store.list_unsettled_splits(later)

    assert [s.user_id for s in pending] == [sql_trio["c"]]
    assert store.list_unsettled_splits(datetime.now(timezone.utc) - timedelta(days=2)) == []


def test_sql_notifications(db, ids, sql_trio):
    notifications = SqlNotificationStore(db, ids)

    created = notifications.create_many(
        [sql_trio["b"], sql_trio["c"]], "expense_added", "New group expense", "Dinner"
    )
    read = notifications.mark_read(created[0].id)

    assert [n.user_id for n in created] == [sql_trio["b"], sql_trio["c"]]
    assert read.read is True
    assert [n.id for n in notifications.list_for_user(sql_trio["b"])] == [created[0].id]
    with pytest.raises(ReferenceNotFound):
        notifications.create(ids.to_stable_id("nobody"), "expense_added", "t", "m")
