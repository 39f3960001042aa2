"""Tests for expense creation: splitting, recording and fan-out in one call."""

import json
from decimal import Decimal

import pytest

from conftest import RecordingListener
from src.errors import Forbidden, PayerNotMember, ReferenceNotFound, SplitMismatch
from src.schemas.expense import ExpenseCreate
from src.schemas.group_expense_split import SplitShareIn
from src.services.expenses import ExpenseService


@pytest.fixture
def service(ledger, channel):
    return ExpenseService(ledger, channel)


def test_group_expense_splits_and_notifies(service, notifications, hub, trio):
    listener = RecordingListener()
    hub.connect(listener)
    payload = ExpenseCreate(amount="30.00", description="Dinner", category_id=trio["category"], group_id=trio["group"])

    expense = service.create_expense(payload, trio["a"])

    assert expense.paid_by == trio["a"]
    assert expense.currency_code == "USD"
    assert expense.split_type == "equal"
    assert [(s.user_id, s.amount) for s in expense.splits] == [
        (trio["b"], Decimal("10.00")),
        (trio["c"], Decimal("10.00")),
    ]
    for debtor in (trio["b"], trio["c"]):
        inbox = notifications.list_for_user(debtor)
        assert [n.type for n in inbox] == ["expense_added"]
    assert notifications.list_for_user(trio["a"]) == []

    event = json.loads(listener.messages[0])
    assert event["type"] == "expense_added"
    assert event["group_id"] == trio["group"]
    assert event["expense"]["id"] == expense.id


def test_explicit_payer_and_currency(service, trio):
    payload = ExpenseCreate(
        amount="9.00", description="Taxi", category_id=trio["category"], group_id=trio["group"],
        paid_by=trio["b"], currency_code="eur",
    )

    expense = service.create_expense(payload, trio["a"])

    assert expense.paid_by == trio["b"]
    assert expense.currency_code == "EUR"
    assert {s.user_id for s in expense.splits} == {trio["a"], trio["c"]}


def test_custom_split(service, trio):
    payload = ExpenseCreate(
        amount="100.00", description="Hotel", category_id=trio["category"], group_id=trio["group"],
        split_type="custom",
        shares=[
            SplitShareIn(user_id=trio["a"], amount="20.00"),
            SplitShareIn(user_id=trio["b"], amount="50.00"),
            SplitShareIn(user_id=trio["c"], amount="30.00"),
        ],
    )

    expense = service.create_expense(payload, trio["a"])

    assert expense.split_type == "custom"
    assert {s.user_id: s.amount for s in expense.splits} == {
        trio["b"]: Decimal("50.00"),
        trio["c"]: Decimal("30.00"),
    }


def test_custom_split_mismatch_writes_nothing(service, ledger, notifications, hub, trio):
    listener = RecordingListener()
    hub.connect(listener)
    payload = ExpenseCreate(
        amount="100.00", description="Hotel", category_id=trio["category"], group_id=trio["group"],
        split_type="custom",
        shares=[
            SplitShareIn(user_id=trio["b"], amount="49.99"),
            SplitShareIn(user_id=trio["c"], amount="49.99"),
        ],
    )

    with pytest.raises(SplitMismatch):
        service.create_expense(payload, trio["a"])

    assert ledger.count_rows() == (0, 0)
    assert notifications.list_for_user(trio["b"]) == []
    assert listener.messages == []


def test_payer_outside_group(service, ledger, trio):
    stranger = ledger.add_user()
    payload = ExpenseCreate(
        amount="10.00", description="x", category_id=trio["category"], group_id=trio["group"], paid_by=stranger,
    )

    with pytest.raises(PayerNotMember):
        service.create_expense(payload, trio["a"])

    assert ledger.count_rows() == (0, 0)


def test_caller_outside_group_is_forbidden(service, ledger, notifications, hub, trio):
    """Only a member may add an expense to a group, even naming a member as payer."""
    listener = RecordingListener()
    hub.connect(listener)
    stranger = ledger.add_user()
    payload = ExpenseCreate(
        amount="10.00", description="x", category_id=trio["category"], group_id=trio["group"], paid_by=trio["a"],
    )

    with pytest.raises(Forbidden):
        service.create_expense(payload, stranger)

    assert ledger.count_rows() == (0, 0)
    assert notifications.list_for_user(trio["b"]) == []
    assert listener.messages == []


def test_personal_expense_paid_by_someone_else_is_forbidden(service, ledger, trio):
    payload = ExpenseCreate(amount="5.00", description="x", category_id=trio["category"], paid_by=trio["b"])

    with pytest.raises(Forbidden):
        service.create_expense(payload, trio["a"])

    assert ledger.count_rows() == (0, 0)


def test_unknown_group(service, ids, trio):
    ghost = ids.to_stable_id("no-such-group")
    payload = ExpenseCreate(amount="10.00", description="x", category_id=trio["category"], group_id=ghost)

    with pytest.raises(ReferenceNotFound):
        service.create_expense(payload, trio["a"])


def test_personal_expense_is_silent(service, notifications, hub, trio):
    listener = RecordingListener()
    hub.connect(listener)
    payload = ExpenseCreate(amount="12.40", description="Lunch", category_id=trio["category"])

    expense = service.create_expense(payload, trio["a"])

    assert expense.group_id is None
    assert expense.split_type is None
    assert expense.splits == []
    assert listener.messages == []
    assert notifications.list_for_user(trio["a"]) == []


def test_custom_without_shares_rejected_by_schema(trio):
    with pytest.raises(ValueError):
        ExpenseCreate(
            amount="10.00", description="x", category_id=trio["category"], group_id=trio["group"],
            split_type="custom",
        )
