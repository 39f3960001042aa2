# src/schemas/event.py
# События real-time канала. Отправляются ВСЕМ подключённым слушателям;
# фильтрация по релевантности - на клиенте.
from typing import Literal, Union

from pydantic import BaseModel

from src.schemas.expense import ExpenseOut
from src.schemas.group_expense_split import GroupExpenseSplitOut


class ExpenseAddedEvent(BaseModel):
    type: Literal["expense_added"] = "expense_added"
    expense: ExpenseOut
    group_id: int


class PaymentSettledEvent(BaseModel):
    type: Literal["payment_settled"] = "payment_settled"
    split: GroupExpenseSplitOut


BroadcastEvent = Union[ExpenseAddedEvent, PaymentSettledEvent]
