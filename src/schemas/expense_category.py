# src/schemas/expense_category.py
from pydantic import BaseModel


class ExpenseCategoryOut(BaseModel):
    id: int
    name: str
    icon: str
    color: str

    class Config:
        from_attributes = True
