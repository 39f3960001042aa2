# src/schemas/group.py
# Группа глазами ядра сплитов: только то, что нужно для создания расхода.
from typing import List

from pydantic import BaseModel, Field


class GroupOut(BaseModel):
    id: int
    name: str
    description: str = ""
    default_currency_code: str = "USD"
    member_ids: List[int] = Field(default_factory=list, description="stable id участников, по возрастанию")

    class Config:
        from_attributes = True
