# src/schemas/notification.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

NotificationType = Literal["expense_added", "payment_settled", "payment_reminder"]


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    read: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
