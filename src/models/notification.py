# src/models/notification.py
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, text
from src.db import Base, new_key


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_key)

    # получатель
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    # 'expense_added' | 'payment_settled' | 'payment_reminder'
    type = Column(String(32), nullable=False)

    title = Column(String, nullable=False)
    message = Column(String, nullable=False)

    read = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type} user={self.user_id} read={self.read}>"
