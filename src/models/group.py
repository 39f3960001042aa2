# src/models/group.py
# -----------------------------------------------------------------------------
# МОДЕЛЬ: Group (SQLAlchemy)
# -----------------------------------------------------------------------------
# CRUD групп - внешний коллаборатор; здесь только то, что читает ядро сплитов.

from __future__ import annotations

from sqlalchemy import Column, String, ForeignKey, DateTime, text, func
from sqlalchemy.orm import relationship

from ..db import Base, new_key


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=new_key)
    name = Column(String, nullable=False, index=True)
    description = Column(String, default="")

    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    creator = relationship("User")

    default_currency_code = Column(
        String(3),
        nullable=False,
        default="USD",
        server_default=text("'USD'"),
        comment="Дефолтная валюта группы (ISO-4217, напр., 'USD')",
    )

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
