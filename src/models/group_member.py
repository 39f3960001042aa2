# src/models/group_member.py
# Модель участника группы + уникальность (group_id, user_id) + роль и дата вступления

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..db import Base, new_key


class GroupMember(Base):
    __tablename__ = "group_members"

    id = Column(String(36), primary_key=True, default=new_key)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    # 'owner' | 'member'
    role = Column(String(16), nullable=False, default="member")
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
        Index("ix_group_members_user", "user_id"),
    )

    group = relationship("Group")
    user = relationship("User")
