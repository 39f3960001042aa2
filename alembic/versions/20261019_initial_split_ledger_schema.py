"""initial: users, groups, group_members, expense_categories, expenses, group_expense_splits, notifications

<описание: исходная схема ядра деления расходов; все первичные ключи - String(36) UUID>
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=False)

    op.create_table(
        "groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "default_currency_code",
            sa.String(3),
            nullable=False,
            server_default=sa.text("'USD'"),
            comment="Дефолтная валюта группы (ISO-4217, напр., 'USD')",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_groups_name", "groups", ["name"], unique=False)

    op.create_table(
        "group_members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default=sa.text("'member'")),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"], unique=False)
    op.create_index("ix_group_members_user", "group_members", ["user_id"], unique=False)

    op.create_table(
        "expense_categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False, comment="Название категории"),
        sa.Column("icon", sa.String(), nullable=False, comment="Иконка категории"),
        sa.Column("color", sa.String(7), nullable=False, comment="Цвет категории (HEX)"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name", name="uq_expense_categories_name"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, comment="Сумма расхода (NUMERIC(12,2), > 0)"),
        sa.Column("description", sa.String(), nullable=False, comment="Описание расхода"),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("expense_categories.id"), nullable=False),
        sa.Column("paid_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=True),
        sa.Column("currency_code", sa.String(3), nullable=False),
        sa.Column("split_type", sa.String(16), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_paid_by_created", "expenses", ["paid_by", "created_at"], unique=False)
    op.create_index("ix_expenses_group", "expenses", ["group_id"], unique=False)

    op.create_table(
        "group_expense_splits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("expense_id", sa.String(36), sa.ForeignKey("expenses.id"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("settled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
    )
    op.create_index("ix_splits_expense", "group_expense_splits", ["expense_id"], unique=False)
    op.create_index("ix_splits_user_settled", "group_expense_splits", ["user_id", "settled"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_splits_user_settled", table_name="group_expense_splits")
    op.drop_index("ix_splits_expense", table_name="group_expense_splits")
    op.drop_table("group_expense_splits")

    op.drop_index("ix_expenses_group", table_name="expenses")
    op.drop_index("ix_expenses_paid_by_created", table_name="expenses")
    op.drop_table("expenses")

    op.drop_table("expense_categories")

    op.drop_index("ix_group_members_user", table_name="group_members")
    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")

    op.drop_index("ix_groups_name", table_name="groups")
    op.drop_table("groups")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
