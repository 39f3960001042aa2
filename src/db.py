# src/db.py
# Инициализация SQLAlchemy: движок, сессии, Base и явные импорты моделей.

from __future__ import annotations

import os
from uuid import uuid4

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./split_ledger.db")


def _engine_kwargs(url: str) -> dict:
    # SQLite (локальный запуск/тесты) не понимает параметры пула
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 20,
        "pool_timeout": 60,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def new_key() -> str:
    """Непрозрачный ключ хранилища (UUID4 строкой)."""
    return str(uuid4())


from src.models import (  # noqa: E402
    user,
    group,
    group_member,
    expense_category,
    expense,
    group_expense_split,
    notification,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
