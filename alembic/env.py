# alembic/env.py

from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

# --- Base и ВСЕ МОДЕЛИ регистрируются импортом src.db (см. хвост модуля) ---
# DATABASE_URL (с .env и дефолтом на локальный SQLite) берём оттуда же.
from src.db import Base, DATABASE_URL

# --- Конфигурируем Alembic ---
config = context.config

# --- Логирование Alembic ---
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# --- Target metadata для Alembic ---
target_metadata = Base.metadata

db_url = DATABASE_URL


def run_migrations_offline():
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=db_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(
        db_url,
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
