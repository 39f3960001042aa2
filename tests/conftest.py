"""Shared fixtures: in-memory stores, a SQLite-backed session and a wired FastAPI app."""

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db import Base, get_db, new_key
from src.deps import get_ledger, get_notification_store
from src.main import create_app
from src.models.expense_category import ExpenseCategory
from src.models.group import Group
from src.models.group_member import GroupMember
from src.models.user import User
from src.services.broadcast import BroadcastHub
from src.services.identity import IdentityMap
from src.services.memory_store import InMemoryLedgerStore, InMemoryNotificationStore
from src.services.notifications import BroadcastChannel
from src.utils.telegram_dep import get_current_user_id

TEST_USER_HEADER = "x-test-user"


class RecordingListener:
    """Listener that keeps every message it was sent."""

    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)


class BrokenListener:
    """Listener whose connection is already gone."""

    def send(self, message):
        raise ConnectionError("socket closed")


def _user_from_header(request: Request) -> int:
    return int(request.headers[TEST_USER_HEADER])


def as_user(user_id):
    return {TEST_USER_HEADER: str(user_id)}


@pytest.fixture
def ids():
    return IdentityMap()


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def ledger(ids):
    return InMemoryLedgerStore(ids)


@pytest.fixture
def notifications(ids):
    return InMemoryNotificationStore(ids)


@pytest.fixture
def channel(notifications, hub):
    return BroadcastChannel(notifications, hub)


@pytest.fixture
def trio(ledger):
    """Three users (payer first), a category and a group of all three, ids as a client would list them."""
    a, b, c = ledger.add_user(), ledger.add_user(), ledger.add_user()
    ledger.add_category()
    ledger.add_group([a, b, c], name="Trip")
    category = ledger.list_categories()[0].id
    group = ledger.list_groups_for_user(a)[0].id
    return {"a": a, "b": b, "c": c, "category": category, "group": group}


def _wire(app, ids, hub):
    app.state.identity_map = ids
    app.state.hub = hub
    app.dependency_overrides[get_current_user_id] = _user_from_header


@pytest.fixture
def client(ids, hub, ledger, notifications):
    """App on in-memory stores; the caller is picked with the x-test-user header."""
    app = create_app()
    _wire(app, ids, hub)
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_notification_store] = lambda: notifications
    with TestClient(app) as c:
        yield c


# ----- SQLite ----------------------------------------------------------------

@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return sessionmaker(bind=sql_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _persist_trio(db):
    users = [User(id=new_key(), telegram_id=1000 + i, name=name) for i, name in enumerate(("Ann", "Bob", "Cid"))]
    db.add_all(users)
    db.flush()
    category = ExpenseCategory(id=new_key(), name="Food & Dining", icon="fas fa-utensils", color="#3B82F6")
    group = Group(id=new_key(), name="Trip", created_by=users[0].id, default_currency_code="EUR")
    db.add_all([category, group])
    db.flush()
    db.add_all([GroupMember(id=new_key(), group_id=group.id, user_id=u.id) for u in users])
    db.commit()
    return users, category, group


@pytest.fixture
def sql_trio(db, ids):
    """Same fixture as trio, but persisted through the ORM."""
    users, category, group = _persist_trio(db)
    return {
        "a": ids.to_stable_id(users[0].id),
        "b": ids.to_stable_id(users[1].id),
        "c": ids.to_stable_id(users[2].id),
        "category": ids.to_stable_id(category.id),
        "group": ids.to_stable_id(group.id),
    }


@pytest.fixture
def sql_users(db, ids):
    """Rows of sql_trio, but only the user ids are known, as after Telegram login."""
    users, _, _ = _persist_trio(db)
    return [ids.to_stable_id(u.id) for u in users]


@pytest.fixture
def sql_client(ids, hub, session_factory):
    """App on the real SQL stores over the in-memory SQLite database."""
    app = create_app()
    _wire(app, ids, hub)

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as c:
        yield c
