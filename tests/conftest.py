# tests/conftest.py
import os

# Settings are read at import time, so the environment must be ready first.
os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = "sqlite:///./.pytest-unused.db"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_booking"
os.environ["STRIPE_PUBLISHABLE_KEY"] = "pk_test_booking"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_booking"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEFAULT_CURRENCY"] = "PHP"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.api import deps
from app.db.base_class import Base
from app.main import app
from app.utils.time import utcnow
from tests.utils.booking import create_test_area, create_test_rule, create_test_space


def _sqlite_engine(path, serialize_writers: bool = False):
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    if serialize_writers:
        # Every transaction takes the write lock up front, which gives the
        # same mutual exclusion SELECT ... FOR UPDATE gives on PostgreSQL.
        @event.listens_for(engine, "connect")
        def _disable_implicit_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine(tmp_path):
    engine = _sqlite_engine(tmp_path / "booking.db")
    yield engine
    engine.dispose()


@pytest.fixture
def serialized_engine(tmp_path):
    engine = _sqlite_engine(tmp_path / "booking-serialized.db", serialize_writers=True)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def future_start():
    """A start time on the hour, two days from now."""
    return (utcnow() + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)


@pytest.fixture
def space(db):
    return create_test_space(db)


@pytest.fixture
def rule(db, space):
    return create_test_rule(db, space)


@pytest.fixture
def area(db, space, rule):
    return create_test_area(db, space, rule)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
