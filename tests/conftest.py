from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from rowkeeper.db.connection import SqlAlchemyConnection

from .helpers import SCHEMA, FakeConnection, Users


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine; every test gets a fresh database."""
    eng = create_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def sa_connection(engine: Engine) -> Iterator[Connection]:
    conn = engine.connect()
    for ddl in SCHEMA:
        conn.exec_driver_sql(ddl)
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def connection(sa_connection: Connection) -> SqlAlchemyConnection:
    return SqlAlchemyConnection(sa_connection)


@pytest.fixture
def users(connection: SqlAlchemyConnection) -> Users:
    return Users(connection)


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()
