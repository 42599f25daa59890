from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from rowkeeper.config import DatabaseSettings, PersistenceConfig
from rowkeeper.db.connection import SqlAlchemyConnection
from rowkeeper.db.factory import EngineConnectionProvider, ManagerFactory
from rowkeeper.db.manager import TableManager
from rowkeeper.db.models import Record, TableDescriptor
from rowkeeper.errors import ConfigurationError

from ..helpers import SCHEMA


class Accounts(TableManager):
    descriptor = TableDescriptor(
        table_name="users",
        columns={"id": "i", "name": "s", "email": "s"},
        primary_key={"id": "i"},
        auto_increment="id",
        database="accounts",
    )


class DefaultUsers(TableManager):
    descriptor = TableDescriptor(
        table_name="users",
        columns={"id": "i", "name": "s", "email": "s"},
        primary_key={"id": "i"},
        auto_increment="id",
    )


@pytest.fixture
def provider():
    engine = create_engine("sqlite://")
    sa_conn = engine.connect()
    sa_conn.exec_driver_sql(SCHEMA[0])
    sa_conn.commit()
    provider = EngineConnectionProvider(default="accounts")
    provider.set_connection("accounts", SqlAlchemyConnection(sa_conn))
    yield provider
    provider.close()
    engine.dispose()


def test_provider_reuses_one_connection_per_database(provider: EngineConnectionProvider) -> None:
    first = provider.get_connection("accounts")
    assert isinstance(first, SqlAlchemyConnection)
    assert provider.get_connection("accounts") is first
    assert provider.get_connection() is first


def test_registered_connection_is_used_and_closed_by_provider() -> None:
    engine = create_engine("sqlite://")
    registered = SqlAlchemyConnection(engine.connect())
    provider = EngineConnectionProvider()

    provider.set_connection("reports", registered)
    assert provider.get_connection("reports") is registered

    provider.close()
    assert registered._conn.closed
    # a closed provider forgets its connections
    with pytest.raises(ConfigurationError, match="Unknown database 'reports'"):
        provider.get_connection("reports")
    engine.dispose()


def test_provider_builds_connection_from_engine() -> None:
    engine = create_engine("sqlite://")
    provider = EngineConnectionProvider(engines={"accounts": engine})
    try:
        conn = provider.get_connection("accounts")
        assert isinstance(conn, SqlAlchemyConnection)
        assert provider.get_connection("accounts") is conn
    finally:
        provider.close()
        engine.dispose()


def test_unknown_database_is_a_configuration_error() -> None:
    provider = EngineConnectionProvider()
    with pytest.raises(ConfigurationError, match="No database name"):
        provider.get_connection()
    with pytest.raises(ConfigurationError, match="Unknown database 'reports'"):
        provider.get_connection("reports")


def test_factory_binds_manager_to_its_database(provider: EngineConnectionProvider) -> None:
    config = PersistenceConfig(empty_load_all_raises=False)
    factory = ManagerFactory(provider, config)

    accounts = factory.create(Accounts)
    defaults = factory.create(DefaultUsers)

    assert isinstance(accounts, Accounts)
    assert accounts.config is config
    assert accounts.connection is defaults.connection

    accounts.update(Record(name="Ada"))
    assert [r["name"] for r in defaults.load_all()] == ["Ada"]


def test_factory_rejects_manager_without_descriptor(provider: EngineConnectionProvider) -> None:
    with pytest.raises(ConfigurationError, match="no table descriptor"):
        ManagerFactory(provider).create(TableManager)


def test_settings_are_resolved_lazily() -> None:
    settings = DatabaseSettings(host="db.internal", username="app", password="secret", db_name="main")
    provider = EngineConnectionProvider(settings={"main": settings})
    # nothing is created until a connection is requested
    assert provider._engines == {}
    provider.close()
