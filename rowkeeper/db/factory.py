from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..config import DatabaseSettings, PersistenceConfig
from ..errors import ConfigurationError
from .connection import RecordConnection, SqlAlchemyConnection
from .manager import TableManager

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=TableManager)


class ConnectionProvider(Protocol):
    """Resolves a logical database name to a live RecordConnection."""

    def get_connection(self, database: Optional[str]) -> RecordConnection:
        ...


class EngineConnectionProvider:
    """
    ConnectionProvider backed by SQLAlchemy engines.

    Each logical database resolves to an Engine given up front or one built
    from its DatabaseSettings. One connection per database is opened on first
    use and reused afterwards. ``None`` names the default database.

    Usage:
        provider = EngineConnectionProvider(
            settings={"main": DatabaseSettings("db.local", "app", "secret", "app")},
            default="main",
        )
        users = ManagerFactory(provider).create(Users)
        ...
        provider.close()
    """

    def __init__(
        self,
        engines: Optional[Mapping[str, Engine]] = None,
        settings: Optional[Mapping[str, DatabaseSettings]] = None,
        default: Optional[str] = None,
    ) -> None:
        self._engines: dict[str, Engine] = dict(engines or {})
        self._settings: dict[str, DatabaseSettings] = dict(settings or {})
        self._connections: dict[str, SqlAlchemyConnection] = {}
        self._owned: list[Engine] = []
        self.default = default

    def _resolve_name(self, database: Optional[str]) -> str:
        name = database if database is not None else self.default
        if name is None:
            raise ConfigurationError("No database name given and no default database configured")
        return name

    def _engine(self, name: str) -> Engine:
        engine = self._engines.get(name)
        if engine is not None:
            return engine
        settings = self._settings.get(name)
        if settings is None:
            raise ConfigurationError(f"Unknown database {name!r}")
        logger.info("Creating engine for database %s on %s:%s", name, settings.host, settings.port)
        engine = create_engine(settings.url(), pool_pre_ping=True)
        self._engines[name] = engine
        self._owned.append(engine)
        return engine

    def get_connection(self, database: Optional[str] = None) -> SqlAlchemyConnection:
        name = self._resolve_name(database)
        connection = self._connections.get(name)
        if connection is None:
            connection = SqlAlchemyConnection(self._engine(name).connect())
            self._connections[name] = connection
        return connection

    def set_connection(self, database: str, connection: SqlAlchemyConnection) -> None:
        """Register an already open connection for ``database``."""
        self._connections[database] = connection

    def close(self) -> None:
        """Close every open connection and dispose engines this provider created."""
        try:
            for connection in self._connections.values():
                connection.dispose()
        finally:
            self._connections.clear()
            for engine in self._owned:
                engine.dispose()
            self._owned.clear()


class ManagerFactory:
    """
    Builds TableManagers bound to the connection for their descriptor's database.

    Usage:
        factory = ManagerFactory(provider, PersistenceConfig(lenient_missing_values=False))
        users = factory.create(Users)
    """

    def __init__(self, provider: ConnectionProvider, config: Optional[PersistenceConfig] = None) -> None:
        self.provider = provider
        self.config = config

    def create(self, manager_cls: type[M]) -> M:
        descriptor = manager_cls.descriptor
        if descriptor is None:
            raise ConfigurationError(f"{manager_cls.__name__} has no table descriptor")
        connection = self.provider.get_connection(descriptor.database)
        return manager_cls(connection, config=self.config)
