from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import URL

from .errors import ConfigurationError


@dataclass
class PersistenceConfig:
    # Bind NULL for columns a record does not carry instead of failing.
    lenient_missing_values: bool = True
    # Treat an empty table as RecordNotFoundError in load_all().
    empty_load_all_raises: bool = True


@dataclass
class DatabaseSettings:
    host: str
    username: str
    password: str
    db_name: str
    port: int = 3306
    charset: str = "utf8"
    driver: str = "mysql+pymysql"

    def __post_init__(self) -> None:
        """Validate connection parameters."""
        if not self.host:
            raise ConfigurationError("host must not be empty")
        if not self.db_name:
            raise ConfigurationError("db_name must not be empty")
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConfigurationError(f"port must be between 1 and 65535, got {self.port!r}")

    def url(self) -> URL:
        return URL.create(
            self.driver,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.db_name,
            query={"charset": self.charset} if self.charset else {},
        )
