from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import Float, Integer, LargeBinary, String, bindparam, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import ArgumentError
from sqlalchemy.sql.elements import TextClause

from .models import ParamType

logger = logging.getLogger(__name__)

_SQL_TYPES = {
    ParamType.INTEGER: Integer,
    ParamType.DOUBLE: Float,
    ParamType.STRING: String,
    ParamType.BLOB: LargeBinary,
}


@dataclass
class PreparedStatement:
    """A statement prepared on a RecordConnection, optionally with bound values."""
    sql: str
    placeholder_count: int
    clause: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    closed: bool = False


class RecordConnection(Protocol):
    """
    Connection capability consumed by TableManager.

    Preparation failure (``prepare`` returning None, or ``bind`` raising) and
    execution failure (``execute`` returning False or raising) are reported
    separately so callers can tell a malformed statement from a runtime or
    constraint failure.
    """

    def prepare(self, sql: str) -> Optional[PreparedStatement]:
        """Prepare a statement with positional ``?`` placeholders."""
        ...

    def bind(self, statement: PreparedStatement, type_codes: str, values: Sequence[Any]) -> None:
        """Bind one value per placeholder, typed by its type code."""
        ...

    def execute(self, statement: PreparedStatement) -> bool:
        """Execute a non-SELECT statement."""
        ...

    def fetch_all(self, statement: PreparedStatement) -> list[dict[str, Any]]:
        """Execute a SELECT and return every row."""
        ...

    def last_insert_id(self) -> Optional[int]:
        """Key generated by the most recent INSERT."""
        ...

    def set_autocommit(self, enabled: bool) -> None:
        """Disable to open a transaction; enable to commit it."""
        ...

    def rollback(self) -> None:
        """Roll back the open transaction."""
        ...

    def close(self, statement: PreparedStatement) -> None:
        """Release a prepared statement."""
        ...


_QUOTES = "'\"`"


def _to_named_placeholders(sql: str) -> tuple[str, int]:
    """Rewrite ``?`` to ``:p0``, ``:p1``, ... outside quoted text."""
    named: list[str] = []
    count = 0
    quote: Optional[str] = None
    index = 0
    while index < len(sql):
        char = sql[index]
        if quote is not None:
            if char == "\\" and quote != "`" and index + 1 < len(sql):
                # backslash escape inside a string literal
                named.append(sql[index:index + 2])
                index += 2
                continue
            if char == quote:
                # a doubled quote closes and reopens, so toggling covers it
                quote = None
            named.append(char)
        elif char in _QUOTES:
            quote = char
            named.append(char)
        elif char == "?":
            named.append(f":p{count}")
            count += 1
        else:
            named.append(char)
        index += 1
    return "".join(named), count


class SqlAlchemyConnection:
    """
    RecordConnection on top of a SQLAlchemy Connection.

    Positional placeholders are rewritten to named bind parameters typed by
    their type codes. While autocommit is enabled every statement is
    committed as soon as it has run; disabling autocommit opens a
    transaction that stays open until autocommit is enabled again (commit)
    or ``rollback()`` is called.

    Usage:
        engine = create_engine("mysql+pymysql://user:pw@host/db")
        conn = SqlAlchemyConnection(engine.connect())
        manager = TableManager(conn, USERS)
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._autocommit = True
        self._last_insert_id: Optional[int] = None

    @property
    def autocommit(self) -> bool:
        return self._autocommit

    def prepare(self, sql: str) -> Optional[PreparedStatement]:
        if not sql or not sql.strip():
            return None
        named, count = _to_named_placeholders(sql)
        try:
            clause = text(named)
        except ArgumentError:
            logger.debug("Could not prepare statement %r", sql, exc_info=True)
            return None
        return PreparedStatement(sql=sql, placeholder_count=count, clause=clause)

    def bind(self, statement: PreparedStatement, type_codes: str, values: Sequence[Any]) -> None:
        if statement.closed:
            raise RuntimeError("Statement is already closed")
        if len(type_codes) != statement.placeholder_count or len(values) != statement.placeholder_count:
            raise ValueError(
                f"Statement has {statement.placeholder_count} placeholders but got "
                f"{len(type_codes)} type codes and {len(values)} values"
            )
        clause: TextClause = statement.clause
        bind_params = [
            bindparam(f"p{index}", type_=_SQL_TYPES[ParamType(code)])
            for index, code in enumerate(type_codes)
        ]
        if bind_params:
            statement.clause = clause.bindparams(*bind_params)
        statement.params = {f"p{index}": value for index, value in enumerate(values)}

    def _run(self, statement: PreparedStatement):
        if statement.closed:
            raise RuntimeError("Statement is already closed")
        try:
            return self._conn.execute(statement.clause, statement.params)
        except Exception:
            # an autocommitted statement owns its implicit transaction
            if self._autocommit and self._conn.in_transaction():
                self._conn.rollback()
            raise

    def execute(self, statement: PreparedStatement) -> bool:
        result = self._run(statement)
        try:
            if statement.sql.lstrip()[:6].upper() == "INSERT":
                self._last_insert_id = result.lastrowid
        finally:
            result.close()
        if self._autocommit:
            self._conn.commit()
        return True

    def fetch_all(self, statement: PreparedStatement) -> list[dict[str, Any]]:
        result = self._run(statement)
        try:
            rows = [dict(row) for row in result.mappings()]
        finally:
            result.close()
        if self._autocommit:
            self._conn.commit()
        return rows

    def last_insert_id(self) -> Optional[int]:
        return self._last_insert_id

    def set_autocommit(self, enabled: bool) -> None:
        if enabled:
            if self._conn.in_transaction():
                self._conn.commit()
        elif not self._conn.in_transaction():
            self._conn.begin()
        self._autocommit = enabled

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self, statement: PreparedStatement) -> None:
        statement.closed = True
        statement.params = {}

    def dispose(self) -> None:
        """Close the underlying SQLAlchemy connection."""
        self._conn.close()
