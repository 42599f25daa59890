from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy.engine import Connection

from rowkeeper.db.connection import PreparedStatement
from rowkeeper.db.manager import TableManager
from rowkeeper.db.models import ParamType, TableDescriptor

USERS = TableDescriptor(
    table_name="users",
    columns={"id": ParamType.INTEGER, "name": ParamType.STRING, "email": ParamType.STRING},
    primary_key={"id": ParamType.INTEGER},
    auto_increment="id",
)

MEMBERSHIPS = TableDescriptor(
    table_name="memberships",
    columns={"user_id": "i", "group_id": "i", "role": "s"},
    primary_key={"user_id": "i", "group_id": "i"},
)

DOCUMENTS = TableDescriptor(
    table_name="documents",
    columns={"id": "i", "title": "s", "score": "d", "body": "b"},
    primary_key={"id": "i"},
    auto_increment="id",
)

SCHEMA = (
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT UNIQUE
    )
    """,
    """
    CREATE TABLE memberships (
        user_id INTEGER NOT NULL,
        group_id INTEGER NOT NULL,
        role TEXT,
        PRIMARY KEY (user_id, group_id)
    )
    """,
    """
    CREATE TABLE documents (
        id INTEGER PRIMARY KEY,
        title TEXT,
        score REAL,
        body BLOB
    )
    """,
)


class Users(TableManager):
    descriptor = USERS


def count_rows(conn: Connection, table: str) -> int:
    result = conn.exec_driver_sql(f"SELECT COUNT(*) FROM {table}")
    try:
        return result.scalar_one()
    finally:
        result.close()
        conn.commit()


class FakeConnection:
    """
    Recording RecordConnection.

    ``fail_at`` makes the n-th execute (1-based) raise, ``unprepared`` makes
    prepare() return None for SQL containing that text. ``commit_fails``
    makes the first set_autocommit(True) raise, ``begin_fails`` the first
    set_autocommit(False).
    """

    def __init__(
        self,
        rows: Optional[Sequence[dict[str, Any]]] = None,
        fail_at: Optional[int] = None,
        unprepared: Optional[str] = None,
        execute_result: bool = True,
        commit_fails: bool = False,
        begin_fails: bool = False,
    ) -> None:
        self.rows = list(rows or [])
        self.fail_at = fail_at
        self.unprepared = unprepared
        self.execute_result = execute_result
        self.commit_fails = commit_fails
        self.begin_fails = begin_fails
        self.calls: list[tuple] = []
        self.executed: list[tuple[str, list[Any]]] = []
        self.next_id = 100

    def prepare(self, sql: str) -> Optional[PreparedStatement]:
        self.calls.append(("prepare", sql))
        if self.unprepared is not None and self.unprepared in sql:
            return None
        return PreparedStatement(sql=sql, placeholder_count=sql.count("?"))

    def bind(self, statement: PreparedStatement, type_codes: str, values: Sequence[Any]) -> None:
        self.calls.append(("bind", type_codes, list(values)))
        statement.params = {"values": list(values)}

    def execute(self, statement: PreparedStatement) -> bool:
        self.calls.append(("execute", statement.sql))
        if self.fail_at is not None and len(self.executed) + 1 == self.fail_at:
            raise RuntimeError("constraint violated")
        self.executed.append((statement.sql, statement.params.get("values", [])))
        if statement.sql.startswith("INSERT"):
            self.next_id += 1
        return self.execute_result

    def fetch_all(self, statement: PreparedStatement) -> list[dict[str, Any]]:
        self.calls.append(("fetch_all", statement.sql))
        return [dict(row) for row in self.rows]

    def last_insert_id(self) -> Optional[int]:
        return self.next_id

    def set_autocommit(self, enabled: bool) -> None:
        self.calls.append(("autocommit", enabled))
        if enabled and self.commit_fails:
            self.commit_fails = False
            raise RuntimeError("commit lost connection")
        if not enabled and self.begin_fails:
            self.begin_fails = False
            raise RuntimeError("could not start transaction")

    def rollback(self) -> None:
        self.calls.append(("rollback",))

    def close(self, statement: PreparedStatement) -> None:
        self.calls.append(("close", statement.sql))

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]
