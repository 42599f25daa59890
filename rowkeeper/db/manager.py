from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from ..config import PersistenceConfig
from ..errors import (
    ConfigurationError,
    DuplicateRecordError,
    RecordNotFoundError,
    RowkeeperError,
    UpdateFailedError,
)
from .batch import WriteBatch
from .classifier import classify
from .connection import RecordConnection
from .helpers import MISSING, resolve_values
from .metrics import observe_db_read
from .models import Record, RecordStatus, TableDescriptor
from .statements import (
    Statement,
    build_delete,
    build_insert,
    build_select_all,
    build_select_by_key,
    build_update,
)

logger = logging.getLogger(__name__)

Records = Union[Record, Sequence[Record]]

_BUILDERS = {
    "select": build_select_by_key,
    "select_all": build_select_all,
    "insert": build_insert,
    "update": build_update,
    "delete": build_delete,
}

_WRITE_KINDS = {
    RecordStatus.NEW: "insert",
    RecordStatus.UPDATED: "update",
    RecordStatus.DELETED: "delete",
}


@dataclass
class PendingWrite:
    record: Record
    status: RecordStatus
    statement: Statement
    values: list[Any]


class TableManager:
    """
    Dirty-tracking persistence for the rows of one table.

    Records read through the manager carry a snapshot of the row as read.
    ``update()`` compares each record with its snapshot and writes only what
    changed: records without a snapshot are inserted, records that differ are
    updated, unchanged records are skipped. Every write of one call runs in a
    single transaction.

    Entity types either pass a descriptor or declare it on a subclass:

        class Users(TableManager):
            descriptor = TableDescriptor(
                table_name="users",
                columns={"id": "i", "name": "s", "email": "s"},
                primary_key={"id": "i"},
                auto_increment="id",
            )

        users = Users(connection)
        ada = Record(name="Ada", email="ada@x.io")
        users.update(ada)          # INSERT; ada["id"] now holds the new key
        ada["email"] = "ada@y.io"
        users.update(ada)          # UPDATE
        users.update(ada)          # nothing to do
        users.delete(ada)          # DELETE
    """

    descriptor: Optional[TableDescriptor] = None

    def __init__(
        self,
        connection: RecordConnection,
        descriptor: Optional[TableDescriptor] = None,
        config: Optional[PersistenceConfig] = None,
    ) -> None:
        descriptor = descriptor if descriptor is not None else type(self).descriptor
        if descriptor is None:
            raise ConfigurationError(f"{type(self).__name__} has no table descriptor")
        self.connection = connection
        self.descriptor = descriptor
        self.config = config or PersistenceConfig()
        self._statements: dict[str, Statement] = {}

    @property
    def table_name(self) -> str:
        return self.descriptor.table_name

    def _statement(self, kind: str) -> Statement:
        statement = self._statements.get(kind)
        if statement is None:
            statement = _BUILDERS[kind](self.descriptor)
            logger.debug("Built %s statement for %s: %s", kind, self.table_name, statement.sql)
            self._statements[kind] = statement
        return statement

    def status(self, record: Record, delete: bool = False) -> RecordStatus:
        return classify(record, force_delete=delete)

    # Writes

    def delete(self, records: Records) -> bool:
        return self.update(records, delete=True)

    def update(self, records: Records, delete: bool = False) -> bool:
        """
        Persist one record or a sequence of records in a single transaction.

        Records are mutated in place: inserted records receive their
        generated key, and inserted or updated records get a fresh snapshot so
        that they classify as UNCHANGED afterwards. Deleted records keep their
        old snapshot.

        Args:
            records: A Record or a sequence of Records
            delete: Delete every record regardless of its state

        Returns:
            True once every record is persisted (or there was nothing to write)

        Raises:
            UpdateFailedError: If any statement fails; the whole batch is
                rolled back and no record is modified
            ConfigurationError: If the descriptor cannot produce a needed
                statement
        """
        batch = [records] if isinstance(records, Record) else list(records)
        for record in batch:
            if not isinstance(record, Record):
                raise TypeError(f"Expected Record, got {type(record).__name__}")

        writes: list[PendingWrite] = []
        for record in batch:
            status = classify(record, force_delete=delete)
            if status is RecordStatus.UNCHANGED:
                continue
            statement = self._statement(_WRITE_KINDS[status])
            writes.append(PendingWrite(record, status, statement, self._bind_values(record, statement, status)))

        logger.debug(
            "%s: %d of %d records need writing", self.table_name, len(writes), len(batch)
        )
        if not writes:
            return True

        generated: list[Optional[int]] = []
        try:
            with WriteBatch(self.connection, self.table_name) as write_batch:
                for write in writes:
                    generated.append(write_batch.run(write.statement, write.values))
        except UpdateFailedError as exc:
            logger.warning("Write batch on %s rolled back: %s", self.table_name, exc)
            raise

        auto_increment = self.descriptor.auto_increment
        for write, new_id in zip(writes, generated):
            if write.status is RecordStatus.DELETED:
                continue
            if write.status is RecordStatus.NEW and auto_increment and new_id is not None:
                write.record[auto_increment] = new_id
            write.record.snapshot()

        return True

    def _bind_values(self, record: Record, statement: Statement, status: RecordStatus) -> list[Any]:
        values = resolve_values(statement.columns, record.values)
        missing = [column for column, value in zip(statement.columns, values) if value is MISSING]
        if missing:
            # a new row gets its auto-increment key from the store
            optional = {self.descriptor.auto_increment} if status is RecordStatus.NEW else set()
            required = [column for column in missing if column not in optional]
            if required and not self.config.lenient_missing_values:
                raise UpdateFailedError(
                    f"Record has no value for {', '.join(required)}",
                    sql=statement.sql,
                    parameters=values,
                    stage="bind",
                )
            logger.debug("%s: binding NULL for missing %s", self.table_name, ", ".join(missing))
        return [None if value is MISSING else value for value in values]

    def run_sql(self, sql: str, type_codes: str = "", values: Sequence[Any] = ()) -> bool:
        """
        Execute one ad-hoc write statement in its own transaction.

        Raises:
            UpdateFailedError: If the statement fails; it is rolled back
        """
        statement = Statement(sql, type_codes)
        try:
            with WriteBatch(self.connection, self.table_name) as write_batch:
                write_batch.run(statement, list(values))
        except UpdateFailedError as exc:
            logger.warning("Statement on %s rolled back: %s", self.table_name, exc)
            raise
        return True

    # Reads

    def _observe_read(self, status: str) -> None:
        try:
            observe_db_read(table=self.table_name, status=status)
        except Exception:
            logger.debug("Could not record read metrics for %s", self.table_name, exc_info=True)

    def _read(self, sql: str, type_codes: str, values: Sequence[Any]) -> list[Record]:
        prepared = self.connection.prepare(sql)
        if prepared is None:
            self._observe_read("error")
            raise RowkeeperError(f"Statement could not be prepared: {sql!r}")
        try:
            self.connection.bind(prepared, type_codes, values)
            rows = self.connection.fetch_all(prepared)
        except Exception:
            self._observe_read("error")
            raise
        finally:
            self.connection.close(prepared)

        self._observe_read("success" if rows else "not_found")
        return [Record.from_row(row) for row in rows]

    def run_read(self, sql: str, type_codes: str = "", values: Sequence[Any] = ()) -> list[Record]:
        """
        Execute one parameterized read and snapshot every returned row.

        Raises:
            RecordNotFoundError: If no row is returned
        """
        records = self._read(sql, type_codes, list(values))
        if not records:
            raise RecordNotFoundError(f"No rows returned from {self.table_name}: {sql!r} {list(values)!r}")
        return records

    def run_read_single(self, sql: str, type_codes: str = "", values: Sequence[Any] = ()) -> Record:
        """
        Like run_read(), for statements that must match exactly one row.

        Raises:
            RecordNotFoundError: If no row is returned
            DuplicateRecordError: If more than one row is returned
        """
        records = self.run_read(sql, type_codes, values)
        if len(records) > 1:
            raise DuplicateRecordError(
                f"Expected one row from {self.table_name} but got {len(records)}: {sql!r} {list(values)!r}"
            )
        return records[0]

    def _key_values(self, key: Any) -> list[Any]:
        key_columns = list(self.descriptor.primary_key)
        if isinstance(key, Mapping):
            absent = [column for column in key_columns if column not in key]
            if absent:
                raise ValueError(f"Key for {self.table_name} is missing {', '.join(absent)}")
            return [key[column] for column in key_columns]
        if isinstance(key, (list, tuple)):
            if len(key) != len(key_columns):
                raise ValueError(
                    f"Key for {self.table_name} needs {len(key_columns)} values, got {len(key)}"
                )
            return list(key)
        if len(key_columns) != 1:
            raise ValueError(
                f"{self.table_name} has a composite primary key; pass a sequence or mapping"
            )
        return [key]

    def load_from_id(self, key: Any) -> Record:
        """
        Load the record with the given primary key.

        Args:
            key: The key value for a single-column key, or a sequence (in
                primary-key order) or mapping of values for a composite key

        Raises:
            RecordNotFoundError: If no row has this key
            DuplicateRecordError: If more than one row has this key
        """
        statement = self._statement("select")
        return self.run_read_single(statement.sql, statement.type_codes, self._key_values(key))

    def load_all(self) -> list[Record]:
        """
        Load every row of the table.

        Raises:
            RecordNotFoundError: If the table is empty and
                ``config.empty_load_all_raises`` is set
        """
        statement = self._statement("select_all")
        if self.config.empty_load_all_raises:
            return self.run_read(statement.sql)
        return self._read(statement.sql, "", [])
