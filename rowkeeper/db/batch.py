from __future__ import annotations

import logging
import time
from typing import Any, Optional, Sequence

from ..errors import UpdateFailedError
from .connection import RecordConnection
from .metrics import observe_db_write
from .statements import Statement

logger = logging.getLogger(__name__)


class WriteBatch:
    """
    All-or-nothing execution of write statements on one RecordConnection.

    Entering the batch disables autocommit; leaving it re-enables autocommit,
    which commits everything executed inside. If the block raises, the
    transaction is rolled back before autocommit is restored and the
    exception propagates unchanged.

    Usage:
        with WriteBatch(connection, "users") as batch:
            new_id = batch.run(insert_statement, [None, "Ada", "ada@x.io"])
            batch.run(update_statement, ["Bob", "bob@x.io", 7])
    """

    def __init__(self, connection: RecordConnection, table: str) -> None:
        self.connection = connection
        self.table = table
        self._active = False
        # Track executed statements for metrics
        self._operations: list[tuple[float, str]] = []

    def __enter__(self) -> "WriteBatch":
        if self._active:
            raise RuntimeError("WriteBatch is already active; nested batches are not allowed")
        try:
            self.connection.set_autocommit(False)
        except Exception as exc:
            raise UpdateFailedError(f"Could not start transaction: {exc}", stage="begin") from exc
        self._active = True
        self._operations = []
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        status = "success"
        try:
            if exc_type is not None:
                status = "error"
                self._abort()
            else:
                try:
                    self.connection.set_autocommit(True)
                except Exception as commit_exc:
                    status = "error"
                    self._abort()
                    raise UpdateFailedError(
                        f"Commit failed: {commit_exc}", stage="commit"
                    ) from commit_exc
        finally:
            self._active = False
            self._emit_metrics(status, time.monotonic())

        # propagate exceptions (if any)
        return False

    def _abort(self) -> None:
        try:
            self.connection.rollback()
        except Exception:
            logger.exception("Rollback of write batch on %s failed", self.table)
        try:
            self.connection.set_autocommit(True)
        except Exception:
            logger.exception("Could not re-enable autocommit after rollback on %s", self.table)

    def _emit_metrics(self, status: str, end_time: float) -> None:
        try:
            for start_time, op_type in self._operations:
                observe_db_write(
                    table=self.table,
                    op_type=op_type,
                    status=status,
                    latency_s=end_time - start_time,
                )
        except Exception:
            logger.debug("Could not record write metrics for %s", self.table, exc_info=True)

    def run(self, statement: Statement, values: Sequence[Any]) -> Optional[int]:
        """
        Prepare, bind, execute and release one statement.

        Returns:
            The generated key for an INSERT, None otherwise

        Raises:
            RuntimeError: If the batch is not active
            UpdateFailedError: With stage "prepare" if the statement could not
                be prepared or bound, stage "execute" if it failed to run
        """
        if not self._active:
            raise RuntimeError("WriteBatch is not active; use within a context manager")

        start_time = time.monotonic()
        prepared = self.connection.prepare(statement.sql)
        if prepared is None:
            raise UpdateFailedError(
                "Statement could not be prepared",
                sql=statement.sql,
                parameters=values,
                stage="prepare",
            )

        try:
            try:
                self.connection.bind(prepared, statement.type_codes, values)
            except Exception as exc:
                raise UpdateFailedError(
                    f"Could not bind parameters: {exc}",
                    sql=statement.sql,
                    parameters=values,
                    stage="prepare",
                ) from exc

            self._operations.append((start_time, statement.op_type))
            logger.debug("Executing %s with %r", statement.sql, list(values))
            try:
                executed = self.connection.execute(prepared)
            except Exception as exc:
                raise UpdateFailedError(
                    f"Statement failed: {exc}",
                    sql=statement.sql,
                    parameters=values,
                    stage="execute",
                ) from exc

            if not executed:
                raise UpdateFailedError(
                    "Statement was not executed",
                    sql=statement.sql,
                    parameters=values,
                    stage="execute",
                )

            if statement.op_type == "insert":
                return self.connection.last_insert_id()
            return None
        finally:
            self.connection.close(prepared)
