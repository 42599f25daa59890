from __future__ import annotations

from typing import Any, Sequence


class RowkeeperError(Exception):
    """Base exception for rowkeeper errors."""


class ConfigurationError(RowkeeperError):
    """A table descriptor or connection setting is structurally invalid."""


class RecordNotFoundError(RowkeeperError):
    """A read expected at least one row and got none."""


class DuplicateRecordError(RecordNotFoundError):
    """A single-record read matched more than one row."""


class UpdateFailedError(RowkeeperError):
    """
    Any failure during a write batch.

    Nothing from the batch is committed by the time this is raised.
    ``stage`` names the step that failed: ``"begin"``, ``"bind"``,
    ``"prepare"``, ``"execute"`` or ``"commit"``.
    """

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        parameters: Sequence[Any] | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.sql = sql
        self.parameters = list(parameters) if parameters is not None else None
        self.stage = stage

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.sql:
            parts.append(f"sql={self.sql!r}")
        if self.parameters is not None:
            parts.append(f"parameters={self.parameters!r}")
        return " | ".join(parts)
