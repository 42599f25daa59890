from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..errors import ConfigurationError
from .helpers import _validate_identifier


class ParamType(str, Enum):
    INTEGER = "i"
    DOUBLE = "d"
    STRING = "s"
    BLOB = "b"


class RecordStatus(str, Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    DELETED = "deleted"


def _freeze_types(columns: Mapping[str, Any], what: str) -> Mapping[str, ParamType]:
    frozen: dict[str, ParamType] = {}
    for name, param_type in columns.items():
        _validate_identifier(name, f"{what} column")
        try:
            frozen[name] = ParamType(param_type)
        except ValueError:
            raise ConfigurationError(
                f"Unknown parameter type {param_type!r} for {what} column {name!r}"
            ) from None
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class TableDescriptor:
    """
    Static description of one entity's table.

    Column and primary-key maps keep their declaration order; that order is
    the parameter order of every synthesized statement.

    Usage:
        USERS = TableDescriptor(
            table_name="users",
            columns={"id": ParamType.INTEGER, "name": "s", "email": "s"},
            primary_key={"id": ParamType.INTEGER},
            auto_increment="id",
        )
    """
    table_name: str
    columns: Mapping[str, ParamType]
    primary_key: Mapping[str, ParamType]
    auto_increment: Optional[str] = None
    # logical database name resolved by a ConnectionProvider
    database: Optional[str] = None
    non_key_columns: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", _freeze_types(self.columns, "table"))
        object.__setattr__(self, "primary_key", _freeze_types(self.primary_key, "primary key"))
        object.__setattr__(
            self,
            "non_key_columns",
            tuple(name for name in self.columns if name not in self.primary_key),
        )
        self.validate()

    def validate(self) -> None:
        """
        Raise ConfigurationError if the descriptor cannot produce valid SQL.

        An empty SET clause is not checked here: a key-only table is still
        usable for inserts, reads and deletes.
        """
        _validate_identifier(self.table_name, "table")

        if not self.columns:
            raise ConfigurationError(f"Table {self.table_name!r} declares no columns")

        if not self.primary_key:
            raise ConfigurationError(f"Table {self.table_name!r} declares no primary key")

        for name, param_type in self.primary_key.items():
            if name not in self.columns:
                raise ConfigurationError(
                    f"Primary key column {name!r} is not a column of {self.table_name!r}"
                )
            if self.columns[name] != param_type:
                raise ConfigurationError(
                    f"Primary key column {name!r} is declared as {param_type.value!r} "
                    f"but the column is {self.columns[name].value!r}"
                )

        if self.auto_increment is not None and self.auto_increment not in self.primary_key:
            raise ConfigurationError(
                f"Auto-increment column {self.auto_increment!r} is not part of the "
                f"primary key of {self.table_name!r}"
            )


class Record(MutableMapping):
    """
    Column values of one row plus an optional snapshot of what the store holds.

    ``values`` and ``original_values`` are separate mappings; the snapshot is
    never visible through the mapping interface.
    """

    __slots__ = ("values", "original_values")

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        original_values: Mapping[str, Any] | None = None,
        **columns: Any,
    ) -> None:
        self.values: dict[str, Any] = dict(values or {}, **columns)
        self.original_values: dict[str, Any] | None = (
            dict(original_values) if original_values is not None else None
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Record":
        """Build a record from a freshly read row, snapshotting it immediately."""
        record = cls(row)
        record.snapshot()
        return record

    @property
    def is_new(self) -> bool:
        return self.original_values is None

    def snapshot(self) -> None:
        self.original_values = dict(self.values)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.values[key] = value

    def __delitem__(self, key: str) -> None:
        del self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"Record({self.values!r}, original_values={self.original_values!r})"
