"""
SQL synthesis for single-table CRUD.

Every builder is a pure function of a TableDescriptor. Statements use
positional ``?`` placeholders; the matching parameter list is carried as a
type-code string (one character per placeholder) plus the ordered column
names whose values fill the placeholders.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..errors import ConfigurationError
from .models import ParamType, TableDescriptor


@dataclass(frozen=True)
class Statement:
    sql: str
    type_codes: str = ""
    columns: tuple[str, ...] = ()

    @property
    def parameters(self) -> list[str]:
        """Parameter list as ``[type_codes, column, column, ...]``."""
        return [self.type_codes, *self.columns]

    @property
    def op_type(self) -> str:
        """Lower-case SQL verb, used as a metrics label."""
        words = self.sql.split(None, 1)
        return words[0].lower() if words else ""


def _parameters(columns: Mapping[str, ParamType], names: Iterable[str]) -> tuple[str, tuple[str, ...]]:
    names = tuple(names)
    return "".join(columns[name].value for name in names), names


def _key_predicate(descriptor: TableDescriptor) -> str:
    return " AND ".join(f"{name}=?" for name in descriptor.primary_key)


def build_select_by_key(descriptor: TableDescriptor) -> Statement:
    descriptor.validate()
    type_codes, columns = _parameters(descriptor.primary_key, descriptor.primary_key)
    return Statement(
        f"SELECT * FROM {descriptor.table_name} WHERE {_key_predicate(descriptor)};",
        type_codes,
        columns,
    )


def build_select_all(descriptor: TableDescriptor) -> Statement:
    descriptor.validate()
    return Statement(f"SELECT * FROM {descriptor.table_name};")


def build_insert(descriptor: TableDescriptor) -> Statement:
    descriptor.validate()
    type_codes, columns = _parameters(descriptor.columns, descriptor.columns)
    column_list = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    return Statement(
        f"INSERT INTO {descriptor.table_name} ({column_list}) VALUES ({placeholders});",
        type_codes,
        columns,
    )


def build_update(descriptor: TableDescriptor) -> Statement:
    """
    UPDATE every non-key column, matching on the primary key.

    Raises:
        ConfigurationError: If every column is part of the primary key, which
            would leave the SET clause empty
    """
    descriptor.validate()
    if not descriptor.non_key_columns:
        raise ConfigurationError(
            f"Table {descriptor.table_name!r} has no non-key columns; an UPDATE would have an empty SET clause"
        )

    set_codes, set_columns = _parameters(descriptor.columns, descriptor.non_key_columns)
    key_codes, key_columns = _parameters(descriptor.primary_key, descriptor.primary_key)
    set_clause = ", ".join(f"{name}=?" for name in set_columns)
    return Statement(
        f"UPDATE {descriptor.table_name} SET {set_clause} WHERE {_key_predicate(descriptor)};",
        set_codes + key_codes,
        set_columns + key_columns,
    )


def build_delete(descriptor: TableDescriptor) -> Statement:
    descriptor.validate()
    type_codes, columns = _parameters(descriptor.primary_key, descriptor.primary_key)
    return Statement(
        f"DELETE FROM {descriptor.table_name} WHERE {_key_predicate(descriptor)};",
        type_codes,
        columns,
    )

