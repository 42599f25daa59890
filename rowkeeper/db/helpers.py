from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from ..errors import ConfigurationError

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe for SQL interpolation.

    Identifiers come from table descriptors, which are declared in code. They
    are interpolated into statement text, so anything other than
    alphanumerics and underscores is rejected outright.

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        ConfigurationError: If identifier is not a string, is empty, contains
            unsafe characters or exceeds the 64-character limit

    Example:
        >>> _validate_identifier("users", "table")
        'users'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ConfigurationError: Invalid table "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise ConfigurationError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ConfigurationError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER.match(name):
        raise ConfigurationError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ConfigurationError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


def resolve_values(columns: Iterable[str], values: Mapping[str, Any]) -> list[Any]:
    """
    Look up each column in ``values``, in order.

    Columns the mapping does not carry come back as ``MISSING`` so the caller
    can apply its missing-value policy.
    """
    return [values.get(column, MISSING) for column in columns]
