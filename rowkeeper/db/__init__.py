from .batch import WriteBatch
from .classifier import classify
from .connection import PreparedStatement, RecordConnection, SqlAlchemyConnection
from .factory import ConnectionProvider, EngineConnectionProvider, ManagerFactory
from .manager import TableManager
from .models import ParamType, Record, RecordStatus, TableDescriptor
from .statements import (
    Statement,
    build_delete,
    build_insert,
    build_select_all,
    build_select_by_key,
    build_update,
)

__all__ = [
    "TableManager",
    "TableDescriptor",
    "Record",
    "RecordStatus",
    "ParamType",
    "classify",
    "Statement",
    "build_select_by_key",
    "build_select_all",
    "build_insert",
    "build_update",
    "build_delete",
    "WriteBatch",
    "RecordConnection",
    "PreparedStatement",
    "SqlAlchemyConnection",
    "ConnectionProvider",
    "EngineConnectionProvider",
    "ManagerFactory",
]
