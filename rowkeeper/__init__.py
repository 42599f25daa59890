from .config import DatabaseSettings, PersistenceConfig
from .db.factory import EngineConnectionProvider, ManagerFactory
from .db.manager import TableManager
from .db.models import ParamType, Record, RecordStatus, TableDescriptor
from .errors import (
    ConfigurationError,
    DuplicateRecordError,
    RecordNotFoundError,
    RowkeeperError,
    UpdateFailedError,
)

__all__ = [
    "TableManager",
    "TableDescriptor",
    "Record",
    "RecordStatus",
    "ParamType",
    "PersistenceConfig",
    "DatabaseSettings",
    "EngineConnectionProvider",
    "ManagerFactory",
    "RowkeeperError",
    "ConfigurationError",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "UpdateFailedError",
]
