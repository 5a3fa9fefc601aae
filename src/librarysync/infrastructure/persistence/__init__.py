"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, ProviderStateModel
from .state_backends import JsonFileBackend, SqlStateBackend
from .state_store import ProviderStateStore, decode_stored_data, encode_stored_data
from .write_queue import SerializedWriteQueue

__all__ = [
    "Base",
    "Database",
    "JsonFileBackend",
    "ProviderStateModel",
    "ProviderStateStore",
    "SerializedWriteQueue",
    "SqlStateBackend",
    "decode_stored_data",
    "encode_stored_data",
]
