"""Persistence for operation records and code locations"""

from fromtrace.storage.log_store import OperationLogStore
from fromtrace.storage.loc_store import LocStore
from fromtrace.storage.memory_source import MemoryOriginSource

__all__ = ["OperationLogStore", "LocStore", "MemoryOriginSource"]
