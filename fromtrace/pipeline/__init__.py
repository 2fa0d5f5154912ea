"""Batched write path into the operation log"""

from fromtrace.pipeline.write_lane import OperationLogWriter

__all__ = ["OperationLogWriter"]
