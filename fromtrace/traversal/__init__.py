"""Backward traversal over the operation log"""

from fromtrace.traversal.engine import TraversalEngine, next_position
from fromtrace.traversal.polling import OriginSource, PollPolicy, fetch_record, wait_for_record
from fromtrace.traversal.resolver import LocationResolver, LocStoreResolver

__all__ = [
    "TraversalEngine",
    "next_position",
    "OriginSource",
    "PollPolicy",
    "fetch_record",
    "wait_for_record",
    "LocationResolver",
    "LocStoreResolver",
]
