"""Core data models and configuration"""

from fromtrace.core.models import (
    ActionKind,
    AppendAck,
    Origin,
    RecordRef,
    SourceLocation,
    TraceStep,
    TrackedString,
    TraversalError,
    TraversalErrorKind,
    TraversalResult,
    ValueItem,
    collect_records,
    create_origin,
)
from fromtrace.core.errors import (
    InvalidOriginError,
    OffsetOutOfRangeError,
    ProvenanceError,
    RecordNotFoundError,
    ResolutionUnavailable,
    TimedOutWaitingForRecord,
    TraversalInterrupted,
)
from fromtrace.core.config import settings

__all__ = [
    "ActionKind",
    "AppendAck",
    "Origin",
    "RecordRef",
    "SourceLocation",
    "TraceStep",
    "TrackedString",
    "TraversalError",
    "TraversalErrorKind",
    "TraversalResult",
    "ValueItem",
    "collect_records",
    "create_origin",
    "InvalidOriginError",
    "OffsetOutOfRangeError",
    "ProvenanceError",
    "RecordNotFoundError",
    "ResolutionUnavailable",
    "TimedOutWaitingForRecord",
    "TraversalInterrupted",
    "settings",
]
