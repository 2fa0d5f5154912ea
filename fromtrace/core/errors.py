"""
Exceptions raised by the provenance core.

Construction and query errors are local: the immediate caller handles them.
Store I/O failures surface as the driver's own exceptions after the batch
has been rolled back.
"""

from typing import Optional


class ProvenanceError(Exception):
    """Base class for all provenance errors"""


class InvalidOriginError(ProvenanceError):
    """Origin construction or decoding rejected before persistence"""


class OffsetOutOfRangeError(ProvenanceError):
    """Character index outside the bounds of a value"""

    def __init__(self, char_index: int, length: int) -> None:
        self.char_index = char_index
        self.length = length
        super().__init__(f"Character index {char_index} out of range for value of length {length}")


class RecordNotFoundError(ProvenanceError):
    """No record stored under the requested id"""

    def __init__(self, record_id: str, message: Optional[str] = None) -> None:
        self.record_id = record_id
        super().__init__(message or f"Record not found: {record_id}")


class TimedOutWaitingForRecord(RecordNotFoundError):
    """Bounded poll gave up before the record became visible"""

    def __init__(self, record_id: str, waited: float) -> None:
        self.waited = waited
        super().__init__(
            record_id,
            f"Record {record_id} not visible after {waited:.2f}s - might still be saving data",
        )


class ResolutionUnavailable(ProvenanceError):
    """Location resolver could not resolve a code location (non-fatal)"""


class TraversalInterrupted(ProvenanceError):
    """Walk stopped early by cancellation or the step limit"""

    def __init__(self, kind: str, record_id: Optional[str], message: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(message)
