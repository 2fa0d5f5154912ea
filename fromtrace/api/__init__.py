"""In-process API for producers and consumers of provenance records"""

from fromtrace.api.service import ErrorResponse, ProvenanceService, TraverseResponse

__all__ = ["ErrorResponse", "ProvenanceService", "TraverseResponse"]
