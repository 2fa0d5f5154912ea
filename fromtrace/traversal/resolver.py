"""Location resolver interface and the location-store backed resolver"""

from typing import Optional, Protocol

from fromtrace.core.errors import ResolutionUnavailable
from fromtrace.core.models import SourceLocation
from fromtrace.storage.loc_store import LocStore


class LocationResolver(Protocol):
    """
    Maps a recorded code location to a human-readable source location.

    Return None or raise ``ResolutionUnavailable`` when the location cannot
    be resolved; traversal then emits the step unresolved. Traversal treats
    any other exception and a timeout the same way.
    """

    async def resolve(self, code_location: str) -> Optional[SourceLocation]: ...


class LocStoreResolver:
    """Resolves code location ids through a ``LocStore``"""

    def __init__(self, loc_store: LocStore) -> None:
        self.loc_store = loc_store

    async def resolve(self, code_location: str) -> Optional[SourceLocation]:
        loc = await self.loc_store.get_loc(code_location)
        if loc is None:
            raise ResolutionUnavailable(f"No location stored for {code_location}")
        return loc
