"""In-memory origin source for traversing Origins that were never persisted"""

from typing import Optional

from fromtrace.core.models import Origin


class MemoryOriginSource:
    """Indexes in-memory Origins and everything they reference by id"""

    def __init__(self, *origins: Origin) -> None:
        self._origins: dict[str, Origin] = {}
        self.add(*origins)

    def add(self, *origins: Origin) -> None:
        stack = list(origins)
        while stack:
            origin = stack.pop()
            if origin.id in self._origins:
                continue
            self._origins[origin.id] = origin
            stack.extend(ref for ref in origin.input_values if isinstance(ref, Origin))

    def __len__(self) -> int:
        return len(self._origins)

    async def get(self, record_id: str) -> Optional[Origin]:
        return self._origins.get(record_id)

    async def has(self, record_id: str) -> bool:
        return record_id in self._origins
