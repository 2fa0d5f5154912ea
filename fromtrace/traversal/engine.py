"""Backward traversal from a (record, character) pair to its causal chain"""

import asyncio
from typing import AsyncIterator, Optional

from loguru import logger

from fromtrace.core.config import settings
from fromtrace.core.errors import (
    OffsetOutOfRangeError,
    RecordNotFoundError,
    ResolutionUnavailable,
    TimedOutWaitingForRecord,
    TraversalInterrupted,
)
from fromtrace.core.models import (
    Origin,
    OriginRef,
    SourceLocation,
    TraceStep,
    TraversalError,
    TraversalErrorKind,
    TraversalResult,
)
from fromtrace.mapping.value_map import ValueMap
from fromtrace.traversal.polling import OriginSource, PollPolicy, fetch_record
from fromtrace.traversal.resolver import LocationResolver


def next_position(origin: Origin, char_index: int) -> Optional[tuple[OriginRef, int]]:
    """
    Which input produced ``char_index`` of ``origin``, and where in it.

    A Value Map answers directly. Without one, a single input receives the
    same index shifted by its character offset and then back by
    ``extra_chars_added``; an index that lands in the decoration has no
    child. Anything else is terminal.
    """
    if origin.value_items:
        value_map = ValueMap.from_value_items(origin.value_items, origin.input_values)
        try:
            resolved = value_map.resolve_at_offset(char_index)
        except OffsetOutOfRangeError:
            return None
        return resolved.origin, resolved.offset_in_origin

    if len(origin.input_values) == 1:
        offsets = origin.input_values_character_index or [0]
        child_index = char_index + offsets[0] - origin.extra_chars_added
        if child_index < 0:
            return None
        return origin.input_values[0], child_index

    return None


class TraversalEngine:
    """
    Walks from a derived value back towards the values it came from.

    Each step is one point lookup; records that are not visible yet are
    polled for with a bounded wait. The engine keeps no state between
    requests, so independent traversals can run concurrently against the
    same source.

    States: Resolving(id, char) -> Emitted(step) -> Resolving(child) | Terminal
    """

    def __init__(
        self,
        source: OriginSource,
        resolver: Optional[LocationResolver] = None,
        poll: Optional[PollPolicy] = None,
        max_steps: Optional[int] = None,
        resolver_timeout: Optional[float] = None,
    ) -> None:
        self.source = source
        self.resolver = resolver
        self.poll = poll or PollPolicy()
        self.max_steps = max_steps if max_steps is not None else settings.MAX_TRAVERSAL_STEPS
        self.resolver_timeout = (
            resolver_timeout if resolver_timeout is not None else settings.RESOLVER_TIMEOUT_SECONDS
        )

    async def iter_steps(
        self,
        start_id: str,
        start_char_index: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[TraceStep]:
        """
        Yield trace steps from ``start_id`` down to a root.

        Raises:
            TimedOutWaitingForRecord: a record did not become visible in time
            OffsetOutOfRangeError: ``start_char_index`` is outside the start value
            TraversalInterrupted: cancelled, or ``max_steps`` reached
        """
        origin = await fetch_record(self.source, start_id, self.poll)
        if not 0 <= start_char_index < len(origin.value):
            raise OffsetOutOfRangeError(start_char_index, len(origin.value))

        char_index = start_char_index
        emitted = 0
        while True:
            position = next_position(origin, char_index)
            location = await self._resolve_location(origin)
            yield TraceStep(origin=origin, character_index=char_index, resolved_location=location)
            emitted += 1

            if position is None:
                return
            if cancel is not None and cancel.is_set():
                raise TraversalInterrupted(
                    TraversalErrorKind.CANCELLED, origin.id, "Traversal cancelled by caller"
                )
            if emitted >= self.max_steps:
                raise TraversalInterrupted(
                    TraversalErrorKind.STEP_LIMIT,
                    origin.id,
                    f"Stopped after {emitted} steps",
                )

            child_ref, child_index = position
            if isinstance(child_ref, Origin):
                child = child_ref
            else:
                child = await fetch_record(self.source, child_ref, self.poll)

            if child_index >= len(child.value):
                logger.debug(
                    "Index {index} past the end of {id}, stopping at {parent}",
                    index=child_index,
                    id=child.id,
                    parent=origin.id,
                )
                return
            origin, char_index = child, child_index

    async def traverse(
        self,
        start_id: str,
        start_char_index: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> TraversalResult:
        """
        Collect the full chain for one character.

        A start record that never shows up raises; a missing record further
        down returns the steps resolved so far plus an error marker, so an
        interrupted walk is never mistaken for one that reached a root.

        Raises:
            TimedOutWaitingForRecord: the start record did not become visible
            OffsetOutOfRangeError: ``start_char_index`` is outside the start value
        """
        steps: list[TraceStep] = []
        try:
            async for step in self.iter_steps(start_id, start_char_index, cancel):
                steps.append(step)
        except RecordNotFoundError as e:
            if not steps:
                raise
            kind = (
                TraversalErrorKind.TIMED_OUT
                if isinstance(e, TimedOutWaitingForRecord)
                else TraversalErrorKind.NOT_FOUND
            )
            logger.warning(
                "Traversal from {start} interrupted after {count} steps: {error}",
                start=start_id,
                count=len(steps),
                error=e,
            )
            return TraversalResult(
                steps=steps,
                error=TraversalError(kind=kind, record_id=e.record_id, message=str(e)),
            )
        except TraversalInterrupted as e:
            return TraversalResult(
                steps=steps,
                error=TraversalError(kind=e.kind, record_id=e.record_id, message=str(e)),
            )

        logger.debug(
            "Traversal from {start}:{index} reached {id} in {count} steps",
            start=start_id,
            index=start_char_index,
            id=steps[-1].origin.id,
            count=len(steps),
        )
        return TraversalResult(steps=steps)

    async def _resolve_location(self, origin: Origin) -> Optional[SourceLocation]:
        if not origin.code_location or self.resolver is None:
            return None
        try:
            return await asyncio.wait_for(
                self.resolver.resolve(origin.code_location),
                self.resolver_timeout,
            )
        except (ResolutionUnavailable, asyncio.TimeoutError) as e:
            logger.warning(
                "Location {loc} unresolved for {id}: {error}",
                loc=origin.code_location,
                id=origin.id,
                error=str(e) or "timed out",
            )
            return None
        except Exception as e:
            logger.warning(
                "Resolver failed on {loc} for {id}: {kind}: {error}",
                loc=origin.code_location,
                id=origin.id,
                kind=type(e).__name__,
                error=e,
            )
            return None
