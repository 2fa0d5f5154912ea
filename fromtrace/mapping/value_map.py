"""Value Map - character-range attribution for assembled values"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, Sequence

from fromtrace.core.errors import InvalidOriginError, OffsetOutOfRangeError
from fromtrace.core.models import OriginRef, ValueItem, ref_id


@dataclass(frozen=True)
class Segment:
    """``length`` characters copied from ``origin`` starting at ``origin_offset``"""

    origin: OriginRef
    origin_offset: int
    length: int


@dataclass(frozen=True)
class ResolvedOffset:
    origin: OriginRef
    offset_in_origin: int


class ValueMap:
    """
    Ordered, non-overlapping segments partitioning an output value.

    Operations append segments while assembling their output, strictly left
    to right. Out-of-order appends are not detected.
    """

    def __init__(self) -> None:
        self._segments: list[Segment] = []
        self._starts: list[int] = []
        self._length = 0

    def __len__(self) -> int:
        return self._length

    @property
    def segments(self) -> tuple[Segment, ...]:
        return tuple(self._segments)

    def append_segment(self, source: OriginRef, source_offset: int, text: str) -> None:
        """Attribute the next ``len(text)`` output characters to ``source``"""
        self._append(source, source_offset, len(text))

    def _append(self, source: OriginRef, source_offset: int, length: int) -> None:
        # Empty fragments never cover a character
        if length == 0:
            return
        self._segments.append(Segment(origin=source, origin_offset=source_offset, length=length))
        self._starts.append(self._length)
        self._length += length

    def serialize(self, input_values: Sequence[OriginRef]) -> list[ValueItem]:
        """
        Convert segments to value items that point into ``input_values``.

        Raises:
            InvalidOriginError: a segment's origin is not among the inputs
        """
        positions: dict[str, int] = {}
        for index, ref in enumerate(input_values):
            positions.setdefault(ref_id(ref), index)

        items = []
        for segment in self._segments:
            index = positions.get(ref_id(segment.origin))
            if index is None:
                raise InvalidOriginError(
                    f"Segment origin {ref_id(segment.origin)} is not one of the operation's inputs"
                )
            items.append(
                ValueItem(
                    input_index=index,
                    origin_offset=segment.origin_offset,
                    length=segment.length,
                )
            )
        return items

    @classmethod
    def from_value_items(
        cls,
        value_items: Sequence[ValueItem],
        input_values: Sequence[OriginRef],
    ) -> "ValueMap":
        """Rebuild a map from an Origin's persisted value items"""
        value_map = cls()
        for item in value_items:
            if item.input_index >= len(input_values):
                raise InvalidOriginError(
                    f"Value item refers to input {item.input_index} of {len(input_values)}"
                )
            value_map._append(input_values[item.input_index], item.origin_offset, item.length)
        return value_map

    def resolve_at_offset(self, char_index: int) -> ResolvedOffset:
        """
        Find the segment covering ``char_index``.

        Returns:
            The segment's source origin and the matching offset inside it

        Raises:
            OffsetOutOfRangeError: ``char_index`` is negative or past the end
        """
        if char_index < 0 or char_index >= self._length:
            raise OffsetOutOfRangeError(char_index, self._length)

        position = bisect_right(self._starts, char_index) - 1
        segment = self._segments[position]
        return ResolvedOffset(
            origin=segment.origin,
            offset_in_origin=segment.origin_offset + (char_index - self._starts[position]),
        )

    def reconstruct(self, lookup: Callable[[OriginRef], str]) -> str:
        """Concatenate the source substrings each segment points to"""
        return "".join(
            lookup(segment.origin)[segment.origin_offset:segment.origin_offset + segment.length]
            for segment in self._segments
        )
