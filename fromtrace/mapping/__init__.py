"""Character attribution: Value Maps and the tracked string operations built on them"""

from fromtrace.mapping.value_map import ResolvedOffset, Segment, ValueMap
from fromtrace.mapping.string_ops import (
    as_tracked,
    concat,
    decorate,
    replace_call,
    slice_call,
    split_call,
    submatch,
    substr_call,
)

__all__ = [
    "ResolvedOffset",
    "Segment",
    "ValueMap",
    "as_tracked",
    "concat",
    "decorate",
    "replace_call",
    "slice_call",
    "split_call",
    "submatch",
    "substr_call",
]
