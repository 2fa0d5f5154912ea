"""Core data models for provenance tracking"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from fromtrace.core.errors import InvalidOriginError


class ActionKind(str, Enum):
    """Operations that can produce a tracked string value"""

    # Roots
    STRING_LITERAL = "String Literal"
    UNTRACKED_STRING = "Untracked String"
    UNTRACKED_REPLACE_RESULT = "Untracked replace match result"
    READ_ELEMENT_INNER_HTML = "Read Element innerHTML"

    # String calls
    SLICE_CALL = "Slice Call"
    SUBSTR_CALL = "Substr Call"
    SPLIT_CALL = "Split Call"
    REPLACE_CALL = "Replace Call"
    REPLACE_CALL_SUBMATCH = "Replace Call Submatch"
    CONCAT = "Concat"

    # Reads from the environment
    READ_PROPERTY = "Read Property"
    JSON_PARSE = "JSON.parse"
    LOCAL_STORAGE_GET_ITEM = "localStorage.getItem"

    # DOM and code
    CREATE_ELEMENT = "createElement"
    SET_CLASS_NAME = "set className"
    DYNAMIC_SCRIPT = "Dynamic Script"

    @property
    def decoration(self) -> str:
        """Fixed-width prefix this action inserts in front of its input"""
        return _DECORATIONS.get(self, "")

    @property
    def is_literal(self) -> bool:
        """Untracked literals are embedded in their parent's record"""
        return self in (ActionKind.UNTRACKED_STRING, ActionKind.UNTRACKED_REPLACE_RESULT)


_DECORATIONS: dict[ActionKind, str] = {
    ActionKind.SET_CLASS_NAME: " class='",
}


class ValueItem(BaseModel):
    """One persisted Value Map segment, pointing into the parent's inputs"""

    model_config = ConfigDict(frozen=True)

    input_index: int = Field(ge=0)
    origin_offset: int = Field(ge=0)
    length: int = Field(ge=0)

    def to_record(self) -> dict[str, int]:
        return {
            "inputIndex": self.input_index,
            "originOffset": self.origin_offset,
            "length": self.length,
        }


@dataclass(frozen=True)
class RecordRef:
    """Reference to an Origin that lives only in the operation log"""

    id: str


class Origin(BaseModel):
    """
    Record of one value-producing operation and its inputs.

    ``input_values`` holds either ids of persisted Origins or in-memory
    Origins. In-memory untracked literals are serialized inline inside the
    parent record; every other in-memory input is serialized as its id.

    An Origin with neither inputs nor value items is a root.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    action: ActionKind
    action_details: Optional[str] = None
    value: str
    input_values: list[Union[str, "Origin"]] = Field(default_factory=list)
    input_values_character_index: Optional[list[int]] = None
    value_items: Optional[list[ValueItem]] = None
    code_location: Optional[str] = None
    extra_chars_added: int = 0

    @property
    def is_root(self) -> bool:
        return not self.input_values and not self.value_items

    @property
    def is_inline(self) -> bool:
        return self.action.is_literal and not self.input_values

    def input_id(self, index: int) -> str:
        """Id of the input at ``index`` whether persisted or in memory"""
        return ref_id(self.input_values[index])

    def to_record(self) -> dict[str, Any]:
        """Serialize to the wire format shared with other processes"""
        return {
            "id": self.id,
            "action": self.action.value,
            "actionDetails": self.action_details,
            "value": self.value,
            "inputValueRefs": [_serialize_ref(ref) for ref in self.input_values],
            "inputCharacterOffsets": (
                list(self.input_values_character_index)
                if self.input_values_character_index is not None
                else None
            ),
            "valueItems": (
                [item.to_record() for item in self.value_items]
                if self.value_items is not None
                else None
            ),
            "codeLocation": self.code_location,
            "extraCharsAdded": self.extra_chars_added,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Origin":
        """Rebuild an Origin from its serialized record"""
        try:
            action = ActionKind(record["action"])
            input_values: list[Union[str, Origin]] = [
                ref if isinstance(ref, str) else cls.from_record(ref)
                for ref in record.get("inputValueRefs") or []
            ]
            value_items = record.get("valueItems")
            return cls(
                id=record["id"],
                action=action,
                action_details=record.get("actionDetails"),
                value=record["value"],
                input_values=input_values,
                input_values_character_index=record.get("inputCharacterOffsets"),
                value_items=(
                    [
                        ValueItem(
                            input_index=item["inputIndex"],
                            origin_offset=item["originOffset"],
                            length=item["length"],
                        )
                        for item in value_items
                    ]
                    if value_items is not None
                    else None
                ),
                code_location=record.get("codeLocation"),
                extra_chars_added=record.get("extraCharsAdded", 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidOriginError(f"Malformed origin record: {e}") from e


Origin.model_rebuild()

OriginRef = Union[str, Origin]


def ref_id(ref: OriginRef) -> str:
    return ref if isinstance(ref, str) else ref.id


def _serialize_ref(ref: OriginRef) -> Union[str, dict[str, Any]]:
    if isinstance(ref, str):
        return ref
    if ref.is_inline:
        return ref.to_record()
    return ref.id


def encode_record(record: dict[str, Any]) -> str:
    """Compact JSON with stable key order so equal records encode equally"""
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, sort_keys=True)


def decode_record(text: str) -> dict[str, Any]:
    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidOriginError(f"Record is not valid JSON: {e}") from e
    if not isinstance(record, dict):
        raise InvalidOriginError("Record must be a JSON object")
    return record


@dataclass(frozen=True)
class TrackedString:
    """
    Explicit wrapper pairing a plain string with the Origin that explains it.

    Use ``TrackedString.of`` rather than the constructor when the value might
    itself be tracked: it unwraps nested wrappers so values are never
    double-wrapped.
    """

    value: str
    origin: Origin

    @classmethod
    def of(cls, value: Union[str, "TrackedString"], origin: Origin) -> "TrackedString":
        while isinstance(value, TrackedString):
            value = value.value
        return cls(value=value, origin=origin)

    def __str__(self) -> str:
        return self.value

    def __len__(self) -> int:
        return len(self.value)


InputLike = Union[TrackedString, Origin, RecordRef, str]


def literal_origin(text: str, action: ActionKind = ActionKind.UNTRACKED_STRING) -> Origin:
    """Root Origin for a plain string that entered an operation untracked"""
    return Origin(action=action, value=text)


def track_literal(text: str, action: ActionKind = ActionKind.STRING_LITERAL, **options: Any) -> TrackedString:
    """Wrap a literal as a tracked root value"""
    return TrackedString.of(text, create_origin(action, text, (), **options))


def normalize_input(item: InputLike) -> OriginRef:
    """
    Turn one operation input into an OriginRef.

    Plain strings are untracked literals and get an inline root Origin;
    persisted Origins are referenced with ``RecordRef``.
    """
    if isinstance(item, TrackedString):
        return item.origin
    if isinstance(item, Origin):
        return item
    if isinstance(item, RecordRef):
        return item.id
    if isinstance(item, str):
        return literal_origin(item)
    raise InvalidOriginError(f"Unsupported input value type: {type(item).__name__}")


def create_origin(
    action: Union[ActionKind, str],
    value: Union[str, TrackedString],
    input_values: Iterable[InputLike] = (),
    *,
    action_details: Optional[str] = None,
    input_values_character_index: Optional[list[int]] = None,
    value_items: Optional[list[ValueItem]] = None,
    code_location: Optional[str] = None,
    extra_chars_added: int = 0,
) -> Origin:
    """
    Validate and construct an Origin. Pure, no I/O.

    Raises:
        InvalidOriginError: value is not a string, offsets do not line up
            with inputs, or value items do not partition the value
    """
    try:
        action = ActionKind(action)
    except ValueError as e:
        raise InvalidOriginError(f"Unknown action: {action!r}") from e

    if isinstance(value, TrackedString):
        value = value.value
    if not isinstance(value, str):
        raise InvalidOriginError(f"Tracked value must be a string, got {type(value).__name__}")

    inputs = [normalize_input(item) for item in input_values]

    if input_values_character_index is not None:
        if len(input_values_character_index) > len(inputs):
            raise InvalidOriginError(
                f"{len(input_values_character_index)} character offsets given for {len(inputs)} inputs"
            )
        if any(offset < 0 for offset in input_values_character_index):
            raise InvalidOriginError("Input character offsets must not be negative")

    if extra_chars_added < 0 or extra_chars_added > len(value):
        raise InvalidOriginError(f"extra_chars_added={extra_chars_added} outside value of length {len(value)}")

    if value_items is not None:
        if any(item.input_index >= len(inputs) for item in value_items):
            raise InvalidOriginError("Value item refers to a missing input")
        covered = sum(item.length for item in value_items)
        if covered != len(value):
            raise InvalidOriginError(f"Value items cover {covered} characters of a {len(value)} character value")

    return Origin(
        action=action,
        action_details=action_details,
        value=value,
        input_values=inputs,
        input_values_character_index=input_values_character_index,
        value_items=value_items,
        code_location=code_location,
        extra_chars_added=extra_chars_added,
    )


def collect_records(*origins: Origin) -> list[tuple[str, dict[str, Any]]]:
    """
    Flatten in-memory Origins into log records.

    Inputs come before the Origins that use them, each id appears once, and
    inline literals stay inside their parent's record.
    """
    records: list[tuple[str, dict[str, Any]]] = []
    seen: set[str] = set()

    def visit(origin: Origin) -> None:
        if origin.id in seen or origin.is_inline:
            return
        seen.add(origin.id)
        for ref in origin.input_values:
            if isinstance(ref, Origin):
                visit(ref)
        records.append((origin.id, origin.to_record()))

    for origin in origins:
        visit(origin)
    return records


# ========== STORE AND TRAVERSAL RESULTS ==========


class AppendAck(BaseModel):
    """Acknowledgement of a durably committed batch"""

    batch_size: int
    written: int
    duplicates: int = 0


class SourceLocation(BaseModel):
    """Human-readable position in original source"""

    file_name: str
    line: int
    column: int = 0
    function_name: Optional[str] = None
    code_line: Optional[str] = None


class TraceStep(BaseModel):
    """One link of a causal chain, from most derived to most original"""

    model_config = ConfigDict(frozen=True)

    origin: Origin
    character_index: int
    resolved_location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operationLog": self.origin.to_record(),
            "charIndex": self.character_index,
            "resolvedLocation": (
                self.resolved_location.model_dump() if self.resolved_location else None
            ),
        }


class TraversalErrorKind(str, Enum):
    """Why a walk stopped before reaching a root"""

    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    STEP_LIMIT = "step_limit"


class TraversalError(BaseModel):
    """Marker separating an interrupted walk from one that reached a root"""

    kind: TraversalErrorKind
    record_id: Optional[str] = None
    message: str = ""


class TraversalResult(BaseModel):
    """Ordered steps plus an explicit marker when the walk was interrupted"""

    steps: list[TraceStep] = Field(default_factory=list)
    error: Optional[TraversalError] = None

    @property
    def complete(self) -> bool:
        return self.error is None
