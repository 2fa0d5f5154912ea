"""Unit tests for core data models"""

import json

import pytest

from fromtrace.core.errors import InvalidOriginError
from fromtrace.core.models import (
    ActionKind,
    Origin,
    RecordRef,
    TrackedString,
    TraversalError,
    TraversalErrorKind,
    TraversalResult,
    ValueItem,
    collect_records,
    create_origin,
    decode_record,
    encode_record,
    literal_origin,
    normalize_input,
    track_literal,
)


class TestCreateOrigin:
    """Test Origin construction and validation"""

    def test_root_origin(self) -> None:
        """Origin without inputs is a root"""
        origin = create_origin(ActionKind.STRING_LITERAL, "hello")

        assert origin.value == "hello"
        assert origin.action == ActionKind.STRING_LITERAL
        assert origin.is_root
        assert len(origin.id) == 32

    def test_action_name_accepted(self) -> None:
        """Action can be given by its wire name"""
        origin = create_origin("Read Property", "x", action_details="title")

        assert origin.action == ActionKind.READ_PROPERTY
        assert origin.action_details == "title"

    def test_unknown_action_rejected(self) -> None:
        """Actions outside the closed set are rejected"""
        with pytest.raises(InvalidOriginError):
            create_origin("Frobnicate Call", "x")

    def test_non_string_value_rejected(self) -> None:
        """Only string results can be tracked"""
        with pytest.raises(InvalidOriginError):
            create_origin(ActionKind.READ_PROPERTY, 42)  # type: ignore[arg-type]

    def test_tracked_value_unwrapped(self) -> None:
        """A tracked value is reduced to its plain string"""
        tracked = track_literal("abc")

        origin = create_origin(ActionKind.DYNAMIC_SCRIPT, tracked, [tracked])

        assert origin.value == "abc"
        assert origin.input_values[0].id == tracked.origin.id

    def test_too_many_character_offsets(self) -> None:
        """More character offsets than inputs is malformed"""
        with pytest.raises(InvalidOriginError):
            create_origin(
                ActionKind.JSON_PARSE,
                "a",
                ["{}"],
                input_values_character_index=[0, 1],
            )

    def test_negative_character_offset(self) -> None:
        with pytest.raises(InvalidOriginError):
            create_origin(ActionKind.JSON_PARSE, "a", ["{}"], input_values_character_index=[-1])

    def test_value_items_must_cover_value(self) -> None:
        """Value items that leave a gap are rejected"""
        with pytest.raises(InvalidOriginError):
            create_origin(
                ActionKind.SLICE_CALL,
                "abc",
                ["xabcx"],
                value_items=[ValueItem(input_index=0, origin_offset=1, length=2)],
            )

    def test_value_item_input_out_of_range(self) -> None:
        with pytest.raises(InvalidOriginError):
            create_origin(
                ActionKind.SLICE_CALL,
                "a",
                ["a"],
                value_items=[ValueItem(input_index=1, origin_offset=0, length=1)],
            )

    def test_extra_chars_longer_than_value(self) -> None:
        with pytest.raises(InvalidOriginError):
            create_origin(ActionKind.SET_CLASS_NAME, "ab", ["x"], extra_chars_added=3)


class TestNormalization:
    """Test the single normalization step applied to inputs"""

    def test_plain_string_becomes_literal(self) -> None:
        ref = normalize_input("sep")

        assert isinstance(ref, Origin)
        assert ref.action == ActionKind.UNTRACKED_STRING
        assert ref.is_inline

    def test_record_ref_becomes_id(self) -> None:
        assert normalize_input(RecordRef("abc123")) == "abc123"

    def test_tracked_string_never_double_wrapped(self) -> None:
        """Wrapping a tracked value keeps the inner plain string"""
        inner = track_literal("value")
        outer = TrackedString.of(inner, inner.origin)

        assert outer.value == "value"
        assert isinstance(outer.value, str)
        assert len(outer) == 5

    def test_unsupported_input_type(self) -> None:
        with pytest.raises(InvalidOriginError):
            normalize_input(12)  # type: ignore[arg-type]


class TestSerialization:
    """Test the wire format"""

    def test_record_fields(self) -> None:
        """Serialized record uses the shared field names"""
        root = create_origin(ActionKind.STRING_LITERAL, "hello world", code_location="loc_1")
        derived = create_origin(
            ActionKind.SLICE_CALL,
            "world",
            [root],
            value_items=[ValueItem(input_index=0, origin_offset=6, length=5)],
        )

        record = derived.to_record()

        assert set(record) == {
            "id",
            "action",
            "actionDetails",
            "value",
            "inputValueRefs",
            "inputCharacterOffsets",
            "valueItems",
            "codeLocation",
            "extraCharsAdded",
        }
        assert record["action"] == "Slice Call"
        assert record["inputValueRefs"] == [root.id]
        assert record["valueItems"] == [{"inputIndex": 0, "originOffset": 6, "length": 5}]
        assert root.to_record()["codeLocation"] == "loc_1"

    def test_literal_inputs_inline(self) -> None:
        """Untracked literals are embedded in the parent record"""
        origin = create_origin(ActionKind.LOCAL_STORAGE_GET_ITEM, "stored", ["key"])

        ref = origin.to_record()["inputValueRefs"][0]

        assert isinstance(ref, dict)
        assert ref["value"] == "key"
        assert ref["action"] == "Untracked String"

    def test_record_round_trip(self) -> None:
        """from_record(to_record()) reproduces the Origin"""
        root = create_origin(ActionKind.STRING_LITERAL, "a,b")
        origin = create_origin(
            ActionKind.SPLIT_CALL,
            "b",
            [root, ","],
            input_values_character_index=[2],
            value_items=[ValueItem(input_index=0, origin_offset=2, length=1)],
        )

        restored = Origin.from_record(json.loads(json.dumps(origin.to_record())))

        assert restored.id == origin.id
        assert restored.value == "b"
        assert restored.input_values[0] == root.id
        assert isinstance(restored.input_values[1], Origin)
        assert restored.input_values[1].value == ","
        assert restored.input_values_character_index == [2]
        assert restored.value_items == origin.value_items
        assert restored.to_record() == origin.to_record()

    def test_unknown_action_in_record(self) -> None:
        record = create_origin(ActionKind.STRING_LITERAL, "x").to_record()
        record["action"] = "Mystery"

        with pytest.raises(InvalidOriginError):
            Origin.from_record(record)

    def test_missing_field_in_record(self) -> None:
        with pytest.raises(InvalidOriginError):
            Origin.from_record({"id": "abc", "action": "String Literal"})

    def test_encoding_is_stable(self) -> None:
        """Equal records encode to identical text"""
        record = create_origin(ActionKind.STRING_LITERAL, "héllo").to_record()

        assert encode_record(record) == encode_record(dict(reversed(list(record.items()))))
        assert decode_record(encode_record(record)) == record

    def test_decode_rejects_garbage(self) -> None:
        with pytest.raises(InvalidOriginError):
            decode_record("not json")
        with pytest.raises(InvalidOriginError):
            decode_record("[1, 2]")


class TestCollectRecords:
    """Test flattening in-memory Origins into log records"""

    def test_inputs_before_dependents(self) -> None:
        root = create_origin(ActionKind.STRING_LITERAL, "abc")
        middle = create_origin(ActionKind.READ_PROPERTY, "abc", [root])
        top = create_origin(ActionKind.DYNAMIC_SCRIPT, "abc", [middle, root])

        ids = [record_id for record_id, _ in collect_records(top)]

        assert ids == [root.id, middle.id, top.id]

    def test_inline_literals_not_collected(self) -> None:
        origin = create_origin(ActionKind.LOCAL_STORAGE_GET_ITEM, "v", ["key"])

        records = collect_records(origin)

        assert [record_id for record_id, _ in records] == [origin.id]

    def test_each_id_once(self) -> None:
        root = create_origin(ActionKind.STRING_LITERAL, "x")
        a = create_origin(ActionKind.READ_PROPERTY, "x", [root])
        b = create_origin(ActionKind.READ_PROPERTY, "x", [root])

        ids = [record_id for record_id, _ in collect_records(a, b)]

        assert ids.count(root.id) == 1
        assert len(ids) == 3


class TestActionKind:
    def test_decoration_payload(self) -> None:
        assert ActionKind.SET_CLASS_NAME.decoration == " class='"
        assert ActionKind.SLICE_CALL.decoration == ""

    def test_literal_kinds(self) -> None:
        assert literal_origin("x").is_inline
        assert literal_origin("x", ActionKind.UNTRACKED_REPLACE_RESULT).is_inline
        assert not create_origin(ActionKind.STRING_LITERAL, "x").is_inline


class TestTraversalResult:
    def test_complete_without_error(self) -> None:
        assert TraversalResult().complete

    def test_incomplete_with_marker(self) -> None:
        result = TraversalResult(
            error=TraversalError(kind=TraversalErrorKind.NOT_FOUND, record_id="abc")
        )

        assert not result.complete
