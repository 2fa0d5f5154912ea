"""
Tracked string operations.

Each builder performs a string operation on ``TrackedString`` inputs and
returns the result wrapped with an Origin whose Value Map attributes every
output character to a range of an input. Plain ``str`` arguments enter as
untracked literals.
"""

import builtins
import re
from typing import Callable, Iterator, Optional, Union

from fromtrace.core.models import (
    ActionKind,
    Origin,
    OriginRef,
    TrackedString,
    create_origin,
    literal_origin,
    normalize_input,
    ref_id,
)
from fromtrace.mapping.value_map import ValueMap

StrLike = Union[TrackedString, str]
Replacer = Callable[[re.Match], Optional[StrLike]]

# One escape in a re.sub template: named group, octal escape, numbered group
# or any other escape. Octal is tried before group numbers, as re does.
_TEMPLATE_ESCAPE = re.compile(r"\\(?:g<([^>]*)>|(0[0-7]{0,2}|[0-7]{3})|(\d{1,2})|(.))", re.DOTALL)


def as_tracked(value: StrLike) -> TrackedString:
    """Wrap a plain string as an untracked literal; tracked values pass through"""
    if isinstance(value, TrackedString):
        return value
    return TrackedString.of(value, literal_origin(value))


def _finish(
    action: ActionKind,
    value: str,
    inputs: list[OriginRef],
    value_map: ValueMap,
    **options,
) -> TrackedString:
    origin = create_origin(
        action,
        value,
        inputs,
        value_items=value_map.serialize(inputs),
        **options,
    )
    return TrackedString.of(value, origin)


def slice_call(
    subject: StrLike,
    start: Optional[int] = None,
    end: Optional[int] = None,
    code_location: Optional[str] = None,
) -> TrackedString:
    """
    Zero-based, end-exclusive substring.

    Negative indices count from the end and out-of-range indices saturate,
    exactly like ``value[start:end]``.
    """
    subject = as_tracked(subject)
    begin, stop, _ = builtins.slice(start, end).indices(len(subject.value))
    stop = max(begin, stop)
    new_value = subject.value[begin:stop]

    value_map = ValueMap()
    value_map.append_segment(subject.origin, begin, new_value)
    return _finish(
        ActionKind.SLICE_CALL,
        new_value,
        [subject.origin],
        value_map,
        code_location=code_location,
    )


def substr_call(
    subject: StrLike,
    start: int,
    length: Optional[int] = None,
    code_location: Optional[str] = None,
) -> TrackedString:
    """Substring by start and length; a negative start counts from the end"""
    subject = as_tracked(subject)
    total = len(subject.value)
    if start < 0:
        start = max(0, total + start)
    start = min(start, total)
    if length is None:
        length = total - start
    length = max(0, min(length, total - start))
    new_value = subject.value[start:start + length]

    value_map = ValueMap()
    value_map.append_segment(subject.origin, start, new_value)
    return _finish(
        ActionKind.SUBSTR_CALL,
        new_value,
        [subject.origin],
        value_map,
        code_location=code_location,
    )


def _split_spans(
    value: str,
    separator: Union[str, re.Pattern, None],
    maxsplit: int,
) -> list[tuple[int, int]]:
    """(begin, end) of every fragment ``split`` would produce"""
    spans: list[tuple[int, int]] = []

    if separator is None:
        words = list(re.finditer(r"\S+", value))
        if 0 <= maxsplit < len(words):
            spans = [word.span() for word in words[:maxsplit]]
            spans.append((words[maxsplit].start(), len(value)))
            return spans
        return [word.span() for word in words]

    if isinstance(separator, str):
        if not separator:
            raise ValueError("empty separator")
        position = 0
        while maxsplit < 0 or len(spans) < maxsplit:
            found = value.find(separator, position)
            if found == -1:
                break
            spans.append((position, found))
            position = found + len(separator)
        spans.append((position, len(value)))
        return spans

    position = 0
    for match in separator.finditer(value):
        if 0 <= maxsplit <= len(spans):
            break
        spans.append((position, match.start()))
        position = match.end()
    spans.append((position, len(value)))
    return spans


def split_call(
    subject: StrLike,
    separator: Union[StrLike, re.Pattern, None] = None,
    maxsplit: int = -1,
    code_location: Optional[str] = None,
) -> list[TrackedString]:
    """
    Split into fragments, one Origin per fragment.

    Each fragment's Value Map is a single segment over its contiguous range
    of the subject; separators are skipped. ``separator`` may be a string, a
    compiled pattern (capture groups are not returned) or ``None`` for runs
    of whitespace.
    """
    subject = as_tracked(subject)
    inputs: list[OriginRef] = [subject.origin]
    if isinstance(separator, (TrackedString, str)):
        inputs.append(normalize_input(separator))
        separator = str(separator)

    fragments = []
    for begin, end in _split_spans(subject.value, separator, maxsplit):
        text = subject.value[begin:end]
        value_map = ValueMap()
        value_map.append_segment(subject.origin, begin, text)
        fragments.append(
            _finish(
                ActionKind.SPLIT_CALL,
                text,
                inputs,
                value_map,
                input_values_character_index=[begin],
                code_location=code_location,
            )
        )
    return fragments


def submatch(subject: StrLike, match: re.Match, group: Union[int, str]) -> Optional[TrackedString]:
    """Tracked value of one captured group, or None if it did not take part"""
    subject = as_tracked(subject)
    text = match.group(group)
    if text is None:
        return None
    begin = match.start(group)
    value_map = ValueMap()
    value_map.append_segment(subject.origin, begin, text)
    return _finish(
        ActionKind.REPLACE_CALL_SUBMATCH,
        text,
        [subject.origin],
        value_map,
        input_values_character_index=[begin],
    )


def _template_fragments(
    template: TrackedString,
    subject: TrackedString,
    match: re.Match,
) -> Iterator[tuple[OriginRef, int, str]]:
    """
    Expand a re.sub template piece by piece.

    Literal text is attributed to the template's origin at its position in
    the template, group references to the matched span of the subject.
    Escapes such as ``\\n`` or octal ``\\0`` are attributed to the escape's
    position.
    """
    position = 0
    for escape in _TEMPLATE_ESCAPE.finditer(template.value):
        literal = template.value[position:escape.start()]
        if literal:
            yield template.origin, position, literal

        name, octal, number, other = escape.groups()
        if octal is not None or other is not None:
            yield template.origin, escape.start(), match.expand(escape.group(0))
        else:
            group: Union[int, str] = int(number) if number is not None else (
                int(name) if name.isdigit() else name
            )
            text = match.group(group)
            if text:
                yield subject.origin, match.start(group), text
        position = escape.end()

    tail = template.value[position:]
    if tail:
        yield template.origin, position, tail


def replace_call(
    subject: StrLike,
    pattern: Union[StrLike, re.Pattern],
    replacement: Union[StrLike, Replacer],
    count: int = -1,
    code_location: Optional[str] = None,
) -> TrackedString:
    """
    Replace occurrences of ``pattern``.

    A string pattern behaves like ``str.replace``: its replacement is taken
    literally and a negative ``count`` replaces every occurrence, so
    ``count=0`` replaces none. A compiled pattern behaves like ``re.sub``:
    string replacements are templates, callables receive the ``re.Match``
    and ``count`` of 0 or less replaces every match. Unchanged spans stay attributed to
    the subject and replacement spans to the replacement's own origin.
    """
    subject = as_tracked(subject)
    inputs: list[OriginRef] = [subject.origin]

    if isinstance(pattern, re.Pattern):
        regex = pattern
        inputs.append(literal_origin(pattern.pattern))
        is_template = True
    else:
        regex = re.compile(re.escape(str(pattern)))
        inputs.append(normalize_input(pattern))
        is_template = False

    tracked_replacement: Optional[TrackedString] = None
    if not callable(replacement):
        tracked_replacement = as_tracked(replacement)
        inputs.append(tracked_replacement.origin)

    matches = list(regex.finditer(subject.value))
    if count > 0 or (count == 0 and not is_template):
        matches = matches[:count]

    value_map = ValueMap()
    pieces: list[str] = []
    cursor = 0

    def emit(ref: OriginRef, offset: int, text: str) -> None:
        value_map.append_segment(ref, offset, text)
        pieces.append(text)

    for match in matches:
        emit(subject.origin, cursor, subject.value[cursor:match.start()])

        if tracked_replacement is None:
            result = replacement(match)
            if isinstance(result, str):
                result = TrackedString.of(
                    result, literal_origin(result, ActionKind.UNTRACKED_REPLACE_RESULT)
                )
            elif not isinstance(result, TrackedString):
                raise TypeError(
                    f"replacement callable must return a string, not {type(result).__name__}"
                )
            if ref_id(result.origin) not in {ref_id(ref) for ref in inputs}:
                inputs.append(result.origin)
            emit(result.origin, 0, result.value)
        elif is_template:
            for ref, offset, text in _template_fragments(tracked_replacement, subject, match):
                emit(ref, offset, text)
        else:
            emit(tracked_replacement.origin, 0, tracked_replacement.value)

        cursor = match.end()

    emit(subject.origin, cursor, subject.value[cursor:])

    return _finish(
        ActionKind.REPLACE_CALL,
        "".join(pieces),
        inputs,
        value_map,
        code_location=code_location,
    )


def concat(*parts: StrLike, code_location: Optional[str] = None) -> TrackedString:
    """Join values end to end, one segment per non-empty part"""
    tracked = [as_tracked(part) for part in parts]
    inputs: list[OriginRef] = []
    value_map = ValueMap()
    for part in tracked:
        if ref_id(part.origin) not in {ref_id(ref) for ref in inputs}:
            inputs.append(part.origin)
        value_map.append_segment(part.origin, 0, part.value)
    return _finish(
        ActionKind.CONCAT,
        "".join(part.value for part in tracked),
        inputs,
        value_map,
        code_location=code_location,
    )


def decorate(
    subject: StrLike,
    action: ActionKind = ActionKind.SET_CLASS_NAME,
    suffix: str = "'",
    code_location: Optional[str] = None,
) -> TrackedString:
    """
    Wrap a value in the fixed-width prefix ``action`` declares.

    No Value Map is built: traversal forwards the character index to the
    single input, shifted back by ``extra_chars_added``.
    """
    subject = as_tracked(subject)
    prefix = action.decoration
    new_value = prefix + subject.value + suffix
    origin: Origin = create_origin(
        action,
        new_value,
        [subject.origin],
        input_values_character_index=[0],
        extra_chars_added=len(prefix),
        code_location=code_location,
    )
    return TrackedString.of(new_value, origin)
