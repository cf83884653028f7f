"""
Validating filter and tag injection for single-field line protocol records.

Only one shape is accepted::

    <measurement> value=<number> <timestamp>

where the measurement may contain backslash-escaped commas, spaces and equals
signs, the number is ASCII digits with at most one decimal point and the
timestamp is an ASCII integer. This is not a general line protocol parser.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from influx_errors import RecordWarning

FIELD_PREFIX = "value="
TAG_KEY_PREFIX = "tag_"

_DIGITS = frozenset("0123456789")
_ESCAPABLE = frozenset(", =")
_ESCAPE = "\\"


class LineState(Enum):
    """Scanner states, in the order a valid line passes through them."""

    MEASUREMENT = "measurement"
    ESCAPE = "escape sequence"
    FIELD_VALUE = "field value"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class LineCheck:
    """Outcome of validating one candidate line."""

    valid: bool
    line: Optional[str] = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


def _reject(line: str, reason: str) -> LineCheck:
    return LineCheck(valid=False, line=line, reason=reason)


def _describe(candidate: Any) -> str:
    try:
        return json.dumps(candidate, default=repr)
    except (TypeError, ValueError):
        return repr(candidate)


def check_line(candidate: Any) -> LineCheck:
    """
    Validate one candidate record against the single-field grammar.

    Surrounding whitespace is trimmed first; the trimmed text is returned in
    ``LineCheck.line`` on success. Diagnostics name the 1-based column where
    scanning stopped.
    """
    if not isinstance(candidate, str):
        return LineCheck(
            valid=False,
            reason=(
                f"Invalid line type: {type(candidate).__name__}, "
                f"value: {_describe(candidate)}"
            ),
        )

    text = candidate.strip()
    state = LineState.MEASUREMENT
    measurement_length = 0
    value_digits = 0
    seen_point = False
    timestamp_digits = 0
    pos = 0

    while pos < len(text):
        char = text[pos]
        column = pos + 1

        if state is LineState.MEASUREMENT:
            if char == _ESCAPE:
                state = LineState.ESCAPE
            elif char == " ":
                if measurement_length == 0:
                    return _reject(text, f"empty measurement at column {column}")
                if not text.startswith(FIELD_PREFIX, pos + 1):
                    return _reject(
                        text, f"expected '{FIELD_PREFIX}' at column {column + 1}"
                    )
                pos += 1 + len(FIELD_PREFIX)
                state = LineState.FIELD_VALUE
                continue
            elif char in _ESCAPABLE:
                return _reject(text, f"unescaped {char!r} in measurement at column {column}")
            else:
                measurement_length += 1

        elif state is LineState.ESCAPE:
            if char not in _ESCAPABLE:
                return _reject(text, f"invalid escape '\\{char}' at column {column - 1}")
            measurement_length += 1
            state = LineState.MEASUREMENT

        elif state is LineState.FIELD_VALUE:
            if char in _DIGITS:
                value_digits += 1
            elif char == ".":
                if seen_point:
                    return _reject(text, f"second decimal point in field value at column {column}")
                seen_point = True
            elif char == " ":
                if value_digits == 0:
                    return _reject(text, f"field value has no digits at column {column}")
                state = LineState.TIMESTAMP
            else:
                return _reject(text, f"non-numeric field value {char!r} at column {column}")

        elif state is LineState.TIMESTAMP:
            if char not in _DIGITS:
                return _reject(text, f"non-integer timestamp {char!r} at column {column}")
            timestamp_digits += 1

        pos += 1

    if state is not LineState.TIMESTAMP:
        return _reject(text, f"line ended inside {state.value}")
    if timestamp_digits == 0:
        return _reject(text, "missing timestamp")
    return LineCheck(valid=True, line=text)


def filter_valid_lines(
    payload: Iterable[Any],
    influxdb3_local=None,
    task_id: str = "",
) -> Tuple[List[str], List[RecordWarning]]:
    """
    Run every payload element through ``check_line``.

    Returns:
        Tuple of (trimmed valid lines, warnings for dropped elements). Each
        warning is also reported through ``influxdb3_local.warn`` when given.
    """
    lines: List[str] = []
    warnings: List[RecordWarning] = []
    for index, candidate in enumerate(payload):
        result = check_line(candidate)
        if result.valid:
            lines.append(result.line)
            continue
        if result.line is not None:
            reason = f"Invalid line format: {result.line} ({result.reason})"
        else:
            reason = result.reason
        warning = RecordWarning(index=index, value=candidate, reason=reason)
        warnings.append(warning)
        if influxdb3_local is not None:
            influxdb3_local.warn(f"[{task_id}] {warning}")
    return lines, warnings


def escape_tag_value(value: str) -> str:
    """Backslash-escape commas, spaces and equals signs."""
    return "".join(_ESCAPE + char if char in _ESCAPABLE else char for char in value)


def build_extra_tags(tags: Optional[str]) -> str:
    """
    Turn a comma-separated tag setting into a line protocol tag fragment.

    Example:
        >>> build_extra_tags("region=us, env=prod")
        ',tag_0=region\\\\=us,tag_1=env\\\\=prod'
        >>> build_extra_tags("")
        ''
    """
    if not tags:
        return ""
    values = [part.strip() for part in tags.split(",")]
    pairs = [
        f"{TAG_KEY_PREFIX}{index}={escape_tag_value(value)}"
        for index, value in enumerate(v for v in values if v)
    ]
    if not pairs:
        return ""
    return "," + ",".join(pairs)


def inject_tags(line: str, extra_tags: str) -> str:
    """
    Insert ``extra_tags`` between the measurement segment and the field.

    The timestamp is the text after the final space; the field starts at the
    space before ``value=``. Field and timestamp text is not altered. Applying
    this twice appends the fragment twice.
    """
    head, _, timestamp = line.strip().rpartition(" ")
    measurement, _, field_value = head.partition(" " + FIELD_PREFIX)
    fields = FIELD_PREFIX + field_value
    return f"{measurement}{extra_tags} {fields} {timestamp}".strip()
