"""
Answer normalization helpers shared by the visibility engine and the
submission validator.

An answer value is one of: absent, None, a scalar, or a sequence of
strings. These helpers classify a value and render it for comparison
without ever mutating the answer set.
"""

from enum import Enum
from typing import Any


class AnswerKind(str, Enum):
    """The shape of an answer value."""

    ABSENT = "absent"
    SCALAR = "scalar"
    SEQUENCE = "sequence"


def classify_answer(value: Any) -> AnswerKind:
    """Classify an answer value as absent, scalar, or sequence.

    None counts as absent. Lists and tuples are sequences; strings are
    always scalars.
    """
    if value is None:
        return AnswerKind.ABSENT
    if isinstance(value, (list, tuple)):
        return AnswerKind.SEQUENCE
    return AnswerKind.SCALAR


def stringify_answer(value: Any) -> str:
    """Render a value in the string form used for substring matching.

    None becomes the empty string, booleans become ``true``/``false``
    and sequences are joined with commas.
    """
    match classify_answer(value):
        case AnswerKind.ABSENT:
            return ""
        case AnswerKind.SEQUENCE:
            return ",".join(stringify_answer(item) for item in value)

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def as_list(value: Any) -> list[Any]:
    """Return a sequence answer as a list; wrap a scalar; absent is empty."""
    match classify_answer(value):
        case AnswerKind.ABSENT:
            return []
        case AnswerKind.SEQUENCE:
            return list(value)
    return [value]


def is_answered(value: Any) -> bool:
    """Check whether a value counts as an answer for required-field checks.

    None, blank strings, and empty sequences are unanswered.
    """
    match classify_answer(value):
        case AnswerKind.ABSENT:
            return False
        case AnswerKind.SEQUENCE:
            return len(value) > 0

    if isinstance(value, str):
        return bool(value.strip())
    return True
