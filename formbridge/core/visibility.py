"""
Deterministic visibility engine for form questions.

Decides which questions are visible given the current answers. The same
functions back both the render-time form state and the server-side
submission check, so the two always agree for the same
``(questions, answers)`` pair.

Rule sets and conditions may arrive either as validated models or as raw
mappings straight from storage or client input. Raw mappings are decoded
here; a condition that cannot be decoded (typically an unknown operator)
is logged and evaluates to False instead of raising.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from formbridge.core.answers import AnswerKind, classify_answer, stringify_answer
from formbridge.core.schema import (
    Condition,
    ConditionalRules,
    ConditionOperator,
    Question,
    RuleLogic,
)

logger = logging.getLogger(__name__)


def evaluate_condition(condition: Condition | Mapping[str, Any], answers: Mapping[str, Any]) -> bool:
    """Evaluate a single condition against the current answers.

    An absent or None answer satisfies only ``notEquals``. Unknown
    operators are reported and evaluate to False.

    Args:
        condition: The condition, as a model or a raw mapping.
        answers: Current answers keyed by question key.

    Returns:
        True if the condition passes, False otherwise.
    """
    decoded = _decode_condition(condition)
    if decoded is None:
        return False

    answer = answers.get(decoded.question_key)
    kind = classify_answer(answer)

    if kind is AnswerKind.ABSENT:
        return decoded.operator is ConditionOperator.NOT_EQUALS

    match decoded.operator:
        case ConditionOperator.EQUALS:
            return _matches(answer, kind, decoded.value)

        case ConditionOperator.NOT_EQUALS:
            return not _matches(answer, kind, decoded.value)

        case ConditionOperator.CONTAINS:
            needle = stringify_answer(decoded.value).lower()
            return needle in stringify_answer(answer).lower()

    # Unreachable for a decoded condition
    return False


def is_visible(rules: ConditionalRules | Mapping[str, Any] | None, answers: Mapping[str, Any]) -> bool:
    """Determine whether a rule set allows its question to be shown.

    A missing rule set, or one without conditions, is always visible.
    OR logic needs any condition to pass; AND (the default, also used for
    unrecognized logic values) needs all of them.

    Args:
        rules: The question's conditional rules, as a model, raw mapping, or None.
        answers: Current answers keyed by question key.

    Returns:
        True if the question should be visible, False otherwise.
    """
    if rules is None:
        return True

    logic, conditions = _decode_rules(rules)
    if not conditions:
        return True

    results = [evaluate_condition(condition, answers) for condition in conditions]

    if logic is RuleLogic.OR:
        return any(results)
    return all(results)


def filter_visible(questions: Iterable[Question], answers: Mapping[str, Any]) -> list[Question]:
    """Return the visible questions, preserving their declared order."""
    return [
        question for question in questions
        if is_visible(question.conditional_rules, answers)
    ]


def _same(left: Any, right: Any) -> bool:
    # True == 1 and 1 == 1.0 hold in Python; types must match too
    return type(left) is type(right) and left == right


def _matches(answer: Any, kind: AnswerKind, value: Any) -> bool:
    """Equality rule: membership for sequences, exact equality for scalars."""
    if kind is AnswerKind.SEQUENCE:
        return any(_same(item, value) for item in answer)
    return _same(answer, value)


def _decode_condition(condition: Condition | Mapping[str, Any]) -> Condition | None:
    """Decode a raw condition mapping, reporting anything unusable."""
    if isinstance(condition, Condition):
        return condition

    try:
        return Condition.model_validate(condition)
    except ValidationError as e:
        operator = condition.get("operator") if isinstance(condition, Mapping) else None
        known = [op.value for op in ConditionOperator]
        if isinstance(operator, str) and operator not in known:
            logger.warning("Unknown condition operator: %r", operator)
        else:
            logger.warning("Malformed condition %r: %s", condition, e)
        return None


def _decode_rules(rules: ConditionalRules | Mapping[str, Any]) -> tuple[RuleLogic, Sequence[Any]]:
    """Split a rule set into its combinator and raw conditions."""
    if isinstance(rules, ConditionalRules):
        return rules.logic, rules.conditions

    raw_logic = rules.get("logic")
    logic = RuleLogic.OR if raw_logic == RuleLogic.OR.value else RuleLogic.AND
    return logic, rules.get("conditions") or []
