"""
Server-side submission enforcement.

Re-evaluates visibility over the final answer set, then runs the
per-question required and option-membership checks on the visible
questions only. Hidden questions are never validated and their answers
are never forwarded to Airtable.
"""

import logging
from collections.abc import Mapping
from typing import Any

from formbridge.core.answers import as_list, is_answered
from formbridge.core.schema import FormDefinition, Question, QuestionType
from formbridge.core.visibility import filter_visible

logger = logging.getLogger(__name__)


class SubmissionValidationError(Exception):
    """Raised when a submitted answer set fails validation."""

    def __init__(self, question_key: str, message: str):
        self.question_key = question_key
        self.message = message
        super().__init__(message)


class FormInactiveError(Exception):
    """Raised when a form is not accepting responses."""


def validate_submission(questions: list[Question], answers: Mapping[str, Any]) -> list[Question]:
    """Validate answers against the currently visible questions.

    Args:
        questions: The form's questions, in order.
        answers: The submitted answers keyed by question key.

    Returns:
        The visible questions the answers were checked against.

    Raises:
        SubmissionValidationError: On the first visible question that is
            required but unanswered, or whose answer is not a valid option.
    """
    visible = filter_visible(questions, answers)

    for question in visible:
        answer = answers.get(question.question_key)

        if question.required and not is_answered(answer):
            raise SubmissionValidationError(
                question.question_key,
                f"Required field missing: {question.label}",
            )

        if not is_answered(answer):
            continue

        if question.type is QuestionType.SINGLE_SELECT:
            if answer not in (question.options or []):
                raise SubmissionValidationError(
                    question.question_key,
                    f"Invalid option for {question.label}",
                )

        elif question.type is QuestionType.MULTIPLE_SELECTS:
            for item in as_list(answer):
                if item not in (question.options or []):
                    raise SubmissionValidationError(
                        question.question_key,
                        f"Invalid option for {question.label}",
                    )

    return visible


def build_record_fields(questions: list[Question], answers: Mapping[str, Any]) -> dict[str, Any]:
    """Select the answers to forward to Airtable, keyed by Airtable field.

    Only visible questions with an answer key present are included.
    """
    fields: dict[str, Any] = {}
    for question in filter_visible(questions, answers):
        if question.question_key in answers:
            fields[question.airtable_field] = answers[question.question_key]
    return fields


def prepare_submission(form: FormDefinition, answers: Mapping[str, Any]) -> dict[str, Any]:
    """Check a submission end to end and return the Airtable record fields.

    Raises:
        FormInactiveError: If the form is not accepting responses.
        SubmissionValidationError: If the answers fail validation.
    """
    if not form.is_active:
        raise FormInactiveError("Form is not accepting responses")

    visible = validate_submission(form.questions, answers)
    fields = build_record_fields(form.questions, answers)
    logger.info(
        "Submission for '%s' passed validation: %d/%d questions visible, %d fields forwarded",
        form.title,
        len(visible),
        len(form.questions),
        len(fields),
    )
    return fields
