"""
Form state manager for in-progress answers.

Tracks the state of a single form being filled in:
- Which questions are visible based on current answers
- Which visible questions are required and still missing
- What the next question to answer is
- Validation of answer shapes per question type

Answers to questions that become hidden are kept, not cleared: other
questions' conditions may still reference them, and only visible answers
are ever submitted.
"""

from typing import Any

from formbridge.core.answers import is_answered
from formbridge.core.schema import FormDefinition, Question, QuestionType
from formbridge.core.visibility import filter_visible


class AnswerValidationError(Exception):
    """Raised when an answer has the wrong shape for its question type."""

    def __init__(self, question_key: str, message: str):
        self.question_key = question_key
        self.message = message
        super().__init__(f"Question '{question_key}': {message}")


class FormStateManager:
    """Manages the answers of a single form-filling session.

    Every query re-evaluates visibility against the current answers;
    nothing is cached between calls.

    Args:
        form: A validated FormDefinition instance.
    """

    def __init__(self, form: FormDefinition):
        self.form = form
        self.answers: dict[str, Any] = {}

    # -----------------------------------------------------------------
    # Question resolution
    # -----------------------------------------------------------------

    def get_visible_questions(self) -> list[Question]:
        """Return all questions that are currently visible based on answers."""
        return filter_visible(self.form.questions, self.answers)

    def get_required_questions(self) -> list[Question]:
        """Return visible questions that must be answered."""
        return [q for q in self.get_visible_questions() if q.required]

    def get_missing_required_questions(self) -> list[Question]:
        """Return visible, required questions that have not been answered yet."""
        return [
            q for q in self.get_required_questions()
            if not is_answered(self.answers.get(q.question_key))
        ]

    def get_next_question(self) -> Question | None:
        """Return the first missing required visible question, or None if complete."""
        missing = self.get_missing_required_questions()
        return missing[0] if missing else None

    def is_complete(self) -> bool:
        """Check if all visible required questions have been answered."""
        return len(self.get_missing_required_questions()) == 0

    # -----------------------------------------------------------------
    # Answer management
    # -----------------------------------------------------------------

    def set_answer(self, question_key: str, value: Any) -> None:
        """Store an answer for the given question.

        Raises:
            AnswerValidationError: If the value has the wrong shape for the question type.
            ValueError: If the question key does not exist in the form.
        """
        question = self.form.get_question(question_key)
        if question is None:
            raise ValueError(f"Question '{question_key}' does not exist in the form")

        self._validate_answer(question, value)
        self.answers[question_key] = value

    def get_answer(self, question_key: str) -> Any:
        """Retrieve the current answer for a question, or None if not answered."""
        return self.answers.get(question_key)

    def clear_answer(self, question_key: str) -> None:
        """Remove an answer, if present."""
        self.answers.pop(question_key, None)

    def get_all_answers(self) -> dict[str, Any]:
        """Return a copy of all current answers, including hidden ones."""
        return dict(self.answers)

    def get_visible_answers(self) -> dict[str, Any]:
        """Return only answers for currently visible questions."""
        visible_keys = {q.question_key for q in self.get_visible_questions()}
        return {k: v for k, v in self.answers.items() if k in visible_keys}

    def set_answers_bulk(self, answers: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
        """Set multiple answers at once, skipping invalid ones.

        Returns:
            A tuple of (accepted, rejected) where:
            - accepted: {question_key: value} for stored answers
            - rejected: {question_key: error_message} for answers that failed validation
        """
        accepted: dict[str, Any] = {}
        rejected: dict[str, str] = {}

        for question_key, value in answers.items():
            question = self.form.get_question(question_key)
            if question is None:
                rejected[question_key] = f"Question '{question_key}' does not exist in the form"
                continue
            try:
                self._validate_answer(question, value)
            except AnswerValidationError as e:
                rejected[question_key] = e.message
                continue

            self.answers[question_key] = value
            accepted[question_key] = value

        return accepted, rejected

    # -----------------------------------------------------------------
    # Answer validation per question type
    # -----------------------------------------------------------------

    def _validate_answer(self, question: Question, value: Any) -> None:
        """Validate an answer against its question type.

        Raises:
            AnswerValidationError: If the value is invalid.
        """
        match question.type:
            case QuestionType.SINGLE_LINE_TEXT | QuestionType.MULTILINE_TEXT:
                self._validate_text(question, value)
            case QuestionType.SINGLE_SELECT:
                self._validate_single_select(question, value)
            case QuestionType.MULTIPLE_SELECTS:
                self._validate_multiple_selects(question, value)
            case QuestionType.ATTACHMENT:
                self._validate_attachment(question, value)

    def _validate_text(self, question: Question, value: Any) -> None:
        if not isinstance(value, str):
            raise AnswerValidationError(question.question_key, "Text answer must be a string")
        if question.type is QuestionType.SINGLE_LINE_TEXT and "\n" in value:
            raise AnswerValidationError(
                question.question_key, "Single line answer must not contain line breaks"
            )

    def _validate_single_select(self, question: Question, value: Any) -> None:
        """Single select value must be one of the defined options."""
        if not isinstance(value, str):
            raise AnswerValidationError(question.question_key, "Single select answer must be a string")
        if value not in (question.options or []):
            raise AnswerValidationError(
                question.question_key,
                f"'{value}' is not a valid option. Choose from: {question.options}",
            )

    def _validate_multiple_selects(self, question: Question, value: Any) -> None:
        """Multiple select values must be a list and a subset of defined options."""
        if not isinstance(value, list):
            raise AnswerValidationError(question.question_key, "Multiple select answer must be a list")
        invalid = [v for v in value if v not in (question.options or [])]
        if invalid:
            raise AnswerValidationError(
                question.question_key,
                f"Invalid options: {invalid}. Choose from: {question.options}",
            )

    def _validate_attachment(self, question: Question, value: Any) -> None:
        """Attachments use Airtable's shape: a list of objects with a 'url'."""
        if not isinstance(value, list):
            raise AnswerValidationError(question.question_key, "Attachment answer must be a list")
        for item in value:
            if not isinstance(item, dict) or not item.get("url"):
                raise AnswerValidationError(
                    question.question_key, "Each attachment must be an object with a 'url'"
                )
