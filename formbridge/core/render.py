"""
Render plan models for the public form.

Describes which inputs the form renderer should display for the current
answers. Each visible question maps to a widget; hidden questions are
left out entirely.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from formbridge.core.form_state import FormStateManager
from formbridge.core.schema import FormDefinition, Question, QuestionType


class WidgetType(str, Enum):
    """Input widgets the renderer knows how to draw."""

    TEXT_INPUT = "TEXT_INPUT"
    TEXT_AREA = "TEXT_AREA"
    SELECT = "SELECT"
    CHECKBOX_GROUP = "CHECKBOX_GROUP"
    FILE_UPLOAD = "FILE_UPLOAD"


_QUESTION_TYPE_TO_WIDGET: dict[QuestionType, WidgetType] = {
    QuestionType.SINGLE_LINE_TEXT: WidgetType.TEXT_INPUT,
    QuestionType.MULTILINE_TEXT: WidgetType.TEXT_AREA,
    QuestionType.SINGLE_SELECT: WidgetType.SELECT,
    QuestionType.MULTIPLE_SELECTS: WidgetType.CHECKBOX_GROUP,
    QuestionType.ATTACHMENT: WidgetType.FILE_UPLOAD,
}


class RenderField(BaseModel):
    """One input to display."""

    model_config = ConfigDict(populate_by_name=True)

    question_key: str = Field(..., alias="questionKey")
    label: str
    widget: WidgetType
    required: bool
    options: list[str] | None = None
    value: Any = None


class RenderPlan(BaseModel):
    """Everything the renderer needs for one pass over the form."""

    model_config = ConfigDict(populate_by_name=True)

    fields: list[RenderField]
    missing_required: list[str] = Field(default_factory=list, alias="missingRequired")
    complete: bool


def build_render_field(question: Question, value: Any = None) -> RenderField:
    """Build the render field for a visible question."""
    return RenderField(
        question_key=question.question_key,
        label=question.label,
        widget=_QUESTION_TYPE_TO_WIDGET[question.type],
        required=question.required,
        options=question.options,
        value=value,
    )


def build_render_plan(form: FormDefinition, answers: dict[str, Any]) -> RenderPlan:
    """Build the render plan for a form given the current answers.

    Answers are taken as-is; no shape validation happens here since the
    renderer calls this on every edit.
    """
    state = FormStateManager(form)
    state.answers = dict(answers)

    fields = [
        build_render_field(question, state.get_answer(question.question_key))
        for question in state.get_visible_questions()
    ]
    missing = [q.question_key for q in state.get_missing_required_questions()]

    return RenderPlan(fields=fields, missing_required=missing, complete=not missing)
