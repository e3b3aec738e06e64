"""
Form definition and conditional visibility models.

These Pydantic models define the contract between the form builder,
the public form renderer, and the submission handler. A form definition
is the single source of truth for question types, options, and the
conditional rules that decide which questions are visible.

Wire names are camelCase (``questionKey``, ``conditionalRules``); the
models accept either the camelCase alias or the snake_case attribute name.
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


# --- Enums ---


class QuestionType(str, Enum):
    """Supported question types (mirrors the Airtable field types we can collect)."""

    SINGLE_LINE_TEXT = "singleLineText"
    MULTILINE_TEXT = "multilineText"
    SINGLE_SELECT = "singleSelect"
    MULTIPLE_SELECTS = "multipleSelects"
    ATTACHMENT = "attachment"


SELECT_TYPES = frozenset({QuestionType.SINGLE_SELECT, QuestionType.MULTIPLE_SELECTS})


class ConditionOperator(str, Enum):
    """Supported operators for visibility conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"


class RuleLogic(str, Enum):
    """How the conditions of a rule set are combined."""

    AND = "AND"
    OR = "OR"


# --- Conditional Rules ---


class Condition(BaseModel):
    """A single comparison against the answer stored at ``question_key``.

    The referenced key is not necessarily the owning question's key.
    """

    model_config = ConfigDict(populate_by_name=True)

    question_key: str = Field(
        ...,
        alias="questionKey",
        min_length=1,
        description="Key of the answer being tested",
    )
    operator: ConditionOperator = Field(
        ...,
        description="The comparison operator to apply",
    )
    value: Any = Field(
        default=None,
        description="Comparison operand (usually a string)",
    )


class ConditionalRules(BaseModel):
    """A question's conditional-display configuration.

    An empty ``conditions`` list means the question is always visible.
    """

    model_config = ConfigDict(populate_by_name=True)

    logic: RuleLogic = Field(
        default=RuleLogic.AND,
        description="AND (all conditions) or OR (any condition)",
    )
    conditions: list[Condition] = Field(
        default_factory=list,
        description="Conditions, evaluated in order",
    )

    @field_validator("logic", mode="before")
    @classmethod
    def default_unknown_logic(cls, value: Any) -> Any:
        """Anything other than AND/OR falls back to the default combinator."""
        if value is None:
            return RuleLogic.AND
        if isinstance(value, RuleLogic):
            return value
        if value not in {logic.value for logic in RuleLogic}:
            logger.debug("Unrecognized rule logic %r, using AND", value)
            return RuleLogic.AND
        return value


# --- Question ---


class Question(BaseModel):
    """Definition of a single form question.

    Select questions must include options; other types must not.
    """

    model_config = ConfigDict(populate_by_name=True)

    question_key: str = Field(
        ...,
        alias="questionKey",
        min_length=1,
        description="Stable identifier, unique within a form",
    )
    airtable_field_id: str = Field(
        ...,
        alias="airtableFieldId",
        min_length=1,
        description="Airtable field ID the answer is written to",
    )
    airtable_field_name: str | None = Field(
        default=None,
        alias="airtableFieldName",
        description="Airtable field name (preferred over the ID when writing records)",
    )
    label: str = Field(
        ...,
        min_length=1,
        description="The question text shown to the respondent",
    )
    type: QuestionType = Field(
        ...,
        description="The widget type for this question",
    )
    required: bool = Field(
        default=False,
        description="Whether a visible question must be answered",
    )
    options: list[str] | None = Field(
        default=None,
        description="Allowed values (select types only)",
    )
    conditional_rules: ConditionalRules | None = Field(
        default=None,
        alias="conditionalRules",
        description="Visibility rule set (always visible if absent)",
    )
    order: int = Field(default=0)

    @model_validator(mode="after")
    def validate_question(self) -> "Question":
        """Check options against the type and reject self-referencing rules."""
        if self.type in SELECT_TYPES:
            if not self.options:
                raise ValueError(
                    f"Question '{self.question_key}' of type '{self.type.value}' "
                    f"must have non-empty 'options'"
                )
        elif self.options:
            raise ValueError(
                f"Question '{self.question_key}' of type '{self.type.value}' "
                f"should not have 'options'"
            )

        if self.conditional_rules is not None:
            for condition in self.conditional_rules.conditions:
                if condition.question_key == self.question_key:
                    raise ValueError(
                        f"Question '{self.question_key}' has conditionalRules referencing itself"
                    )

        return self

    @property
    def airtable_field(self) -> str:
        """The Airtable field name, falling back to the field ID."""
        return self.airtable_field_name or self.airtable_field_id


# --- Form Definition ---


class FormDefinition(BaseModel):
    """Top-level form definition, bound to one Airtable table."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str | None = None
    airtable_base_id: str = Field(..., alias="airtableBaseId", min_length=1)
    airtable_table_id: str = Field(..., alias="airtableTableId", min_length=1)
    airtable_table_name: str | None = Field(default=None, alias="airtableTableName")
    questions: list[Question] = Field(
        ...,
        min_length=1,
        description="Ordered questions (at least one required)",
    )
    is_active: bool = Field(default=True, alias="isActive")
    allow_multiple_submissions: bool = Field(default=True, alias="allowMultipleSubmissions")

    @model_validator(mode="after")
    def validate_question_keys(self) -> "FormDefinition":
        """Question keys must be unique within the form."""
        keys = set()
        for question in self.questions:
            if question.question_key in keys:
                raise ValueError(f"Duplicate question key: '{question.question_key}'")
            keys.add(question.question_key)

        # Referencing a key that no question owns is legal: the condition
        # simply sees an absent answer.
        for question in self.questions:
            if question.conditional_rules is None:
                continue
            for condition in question.conditional_rules.conditions:
                if condition.question_key not in keys:
                    logger.debug(
                        "Question '%s' references unknown key '%s'",
                        question.question_key,
                        condition.question_key,
                    )

        return self

    def get_question(self, question_key: str) -> Question | None:
        """Look up a question by key."""
        for question in self.questions:
            if question.question_key == question_key:
                return question
        return None
