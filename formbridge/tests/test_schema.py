"""
Unit tests for form definition validation.

Tests cover:
- Valid definitions pass validation (camelCase and snake_case input)
- Missing required keys are rejected
- Duplicate question keys are rejected
- Select questions without options are rejected
- Options on non-select questions are rejected
- Unknown question types and operators are rejected at authoring time
- Self-referencing conditional rules are rejected
- Conditions referencing unknown keys are allowed
- Loading the example form file works
"""

import pytest
from pydantic import ValidationError

from formbridge.core.schema import (
    ConditionOperator,
    FormDefinition,
    Question,
    QuestionType,
    RuleLogic,
)


# --- Helper: minimal valid definition builder ---


def build_form(**overrides) -> dict:
    """Build a minimal valid form definition dict, with optional overrides."""
    base = {
        "title": "Test form",
        "airtableBaseId": "app1",
        "airtableTableId": "tbl1",
        "questions": [
            {
                "questionKey": "name",
                "airtableFieldId": "fldName",
                "label": "What is your name?",
                "type": "singleLineText",
                "required": True,
            }
        ],
    }
    base.update(overrides)
    return base


def select_question(key: str = "color", **overrides) -> dict:
    question = {
        "questionKey": key,
        "airtableFieldId": f"fld_{key}",
        "label": "Pick one",
        "type": "singleSelect",
        "options": ["Red", "Blue"],
    }
    question.update(overrides)
    return question


# =============================================================
# Test: Valid definitions
# =============================================================


class TestValidDefinitions:
    """Tests that valid definitions pass validation without errors."""

    def test_minimal_valid_form(self):
        form = FormDefinition.model_validate(build_form())
        assert form.title == "Test form"
        assert len(form.questions) == 1
        assert form.questions[0].question_key == "name"
        assert form.questions[0].type is QuestionType.SINGLE_LINE_TEXT

    def test_defaults(self):
        form = FormDefinition.model_validate(build_form())
        question = form.questions[0]
        assert form.is_active is True
        assert form.allow_multiple_submissions is True
        assert question.conditional_rules is None
        assert question.options is None
        assert question.order == 0

    def test_snake_case_input(self):
        form = FormDefinition(
            title="T",
            airtable_base_id="app1",
            airtable_table_id="tbl1",
            questions=[
                Question(
                    question_key="q",
                    airtable_field_id="fld",
                    label="Q",
                    type=QuestionType.MULTILINE_TEXT,
                )
            ],
        )
        assert form.airtable_base_id == "app1"

    def test_dump_uses_camel_case_aliases(self):
        form = FormDefinition.model_validate(build_form())
        data = form.model_dump(by_alias=True)
        assert "airtableBaseId" in data
        assert "questionKey" in data["questions"][0]

    def test_every_question_type(self):
        questions = [
            {"questionKey": "a", "airtableFieldId": "f1", "label": "A", "type": "singleLineText"},
            {"questionKey": "b", "airtableFieldId": "f2", "label": "B", "type": "multilineText"},
            select_question("c"),
            select_question("d", type="multipleSelects"),
            {"questionKey": "e", "airtableFieldId": "f5", "label": "E", "type": "attachment"},
        ]
        form = FormDefinition.model_validate(build_form(questions=questions))
        assert {q.type for q in form.questions} == set(QuestionType)

    def test_conditional_rules_parsed(self):
        questions = [
            select_question("color"),
            {
                "questionKey": "shade",
                "airtableFieldId": "fldShade",
                "label": "Which shade?",
                "type": "singleLineText",
                "conditionalRules": {
                    "logic": "OR",
                    "conditions": [
                        {"questionKey": "color", "operator": "equals", "value": "Red"},
                        {"questionKey": "color", "operator": "contains", "value": "blu"},
                    ],
                },
            },
        ]
        form = FormDefinition.model_validate(build_form(questions=questions))
        rules = form.questions[1].conditional_rules
        assert rules.logic is RuleLogic.OR
        assert [c.operator for c in rules.conditions] == [
            ConditionOperator.EQUALS,
            ConditionOperator.CONTAINS,
        ]

    def test_reference_to_unknown_key_is_allowed(self):
        questions = [
            {
                "questionKey": "q",
                "airtableFieldId": "fld",
                "label": "Q",
                "type": "singleLineText",
                "conditionalRules": {
                    "conditions": [{"questionKey": "missing", "operator": "notEquals", "value": "x"}],
                },
            }
        ]
        form = FormDefinition.model_validate(build_form(questions=questions))
        assert form.questions[0].conditional_rules.conditions[0].question_key == "missing"

    def test_get_question(self):
        form = FormDefinition.model_validate(build_form())
        assert form.get_question("name").label == "What is your name?"
        assert form.get_question("nope") is None

    def test_airtable_field_prefers_name(self):
        question = Question.model_validate(
            select_question(airtableFieldName="Color")
        )
        assert question.airtable_field == "Color"
        assert Question.model_validate(select_question()).airtable_field == "fld_color"

    def test_example_form_loads(self, volunteer_form):
        assert volunteer_form.title == "Volunteer Signup"
        assert volunteer_form.get_question("vehicle").conditional_rules is not None


# =============================================================
# Test: Invalid definitions
# =============================================================


class TestInvalidDefinitions:
    """Tests that malformed definitions are rejected."""

    def test_missing_title(self):
        data = build_form()
        del data["title"]
        with pytest.raises(ValidationError):
            FormDefinition.model_validate(data)

    def test_empty_questions(self):
        with pytest.raises(ValidationError):
            FormDefinition.model_validate(build_form(questions=[]))

    def test_duplicate_question_keys(self):
        questions = [select_question("dup"), select_question("dup")]
        with pytest.raises(ValidationError, match="Duplicate question key"):
            FormDefinition.model_validate(build_form(questions=questions))

    def test_select_without_options(self):
        with pytest.raises(ValidationError, match="must have non-empty 'options'"):
            Question.model_validate(select_question(options=[]))

    def test_multiple_selects_without_options(self):
        with pytest.raises(ValidationError, match="must have non-empty 'options'"):
            Question.model_validate(select_question(type="multipleSelects", options=None))

    def test_text_with_options(self):
        with pytest.raises(ValidationError, match="should not have 'options'"):
            Question.model_validate(select_question(type="singleLineText"))

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            Question.model_validate(select_question(type="checkbox"))

    def test_unknown_operator(self):
        with pytest.raises(ValidationError):
            Question.model_validate({
                "questionKey": "q",
                "airtableFieldId": "fld",
                "label": "Q",
                "type": "singleLineText",
                "conditionalRules": {
                    "conditions": [{"questionKey": "other", "operator": "greaterThan", "value": "1"}],
                },
            })

    def test_self_reference(self):
        with pytest.raises(ValidationError, match="referencing itself"):
            Question.model_validate({
                "questionKey": "q",
                "airtableFieldId": "fld",
                "label": "Q",
                "type": "singleLineText",
                "conditionalRules": {
                    "conditions": [{"questionKey": "q", "operator": "equals", "value": "x"}],
                },
            })

    def test_empty_question_key(self):
        with pytest.raises(ValidationError):
            Question.model_validate(select_question(questionKey=""))
