"""
Unit tests for loading form definition files.

Tests cover:
- YAML frontmatter parsing (valid, missing, malformed, non-dict)
- Markdown body becomes the description
- JSON and YAML definition files
- Directory loading skips invalid files
"""

import json
from pathlib import Path

import pytest

from formbridge.core.form_loader import (
    FormFileError,
    load_form_file,
    load_forms_dir,
    parse_form_document,
    parse_frontmatter,
)

FORMS_DIR = Path(__file__).parent.parent / "forms"

MINIMAL = {
    "title": "Minimal",
    "airtableBaseId": "app1",
    "airtableTableId": "tbl1",
    "questions": [
        {"questionKey": "q", "airtableFieldId": "fld", "label": "Q", "type": "singleLineText"},
    ],
}


class TestParseFrontmatter:

    def test_valid(self):
        data, body = parse_frontmatter("---\ntitle: T\n---\n# Body")
        assert data == {"title": "T"}
        assert body == "# Body"

    def test_no_frontmatter(self):
        content = "# Just markdown"
        assert parse_frontmatter(content) == ({}, content)

    def test_unclosed(self):
        content = "---\ntitle: T\n"
        assert parse_frontmatter(content) == ({}, content)

    def test_malformed_yaml(self):
        content = "---\ntitle: [unclosed\n---\nbody"
        assert parse_frontmatter(content)[0] == {}

    def test_non_dict(self):
        content = "---\n- a\n- b\n---\nbody"
        assert parse_frontmatter(content)[0] == {}


class TestParseFormDocument:

    def test_markdown_body_becomes_description(self, volunteer_form):
        assert volunteer_form.description.startswith("Thanks for volunteering!")

    def test_explicit_description_wins(self):
        content = "---\n" + json.dumps({**MINIMAL, "description": "Set"}) + "\n---\nBody text"
        assert parse_form_document(content).description == "Set"

    def test_markdown_without_frontmatter(self):
        with pytest.raises(FormFileError, match="no YAML frontmatter"):
            parse_form_document("# Nothing here")

    def test_json(self):
        form = parse_form_document(json.dumps(MINIMAL), ".json")
        assert form.title == "Minimal"

    def test_yaml(self):
        content = "title: Y\nairtableBaseId: a\nairtableTableId: t\nquestions:\n" \
                  "  - {questionKey: q, airtableFieldId: f, label: Q, type: multilineText}\n"
        assert parse_form_document(content, ".yaml").questions[0].question_key == "q"

    def test_invalid_json(self):
        with pytest.raises(FormFileError, match="Could not parse"):
            parse_form_document("{nope", ".json")

    def test_invalid_definition(self):
        with pytest.raises(FormFileError, match="Invalid form definition"):
            parse_form_document(json.dumps({"title": "No questions"}), ".json")

    def test_non_mapping(self):
        with pytest.raises(FormFileError, match="mapping"):
            parse_form_document("[1, 2]", ".json")


class TestLoadFiles:

    def test_load_example_file(self):
        form = load_form_file(FORMS_DIR / "volunteer_signup.md")
        assert form.airtable_table_id == "tblSignups01"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FormFileError, match="Could not read"):
            load_form_file(tmp_path / "missing.md")

    def test_load_dir_skips_invalid(self, tmp_path):
        (tmp_path / "good.json").write_text(json.dumps(MINIMAL), encoding="utf-8")
        (tmp_path / "bad.json").write_text("{nope", encoding="utf-8")
        (tmp_path / "ignored.txt").write_text("whatever", encoding="utf-8")
        forms = load_forms_dir(tmp_path)
        assert list(forms) == ["good"]

    def test_load_missing_dir(self, tmp_path):
        assert load_forms_dir(tmp_path / "nope") == {}

    def test_load_example_dir(self):
        assert "volunteer_signup" in load_forms_dir(FORMS_DIR)
