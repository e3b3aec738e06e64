"""
Unit tests for CSV and JSON response export.
"""

import csv

from formbridge.core.export import responses_to_csv, responses_to_json
from formbridge.core.store import FormStore, ResponseStore


def _setup(volunteer_form):
    form = FormStore().create_form(volunteer_form)
    responses = ResponseStore()
    response = responses.create_response(
        form_id=form.id,
        airtable_record_id="rec1",
        answers={
            "name": 'Ada "Countess" Lovelace',
            "can_drive": "no",
            "skills": ["cooking", "first aid"],
        },
    )
    return form, [response]


class TestCsvExport:

    def test_header_row(self, volunteer_form):
        form, responses = _setup(volunteer_form)
        header = responses_to_csv(form, responses).split("\n")[0]
        assert header.startswith("Submission ID,Created At,Your name,Can you drive?")

    def test_cells(self, volunteer_form):
        form, responses = _setup(volunteer_form)
        row = responses_to_csv(form, responses).split("\n")[1]
        assert row.startswith(f"{responses[0].id},{responses[0].created_at.isoformat()},")
        assert '"Ada ""Countess"" Lovelace"' in row
        assert '"cooking; first aid"' in row

    def test_missing_answers_are_empty(self, volunteer_form):
        form, responses = _setup(volunteer_form)
        row = responses_to_csv(form, responses).split("\n")[1]
        assert '"no",,"cooking' in row
        assert row.endswith('"cooking; first aid",,,')

    def test_header_labels_with_commas_are_quoted(self, volunteer_form):
        relabelled = volunteer_form.model_copy(update={
            "questions": [
                q.model_copy(update={"label": 'Name, "preferred"'}) if q.question_key == "name" else q
                for q in volunteer_form.questions
            ]
        })
        form, responses = _setup(relabelled)
        header, row = responses_to_csv(form, responses).split("\n")
        assert header.startswith('Submission ID,Created At,"Name, ""preferred""",Can you drive?')
        assert len(next(csv.reader([header]))) == len(next(csv.reader([row]))) == 2 + len(form.questions)

    def test_no_responses(self, volunteer_form):
        form, _ = _setup(volunteer_form)
        assert responses_to_csv(form, []).count("\n") == 0


class TestJsonExport:

    def test_document(self, volunteer_form):
        form, responses = _setup(volunteer_form)
        doc = responses_to_json(form, responses)
        assert doc["form"] == {"id": form.id, "title": "Volunteer Signup", "description": form.description}
        assert doc["responses"][0]["id"] == responses[0].id
        assert doc["responses"][0]["answers"]["skills"] == ["cooking", "first aid"]
        assert "exportedAt" in doc
