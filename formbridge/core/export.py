"""
CSV and JSON export of mirrored responses.
"""

from typing import Any

from formbridge.core.store import StoredForm, StoredResponse
from formbridge.core.utils import utc_now


def _csv_cell(answer: Any) -> str:
    """Format one answer cell: lists are joined, None is empty, text is quoted."""
    if isinstance(answer, list):
        return '"' + "; ".join(str(item) for item in answer).replace('"', '""') + '"'
    if answer is None:
        return ""
    return '"' + str(answer).replace('"', '""') + '"'


def _csv_header(label: str) -> str:
    """Quote a header label only when it holds a comma, quote or line break."""
    if any(ch in label for ch in ',"\r\n'):
        return '"' + label.replace('"', '""') + '"'
    return label


def responses_to_csv(form: StoredForm, responses: list[StoredResponse]) -> str:
    """Render responses as CSV, one column per question label."""
    headers = ["Submission ID", "Created At", *(q.label for q in form.questions)]
    rows = [",".join(_csv_header(h) for h in headers)]

    for response in responses:
        row = [
            response.id,
            response.created_at.isoformat(),
            *(_csv_cell(response.answers.get(q.question_key)) for q in form.questions),
        ]
        rows.append(",".join(row))

    return "\n".join(rows)


def responses_to_json(form: StoredForm, responses: list[StoredResponse]) -> dict[str, Any]:
    """Build the JSON export document for a form's responses."""
    return {
        "form": {
            "id": form.id,
            "title": form.title,
            "description": form.description,
        },
        "responses": [
            {
                "id": r.id,
                "submittedAt": r.created_at.isoformat(),
                "answers": dict(r.answers),
            }
            for r in responses
        ],
        "exportedAt": utc_now().isoformat(),
    }
