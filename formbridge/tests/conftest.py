"""
Shared test fixtures and helpers for the FormBridge test suite.

Provides FakeAirtable, an in-process stand-in for AirtableClient that
records calls instead of talking to the network, plus the example
volunteer signup form.
"""

from pathlib import Path
from typing import Any

import pytest

from formbridge.core.form_loader import load_form_file
from formbridge.core.schema import FormDefinition
from formbridge.integrations.airtable import AirtableError

FORMS_DIR = Path(__file__).parent.parent / "forms"


class FakeAirtable:
    """Records Airtable calls and returns canned results.

    Usage:
        airtable = FakeAirtable()
        record = await airtable.create_record("app1", "tbl1", {"Name": "Ada"})
        airtable.created_records  # [("app1", "tbl1", {"Name": "Ada"})]
    """

    def __init__(self, fail_with: str | None = None, tables: list[dict] | None = None):
        self.fail_with = fail_with
        self.tables = list(tables or [])
        self.created_records: list[tuple[str, str, dict[str, Any]]] = []
        self.created_webhooks: list[tuple[str, str, str]] = []
        self.deleted_webhooks: list[tuple[str, str]] = []

    def _maybe_fail(self, action: str) -> None:
        if self.fail_with is not None:
            raise AirtableError(action, self.fail_with, status_code=422)

    async def create_record(self, base_id: str, table_id: str, fields: dict[str, Any]) -> dict:
        self._maybe_fail("creating record")
        self.created_records.append((base_id, table_id, dict(fields)))
        return {"id": f"rec{len(self.created_records):03d}", "fields": fields}

    async def create_webhook(self, base_id: str, table_id: str, notification_url: str) -> dict:
        self._maybe_fail("creating webhook")
        self.created_webhooks.append((base_id, table_id, notification_url))
        return {"id": f"ach{len(self.created_webhooks):03d}"}

    async def delete_webhook(self, base_id: str, webhook_id: str) -> bool:
        self._maybe_fail("deleting webhook")
        self.deleted_webhooks.append((base_id, webhook_id))
        return True

    async def list_bases(self) -> list[dict]:
        self._maybe_fail("fetching bases")
        return [{"id": "appVolunteers01", "name": "Volunteers"}]

    async def get_table_schema(self, base_id: str, table_id_or_name: str) -> dict | None:
        self._maybe_fail("fetching tables")
        for table in self.tables:
            if table_id_or_name in (table.get("id"), table.get("name")):
                return table
        return None


@pytest.fixture
def volunteer_form() -> FormDefinition:
    """Load the volunteer_signup example form."""
    return load_form_file(FORMS_DIR / "volunteer_signup.md")


@pytest.fixture
def volunteer_form_dict(volunteer_form) -> dict:
    """The volunteer form as a camelCase JSON body."""
    return volunteer_form.model_dump(mode="json", by_alias=True)


@pytest.fixture
def fake_airtable() -> FakeAirtable:
    return FakeAirtable(tables=[{
        "id": "tblSignups01",
        "name": "Signups",
        "fields": [
            {"id": "fldName", "name": "Name", "type": "singleLineText"},
            {
                "id": "fldDrive",
                "name": "Can Drive",
                "type": "singleSelect",
                "options": {"choices": [{"name": "yes"}, {"name": "no"}]},
            },
            {"id": "fldCreated", "name": "Created", "type": "createdTime"},
        ],
    }])


@pytest.fixture
def failing_airtable() -> FakeAirtable:
    return FakeAirtable(fail_with="INVALID_PERMISSIONS")
