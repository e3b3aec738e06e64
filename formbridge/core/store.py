"""
In-memory stores for form definitions and mirrored responses.

Forms are created by the form builder; responses are created on submit
and kept in sync with their Airtable records by the webhook handler.
Both stores are thread-safe for basic use. For production, back them
with a proper database.
"""

import threading
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from formbridge.core.schema import FormDefinition
from formbridge.core.utils import utc_now


class StoredForm(FormDefinition):
    """A form definition as persisted, with bookkeeping fields."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    airtable_webhook_id: str | None = Field(default=None, alias="airtableWebhookId")
    webhook_active: bool = Field(default=False, alias="webhookActive")
    submission_count: int = Field(default=0, alias="submissionCount")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")


class StoredResponse(BaseModel):
    """Local mirror of one submission and its Airtable record."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    form_id: str = Field(..., alias="formId")
    airtable_record_id: str = Field(..., alias="airtableRecordId")
    answers: dict[str, Any]
    submitter_ip: str | None = Field(default=None, alias="submitterIp")
    user_agent: str | None = Field(default=None, alias="userAgent")
    deleted_in_airtable: bool = Field(default=False, alias="deletedInAirtable")
    deleted_at: datetime | None = Field(default=None, alias="deletedAt")
    last_synced_at: datetime = Field(default_factory=utc_now, alias="lastSyncedAt")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")


class FormStore:
    """In-memory store for form definitions."""

    def __init__(self):
        self._forms: dict[str, StoredForm] = {}
        self._lock = threading.RLock()

    def create_form(self, definition: FormDefinition, form_id: str | None = None) -> StoredForm:
        """Persist a validated definition and return the stored form."""
        data = definition.model_dump()
        if form_id is not None:
            data["id"] = form_id
        form = StoredForm.model_validate(data)
        with self._lock:
            self._forms[form.id] = form
        return form

    def get_form(self, form_id: str) -> StoredForm | None:
        with self._lock:
            return self._forms.get(form_id)

    def list_forms(self) -> list[StoredForm]:
        """Return all forms, newest first."""
        with self._lock:
            forms = list(self._forms.values())
        return sorted(forms, key=lambda f: f.created_at, reverse=True)

    def update_form(self, form_id: str, **changes: Any) -> StoredForm | None:
        """Apply changes to a stored form, re-validating the result.

        Returns None if the form does not exist. Raises
        ``pydantic.ValidationError`` if the changes produce an invalid form.
        """
        with self._lock:
            form = self._forms.get(form_id)
            if form is None:
                return None
            data = form.model_dump()
            data.update(changes)
            data["updated_at"] = utc_now()
            updated = StoredForm.model_validate(data)
            self._forms[form_id] = updated
            return updated

    def delete_form(self, form_id: str) -> bool:
        """Delete a form. Returns True if it existed."""
        with self._lock:
            return self._forms.pop(form_id, None) is not None

    def find_by_webhook(self, base_id: str, webhook_id: str) -> StoredForm | None:
        """Find the form a webhook notification belongs to."""
        with self._lock:
            for form in self._forms.values():
                if form.airtable_base_id == base_id and form.airtable_webhook_id == webhook_id:
                    return form
        return None

    def increment_submission_count(self, form_id: str) -> int:
        with self._lock:
            form = self._forms[form_id]
            form.submission_count += 1
            return form.submission_count

    def count(self) -> int:
        """Return the number of stored forms."""
        with self._lock:
            return len(self._forms)


class ResponseStore:
    """In-memory store for mirrored responses."""

    def __init__(self):
        self._responses: dict[str, StoredResponse] = {}
        self._lock = threading.RLock()

    def create_response(
        self,
        form_id: str,
        airtable_record_id: str,
        answers: dict[str, Any],
        submitter_ip: str | None = None,
        user_agent: str | None = None,
    ) -> StoredResponse:
        response = StoredResponse(
            form_id=form_id,
            airtable_record_id=airtable_record_id,
            answers=dict(answers),
            submitter_ip=submitter_ip,
            user_agent=user_agent,
        )
        with self._lock:
            self._responses[response.id] = response
        return response

    def get_response(self, form_id: str, response_id: str) -> StoredResponse | None:
        with self._lock:
            response = self._responses.get(response_id)
        if response is None or response.form_id != form_id:
            return None
        return response

    def list_responses(self, form_id: str, include_deleted: bool = False) -> list[StoredResponse]:
        """Return a form's responses, newest first."""
        with self._lock:
            responses = [
                r for r in self._responses.values()
                if r.form_id == form_id and (include_deleted or not r.deleted_in_airtable)
            ]
        return sorted(responses, key=lambda r: r.created_at, reverse=True)

    def find_by_record(self, form_id: str, airtable_record_id: str) -> StoredResponse | None:
        with self._lock:
            for response in self._responses.values():
                if response.form_id == form_id and response.airtable_record_id == airtable_record_id:
                    return response
        return None

    def update_answers(self, response_id: str, changes: dict[str, Any], synced_at: datetime) -> StoredResponse:
        """Merge changed answers into a response and stamp the sync time."""
        with self._lock:
            response = self._responses[response_id]
            response.answers = {**response.answers, **changes}
            response.last_synced_at = synced_at
            return response

    def mark_deleted(self, response_id: str, deleted_at: datetime) -> StoredResponse:
        """Flag a response whose Airtable record was destroyed."""
        with self._lock:
            response = self._responses[response_id]
            response.deleted_in_airtable = True
            response.deleted_at = deleted_at
            response.last_synced_at = deleted_at
            return response

    def delete_for_form(self, form_id: str) -> int:
        """Remove all responses of a form. Returns the count removed."""
        with self._lock:
            doomed = [rid for rid, r in self._responses.items() if r.form_id == form_id]
            for rid in doomed:
                del self._responses[rid]
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._responses)
