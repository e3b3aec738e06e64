"""
Airtable webhook notification handling.

Keeps the local response mirror in sync with Airtable: cell changes made
to a submitted record are written back to the stored answers, and
destroyed records mark their response as deleted.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from formbridge.core.store import FormStore, ResponseStore, StoredForm
from formbridge.core.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

TABLE_DATA = "tableData"
PUBLIC_API_SOURCE = "publicApi"


class WebhookPayloadError(Exception):
    """Raised when a webhook notification body is not usable."""


# --- Notification Models ---


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BaseRef(_Model):
    id: str


class WebhookFilters(_Model):
    data_types: list[str] | None = Field(default=None, alias="dataTypes")


class WebhookSpecification(_Model):
    filters: WebhookFilters | None = None
    options: dict[str, Any] | None = None

    def data_types(self) -> list[str] | None:
        """Data types from ``filters`` or the nested ``options.filters``."""
        if self.filters is not None and self.filters.data_types is not None:
            return self.filters.data_types
        nested = (self.options or {}).get("filters") or {}
        return nested.get("dataTypes")


class WebhookRef(_Model):
    id: str
    specification: WebhookSpecification | None = None


class SourceMetadata(_Model):
    record_id: str | None = Field(default=None, alias="recordId")


class ActionMetadata(_Model):
    source: str | None = None
    source_metadata: SourceMetadata | None = Field(default=None, alias="sourceMetadata")


class CellValues(_Model):
    cell_values_by_field_id: dict[str, Any] | None = Field(default=None, alias="cellValuesByFieldId")


class ChangedRecord(_Model):
    current: CellValues | None = None


class TableChanges(_Model):
    changed_records_by_id: dict[str, ChangedRecord] = Field(
        default_factory=dict, alias="changedRecordsById"
    )
    destroyed_record_ids: list[str] = Field(default_factory=list, alias="destroyedRecordIds")


class WebhookPayload(_Model):
    timestamp: str | None = None
    action_metadata: ActionMetadata | None = Field(default=None, alias="actionMetadata")
    changed_tables_by_id: dict[str, TableChanges] = Field(
        default_factory=dict, alias="changedTablesById"
    )


class WebhookNotification(_Model):
    base: BaseRef
    webhook: WebhookRef
    timestamp: str | None = None
    payloads: list[WebhookPayload] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of applying one notification."""

    matched: bool
    form_id: str | None = None
    updated: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


# --- Sync ---


def parse_notification(body: Any) -> WebhookNotification:
    """Validate a raw notification body.

    Raises:
        WebhookPayloadError: If the body lacks ``base`` or ``webhook``.
    """
    try:
        return WebhookNotification.model_validate(body)
    except ValidationError as e:
        raise WebhookPayloadError(f"Invalid webhook payload: {e.error_count()} error(s)") from e


def apply_webhook_notification(
    body: Any,
    form_store: FormStore,
    response_store: ResponseStore,
) -> SyncResult:
    """Apply an Airtable webhook notification to the response mirror.

    Args:
        body: The decoded JSON notification body.
        form_store: Store used to find the form owning the webhook.
        response_store: Store holding the mirrored responses.

    Returns:
        A SyncResult listing the response IDs that were updated or deleted.

    Raises:
        WebhookPayloadError: If the notification is malformed.
    """
    notification = parse_notification(body)

    form = form_store.find_by_webhook(notification.base.id, notification.webhook.id)
    if form is None:
        logger.info(
            "No form matches webhook %s on base %s",
            notification.webhook.id,
            notification.base.id,
        )
        return SyncResult(matched=False)

    result = SyncResult(matched=True, form_id=form.id)

    spec = notification.webhook.specification
    data_types = spec.data_types() if spec is not None else None
    if data_types is not None and TABLE_DATA not in data_types:
        logger.debug("Webhook %s does not watch table data, ignoring", notification.webhook.id)
        return result

    for payload in notification.payloads:
        _apply_payload(form, payload, notification.timestamp, response_store, result)

    return result


def _apply_payload(
    form: StoredForm,
    payload: WebhookPayload,
    fallback_timestamp: str | None,
    response_store: ResponseStore,
    result: SyncResult,
) -> None:
    """Apply a single payload to the response it concerns, if any."""
    meta = payload.action_metadata
    if meta is None or meta.source != PUBLIC_API_SOURCE:
        return
    record_id = meta.source_metadata.record_id if meta.source_metadata else None
    if not record_id:
        return

    response = response_store.find_by_record(form.id, record_id)
    if response is None:
        logger.debug("No mirrored response for record %s", record_id)
        return

    table_changes = payload.changed_tables_by_id.get(form.airtable_table_id)
    if table_changes is None:
        return

    synced_at = _payload_time(payload.timestamp or fallback_timestamp)

    changed = table_changes.changed_records_by_id.get(record_id)
    if changed is not None and changed.current is not None and changed.current.cell_values_by_field_id is not None:
        cells = changed.current.cell_values_by_field_id
        answer_changes = {
            question.question_key: cells[question.airtable_field_id]
            for question in form.questions
            if question.airtable_field_id in cells
        }
        response_store.update_answers(response.id, answer_changes, synced_at)
        result.updated.append(response.id)
        logger.info("Updated response %s from Airtable webhook", response.id)

    if record_id in table_changes.destroyed_record_ids:
        response_store.mark_deleted(response.id, synced_at)
        result.deleted.append(response.id)
        logger.info("Marked response %s as deleted from Airtable", response.id)


def _payload_time(value: str | None) -> datetime:
    return parse_timestamp(value) or utc_now()
