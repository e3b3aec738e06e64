"""
Airtable REST API client.

Thin async wrapper over the Airtable Web API for the calls FormBridge
needs: schema introspection (bases, tables, fields), record writes, and
webhook registration. Authentication is a bearer token supplied by the
caller.
"""

import logging
import os
from typing import Any

import httpx

from formbridge.core.schema import Question, QuestionType
from formbridge.core.utils import is_truthy, slugify_key

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.airtable.com/v0"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Airtable field type -> question type
_FIELD_TYPE_TO_QUESTION: dict[str, QuestionType] = {
    "singleLineText": QuestionType.SINGLE_LINE_TEXT,
    "multilineText": QuestionType.MULTILINE_TEXT,
    "singleSelect": QuestionType.SINGLE_SELECT,
    "multipleSelects": QuestionType.MULTIPLE_SELECTS,
    "multipleAttachments": QuestionType.ATTACHMENT,
    "attachment": QuestionType.ATTACHMENT,
}


class AirtableError(Exception):
    """Raised when an Airtable API call fails."""

    def __init__(self, action: str, message: str, status_code: int | None = None):
        self.action = action
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _build_safe_curl(request: httpx.Request) -> str:
    """Build a debug curl command with the bearer token redacted."""
    curl = f"curl -X {request.method} '{request.url}'"
    for key, value in request.headers.items():
        header_value = "[REDACTED]" if key.lower() == "authorization" else value
        curl += f" -H '{key}: {header_value}'"

    if request.content:
        body = request.content.decode(errors="ignore")
        max_body_chars = 2000
        if len(body) > max_body_chars:
            body = body[:max_body_chars] + "... [TRUNCATED]"
        curl += f" -d '{body}'"
    return curl


class CurlLoggingAsyncClient(httpx.AsyncClient):
    async def send(self, request, *args, **kwargs):
        if is_truthy(os.getenv("LOG_AIRTABLE_CURL"), default=False):
            logger.debug("Airtable request: %s", _build_safe_curl(request))
        return await super().send(request, *args, **kwargs)


class AirtableClient:
    """Async client for the Airtable Web API.

    Args:
        access_token: Personal access token or OAuth access token.
        api_url: Base URL of the API (``.../v0``).
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = CurlLoggingAsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "AirtableClient":
        """Create a client from AIRTABLE_* environment variables."""
        token = os.getenv("AIRTABLE_ACCESS_TOKEN")
        if not token:
            raise ValueError("AIRTABLE_ACCESS_TOKEN must be set")
        return cls(
            access_token=token,
            api_url=os.getenv("AIRTABLE_API_URL", DEFAULT_API_URL),
            timeout=float(os.getenv("AIRTABLE_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------
    # Schema introspection
    # -----------------------------------------------------------------

    async def list_bases(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/meta/bases", action="fetching bases")
        return data.get("bases", [])

    async def list_tables(self, base_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/meta/bases/{base_id}/tables", action="fetching tables")
        return data.get("tables", [])

    async def get_table_schema(self, base_id: str, table_id_or_name: str) -> dict[str, Any] | None:
        """Return the table whose ID or name matches, or None."""
        for table in await self.list_tables(base_id):
            if table.get("id") == table_id_or_name or table.get("name") == table_id_or_name:
                return table
        return None

    # -----------------------------------------------------------------
    # Records
    # -----------------------------------------------------------------

    async def create_record(self, base_id: str, table_id_or_name: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/{base_id}/{table_id_or_name}",
            action="creating record",
            json={"fields": fields},
        )

    async def update_record(
        self,
        base_id: str,
        table_id_or_name: str,
        record_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/{base_id}/{table_id_or_name}/{record_id}",
            action="updating record",
            json={"fields": fields},
        )

    async def get_record(self, base_id: str, table_id_or_name: str, record_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/{base_id}/{table_id_or_name}/{record_id}",
            action="fetching record",
        )

    # -----------------------------------------------------------------
    # Webhooks
    # -----------------------------------------------------------------

    async def create_webhook(self, base_id: str, table_id: str, notification_url: str) -> dict[str, Any]:
        """Register a webhook notifying ``notification_url`` of table data changes."""
        return await self._request(
            "POST",
            f"/bases/{base_id}/webhooks",
            action="creating webhook",
            json={
                "notificationUrl": notification_url,
                "specification": {
                    "options": {
                        "filters": {
                            "dataTypes": ["tableData"],
                            "recordChangeScope": table_id,
                        }
                    }
                },
            },
        )

    async def delete_webhook(self, base_id: str, webhook_id: str) -> bool:
        await self._request(
            "DELETE",
            f"/bases/{base_id}/webhooks/{webhook_id}",
            action="deleting webhook",
        )
        return True

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    async def _request(self, method: str, path: str, action: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and decode the JSON body, translating failures."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Network error while %s: %s", action, e)
            raise AirtableError(action, f"Network error while {action}") from e

        if response.is_error:
            message = _error_message(response) or f"Failed {action}"
            logger.error("Airtable API error while %s (%d): %s", action, response.status_code, message)
            raise AirtableError(action, message, status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()


def _error_message(response: httpx.Response) -> str | None:
    """Pull ``error.message`` (or a bare string ``error``) out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("type")
    if isinstance(error, str):
        return error
    return None


def questions_from_table(table: dict[str, Any]) -> list[Question]:
    """Derive form questions from an Airtable table schema.

    Fields of unsupported types are skipped. Question keys are slugified
    field names, suffixed to stay unique.
    """
    questions: list[Question] = []
    used_keys: set[str] = set()

    for field in table.get("fields", []):
        question_type = _FIELD_TYPE_TO_QUESTION.get(field.get("type", ""))
        if question_type is None:
            logger.debug("Skipping field '%s' of unsupported type '%s'", field.get("name"), field.get("type"))
            continue

        key = slugify_key(field.get("name", ""))
        base_key, suffix = key, 2
        while key in used_keys:
            key = f"{base_key}_{suffix}"
            suffix += 1
        used_keys.add(key)

        options = None
        if question_type in {QuestionType.SINGLE_SELECT, QuestionType.MULTIPLE_SELECTS}:
            choices = (field.get("options") or {}).get("choices", [])
            options = [choice["name"] for choice in choices if choice.get("name")]
            if not options:
                logger.debug("Skipping select field '%s' without choices", field.get("name"))
                used_keys.discard(key)
                continue

        questions.append(Question(
            question_key=key,
            airtable_field_id=field["id"],
            airtable_field_name=field.get("name"),
            label=field.get("name") or key,
            type=question_type,
            options=options,
            order=len(questions),
        ))

    return questions
