"""
FastAPI routes for the FormBridge backend.

Endpoints:
- POST   /forms                               — create a form (and its Airtable webhook)
- GET    /forms                               — list forms (without questions)
- GET    /forms/{form_id}                     — get an active form
- PUT    /forms/{form_id}                     — update a form
- DELETE /forms/{form_id}                     — delete a form (and its webhook)
- GET    /forms/{form_id}/preview             — visible questions for given answers
- POST   /forms/{form_id}/submit              — validate and forward a submission
- GET    /forms/{form_id}/responses           — list mirrored responses
- GET    /forms/{form_id}/responses/{id}      — get one mirrored response
- GET    /forms/{form_id}/export/csv          — CSV export
- GET    /forms/{form_id}/export/json         — JSON export
- POST   /webhooks/airtable                   — Airtable change notifications
- GET    /airtable/bases                      — list bases
- GET    /airtable/bases/{base}/tables/{table}/questions — questions derived from a table
- GET    /health                              — health check
"""

import json
import logging
import os
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from formbridge.core.export import responses_to_csv, responses_to_json
from formbridge.core.render import build_render_plan
from formbridge.core.schema import FormDefinition, Question
from formbridge.core.store import FormStore, ResponseStore, StoredForm
from formbridge.core.submission import (
    FormInactiveError,
    SubmissionValidationError,
    prepare_submission,
)
from formbridge.core.visibility import filter_visible
from formbridge.core.webhook_sync import WebhookPayloadError, apply_webhook_notification
from formbridge.integrations.airtable import AirtableError, questions_from_table

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected by the app factory
_form_store: FormStore | None = None
_response_store: ResponseStore | None = None
_airtable = None
_register_webhooks = False


def configure_routes(form_store, response_store, airtable, register_webhooks: bool = False):
    """Inject the stores and Airtable client into the routes module.

    Called by the app factory during startup.
    """
    global _form_store, _response_store, _airtable, _register_webhooks
    _form_store = form_store
    _response_store = response_store
    _airtable = airtable
    _register_webhooks = register_webhooks


# --- Request / Response Models ---


class FormUpdateRequest(BaseModel):
    """Request body for PUT /forms/{form_id}. Omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    questions: list[Question] | None = None
    is_active: bool | None = Field(default=None, alias="isActive")


class SubmitRequest(BaseModel):
    """Request body for POST /forms/{form_id}/submit."""

    answers: dict[str, Any]


# --- Helpers ---


def _require_configured() -> tuple[FormStore, ResponseStore]:
    if _form_store is None or _response_store is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")
    return _form_store, _response_store


def _get_form_or_404(form_id: str) -> StoredForm:
    form_store, _ = _require_configured()
    form = form_store.get_form(form_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _form_json(form: StoredForm, include_questions: bool = True) -> dict[str, Any]:
    exclude = None if include_questions else {"questions"}
    return form.model_dump(mode="json", by_alias=True, exclude=exclude)


def _validation_detail(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" if err["loc"] else err["msg"]
        for err in error.errors()
    ]


# --- Forms ---


@router.post("/forms", status_code=201)
async def create_form(body: dict[str, Any]):
    """Create a form and, when enabled, register an Airtable webhook for it.

    Webhook registration failures are logged; the form is still created.
    """
    form_store, _ = _require_configured()

    if not body.get("questions"):
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        definition = FormDefinition.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))

    form = form_store.create_form(definition)
    logger.info("Created form %s ('%s') with %d questions", form.id, form.title, len(form.questions))

    if _register_webhooks and _airtable is not None:
        webhook_url = f"{os.getenv('BACKEND_URL', 'http://localhost:5000')}/api/webhooks/airtable"
        try:
            webhook = await _airtable.create_webhook(
                form.airtable_base_id, form.airtable_table_id, webhook_url
            )
            form = form_store.update_form(
                form.id, airtable_webhook_id=webhook["id"], webhook_active=True
            )
        except AirtableError as e:
            logger.error("Webhook creation failed for form %s: %s", form.id, e.message)

    return {"success": True, "form": _form_json(form)}


@router.get("/forms")
async def list_forms():
    """List all forms, without their questions."""
    form_store, _ = _require_configured()
    return {
        "success": True,
        "forms": [_form_json(f, include_questions=False) for f in form_store.list_forms()],
    }


@router.get("/forms/{form_id}")
async def get_form(form_id: str):
    """Get a form for rendering. Inactive forms are not served."""
    form = _get_form_or_404(form_id)
    if not form.is_active:
        raise HTTPException(status_code=403, detail="Form is not active")
    return {"success": True, "form": _form_json(form)}


@router.put("/forms/{form_id}")
async def update_form(form_id: str, request: FormUpdateRequest):
    """Update the title, description, questions or active flag of a form."""
    form_store, _ = _require_configured()
    _get_form_or_404(form_id)

    changes = request.model_dump(exclude_none=True)
    if "description" in request.model_fields_set:
        changes["description"] = request.description

    try:
        form = form_store.update_form(form_id, **changes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))

    return {"success": True, "form": _form_json(form)}


@router.delete("/forms/{form_id}")
async def delete_form(form_id: str):
    """Delete a form, its mirrored responses, and its Airtable webhook."""
    form_store, response_store = _require_configured()
    form = _get_form_or_404(form_id)

    if form.airtable_webhook_id and form.webhook_active and _airtable is not None:
        try:
            await _airtable.delete_webhook(form.airtable_base_id, form.airtable_webhook_id)
        except AirtableError as e:
            logger.error("Webhook deletion failed for form %s: %s", form_id, e.message)

    form_store.delete_form(form_id)
    response_store.delete_for_form(form_id)
    return {"success": True, "message": "Form deleted successfully"}


@router.get("/forms/{form_id}/preview")
async def preview_form(form_id: str, answers: str | None = None):
    """Return the questions visible for the given answers (JSON-encoded query param)."""
    form = _get_form_or_404(form_id)

    parsed: Any = {}
    if answers:
        try:
            parsed = json.loads(answers)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="answers must be valid JSON")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="answers must be a JSON object")

    visible = filter_visible(form.questions, parsed)
    plan = build_render_plan(form, parsed)
    return {
        "success": True,
        "visibleQuestions": [q.model_dump(mode="json", by_alias=True) for q in visible],
        "renderPlan": plan.model_dump(mode="json", by_alias=True),
    }


# --- Submissions ---


@router.post("/forms/{form_id}/submit", status_code=201)
async def submit_form(form_id: str, body: SubmitRequest, request: Request):
    """Validate a submission, create the Airtable record, and store the mirror."""
    form_store, response_store = _require_configured()
    form = _get_form_or_404(form_id)

    try:
        fields = prepare_submission(form, body.answers)
    except FormInactiveError:
        raise HTTPException(status_code=403, detail="Form is not accepting responses")
    except SubmissionValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if _airtable is None:
        raise HTTPException(status_code=500, detail="Airtable client not configured")

    try:
        record = await _airtable.create_record(form.airtable_base_id, form.airtable_table_id, fields)
    except AirtableError as e:
        logger.error("Failed to create Airtable record for form %s: %s", form_id, e.message)
        raise HTTPException(status_code=502, detail=f"Airtable error: {e.message}")

    logger.info("Airtable record created: %s", record["id"])

    response = response_store.create_response(
        form_id=form_id,
        airtable_record_id=record["id"],
        answers=body.answers,
        submitter_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    form_store.increment_submission_count(form_id)

    return {
        "success": True,
        "response": {
            "id": response.id,
            "submittedAt": response.created_at.isoformat(),
        },
    }


@router.get("/forms/{form_id}/responses")
async def list_responses(form_id: str, include_deleted: bool = False):
    """List mirrored responses, newest first; deleted ones only on request."""
    _, response_store = _require_configured()
    _get_form_or_404(form_id)

    responses = response_store.list_responses(form_id, include_deleted=include_deleted)
    return {
        "success": True,
        "responses": [r.model_dump(mode="json", by_alias=True) for r in responses],
        "total": len(responses),
    }


@router.get("/forms/{form_id}/responses/{response_id}")
async def get_response(form_id: str, response_id: str):
    _, response_store = _require_configured()
    _get_form_or_404(form_id)

    response = response_store.get_response(form_id, response_id)
    if response is None:
        raise HTTPException(status_code=404, detail="Response not found")
    return {"success": True, "response": response.model_dump(mode="json", by_alias=True)}


# --- Export ---


@router.get("/forms/{form_id}/export/csv")
async def export_csv(form_id: str):
    _, response_store = _require_configured()
    form = _get_form_or_404(form_id)

    responses = response_store.list_responses(form_id)
    if not responses:
        raise HTTPException(status_code=404, detail="No responses found")

    return Response(
        content=responses_to_csv(form, responses),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="form-{form_id}-responses.csv"'},
    )


@router.get("/forms/{form_id}/export/json")
async def export_json(form_id: str):
    _, response_store = _require_configured()
    form = _get_form_or_404(form_id)

    responses = response_store.list_responses(form_id)
    return JSONResponse(
        content=responses_to_json(form, responses),
        headers={"Content-Disposition": f'attachment; filename="form-{form_id}-responses.json"'},
    )


# --- Webhooks ---


@router.post("/webhooks/airtable")
async def airtable_webhook(body: dict[str, Any]):
    """Apply an Airtable change notification to the response mirror."""
    form_store, response_store = _require_configured()

    try:
        result = apply_webhook_notification(body, form_store, response_store)
    except WebhookPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.matched:
        return {"message": "Webhook received but no matching form"}
    return {
        "message": "Webhook processed",
        "updated": result.updated,
        "deleted": result.deleted,
    }


# --- Airtable schema introspection ---


@router.get("/airtable/bases")
async def list_bases():
    if _airtable is None:
        raise HTTPException(status_code=500, detail="Airtable client not configured")
    try:
        bases = await _airtable.list_bases()
    except AirtableError as e:
        raise HTTPException(status_code=502, detail=f"Airtable error: {e.message}")
    return {"success": True, "bases": bases}


@router.get("/airtable/bases/{base_id}/tables/{table_id}/questions")
async def table_questions(base_id: str, table_id: str):
    """Derive form questions from a table's supported fields."""
    if _airtable is None:
        raise HTTPException(status_code=500, detail="Airtable client not configured")
    try:
        table = await _airtable.get_table_schema(base_id, table_id)
    except AirtableError as e:
        raise HTTPException(status_code=502, detail=f"Airtable error: {e.message}")

    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")

    questions = questions_from_table(table)
    return {
        "success": True,
        "table": {"id": table.get("id"), "name": table.get("name")},
        "questions": [q.model_dump(mode="json", by_alias=True) for q in questions],
    }


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "forms": _form_store.count() if _form_store else 0,
        "responses": _response_store.count() if _response_store else 0,
    }
