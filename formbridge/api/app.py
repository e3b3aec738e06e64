"""
FastAPI application factory for FormBridge.

Creates and configures the FastAPI app, the form and response stores,
the Airtable client, and routes.

Run with:
    uvicorn formbridge.api.app:app --reload
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formbridge.api.routes import configure_routes, router
from formbridge.core.form_loader import load_forms_dir
from formbridge.core.store import FormStore, ResponseStore
from formbridge.core.utils import is_truthy
from formbridge.integrations.airtable import AirtableClient

# Load environment variables from .env
load_dotenv()

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _seed_forms(form_store: FormStore, forms_dir: str | None) -> int:
    """Load form files from FORMS_DIR into the store, keyed by file stem."""
    if not forms_dir:
        return 0
    forms = load_forms_dir(Path(forms_dir))
    for form_id, definition in forms.items():
        form_store.create_form(definition, form_id=form_id)
    return len(forms)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    form_store = FormStore()
    response_store = ResponseStore()

    # Airtable client (bearer token from the environment)
    try:
        airtable = AirtableClient.from_env()
        logger.info("Airtable client initialized: %s", os.getenv("AIRTABLE_API_URL", "default endpoint"))
    except ValueError as e:
        logger.warning(
            "Failed to initialize Airtable client: %s. "
            "Submissions will fail until a token is configured.",
            e,
        )
        airtable = None

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("FormBridge backend starting up")
        yield
        if airtable is not None:
            await airtable.aclose()

    application = FastAPI(
        title="FormBridge",
        description="Airtable-backed forms with conditional questions",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS: allow all origins in development
    allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    seeded = _seed_forms(form_store, os.getenv("FORMS_DIR"))
    if seeded:
        logger.info("Loaded %d form(s) from %s", seeded, os.getenv("FORMS_DIR"))

    register_webhooks = is_truthy(os.getenv("REGISTER_WEBHOOKS"), default=False)

    # Configure routes with dependencies
    configure_routes(form_store, response_store, airtable, register_webhooks=register_webhooks)
    application.include_router(router, prefix="/api")

    return application


# Create the app instance (used by uvicorn)
app = create_app()
