"""FastAPI entry point for the Firestore NLP extension on Cloud Run.

Endpoints:
- POST /           -- Eventarc Firestore ``document.v1.written`` event (JSON)
- GET  /liveness   -- Health check
- GET  /readiness  -- Handler constructed and configuration usable
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import cast

from fastapi import FastAPI, HTTPException, Request

from firestore_nlp.bigquery import BigQueryHandler, BigQueryHandlerConfig
from firestore_nlp.config import HandlerConfig
from firestore_nlp.events import to_change_event
from firestore_nlp.firestore import FirestoreDocumentWriter
from firestore_nlp.handler import AnnotationHandler
from firestore_nlp.logging_config import generate_request_id, setup_logging
from firestore_nlp.models import DocumentEventPayload, EventResponse, HealthResponse
from firestore_nlp.nlp import LanguageTaskHandler
from firestore_nlp.triggers import check_field_paths
from firestore_nlp.types import parse_tasks

logger = logging.getLogger(__name__)


def build_handler(cfg: HandlerConfig) -> AnnotationHandler:
    """Wire the production collaborators. The mirror lives as long as the process."""
    provider = LanguageTaskHandler(
        entity_types_to_save=cfg.entity_types,
        save_common_entities=cfg.save_common_entities,
    )
    mirror = None
    if cfg.save_big_query:
        supported, _ = parse_tasks(cfg.big_query_tasks)
        mirror = BigQueryHandler(
            BigQueryHandlerConfig(
                dataset_id=cfg.dataset_id,
                tables_prefix=cfg.tables_prefix,
                supported_tasks=supported,
            )
        )
    return AnnotationHandler(
        cfg=cfg,
        provider=provider,
        writer=FirestoreDocumentWriter(),
        mirror=mirror,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    cfg = HandlerConfig.from_env()
    app.state.config = cfg
    app.state.handler = build_handler(cfg)
    logger.info(
        "Firestore NLP started (input=%s output=%s tasks=%s)",
        cfg.input_field,
        cfg.output_field,
        ",".join(cfg.tasks),
    )
    yield
    logger.info("Firestore NLP stopped")


app = FastAPI(
    title="Firestore NLP",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


def _get_handler(request: Request) -> AnnotationHandler:
    handler = getattr(request.app.state, "handler", None)
    if handler is None:
        raise HTTPException(status_code=503, detail="Handler not initialized")
    return cast(AnnotationHandler, handler)


# -- Health ---------------------------------------------------------------------


@app.get("/liveness", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/readiness", response_model=HealthResponse)
async def readiness(request: Request) -> HealthResponse:
    _get_handler(request)
    cfg = cast(HandlerConfig, request.app.state.config)
    error = check_field_paths(cfg.input_field, cfg.output_field)
    if error is not None:
        return HealthResponse(status="degraded", error=error)
    return HealthResponse(status="ok")


# -- Events ---------------------------------------------------------------------


@app.post("/", response_model=EventResponse)
async def handle_event(request: Request, body: DocumentEventPayload) -> EventResponse:
    """Process one Firestore document write delivered by Eventarc."""
    handler = _get_handler(request)
    try:
        event = to_change_event(body)
    except ValueError as e:
        # not retryable: redelivery carries the same payload
        logger.warning("Rejected event: %s", e)
        raise HTTPException(status_code=400, detail=str(e)) from e

    outcome = await handler.handle(event)
    return EventResponse(
        action=outcome.action,
        reason=outcome.reason,
        failed_tasks=list(outcome.failed_tasks),
    )
