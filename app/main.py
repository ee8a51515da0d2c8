import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.callbacks import router as callbacks_router
from app.api.cases import router as cases_router
from app.api.compliance import router as compliance_router
from app.api.deadlines import router as deadlines_router
from app.api.webhooks import router as webhooks_router
from app.config import settings
from app.db import SessionLocal
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.services.context import build_context

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    context = build_context(settings, SessionLocal)
    app.state.context = context
    if settings.deadline_monitor_enabled:
        context.monitor.start()
    else:
        logger.info("Deadline monitor disabled")
    try:
        yield
    finally:
        context.monitor.stop(timeout=5)


app = FastAPI(title="POSH Compliance API", lifespan=lifespan)

configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(cases_router)
_include_api_router(deadlines_router)
_include_api_router(compliance_router)
_include_api_router(webhooks_router)
_include_api_router(callbacks_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
