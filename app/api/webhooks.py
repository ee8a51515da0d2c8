from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_context
from app.db import SessionLocal
from app.schemas.common import ListResponse
from app.schemas.webhook import (
    DispatchResultRead,
    WebhookHealthRead,
    WebhookLogRead,
    WebhookTestRequest,
)
from app.services.context import ServiceContext
from app.services.webhook import coerce_event_type, webhook_logs

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.get("/logs", response_model=ListResponse[WebhookLogRead])
def list_logs(
    webhook_type: str | None = None,
    log_status: str | None = Query(default=None, alias="status"),
    case_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return webhook_logs.list_response(
        db,
        webhook_type,
        log_status,
        case_id,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/logs/{log_id}", response_model=WebhookLogRead)
def get_log(log_id: str, db: Session = Depends(get_db)):
    return webhook_logs.get(db, log_id)


@router.post(
    "/test/{event_type}",
    response_model=DispatchResultRead,
    response_model_exclude_none=True,
)
def test_webhook(
    event_type: str,
    payload: WebhookTestRequest,
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    try:
        event = coerce_event_type(event_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    body = {"test": True, **payload.payload}
    if payload.case_id is not None:
        body["caseId"] = str(payload.case_id)
    result = context.dispatcher.dispatch(db, event, body, case_id=payload.case_id)
    return result.as_dict()


@router.get("/health", response_model=WebhookHealthRead)
def webhook_health(context: ServiceContext = Depends(get_context)):
    return {
        "healthy": context.dispatcher.health_check(),
        "base_url": context.dispatcher.base_url,
    }
