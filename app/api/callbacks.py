import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_context
from app.db import SessionLocal
from app.schemas.callback import CallbackResult
from app.services.callbacks import process_callback
from app.services.context import ServiceContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/callbacks", tags=["callbacks"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.post("/{endpoint}", response_model=CallbackResult)
def handle_callback(
    endpoint: str,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    # Workflow callers expect a flat {"error": ...} body rather than the
    # {"code", "message", "details"} envelope used elsewhere.
    try:
        return process_callback(db, context.dispatcher, endpoint, body)
    except HTTPException as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.detail})
    except ValidationError as e:
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in e.errors(include_url=False)
        ]
        return JSONResponse(
            status_code=422, content={"error": "Invalid payload", "details": errors}
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Callback %s failed: %s", endpoint, e)
        return JSONResponse(status_code=500, content={"error": str(e)})
