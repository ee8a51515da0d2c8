import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import HTTPException
from prometheus_client import Counter, Histogram
from sqlalchemy.orm import Session

from app.models.posh import WebhookLog, WebhookLogStatus
from app.schemas.webhook import EVENT_PAYLOADS, EventPayload, WebhookEventType
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

DISPATCH_TOTAL = Counter(
    "posh_webhook_dispatch_total",
    "Outbound webhook dispatch attempts",
    ["event_type", "status"],
)
DISPATCH_SECONDS = Histogram(
    "posh_webhook_dispatch_seconds",
    "Outbound webhook dispatch latency",
    ["event_type"],
)


@dataclass
class DispatchResult:
    success: bool
    response: dict[str, Any] | None = None
    execution_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "response": self.response,
                "executionId": self.execution_id,
            }
        return {"success": False, "error": self.error}


def coerce_event_type(value: WebhookEventType | str) -> WebhookEventType:
    if isinstance(value, WebhookEventType):
        return value
    try:
        return WebhookEventType(str(value).replace("-", "_"))
    except ValueError:
        raise ValueError(f"Webhook URL not found for type: {value}") from None


class WebhookDispatcher:
    """Posts domain events to the workflow-automation service.

    One HTTP attempt per call, no retries. Expected failures (non-2xx,
    network errors, timeouts) come back as ``DispatchResult(success=False)``;
    only an unknown event type raises. Every attempt is written to
    ``webhook_logs``. Callers commit their own changes before dispatching,
    since a failed audit write rolls the session back.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        source: str = "posh-compliance-system",
        user_agent: str = "POSH-Compliance-System/1.0",
        url_overrides: Mapping[WebhookEventType, str | None] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.source = source
        self.user_agent = user_agent
        self.url_overrides = {k: v for k, v in (url_overrides or {}).items() if v}
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: httpx.BaseTransport | None = None):
        return cls(
            base_url=settings.n8n_webhook_base_url,
            api_key=settings.n8n_api_key,
            timeout=settings.webhook_timeout_seconds,
            source=settings.webhook_source,
            user_agent=settings.webhook_user_agent,
            url_overrides={
                WebhookEventType.case_created: settings.n8n_case_created_url,
                WebhookEventType.evidence_uploaded: settings.n8n_evidence_uploaded_url,
                WebhookEventType.human_review_submitted: (
                    settings.n8n_human_review_submitted_url
                ),
                WebhookEventType.case_status_changed: (
                    settings.n8n_case_status_changed_url
                ),
                WebhookEventType.deadline_approaching: (
                    settings.n8n_deadline_approaching_url
                ),
            },
            transport=transport,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def resolve_url(self, event_type: WebhookEventType | str) -> str:
        event = coerce_event_type(event_type)
        override = self.url_overrides.get(event)
        if override:
            return override
        return f"{self.base_url}/webhook/{event.slug}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_body(
        self,
        event: WebhookEventType,
        payload: EventPayload | Mapping[str, Any],
    ) -> dict[str, Any]:
        if isinstance(payload, EventPayload):
            expected = EVENT_PAYLOADS[event]
            if not isinstance(payload, expected):
                raise ValueError(
                    f"{type(payload).__name__} is not a payload for {event.value}"
                )
            body = payload.model_dump(mode="json", by_alias=True)
        elif isinstance(payload, Mapping):
            body = json.loads(json.dumps(dict(payload), default=str))
        else:
            raise ValueError(f"Unsupported webhook payload: {type(payload).__name__}")
        body["timestamp"] = datetime.now(timezone.utc).isoformat()
        body["source"] = self.source
        return body

    def dispatch(
        self,
        db: Session | None,
        event_type: WebhookEventType | str,
        payload: EventPayload | Mapping[str, Any],
        case_id=None,
    ) -> DispatchResult:
        event = coerce_event_type(event_type)
        url = self.resolve_url(event)
        body = self.build_body(event, payload)
        if case_id is None:
            case_id = body.get("caseId")

        logger.info("Triggering webhook %s for case %s", event.value, case_id)
        started = time.monotonic()
        try:
            with self._client() as client:
                resp = client.post(
                    url, content=json.dumps(body, default=str), headers=self._headers()
                )
            if 200 <= resp.status_code < 300:
                data = _parse_body(resp)
                execution_id = data.get("executionId") or (
                    f"exec-{int(time.time() * 1000)}"
                )
                result = DispatchResult(
                    success=True, response=data, execution_id=str(execution_id)
                )
            else:
                result = DispatchResult(
                    success=False,
                    error=f"Webhook failed: {resp.status_code} {resp.reason_phrase}",
                )
        except httpx.TimeoutException:
            result = DispatchResult(
                success=False, error=f"Webhook timed out after {self.timeout}s"
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            result = DispatchResult(success=False, error=str(e) or type(e).__name__)
        elapsed = time.monotonic() - started

        status = "success" if result.success else "error"
        DISPATCH_TOTAL.labels(event_type=event.value, status=status).inc()
        DISPATCH_SECONDS.labels(event_type=event.value).observe(elapsed)
        if result.success:
            logger.info(
                "Webhook %s completed (execution %s)", event.value, result.execution_id
            )
        else:
            logger.warning("Webhook %s failed: %s", event.value, result.error)

        if db is not None:
            self._record(db, event, case_id, body, result, int(elapsed * 1000))
        return result

    @staticmethod
    def _record(
        db: Session,
        event: WebhookEventType,
        case_id,
        body: dict[str, Any],
        result: DispatchResult,
        elapsed_ms: int,
    ) -> None:
        try:
            log = WebhookLog(
                webhook_type=event.value,
                case_id=coerce_uuid(case_id) if case_id else None,
                payload=body,
                response=result.response if result.success else None,
                status=(
                    WebhookLogStatus.success
                    if result.success
                    else WebhookLogStatus.error
                ),
                error_message=result.error,
                execution_time_ms=elapsed_ms,
            )
            db.add(log)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Failed to record webhook log for %s: %s", event.value, e)

    def health_check(self) -> bool:
        try:
            with self._client() as client:
                resp = client.get(f"{self.base_url}/healthz")
            return resp.is_success
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.warning("Webhook health check failed: %s", e)
            return False


def _parse_body(resp: httpx.Response) -> dict[str, Any]:
    if not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError:
        return {}
    if isinstance(data, dict):
        return data
    return {"data": data}


class WebhookLogs(ListResponseMixin):
    @staticmethod
    def get(db: Session, log_id: str) -> WebhookLog:
        log = db.get(WebhookLog, coerce_uuid(log_id))
        if not log:
            raise HTTPException(status_code=404, detail="Webhook log not found")
        return log

    @staticmethod
    def list(
        db: Session,
        webhook_type: str | None,
        status: str | None,
        case_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[WebhookLog]:
        query = db.query(WebhookLog)
        if webhook_type is not None:
            query = query.filter(WebhookLog.webhook_type == webhook_type)
        if status is not None:
            try:
                status_value = WebhookLogStatus(status)
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
            query = query.filter(WebhookLog.status == status_value)
        if case_id is not None:
            query = query.filter(WebhookLog.case_id == coerce_uuid(case_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": WebhookLog.created_at,
                "execution_time_ms": WebhookLog.execution_time_ms,
            },
        )
        return apply_pagination(query, limit, offset).all()


webhook_logs = WebhookLogs()
