import json
import os
import uuid
from datetime import datetime, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEADLINE_MONITOR_ENABLED"] = "false"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_context  # noqa: E402
from app.config import settings  # noqa: E402
from app.db import Base, SessionLocal  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models.posh import (  # noqa: E402
    Case,
    CasePriority,
    CaseStatus,
    ComplianceDeadline,
    DeadlineStatus,
    DeadlineType,
    UrgencyLevel,
)
from app.services.context import ServiceContext  # noqa: E402
from app.services.webhook import WebhookDispatcher  # noqa: E402

N8N_BASE_URL = "http://n8n.test"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
SessionLocal.configure(bind=engine)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class WebhookRecorder:
    """httpx.MockTransport handler that records every outbound request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict = {"executionId": "exec-test"}
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture()
def webhook_recorder():
    return WebhookRecorder()


@pytest.fixture()
def dispatcher(webhook_recorder):
    return WebhookDispatcher(
        base_url=N8N_BASE_URL,
        timeout=2.0,
        transport=httpx.MockTransport(webhook_recorder),
    )


@pytest.fixture()
def context(dispatcher):
    return ServiceContext(
        settings=settings, session_factory=SessionLocal, dispatcher=dispatcher
    )


@pytest.fixture()
def client(context):
    fastapi_app.dependency_overrides[get_context] = lambda: context
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def case_factory(db_session):
    def _make(
        status: CaseStatus = CaseStatus.pending,
        created_at: datetime | None = None,
        resolution_date: datetime | None = None,
        **kwargs,
    ) -> Case:
        case = Case(
            case_number=f"POSH-2026-{uuid.uuid4().hex[:6]}",
            title=kwargs.pop("title", "Inappropriate remarks in meeting"),
            description=kwargs.pop("description", "Repeated comments"),
            complainant_name=kwargs.pop("complainant_name", "Asha"),
            respondent_name=kwargs.pop("respondent_name", "Ravi"),
            status=status,
            priority=kwargs.pop("priority", CasePriority.medium),
            evidence_score=kwargs.pop("evidence_score", 70),
            created_at=created_at or datetime.now(timezone.utc),
            resolution_date=resolution_date,
            **kwargs,
        )
        db_session.add(case)
        db_session.commit()
        db_session.refresh(case)
        return case

    return _make


@pytest.fixture()
def case(case_factory):
    return case_factory()


@pytest.fixture()
def deadline_factory(db_session):
    def _make(
        case: Case,
        due: datetime,
        status: DeadlineStatus = DeadlineStatus.pending,
        deadline_type: DeadlineType = DeadlineType.investigation,
        urgency_level: UrgencyLevel | None = UrgencyLevel.medium,
    ) -> ComplianceDeadline:
        deadline = ComplianceDeadline(
            case_id=case.id,
            deadline_type=deadline_type,
            deadline_date=due,
            description="Complete investigation",
            status=status,
            urgency_level=urgency_level,
        )
        db_session.add(deadline)
        db_session.commit()
        db_session.refresh(deadline)
        return deadline

    return _make


@pytest.fixture()
def now():
    return datetime.now(timezone.utc)
