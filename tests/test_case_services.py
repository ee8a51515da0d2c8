import uuid
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.models.posh import (
    Case,
    CasePriority,
    CaseStatus,
    DeadlineType,
    Evidence,
    EvidenceType,
    InvestigationPathway,
    ReviewerRole,
    WebhookLog,
)
from app.schemas.case import CaseCreate, CaseReviewCreate, EvidenceCreate
from app.services.case import (
    can_transition,
    case_reviews,
    cases,
    evidence_items,
)
from app.services.deadline import compliance_deadlines, days_remaining


def _complaint(**overrides) -> CaseCreate:
    data = {
        "title": "Harassment in sales team",
        "incident_type": "verbal",
        "description": "Repeated inappropriate remarks",
        "complainant": {"id": "emp-1", "name": "Asha", "department": "Sales"},
        "respondent": {"name": "Ravi"},
        "evidence": [
            {"type": "witness", "description": "Colleague saw it"},
            {"type": "document", "description": "Chat export"},
        ],
        "uploaded_files": 1,
    }
    data.update(overrides)
    return CaseCreate(**data)


def _review(case_id, pathway=InvestigationPathway.formal) -> CaseReviewCreate:
    return CaseReviewCreate(
        case_id=case_id,
        reviewer_id="icc-7",
        reviewer_role=ReviewerRole.icc_primary,
        credibility_assessment=4,
        investigation_pathway=pathway,
        rationale="Consistent accounts from two witnesses",
    )


class TestCreateCase:
    def test_create_scores_and_schedules(
        self, db_session, dispatcher, webhook_recorder
    ) -> None:
        now = datetime.now(timezone.utc)
        case = cases.create(db_session, dispatcher, _complaint(), now=now)

        assert case.evidence_score == 70
        assert case.priority == CasePriority.medium
        assert case.status == CaseStatus.pending
        assert case.case_number.startswith(f"POSH-{now.year}-")
        assert case.ai_analysis["needsHumanReview"] is False
        assert db_session.query(Evidence).filter_by(case_id=case.id).count() == 2

        deadlines = compliance_deadlines.list_for_case(db_session, case.id)
        assert len(deadlines) == 1
        assert deadlines[0].deadline_type == DeadlineType.investigation
        assert days_remaining(deadlines[0].deadline_date, now) == 90

        logs = db_session.query(WebhookLog).all()
        assert [log.webhook_type for log in logs] == ["case_created"]
        body = webhook_recorder.bodies()[0]
        assert body["caseNumber"] == case.case_number
        assert body["evidenceScore"] == 70
        assert body["complainant"]["department"] == "Sales"

    def test_low_evidence_is_high_priority(self, db_session, dispatcher) -> None:
        case = cases.create(
            db_session,
            dispatcher,
            _complaint(evidence=[{"type": "witness"}]),
        )
        assert case.evidence_score == 30
        assert case.priority == CasePriority.high
        assert case.ai_analysis["recommendedAction"] == "immediate_review"

    def test_anonymous_complainant_is_masked(
        self, db_session, dispatcher, webhook_recorder
    ) -> None:
        case = cases.create(db_session, dispatcher, _complaint(is_anonymous=True))
        assert case.complainant_name == "Anonymous"
        complainant = webhook_recorder.bodies()[0]["complainant"]
        assert complainant["id"] == "anonymous"
        assert complainant["name"] is None

    def test_webhook_failure_does_not_fail_creation(
        self, db_session, dispatcher, webhook_recorder
    ) -> None:
        webhook_recorder.status_code = 500
        case = cases.create(db_session, dispatcher, _complaint())
        assert db_session.get(Case, case.id) is not None

    def test_deadline_failure_keeps_case(self, db_session, dispatcher) -> None:
        with patch(
            "app.services.case.compliance_deadlines.create",
            side_effect=SQLAlchemyError("insert failed"),
        ):
            case = cases.create(db_session, dispatcher, _complaint())
        assert compliance_deadlines.list_for_case(db_session, case.id) == []
        assert compliance_deadlines.reconcile_missing(db_session) == 1


class TestCaseStatus:
    def test_transition_rules(self) -> None:
        assert can_transition(CaseStatus.pending, CaseStatus.under_review)
        assert can_transition(CaseStatus.investigating, CaseStatus.closed)
        assert not can_transition(CaseStatus.pending, CaseStatus.closed)
        assert not can_transition(CaseStatus.closed, CaseStatus.investigating)
        assert can_transition(CaseStatus.closed, CaseStatus.closed)

    def test_update_status_dispatches(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        updated = cases.update_status(
            db_session, dispatcher, case.id, "under_review", assigned_to="icc-7"
        )
        assert updated.status == CaseStatus.under_review
        assert updated.assigned_to == "icc-7"
        body = webhook_recorder.bodies()[0]
        assert body["oldStatus"] == "pending"
        assert body["newStatus"] == "under_review"
        assert body["assignedTo"] == "icc-7"

    def test_closing_sets_resolution_date(
        self, db_session, dispatcher, case_factory
    ) -> None:
        case = case_factory(status=CaseStatus.investigating)
        closed = cases.update_status(db_session, dispatcher, case.id, "closed")
        assert closed.resolution_date is not None

    def test_invalid_transition(self, db_session, dispatcher, case) -> None:
        with pytest.raises(HTTPException) as exc:
            cases.update_status(db_session, dispatcher, case.id, "closed")
        assert exc.value.status_code == 400

    def test_invalid_status(self, db_session, dispatcher, case) -> None:
        with pytest.raises(HTTPException) as exc:
            cases.update_status(db_session, dispatcher, case.id, "resolved")
        assert exc.value.status_code == 400

    def test_missing_case(self, db_session, dispatcher) -> None:
        with pytest.raises(HTTPException) as exc:
            cases.update_status(db_session, dispatcher, uuid.uuid4(), "closed")
        assert exc.value.status_code == 404


class TestListCases:
    def test_filters_and_orders(self, db_session, case_factory) -> None:
        low = case_factory(evidence_score=20, priority=CasePriority.high)
        high = case_factory(evidence_score=90)
        case_factory(status=CaseStatus.closed)
        items = cases.list(
            db_session, "pending", None, "evidence_score", "asc", 10, 0
        )
        assert [c.id for c in items] == [low.id, high.id]
        items = cases.list(db_session, None, "high", "created_at", "desc", 10, 0)
        assert [c.id for c in items] == [low.id]

    def test_bad_order_by(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            cases.list(db_session, None, None, "title", "asc", 10, 0)
        assert exc.value.status_code == 400


class TestEvidence:
    def test_upload_recalculates_score(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        evidence = evidence_items.upload(
            db_session,
            dispatcher,
            case.id,
            EvidenceCreate(type=EvidenceType.physical, description="Torn ID card"),
        )
        assert evidence.case_id == case.id
        db_session.refresh(case)
        assert case.evidence_score == 50
        body = webhook_recorder.bodies()[0]
        assert body["event"] == "evidence_uploaded"
        assert body["needsProcessing"] is True

    def test_upload_high_score_skips_processing(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        evidence_items.upload(
            db_session,
            dispatcher,
            case.id,
            EvidenceCreate(
                type=EvidenceType.document, description="Email", score=85
            ),
        )
        assert webhook_recorder.bodies()[0]["needsProcessing"] is False

    def test_upload_missing_case(self, db_session, dispatcher) -> None:
        with pytest.raises(HTTPException) as exc:
            evidence_items.upload(
                db_session,
                dispatcher,
                uuid.uuid4(),
                EvidenceCreate(type=EvidenceType.document, description="x"),
            )
        assert exc.value.status_code == 404

    def test_upload_url_requires_storage(self, db_session, case) -> None:
        with pytest.raises(HTTPException) as exc:
            evidence_items.upload_url(db_session, case.id, "a.pdf", "application/pdf")
        assert exc.value.status_code == 503

    def test_upload_url(self, db_session, case) -> None:
        with patch("app.services.case.storage") as storage:
            storage.is_configured.return_value = True
            storage.generate_storage_key.return_value = "evidence/k/a.pdf"
            storage.generate_upload_url.return_value = "https://s3.test/put"
            result = evidence_items.upload_url(
                db_session, case.id, "a.pdf", "application/pdf"
            )
        assert result == {
            "storage_key": "evidence/k/a.pdf",
            "upload_url": "https://s3.test/put",
        }

    def test_upload_url_closed_case(self, db_session, case_factory) -> None:
        case = case_factory(status=CaseStatus.closed)
        with pytest.raises(HTTPException) as exc:
            evidence_items.upload_url(db_session, case.id, "a.pdf", "application/pdf")
        assert exc.value.status_code == 400

    def _add_file(self, db_session, case, file_url) -> Evidence:
        evidence = Evidence(
            case_id=case.id,
            type=EvidenceType.document,
            description="Statement",
            file_url=file_url,
        )
        db_session.add(evidence)
        db_session.commit()
        return evidence

    def test_download_url(self, db_session, case) -> None:
        key = f"evidence/{case.id}/abc/a.pdf"
        evidence = self._add_file(db_session, case, key)
        with patch("app.services.case.storage.is_configured", return_value=True), patch(
            "app.services.case.storage.generate_download_url",
            return_value="https://s3.test/get",
        ) as presign:
            url = evidence_items.download_url(db_session, evidence.id)
        assert url == "https://s3.test/get"
        presign.assert_called_once_with(key)

    def test_download_external_link_is_returned_as_is(
        self, db_session, case
    ) -> None:
        evidence = self._add_file(db_session, case, "https://drive.test/f/1")
        assert evidence_items.download_url(db_session, evidence.id) == (
            "https://drive.test/f/1"
        )

    def test_download_key_outside_case_folder(self, db_session, case) -> None:
        evidence = self._add_file(db_session, case, f"evidence/{uuid.uuid4()}/x/a.pdf")
        with pytest.raises(HTTPException) as exc:
            evidence_items.download_url(db_session, evidence.id)
        assert exc.value.status_code == 409

    def test_upload_rejects_foreign_storage_key(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        with pytest.raises(HTTPException) as exc:
            evidence_items.upload(
                db_session,
                dispatcher,
                case.id,
                EvidenceCreate(
                    type=EvidenceType.document,
                    description="Email",
                    file_url=f"evidence/{uuid.uuid4()}/x/a.pdf",
                ),
            )
        assert exc.value.status_code == 400
        assert evidence_items.list_for_case(db_session, case.id) == []
        assert webhook_recorder.requests == []

    def test_upload_requires_stored_object(
        self, db_session, dispatcher, case
    ) -> None:
        key = f"evidence/{case.id}/abc/a.pdf"
        payload = EvidenceCreate(
            type=EvidenceType.document, description="Email", file_url=key
        )
        with patch("app.services.case.storage.is_configured", return_value=True), patch(
            "app.services.case.storage.object_exists", return_value=False
        ):
            with pytest.raises(HTTPException) as exc:
                evidence_items.upload(db_session, dispatcher, case.id, payload)
        assert exc.value.status_code == 400

        with patch("app.services.case.storage.is_configured", return_value=True), patch(
            "app.services.case.storage.object_exists", return_value=True
        ):
            evidence = evidence_items.upload(db_session, dispatcher, case.id, payload)
        assert evidence.file_url == key

    def test_upload_external_link_needs_no_storage(
        self, db_session, dispatcher, case
    ) -> None:
        evidence = evidence_items.upload(
            db_session,
            dispatcher,
            case.id,
            EvidenceCreate(
                type=EvidenceType.digital,
                description="Chat export",
                file_url="https://drive.test/f/2",
            ),
        )
        assert evidence.file_url == "https://drive.test/f/2"

    def test_download_url_without_file(self, db_session, case) -> None:
        evidence = Evidence(
            case_id=case.id, type=EvidenceType.witness, description="Peer"
        )
        db_session.add(evidence)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            evidence_items.download_url(db_session, evidence.id)
        assert exc.value.status_code == 404


class TestReviews:
    def test_formal_review_starts_investigation(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        review = case_reviews.submit(db_session, dispatcher, _review(case.id))
        assert review.case_id == case.id
        db_session.refresh(case)
        assert case.status == CaseStatus.investigating
        events = [b["event"] for b in webhook_recorder.bodies()]
        assert events == ["case_status_changed", "human_review_submitted"]
        assert webhook_recorder.bodies()[1]["nextAction"] == "assign_investigator"

    def test_mediation_review(
        self, db_session, dispatcher, webhook_recorder, case
    ) -> None:
        case_reviews.submit(
            db_session, dispatcher, _review(case.id, InvestigationPathway.mediation)
        )
        db_session.refresh(case)
        assert case.status == CaseStatus.mediation
        assert webhook_recorder.bodies()[1]["nextAction"] == "route_mediation"

    def test_dismissal_goes_to_review(self, db_session, dispatcher, case) -> None:
        case_reviews.submit(
            db_session, dispatcher, _review(case.id, InvestigationPathway.dismiss)
        )
        db_session.refresh(case)
        assert case.status == CaseStatus.under_review

    def test_closed_case_cannot_be_reviewed(
        self, db_session, dispatcher, case_factory
    ) -> None:
        case = case_factory(status=CaseStatus.closed)
        with pytest.raises(HTTPException) as exc:
            case_reviews.submit(db_session, dispatcher, _review(case.id))
        assert exc.value.status_code == 400
        assert case_reviews.list_for_case(db_session, case.id) == []
