import uuid
from datetime import timedelta

from app.models.posh import (
    CasePriority,
    CaseStatus,
    DeadlineStatus,
    DeadlineType,
    Evidence,
    EvidenceType,
)


class TestCallbackEndpoints:
    def test_case_analysis_complete(self, client, db_session, case) -> None:
        resp = client.post(
            "/callbacks/case-analysis-complete",
            json={"caseId": str(case.id), "analysis": {"riskLevel": "high"}},
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "processed": "case-analysis-complete",
        }
        db_session.refresh(case)
        assert case.ai_analysis["riskLevel"] == "high"
        assert case.ai_analysis["source"] == "n8n-openai"
        assert "processedAt" in case.ai_analysis

    def test_evidence_analysis_sets_score(self, client, db_session, case) -> None:
        evidence = Evidence(
            case_id=case.id, type=EvidenceType.document, description="Email"
        )
        db_session.add(evidence)
        db_session.commit()

        resp = client.post(
            "/callbacks/evidence-analysis-complete",
            json={
                "evidenceId": str(evidence.id),
                "analysis": {"credibilityScore": 72},
                "score": 10,
            },
        )
        assert resp.status_code == 200
        db_session.refresh(evidence)
        assert evidence.score == 72
        assert evidence.ai_analysis["credibilityScore"] == 72

    def test_evidence_analysis_falls_back_to_score(
        self, client, db_session, case
    ) -> None:
        evidence = Evidence(
            case_id=case.id, type=EvidenceType.witness, description="Peer"
        )
        db_session.add(evidence)
        db_session.commit()

        client.post(
            "/callbacks/evidence-analysis-complete",
            json={"evidenceId": str(evidence.id), "analysis": {}, "score": 44},
        )
        db_session.refresh(evidence)
        assert evidence.score == 44

    def test_investigation_task_created(self, client, db_session, case) -> None:
        resp = client.post(
            "/callbacks/investigation-task-created",
            json={"caseId": str(case.id), "assigneeId": "icc-3", "taskId": "t-9"},
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.status == CaseStatus.investigating
        assert case.assigned_to == "icc-3"
        assert case.metadata_["investigator"] == "icc-3"
        assert case.metadata_["taskId"] == "t-9"

    def test_investigation_task_on_closed_case(
        self, client, case_factory
    ) -> None:
        case = case_factory(status=CaseStatus.closed)
        resp = client.post(
            "/callbacks/investigation-task-created",
            json={"caseId": str(case.id), "assigneeId": "icc-3"},
        )
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_deadline_alert_sent_marks_pending_only(
        self, client, db_session, case, deadline_factory, now
    ) -> None:
        pending = deadline_factory(case, now + timedelta(days=5))
        overdue = deadline_factory(
            case, now - timedelta(days=1), status=DeadlineStatus.overdue
        )
        other = deadline_factory(
            case, now + timedelta(days=5), deadline_type=DeadlineType.filing
        )

        resp = client.post(
            "/callbacks/deadline-alert-sent",
            json={"caseId": str(case.id), "deadlineType": "investigation"},
        )
        assert resp.status_code == 200
        for deadline in (pending, overdue, other):
            db_session.refresh(deadline)
        assert pending.status == DeadlineStatus.alert_sent
        assert overdue.status == DeadlineStatus.overdue
        assert other.status == DeadlineStatus.pending

    def test_notification_sent(self, client, db_session, case) -> None:
        resp = client.post(
            "/callbacks/notification-sent",
            json={
                "caseId": str(case.id),
                "notificationType": "email",
                "recipient": "icc@example.com",
            },
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.metadata_["lastNotification"]["type"] == "email"

    def test_notification_without_case(self, client) -> None:
        resp = client.post(
            "/callbacks/notification-sent", json={"notificationType": "sms"}
        )
        assert resp.status_code == 200

    def test_unknown_endpoint(self, client) -> None:
        resp = client.post("/callbacks/case-archived", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Unknown endpoint"}

    def test_missing_case(self, client) -> None:
        resp = client.post(
            "/callbacks/case-analysis-complete",
            json={"caseId": str(uuid.uuid4()), "analysis": {}},
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Case not found"}

    def test_invalid_payload(self, client) -> None:
        resp = client.post(
            "/callbacks/case-analysis-complete", json={"caseId": "not-a-uuid"}
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "Invalid payload"

    def test_available_under_api_prefix(self, client, case) -> None:
        resp = client.post(
            "/api/v1/callbacks/case-analysis-complete",
            json={"caseId": str(case.id), "analysis": {}},
        )
        assert resp.status_code == 200

    def test_evidence_credibility_out_of_range(
        self, client, db_session, case
    ) -> None:
        evidence = Evidence(
            case_id=case.id, type=EvidenceType.document, description="Email", score=40
        )
        db_session.add(evidence)
        db_session.commit()

        resp = client.post(
            "/callbacks/evidence-analysis-complete",
            json={
                "evidenceId": str(evidence.id),
                "analysis": {"credibilityScore": 250},
            },
        )
        assert resp.status_code == 422
        assert "between 0 and 100" in resp.json()["error"]
        db_session.refresh(evidence)
        assert evidence.score == 40


class TestAnalysisResults:
    def _post(self, client, case, analysis_type, results):
        return client.post(
            "/callbacks/analysis-results",
            json={
                "caseId": str(case.id),
                "analysisType": analysis_type,
                "results": results,
            },
        )

    def test_evidence_results_update_items_and_case_score(
        self, client, db_session, case, case_factory
    ) -> None:
        mine = Evidence(case_id=case.id, type=EvidenceType.witness, description="A")
        other_case = case_factory()
        foreign = Evidence(
            case_id=other_case.id, type=EvidenceType.document, description="B"
        )
        db_session.add_all([mine, foreign])
        db_session.commit()

        resp = self._post(
            client,
            case,
            "evidence",
            {
                "evidenceItems": [
                    {
                        "evidenceId": str(mine.id),
                        "strengthScore": 65,
                        "keyFindings": ["consistent timeline"],
                        "confidenceLevel": "high",
                    },
                    {"evidenceId": str(foreign.id), "strengthScore": 99},
                ],
                "overallEvidenceScore": 58,
            },
        )

        assert resp.status_code == 200
        for row in (mine, foreign, case):
            db_session.refresh(row)
        assert mine.score == 65
        assert mine.ai_analysis["keyFindings"] == ["consistent timeline"]
        assert "analysisDate" in mine.ai_analysis
        assert foreign.score == 0
        assert case.evidence_score == 58

    def test_evidence_results_reject_bad_strength(self, client, case) -> None:
        resp = self._post(
            client,
            case,
            "evidence",
            {
                "evidenceItems": [
                    {"evidenceId": str(uuid.uuid4()), "strengthScore": 300}
                ]
            },
        )
        assert resp.status_code == 422

    def test_case_summary_sets_priority(
        self, client, db_session, case, webhook_recorder
    ) -> None:
        resp = self._post(
            client,
            case,
            "case_summary",
            {
                "executiveSummary": "Pattern of remarks",
                "evidenceStrength": "medium",
                "urgencyLevel": "high",
                "recommendedPath": "formal",
                "confidenceScore": 0.8,
            },
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.priority == CasePriority.high
        assert case.ai_analysis["summary"] == "Pattern of remarks"
        assert case.ai_analysis["aiConfidence"] == 0.8
        assert not (case.metadata_ or {}).get("flaggedForReview")
        assert webhook_recorder.requests == []

    def test_unknown_urgency_defaults_to_medium(
        self, client, db_session, case_factory
    ) -> None:
        case = case_factory(priority=CasePriority.high)
        self._post(client, case, "case_summary", {"urgencyLevel": "soon"})
        db_session.refresh(case)
        assert case.priority == CasePriority.medium

    def test_weak_summary_flags_for_human_review(
        self, client, db_session, case, webhook_recorder
    ) -> None:
        resp = self._post(
            client,
            case,
            "case_summary",
            {
                "evidenceStrength": "low",
                "urgencyLevel": "medium",
                "recommendedPath": "mediation",
            },
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.metadata_["flaggedForReview"] is True
        assert case.metadata_["flagReason"] == "low_evidence"
        assert case.metadata_["aiRecommendation"] == "mediation"

        body = webhook_recorder.bodies()[0]
        assert body["event"] == "human_review_submitted"
        assert body["reviewerId"] == "AI_SYSTEM"
        assert body["pathway"] == "requires_human_review"
        assert body["credibilityScore"] == 0

    def test_critical_summary_flags_high_urgency(
        self, client, db_session, case, webhook_recorder
    ) -> None:
        webhook_recorder.status_code = 500
        resp = self._post(
            client,
            case,
            "case_summary",
            {"evidenceStrength": "high", "urgencyLevel": "critical"},
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.priority == CasePriority.critical
        assert case.metadata_["flagReason"] == "high_urgency"

    def test_witness_evaluation_kept_in_metadata(
        self, client, db_session, case_factory
    ) -> None:
        case = case_factory(metadata_={"source": "portal"})
        resp = self._post(
            client,
            case,
            "witness_evaluation",
            {"reliability": "high", "availability": ["mon", "tue"]},
        )
        assert resp.status_code == 200
        db_session.refresh(case)
        assert case.metadata_["source"] == "portal"
        assert case.metadata_["witnessAnalysis"]["reliability"] == "high"
        assert case.metadata_["witnessAnalysis"]["availability"] == ["mon", "tue"]

    def test_unknown_analysis_type(self, client, case) -> None:
        resp = self._post(client, case, "sentiment", {})
        assert resp.status_code == 422

    def test_missing_case(self, client) -> None:
        resp = client.post(
            "/callbacks/analysis-results",
            json={"caseId": str(uuid.uuid4()), "analysisType": "evidence"},
        )
        assert resp.status_code == 404
