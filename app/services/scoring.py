"""Evidence strength scoring.

Pure functions; nothing here touches the store.
"""

from collections.abc import Iterable, Mapping

from app.models.posh import CasePriority, EvidenceType

EVIDENCE_WEIGHTS: dict[EvidenceType, int] = {
    EvidenceType.witness: 30,
    EvidenceType.document: 40,
    EvidenceType.physical: 50,
    EvidenceType.digital: 35,
}

HUMAN_REVIEW_THRESHOLD = 40


def _evidence_type(item) -> EvidenceType:
    if isinstance(item, EvidenceType):
        return item
    if isinstance(item, str):
        return EvidenceType(item)
    if isinstance(item, Mapping):
        return _evidence_type(item["type"])
    return _evidence_type(item.type)


def calculate_evidence_score(evidence: Iterable) -> int:
    """Sum the per-type weight of every evidence item.

    Items may be ``EvidenceType`` members, their string values, mappings with
    a ``type`` key, or objects with a ``type`` attribute. Repeated types count
    every time; the total is not capped.
    """
    return sum(EVIDENCE_WEIGHTS[_evidence_type(item)] for item in evidence)


def needs_human_review(score: int) -> bool:
    return score < HUMAN_REVIEW_THRESHOLD


def default_priority(score: int) -> CasePriority:
    if needs_human_review(score):
        return CasePriority.high
    return CasePriority.medium


def risk_level(score: int) -> str:
    if score > 60:
        return "high"
    if score > 30:
        return "medium"
    return "low"
