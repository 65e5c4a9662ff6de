"""Feasibility assessment scoring and status workflow.

An assessment moves Draft <-> In Progress -> Completed -> Reviewed. Completed
can be reopened to In Progress; Reviewed is terminal and only its review
comments stay editable. The overall figure is recomputed on every write, in
the same flush as the sub-scores it summarizes.
"""
from __future__ import annotations

import logging
from datetime import date
from statistics import mean
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from dare.enums import (
    COMPLETED, DRAFT, FEASIBILITY_CATEGORIES, FEASIBILITY_SCORE_FIELDS, IN_PROGRESS, REVIEWED,
)
from dare.errors import LockedForReview, StatusConflict, ValidationError
from dare.models import BusinessProfile, FeasibilityAssessment
from dare.services import apply_updates, check_version, get_entity, get_youth
from dare.utils import iso, normalize_string_list, utc_now

log = logging.getLogger(__name__)

COMMENT_FIELDS = tuple(f"{category}_comments" for category in FEASIBILITY_CATEGORIES)

SUMMARY_FIELDS = (
    "risk_factors", "growth_opportunities", "recommendations", "recommended_actions",
)

EDITABLE_FIELDS = (
    "youth_id", "assessment_date", "assessment_by",
    *FEASIBILITY_SCORE_FIELDS, *COMMENT_FIELDS, *SUMMARY_FIELDS,
)
LIST_FIELDS = ("strengths", "weaknesses")

_TRANSITIONS = {
    DRAFT: {IN_PROGRESS, COMPLETED},
    IN_PROGRESS: {DRAFT, COMPLETED},
    COMPLETED: {IN_PROGRESS},
    REVIEWED: set(),
}


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def compute_overall(scores: Iterable[int | None]) -> float | None:
    """Mean of the populated sub-scores, rounded to 2 dp; None if there are none."""
    present = [s for s in scores if s is not None]
    if not present:
        return None
    return round(mean(present), 2)


def category_scores(assessment: FeasibilityAssessment) -> dict[str, float | None]:
    return {
        category: compute_overall(getattr(assessment, f) for f in fields)
        for category, fields in FEASIBILITY_CATEGORIES.items()
    }


def recompute(assessment: FeasibilityAssessment) -> None:
    assessment.overall_feasibility_percentage = compute_overall(
        getattr(assessment, f) for f in FEASIBILITY_SCORE_FIELDS
    )


def missing_scores(values: dict[str, Any]) -> list[str]:
    return [f for f in FEASIBILITY_SCORE_FIELDS if values.get(f) is None]


def _require_complete(values: dict[str, Any]) -> None:
    missing = missing_scores(values)
    if missing:
        raise ValidationError(
            f"{len(missing)} sub-score(s) must be set before completing the assessment",
            fields=missing,
        )


def _check_transition(current: str, target: str) -> None:
    if target == REVIEWED:
        raise StatusConflict("Assessments reach Reviewed only through the review step", fields=["status"])
    if target not in _TRANSITIONS[current]:
        raise StatusConflict(f"Cannot move an assessment from {current} to {target}", fields=["status"])


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def assessment_summary(a: FeasibilityAssessment) -> dict:
    data = {f: getattr(a, f) for f in EDITABLE_FIELDS}
    data["assessment_date"] = iso(a.assessment_date)
    for f in LIST_FIELDS:
        data[f] = normalize_string_list(getattr(a, f"{f}_json"))
    data.update({
        "id": a.id, "business_id": a.business_id, "status": a.status,
        "overall_feasibility_percentage": a.overall_feasibility_percentage,
        "category_scores": category_scores(a),
        "missing_scores": missing_scores({f: getattr(a, f) for f in FEASIBILITY_SCORE_FIELDS}),
        "reviewed_by": a.reviewed_by, "review_date": iso(a.review_date),
        "review_comments": a.review_comments, "version": a.version,
        "created_at": iso(a.created_at), "updated_at": iso(a.updated_at),
    })
    return data


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def get_assessment(session: Session, assessment_id: int) -> FeasibilityAssessment:
    return get_entity(session, FeasibilityAssessment, assessment_id, "Assessment")


def list_assessments(
    session: Session, business_id: int | None = None, status: str | None = None,
) -> list[FeasibilityAssessment]:
    query = select(FeasibilityAssessment).order_by(
        FeasibilityAssessment.assessment_date.desc(), FeasibilityAssessment.id.desc(),
    )
    if business_id is not None:
        query = query.where(FeasibilityAssessment.business_id == business_id)
    if status:
        query = query.where(FeasibilityAssessment.status == status)
    return list(session.execute(query).scalars().all())


def create_assessment(session: Session, data: dict[str, Any]) -> FeasibilityAssessment:
    """Start an assessment in Draft or In Progress (caller must commit)."""
    get_entity(session, BusinessProfile, data["business_id"], "Business")
    if data.get("youth_id") is not None:
        get_youth(session, data["youth_id"])
    status = data.get("status") or DRAFT
    if status not in (DRAFT, IN_PROGRESS):
        raise StatusConflict(f"New assessments start as {DRAFT} or {IN_PROGRESS}", fields=["status"])
    assessment = FeasibilityAssessment(
        business_id=data["business_id"], status=status,
        assessment_date=data.get("assessment_date") or date.today(),
    )
    apply_updates(assessment, {k: v for k, v in data.items() if k != "assessment_date"},
                  EDITABLE_FIELDS, LIST_FIELDS)
    recompute(assessment)
    session.add(assessment)
    session.flush()
    return assessment


def update_assessment(
    session: Session, assessment: FeasibilityAssessment, updates: dict[str, Any],
) -> FeasibilityAssessment:
    """Apply a partial edit, optionally moving the status.

    Checks run before anything is written: Reviewed assessments accept only
    ``review_comments`` (``LockedForReview``), Completed ones refuse score
    changes unless reopened in the same call, and moving to Completed needs
    every sub-score.
    """
    check_version(assessment, updates.get("version"))
    fields = {k for k in updates if k not in ("version", "status")}
    current = assessment.status
    target = updates.get("status") or current

    if current == REVIEWED:
        locked = sorted(fields - {"review_comments"})
        if locked or target != REVIEWED:
            raise LockedForReview(
                f"Assessment {assessment.id} has been reviewed; only review comments can change",
                fields=locked or ["status"],
            )
        if "review_comments" in updates:
            assessment.review_comments = updates["review_comments"] or ""
        session.flush()
        return assessment

    if "review_comments" in fields:
        raise StatusConflict("Review comments are recorded by the review step", fields=["review_comments"])
    if target != current:
        _check_transition(current, target)
    if current == COMPLETED and target == COMPLETED:
        touched = sorted(fields & set(FEASIBILITY_SCORE_FIELDS))
        if touched:
            raise StatusConflict("Reopen the assessment before changing its scores", fields=touched)
    if target == COMPLETED and current != COMPLETED:
        merged = {f: getattr(assessment, f) for f in FEASIBILITY_SCORE_FIELDS}
        merged.update({f: updates[f] for f in FEASIBILITY_SCORE_FIELDS if f in updates})
        _require_complete(merged)
    if updates.get("youth_id") is not None:
        get_youth(session, updates["youth_id"])

    apply_updates(assessment, updates, EDITABLE_FIELDS, LIST_FIELDS)
    if target != current:
        log.info("Assessment %s: %s -> %s", assessment.id, current, target)
    assessment.status = target
    recompute(assessment)
    session.flush()
    return assessment


def submit_assessment(session: Session, assessment: FeasibilityAssessment) -> FeasibilityAssessment:
    _check_transition(assessment.status, COMPLETED)
    _require_complete({f: getattr(assessment, f) for f in FEASIBILITY_SCORE_FIELDS})
    assessment.status = COMPLETED
    recompute(assessment)
    session.flush()
    log.info("Assessment %s submitted", assessment.id)
    return assessment


def review_assessment(
    session: Session, assessment: FeasibilityAssessment, review_comments: str,
    reviewed_by: int | None = None,
) -> FeasibilityAssessment:
    if assessment.status != COMPLETED:
        raise StatusConflict(
            f"Only {COMPLETED} assessments can be reviewed (status is {assessment.status})",
            fields=["status"],
        )
    assessment.status = REVIEWED
    assessment.review_comments = review_comments
    assessment.reviewed_by = reviewed_by
    assessment.review_date = utc_now()
    session.flush()
    log.info("Assessment %s reviewed by %s", assessment.id, reviewed_by)
    return assessment


def delete_assessment(session: Session, assessment: FeasibilityAssessment) -> None:
    if assessment.status not in (DRAFT, IN_PROGRESS):
        raise StatusConflict(f"{assessment.status} assessments cannot be deleted", fields=["status"])
    session.delete(assessment)
    session.flush()
