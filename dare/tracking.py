"""Business tracking ledger: periodic performance snapshots per business.

One record per business per calendar bucket of its tracking period. Derived
figures are computed here, never trusted from the client, and a verified
record keeps only its feedback fields editable.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dare.errors import LockedForReview, StatusConflict
from dare.models import BusinessProfile, BusinessTracking, Mentor
from dare.services import apply_updates, check_version, derive_field, get_entity
from dare.utils import iso, normalize_string_list, period_key, utc_now

log = logging.getLogger(__name__)

METRIC_FIELDS = (
    "projected_revenue", "actual_revenue", "internal_revenue", "external_revenue",
    "actual_expenditure", "actual_profit",
    "projected_employees", "actual_employees", "new_employees",
    "permanent_employees", "temporary_employees", "male_employees",
    "female_employees", "contract_workers", "client_count",
)
TRACKING_FIELDS = (
    "tracking_date", "tracking_period", "mentor_id", "recorded_by",
    *METRIC_FIELDS, "prominent_market", "mentor_feedback", "business_insights",
    "performance_rating",
)
LIST_FIELDS = ("key_decisions", "lessons_learned", "next_steps", "challenges", "new_resources")

# Still editable once a record is verified.
FEEDBACK_FIELDS = ("mentor_feedback", "business_insights")


def derive_tracking_figures(values: dict[str, Any], supplied: set[str]) -> None:
    """Fill profit and head-count from their inputs, in place."""
    touched = set(supplied)
    derive_field(
        values, touched, "actual_profit", ("actual_revenue", "actual_expenditure"),
        lambda revenue, spend: revenue - spend, "actual_revenue - actual_expenditure",
    )
    derive_field(
        values, touched, "actual_employees", ("permanent_employees", "temporary_employees"),
        lambda permanent, temporary: permanent + temporary, "permanent + temporary employees",
    )


def _ensure_unique_period(
    session: Session, business_id: int, tracking_period: str, key: str, exclude_id: int | None = None,
) -> None:
    query = select(BusinessTracking.id).where(
        BusinessTracking.business_id == business_id,
        BusinessTracking.tracking_period == tracking_period,
        BusinessTracking.period_key == key,
    )
    if exclude_id is not None:
        query = query.where(BusinessTracking.id != exclude_id)
    existing = session.execute(query).scalars().first()
    if existing is not None:
        raise StatusConflict(
            f"Business {business_id} already has a {tracking_period} record for {key} (#{existing})",
            fields=["tracking_date"],
        )


def tracking_summary(rec: BusinessTracking) -> dict:
    data = {f: getattr(rec, f) for f in TRACKING_FIELDS}
    data["tracking_date"] = iso(rec.tracking_date)
    for f in LIST_FIELDS:
        data[f] = normalize_string_list(getattr(rec, f"{f}_json"))
    data.update({
        "id": rec.id, "business_id": rec.business_id, "period_key": rec.period_key,
        "is_verified": rec.is_verified, "verified_by": rec.verified_by,
        "verification_date": iso(rec.verification_date), "version": rec.version,
        "created_at": iso(rec.created_at),
    })
    return data


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def get_tracking(session: Session, tracking_id: int) -> BusinessTracking:
    return get_entity(session, BusinessTracking, tracking_id, "Tracking record")


def list_tracking(session: Session, business_id: int, tracking_period: str | None = None) -> list[BusinessTracking]:
    """Records for one business, most recent first."""
    get_entity(session, BusinessProfile, business_id, "Business")
    query = (
        select(BusinessTracking)
        .where(BusinessTracking.business_id == business_id)
        .order_by(BusinessTracking.tracking_date.desc(), BusinessTracking.id.desc())
    )
    if tracking_period:
        query = query.where(BusinessTracking.tracking_period == tracking_period)
    return list(session.execute(query).scalars().all())


def record_tracking(session: Session, business_id: int, data: dict[str, Any]) -> BusinessTracking:
    """Append a new snapshot; an existing record for the same period is never overwritten."""
    get_entity(session, BusinessProfile, business_id, "Business")
    if data.get("mentor_id") is not None:
        get_entity(session, Mentor, data["mentor_id"], "Mentor")
    tracking_period = data.get("tracking_period") or "monthly"
    key = period_key(tracking_period, data["tracking_date"])
    _ensure_unique_period(session, business_id, tracking_period, key)

    values = {f: data[f] for f in TRACKING_FIELDS if f in data}
    values["tracking_period"] = tracking_period
    derive_tracking_figures(values, set(data))

    rec = BusinessTracking(business_id=business_id, period_key=key, tracking_date=data["tracking_date"])
    apply_updates(rec, values, TRACKING_FIELDS)
    apply_updates(rec, data, (), LIST_FIELDS)
    session.add(rec)
    session.flush()
    log.info("Tracking record %s (%s %s) added for business %s", rec.id, tracking_period, key, business_id)
    return rec


def update_tracking(session: Session, rec: BusinessTracking, updates: dict[str, Any]) -> BusinessTracking:
    check_version(rec, updates.get("version"))
    fields = {k for k in updates if k != "version"}
    if rec.is_verified:
        locked = sorted(fields - set(FEEDBACK_FIELDS))
        if locked:
            raise LockedForReview(
                f"Tracking record {rec.id} is verified; only feedback fields can change",
                fields=locked,
            )

    if "tracking_date" in updates or "tracking_period" in updates:
        tracking_period = updates.get("tracking_period") or rec.tracking_period
        tracking_date = updates.get("tracking_date") or rec.tracking_date
        key = period_key(tracking_period, tracking_date)
        _ensure_unique_period(session, rec.business_id, tracking_period, key, exclude_id=rec.id)
        updates = {**updates, "tracking_period": tracking_period, "tracking_date": tracking_date}
        rec.period_key = key
    if updates.get("mentor_id") is not None:
        get_entity(session, Mentor, updates["mentor_id"], "Mentor")

    values = {f: getattr(rec, f) for f in TRACKING_FIELDS}
    values.update({f: updates[f] for f in TRACKING_FIELDS if f in updates})
    derive_tracking_figures(values, fields)
    changed = fields | {"actual_profit", "actual_employees"}
    apply_updates(rec, {f: values[f] for f in TRACKING_FIELDS if f in changed}, TRACKING_FIELDS)
    apply_updates(rec, updates, (), LIST_FIELDS)
    session.flush()
    return rec


def verify_tracking(session: Session, rec: BusinessTracking, verified_by: int | None = None) -> BusinessTracking:
    if rec.is_verified:
        raise StatusConflict(f"Tracking record {rec.id} is already verified")
    rec.is_verified = True
    rec.verified_by = verified_by
    rec.verification_date = utc_now()
    session.flush()
    log.info("Tracking record %s verified by %s", rec.id, verified_by)
    return rec


def delete_tracking(session: Session, rec: BusinessTracking) -> None:
    if rec.is_verified:
        raise LockedForReview(f"Tracking record {rec.id} is verified and cannot be deleted")
    session.delete(rec)
    session.flush()


def business_stats(session: Session, business_id: int) -> dict:
    """Latest revenue and head-count, growth against the previous month, and timelines."""
    records = list_tracking(session, business_id)
    stats: dict[str, Any] = {
        "latest_revenue": 0, "current_employees": 0, "growth_rate": 0.0,
        "revenue_timeline": [], "employees_timeline": [],
    }
    if not records:
        return stats
    latest = records[0]
    stats["latest_revenue"] = latest.actual_revenue or 0
    stats["current_employees"] = latest.actual_employees or 0

    month = (latest.tracking_date.year, latest.tracking_date.month)
    previous = next(
        (r for r in records[1:] if (r.tracking_date.year, r.tracking_date.month) != month), None,
    )
    if previous is not None and previous.actual_revenue:
        growth = (stats["latest_revenue"] - previous.actual_revenue) / previous.actual_revenue * 100
        stats["growth_rate"] = round(growth, 1)

    for rec in reversed(records):
        point = {"date": iso(rec.tracking_date), "period_key": rec.period_key}
        stats["revenue_timeline"].append({**point, "value": rec.actual_revenue or 0})
        stats["employees_timeline"].append({**point, "value": rec.actual_employees or 0})
    return stats
