"""Lifecycle of the business/youth, mentor/business and business/makerspace links.

Links are never deleted: unassigning flips ``is_active`` so the assignment
history survives. Every function flushes but leaves the commit to the caller,
so a rule violation raised halfway through rolls the whole request back.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dare.config import get_settings
from dare.enums import OWNER
from dare.errors import CapacityExceeded, NotFoundError, StatusConflict
from dare.models import (
    BusinessMakerspaceAssignment, BusinessProfile, BusinessYouthRelationship, Makerspace,
    Mentor, MentorBusinessRelationship,
)
from dare.services import apply_updates, get_entity, get_youth, refresh_youth_impact

log = logging.getLogger(__name__)

MENTORSHIP_FIELDS = (
    "mentorship_focus", "meeting_frequency", "mentorship_progress",
    "last_meeting_date", "next_meeting_date", "progress_rating",
)


# ---------------------------------------------------------------------------
# Business <-> youth
# ---------------------------------------------------------------------------


def active_owners(session: Session, business_id: int) -> list[BusinessYouthRelationship]:
    """Active owner links, oldest first (join date, then youth id)."""
    return list(session.execute(
        select(BusinessYouthRelationship)
        .where(
            BusinessYouthRelationship.business_id == business_id,
            BusinessYouthRelationship.role == OWNER,
            BusinessYouthRelationship.is_active.is_(True),
        )
        .order_by(BusinessYouthRelationship.join_date, BusinessYouthRelationship.youth_id)
    ).scalars().all())


def assign_youth_to_business(
    session: Session, business_id: int, youth_id: int, role: str = "Member",
    join_date: date | None = None, on_capacity: str = "reject",
) -> BusinessYouthRelationship:
    """Insert or reactivate a membership link.

    Adding an owner to a business already at the cap either raises
    ``CapacityExceeded`` (``on_capacity="reject"``, nothing changes) or
    deactivates the longest-standing owner (``"replace_oldest"``).
    """
    biz = get_entity(session, BusinessProfile, business_id, "Business")
    get_youth(session, youth_id)
    link = session.get(BusinessYouthRelationship, (business_id, youth_id))
    was_owner = link is not None and link.is_active and link.role == OWNER
    owners = active_owners(session, business_id)

    if role == OWNER and not was_owner:
        cap = get_settings().max_active_owners
        if len(owners) >= cap:
            if on_capacity != "replace_oldest":
                raise CapacityExceeded(
                    f"Business {business_id} already has {len(owners)} active owners (max {cap})",
                    fields=["role"],
                )
            oldest = owners[0]
            oldest.is_active = False
            log.info("Business %s: owner %s replaced by %s", business_id, oldest.youth_id, youth_id)
    elif was_owner and role != OWNER and len(owners) == 1:
        raise CapacityExceeded(f"Youth {youth_id} is the last active owner of business {business_id}")

    if link is None:
        link = BusinessYouthRelationship(
            business_id=business_id, youth_id=youth_id, role=role,
            join_date=join_date or date.today(), is_active=True,
        )
        session.add(link)
    else:
        if not link.is_active:
            link.join_date = join_date or date.today()
        elif join_date is not None:
            link.join_date = join_date
        link.role = role
        link.is_active = True
    session.flush()
    refresh_youth_impact(session, biz)
    session.flush()
    log.info("Youth %s assigned to business %s as %s", youth_id, business_id, role)
    return link


def unassign_youth_from_business(session: Session, business_id: int, youth_id: int) -> BusinessYouthRelationship:
    link = session.get(BusinessYouthRelationship, (business_id, youth_id))
    if link is None:
        raise NotFoundError("Business membership", f"{business_id}/{youth_id}")
    if not link.is_active:
        return link
    if link.role == OWNER and len(active_owners(session, business_id)) == 1:
        raise CapacityExceeded(f"Youth {youth_id} is the last active owner of business {business_id}")
    link.is_active = False
    session.flush()
    refresh_youth_impact(session, link.business)
    session.flush()
    log.info("Youth %s unassigned from business %s", youth_id, business_id)
    return link


def list_business_members(
    session: Session, business_id: int, include_inactive: bool = False,
) -> list[BusinessYouthRelationship]:
    get_entity(session, BusinessProfile, business_id, "Business")
    query = (
        select(BusinessYouthRelationship)
        .where(BusinessYouthRelationship.business_id == business_id)
        .order_by(BusinessYouthRelationship.join_date, BusinessYouthRelationship.youth_id)
    )
    if not include_inactive:
        query = query.where(BusinessYouthRelationship.is_active.is_(True))
    return list(session.execute(query).scalars().all())


def list_youth_businesses(session: Session, youth_id: int) -> list[BusinessYouthRelationship]:
    get_youth(session, youth_id)
    return list(session.execute(
        select(BusinessYouthRelationship).where(
            BusinessYouthRelationship.youth_id == youth_id,
            BusinessYouthRelationship.is_active.is_(True),
        )
    ).scalars().all())


# ---------------------------------------------------------------------------
# Mentor <-> business
# ---------------------------------------------------------------------------


def assign_mentor_to_business(
    session: Session, business_id: int, mentor_id: int, assigned_date: date | None = None,
    details: dict[str, Any] | None = None,
) -> MentorBusinessRelationship:
    """Insert or reactivate a mentorship, keeping any earlier goals and progress notes."""
    details = details or {}
    get_entity(session, BusinessProfile, business_id, "Business")
    mentor = get_entity(session, Mentor, mentor_id, "Mentor")
    if not mentor.is_active:
        raise StatusConflict(f"Mentor {mentor_id} is inactive")
    link = session.get(MentorBusinessRelationship, (mentor_id, business_id))
    if link is None:
        link = MentorBusinessRelationship(
            mentor_id=mentor_id, business_id=business_id,
            assigned_date=assigned_date or date.today(), is_active=True,
        )
        session.add(link)
    elif not link.is_active:
        link.is_active = True
        link.assigned_date = assigned_date or date.today()
    apply_updates(link, details, MENTORSHIP_FIELDS, ("mentorship_goals",))
    session.flush()
    log.info("Mentor %s assigned to business %s", mentor_id, business_id)
    return link


def update_mentorship(
    session: Session, mentor_id: int, business_id: int, updates: dict[str, Any],
) -> MentorBusinessRelationship:
    link = session.get(MentorBusinessRelationship, (mentor_id, business_id))
    if link is None:
        raise NotFoundError("Mentorship", f"{mentor_id}/{business_id}")
    apply_updates(link, updates, MENTORSHIP_FIELDS, ("mentorship_goals",))
    session.flush()
    return link


def unassign_mentor(session: Session, mentor_id: int, business_id: int) -> MentorBusinessRelationship:
    """Deactivate a mentorship. Calling it again on an inactive link is a no-op."""
    link = session.get(MentorBusinessRelationship, (mentor_id, business_id))
    if link is None:
        raise NotFoundError("Mentorship", f"{mentor_id}/{business_id}")
    if link.is_active:
        link.is_active = False
        session.flush()
        log.info("Mentor %s unassigned from business %s", mentor_id, business_id)
    return link


def list_mentor_businesses(session: Session, mentor_id: int) -> list[MentorBusinessRelationship]:
    get_entity(session, Mentor, mentor_id, "Mentor")
    return list(session.execute(
        select(MentorBusinessRelationship).where(
            MentorBusinessRelationship.mentor_id == mentor_id,
            MentorBusinessRelationship.is_active.is_(True),
        )
    ).scalars().all())


def list_business_mentors(session: Session, business_id: int) -> list[MentorBusinessRelationship]:
    get_entity(session, BusinessProfile, business_id, "Business")
    return list(session.execute(
        select(MentorBusinessRelationship).where(
            MentorBusinessRelationship.business_id == business_id,
            MentorBusinessRelationship.is_active.is_(True),
        )
    ).scalars().all())


# ---------------------------------------------------------------------------
# Business <-> makerspace
# ---------------------------------------------------------------------------


def active_makerspace_assignment(session: Session, business_id: int) -> BusinessMakerspaceAssignment | None:
    return session.execute(
        select(BusinessMakerspaceAssignment).where(
            BusinessMakerspaceAssignment.business_id == business_id,
            BusinessMakerspaceAssignment.is_active.is_(True),
        )
    ).scalars().first()


def assign_business_to_makerspace(
    session: Session, business_id: int, makerspace_id: int, assigned_by: int | None = None,
    notes: str = "", replace: bool = False,
) -> BusinessMakerspaceAssignment:
    """Give a business its single active makerspace.

    Assigning the makerspace it already has returns the existing row. Moving
    to a different one requires ``replace=True``; otherwise ``StatusConflict``.
    """
    get_entity(session, BusinessProfile, business_id, "Business")
    get_entity(session, Makerspace, makerspace_id, "Makerspace")
    current = active_makerspace_assignment(session, business_id)
    if current is not None:
        if current.makerspace_id == makerspace_id:
            return current
        if not replace:
            raise StatusConflict(
                f"Business {business_id} is already assigned to makerspace {current.makerspace_id}",
                fields=["makerspace_id"],
            )
        current.is_active = False
        # The old row must be inactive before the new one hits the partial unique index.
        session.flush()
    assignment = BusinessMakerspaceAssignment(
        business_id=business_id, makerspace_id=makerspace_id,
        assigned_by=assigned_by, notes=notes, is_active=True,
    )
    session.add(assignment)
    session.flush()
    log.info("Business %s assigned to makerspace %s", business_id, makerspace_id)
    return assignment


def unassign_business_from_makerspace(
    session: Session, business_id: int, makerspace_id: int,
) -> BusinessMakerspaceAssignment:
    rows = session.execute(
        select(BusinessMakerspaceAssignment)
        .where(
            BusinessMakerspaceAssignment.business_id == business_id,
            BusinessMakerspaceAssignment.makerspace_id == makerspace_id,
        )
        .order_by(BusinessMakerspaceAssignment.is_active.desc(), BusinessMakerspaceAssignment.id.desc())
    ).scalars().all()
    if not rows:
        raise NotFoundError("Makerspace assignment", f"{business_id}/{makerspace_id}")
    assignment = rows[0]
    if assignment.is_active:
        assignment.is_active = False
        session.flush()
        log.info("Business %s unassigned from makerspace %s", business_id, makerspace_id)
    return assignment


def list_makerspace_businesses(session: Session, makerspace_id: int) -> list[BusinessMakerspaceAssignment]:
    get_entity(session, Makerspace, makerspace_id, "Makerspace")
    return list(session.execute(
        select(BusinessMakerspaceAssignment).where(
            BusinessMakerspaceAssignment.makerspace_id == makerspace_id,
            BusinessMakerspaceAssignment.is_active.is_(True),
        )
    ).scalars().all())
