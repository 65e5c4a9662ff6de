"""Shared business logic for the DARE API and CLI.

Functions here add and flush ORM objects but never commit; the caller owns
the transaction.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dare.config import get_settings
from dare.enums import ENTERPRISE_TYPE_BY_MODEL, OWNER
from dare.errors import CapacityExceeded, NotFoundError, StatusConflict, ValidationError
from dare.models import (
    BusinessMakerspaceAssignment, BusinessProfile, BusinessResource, BusinessResourceCost,
    BusinessTracking, BusinessYouthRelationship, FeasibilityAssessment, Makerspace,
    MakerspaceResource, MakerspaceResourceCost, Mentor, MentorBusinessRelationship,
    MentorshipMessage, User, YouthProfile,
)
from dare.utils import dump_list, iso, normalize_string_list

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

USER_FIELDS = ("full_name", "email", "role", "district", "profile_picture", "is_active")

YOUTH_FIELDS = (
    "participant_code", "full_name", "first_name", "middle_name", "last_name",
    "preferred_name", "profile_picture", "date_of_birth", "gender", "marital_status",
    "children_count", "national_id", "pwd_status", "district", "town", "home_address",
    "country", "phone_number", "email", "core_skills", "skill_level",
    "highest_education_level", "business_interest", "employment_status",
    "training_status", "program_status", "transition_status", "onboarded_to_tracker",
    "cohort", "dare_model", "refugee_status", "idp_status", "user_id",
)
YOUTH_LIST_FIELDS = ("languages_spoken",)

BUSINESS_FIELDS = (
    "business_name", "business_logo", "district", "business_location",
    "business_contact", "business_description", "dare_model", "business_start_date",
    "registration_status", "registration_number", "registration_date",
    "target_market", "implementing_partner_name", "enterprise_type",
    "enterprise_size", "sector", "payment_structure", "primary_phone_number",
    "business_email", "country", "expected_weekly_revenue",
    "expected_monthly_revenue", "anticipated_monthly_expenditure",
    "expected_monthly_profit",
)
BUSINESS_LIST_FIELDS = ("business_objectives", "short_term_goals", "sub_partner_names")
# Derived from the active members, never client-set.
BUSINESS_IMPACT_FIELDS = (
    "total_youth_in_work_reported", "youth_refugee_count", "youth_idp_count", "youth_plwd_count",
)

MENTOR_FIELDS = ("name", "phone", "email", "specialization", "bio", "profile_picture", "is_active")
MENTOR_LIST_FIELDS = ("assigned_districts",)

MAKERSPACE_FIELDS = (
    "name", "description", "address", "coordinates", "district", "contact_phone",
    "contact_email", "contact_person", "operating_hours", "open_date", "facilities", "status",
)

RESOURCE_FIELDS = (
    "name", "category", "description", "status", "quantity", "acquisition_date",
    "unit_cost", "supplier", "notes", "created_by",
)

COST_FIELDS = ("cost_type", "amount", "cost_date", "description", "receipt", "recorded_by")

# ---------------------------------------------------------------------------
# Lookup & mutation helpers
# ---------------------------------------------------------------------------


def get_entity(session: Session, model, entity_id: int, label: str):
    obj = session.get(model, entity_id)
    if obj is None:
        raise NotFoundError(label, entity_id)
    return obj


def apply_updates(
    obj, updates: dict[str, Any], fields: tuple[str, ...], list_fields: tuple[str, ...] = (),
) -> None:
    """Copy the keys present in *updates* onto an ORM object.

    *updates* should come from ``model_dump(exclude_unset=True)`` so only
    fields the client sent are touched. List fields are written to their
    ``<name>_json`` column as a JSON array. An explicit ``None`` on a
    non-nullable column resets it to the column default, or is rejected
    when the column has none.
    """
    columns = obj.__table__.c
    for field in fields:
        if field in updates:
            value = updates[field]
            column = columns.get(field)
            if value is None and column is not None and not column.nullable:
                if column.default is None or not column.default.is_scalar:
                    raise ValidationError(f"{field} cannot be null", fields=[field])
                value = column.default.arg
            setattr(obj, field, value)
    for field in list_fields:
        if field in updates:
            setattr(obj, f"{field}_json", dump_list(updates[field]))


def check_version(obj, expected: int | None) -> None:
    if expected is not None and expected != obj.version:
        raise StatusConflict(
            f"{type(obj).__name__} {obj.id} was modified (version {obj.version}, got {expected})",
            fields=["version"],
        )


def _list(obj, field: str) -> list[str]:
    return normalize_string_list(getattr(obj, f"{field}_json"))


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def user_summary(user: User) -> dict:
    return {
        "id": user.id, "username": user.username, "full_name": user.full_name,
        "email": user.email, "role": user.role, "district": user.district,
        "profile_picture": user.profile_picture, "is_active": user.is_active,
        "last_login": iso(user.last_login), "created_at": iso(user.created_at),
    }


def youth_summary(youth: YouthProfile) -> dict:
    data = {f: getattr(youth, f) for f in YOUTH_FIELDS}
    data["date_of_birth"] = iso(youth.date_of_birth)
    data["languages_spoken"] = _list(youth, "languages_spoken")
    data.update({"id": youth.id, "is_deleted": youth.is_deleted, "created_at": iso(youth.created_at)})
    return data


def business_summary(biz: BusinessProfile) -> dict:
    data = {f: getattr(biz, f) for f in (*BUSINESS_FIELDS, *BUSINESS_IMPACT_FIELDS)}
    for f in ("business_start_date", "registration_date"):
        data[f] = iso(data[f])
    for f in BUSINESS_LIST_FIELDS:
        data[f] = _list(biz, f)
    data.update({
        "id": biz.id, "version": biz.version, "created_at": iso(biz.created_at),
        "owner_ids": sorted(
            link.youth_id for link in biz.youth_links if link.is_active and link.role == OWNER
        ),
    })
    return data


def business_detail(biz: BusinessProfile) -> dict:
    data = business_summary(biz)
    links = sorted(biz.youth_links, key=lambda link: (link.join_date, link.youth_id))
    data["members"] = [member_summary(link) for link in links if link.is_active]
    data["mentors"] = [mentorship_summary(link) for link in biz.mentor_links if link.is_active]
    active = next((a for a in biz.makerspace_assignments if a.is_active), None)
    data["makerspace"] = assignment_summary(active) if active else None
    return data


def member_summary(link: BusinessYouthRelationship) -> dict:
    return {
        "business_id": link.business_id, "youth_id": link.youth_id,
        "full_name": link.youth.full_name if link.youth else None,
        "role": link.role, "join_date": iso(link.join_date), "is_active": link.is_active,
    }


def mentor_summary(mentor: Mentor) -> dict:
    data = {f: getattr(mentor, f) for f in MENTOR_FIELDS}
    data.update({
        "id": mentor.id, "user_id": mentor.user_id,
        "assigned_districts": _list(mentor, "assigned_districts"),
        "active_business_count": sum(1 for link in mentor.business_links if link.is_active),
    })
    return data


def mentorship_summary(link: MentorBusinessRelationship) -> dict:
    return {
        "mentor_id": link.mentor_id, "business_id": link.business_id,
        "mentor_name": link.mentor.name if link.mentor else None,
        "business_name": link.business.business_name if link.business else None,
        "assigned_date": iso(link.assigned_date), "is_active": link.is_active,
        "mentorship_focus": link.mentorship_focus, "meeting_frequency": link.meeting_frequency,
        "mentorship_goals": _list(link, "mentorship_goals"),
        "mentorship_progress": link.mentorship_progress,
        "last_meeting_date": iso(link.last_meeting_date),
        "next_meeting_date": iso(link.next_meeting_date),
        "progress_rating": link.progress_rating,
    }


def message_summary(msg: MentorshipMessage) -> dict:
    return {
        "id": msg.id, "mentor_id": msg.mentor_id, "business_id": msg.business_id,
        "message": msg.message, "sender": msg.sender, "category": msg.category,
        "is_read": msg.is_read, "created_at": iso(msg.created_at),
    }


def makerspace_summary(space: Makerspace) -> dict:
    data = {f: getattr(space, f) for f in MAKERSPACE_FIELDS}
    data["open_date"] = iso(space.open_date)
    data.update({
        "id": space.id,
        "active_business_count": sum(1 for a in space.assignments if a.is_active),
        "resource_count": len(space.resources),
    })
    return data


def assignment_summary(assignment: BusinessMakerspaceAssignment) -> dict:
    return {
        "id": assignment.id, "business_id": assignment.business_id,
        "makerspace_id": assignment.makerspace_id,
        "makerspace_name": assignment.makerspace.name if assignment.makerspace else None,
        "business_name": assignment.business.business_name if assignment.business else None,
        "assigned_date": iso(assignment.assigned_date), "assigned_by": assignment.assigned_by,
        "notes": assignment.notes, "is_active": assignment.is_active,
    }


def resource_summary(resource: MakerspaceResource | BusinessResource) -> dict:
    data = {f: getattr(resource, f) for f in RESOURCE_FIELDS}
    data["acquisition_date"] = iso(resource.acquisition_date)
    data.update({
        "id": resource.id, "total_cost": resource.total_cost,
        "costs": [cost_summary(c) for c in resource.costs],
        "cost_history_total": round(sum(c.amount for c in resource.costs), 2),
    })
    if isinstance(resource, MakerspaceResource):
        data["makerspace_id"] = resource.makerspace_id
    else:
        data["business_id"] = resource.business_id
    return data


def cost_summary(cost: MakerspaceResourceCost | BusinessResourceCost) -> dict:
    return {
        "id": cost.id, "resource_id": cost.resource_id, "cost_type": cost.cost_type,
        "amount": cost.amount, "cost_date": iso(cost.cost_date),
        "description": cost.description, "receipt": cost.receipt,
        "recorded_by": cost.recorded_by,
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def create_user(session: Session, data: dict[str, Any]) -> User:
    from dare.permissions import hash_password
    if session.execute(select(User).where(User.username == data["username"])).scalars().first():
        raise StatusConflict(f"Username {data['username']!r} is taken", fields=["username"])
    user = User(username=data["username"], password_hash=hash_password(data["password"]))
    apply_updates(user, data, USER_FIELDS)
    session.add(user)
    session.flush()
    log.info("Created user %s (%s)", user.username, user.role)
    return user


def list_users(session: Session, role: str | None = None, include_inactive: bool = False) -> list[User]:
    query = select(User).order_by(User.username)
    if role:
        query = query.where(User.role == role)
    if not include_inactive:
        query = query.where(User.is_active.is_(True))
    return list(session.execute(query).scalars().all())


def update_user(session: Session, user: User, updates: dict[str, Any]) -> User:
    from dare.permissions import hash_password
    if updates.get("password"):
        user.password_hash = hash_password(updates["password"])
    apply_updates(user, updates, USER_FIELDS)
    session.flush()
    return user


def deactivate_user(session: Session, user: User) -> User:
    user.is_active = False
    session.flush()
    log.info("Deactivated user %s", user.username)
    return user


# ---------------------------------------------------------------------------
# Youth profiles
# ---------------------------------------------------------------------------


def get_youth(session: Session, youth_id: int) -> YouthProfile:
    youth = session.get(YouthProfile, youth_id)
    if youth is None or youth.is_deleted:
        raise NotFoundError("Youth profile", youth_id)
    return youth


def create_youth(session: Session, data: dict[str, Any]) -> YouthProfile:
    youth = YouthProfile(full_name=data["full_name"])
    apply_updates(youth, data, YOUTH_FIELDS, YOUTH_LIST_FIELDS)
    session.add(youth)
    session.flush()
    return youth


def list_youth(
    session: Session, *, district: str | None = None, dare_model: str | None = None,
    search: str | None = None, include_deleted: bool = False,
) -> list[YouthProfile]:
    query = select(YouthProfile).order_by(YouthProfile.full_name)
    if not include_deleted:
        query = query.where(YouthProfile.is_deleted.is_(False))
    if district:
        query = query.where(YouthProfile.district == district)
    if dare_model:
        query = query.where(YouthProfile.dare_model == dare_model)
    if search:
        like = f"%{search.lower()}%"
        query = query.where(
            func.lower(YouthProfile.full_name).like(like)
            | func.lower(func.coalesce(YouthProfile.participant_code, "")).like(like)
        )
    return list(session.execute(query).scalars().all())


def update_youth(session: Session, youth: YouthProfile, updates: dict[str, Any]) -> YouthProfile:
    apply_updates(youth, updates, YOUTH_FIELDS, YOUTH_LIST_FIELDS)
    session.flush()
    return youth


def delete_youth(session: Session, youth: YouthProfile) -> YouthProfile:
    youth.is_deleted = True
    session.flush()
    log.info("Soft-deleted youth profile %s", youth.id)
    return youth


# ---------------------------------------------------------------------------
# Business profiles
# ---------------------------------------------------------------------------


def derive_field(
    values: dict[str, Any], touched: set[str], target: str, inputs: tuple[str, ...],
    compute: Callable[..., Any], rule: str,
) -> None:
    """Recompute ``values[target]`` from *inputs*, in place.

    A supplied target that disagrees with its inputs is rejected rather than
    silently replaced. When an input was cleared and the target was not
    sent, the target is cleared with it. *touched* grows with *target* so a
    chain of derived fields follows its first link.
    """
    args = [values.get(name) for name in inputs]
    if all(arg is not None for arg in args):
        result = compute(*args)
        sent = values.get(target)
        if target in touched and sent is not None and sent != result:
            raise ValidationError(f"{target} must equal {rule} ({result})", fields=[target])
        values[target] = result
        touched.add(target)
    elif touched.intersection(inputs) and target not in touched:
        values[target] = None
        touched.add(target)


def derive_business_figures(values: dict[str, Any], supplied: set[str]) -> None:
    """Fill expected monthly revenue and profit from their inputs, in place."""
    touched = set(supplied)
    derive_field(
        values, touched, "expected_monthly_revenue", ("expected_weekly_revenue",),
        lambda weekly: weekly * 4, "expected_weekly_revenue x 4",
    )
    derive_field(
        values, touched, "expected_monthly_profit",
        ("expected_monthly_revenue", "anticipated_monthly_expenditure"),
        lambda monthly, spend: monthly - spend, "monthly revenue minus expenditure",
    )


def youth_impact_counts(youths) -> dict[str, int]:
    """Headline counts over a business's working youth."""
    youths = list(youths)
    return {
        "total_youth_in_work_reported": len(youths),
        "youth_refugee_count": sum(1 for y in youths if y.refugee_status),
        "youth_idp_count": sum(1 for y in youths if y.idp_status),
        "youth_plwd_count": sum(1 for y in youths if (y.pwd_status or "").strip().lower() == "yes"),
    }


def refresh_youth_impact(session: Session, biz: BusinessProfile) -> None:
    """Recount the impact figures from the active members (call after a flush)."""
    members = session.execute(
        select(YouthProfile)
        .join(BusinessYouthRelationship, BusinessYouthRelationship.youth_id == YouthProfile.id)
        .where(
            BusinessYouthRelationship.business_id == biz.id,
            BusinessYouthRelationship.is_active.is_(True),
        )
    ).scalars().all()
    for field, value in youth_impact_counts(members).items():
        if getattr(biz, field) != value:
            setattr(biz, field, value)


def select_mentor_for_district(session: Session, district: str) -> Mentor | None:
    """The active mentor covering *district* with the fewest active businesses.

    Ties go to the lowest mentor id.
    """
    load = Counter(session.execute(
        select(MentorBusinessRelationship.mentor_id).where(MentorBusinessRelationship.is_active.is_(True))
    ).scalars().all())
    candidates = [
        m for m in session.execute(
            select(Mentor).where(Mentor.is_active.is_(True)).order_by(Mentor.id)
        ).scalars().all()
        if district in _list(m, "assigned_districts")
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda m: load[m.id])


def create_business(
    session: Session, data: dict[str, Any], youth_ids: list[int] | None = None,
    mentor_id: int | None = None,
) -> BusinessProfile:
    """Create a business, link each of *youth_ids* as an active owner and attach a mentor.

    The mentor is *mentor_id* when given, else the least-loaded active mentor
    covering the business's district (none if nobody covers it). Everything
    is checked before the first write, so a bad id or too many owners leaves
    nothing behind (caller must commit).
    """
    youth_ids = list(dict.fromkeys(youth_ids or []))
    cap = get_settings().max_active_owners
    if len(youth_ids) > cap:
        raise CapacityExceeded(
            f"A business can have at most {cap} active owners (got {len(youth_ids)})",
            fields=["youth_ids"],
        )
    owners = [get_youth(session, youth_id) for youth_id in youth_ids]
    if mentor_id is not None:
        mentor = get_entity(session, Mentor, mentor_id, "Mentor")
        if not mentor.is_active:
            raise StatusConflict(f"Mentor {mentor_id} is inactive", fields=["mentor_id"])
    else:
        mentor = select_mentor_for_district(session, data["district"])

    values = {f: data[f] for f in BUSINESS_FIELDS if f in data}
    derive_business_figures(values, set(data))
    if not values.get("enterprise_type"):
        values["enterprise_type"] = ENTERPRISE_TYPE_BY_MODEL.get(values.get("dare_model"), "Other")

    biz = BusinessProfile(business_name=data["business_name"], district=data["district"])
    apply_updates(biz, values, BUSINESS_FIELDS)
    apply_updates(biz, data, (), BUSINESS_LIST_FIELDS)
    for field, value in youth_impact_counts(owners).items():
        setattr(biz, field, value)
    today = date.today()
    for youth in owners:
        biz.youth_links.append(BusinessYouthRelationship(
            youth_id=youth.id, role=OWNER, join_date=today, is_active=True,
        ))
    if mentor is not None:
        biz.mentor_links.append(MentorBusinessRelationship(
            mentor_id=mentor.id, assigned_date=today, is_active=True,
            mentorship_focus="Business Growth",
        ))
    session.add(biz)
    session.flush()
    log.info(
        "Created business %s (%s) with %d owner(s), mentor %s",
        biz.id, biz.business_name, len(owners), mentor.id if mentor else None,
    )
    return biz


def list_businesses(
    session: Session, *, district: str | None = None, dare_model: str | None = None,
    sector: str | None = None, search: str | None = None,
) -> list[BusinessProfile]:
    query = select(BusinessProfile).order_by(BusinessProfile.business_name)
    if district:
        query = query.where(BusinessProfile.district == district)
    if dare_model:
        query = query.where(BusinessProfile.dare_model == dare_model)
    if sector:
        query = query.where(BusinessProfile.sector == sector)
    if search:
        query = query.where(func.lower(BusinessProfile.business_name).like(f"%{search.lower()}%"))
    return list(session.execute(query).scalars().all())


def update_business(session: Session, biz: BusinessProfile, updates: dict[str, Any]) -> BusinessProfile:
    check_version(biz, updates.get("version"))
    values = {f: getattr(biz, f) for f in BUSINESS_FIELDS}
    values.update({f: updates[f] for f in BUSINESS_FIELDS if f in updates})
    derive_business_figures(values, set(updates))
    changed = set(updates) | {"expected_monthly_revenue", "expected_monthly_profit"}
    apply_updates(biz, {f: values[f] for f in BUSINESS_FIELDS if f in changed}, BUSINESS_FIELDS)
    apply_updates(biz, updates, (), BUSINESS_LIST_FIELDS)
    session.flush()
    return biz


def delete_business(session: Session, biz: BusinessProfile) -> None:
    """Remove a business together with its links, records, and assessments."""
    session.delete(biz)
    session.flush()
    log.info("Deleted business %s (%s)", biz.id, biz.business_name)


# ---------------------------------------------------------------------------
# Mentors
# ---------------------------------------------------------------------------


def create_mentor(session: Session, data: dict[str, Any]) -> Mentor:
    get_entity(session, User, data["user_id"], "User")
    if session.execute(select(Mentor).where(Mentor.user_id == data["user_id"])).scalars().first():
        raise StatusConflict(f"User {data['user_id']} already has a mentor profile", fields=["user_id"])
    mentor = Mentor(user_id=data["user_id"], name=data["name"])
    apply_updates(mentor, data, MENTOR_FIELDS, MENTOR_LIST_FIELDS)
    session.add(mentor)
    session.flush()
    return mentor


def list_mentors(session: Session, district: str | None = None, include_inactive: bool = False) -> list[Mentor]:
    query = select(Mentor).order_by(Mentor.name)
    if not include_inactive:
        query = query.where(Mentor.is_active.is_(True))
    mentors = list(session.execute(query).scalars().all())
    if district:
        mentors = [m for m in mentors if district in _list(m, "assigned_districts")]
    return mentors


def update_mentor(session: Session, mentor: Mentor, updates: dict[str, Any]) -> Mentor:
    apply_updates(mentor, updates, MENTOR_FIELDS, MENTOR_LIST_FIELDS)
    session.flush()
    return mentor


def deactivate_mentor(session: Session, mentor: Mentor) -> Mentor:
    mentor.is_active = False
    session.flush()
    return mentor


# ---------------------------------------------------------------------------
# Mentorship messages
# ---------------------------------------------------------------------------


def post_message(session: Session, data: dict[str, Any]) -> MentorshipMessage:
    link = session.get(MentorBusinessRelationship, (data["mentor_id"], data["business_id"]))
    if link is None or not link.is_active:
        raise StatusConflict(
            f"Mentor {data['mentor_id']} is not actively assigned to business {data['business_id']}",
        )
    msg = MentorshipMessage(
        mentor_id=data["mentor_id"], business_id=data["business_id"],
        message=data["message"], sender=data["sender"], category=data.get("category"),
    )
    session.add(msg)
    session.flush()
    return msg


def list_messages(session: Session, mentor_id: int, business_id: int) -> list[MentorshipMessage]:
    return list(session.execute(
        select(MentorshipMessage)
        .where(MentorshipMessage.mentor_id == mentor_id, MentorshipMessage.business_id == business_id)
        .order_by(MentorshipMessage.created_at, MentorshipMessage.id)
    ).scalars().all())


def mark_message_read(session: Session, message_id: int) -> MentorshipMessage:
    msg = get_entity(session, MentorshipMessage, message_id, "Message")
    msg.is_read = True
    session.flush()
    return msg


# ---------------------------------------------------------------------------
# Makerspaces
# ---------------------------------------------------------------------------


def create_makerspace(session: Session, data: dict[str, Any]) -> Makerspace:
    space = Makerspace(name=data["name"], address=data["address"], district=data["district"])
    apply_updates(space, data, MAKERSPACE_FIELDS)
    session.add(space)
    session.flush()
    return space


def list_makerspaces(session: Session, district: str | None = None) -> list[Makerspace]:
    query = select(Makerspace).order_by(Makerspace.name)
    if district:
        query = query.where(Makerspace.district == district)
    return list(session.execute(query).scalars().all())


def update_makerspace(session: Session, space: Makerspace, updates: dict[str, Any]) -> Makerspace:
    apply_updates(space, updates, MAKERSPACE_FIELDS)
    session.flush()
    return space


def delete_makerspace(session: Session, space: Makerspace) -> None:
    session.delete(space)
    session.flush()


# ---------------------------------------------------------------------------
# Resources & cost history
# ---------------------------------------------------------------------------

_COST_MODELS = {MakerspaceResource: MakerspaceResourceCost, BusinessResource: BusinessResourceCost}


def _refresh_total(resource) -> None:
    if resource.unit_cost is None:
        resource.total_cost = None
    else:
        resource.total_cost = round(resource.unit_cost * (resource.quantity or 0), 2)


def create_resource(session: Session, model, owner_field: str, owner_id: int, data: dict[str, Any]):
    resource = model(**{owner_field: owner_id}, name=data["name"], category=data["category"])
    apply_updates(resource, data, RESOURCE_FIELDS)
    if resource.quantity is None:
        resource.quantity = 1
    _refresh_total(resource)
    session.add(resource)
    session.flush()
    return resource


def list_resources(session: Session, model, owner_field: str, owner_id: int) -> list:
    return list(session.execute(
        select(model).where(getattr(model, owner_field) == owner_id).order_by(model.name)
    ).scalars().all())


def update_resource(session: Session, resource, updates: dict[str, Any]):
    apply_updates(resource, updates, RESOURCE_FIELDS)
    _refresh_total(resource)
    session.flush()
    return resource


def delete_resource(session: Session, resource) -> None:
    session.delete(resource)
    session.flush()


def add_cost(session: Session, resource, data: dict[str, Any]):
    cost = _COST_MODELS[type(resource)](amount=data["amount"], cost_type=data["cost_type"])
    apply_updates(cost, data, COST_FIELDS)
    resource.costs.append(cost)
    session.flush()
    return cost


def delete_cost(session: Session, resource, cost_id: int) -> None:
    cost = next((c for c in resource.costs if c.id == cost_id), None)
    if cost is None:
        raise NotFoundError("Cost entry", cost_id)
    resource.costs.remove(cost)
    session.flush()


def resource_stats(resources: list) -> dict:
    by_status: Counter[str] = Counter()
    by_category: Counter[str] = Counter()
    total_value = 0.0
    maintenance = 0.0
    for r in resources:
        by_status[r.status or "Unknown"] += 1
        by_category[r.category or "Unknown"] += 1
        total_value += r.total_cost or 0.0
        maintenance += sum(c.amount for c in r.costs if c.cost_type != "Purchase")
    return {
        "total": len(resources),
        "total_quantity": sum(r.quantity or 0 for r in resources),
        "by_status": dict(by_status), "by_category": dict(by_category),
        "total_value": round(total_value, 2), "upkeep_cost": round(maintenance, 2),
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def compute_stats(session: Session) -> dict:
    youth = session.execute(
        select(YouthProfile.district).where(YouthProfile.is_deleted.is_(False))
    ).scalars().all()
    businesses = session.execute(select(BusinessProfile.district, BusinessProfile.dare_model)).all()
    by_district: Counter[str] = Counter()
    by_model: Counter[str] = Counter()
    for district, model in businesses:
        by_district[district or "Unknown"] += 1
        by_model[model or "Unspecified"] += 1
    assessments = Counter(session.execute(select(FeasibilityAssessment.status)).scalars().all())
    verified = Counter(session.execute(select(BusinessTracking.is_verified)).scalars().all())
    return {
        "youth": len(youth),
        "businesses": len(businesses),
        "mentors": session.execute(
            select(func.count(Mentor.id)).where(Mentor.is_active.is_(True))
        ).scalar_one(),
        "makerspaces": session.execute(select(func.count(Makerspace.id))).scalar_one(),
        "businesses_by_district": dict(by_district),
        "businesses_by_dare_model": dict(by_model),
        "youth_by_district": dict(Counter(d or "Unknown" for d in youth)),
        "assessments_by_status": dict(assessments),
        "tracking_verified": verified.get(True, 0),
        "tracking_pending": verified.get(False, 0),
    }
