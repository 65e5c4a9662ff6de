from __future__ import annotations

import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Generator

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from dare import enums, feasibility, permissions, relationships, reports, services, tracking, wizard
from dare.config import Settings, get_settings
from dare.db import init_db, session_generator
from dare.errors import DareError, StorageError
from dare.importer import import_xlsx
from dare.models import (
    BusinessProfile, BusinessResource, Makerspace, MakerspaceResource, Mentor, Permission, Role, User,
)
from dare.schemas import (
    AssessmentCreate, AssessmentReview, AssessmentUpdate, BusinessCreate, BusinessResourceCreate,
    BusinessResourceUpdate, BusinessUpdate, CostCreate, ImportResult, LoginRequest,
    MakerspaceAssignmentCreate, MakerspaceCreate, MakerspaceResourceCreate,
    MakerspaceResourceUpdate, MakerspaceUpdate, MentorAssignment, MentorCreate, MentorshipUpdate,
    MentorUpdate, MessageCreate, PermissionGrant, RoleCreate, StatsOut, TrackingCreate,
    TrackingUpdate, TrackingVerify, UserCreate, UserUpdate, YouthAssignment, YouthCreate, YouthUpdate,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="DARE Program Tracker",
    version="0.1.0",
    description=(
        "Program-management API for the DARE youth enterprise programme: youth "
        "profiles, businesses, mentors, makerspaces, feasibility assessments and "
        "periodic business tracking. All endpoints return JSON."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Credential checks and user accounts."},
        {"name": "Access", "description": "Roles and permission grants."},
        {"name": "Youth", "description": "Youth participant profiles and spreadsheet import."},
        {"name": "Businesses", "description": "Business profiles and their youth members."},
        {"name": "Mentors", "description": "Mentors, mentorships and mentorship messages."},
        {"name": "Makerspaces", "description": "Makerspaces and business assignments."},
        {"name": "Resources", "description": "Inventory and cost history for makerspaces and businesses."},
        {"name": "Feasibility", "description": "Scored feasibility assessments and their review."},
        {"name": "Tracking", "description": "Periodic business performance records and verification."},
        {"name": "Stats", "description": "Aggregate counts for dashboards."},
        {"name": "Reports", "description": "Summary report and spreadsheet exports."},
    ],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(DareError)
async def dare_error_handler(request: Request, exc: DareError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    return JSONResponse(status_code=409, content={
        "detail": "The record was modified by another request; reload and retry",
        "code": "STATUS_CONFLICT", "fields": ["version"],
    })


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    log.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    err = StorageError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    yield from session_generator()


def require_permission(resource: str, action: str):
    """Dependency factory gating a route on ``resource``/``action``.

    Enforcement is off unless ``enforce_permissions`` is set; the acting user
    is then read from the ``X-User-Id`` header set by the auth layer.
    """
    def dependency(
        x_user_id: int | None = Header(None),
        settings: Settings = Depends(get_settings),
        session: Session = Depends(db_session),
    ) -> User | None:
        if not settings.enforce_permissions:
            return session.get(User, x_user_id) if x_user_id is not None else None
        if x_user_id is None:
            raise HTTPException(401, "Authentication required")
        user = session.get(User, x_user_id)
        if user is None or not user.is_active:
            raise HTTPException(401, "Authentication required")
        if not permissions.has_permission(session, user, resource, action):
            raise HTTPException(403, f"You don't have permission to {action} {resource}")
        return user
    return dependency


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    return services.get_entity(session, model, entity_id, label)


def _actor_id(actor: User | None) -> int | None:
    return actor.id if actor is not None else None


def _payload(body: BaseModel) -> dict[str, Any]:
    return body.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Routes: Meta
# ---------------------------------------------------------------------------


@app.get("/api/enums", tags=["Stats"], summary="Closed value sets accepted by the API")
async def list_enums():
    return {
        "districts": list(enums.DISTRICTS), "dare_models": list(enums.DARE_MODELS),
        "user_roles": list(enums.USER_ROLES), "sectors": list(enums.SECTORS),
        "enterprise_types": list(enums.ENTERPRISE_TYPES),
        "enterprise_sizes": list(enums.ENTERPRISE_SIZES),
        "registration_statuses": list(enums.REGISTRATION_STATUSES),
        "payment_structures": list(enums.PAYMENT_STRUCTURES),
        "tracking_periods": list(enums.TRACKING_PERIODS),
        "feasibility_statuses": list(enums.FEASIBILITY_STATUSES),
        "feasibility_categories": {k: list(v) for k, v in enums.FEASIBILITY_CATEGORIES.items()},
        "resource_statuses": list(enums.RESOURCE_STATUSES),
        "cost_types": list(enums.COST_TYPES),
    }


@app.get("/api/stats", response_model=StatsOut, tags=["Stats"], summary="Dashboard counts")
async def get_stats(
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("dashboard", "view")),
):
    return services.compute_stats(session)


@app.get("/api/reports/summary", tags=["Reports"], summary="Programme totals for youth, businesses and tracking")
async def report_summary(
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("reports", "view")),
):
    return reports.summary_report(session)


@app.get("/api/reports/export/{entity}", tags=["Reports"],
         summary="Download youth, businesses or tracking records as an .xlsx workbook")
async def export_report(
    entity: str, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("reports", "view")),
):
    content = reports.export_workbook(session, entity)
    return Response(
        content=content, media_type=reports.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="dare-{entity}.xlsx"'},
    )


# ---------------------------------------------------------------------------
# Routes: Auth & users
# ---------------------------------------------------------------------------


@app.post("/api/auth/login", tags=["Auth"], summary="Check credentials and stamp last login")
async def login(body: LoginRequest, session: Session = Depends(db_session)):
    user = permissions.authenticate(session, body.username, body.password)
    if user is None:
        raise HTTPException(401, "Invalid username or password")
    session.commit()
    return services.user_summary(user)


@app.get("/api/users", tags=["Auth"], summary="List user accounts")
async def list_users(
    role: str | None = Query(None),
    include_inactive: bool = Query(False),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("users", "view")),
):
    return [services.user_summary(u) for u in services.list_users(session, role, include_inactive)]


@app.post("/api/users", status_code=201, tags=["Auth"], summary="Create a user account")
async def create_user(
    body: UserCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("users", "create")),
):
    user = services.create_user(session, _payload(body) | {"username": body.username, "password": body.password})
    session.commit()
    return services.user_summary(user)


@app.get("/api/users/{user_id}", tags=["Auth"], summary="Get a user account")
async def get_user(
    user_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("users", "view")),
):
    return services.user_summary(_get_or_404(session, User, user_id, "User"))


@app.patch("/api/users/{user_id}", tags=["Auth"], summary="Update a user account")
async def update_user(
    user_id: int, body: UserUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("users", "edit")),
):
    user = services.update_user(session, _get_or_404(session, User, user_id, "User"), _payload(body))
    session.commit()
    return services.user_summary(user)


@app.delete("/api/users/{user_id}", tags=["Auth"], summary="Deactivate a user account")
async def deactivate_user(
    user_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("users", "delete")),
):
    services.deactivate_user(session, _get_or_404(session, User, user_id, "User"))
    session.commit()
    return {"ok": True}


@app.get("/api/users/{user_id}/permissions/check", tags=["Access"],
         summary="Check whether a user holds a permission")
async def check_permission(
    user_id: int, resource: str = Query(...), action: str = Query(...),
    session: Session = Depends(db_session),
):
    user = _get_or_404(session, User, user_id, "User")
    return {"allowed": permissions.has_permission(session, user, resource, action)}


# ---------------------------------------------------------------------------
# Routes: Roles & permissions
# ---------------------------------------------------------------------------


@app.get("/api/permissions", tags=["Access"], summary="Permission catalogue")
async def list_permissions(session: Session = Depends(db_session)):
    rows = session.execute(select(Permission).order_by(Permission.resource, Permission.action)).scalars().all()
    return [{"id": p.id, "resource": p.resource, "action": p.action, "description": p.description} for p in rows]


@app.get("/api/roles", tags=["Access"], summary="List roles with their grants")
async def list_roles(
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("roles", "view")),
):
    roles = session.execute(select(Role).order_by(Role.name)).scalars().all()
    return [permissions.role_summary(r) for r in roles]


@app.post("/api/roles", status_code=201, tags=["Access"], summary="Create a custom role")
async def create_role(
    body: RoleCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("roles", "create")),
):
    role = permissions.create_role(session, body.name, body.display_name, body.description)
    session.commit()
    return permissions.role_summary(role)


@app.post("/api/roles/{role_id}/permissions", tags=["Access"], summary="Grant a permission to a role")
async def grant_permission(
    role_id: int, body: PermissionGrant, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("permissions", "manage")),
):
    role = permissions.grant(session, permissions.get_role(session, role_id), body.resource, body.action)
    session.commit()
    return permissions.role_summary(role)


@app.delete("/api/roles/{role_id}/permissions/{resource}/{action}", tags=["Access"],
            summary="Revoke a permission from a role")
async def revoke_permission(
    role_id: int, resource: str, action: str, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("permissions", "manage")),
):
    role = permissions.revoke(session, permissions.get_role(session, role_id), resource, action)
    session.commit()
    return permissions.role_summary(role)


# ---------------------------------------------------------------------------
# Routes: Youth profiles
# ---------------------------------------------------------------------------


@app.post("/api/youth-profiles/import", response_model=ImportResult,
          tags=["Youth"], summary="Import youth profiles from an XLSX spreadsheet")
async def import_youth(
    file: UploadFile = File(...), session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "create")),
):
    if not file.filename or not file.filename.endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")
    content = await file.read()
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as f:
            tmp_path = Path(f.name)
            f.write(content)
        result = import_xlsx(tmp_path, session)
        session.commit()
        return result
    finally:
        if tmp_path:
            tmp_path.unlink(missing_ok=True)


@app.get("/api/youth-profiles", tags=["Youth"], summary="List youth profiles")
async def list_youth(
    district: str | None = Query(None),
    dare_model: str | None = Query(None),
    search: str | None = Query(None, description="Matches name or participant code"),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "view")),
):
    return [services.youth_summary(y) for y in services.list_youth(
        session, district=district, dare_model=dare_model, search=search,
    )]


@app.post("/api/youth-profiles", status_code=201, tags=["Youth"], summary="Enroll a youth participant")
async def create_youth(
    body: YouthCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "create")),
):
    youth = services.create_youth(session, _payload(body) | {"full_name": body.full_name})
    session.commit()
    return services.youth_summary(youth)


@app.get("/api/youth-profiles/{youth_id}", tags=["Youth"], summary="Get a youth profile")
async def get_youth(
    youth_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "view")),
):
    return services.youth_summary(services.get_youth(session, youth_id))


@app.patch("/api/youth-profiles/{youth_id}", tags=["Youth"], summary="Update a youth profile")
async def update_youth(
    youth_id: int, body: YouthUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "edit")),
):
    youth = services.update_youth(session, services.get_youth(session, youth_id), _payload(body))
    session.commit()
    return services.youth_summary(youth)


@app.delete("/api/youth-profiles/{youth_id}", tags=["Youth"], summary="Soft-delete a youth profile")
async def delete_youth(
    youth_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("youth_profiles", "delete")),
):
    services.delete_youth(session, services.get_youth(session, youth_id))
    session.commit()
    return {"ok": True}


@app.get("/api/youth-profiles/{youth_id}/businesses", tags=["Youth"],
         summary="Businesses a youth is an active member of")
async def youth_businesses(
    youth_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_youth", "view")),
):
    return [
        {**services.member_summary(link), "business_name": link.business.business_name}
        for link in relationships.list_youth_businesses(session, youth_id)
    ]


# ---------------------------------------------------------------------------
# Routes: Businesses
# ---------------------------------------------------------------------------


@app.get("/api/businesses", tags=["Businesses"], summary="List business profiles")
async def list_businesses(
    district: str | None = Query(None),
    dare_model: str | None = Query(None),
    sector: str | None = Query(None),
    search: str | None = Query(None),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("businesses", "view")),
):
    return [services.business_summary(b) for b in services.list_businesses(
        session, district=district, dare_model=dare_model, sector=sector, search=search,
    )]


@app.post("/api/businesses", status_code=201, tags=["Businesses"],
          summary="Create a business and link its youth owners in one transaction")
async def create_business(
    body: BusinessCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("businesses", "create")),
):
    data = _payload(body)
    youth_ids = data.pop("youth_ids", [])
    mentor_id = data.pop("mentor_id", None)
    biz = services.create_business(session, data, youth_ids, mentor_id=mentor_id)
    session.commit()
    return services.business_detail(biz)


@app.get("/api/businesses/{business_id}", tags=["Businesses"],
         summary="Business detail with members, mentors and makerspace")
async def get_business(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("businesses", "view")),
):
    return services.business_detail(_get_or_404(session, BusinessProfile, business_id, "Business"))


@app.patch("/api/businesses/{business_id}", tags=["Businesses"],
           summary="Update a business (send `version` to guard against concurrent edits)")
async def update_business(
    business_id: int, body: BusinessUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("businesses", "edit")),
):
    biz = _get_or_404(session, BusinessProfile, business_id, "Business")
    services.update_business(session, biz, _payload(body))
    session.commit()
    return services.business_detail(biz)


@app.delete("/api/businesses/{business_id}", tags=["Businesses"],
            summary="Delete a business with its links, records and assessments")
async def delete_business(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("businesses", "delete")),
):
    services.delete_business(session, _get_or_404(session, BusinessProfile, business_id, "Business"))
    session.commit()
    return {"ok": True}


@app.get("/api/businesses/{business_id}/youth", tags=["Businesses"], summary="Youth members of a business")
async def list_business_youth(
    business_id: int, include_inactive: bool = Query(False),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_youth", "view")),
):
    links = relationships.list_business_members(session, business_id, include_inactive)
    return [services.member_summary(link) for link in links]


@app.post("/api/businesses/{business_id}/youth", tags=["Businesses"],
          summary="Assign a youth to a business (owner cap: reject or replace_oldest)")
async def assign_youth(
    business_id: int, body: YouthAssignment, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_youth", "create")),
):
    link = relationships.assign_youth_to_business(
        session, business_id, body.youth_id, role=body.role,
        join_date=body.join_date, on_capacity=body.on_capacity,
    )
    session.commit()
    return services.member_summary(link)


@app.delete("/api/businesses/{business_id}/youth/{youth_id}", tags=["Businesses"],
            summary="Deactivate a youth membership")
async def unassign_youth(
    business_id: int, youth_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_youth", "delete")),
):
    link = relationships.unassign_youth_from_business(session, business_id, youth_id)
    session.commit()
    return services.member_summary(link)


# ---------------------------------------------------------------------------
# Routes: Mentors & mentorships
# ---------------------------------------------------------------------------


@app.get("/api/mentors", tags=["Mentors"], summary="List mentors")
async def list_mentors(
    district: str | None = Query(None),
    include_inactive: bool = Query(False),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentors", "view")),
):
    return [services.mentor_summary(m) for m in services.list_mentors(session, district, include_inactive)]


@app.post("/api/mentors", status_code=201, tags=["Mentors"], summary="Create a mentor profile for a user")
async def create_mentor(
    body: MentorCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentors", "create")),
):
    mentor = services.create_mentor(session, _payload(body))
    session.commit()
    return services.mentor_summary(mentor)


@app.get("/api/mentors/{mentor_id}", tags=["Mentors"], summary="Get a mentor")
async def get_mentor(
    mentor_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentors", "view")),
):
    return services.mentor_summary(_get_or_404(session, Mentor, mentor_id, "Mentor"))


@app.patch("/api/mentors/{mentor_id}", tags=["Mentors"], summary="Update a mentor")
async def update_mentor(
    mentor_id: int, body: MentorUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentors", "edit")),
):
    mentor = services.update_mentor(session, _get_or_404(session, Mentor, mentor_id, "Mentor"), _payload(body))
    session.commit()
    return services.mentor_summary(mentor)


@app.delete("/api/mentors/{mentor_id}", tags=["Mentors"], summary="Deactivate a mentor")
async def deactivate_mentor(
    mentor_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentors", "delete")),
):
    services.deactivate_mentor(session, _get_or_404(session, Mentor, mentor_id, "Mentor"))
    session.commit()
    return {"ok": True}


@app.get("/api/mentors/{mentor_id}/businesses", tags=["Mentors"], summary="Businesses a mentor actively advises")
async def mentor_businesses(
    mentor_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentor_assignments", "view")),
):
    return [services.mentorship_summary(link) for link in relationships.list_mentor_businesses(session, mentor_id)]


@app.get("/api/businesses/{business_id}/mentors", tags=["Mentors"], summary="Active mentors of a business")
async def business_mentors(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentor_assignments", "view")),
):
    return [services.mentorship_summary(link) for link in relationships.list_business_mentors(session, business_id)]


@app.post("/api/businesses/{business_id}/mentors", tags=["Mentors"],
          summary="Assign (or reactivate) a mentor for a business")
async def assign_mentor(
    business_id: int, body: MentorAssignment, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentor_assignments", "create")),
):
    details = body.model_dump(exclude_unset=True, exclude={"mentor_id", "assigned_date"})
    link = relationships.assign_mentor_to_business(
        session, business_id, body.mentor_id, assigned_date=body.assigned_date, details=details,
    )
    session.commit()
    return services.mentorship_summary(link)


@app.patch("/api/businesses/{business_id}/mentors/{mentor_id}", tags=["Mentors"],
           summary="Record meetings, progress rating and notes for a mentorship")
async def update_mentorship(
    business_id: int, mentor_id: int, body: MentorshipUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentor_assignments", "update")),
):
    link = relationships.update_mentorship(session, mentor_id, business_id, _payload(body))
    session.commit()
    return services.mentorship_summary(link)


@app.delete("/api/businesses/{business_id}/mentors/{mentor_id}", tags=["Mentors"],
            summary="Deactivate a mentorship (idempotent)")
async def unassign_mentor(
    business_id: int, mentor_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentor_assignments", "delete")),
):
    link = relationships.unassign_mentor(session, mentor_id, business_id)
    session.commit()
    return services.mentorship_summary(link)


@app.get("/api/mentorship-messages", tags=["Mentors"], summary="Messages between a mentor and a business")
async def list_messages(
    mentor_id: int = Query(...), business_id: int = Query(...),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentorship_messages", "view")),
):
    return [services.message_summary(m) for m in services.list_messages(session, mentor_id, business_id)]


@app.post("/api/mentorship-messages", status_code=201, tags=["Mentors"],
          summary="Post a message on an active mentorship")
async def post_message(
    body: MessageCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentorship_messages", "create")),
):
    msg = services.post_message(session, _payload(body))
    session.commit()
    return services.message_summary(msg)


@app.patch("/api/mentorship-messages/{message_id}/read", tags=["Mentors"], summary="Mark a message as read")
async def mark_message_read(
    message_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("mentorship_messages", "update")),
):
    msg = services.mark_message_read(session, message_id)
    session.commit()
    return services.message_summary(msg)


# ---------------------------------------------------------------------------
# Routes: Makerspaces
# ---------------------------------------------------------------------------


@app.get("/api/makerspaces", tags=["Makerspaces"], summary="List makerspaces")
async def list_makerspaces(
    district: str | None = Query(None), session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("makerspaces", "view")),
):
    return [services.makerspace_summary(m) for m in services.list_makerspaces(session, district)]


@app.post("/api/makerspaces", status_code=201, tags=["Makerspaces"], summary="Create a makerspace")
async def create_makerspace(
    body: MakerspaceCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("makerspaces", "create")),
):
    space = services.create_makerspace(session, _payload(body))
    session.commit()
    return services.makerspace_summary(space)


@app.get("/api/makerspaces/{makerspace_id}", tags=["Makerspaces"], summary="Get a makerspace")
async def get_makerspace(
    makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("makerspaces", "view")),
):
    return services.makerspace_summary(_get_or_404(session, Makerspace, makerspace_id, "Makerspace"))


@app.patch("/api/makerspaces/{makerspace_id}", tags=["Makerspaces"], summary="Update a makerspace")
async def update_makerspace(
    makerspace_id: int, body: MakerspaceUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("makerspaces", "edit")),
):
    space = _get_or_404(session, Makerspace, makerspace_id, "Makerspace")
    services.update_makerspace(session, space, _payload(body))
    session.commit()
    return services.makerspace_summary(space)


@app.delete("/api/makerspaces/{makerspace_id}", tags=["Makerspaces"],
            summary="Delete a makerspace with its resources and assignments")
async def delete_makerspace(
    makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("makerspaces", "delete")),
):
    services.delete_makerspace(session, _get_or_404(session, Makerspace, makerspace_id, "Makerspace"))
    session.commit()
    return {"ok": True}


@app.get("/api/makerspaces/{makerspace_id}/businesses", tags=["Makerspaces"],
         summary="Businesses actively assigned to a makerspace")
async def makerspace_businesses(
    makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_makerspace", "view")),
):
    return [services.assignment_summary(a) for a in relationships.list_makerspace_businesses(session, makerspace_id)]


@app.get("/api/businesses/{business_id}/makerspace", tags=["Makerspaces"],
         summary="The business's active makerspace assignment, if any")
async def business_makerspace(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_makerspace", "view")),
):
    _get_or_404(session, BusinessProfile, business_id, "Business")
    current = relationships.active_makerspace_assignment(session, business_id)
    return services.assignment_summary(current) if current else None


@app.post("/api/businesses/{business_id}/makerspace", tags=["Makerspaces"],
          summary="Assign a business to a makerspace (set `replace` to move it)")
async def assign_makerspace(
    business_id: int, body: MakerspaceAssignmentCreate, session: Session = Depends(db_session),
    actor: User | None = Depends(require_permission("business_makerspace", "create")),
):
    assignment = relationships.assign_business_to_makerspace(
        session, business_id, body.makerspace_id,
        assigned_by=body.assigned_by or _actor_id(actor), notes=body.notes, replace=body.replace,
    )
    session.commit()
    return services.assignment_summary(assignment)


@app.delete("/api/businesses/{business_id}/makerspace/{makerspace_id}", tags=["Makerspaces"],
            summary="End a business's makerspace assignment")
async def unassign_makerspace(
    business_id: int, makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_makerspace", "delete")),
):
    assignment = relationships.unassign_business_from_makerspace(session, business_id, makerspace_id)
    session.commit()
    return services.assignment_summary(assignment)


# ---------------------------------------------------------------------------
# Routes: Resources (stats before parameterized routes)
# ---------------------------------------------------------------------------


@app.get("/api/makerspaces/{makerspace_id}/resources/stats", tags=["Resources"],
         summary="Resource counts and value for a makerspace")
async def makerspace_resource_stats(
    makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "view")),
):
    _get_or_404(session, Makerspace, makerspace_id, "Makerspace")
    return services.resource_stats(
        services.list_resources(session, MakerspaceResource, "makerspace_id", makerspace_id)
    )


@app.get("/api/makerspaces/{makerspace_id}/resources", tags=["Resources"], summary="Makerspace inventory")
async def list_makerspace_resources(
    makerspace_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "view")),
):
    _get_or_404(session, Makerspace, makerspace_id, "Makerspace")
    resources = services.list_resources(session, MakerspaceResource, "makerspace_id", makerspace_id)
    return [services.resource_summary(r) for r in resources]


@app.post("/api/makerspaces/{makerspace_id}/resources", status_code=201, tags=["Resources"],
          summary="Add an inventory item to a makerspace")
async def create_makerspace_resource(
    makerspace_id: int, body: MakerspaceResourceCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "create")),
):
    _get_or_404(session, Makerspace, makerspace_id, "Makerspace")
    resource = services.create_resource(session, MakerspaceResource, "makerspace_id", makerspace_id, _payload(body))
    session.commit()
    return services.resource_summary(resource)


@app.patch("/api/makerspace-resources/{resource_id}", tags=["Resources"], summary="Update a makerspace resource")
async def update_makerspace_resource(
    resource_id: int, body: MakerspaceResourceUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "edit")),
):
    resource = _get_or_404(session, MakerspaceResource, resource_id, "Resource")
    services.update_resource(session, resource, _payload(body))
    session.commit()
    return services.resource_summary(resource)


@app.delete("/api/makerspace-resources/{resource_id}", tags=["Resources"], summary="Remove a makerspace resource")
async def delete_makerspace_resource(
    resource_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "delete")),
):
    services.delete_resource(session, _get_or_404(session, MakerspaceResource, resource_id, "Resource"))
    session.commit()
    return {"ok": True}


@app.post("/api/makerspace-resources/{resource_id}/costs", status_code=201, tags=["Resources"],
          summary="Record a cost against a makerspace resource")
async def add_makerspace_cost(
    resource_id: int, body: CostCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "update")),
):
    resource = _get_or_404(session, MakerspaceResource, resource_id, "Resource")
    cost = services.add_cost(session, resource, _payload(body))
    session.commit()
    return services.cost_summary(cost)


@app.delete("/api/makerspace-resources/{resource_id}/costs/{cost_id}", tags=["Resources"],
            summary="Remove a cost entry")
async def delete_makerspace_cost(
    resource_id: int, cost_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "delete")),
):
    services.delete_cost(session, _get_or_404(session, MakerspaceResource, resource_id, "Resource"), cost_id)
    session.commit()
    return {"ok": True}


@app.get("/api/businesses/{business_id}/resources/stats", tags=["Resources"],
         summary="Resource counts and value for a business")
async def business_resource_stats(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "view")),
):
    _get_or_404(session, BusinessProfile, business_id, "Business")
    return services.resource_stats(services.list_resources(session, BusinessResource, "business_id", business_id))


@app.get("/api/businesses/{business_id}/resources", tags=["Resources"], summary="Business inventory")
async def list_business_resources(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "view")),
):
    _get_or_404(session, BusinessProfile, business_id, "Business")
    resources = services.list_resources(session, BusinessResource, "business_id", business_id)
    return [services.resource_summary(r) for r in resources]


@app.post("/api/businesses/{business_id}/resources", status_code=201, tags=["Resources"],
          summary="Add an inventory item to a business")
async def create_business_resource(
    business_id: int, body: BusinessResourceCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "create")),
):
    _get_or_404(session, BusinessProfile, business_id, "Business")
    resource = services.create_resource(session, BusinessResource, "business_id", business_id, _payload(body))
    session.commit()
    return services.resource_summary(resource)


@app.patch("/api/business-resources/{resource_id}", tags=["Resources"], summary="Update a business resource")
async def update_business_resource(
    resource_id: int, body: BusinessResourceUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "edit")),
):
    resource = _get_or_404(session, BusinessResource, resource_id, "Resource")
    services.update_resource(session, resource, _payload(body))
    session.commit()
    return services.resource_summary(resource)


@app.delete("/api/business-resources/{resource_id}", tags=["Resources"], summary="Remove a business resource")
async def delete_business_resource(
    resource_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "delete")),
):
    services.delete_resource(session, _get_or_404(session, BusinessResource, resource_id, "Resource"))
    session.commit()
    return {"ok": True}


@app.post("/api/business-resources/{resource_id}/costs", status_code=201, tags=["Resources"],
          summary="Record a cost against a business resource")
async def add_business_cost(
    resource_id: int, body: CostCreate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "update")),
):
    resource = _get_or_404(session, BusinessResource, resource_id, "Resource")
    cost = services.add_cost(session, resource, _payload(body))
    session.commit()
    return services.cost_summary(cost)


@app.delete("/api/business-resources/{resource_id}/costs/{cost_id}", tags=["Resources"],
            summary="Remove a cost entry")
async def delete_business_cost(
    resource_id: int, cost_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("resources", "delete")),
):
    services.delete_cost(session, _get_or_404(session, BusinessResource, resource_id, "Resource"), cost_id)
    session.commit()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Feasibility (fixed paths before parameterized to avoid shadowing)
# ---------------------------------------------------------------------------


class WizardStep(BaseModel):
    state: dict[str, Any] | None = None
    action: dict[str, Any]


@app.post("/api/feasibility/wizard", tags=["Feasibility"],
          summary="Advance the assessment form wizard by one action")
async def wizard_step(body: WizardStep):
    try:
        state = wizard.reduce(wizard.state_from_dict(body.state), body.action)
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(400, f"Invalid wizard action: {exc}")
    return wizard.state_to_dict(state)


@app.get("/api/feasibility", tags=["Feasibility"], summary="List assessments")
async def list_assessments(
    business_id: int | None = Query(None),
    status: str | None = Query(None),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "view")),
):
    return [feasibility.assessment_summary(a) for a in feasibility.list_assessments(session, business_id, status)]


@app.get("/api/feasibility/business/{business_id}", tags=["Feasibility"],
         summary="Assessments for one business, newest first")
async def business_assessments(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "view")),
):
    _get_or_404(session, BusinessProfile, business_id, "Business")
    return [feasibility.assessment_summary(a) for a in feasibility.list_assessments(session, business_id)]


@app.post("/api/feasibility", status_code=201, tags=["Feasibility"], summary="Start an assessment")
async def create_assessment(
    body: AssessmentCreate, session: Session = Depends(db_session),
    actor: User | None = Depends(require_permission("feasibility_assessment", "create")),
):
    data = _payload(body) | {"business_id": body.business_id, "status": body.status}
    if data.get("assessment_by") is None and actor is not None:
        data["assessment_by"] = actor.id
    assessment = feasibility.create_assessment(session, data)
    session.commit()
    return feasibility.assessment_summary(assessment)


@app.get("/api/feasibility/{assessment_id}", tags=["Feasibility"], summary="Get an assessment")
async def get_assessment(
    assessment_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "view")),
):
    return feasibility.assessment_summary(feasibility.get_assessment(session, assessment_id))


@app.patch("/api/feasibility/{assessment_id}", tags=["Feasibility"],
           summary="Edit scores/comments or move status (locked once reviewed)")
async def update_assessment(
    assessment_id: int, body: AssessmentUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "edit")),
):
    assessment = feasibility.get_assessment(session, assessment_id)
    feasibility.update_assessment(session, assessment, _payload(body))
    session.commit()
    return feasibility.assessment_summary(assessment)


@app.delete("/api/feasibility/{assessment_id}", tags=["Feasibility"],
            summary="Delete a Draft or In Progress assessment")
async def delete_assessment(
    assessment_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "delete")),
):
    feasibility.delete_assessment(session, feasibility.get_assessment(session, assessment_id))
    session.commit()
    return {"ok": True}


@app.post("/api/feasibility/{assessment_id}/submit", tags=["Feasibility"],
          summary="Mark an assessment Completed (all sub-scores required)")
async def submit_assessment(
    assessment_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("feasibility_assessment", "edit")),
):
    assessment = feasibility.submit_assessment(session, feasibility.get_assessment(session, assessment_id))
    session.commit()
    return feasibility.assessment_summary(assessment)


@app.post("/api/feasibility/{assessment_id}/review", tags=["Feasibility"],
          summary="Review a Completed assessment, locking its scores")
async def review_assessment(
    assessment_id: int, body: AssessmentReview, session: Session = Depends(db_session),
    actor: User | None = Depends(require_permission("feasibility_assessment", "update")),
):
    assessment = feasibility.review_assessment(
        session, feasibility.get_assessment(session, assessment_id),
        body.review_comments, reviewed_by=body.reviewed_by or _actor_id(actor),
    )
    session.commit()
    return feasibility.assessment_summary(assessment)


# ---------------------------------------------------------------------------
# Routes: Tracking
# ---------------------------------------------------------------------------


@app.get("/api/businesses/{business_id}/tracking/stats", tags=["Tracking"],
         summary="Latest revenue, head-count, growth rate and timelines")
async def tracking_stats(
    business_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_tracking", "view")),
):
    return tracking.business_stats(session, business_id)


@app.get("/api/businesses/{business_id}/tracking", tags=["Tracking"],
         summary="Tracking records for a business, most recent first")
async def list_tracking(
    business_id: int, tracking_period: str | None = Query(None),
    session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_tracking", "view")),
):
    return [tracking.tracking_summary(r) for r in tracking.list_tracking(session, business_id, tracking_period)]


@app.post("/api/businesses/{business_id}/tracking", status_code=201, tags=["Tracking"],
          summary="Record a period snapshot (one per business per period)")
async def record_tracking(
    business_id: int, body: TrackingCreate, session: Session = Depends(db_session),
    actor: User | None = Depends(require_permission("business_tracking", "create")),
):
    data = _payload(body) | {"tracking_date": body.tracking_date, "tracking_period": body.tracking_period}
    if data.get("recorded_by") is None and actor is not None:
        data["recorded_by"] = actor.id
    rec = tracking.record_tracking(session, business_id, data)
    session.commit()
    return tracking.tracking_summary(rec)


@app.get("/api/tracking/{tracking_id}", tags=["Tracking"], summary="Get a tracking record")
async def get_tracking(
    tracking_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_tracking", "view")),
):
    return tracking.tracking_summary(tracking.get_tracking(session, tracking_id))


@app.patch("/api/tracking/{tracking_id}", tags=["Tracking"],
           summary="Edit a tracking record (only feedback once verified)")
async def update_tracking(
    tracking_id: int, body: TrackingUpdate, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_tracking", "edit")),
):
    rec = tracking.get_tracking(session, tracking_id)
    tracking.update_tracking(session, rec, _payload(body))
    session.commit()
    return tracking.tracking_summary(rec)


@app.post("/api/tracking/{tracking_id}/verify", tags=["Tracking"], summary="Verify a tracking record")
async def verify_tracking(
    tracking_id: int, body: TrackingVerify | None = None, session: Session = Depends(db_session),
    actor: User | None = Depends(require_permission("business_tracking", "update")),
):
    verified_by = (body.verified_by if body else None) or _actor_id(actor)
    rec = tracking.verify_tracking(session, tracking.get_tracking(session, tracking_id), verified_by)
    session.commit()
    return tracking.tracking_summary(rec)


@app.delete("/api/tracking/{tracking_id}", tags=["Tracking"], summary="Delete an unverified tracking record")
async def delete_tracking(
    tracking_id: int, session: Session = Depends(db_session),
    _actor: User | None = Depends(require_permission("business_tracking", "delete")),
):
    tracking.delete_tracking(session, tracking.get_tracking(session, tracking_id))
    session.commit()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("dare.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
