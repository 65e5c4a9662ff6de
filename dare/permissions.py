"""Role-based access control and password hashing.

Roles grant (resource, action) pairs. ``admin`` is allowed everything, and a
``manage`` grant on a resource implies every other action on it.
"""
from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from dare.config import get_settings
from dare.enums import PERMISSION_ACTIONS, PERMISSION_RESOURCES
from dare.errors import NotFoundError, StatusConflict
from dare.models import Permission, Role, RolePermission, User
from dare.utils import utc_now

log = logging.getLogger(__name__)

_ALL = tuple(PERMISSION_RESOURCES)

# name -> (display name, description, {resource: actions})
DEFAULT_ROLES: dict[str, tuple[str, str, dict[str, tuple[str, ...]]]] = {
    "admin": ("Administrator", "Full access to every resource", {r: ("manage",) for r in _ALL}),
    "manager": (
        "Program Manager", "Runs day-to-day program operations",
        {
            **{r: ("manage",) for r in (
                "youth_profiles", "businesses", "business_youth", "business_makerspace",
                "feasibility_assessment", "business_tracking", "mentors",
                "mentor_assignments", "mentorship_messages", "makerspaces", "resources",
            )},
            "dashboard": ("view",), "reports": ("view", "create"), "users": ("view",),
        },
    ),
    "reviewer": (
        "Reviewer", "Reviews assessments and verifies tracking records",
        {
            **{r: ("view",) for r in (
                "youth_profiles", "businesses", "business_youth", "mentors",
                "makerspaces", "resources", "dashboard", "reports",
            )},
            "feasibility_assessment": ("view", "edit", "update"),
            "business_tracking": ("view", "edit", "update"),
        },
    ),
    "mentor": (
        "Mentor", "Advises assigned businesses",
        {
            **{r: ("view",) for r in ("youth_profiles", "businesses", "business_youth", "makerspaces", "dashboard")},
            "feasibility_assessment": ("view", "create", "edit"),
            "business_tracking": ("view", "create", "edit"),
            "mentorship_messages": ("view", "create", "update"),
            "resources": ("view",),
        },
    ),
    "mentee": (
        "Mentee", "Program participant",
        {
            "businesses": ("view",), "youth_profiles": ("view",),
            "mentorship_messages": ("view", "create"), "dashboard": ("view",),
        },
    ),
    "user": ("User", "Basic authenticated access", {"dashboard": ("view",)}),
}


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str, rounds: int | None = None) -> str:
    # bcrypt only looks at the first 72 bytes.
    secret = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or get_settings().bcrypt_rounds)
    return bcrypt.hashpw(secret, salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("ascii"))
    except ValueError:
        log.warning("Stored password hash is not a valid bcrypt hash")
        return False


def authenticate(session: Session, username: str, password: str) -> User | None:
    """Return the active user for valid credentials and stamp ``last_login`` (caller must commit)."""
    user = session.execute(select(User).where(User.username == username)).scalars().first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        return None
    user.last_login = utc_now()
    return user


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


def seed_defaults(session: Session) -> int:
    """Insert the permission catalogue and system roles that are missing.

    Existing roles keep their grants; re-running is a no-op. Returns the
    number of rows added (caller must commit).
    """
    added = 0
    existing = {tuple(r) for r in session.execute(select(Permission.resource, Permission.action))}
    for resource in PERMISSION_RESOURCES:
        for action in PERMISSION_ACTIONS:
            if (resource, action) not in existing:
                session.add(Permission(
                    resource=resource, action=action,
                    description=f"{action.capitalize()} {resource.replace('_', ' ')}",
                ))
                added += 1

    role_names = set(session.execute(select(Role.name)).scalars().all())
    for name, (display, description, grants) in DEFAULT_ROLES.items():
        if name in role_names:
            continue
        role = Role(
            name=name, display_name=display, description=description,
            is_system=True, is_editable=name != "admin",
        )
        for resource, actions in grants.items():
            for action in actions:
                role.grants.append(RolePermission(resource=resource, action=action))
        session.add(role)
        added += 1
    if added:
        session.flush()
        log.info("Seeded %d access-control rows", added)
    return added


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def role_grants(session: Session, role_name: str) -> set[tuple[str, str]]:
    rows = session.execute(
        select(RolePermission.resource, RolePermission.action)
        .join(Role, Role.id == RolePermission.role_id)
        .where(Role.name == role_name, Role.is_active.is_(True))
    ).all()
    return {(r.resource, r.action) for r in rows}


def has_permission(session: Session, user: User, resource: str, action: str) -> bool:
    if not user.is_active:
        return False
    if user.role == "admin":
        return True
    grants = role_grants(session, user.role)
    return (resource, action) in grants or (resource, "manage") in grants


# ---------------------------------------------------------------------------
# Role management
# ---------------------------------------------------------------------------


def role_summary(role: Role) -> dict:
    return {
        "id": role.id, "name": role.name, "display_name": role.display_name,
        "description": role.description, "is_system": role.is_system,
        "is_editable": role.is_editable, "is_active": role.is_active,
        "permissions": sorted(f"{g.resource}:{g.action}" for g in role.grants),
    }


def get_role(session: Session, role_id: int) -> Role:
    role = session.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role", role_id)
    return role


def create_role(session: Session, name: str, display_name: str = "", description: str = "") -> Role:
    if session.execute(select(Role).where(Role.name == name)).scalars().first():
        raise StatusConflict(f"Role {name!r} already exists", fields=["name"])
    role = Role(name=name, display_name=display_name or name, description=description)
    session.add(role)
    session.flush()
    return role


def grant(session: Session, role: Role, resource: str, action: str) -> Role:
    if not role.is_editable:
        raise StatusConflict(f"Role {role.name!r} is not editable")
    if not any(g.resource == resource and g.action == action for g in role.grants):
        role.grants.append(RolePermission(resource=resource, action=action))
        session.flush()
    return role


def revoke(session: Session, role: Role, resource: str, action: str) -> Role:
    if not role.is_editable:
        raise StatusConflict(f"Role {role.name!r} is not editable")
    session.execute(delete(RolePermission).where(
        RolePermission.role_id == role.id,
        RolePermission.resource == resource,
        RolePermission.action == action,
    ))
    session.expire(role, ["grants"])
    return role
