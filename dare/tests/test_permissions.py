"""Tests for roles, grants and password handling."""
from __future__ import annotations

import pytest
from sqlalchemy import func, select

from dare import permissions, services
from dare.errors import StatusConflict
from dare.models import Permission, Role


class TestSeeding:
    def test_seed_is_idempotent(self, session):
        before = session.execute(select(func.count(Permission.id))).scalar_one()
        assert permissions.seed_defaults(session) == 0
        assert session.execute(select(func.count(Permission.id))).scalar_one() == before

    def test_system_roles_present(self, session):
        names = set(session.execute(select(Role.name)).scalars().all())
        assert set(permissions.DEFAULT_ROLES) <= names
        admin = session.execute(select(Role).where(Role.name == "admin")).scalars().one()
        assert admin.is_system and not admin.is_editable


class TestChecks:
    def test_admin_allowed_everything(self, session, make):
        admin = make.user("root", role="admin")
        assert permissions.has_permission(session, admin, "system", "delete")

    def test_mentor_grants(self, session, make):
        mentor = make.user("kwame", role="mentor")
        assert permissions.has_permission(session, mentor, "business_tracking", "create")
        assert not permissions.has_permission(session, mentor, "users", "delete")

    def test_manage_implies_all_actions(self, session, make):
        manager = make.user("adwoa", role="manager")
        assert permissions.has_permission(session, manager, "businesses", "delete")

    def test_inactive_user_denied(self, session, make):
        admin = make.user("root", role="admin", is_active=False)
        assert not permissions.has_permission(session, admin, "dashboard", "view")

    def test_grant_and_revoke_custom_role(self, session, make):
        role = permissions.create_role(session, "field_officer", "Field Officer")
        user = make.user("yaw", role="field_officer")
        assert not permissions.has_permission(session, user, "youth_profiles", "create")

        permissions.grant(session, role, "youth_profiles", "create")
        assert permissions.has_permission(session, user, "youth_profiles", "create")
        assert ("youth_profiles", "create") in permissions.role_grants(session, "field_officer")

        permissions.revoke(session, role, "youth_profiles", "create")
        assert not permissions.has_permission(session, user, "youth_profiles", "create")

    def test_duplicate_role_rejected(self, session):
        with pytest.raises(StatusConflict):
            permissions.create_role(session, "mentor")


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = permissions.hash_password("s3cret-pass", rounds=4)
        assert hashed != "s3cret-pass"
        assert permissions.verify_password("s3cret-pass", hashed)
        assert not permissions.verify_password("wrong", hashed)

    def test_only_first_72_bytes_count(self):
        base = "a" * 72
        hashed = permissions.hash_password(base + "tail-one", rounds=4)
        assert permissions.verify_password(base + "tail-two", hashed)

    def test_garbage_hash_does_not_raise(self):
        assert permissions.verify_password("anything", "not-a-bcrypt-hash") is False

    def test_authenticate_stamps_last_login(self, session):
        services.create_user(session, {
            "username": "akosua", "password": "s3cret-pass", "full_name": "Akosua Asante",
        })
        assert permissions.authenticate(session, "akosua", "nope") is None
        user = permissions.authenticate(session, "akosua", "s3cret-pass")
        assert user is not None and user.last_login is not None
