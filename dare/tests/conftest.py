"""Shared fixtures: in-memory SQLite database, sessions, API client and factories."""
from __future__ import annotations

import os
from datetime import date
from functools import partial
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Cheap hashes and an in-memory database for the app lifespan.
os.environ["DARE_BCRYPT_ROUNDS"] = "4"
os.environ["DARE_DATABASE_URL"] = "sqlite://"

from dare.config import get_settings  # noqa: E402
from dare.db import make_engine  # noqa: E402
from dare.models import (  # noqa: E402
    Base, BusinessProfile, BusinessYouthRelationship, Makerspace, Mentor, User, YouthProfile,
)
from dare.permissions import seed_defaults  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def engine():
    """In-memory SQLite engine with foreign keys on and access control seeded.

    ``make_engine`` uses StaticPool so all connections share one database.
    """
    eng = make_engine("sqlite://")
    Base.metadata.create_all(eng)
    TestSession = sessionmaker(bind=eng)
    with TestSession() as session:
        seed_defaults(session)
        session.commit()
    return eng


@pytest.fixture()
def TestSession(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(TestSession):
    sess = TestSession()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def client(TestSession):
    """FastAPI TestClient bound to the in-memory database."""
    from dare.app import app, db_session

    def override_db_session():
        session = TestSession()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[db_session] = override_db_session
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_user(session, username: str = "kofi", role: str = "mentor", **kwargs) -> User:
    user = User(
        username=username, password_hash="x", full_name=kwargs.pop("full_name", username.title()),
        role=role, **kwargs,
    )
    session.add(user)
    session.flush()
    return user


def make_youth(session, full_name: str = "Ama Mensah", **kwargs) -> YouthProfile:
    kwargs.setdefault("district", "Bekwai")
    youth = YouthProfile(full_name=full_name, **kwargs)
    session.add(youth)
    session.flush()
    return youth


def make_business(session, name: str = "Bekwai Bakery", owners=(), **kwargs) -> BusinessProfile:
    kwargs.setdefault("district", "Bekwai")
    biz = BusinessProfile(business_name=name, **kwargs)
    session.add(biz)
    session.flush()
    for i, youth in enumerate(owners):
        session.add(BusinessYouthRelationship(
            business_id=biz.id, youth_id=youth.id, role="Owner",
            join_date=date(2024, 1, 1 + i), is_active=True,
        ))
    session.flush()
    return biz


def make_mentor(session, name: str = "Efua Boateng", districts: str = '["Bekwai"]', **kwargs) -> Mentor:
    user = make_user(session, username=name.split()[0].lower())
    mentor = Mentor(user_id=user.id, name=name, assigned_districts_json=districts, **kwargs)
    session.add(mentor)
    session.flush()
    return mentor


def make_makerspace(session, name: str = "Bekwai Hub", **kwargs) -> Makerspace:
    kwargs.setdefault("district", "Bekwai")
    space = Makerspace(name=name, address="Main Street", **kwargs)
    session.add(space)
    session.flush()
    return space


@pytest.fixture()
def make(session):
    """Factories bound to the test session: ``make.youth(...)``, ``make.business(...)``."""
    return SimpleNamespace(
        user=partial(make_user, session),
        youth=partial(make_youth, session),
        business=partial(make_business, session),
        mentor=partial(make_mentor, session),
        makerspace=partial(make_makerspace, session),
    )
