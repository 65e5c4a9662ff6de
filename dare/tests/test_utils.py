"""Tests for list normalization, schema validation and the mentor district migration."""
from __future__ import annotations

import json

import pytest
from sqlalchemy import text

from dare import services
from dare.config import get_settings
from dare.db import fold_legacy_mentor_districts, init_db, make_engine
from dare.errors import CapacityExceeded, NotFoundError, StatusConflict, ValidationError
from dare.models import Base
from dare.schemas import BusinessCreate, MentorCreate, YouthCreate, validate
from dare.utils import dump_list, json_parse, normalize_string_list


class TestNormalizeStringList:
    @pytest.mark.parametrize("raw, expected", [
        (None, []),
        ("", []),
        (["a", " b ", ""], ["a", "b"]),
        ('["x", "y"]', ["x", "y"]),
        ("one\ntwo", ["one", "two"]),
        ("one; two;", ["one", "two"]),
        ("single value", ["single value"]),
        ('"quoted\\nlist"', ["quoted", "list"]),
    ])
    def test_shapes(self, raw, expected):
        assert normalize_string_list(raw) == expected

    def test_dump_list_is_json_array(self):
        assert json.loads(dump_list("a\nb")) == ["a", "b"]

    def test_json_parse_default(self):
        assert json_parse("not json") == {}
        assert json_parse(None, []) == []


class TestSchemas:
    def test_district_suffix_stripped(self):
        body = validate(BusinessCreate, {"business_name": "Krobo Beads", "district": "Lower Manya Krobo, Ghana"})
        assert body.district == "Lower Manya Krobo"

    def test_errors_name_every_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(BusinessCreate, {"business_name": "  ", "district": "Accra", "sector": "Space"})
        assert set(exc_info.value.fields) == {"business_name", "district", "sector"}

    def test_youth_full_name_from_parts(self):
        youth = validate(YouthCreate, {"first_name": "Ama", "last_name": "Owusu"})
        assert youth.full_name == "Ama Owusu"

    def test_youth_needs_a_name(self):
        with pytest.raises(ValidationError):
            validate(YouthCreate, {"district": "Bekwai"})

    def test_legacy_single_district_folded(self):
        mentor = validate(MentorCreate, {
            "user_id": 1, "name": "Esi", "assigned_district": "Gushegu, Ghana",
            "assigned_districts": ["Bekwai"],
        })
        assert mentor.assigned_districts == ["Bekwai", "Gushegu"]


class TestBusinessCreation:
    def test_derived_figures(self, session):
        biz = services.create_business(session, {
            "business_name": "Soap Works", "district": "Bekwai",
            "expected_weekly_revenue": 250, "anticipated_monthly_expenditure": 400,
        })
        assert biz.expected_monthly_revenue == 1000
        assert biz.expected_monthly_profit == 600

    def test_inconsistent_monthly_rejected(self, session):
        with pytest.raises(ValidationError):
            services.create_business(session, {
                "business_name": "Soap Works", "district": "Bekwai",
                "expected_weekly_revenue": 250, "expected_monthly_revenue": 999,
            })

    def test_too_many_owners_writes_nothing(self, session, make):
        youth_ids = [make.youth(f"Y{i}").id for i in range(4)]
        with pytest.raises(CapacityExceeded):
            services.create_business(session, {"business_name": "Crowded", "district": "Bekwai"}, youth_ids)
        assert services.list_businesses(session) == []

    def test_cap_follows_settings(self, session, make, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_active_owners", 1)
        youth_ids = [make.youth(f"Y{i}").id for i in range(2)]
        with pytest.raises(CapacityExceeded):
            services.create_business(session, {"business_name": "Duo", "district": "Bekwai"}, youth_ids)

    @pytest.mark.parametrize("model, expected", [
        ("Collaborative", "Partnership"),
        ("MakerSpace", "Social Enterprise"),
        ("Madam Anchor", "Sole Proprietorship"),
        (None, "Other"),
    ])
    def test_enterprise_type_follows_model(self, session, model, expected):
        biz = services.create_business(session, {
            "business_name": "Soap Works", "district": "Bekwai", "dare_model": model,
        })
        assert biz.enterprise_type == expected

    def test_explicit_enterprise_type_kept(self, session):
        biz = services.create_business(session, {
            "business_name": "Soap Works", "district": "Bekwai",
            "dare_model": "Collaborative", "enterprise_type": "Cooperative",
        })
        assert biz.enterprise_type == "Cooperative"

    def test_impact_counts_from_owners(self, session, make):
        owners = [
            make.youth("Ama", refugee_status=True),
            make.youth("Kofi", idp_status=True, pwd_status="Yes"),
            make.youth("Esi", pwd_status="No"),
        ]
        biz = services.create_business(
            session, {"business_name": "Soap Works", "district": "Bekwai"}, [y.id for y in owners],
        )
        assert biz.total_youth_in_work_reported == 3
        assert (biz.youth_refugee_count, biz.youth_idp_count, biz.youth_plwd_count) == (1, 1, 1)
        assert biz.version == 1

    def test_least_loaded_mentor_in_district_assigned(self, session, make):
        busy = make.mentor("Efua Boateng")
        idle = make.mentor("Yaw Darko")
        make.mentor("Abla Mensah", districts='["Gushegu"]')
        services.create_business(session, {"business_name": "First", "district": "Bekwai"})

        second = services.create_business(session, {"business_name": "Second", "district": "Bekwai"})

        assert [link.mentor_id for link in second.mentor_links] == [idle.id]
        assert second.mentor_links[0].mentorship_focus == "Business Growth"
        assert services.select_mentor_for_district(session, "Bekwai").id == busy.id

    def test_no_mentor_covers_district(self, session, make):
        make.mentor(districts='["Gushegu"]')
        biz = services.create_business(session, {"business_name": "Soap Works", "district": "Bekwai"})
        assert biz.mentor_links == []

    def test_explicit_mentor(self, session, make):
        make.mentor("Efua Boateng")
        chosen = make.mentor("Yaw Darko", districts='["Gushegu"]')
        biz = services.create_business(
            session, {"business_name": "Soap Works", "district": "Bekwai"}, mentor_id=chosen.id,
        )
        assert [link.mentor_id for link in biz.mentor_links] == [chosen.id]

    def test_inactive_or_missing_mentor_rejected(self, session, make):
        retired = make.mentor(is_active=False)
        with pytest.raises(StatusConflict):
            services.create_business(
                session, {"business_name": "Soap Works", "district": "Bekwai"}, mentor_id=retired.id,
            )
        with pytest.raises(NotFoundError):
            services.create_business(
                session, {"business_name": "Soap Works", "district": "Bekwai"}, mentor_id=999,
            )


class TestBusinessUpdate:
    @pytest.fixture()
    def biz(self, session):
        return services.create_business(session, {
            "business_name": "Soap Works", "district": "Bekwai",
            "expected_weekly_revenue": 300, "anticipated_monthly_expenditure": 800,
        })

    def test_clearing_weekly_clears_monthly_and_profit(self, session, biz):
        assert (biz.expected_monthly_revenue, biz.expected_monthly_profit) == (1200, 400)
        services.update_business(session, biz, {"expected_weekly_revenue": None})
        assert biz.expected_monthly_revenue is None
        assert biz.expected_monthly_profit is None

    def test_clearing_expenditure_clears_profit_only(self, session, biz):
        services.update_business(session, biz, {"anticipated_monthly_expenditure": None})
        assert biz.expected_monthly_revenue == 1200
        assert biz.expected_monthly_profit is None

    def test_changing_weekly_rederives_both(self, session, biz):
        services.update_business(session, biz, {"expected_weekly_revenue": 400})
        assert (biz.expected_monthly_revenue, biz.expected_monthly_profit) == (1600, 800)

    @pytest.mark.parametrize("field", ["business_name", "district"])
    def test_required_column_cannot_be_nulled(self, session, biz, field):
        with pytest.raises(ValidationError) as exc_info:
            services.update_business(session, biz, {field: None})
        assert exc_info.value.fields == [field]
        assert getattr(biz, field) is not None


class TestLegacyDistrictMigration:
    def test_fold_merges_and_clears_legacy_columns(self):
        engine = make_engine("sqlite://")
        Base.metadata.create_all(engine)
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE mentors ADD COLUMN assigned_district TEXT"))
            conn.execute(text(
                "INSERT INTO users (username, password_hash, full_name, role, is_active) "
                "VALUES ('m1', 'x', 'M One', 'mentor', 1)"
            ))
            conn.execute(text(
                "INSERT INTO mentors (user_id, name, phone, email, specialization, bio, "
                "assigned_districts_json, assigned_district, is_active) "
                "VALUES (1, 'M One', '', '', '', '', '[\"Bekwai\"]', 'Gushegu, Ghana', 1)"
            ))

        assert fold_legacy_mentor_districts(engine, ["assigned_district"]) == 1
        with engine.connect() as conn:
            row = conn.execute(text("SELECT assigned_districts_json, assigned_district FROM mentors")).one()
        assert json.loads(row[0]) == ["Bekwai", "Gushegu"]
        assert row[1] is None
        # Second run finds nothing left to fold.
        assert fold_legacy_mentor_districts(engine, ["assigned_district"]) == 0

    def test_unknown_districts_dropped(self):
        engine = make_engine("sqlite://")
        Base.metadata.create_all(engine)
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE mentors ADD COLUMN assigned_districts TEXT"))
            conn.execute(text(
                "INSERT INTO users (username, password_hash, full_name, role, is_active) "
                "VALUES ('m1', 'x', 'M One', 'mentor', 1)"
            ))
            conn.execute(text(
                "INSERT INTO mentors (user_id, name, phone, email, specialization, bio, "
                "assigned_districts_json, assigned_districts, is_active) "
                "VALUES (1, 'M One', '', '', '', '', '[]', 'Yilo Krobo;Kumasi', 1)"
            ))
        fold_legacy_mentor_districts(engine, ["assigned_districts"])
        with engine.connect() as conn:
            stored = conn.execute(text("SELECT assigned_districts_json FROM mentors")).scalar_one()
        assert json.loads(stored) == ["Yilo Krobo"]


class TestSessionDependency:
    def test_db_session_yields_a_live_session(self):
        from dare.app import db_session

        init_db("sqlite://")
        gen = db_session()
        session = next(gen)
        assert session.execute(text("SELECT count(*) FROM roles")).scalar_one() > 0
        gen.close()
