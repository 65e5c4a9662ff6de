"""Integration tests for the FastAPI endpoints.

Uses TestClient against an in-memory database to check HTTP-level behavior:
status codes, the error body shape, and the cross-entity workflows.
"""
from __future__ import annotations

import io

import openpyxl
import pytest

from dare.enums import FEASIBILITY_SCORE_FIELDS


@pytest.fixture()
def youth_ids(client):
    ids = []
    for first, last in [("Ama", "Owusu"), ("Kofi", "Mensah"), ("Abena", "Osei"), ("Yaw", "Boateng")]:
        resp = client.post("/api/youth-profiles", json={
            "first_name": first, "last_name": last, "district": "Bekwai", "gender": "Female",
        })
        assert resp.status_code == 201
        ids.append(resp.json()["id"])
    return ids


@pytest.fixture()
def business_id(client, youth_ids):
    resp = client.post("/api/businesses", json={
        "business_name": "Bekwai Bakery", "district": "Bekwai, Ghana",
        "dare_model": "Collaborative", "youth_ids": youth_ids[:2],
        "expected_weekly_revenue": 300,
    })
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.fixture()
def mentor_id(client):
    user = client.post("/api/users", json={
        "username": "efua", "password": "mentor-pass", "full_name": "Efua Asante", "role": "mentor",
    })
    assert user.status_code == 201
    resp = client.post("/api/mentors", json={
        "user_id": user.json()["id"], "name": "Efua Asante", "assigned_districts": ["Bekwai, Ghana"],
    })
    assert resp.status_code == 201
    return resp.json()["id"]


def create_makerspace(client, name: str) -> int:
    resp = client.post("/api/makerspaces", json={"name": name, "address": "Market Road", "district": "Bekwai"})
    assert resp.status_code == 201
    return resp.json()["id"]


class TestYouthEndpoints:
    def test_create_composes_full_name(self, client):
        resp = client.post("/api/youth-profiles", json={
            "first_name": "Ama", "middle_name": "Serwaa", "last_name": "Owusu", "district": "Gushegu",
            "languages_spoken": "Twi\nDagbani",
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["full_name"] == "Ama Serwaa Owusu"
        assert data["languages_spoken"] == ["Twi", "Dagbani"]

    def test_invalid_district_rejected(self, client):
        resp = client.post("/api/youth-profiles", json={"full_name": "Ama", "district": "Accra"})
        assert resp.status_code == 422

    def test_update_and_soft_delete(self, client, youth_ids):
        yid = youth_ids[0]
        resp = client.patch(f"/api/youth-profiles/{yid}", json={"town": "Anwiankwanta"})
        assert resp.status_code == 200
        assert resp.json()["town"] == "Anwiankwanta"

        assert client.delete(f"/api/youth-profiles/{yid}").json() == {"ok": True}
        resp = client.get(f"/api/youth-profiles/{yid}")
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"
        listed = [y["id"] for y in client.get("/api/youth-profiles").json()]
        assert yid not in listed

    def test_search(self, client, youth_ids):
        resp = client.get("/api/youth-profiles", params={"search": "kofi"})
        assert [y["full_name"] for y in resp.json()] == ["Kofi Mensah"]

    def test_import_xlsx(self, client):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Participant Code", "Full Name", "Gender", "District"])
        ws.append(["D001000010", "Akua Nyarko", "F", "Bekwai"])
        ws.append(["D001000011", "Kwesi Ofori", "M", "Nowhere"])
        buf = io.BytesIO()
        wb.save(buf)

        resp = client.post(
            "/api/youth-profiles/import",
            files={"file": ("youth.xlsx", buf.getvalue(), "application/octet-stream")},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_imported"] == 1
        assert data["skipped"] == 1

    def test_import_rejects_other_formats(self, client):
        resp = client.post("/api/youth-profiles/import", files={"file": ("youth.csv", b"a,b", "text/csv")})
        assert resp.status_code == 400


class TestBusinessEndpoints:
    def test_create_links_owners_and_derives_revenue(self, client, youth_ids, business_id):
        data = client.get(f"/api/businesses/{business_id}").json()
        assert data["district"] == "Bekwai"
        assert data["owner_ids"] == sorted(youth_ids[:2])
        assert data["expected_monthly_revenue"] == 1200
        assert {m["youth_id"] for m in data["members"]} == set(youth_ids[:2])

        mine = client.get(f"/api/youth-profiles/{youth_ids[0]}/businesses").json()
        assert [b["business_id"] for b in mine] == [business_id]

    def test_create_with_four_owners_rolls_back(self, client, youth_ids):
        resp = client.post("/api/businesses", json={
            "business_name": "Too Many", "district": "Bekwai", "youth_ids": youth_ids,
        })
        assert resp.status_code == 409
        body = resp.json()
        assert body["code"] == "CAPACITY_EXCEEDED"
        assert body["fields"] == ["youth_ids"]
        assert client.get("/api/businesses").json() == []

    def test_version_conflict(self, client, business_id):
        resp = client.patch(f"/api/businesses/{business_id}", json={"sector": "Agriculture", "version": 1})
        assert resp.status_code == 200
        assert resp.json()["version"] == 2

        stale = client.patch(f"/api/businesses/{business_id}", json={"sector": "Retail", "version": 1})
        assert stale.status_code == 409
        assert stale.json()["fields"] == ["version"]

    def test_fourth_owner_then_replace_oldest(self, client, youth_ids, business_id):
        ok = client.post(f"/api/businesses/{business_id}/youth", json={"youth_id": youth_ids[2], "role": "Owner"})
        assert ok.status_code == 200
        full = client.post(f"/api/businesses/{business_id}/youth", json={"youth_id": youth_ids[3], "role": "Owner"})
        assert full.status_code == 409

        replaced = client.post(f"/api/businesses/{business_id}/youth", json={
            "youth_id": youth_ids[3], "role": "Owner", "on_capacity": "replace_oldest",
        })
        assert replaced.status_code == 200
        members = client.get(f"/api/businesses/{business_id}/youth").json()
        assert len([m for m in members if m["role"] == "Owner"]) == 3

    def test_unassign_member(self, client, youth_ids, business_id):
        client.post(f"/api/businesses/{business_id}/youth", json={"youth_id": youth_ids[2]})
        resp = client.delete(f"/api/businesses/{business_id}/youth/{youth_ids[2]}")
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        everyone = client.get(f"/api/businesses/{business_id}/youth", params={"include_inactive": True}).json()
        assert len(everyone) == 3

    def test_delete_cascades(self, client, youth_ids, business_id):
        client.post(f"/api/businesses/{business_id}/tracking", json={"tracking_date": "2024-03-05"})
        client.post("/api/feasibility", json={"business_id": business_id})
        assert client.delete(f"/api/businesses/{business_id}").json() == {"ok": True}
        assert client.get(f"/api/businesses/{business_id}").status_code == 404
        assert client.get("/api/feasibility").json() == []
        assert client.get(f"/api/youth-profiles/{youth_ids[0]}").status_code == 200


    def test_clearing_weekly_revenue_clears_derived_figures(self, client, business_id):
        client.patch(f"/api/businesses/{business_id}", json={"anticipated_monthly_expenditure": 800})
        resp = client.patch(f"/api/businesses/{business_id}", json={"expected_weekly_revenue": None})
        assert resp.status_code == 200
        data = resp.json()
        assert data["expected_monthly_revenue"] is None
        assert data["expected_monthly_profit"] is None

    def test_required_field_cannot_be_nulled(self, client, business_id):
        resp = client.patch(f"/api/businesses/{business_id}", json={"business_name": None})
        assert resp.status_code == 422
        assert resp.json()["fields"] == ["business_name"]
        assert client.get(f"/api/businesses/{business_id}").json()["business_name"] == "Bekwai Bakery"

    def test_objectives_keep_their_order(self, client):
        resp = client.post("/api/businesses", json={
            "business_name": "Krobo Beads", "district": "Bekwai",
            "business_objectives": ["Grow sales", "Hire 2 staff"],
        })
        assert resp.status_code == 201
        data = client.get(f"/api/businesses/{resp.json()['id']}").json()
        assert data["business_objectives"] == ["Grow sales", "Hire 2 staff"]

    def test_create_assigns_mentor_and_counts_youth(self, client, youth_ids, mentor_id):
        client.patch(f"/api/youth-profiles/{youth_ids[0]}", json={"refugee_status": True})
        resp = client.post("/api/businesses", json={
            "business_name": "Krobo Beads", "district": "Bekwai", "dare_model": "MakerSpace",
            "youth_ids": youth_ids[:2],
        })
        assert resp.status_code == 201
        data = resp.json()
        assert [m["mentor_id"] for m in data["mentors"]] == [mentor_id]
        assert data["enterprise_type"] == "Social Enterprise"
        assert data["total_youth_in_work_reported"] == 2
        assert data["youth_refugee_count"] == 1

    def test_create_with_unknown_mentor_writes_nothing(self, client):
        resp = client.post("/api/businesses", json={
            "business_name": "Krobo Beads", "district": "Bekwai", "mentor_id": 999,
        })
        assert resp.status_code == 404
        assert client.get("/api/businesses").json() == []


class TestMentorEndpoints:
    def test_districts_normalized(self, client, mentor_id):
        data = client.get(f"/api/mentors/{mentor_id}").json()
        assert data["assigned_districts"] == ["Bekwai"]
        assert [m["id"] for m in client.get("/api/mentors", params={"district": "Bekwai"}).json()] == [mentor_id]
        assert client.get("/api/mentors", params={"district": "Gushegu"}).json() == []

    def test_messages_need_active_mentorship(self, client, business_id, mentor_id):
        msg = {"mentor_id": mentor_id, "business_id": business_id, "message": "Hello", "sender": "mentor"}
        assert client.post("/api/mentorship-messages", json=msg).status_code == 409

        assign = client.post(f"/api/businesses/{business_id}/mentors", json={
            "mentor_id": mentor_id, "mentorship_focus": "Financial Management",
        })
        assert assign.status_code == 200
        created = client.post("/api/mentorship-messages", json=msg)
        assert created.status_code == 201

        read = client.patch(f"/api/mentorship-messages/{created.json()['id']}/read")
        assert read.json()["is_read"] is True
        thread = client.get("/api/mentorship-messages", params={"mentor_id": mentor_id, "business_id": business_id})
        assert [m["message"] for m in thread.json()] == ["Hello"]

    def test_unassign_and_reassign(self, client, business_id, mentor_id):
        client.post(f"/api/businesses/{business_id}/mentors", json={"mentor_id": mentor_id})
        first = client.delete(f"/api/businesses/{business_id}/mentors/{mentor_id}")
        second = client.delete(f"/api/businesses/{business_id}/mentors/{mentor_id}")
        assert first.status_code == second.status_code == 200
        assert client.get(f"/api/businesses/{business_id}/mentors").json() == []

        client.post(f"/api/businesses/{business_id}/mentors", json={"mentor_id": mentor_id})
        assert len(client.get(f"/api/mentors/{mentor_id}/businesses").json()) == 1


class TestMakerspaceEndpoints:
    def test_single_active_assignment(self, client, business_id):
        hub, annex = create_makerspace(client, "Hub"), create_makerspace(client, "Annex")
        assert client.post(f"/api/businesses/{business_id}/makerspace", json={"makerspace_id": hub}).status_code == 200

        clash = client.post(f"/api/businesses/{business_id}/makerspace", json={"makerspace_id": annex})
        assert clash.status_code == 409

        moved = client.post(f"/api/businesses/{business_id}/makerspace", json={"makerspace_id": annex, "replace": True})
        assert moved.json()["makerspace_id"] == annex
        assert client.get(f"/api/businesses/{business_id}/makerspace").json()["makerspace_id"] == annex
        assert client.get(f"/api/makerspaces/{hub}/businesses").json() == []

    def test_resources_and_costs(self, client, business_id):
        resp = client.post(f"/api/businesses/{business_id}/resources", json={
            "name": "Oven", "category": "Equipment", "quantity": 2, "unit_cost": 150.0,
        })
        assert resp.status_code == 201
        rid = resp.json()["id"]
        assert resp.json()["total_cost"] == 300.0

        cost = client.post(f"/api/business-resources/{rid}/costs", json={"cost_type": "Repair", "amount": 40})
        assert cost.status_code == 201

        stats = client.get(f"/api/businesses/{business_id}/resources/stats").json()
        assert stats["total"] == 1
        assert stats["total_value"] == 300.0
        assert stats["upkeep_cost"] == 40.0

        listed = client.get(f"/api/businesses/{business_id}/resources").json()
        assert listed[0]["cost_history_total"] == 40.0

    def test_makerspace_resource_category_set(self, client):
        space = create_makerspace(client, "Hub")
        bad = client.post(f"/api/makerspaces/{space}/resources", json={"name": "Soap", "category": "Supply"})
        assert bad.status_code == 422
        ok = client.post(f"/api/makerspaces/{space}/resources", json={"name": "Bench", "category": "Space"})
        assert ok.status_code == 201


class TestFeasibilityEndpoints:
    def test_full_lifecycle(self, client, business_id):
        created = client.post("/api/feasibility", json={"business_id": business_id, "market_demand": 4})
        assert created.status_code == 201
        aid = created.json()["id"]
        assert created.json()["overall_feasibility_percentage"] == 4.0

        early = client.post(f"/api/feasibility/{aid}/submit")
        assert early.status_code == 422
        assert "cash_flow" in early.json()["fields"]

        scores = {f: 3 for f in FEASIBILITY_SCORE_FIELDS}
        assert client.patch(f"/api/feasibility/{aid}", json=scores).status_code == 200
        submitted = client.post(f"/api/feasibility/{aid}/submit")
        assert submitted.json()["status"] == "Completed"
        assert submitted.json()["overall_feasibility_percentage"] == 3.0

        reviewed = client.post(f"/api/feasibility/{aid}/review", json={"review_comments": "Viable"})
        assert reviewed.json()["status"] == "Reviewed"

        locked = client.patch(f"/api/feasibility/{aid}", json={"market_demand": 5})
        assert locked.status_code == 409
        assert locked.json()["code"] == "LOCKED_FOR_REVIEW"
        assert client.delete(f"/api/feasibility/{aid}").status_code == 409

        listed = client.get(f"/api/feasibility/business/{business_id}").json()
        assert [a["status"] for a in listed] == ["Reviewed"]

    def test_score_out_of_range(self, client, business_id):
        resp = client.post("/api/feasibility", json={"business_id": business_id, "market_demand": 6})
        assert resp.status_code == 422

    def test_wizard_step(self, client):
        resp = client.post("/api/feasibility/wizard", json={"action": {"type": "next"}})
        assert resp.status_code == 200
        assert resp.json()["step"] == "market"
        assert resp.json()["errors"]["market_demand"] == "required"

        bad = client.post("/api/feasibility/wizard", json={"action": {"type": "warp"}})
        assert bad.status_code == 400

    def test_wizard_malformed_state(self, client):
        resp = client.post("/api/feasibility/wizard", json={
            "state": {"step": "market", "values": {"market": 5}}, "action": {"type": "next"},
        })
        assert resp.status_code == 400
        assert "values.market" in resp.json()["detail"]


class TestTrackingEndpoints:
    def test_record_verify_lock(self, client, business_id):
        resp = client.post(f"/api/businesses/{business_id}/tracking", json={
            "tracking_date": "2024-03-05", "actual_revenue": 1000, "actual_expenditure": 600,
        })
        assert resp.status_code == 201
        tid = resp.json()["id"]
        assert resp.json()["actual_profit"] == 400

        dup = client.post(f"/api/businesses/{business_id}/tracking", json={"tracking_date": "2024-03-20"})
        assert dup.status_code == 409

        assert client.post(f"/api/tracking/{tid}/verify").json()["is_verified"] is True
        locked = client.patch(f"/api/tracking/{tid}", json={"actual_revenue": 1})
        assert locked.status_code == 409
        assert locked.json()["fields"] == ["actual_revenue"]
        feedback = client.patch(f"/api/tracking/{tid}", json={"mentor_feedback": "Good month"})
        assert feedback.status_code == 200
        assert client.delete(f"/api/tracking/{tid}").status_code == 409

    def test_stats(self, client, business_id):
        client.post(f"/api/businesses/{business_id}/tracking", json={"tracking_date": "2024-01-10", "actual_revenue": 800})
        client.post(f"/api/businesses/{business_id}/tracking", json={"tracking_date": "2024-02-10", "actual_revenue": 1000})
        stats = client.get(f"/api/businesses/{business_id}/tracking/stats").json()
        assert stats["latest_revenue"] == 1000
        assert stats["growth_rate"] == 25.0
        assert len(stats["revenue_timeline"]) == 2


class TestMetaEndpoints:
    def test_stats(self, client, business_id):
        data = client.get("/api/stats").json()
        assert data["youth"] == 4
        assert data["businesses"] == 1
        assert data["businesses_by_district"] == {"Bekwai": 1}
        assert data["businesses_by_dare_model"] == {"Collaborative": 1}

    def test_enums(self, client):
        data = client.get("/api/enums").json()
        assert "Lower Manya Krobo" in data["districts"]
        assert len(data["feasibility_categories"]) == 5

    def test_storage_error_hides_driver_detail(self, client, monkeypatch):
        from sqlalchemy.exc import OperationalError

        from dare import services

        def broken(session):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error at /var/secret.db"))

        monkeypatch.setattr(services, "compute_stats", broken)
        resp = client.get("/api/stats")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Storage error", "code": "STORAGE_ERROR", "fields": []}
        assert "secret" not in resp.text


class TestReportEndpoints:
    def test_summary(self, client, youth_ids, business_id):
        client.post(f"/api/businesses/{business_id}/tracking", json={
            "tracking_date": "2024-03-05", "actual_revenue": 900, "actual_expenditure": 400,
        })
        data = client.get("/api/reports/summary").json()
        assert data["youth"]["total"] == 4
        assert data["youth"]["by_gender"] == {"Female": 4}
        assert data["businesses"]["by_dare_model"] == {"Collaborative": 1}
        assert data["businesses"]["youth_in_work"] == 2
        assert data["tracking"] == {"records": 1, "verified": 0, "total_revenue": 900, "total_profit": 500}

    @pytest.mark.parametrize("entity, header", [
        ("youth", "Participant Code"), ("businesses", "Business Name"), ("tracking", "Tracking Date"),
    ])
    def test_export_workbook(self, client, business_id, entity, header):
        client.post(f"/api/businesses/{business_id}/tracking", json={"tracking_date": "2024-03-05"})
        resp = client.get(f"/api/reports/export/{entity}")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/vnd.openxmlformats")
        assert f"dare-{entity}.xlsx" in resp.headers["content-disposition"]

        sheet = openpyxl.load_workbook(io.BytesIO(resp.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert header in rows[0]
        assert sheet["A1"].font.bold
        assert len(rows) == {"youth": 5, "businesses": 2, "tracking": 2}[entity]

    def test_business_export_rows(self, client, business_id):
        resp = client.get("/api/reports/export/businesses")
        rows = list(openpyxl.load_workbook(io.BytesIO(resp.content)).active.iter_rows(values_only=True))
        record = dict(zip(rows[0], rows[1]))
        assert record["Business Name"] == "Bekwai Bakery"
        assert record["Expected Monthly Revenue"] == 1200
        assert record["Enterprise Type"] == "Partnership"

    def test_unknown_export(self, client):
        resp = client.get("/api/reports/export/mentors")
        assert resp.status_code == 422
        assert resp.json()["fields"] == ["entity"]



class TestAccessControl:
    @pytest.fixture()
    def enforced(self, client):
        from dare.app import app
        from dare.config import Settings, get_settings

        app.dependency_overrides[get_settings] = lambda: Settings(enforce_permissions=True)
        return client

    def test_login(self, client):
        client.post("/api/users", json={"username": "akua", "password": "pa55word", "full_name": "Akua"})
        assert client.post("/api/auth/login", json={"username": "akua", "password": "nope"}).status_code == 401
        resp = client.post("/api/auth/login", json={"username": "akua", "password": "pa55word"})
        assert resp.status_code == 200
        assert resp.json()["last_login"] is not None

    def test_enforced_permissions(self, enforced, session, make):
        admin = make.user("root", role="admin")
        mentee = make.user("ama", role="mentee")
        session.commit()

        assert enforced.get("/api/businesses").status_code == 401
        assert enforced.get("/api/businesses", headers={"X-User-Id": str(mentee.id)}).status_code == 200

        body = {"business_name": "Gated", "district": "Gushegu"}
        denied = enforced.post("/api/businesses", json=body, headers={"X-User-Id": str(mentee.id)})
        assert denied.status_code == 403
        allowed = enforced.post("/api/businesses", json=body, headers={"X-User-Id": str(admin.id)})
        assert allowed.status_code == 201

    def test_permission_check_endpoint(self, client, session, make):
        mentor = make.user("kwame", role="mentor")
        session.commit()
        resp = client.get(
            f"/api/users/{mentor.id}/permissions/check",
            params={"resource": "business_tracking", "action": "create"},
        )
        assert resp.json() == {"allowed": True}
