"""Tests for feasibility scoring and the assessment status workflow."""
from __future__ import annotations

import pytest

from dare import feasibility
from dare.enums import FEASIBILITY_CATEGORIES, FEASIBILITY_SCORE_FIELDS
from dare.errors import LockedForReview, StatusConflict, ValidationError


def all_scores(value: int = 4) -> dict[str, int]:
    return {f: value for f in FEASIBILITY_SCORE_FIELDS}


@pytest.fixture()
def business(make):
    return make.business()


@pytest.fixture()
def completed(session, business):
    a = feasibility.create_assessment(session, {"business_id": business.id, **all_scores(4)})
    return feasibility.submit_assessment(session, a)


class TestScoring:
    def test_mean_of_populated_scores(self):
        assert feasibility.compute_overall([5, 4, None, 3]) == 4.0
        assert feasibility.compute_overall([1, 2]) == 1.5

    def test_all_unset_is_none(self):
        assert feasibility.compute_overall([None, None]) is None
        assert feasibility.compute_overall([]) is None

    def test_rounded_to_two_places(self):
        assert feasibility.compute_overall([1, 1, 2]) == 1.33

    def test_category_scores(self, session, business):
        values = all_scores(3) | {f: 5 for f in FEASIBILITY_CATEGORIES["digital"]}
        a = feasibility.create_assessment(session, {"business_id": business.id, **values})
        cats = feasibility.category_scores(a)
        assert cats["digital"] == 5.0
        assert cats["market"] == 3.0
        assert a.overall_feasibility_percentage == 3.4


class TestWorkflow:
    def test_create_recomputes_overall(self, session, business):
        a = feasibility.create_assessment(session, {
            "business_id": business.id, "market_demand": 5, "pricing_power": 3,
        })
        assert a.status == "Draft"
        assert a.overall_feasibility_percentage == 4.0
        assert len(feasibility.missing_scores({"market_demand": 5, "pricing_power": 3})) == 23

    def test_new_assessment_cannot_start_completed(self, session, business):
        with pytest.raises(StatusConflict):
            feasibility.create_assessment(session, {"business_id": business.id, "status": "Completed"})

    def test_update_recomputes_in_same_write(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id, "market_demand": 2})
        feasibility.update_assessment(session, a, {"market_demand": 4, "cash_flow": 5})
        assert a.overall_feasibility_percentage == 4.5

    def test_submit_requires_every_score(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id, "market_demand": 5})
        with pytest.raises(ValidationError) as exc_info:
            feasibility.submit_assessment(session, a)
        assert "cash_flow" in exc_info.value.fields
        assert "market_demand" not in exc_info.value.fields
        assert a.status == "Draft"

    def test_complete_via_update(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id, "status": "In Progress"})
        feasibility.update_assessment(session, a, {"status": "Completed", **all_scores(2)})
        assert a.status == "Completed"
        assert a.overall_feasibility_percentage == 2.0

    def test_completed_scores_frozen_until_reopened(self, session, completed):
        with pytest.raises(StatusConflict):
            feasibility.update_assessment(session, completed, {"market_demand": 1})
        feasibility.update_assessment(session, completed, {"status": "In Progress", "market_demand": 1})
        assert completed.status == "In Progress"
        assert completed.market_demand == 1

    def test_reviewed_only_through_review(self, session, completed):
        with pytest.raises(StatusConflict):
            feasibility.update_assessment(session, completed, {"status": "Reviewed"})

    def test_review_requires_completed(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id})
        with pytest.raises(StatusConflict):
            feasibility.review_assessment(session, a, "Looks fine")

    def test_reviewed_assessment_is_locked(self, session, completed):
        feasibility.review_assessment(session, completed, "Solid plan")
        assert completed.status == "Reviewed"
        assert completed.review_date is not None

        with pytest.raises(LockedForReview):
            feasibility.update_assessment(session, completed, {"market_demand": 2})
        with pytest.raises(LockedForReview):
            feasibility.update_assessment(session, completed, {"status": "In Progress"})
        assert completed.market_demand == 4

        feasibility.update_assessment(session, completed, {"review_comments": "Solid plan, revisit Q3"})
        assert completed.review_comments == "Solid plan, revisit Q3"

    def test_review_comments_outside_review(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id})
        with pytest.raises(StatusConflict):
            feasibility.update_assessment(session, a, {"review_comments": "early"})

    def test_stale_version_rejected(self, session, business):
        a = feasibility.create_assessment(session, {"business_id": business.id})
        with pytest.raises(StatusConflict):
            feasibility.update_assessment(session, a, {"market_demand": 3, "version": a.version + 1})

    def test_delete_only_while_editable(self, session, business, completed):
        with pytest.raises(StatusConflict):
            feasibility.delete_assessment(session, completed)
        draft = feasibility.create_assessment(session, {"business_id": business.id})
        feasibility.delete_assessment(session, draft)
        assert [a.id for a in feasibility.list_assessments(session, business.id)] == [completed.id]

    def test_summary_lists_and_missing(self, session, business):
        a = feasibility.create_assessment(session, {
            "business_id": business.id, "strengths": ["Location", "Team"], "market_demand": 3,
        })
        data = feasibility.assessment_summary(a)
        assert data["strengths"] == ["Location", "Team"]
        assert data["weaknesses"] == []
        assert "market_demand" not in data["missing_scores"]
        assert len(data["missing_scores"]) == 24
