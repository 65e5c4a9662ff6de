"""Tests for the assessment form reducer."""
from __future__ import annotations

import pytest

from dare import wizard
from dare.enums import FEASIBILITY_CATEGORIES


def fill(state: wizard.WizardState, step: str, value: int = 4) -> wizard.WizardState:
    for name in FEASIBILITY_CATEGORIES[step]:
        state = wizard.reduce(state, {"type": "set_field", "field": name, "value": value})
    return state


def test_reduce_does_not_mutate_input():
    start = wizard.WizardState()
    after = wizard.reduce(start, {"type": "set_field", "field": "market_demand", "value": 5})
    assert start.values["market"] == {}
    assert after.values["market"] == {"market_demand": 5}
    assert after is not start


def test_next_blocked_until_step_scored():
    state = wizard.reduce(wizard.WizardState(), {"type": "next"})
    assert state.step == "market"
    assert state.errors["pricing_power"] == "required"

    state = wizard.reduce(fill(state, "market"), {"type": "next"})
    assert state.step == "financial"
    assert state.completed == frozenset({"market"})
    assert state.errors == {}


def test_out_of_range_score_reported():
    state = fill(wizard.WizardState(), "market")
    state = wizard.reduce(state, {"type": "set_field", "field": "market_demand", "value": 9})
    state = wizard.reduce(state, {"type": "next"})
    assert state.step == "market"
    assert "market_demand" in state.errors


def test_goto_cannot_skip_ahead():
    state = fill(wizard.WizardState(), "market")
    state = wizard.reduce(state, {"type": "next"})
    assert wizard.reduce(state, {"type": "goto", "step": "summary"}) == state
    assert wizard.reduce(state, {"type": "goto", "step": "market"}).step == "market"


def test_back_and_reset():
    state = wizard.reduce(fill(wizard.WizardState(), "market"), {"type": "next"})
    assert wizard.reduce(state, {"type": "back"}).step == "market"
    assert wizard.reduce(state, {"type": "reset"}) == wizard.WizardState()


def test_full_walk_produces_payload():
    state = wizard.WizardState()
    for step in FEASIBILITY_CATEGORIES:
        state = wizard.reduce(fill(state, step, 3), {"type": "next"})
    state = wizard.reduce(state, {"type": "set_field", "field": "strengths", "value": ["Team"]})

    assert state.step == "summary"
    assert wizard.is_ready(state)
    payload = wizard.to_payload(state)
    assert payload["tech_adaptability"] == 3
    assert payload["strengths"] == ["Team"]
    assert len([k for k in payload if k in wizard.STEP_FIELDS["team"]]) == 5


def test_load_resumes_at_first_incomplete_step():
    saved = {name: 4 for name in FEASIBILITY_CATEGORIES["market"]}
    saved["market_comments"] = "Busy junction"
    state = wizard.reduce(wizard.WizardState(), {"type": "load", "assessment": saved})
    assert state.step == "financial"
    assert state.values["market"]["market_comments"] == "Busy junction"


def test_dict_round_trip_keeps_state():
    state = wizard.reduce(fill(wizard.WizardState(), "market"), {"type": "next"})
    assert wizard.state_from_dict(wizard.state_to_dict(state)) == state


def test_unknown_action_and_field():
    with pytest.raises(ValueError):
        wizard.reduce(wizard.WizardState(), {"type": "jump"})
    with pytest.raises(ValueError):
        wizard.reduce(wizard.WizardState(), {"type": "set_field", "field": "nope", "value": 1})


@pytest.mark.parametrize("data", [
    {"step": "market", "values": {"market": 5}},
    {"step": "market", "values": ["market"]},
    {"step": "market", "completed": "market"},
    {"step": "market", "errors": ["required"]},
])
def test_malformed_state_rejected(data):
    with pytest.raises(ValueError):
        wizard.state_from_dict(data)


def test_load_needs_an_object():
    with pytest.raises(ValueError):
        wizard.reduce(wizard.WizardState(), {"type": "load", "assessment": [1, 2]})
