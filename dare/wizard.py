"""Step-by-step form state for filling in a feasibility assessment.

The whole form lives in one immutable ``WizardState`` keyed by step name;
``reduce(state, action)`` returns the next state and never mutates its input.
Clients keep the state, send actions, and post ``to_payload(state)`` to the
assessment endpoints once the summary step is reached.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from dare.enums import FEASIBILITY_CATEGORIES

STEPS = (*FEASIBILITY_CATEGORIES, "summary")

STEP_FIELDS: dict[str, tuple[str, ...]] = {
    **{
        category: (*scores, f"{category}_comments")
        for category, scores in FEASIBILITY_CATEGORIES.items()
    },
    "summary": (
        "strengths", "weaknesses", "risk_factors", "growth_opportunities",
        "recommendations", "recommended_actions",
    ),
}

ACTIONS = ("set_field", "next", "back", "goto", "reset", "load")


@dataclass(frozen=True)
class WizardState:
    step: str = STEPS[0]
    values: dict[str, dict[str, Any]] = field(default_factory=lambda: {s: {} for s in STEPS})
    completed: frozenset[str] = frozenset()
    errors: dict[str, str] = field(default_factory=dict)


def _step_errors(step: str, values: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for name in FEASIBILITY_CATEGORIES.get(step, ()):
        score = values.get(name)
        if score is None:
            errors[name] = "required"
        elif not isinstance(score, int) or isinstance(score, bool) or not 1 <= score <= 5:
            errors[name] = "must be an integer from 1 to 5"
    return errors


def _field_step(name: str) -> str | None:
    return next((step for step, names in STEP_FIELDS.items() if name in names), None)


def reduce(state: WizardState, action: dict[str, Any]) -> WizardState:
    """Apply one action and return the resulting state.

    Unknown action types and unknown fields raise ``ValueError``; they are
    programming errors, not user input problems.
    """
    kind = action.get("type")
    index = STEPS.index(state.step)

    if kind == "set_field":
        name = action["field"]
        step = action.get("step") or _field_step(name)
        if step not in STEP_FIELDS or name not in STEP_FIELDS[step]:
            raise ValueError(f"Unknown wizard field {name!r}")
        values = {**state.values, step: {**state.values.get(step, {}), name: action.get("value")}}
        errors = {k: v for k, v in state.errors.items() if k != name}
        return replace(state, values=values, errors=errors)

    if kind == "next":
        errors = _step_errors(state.step, state.values.get(state.step, {}))
        if errors:
            return replace(state, errors=errors)
        next_step = STEPS[min(index + 1, len(STEPS) - 1)]
        return replace(state, step=next_step, completed=state.completed | {state.step}, errors={})

    if kind == "back":
        return replace(state, step=STEPS[max(index - 1, 0)], errors={})

    if kind == "goto":
        target = action["step"]
        if target not in STEPS:
            raise ValueError(f"Unknown wizard step {target!r}")
        # Forward jumps may not skip a step that has not been completed.
        reachable = all(s in state.completed for s in STEPS[:STEPS.index(target)])
        if STEPS.index(target) > index and not reachable:
            return state
        return replace(state, step=target, errors={})

    if kind == "reset":
        return WizardState()

    if kind == "load":
        assessment = action.get("assessment") or {}
        if not isinstance(assessment, dict):
            raise ValueError("assessment must be an object")
        return from_assessment(assessment)

    raise ValueError(f"Unknown wizard action {kind!r}")


def from_assessment(data: dict[str, Any]) -> WizardState:
    """Seed a wizard from a serialized assessment, resuming at the first incomplete step."""
    values = {
        step: {name: data[name] for name in names if data.get(name) is not None}
        for step, names in STEP_FIELDS.items()
    }
    completed = frozenset(
        step for step in FEASIBILITY_CATEGORIES if not _step_errors(step, values[step])
    )
    step = next((s for s in STEPS if s not in completed), STEPS[-1])
    return WizardState(step=step, values=values, completed=completed)


def to_payload(state: WizardState) -> dict[str, Any]:
    """Flatten the wizard values into an assessment create/update body."""
    payload: dict[str, Any] = {}
    for step in STEPS:
        payload.update(state.values.get(step, {}))
    return payload


def is_ready(state: WizardState) -> bool:
    return all(step in state.completed for step in FEASIBILITY_CATEGORIES)


def state_to_dict(state: WizardState) -> dict[str, Any]:
    return {
        "step": state.step,
        "values": state.values,
        "completed": [s for s in STEPS if s in state.completed],
        "errors": state.errors,
        "ready": is_ready(state),
    }


def state_from_dict(data: dict[str, Any] | None) -> WizardState:
    """Rebuild a state sent back by a client; a malformed shape raises ``ValueError``."""
    if not data:
        return WizardState()
    step = data.get("step") or STEPS[0]
    if step not in STEPS:
        raise ValueError(f"Unknown wizard step {step!r}")

    raw_values = data.get("values") or {}
    if not isinstance(raw_values, dict):
        raise ValueError("values must be an object keyed by step")
    values: dict[str, dict[str, Any]] = {}
    for s in STEPS:
        step_values = raw_values.get(s) or {}
        if not isinstance(step_values, dict):
            raise ValueError(f"values.{s} must be an object")
        values[s] = dict(step_values)

    raw_completed = data.get("completed") or []
    if not isinstance(raw_completed, (list, tuple)):
        raise ValueError("completed must be a list of steps")
    completed = frozenset(s for s in raw_completed if isinstance(s, str) and s in STEPS)

    errors = data.get("errors") or {}
    if not isinstance(errors, dict):
        raise ValueError("errors must be an object")
    return WizardState(step=step, values=values, completed=completed, errors=dict(errors))
