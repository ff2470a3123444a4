from __future__ import annotations

import pytest

from virus_engine import (
    apply_action,
    breed_virus,
    build_economy,
    create_initial_state,
    get_action,
    level_up_feature,
    purchase,
    simulate_tick,
)


def _rich_state(viruses: float = 5000.0) -> dict:
    state = create_initial_state(total_humans=1000)
    state.update(current_viruses=viruses, total_viruses=viruses)
    return state


def test_apply_action_deducts_and_merges() -> None:
    state = _rich_state(500.0)
    out = apply_action(200, level_up_feature("lethality"))(state)
    assert out["current_viruses"] == 300.0
    assert out["lethality"] == 1
    assert state["current_viruses"] == 500.0
    assert state["lethality"] == 0


def test_apply_action_effect_wins_on_overlap() -> None:
    state = _rich_state(10.0)
    out = apply_action(5, breed_virus)(state)
    assert out["current_viruses"] == 11.0


def test_apply_action_does_not_check_funds() -> None:
    state = _rich_state(0.0)
    out = apply_action(200, level_up_feature("sanitation"))(state)
    assert out["current_viruses"] == -200.0


def test_purchase_upgrade() -> None:
    state = _rich_state(500.0)
    out = purchase(state, get_action("adapt_physiology"))
    assert out["current_viruses"] == 300.0
    assert out["rate_of_replication"] == 1

    out = purchase(out, "adapt_physiology")
    assert out["current_viruses"] == 300.0 - 208
    assert out["rate_of_replication"] == 2


def test_purchase_replicate_is_free() -> None:
    state = create_initial_state()
    for _ in range(3):
        state = purchase(state, "replicate")
    assert state["current_viruses"] == 3.0
    assert state["total_viruses"] == 3.0


def test_purchase_refuses_unaffordable() -> None:
    state = _rich_state(150.0)
    with pytest.raises(ValueError, match="Not enough viruses"):
        purchase(state, "adapt_physiology")


def test_purchase_refuses_funds_just_short_of_cost() -> None:
    state = _rich_state(200.0 - 5e-10)
    with pytest.raises(ValueError, match="Not enough viruses"):
        purchase(state, "adapt_physiology")

    row = next(r for r in build_economy(state) if r["key"] == "adapt_physiology")
    assert not row["affordable"]

    state["current_viruses"] = 200.0
    assert purchase(state, "adapt_physiology")["current_viruses"] == 0.0


def test_purchase_refuses_hidden() -> None:
    state = create_initial_state()
    state["current_viruses"] = 10_000.0
    with pytest.raises(ValueError, match="not available"):
        purchase(state, "infect_human")


def test_purchase_refuses_maxed() -> None:
    state = _rich_state()
    state["sanitation"] = 30
    with pytest.raises(ValueError, match="maxed"):
        purchase(state, "lower_sanitation")


def test_purchase_leaves_input_untouched() -> None:
    state = _rich_state()
    slots = state["infected"].to_list()
    out = purchase(state, "infect_human")

    assert state["infected"].to_list() == slots
    assert state["healthy_humans"] == 1000.0
    assert state["manual_infections"] == 0
    assert out["infected"][-1] == 1.0
    assert out["current_viruses"] == 4900.0


def test_counters_monotonic_across_ticks_and_purchases() -> None:
    state = _rich_state(20_000.0)
    plan = ["infect_human", "adapt_physiology", "adapt_immune_system", "weaken_defenses",
            "infect_human", "lower_sanitation", "replicate", "invade_systems"]
    keys = ("total_viruses", "dead_humans", "day", "manual_infections")

    for step in range(400):
        prev = state
        if step % 50 == 0:
            state = purchase(state, plan[(step // 50) % len(plan)])
        else:
            state = simulate_tick(state)
        for key in keys:
            assert state[key] >= prev[key], key

    assert state["manual_infections"] == 2
