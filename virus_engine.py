# Viral Idle Engine v1.0 (Streamlit-friendly)
# - Pure, deterministic tick: simulate_tick(state) -> new state, input left untouched
# - Infected humans aged in a fixed-size circular cohort buffer (one slot per day)
# - Upgrades are tagged catalog entries; costs/effects evaluated against the current state
# - purchase() refuses hidden/maxed/unaffordable actions, apply_action() is the raw merge
# - get_ui_snapshot returns plain dicts/lists for the UI

import logging
import math
from types import MappingProxyType

logger = logging.getLogger(__name__)

RULES = {
    "ticks_per_day": 20,
    "cohort_slots": 30,
    "total_humans": 7_000_000_000,

    "replication_k": 0.1,          # viruses per infected human per replication level, per tick
    "infection_k": 0.01,           # infections per contagious human per infection level, per tick
    "lethality_k": 0.05,           # share of an activated cohort killed per lethality level

    "history_len": 30,             # daily rows kept for the UI chart
}

UPGRADE_FEATURES = (
    "sanitation",
    "rate_of_infection",
    "rate_of_replication",
    "incubation_time",
    "lethality",
    "contagion_time",
)


def _rules(rules) -> dict:
    return RULES if rules is None else rules

# ---------- Cohort buffer ----------

class CohortBuffer:
    """Infected humans bucketed by days since infection.

    Fixed capacity ring with a head index. Logical slot 0 is the newest
    cohort, logical slot N-1 the oldest (next to be retired at the day
    boundary). ``to_list()`` returns the logical order.
    """

    __slots__ = ("_slots", "_head")

    def __init__(self, size: int):
        if int(size) <= 0:
            raise ValueError("Cohort buffer needs at least one slot")
        self._slots = [0.0] * int(size)
        self._head = 0

    @classmethod
    def from_list(cls, values) -> "CohortBuffer":
        values = [float(v) for v in values]
        buf = cls(len(values))
        buf._slots = values
        return buf

    def copy(self) -> "CohortBuffer":
        buf = CohortBuffer.__new__(CohortBuffer)
        buf._slots = list(self._slots)
        buf._head = self._head
        return buf

    def _pos(self, i: int) -> int:
        return (self._head + i) % len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, i: int) -> float:
        n = len(self._slots)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError("cohort slot out of range")
        return self._slots[self._pos(i)]

    def __iter__(self):
        for i in range(len(self._slots)):
            yield self._slots[self._pos(i)]

    def __eq__(self, other) -> bool:
        if not isinstance(other, CohortBuffer):
            return NotImplemented
        return self.to_list() == other.to_list()

    def __repr__(self) -> str:
        return f"CohortBuffer({self.to_list()!r})"

    def to_list(self) -> list:
        return list(self)

    def append_newest(self, count: float) -> None:
        p = self._pos(0)
        self._slots[p] = self._slots[p] + float(count)

    def add_to_oldest(self, count: float) -> None:
        p = self._pos(len(self._slots) - 1)
        self._slots[p] = self._slots[p] + float(count)

    def retire_oldest(self) -> float:
        # the vacated slot becomes the new newest slot; everything else ages a day
        p = self._pos(len(self._slots) - 1)
        sick = self._slots[p]
        self._slots[p] = 0.0
        self._head = p
        return sick

    def contagious(self, k) -> float:
        k = max(0, min(int(k), len(self._slots)))
        return float(sum(self._slots[self._pos(i)] for i in range(k)))

    def total(self) -> float:
        return float(sum(self._slots))

# ---------- State ----------

def create_initial_state(total_humans=None, rules=None) -> dict:
    rules = _rules(rules)
    total = float(rules["total_humans"] if total_humans is None else total_humans)
    return {
        "current_viruses": 0.0,
        "total_viruses": 0.0,
        "total_humans": total,
        "healthy_humans": total,
        "dead_humans": 0.0,
        "manual_infections": 0,
        "sanitation": 0,
        "rate_of_infection": 0,
        "rate_of_replication": 0,
        "incubation_time": 0,
        "lethality": 0,
        "contagion_time": 0,
        "day": 0,
        # 0 so the first tick opens day 1
        "time": 0,
        "fractional_infected": 0.0,
        "infected": CohortBuffer(int(rules["cohort_slots"])),
        "history": (),
    }


def _derive(state: dict) -> dict:
    """Shallow copy with a private cohort buffer, safe to modify."""
    out = dict(state)
    out["infected"] = state["infected"].copy()
    return out


def reconcile_population(state: dict) -> float:
    total = float(state["total_humans"])
    return max(0.0, total - state["infected"].total() - float(state["dead_humans"]))

# ---------- Tick ----------

def _history_row(state: dict):
    # rows are shared by every later snapshot
    return MappingProxyType({
        "day": int(state["day"]),
        "healthy": float(state["healthy_humans"]),
        "infected": float(state["infected"].total()),
        "dead": float(state["dead_humans"]),
        "total_viruses": float(state["total_viruses"]),
    })


def simulate_tick(state: dict, rules=None) -> dict:
    """Advance the epidemic by one tick.

    Rates and counters are read from ``state``; the returned dict carries a
    fresh cohort buffer so the previous snapshot stays valid.
    """
    rules = _rules(rules)
    prev = state
    nxt = _derive(prev)
    infected = nxt["infected"]

    # ---- 1) Transmission (infected human => virus) ----
    total_infected = prev["infected"].total()
    transmitted = total_infected * float(prev["rate_of_replication"]) * float(rules["replication_k"])
    nxt["current_viruses"] = float(prev["current_viruses"]) + transmitted
    nxt["total_viruses"] = float(prev["total_viruses"]) + transmitted

    # ---- 2) Contagion (infected human => human) ----
    healthy = max(0.0, float(prev["healthy_humans"]))
    contagious = prev["infected"].contagious(prev["contagion_time"])
    new_infected = min(healthy, contagious * float(prev["rate_of_infection"]) * float(rules["infection_k"]))

    carry = float(prev["fractional_infected"]) + new_infected
    whole = math.floor(carry)
    available = math.floor(healthy)
    if whole > available:
        whole = available
        carry = whole + (carry - math.floor(carry))
    nxt["fractional_infected"] = carry - whole
    infected.append_newest(whole)

    # ---- 3) Day boundary: retire oldest cohort, kill a share of it ----
    new_day = prev["time"] <= 0
    if new_day:
        nxt["time"] = int(rules["ticks_per_day"])
        nxt["day"] = int(prev["day"]) + 1

        sick = infected.retire_oldest()
        dead = min(sick, sick * float(prev["lethality"]) * float(rules["lethality_k"]))
        infected.append_newest(sick - dead)
        nxt["dead_humans"] = float(prev["dead_humans"]) + dead
        logger.debug("day %d: %.3f activated, %.3f dead", nxt["day"], sick, dead)

    # ---- 4) Clock ----
    nxt["time"] = nxt["time"] - 1

    # ---- 5) Population ----
    nxt["healthy_humans"] = reconcile_population(nxt)

    if new_day:
        hist = tuple(prev.get("history", ())) + (_history_row(nxt),)
        nxt["history"] = hist[-int(rules["history_len"]):]

    return nxt


def run_ticks(state: dict, n: int, rules=None) -> dict:
    for _ in range(int(n)):
        state = simulate_tick(state, rules=rules)
    return state

# ---------- Costs ----------

def exponential_cost(base_cost: float, cost_factor: float, level: float) -> int:
    return int(math.floor(float(base_cost) * float(cost_factor) ** float(level)))


def infect_human_cost(base_cost: float, cost_factor: float, sanitation: float, manual_infections: int) -> int:
    # sanitation makes the jump cheaper, each earlier jump makes that discount grow
    raw = float(base_cost) - float(sanitation) * float(cost_factor) ** int(manual_infections)
    return max(0, int(math.floor(raw)))

# ---------- Actions ----------

def _action(key, name, kind, description, feature=None, base_cost=0.0, cost_factor=1.0,
            visible_above=None, max_level=None):
    return MappingProxyType({
        "key": key,
        "name": name,
        "kind": kind,
        "description": description,
        "feature": feature,
        "base_cost": float(base_cost),
        "cost_factor": float(cost_factor),
        "visible_above": visible_above,
        "max_level": max_level,
    })


ACTIONS = (
    _action("replicate", "Replicate", "replicate",
            "Create a new copy of the virus. Upgrades consume viruses."),
    _action("infect_human", "Infect Human", "infect_human",
            "Jump to a human host. Humans incubate the disease and make more viruses. "
            "They might infect other humans.",
            base_cost=100, cost_factor=1.5, visible_above=50),
    _action("lower_sanitation", "Lower sanitation", "upgrade",
            "Easier to jump to human hosts.",
            feature="sanitation", base_cost=100, cost_factor=1.02, visible_above=50, max_level=30),
    _action("adapt_physiology", "Adapt to human physiology", "upgrade",
            "Humans create more viruses.",
            feature="rate_of_replication", base_cost=200, cost_factor=1.04, visible_above=100, max_level=50),
    _action("adapt_immune_system", "Adapt to human immune system", "upgrade",
            "Humans infect each other faster.",
            feature="rate_of_infection", base_cost=200, cost_factor=1.04, visible_above=100, max_level=50),
    _action("weaken_defenses", "Weaken defenses", "upgrade",
            "Humans infect each other more often.",
            feature="contagion_time", base_cost=200, cost_factor=1.04, visible_above=100, max_level=50),
    _action("lower_incubation", "Lower incubation time", "upgrade",
            "Improved replication DNA. Time from infection to activation is lowered.",
            feature="incubation_time", base_cost=200, cost_factor=1.04, visible_above=100, max_level=50),
    _action("invade_systems", "Invade systems", "upgrade",
            "Kill them all.",
            feature="lethality", base_cost=200, cost_factor=1.04, visible_above=10000, max_level=50),
)

ACTION_KINDS = ("replicate", "infect_human", "upgrade")


def _validate_catalog(actions) -> None:
    seen = set()
    for a in actions:
        if a["kind"] not in ACTION_KINDS:
            raise ValueError(f"Unknown action kind for {a['key']}: {a['kind']}")
        if a["kind"] == "upgrade" and a["feature"] not in UPGRADE_FEATURES:
            raise ValueError(f"Upgrade {a['key']} targets unknown feature: {a['feature']}")
        if a["key"] in seen:
            raise ValueError("Duplicate action key: " + str(a["key"]))
        seen.add(a["key"])


_validate_catalog(ACTIONS)

_ACTIONS_BY_KEY = MappingProxyType({a["key"]: a for a in ACTIONS})


def get_action(key: str):
    try:
        return _ACTIONS_BY_KEY[key]
    except KeyError:
        raise KeyError("Unknown action: " + str(key)) from None


def action_level(state: dict, action) -> float:
    if action["kind"] == "upgrade":
        return state[action["feature"]]
    if action["kind"] == "infect_human":
        return state["manual_infections"]
    return 0


def action_visible(state: dict, action) -> bool:
    threshold = action["visible_above"]
    if threshold is None:
        return True
    return float(state["total_viruses"]) > float(threshold)


def action_maxed(state: dict, action) -> bool:
    if action["kind"] == "infect_human" and float(state["healthy_humans"]) < 1.0:
        return True
    if action["max_level"] is None:
        return False
    return action_level(state, action) >= action["max_level"]


def action_cost(state: dict, action) -> int:
    kind = action["kind"]
    if kind == "replicate":
        return 0
    if kind == "infect_human":
        return infect_human_cost(action["base_cost"], action["cost_factor"],
                                 state["sanitation"], state["manual_infections"])
    return exponential_cost(action["base_cost"], action["cost_factor"], state[action["feature"]])


def breed_virus(state: dict) -> dict:
    return {
        "current_viruses": float(state["current_viruses"]) + 1,
        "total_viruses": float(state["total_viruses"]) + 1,
    }


def infect_human(state: dict) -> dict:
    infected = state["infected"].copy()
    n = min(1.0, max(0.0, float(state["healthy_humans"])))
    infected.add_to_oldest(n)
    return {
        "infected": infected,
        "healthy_humans": float(state["healthy_humans"]) - n,
        "manual_infections": int(state["manual_infections"]) + 1,
    }


def level_up_feature(feature: str):
    def effect(state: dict) -> dict:
        return {feature: state[feature] + 1}
    return effect


def action_level_up(action):
    """Effect function (state -> partial update) for a catalog entry."""
    kind = action["kind"]
    if kind == "replicate":
        return breed_virus
    if kind == "infect_human":
        return infect_human
    return level_up_feature(action["feature"])

# ---------- Purchase ----------

def apply_action(cost: float, effect):
    """Curried purchase: deduct ``cost`` and merge ``effect(state)`` on top.

    No affordability or cap checks; use purchase() for player-facing buys.
    Population totals are left as-is until the next tick reconciles them.
    """
    def apply(state: dict) -> dict:
        out = _derive(state)
        out["current_viruses"] = float(state["current_viruses"]) - float(cost)
        out.update(effect(state))
        return out
    return apply


def purchase(state: dict, action) -> dict:
    if isinstance(action, str):
        action = get_action(action)
    if not action_visible(state, action):
        raise ValueError(f"{action['name']} is not available yet")
    if action_maxed(state, action):
        raise ValueError(f"{action['name']} is maxed out")

    cost = action_cost(state, action)
    if float(state["current_viruses"]) < cost:
        raise ValueError(f"Not enough viruses for {action['name']} (need {cost})")

    out = apply_action(cost, action_level_up(action))(state)
    logger.info("bought %s for %d", action["key"], cost)
    return out

# ---------------- UI helper API (read-only) ----------------

def format_number(number_: float) -> str:
    number = math.floor(number_)
    if number < 10_000:
        return f"{number}"
    if number < 10_000_000:
        return f"{number // 1_000}k"
    if number < 10_000_000_000:
        return f"{number // 1_000_000}M"
    if number < 10_000_000_000_000:
        return f"{number // 1_000_000_000}G"
    mantissa, exp = f"{float(number):e}".split("e")
    mantissa = mantissa.rstrip("0").rstrip(".")
    return f"{mantissa}e{int(exp):+d}"


def build_hud(state: dict, rules=None) -> dict:
    rules = _rules(rules)
    ticks_per_day = int(rules["ticks_per_day"])
    time_left = max(0, int(state["time"]))
    return {
        "day": int(state["day"]),
        "time": int(state["time"]),
        "day_progress": float(1.0 - time_left / ticks_per_day) if ticks_per_day > 0 else 0.0,
        "current_viruses": float(state["current_viruses"]),
        "total_viruses": float(state["total_viruses"]),
        "total_humans": float(state["total_humans"]),
        "healthy_humans": float(state["healthy_humans"]),
        "infected_humans": float(state["infected"].total()),
        "contagious_humans": float(state["infected"].contagious(state["contagion_time"])),
        "dead_humans": float(state["dead_humans"]),
        "manual_infections": int(state["manual_infections"]),
        "fractional_infected": float(state["fractional_infected"]),
        "levels": {f: state[f] for f in UPGRADE_FEATURES},
    }


def build_economy(state: dict) -> list:
    out = []
    for a in ACTIONS:
        cost = action_cost(state, a)
        out.append({
            "key": a["key"],
            "name": a["name"],
            "description": a["description"],
            "visible": bool(action_visible(state, a)),
            "maxed": bool(action_maxed(state, a)),
            "cost": int(cost),
            "affordable": float(state["current_viruses"]) >= cost,
            "level": action_level(state, a),
            "max_level": a["max_level"],
        })
    return out


def get_ui_snapshot(state: dict, rules=None) -> dict:
    """Single-call UI snapshot.

    Intended for Streamlit: one call per render. Plain dicts/lists only.
    """
    return {
        "hud": build_hud(state, rules=rules),
        "actions": build_economy(state),
        "infected": state["infected"].to_list(),
        "history": [dict(row) for row in state.get("history", ())],
    }
