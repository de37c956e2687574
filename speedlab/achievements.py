"""
Achievements -- named predicates over history.

Nothing is persisted: an achievement is unlocked whenever its predicate holds
for the current history, so deleting results can lock it again.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from .models import Result
from .stats import round_half_up

History = Sequence[Result]

TIERS = ("bronze", "silver", "gold", "platinum")


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    tier: str
    condition: Callable[[History], bool]


def _stability(r: Result) -> int:
    return r.stats.stability_score if r.stats else 0


def _grade(r: Result) -> str:
    return r.stats.grade if r.stats else ""


def _consistent(h: History) -> bool:
    return len(h) >= 5 and all(_grade(r).startswith("A") for r in h[:5])


def _network_explorer(h: History) -> bool:
    types = {r.network_type for r in h if r.network_type}
    return {"wifi", "ethernet", "mobile"} <= types


def _home_mapper(h: History) -> bool:
    return len({r.location for r in h if r.location}) >= 3


ACHIEVEMENTS: Tuple[Achievement, ...] = (
    # Speed milestones
    Achievement("speed_demon", "Speed Demon", "Reach 500+ Mbps download", "gold",
                lambda h: any(r.download >= 500 for r in h)),
    Achievement("century_club", "Century Club", "Reach 100+ Mbps download", "bronze",
                lambda h: any(r.download >= 100 for r in h)),
    Achievement("gigabit_glory", "Gigabit Glory", "Reach 1000+ Mbps download", "platinum",
                lambda h: any(r.download >= 1000 for r in h)),

    # Consistency
    Achievement("stable_connection", "Stable Connection", "Get 90%+ stability score", "silver",
                lambda h: any(_stability(r) >= 90 for r in h)),
    Achievement("rock_solid", "Rock Solid", "Get 95%+ stability 3 times", "gold",
                lambda h: sum(1 for r in h if _stability(r) >= 95) >= 3),

    # Latency
    Achievement("quick_reflexes", "Quick Reflexes", "Get ping under 10ms", "gold",
                lambda h: any(r.ping < 10 for r in h)),
    Achievement("low_latency", "Low Latency", "Get ping under 20ms", "silver",
                lambda h: any(r.ping < 20 for r in h)),
    Achievement("gaming_ready", "Gaming Ready", "Jitter under 5ms", "silver",
                lambda h: any(r.stats is not None and r.stats.jitter < 5 for r in h)),

    # Testing habits
    Achievement("first_test", "First Steps", "Complete your first test", "bronze",
                lambda h: len(h) >= 1),
    Achievement("dedicated_tester", "Dedicated Tester", "Complete 10 tests", "bronze",
                lambda h: len(h) >= 10),
    Achievement("data_collector", "Data Collector", "Complete 25 tests", "silver",
                lambda h: len(h) >= 25),
    Achievement("speed_scientist", "Speed Scientist", "Complete 50 tests", "gold",
                lambda h: len(h) >= 50),

    # Grades
    Achievement("honor_roll", "Honor Roll", "Get an A+ grade", "gold",
                lambda h: any(_grade(r) == "A+" for r in h)),
    Achievement("consistent_performer", "Consistent Performer", "Get 5 A grades in a row",
                "platinum", _consistent),

    # Variety
    Achievement("network_explorer", "Network Explorer", "Test on WiFi, Ethernet & Mobile",
                "silver", _network_explorer),
    Achievement("home_mapper", "Home Mapper", "Test from 3+ locations", "silver",
                _home_mapper),
)


def unlocked_achievements(history: History) -> List[Achievement]:
    return [a for a in ACHIEVEMENTS if a.condition(history)]


def achievement_progress(history: History) -> Dict[str, object]:
    """Counts for a progress summary: total, unlocked, percentage, per tier."""
    unlocked = unlocked_achievements(history)
    total = len(ACHIEVEMENTS)
    return {
        "total": total,
        "unlocked": len(unlocked),
        "percentage": int(round_half_up(len(unlocked) / total * 100)),
        "by_tier": {tier: sum(1 for a in unlocked if a.tier == tier) for tier in TIERS},
    }
