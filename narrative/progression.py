"""Career calendar and derived-stat rules: days, weeks, seasons, match stats, followers."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from career.models import MatchStats, TimelineSlot, outcome_rank
from career.timeline import (
    SLOTS_PER_DAY,
    apply_choice,
    is_complete,
    next_slot,
)

from .interpreter import strip_color

BASE_XP = 3
SUCCESS_OUTCOMES = frozenset({"POSITIVO", "DECISIVO", "ESTRATÉGICO"})
MEDIA_SUB_TYPES = frozenset({"COLETIVA_IMPRENSA", "LIVE_REDES"})
MATCH_TYPES = frozenset({"MICRO"})

_FOLLOWER_BASE = {
    "DECISIVO": 120,
    "ESTRATÉGICO": 40,
    "POSITIVO": 50,
    "NEUTRO": 5,
    "NEGATIVO": -40,
}

_GOAL_PATTERN = re.compile(r"\bgol(?:aço|s)?\b|balança(?:r)? a rede|bola na rede|marcou")
_ASSIST_PATTERN = re.compile(r"assistência|passe decisivo|cruzamento perfeito|serviu\b|deixou .* na cara do gol")
_DEFENSE_PATTERN = re.compile(r"desarme|interceptação|interceptou|bloqueio|bloqueou|salvou|carrinho|defesa")


@dataclass(frozen=True)
class CalendarPosition:
    day: int  # 1-based, across the whole career
    week: int  # 1-based, across the whole career
    day_of_week: int
    slot: int  # 1..SLOTS_PER_DAY, slot the next choice resolves


def calendar_position(choice_count: int, days_per_week: int) -> CalendarPosition:
    """Where the next choice lands for a career with ``choice_count`` resolved choices."""
    days_per_week = max(1, days_per_week)
    day_index = max(0, choice_count) // SLOTS_PER_DAY
    return CalendarPosition(
        day=day_index + 1,
        week=day_index // days_per_week + 1,
        day_of_week=day_index % days_per_week + 1,
        slot=max(0, choice_count) % SLOTS_PER_DAY + 1,
    )


def closes_week(choice_count_after: int, days_per_week: int) -> bool:
    per_week = SLOTS_PER_DAY * max(1, days_per_week)
    return choice_count_after > 0 and choice_count_after % per_week == 0


def dominant_outcome(outcome_types: Sequence[str]) -> str:
    """Most frequent outcome; ties go to the more dramatic one."""
    counts = Counter(t for t in outcome_types if t)
    if not counts:
        return "NEUTRO"
    return max(counts, key=lambda t: (counts[t], outcome_rank(t)))


def close_week(
    season: Sequence[TimelineSlot],
    outcome_types: Sequence[str],
) -> tuple[tuple[TimelineSlot, ...], str, bool]:
    """Resolve the next WEEK slot. Returns (season, week outcome, season complete)."""
    slot = next_slot(season)
    if slot is None:
        return tuple(season), dominant_outcome(outcome_types), True
    result = dominant_outcome(outcome_types)
    updated = apply_choice(season, slot.slot, None, result)
    return updated, result, is_complete(updated)


def xp_for(success: bool, multiplier: float) -> int:
    if not success:
        return 0
    return int(BASE_XP * multiplier + 0.5)


def follower_delta(outcome_type: str, sub_type: str | None, multiplier: float = 1.0) -> int:
    base = _FOLLOWER_BASE.get(outcome_type, 0)
    if base > 0:
        base = int(base * multiplier)
    if sub_type in MEDIA_SUB_TYPES:
        base *= 2
    return base


def match_stats_from_narrative(narrative: str, outcome_type: str, multiplier: float) -> MatchStats:
    """Read goals/assists/defenses off the narrated match moment.

    Only successful moments count towards the tallies; the rating (0-2 scale)
    grows with the reward multiplier.
    """
    text = strip_color(narrative).lower()
    success = outcome_type in SUCCESS_OUTCOMES
    if success:
        goals = 1 if _GOAL_PATTERN.search(text) else 0
        assists = 1 if _ASSIST_PATTERN.search(text) else 0
        key_defenses = 1 if _DEFENSE_PATTERN.search(text) else 0
        rating = min(2.0, 0.8 * multiplier)
    else:
        goals = assists = key_defenses = 0
        rating = 0.2 if outcome_type == "NEGATIVO" else 0.5
    return MatchStats(
        goals=goals,
        assists=assists,
        key_defenses=key_defenses,
        rating=round(rating, 2),
    )
