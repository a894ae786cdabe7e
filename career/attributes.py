"""Attribute economy: cost curve, potential ceiling and XP-driven leveling."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .models import ATTRIBUTE_KEYS, Attributes, AttributeImprovement, PlayerProfile

logger = logging.getLogger(__name__)

DEFAULT_POTENTIAL = 10

# Starting vectors by position code; unspecified attributes stay at 5.
_POSITION_BASELINES = {
    "GOL": {"physical": 6, "heading": 4, "defense": 7, "speed": 4, "shooting": 2},
    "ZAG": {"physical": 7, "heading": 7, "defense": 7, "shooting": 3},
    "LAT": {"speed": 7, "passing": 6, "defense": 6, "heading": 4},
    "VOL": {"physical": 6, "passing": 6, "defense": 6, "shooting": 4},
    "MEI": {"passing": 7, "charisma": 6, "shooting": 6, "defense": 3},
    "ATA": {"shooting": 7, "speed": 6, "heading": 6, "defense": 2},
}


def cost_to_next_point(current_value: int) -> int:
    """XP needed to raise an attribute by one point.

    Values at or below 2 level for free; the curve never goes negative.
    """
    return max(0, 5 * (current_value - 2))


def potential(attribute: str, overrides: Mapping[str, int] | None = None) -> int:
    if attribute not in ATTRIBUTE_KEYS:
        raise KeyError(f"Unknown attribute: {attribute}")
    if overrides and attribute in overrides:
        return int(overrides[attribute])
    return DEFAULT_POTENTIAL


def age_xp_multiplier(age: int) -> float:
    if age <= 22:
        return 1.2
    if age >= 28:
        return 0.7
    return 1.0


def bank_xp(amount: int, age: int) -> int:
    """Scale a raw XP gain by the age multiplier before it enters the pool."""
    if amount <= 0:
        return 0
    return int(round(amount * age_xp_multiplier(age)))


def default_attributes(position: str) -> Attributes:
    baseline = _POSITION_BASELINES.get(position.upper(), {})
    return Attributes(**{key: baseline.get(key, 5) for key in ATTRIBUTE_KEYS})


def level_up(
    profile: PlayerProfile,
    attribute: str | None,
    xp_pool: int,
    potentials: Mapping[str, int] | None = None,
    drain: bool = False,
) -> tuple[PlayerProfile, int, AttributeImprovement | None]:
    """Spend banked XP on the focused attribute.

    One conditional increment per call unless ``drain`` is set, in which case
    the pool is spent across as many points as it covers. Returns the
    (possibly unchanged) profile, the remaining pool and the improvement.
    """
    if not attribute or attribute not in ATTRIBUTE_KEYS:
        return profile, xp_pool, None

    ceiling = potential(attribute, potentials)
    old_value = profile.attributes.get(attribute)
    value = old_value
    pool = xp_pool
    spent = 0

    while value < ceiling:
        cost = cost_to_next_point(value)
        if pool < cost:
            break
        value += 1
        pool -= cost
        spent += cost
        if not drain:
            break

    if value == old_value:
        return profile, xp_pool, None

    logger.info("Attribute %s improved %d -> %d (cost %d XP)", attribute, old_value, value, spent)
    improvement = AttributeImprovement(
        name=attribute,
        old_value=old_value,
        new_value=value,
        cost=spent,
    )
    return profile.with_attribute(attribute, value), pool, improvement
