"""Probabilistic resolution of a choice into success/failure and an outcome tag."""

from __future__ import annotations

import random
from dataclasses import dataclass

from .risk import RISK_HIGH, RISK_LOW, RISK_MEDIUM

_BASE_PROBABILITY = {RISK_LOW: 0.80, RISK_MEDIUM: 0.60, RISK_HIGH: 0.40}
_REWARD_MULTIPLIER = {RISK_LOW: 1.0, RISK_MEDIUM: 1.5, RISK_HIGH: 2.5}

MIN_PROBABILITY = 0.05
MAX_PROBABILITY = 0.95
ATTRIBUTE_PIVOT = 10
ATTRIBUTE_FACTOR = 0.03


@dataclass(frozen=True)
class Resolution:
    """Mechanical result of a choice, computed before any narration."""

    risk: str
    attribute: str
    attribute_value: int
    probability: float
    roll: float
    success: bool
    outcome_type: str
    multiplier: float


def success_probability(attribute_value: int, risk_tier: str) -> float:
    base = _BASE_PROBABILITY[risk_tier]
    factor = (attribute_value - ATTRIBUTE_PIVOT) * ATTRIBUTE_FACTOR
    return round(min(MAX_PROBABILITY, max(MIN_PROBABILITY, base + factor)), 4)


def draw_success(probability: float, roll: float) -> bool:
    return roll < probability


def resolve_outcome(success: bool, risk_tier: str) -> str:
    if success:
        return "DECISIVO" if risk_tier == RISK_HIGH else "POSITIVO"
    return "NEGATIVO" if risk_tier == RISK_HIGH else "NEUTRO"


def reward_multiplier(risk_tier: str) -> float:
    return _REWARD_MULTIPLIER[risk_tier]


def resolve(
    attribute: str,
    attribute_value: int,
    risk_tier: str,
    rng: random.Random | None = None,
    roll: float | None = None,
) -> Resolution:
    """Draw a result for one choice. ``roll`` pins the draw (tests, replays)."""
    if roll is None:
        roll = (rng or random.Random()).random()
    probability = success_probability(attribute_value, risk_tier)
    success = draw_success(probability, roll)
    return Resolution(
        risk=risk_tier,
        attribute=attribute,
        attribute_value=attribute_value,
        probability=probability,
        roll=roll,
        success=success,
        outcome_type=resolve_outcome(success, risk_tier),
        multiplier=reward_multiplier(risk_tier),
    )
