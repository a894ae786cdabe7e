"""Tests for risk classification and outcome resolution."""

import random

import pytest

from narrative.outcome import (
    draw_success,
    resolve,
    resolve_outcome,
    reward_multiplier,
    success_probability,
)
from narrative.risk import RISK_TIERS, classify_risk, relevant_attribute


class TestClassifyRisk:
    def test_low_keywords(self):
        assert classify_risk("Fazer o passe SEGURO") == "low"
        assert classify_risk("Seguir o plano do técnico") == "low"

    def test_high_keywords(self):
        assert classify_risk("Drible ousado no zagueiro") == "high"
        assert classify_risk("Provocar a torcida rival") == "high"

    def test_default_is_medium(self):
        assert classify_risk("Correr para a área") == "medium"
        assert classify_risk("") == "medium"

    def test_low_rules_are_checked_first(self):
        assert classify_risk("Jogada simples mas ousada") == "low"


class TestRelevantAttribute:
    def test_keyword_match(self):
        assert relevant_attribute("Cabecear no primeiro pau", 1) == "heading"
        assert relevant_attribute("Dar entrevista na zona mista", 4) == "charisma"
        assert relevant_attribute("Fazer um carrinho", 2) == "defense"

    def test_first_rule_wins(self):
        # "chute" (shooting) comes before "passe" (passing) in the table
        assert relevant_attribute("Chute ou passe?", 3) == "shooting"

    def test_slot_defaults(self):
        assert relevant_attribute("Pensar um pouco", 1) == "physical"
        assert relevant_attribute("Pensar um pouco", 2) == "charisma"
        assert relevant_attribute("Pensar um pouco", 3) == "charisma"
        assert relevant_attribute("Pensar um pouco", 4) == "shooting"


class TestSuccessProbability:
    def test_high_risk_scenario(self):
        assert success_probability(16, "high") == 0.58

    def test_low_risk_scenario(self):
        assert success_probability(4, "low") == 0.62

    def test_clamped(self):
        assert success_probability(40, "low") == 0.95
        assert success_probability(-20, "high") == 0.05

    def test_monotonic_in_attribute(self):
        for tier in RISK_TIERS:
            values = [success_probability(v, tier) for v in range(0, 25)]
            assert values == sorted(values)

    def test_ordered_by_risk(self):
        for value in range(1, 20):
            assert (
                success_probability(value, "low")
                > success_probability(value, "medium")
                > success_probability(value, "high")
            )


class TestResolve:
    def test_decisive_draw(self):
        result = resolve("shooting", 16, "high", roll=0.50)
        assert result.success
        assert result.outcome_type == "DECISIVO"
        assert result.multiplier == 2.5

    def test_neutral_draw(self):
        result = resolve("passing", 4, "low", roll=0.90)
        assert not result.success
        assert result.outcome_type == "NEUTRO"
        assert result.multiplier == 1.0

    def test_draw_boundary_is_failure(self):
        assert not draw_success(0.58, 0.58)
        assert draw_success(0.58, 0.5799)

    @pytest.mark.parametrize(
        "success,tier,expected",
        [
            (True, "high", "DECISIVO"),
            (True, "medium", "POSITIVO"),
            (True, "low", "POSITIVO"),
            (False, "high", "NEGATIVO"),
            (False, "medium", "NEUTRO"),
            (False, "low", "NEUTRO"),
        ],
    )
    def test_outcome_table(self, success, tier, expected):
        assert resolve_outcome(success, tier) == expected

    def test_same_seed_same_result(self):
        first = resolve("speed", 8, "medium", rng=random.Random(5))
        second = resolve("speed", 8, "medium", rng=random.Random(5))
        assert first == second

    def test_multipliers(self):
        assert [reward_multiplier(t) for t in RISK_TIERS] == [1.0, 1.5, 2.5]
