"""Tests for narrator prompt composition."""

from __future__ import annotations

import random

from career.clubs import create_profile
from career.models import CareerStats, Choice, Options, Outcome
from career.timeline import apply_choice, generate_day, generate_week
from narrative.outcome import resolve
from narrative.prompts import (
    CAREER_SUMMARY_THRESHOLD,
    DIFFERENT_DIRECTIVE,
    PromptComposer,
    club_context,
    emotional_context,
    follower_tier,
    recent_option_labels,
)


def _profile():
    return create_profile("Lucas", 18, "BR", "ATA", "Flamengo")


def _entry(index: int, outcome: str | None = None, options: Options | None = None) -> Choice:
    return Choice(
        id=index,
        event="MACRO",
        choice="A",
        outcome=Outcome(type=outcome) if outcome else None,
        options=options,
    )


class TestEmotionalContext:
    def test_decisive_moment_builds_confidence(self):
        log = [_entry(0, "NEGATIVO"), _entry(1, "NEGATIVO"), _entry(2, "DECISIVO")]
        assert emotional_context(log) == "confident"

    def test_repeated_failures_add_pressure(self):
        assert emotional_context([_entry(0, "NEGATIVO"), _entry(1, "NEGATIVO")]) == "pressured"

    def test_good_streak_motivates(self):
        assert emotional_context([_entry(0, "POSITIVO"), _entry(1, "POSITIVO")]) == "motivated"

    def test_strategic_streak_focuses(self):
        assert emotional_context([_entry(0, "ESTRATÉGICO"), _entry(1, "ESTRATÉGICO")]) == "focused"

    def test_only_last_three_count(self):
        log = [_entry(0, "DECISIVO"), _entry(1, "NEUTRO"), _entry(2, "NEUTRO"), _entry(3, "NEUTRO")]
        assert emotional_context(log) == "balanced"
        assert emotional_context([]) == "balanced"


def test_follower_tiers():
    assert follower_tier(100) == "desconhecido"
    assert follower_tier(1_000) == "conhecido na cidade"
    assert follower_tier(25_000) == "promessa em alta"
    assert follower_tier(100_000) == "ídolo nacional"
    assert follower_tier(2_000_000) == "estrela global"


def test_recent_option_labels_are_deduplicated_and_bounded():
    log = [_entry(i, options=Options(a=f"A{i}", b=f"B{i}")) for i in range(6)]
    log.append(_entry(6, options=Options(a="A5", b="B6")))
    assert recent_option_labels(log, limit=4) == ["B4", "B5", "A5", "B6"]


def test_unknown_club_gets_generic_context():
    assert club_context("Avaí") != club_context("Clube Inventado")
    assert club_context("Clube Inventado") == club_context("Outro Clube")


class TestPromptComposer:
    def test_intro_prompt(self):
        composer = PromptComposer(temperature=0.7, max_tokens=500)
        prompt = composer.intro(_profile(), generate_day(random.Random(0)))
        system, user = prompt.messages
        assert system.role == "system"
        assert "JSON" in system.content
        assert "Lucas" in user.content
        assert "Flamengo" in user.content
        assert "Agenda do dia" in user.content
        assert prompt.slot_type == "INTRO"
        assert prompt.options.temperature == 0.7
        assert prompt.options.max_tokens == 500

    def test_choice_prompt_carries_the_decided_outcome(self):
        composer = PromptComposer()
        day = apply_choice(generate_day(random.Random(0)), 1, "A", "DECISIVO")
        resolution = resolve("shooting", 16, "high", roll=0.5)
        log = [_entry(0, "POSITIVO", Options(a="Treinar finalização", b="Descansar"))]
        prompt = composer.choice(
            _profile(), log, day, CareerStats(), day[0], "Chute ousado", resolution, day[1]
        )
        system, user = prompt.messages
        assert "DECISIVO" in user.content
        assert "Chute ousado" in user.content
        assert '"Treinar finalização"' in system.content
        assert prompt.slot_type == day[1].sub_type

    def test_end_of_day_opens_next_morning(self):
        composer = PromptComposer()
        day = generate_day(random.Random(0))
        for index in range(1, 5):
            day = apply_choice(day, index, "A", "NEUTRO")
        resolution = resolve("shooting", 7, "medium", roll=0.99)
        prompt = composer.choice(_profile(), [], day, CareerStats(), day[3], "Chutar", resolution, None)
        assert prompt.slot_type == "TREINO_TECNICO"
        assert "O dia terminou" in prompt.messages[1].content

    def test_career_summary_needs_activity(self):
        composer = PromptComposer()
        day = generate_day(random.Random(0))
        quiet = composer.intro(_profile(), day)
        assert "Carreira:" not in quiet.messages[1].content

        busy = CareerStats(matches=CAREER_SUMMARY_THRESHOLD, goals=2, followers=12_000)
        prompt = composer.week_event(_profile(), [], generate_week(), busy, "MICRO", "ATAQUE_FRANCO", 1)
        user = prompt.messages[1].content
        assert "Carreira: 3 jogos, 2 gols" in user
        assert "promessa em alta" in user
        assert "Temporada: semana 1 de 52" in user

    def test_retry_is_hotter_and_asks_for_something_new(self):
        composer = PromptComposer(temperature=0.85)
        prompt = composer.intro(_profile(), generate_day(random.Random(0)))
        retry = prompt.retry(1.0)
        assert retry.options.temperature == 1.0
        assert retry.messages[:2] == prompt.messages
        assert retry.messages[-1].content == DIFFERENT_DIRECTIVE
        assert retry.slot_type == prompt.slot_type

    def test_options_on_screen_are_banned_from_repetition(self):
        composer = PromptComposer()
        day = apply_choice(generate_day(random.Random(0)), 1, "A", "POSITIVO")
        resolution = resolve("passing", 8, "low", roll=0.1)
        on_screen = Options(a="Pedir a bola ao capitão", b="Provocar o zagueiro")
        prompt = composer.choice(
            _profile(), [], day, CareerStats(), day[0], "Pedir a bola ao capitão", resolution, day[1],
            offered=on_screen,
        )
        system = prompt.messages[0].content
        assert '"Pedir a bola ao capitão"' in system
        assert '"Provocar o zagueiro"' in system

    def test_age_comes_from_career_stats(self):
        composer = PromptComposer()
        older = CareerStats(age=19)
        prompt = composer.week_event(_profile(), [], generate_week(), older, "MACRO", "TREINO_FISICO", 1)
        assert "Lucas, 19 anos" in prompt.messages[1].content
        assert "Lucas, 18 anos" in composer.intro(_profile(), generate_day(random.Random(0))).messages[1].content

    def test_week_event_carries_the_drawn_result(self):
        composer = PromptComposer()
        resolution = resolve("shooting", 3, "high", roll=0.9)
        prompt = composer.week_event(
            _profile(), [], generate_week(), CareerStats(), "MICRO", "ATAQUE_FRANCO", 1,
            approach="Chute ousado de longe", resolution=resolution,
        )
        user = prompt.messages[1].content
        assert 'Abordagem do jogador: "Chute ousado de longe"' in user
        assert "Resultado já decidido: NEGATIVO" in user
        assert '"outcome.type" = "NEGATIVO"' in user


def test_current_options_count_as_most_recent():
    log = [_entry(i, options=Options(a=f"A{i}", b=f"B{i}")) for i in range(3)]
    labels = recent_option_labels(log, limit=3, current=Options(a="Agora A", b="Agora B"))
    assert labels == ["B2", "Agora A", "Agora B"]
