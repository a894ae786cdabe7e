"""Tests for the history pages and the stats panel."""

from __future__ import annotations

import asyncio
import json
import random

from career.engine import CareerProgressionEngine, EngineSettings
from career.game import CareerGame
from career.history import HISTORY_PAGE_SIZE, describe_choice, format_history, format_stats, history_page, page_count
from career.models import AttributeImprovement, CareerStats, Choice, MatchStats, Outcome, SeasonStats
from career.session import InMemorySessionStore
from completion.models import Completion

SCENERY = (
    "garoa sobre o gramado sintético",
    "arquibancada lotada cantando",
    "vestiário silencioso antes da preleção",
    "sala de imprensa abafada",
    "viagem longa de ônibus pela serra",
    "academia vazia ao amanhecer",
    "churrasco com o elenco no domingo",
)


def _log(n: int) -> list[Choice]:
    return [Choice(id=i, event="MACRO:TREINO_TECNICO", choice="A") for i in range(n)]


class TestPaging:
    def test_page_count(self):
        assert page_count(0) == 1
        assert page_count(HISTORY_PAGE_SIZE) == 1
        assert page_count(HISTORY_PAGE_SIZE + 1) == 2

    def test_second_page_numbers_continue(self):
        page = history_page(_log(12), 1)
        assert [c.id for c in page.entries] == [5, 6, 7, 8, 9]
        assert page.first_number == 6
        assert page.pages == 3

    def test_out_of_range_pages_clamp(self):
        assert history_page(_log(12), 99).page == 2
        assert [c.id for c in history_page(_log(12), 99).entries] == [10, 11]
        assert history_page(_log(12), -3).page == 0

    def test_empty_log(self):
        page = history_page([], 0)
        assert page.entries == ()
        assert format_history(page) == "Nenhuma escolha registrada ainda."


def test_describe_choice_lists_outcome_xp_and_attribute_change():
    entry = Choice(
        id=3,
        event="MICRO:ATAQUE_FRANCO",
        choice="B",
        outcome=Outcome(type="DECISIVO", message="Golaço!"),
        xp_gain=8,
        match_stats=MatchStats(goals=1, rating=2.0),
        attribute_improved=AttributeImprovement(name="shooting", old_value=7, new_value=8, cost=25),
    )
    head, message, details = describe_choice(entry, 4)
    assert head == "  4. MICRO:ATAQUE_FRANCO | escolha: B | DECISIVO"
    assert message.strip() == "Golaço!"
    assert "+8 XP" in details
    assert "shooting 7 -> 8" in details
    assert "gols 1" in details


def test_stats_panel():
    career = CareerStats(matches=4, goals=3, age=19, followers=12_500)
    season = SeasonStats(goals=2, appearances=2, total_rating=2.4, average_rating=1.2)
    text = format_stats(career, season, week_count=7, xp_pool=11)
    assert "Idade 19 | 4 jogos | 3 gols" in text
    assert "Seguidores 12500 (promessa em alta)" in text
    assert "Temporada: 2 jogos, 2 gols, 0 assistências, nota média 1.20" in text
    assert "Semanas jogadas 7 | XP acumulado 11" in text


class CountingCompletion:
    def __init__(self):
        self.count = 0

    async def complete(self, messages, options):
        self.count += 1
        payload = {
            "narrative": f"Cena número {self.count}: {SCENERY[self.count % len(SCENERY)]}",
            "options": {"A": f"Plano {self.count}", "B": f"Ousadia {self.count}"},
            "outcome": {"type": "POSITIVO", "message": "Boa!"},
        }
        return Completion(content=json.dumps(payload, ensure_ascii=False))

    async def close(self):
        pass


def test_history_of_a_played_career():
    engine = CareerProgressionEngine(CountingCompletion(), settings=EngineSettings(), rng=random.Random(2))
    game = CareerGame(engine, InMemorySessionStore(), rng=random.Random(2))

    async def _run():
        await game.new_career("Lucas", 18, "BR", "ATA")
        for _ in range(6):
            await game.choose("A")

    asyncio.run(_run())
    log = game.store.get_choice_log()
    first = format_history(history_page(log, 0))
    second = format_history(history_page(log, 1))
    assert first.startswith("Histórico (página 1 de 2)")
    assert "  1. MACRO:TREINO_TECNICO | escolha: A" in first
    assert "  6. " in second
