"""Tests for day and season timelines."""

import random

import pytest

from career.timeline import (
    SLOTS_PER_DAY,
    WEEKS_PER_SEASON,
    SlotAccessError,
    advance_slot,
    apply_choice,
    format_timeline,
    generate_day,
    generate_week,
    is_complete,
    next_slot,
    resolved_count,
)


def test_generate_day_has_four_fixed_slots():
    day = generate_day(random.Random(3))
    assert len(day) == SLOTS_PER_DAY
    assert [s.slot for s in day] == [1, 2, 3, 4]
    assert day[0].sub_type == "TREINO_TECNICO"
    assert day[1].sub_type in {"COLETIVA_IMPRENSA", "LIVE_REDES"}
    assert day[2].sub_type == "TALK_LOCKERROOM"
    assert day[3].type == "MICRO"
    assert resolved_count(day) == 0


def test_media_slot_varies_with_the_draw():
    media = {generate_day(random.Random(seed))[1].sub_type for seed in range(40)}
    assert media == {"COLETIVA_IMPRENSA", "LIVE_REDES"}


def test_generate_week_covers_a_season():
    season = generate_week()
    assert len(season) == WEEKS_PER_SEASON
    assert all(s.type == "WEEK" and not s.resolved for s in season)


class TestApplyChoice:
    def test_resolves_in_order(self):
        day = generate_day(random.Random(0))
        day = apply_choice(day, 1, "A", "POSITIVO")
        day = apply_choice(day, 2, "B", "NEUTRO")
        assert resolved_count(day) == 2
        assert next_slot(day).slot == 3
        assert day[0].choice == "A"
        assert day[1].result == "NEUTRO"

    def test_does_not_mutate_input(self):
        day = generate_day(random.Random(0))
        apply_choice(day, 1, "A", "POSITIVO")
        assert resolved_count(day) == 0

    def test_skipping_a_slot_raises(self):
        day = generate_day(random.Random(0))
        with pytest.raises(SlotAccessError) as exc:
            apply_choice(day, 3, "A", "POSITIVO")
        assert exc.value.slot_index == 3

    def test_resolving_twice_raises(self):
        day = apply_choice(generate_day(random.Random(0)), 1, "A", "POSITIVO")
        with pytest.raises(SlotAccessError):
            apply_choice(day, 1, "B", "NEGATIVO")

    def test_out_of_range_raises(self):
        day = generate_day(random.Random(0))
        with pytest.raises(SlotAccessError):
            apply_choice(day, 0, "A", "POSITIVO")
        with pytest.raises(SlotAccessError):
            apply_choice(day, 5, "A", "POSITIVO")

    def test_completing_the_day(self):
        day = generate_day(random.Random(0))
        for index in range(1, SLOTS_PER_DAY + 1):
            day = apply_choice(day, index, "A", "NEUTRO")
        assert is_complete(day)
        assert next_slot(day) is None


def test_advance_slot_saturates():
    assert advance_slot(0) == 1
    assert advance_slot(2) == 3
    assert advance_slot(3) == 4
    assert advance_slot(9) == 4


def test_format_timeline_marks_pending_slots():
    day = apply_choice(generate_day(random.Random(0)), 1, "A", "DECISIVO")
    text = format_timeline(day)
    assert "1. MACRO:TREINO_TECNICO [A -> DECISIVO]" in text
    assert "pendente" in text
