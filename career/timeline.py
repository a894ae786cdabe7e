"""Daily and season timelines with strict sequential slot resolution."""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import replace

from .models import TimelineSlot

SLOTS_PER_DAY = 4
WEEKS_PER_SEASON = 52

# Chance that the media slot is a press conference instead of a social live.
PRESS_CONFERENCE_SHARE = 0.4

Timeline = tuple[TimelineSlot, ...]


class SlotAccessError(Exception):
    """Raised when a slot is resolved out of order or out of range."""

    def __init__(self, message: str, slot_index: int = 0):
        self.slot_index = slot_index
        super().__init__(message)


def generate_day(rng: random.Random | None = None) -> Timeline:
    rng = rng or random.Random()
    media = "COLETIVA_IMPRENSA" if rng.random() < PRESS_CONFERENCE_SHARE else "LIVE_REDES"
    return (
        TimelineSlot(slot=1, type="MACRO", sub_type="TREINO_TECNICO"),
        TimelineSlot(slot=2, type="MACRO", sub_type=media),
        TimelineSlot(slot=3, type="MACRO", sub_type="TALK_LOCKERROOM"),
        TimelineSlot(slot=4, type="MICRO", sub_type="ATAQUE_FRANCO"),
    )


def generate_week() -> Timeline:
    return tuple(TimelineSlot(slot=i, type="WEEK") for i in range(1, WEEKS_PER_SEASON + 1))


def resolved_count(timeline: Sequence[TimelineSlot]) -> int:
    return sum(1 for slot in timeline if slot.resolved)


def is_complete(timeline: Sequence[TimelineSlot]) -> bool:
    return bool(timeline) and all(slot.resolved for slot in timeline)


def next_slot(timeline: Sequence[TimelineSlot]) -> TimelineSlot | None:
    for slot in timeline:
        if not slot.resolved:
            return slot
    return None


def advance_slot(choice_count: int) -> int:
    """Current day slot for a given number of choices; saturates at the last slot."""
    return min(max(choice_count, 0) + 1, SLOTS_PER_DAY)


def apply_choice(
    timeline: Sequence[TimelineSlot],
    slot_index: int,
    choice: str | None,
    outcome_type: str,
) -> Timeline:
    """Return a copy of ``timeline`` with ``slot_index`` resolved."""
    if slot_index < 1 or slot_index > len(timeline):
        raise SlotAccessError(
            f"Slot {slot_index} is outside a timeline of {len(timeline)} slots",
            slot_index=slot_index,
        )
    target = timeline[slot_index - 1]
    if target.resolved:
        raise SlotAccessError(f"Slot {slot_index} is already resolved", slot_index=slot_index)
    if slot_index > 1 and not timeline[slot_index - 2].resolved:
        raise SlotAccessError(
            f"Slot {slot_index} cannot be resolved before slot {slot_index - 1}",
            slot_index=slot_index,
        )

    updated = list(timeline)
    updated[slot_index - 1] = replace(target, choice=choice, result=outcome_type)
    return tuple(updated)


def format_timeline(timeline: Sequence[TimelineSlot]) -> str:
    lines = []
    for slot in timeline:
        status = f"{slot.choice or '-'} -> {slot.result}" if slot.resolved else "pendente"
        lines.append(f"{slot.slot}. {slot.tag} [{status}]")
    return "\n".join(lines)
