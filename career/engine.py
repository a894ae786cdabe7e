"""Career progression engine - turns a choice into the next narrated step.

Per choice: locate the slot -> classify risk and attribute -> draw the
outcome -> compose the prompt -> narrate (one bounded retry) -> merge the
mechanical and narrative results into a GameResponse.

Completion failures never escape: they become canned fallbacks so the
player always has a next step. Inconsistent timelines are programming
errors and are raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from completion.client import CompletionService
from narrative.interpreter import (
    Interpretation,
    colorize,
    fallback,
    fallback_options,
    interpret,
    is_too_similar,
    with_retry,
)
from narrative.outcome import Resolution, resolve
from narrative.progression import (
    MATCH_TYPES,
    close_week,
    closes_week,
    follower_delta,
    match_stats_from_narrative,
    xp_for,
)
from narrative.prompts import WEEK_SUB_EVENTS, Prompt, PromptComposer
from narrative.risk import classify_risk, relevant_attribute

from .attributes import bank_xp, level_up
from .models import CareerStats, Choice, GameResponse, MatchStats, Options, Outcome, PlayerProfile, TimelineSlot
from .timeline import (
    SLOTS_PER_DAY,
    WEEKS_PER_SEASON,
    SlotAccessError,
    advance_slot,
    apply_choice,
    generate_day,
    generate_week,
    next_slot,
    resolved_count,
)

logger = logging.getLogger(__name__)

MODE_DAY = "day"
MODE_WEEK = "week"

OUTCOME_MESSAGES = {
    "DECISIVO": "Você decidiu o momento!",
    "POSITIVO": "Boa escolha, o esforço foi notado.",
    "ESTRATÉGICO": "Uma escolha inteligente que vai render frutos.",
    "NEUTRO": "Nada mudou muito desta vez.",
    "NEGATIVO": "A escolha saiu pela culatra.",
}

# Chance that a simulated sub-event is played with its bold option.
BOLD_APPROACH_CHANCE = 0.4

# Day slot whose default attribute applies to each non-match week sub-event.
_WEEK_EVENT_SLOTS = {
    "TREINO_FISICO": 1,
    "COLETIVA_IMPRENSA": 2,
    "POS_JOGO": 3,
}


class TimelineMismatchError(Exception):
    """Raised when the timeline handed in does not match the choice log."""


@dataclass
class EngineSettings:
    timeline_mode: str = MODE_DAY
    days_per_week: int = 2
    similarity_threshold: float = 0.4
    similarity_window: int = 5
    timeout_seconds: float = 12.0
    drain_xp: bool = False
    potentials: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: dict) -> EngineSettings:
        engine = cfg.get("engine", {})
        llm = cfg.get("llm", {})
        mode = str(engine.get("timeline_mode", MODE_DAY)).lower()
        if mode not in {MODE_DAY, MODE_WEEK}:
            raise ValueError(f"Unknown timeline_mode: {mode}")
        return cls(
            timeline_mode=mode,
            days_per_week=int(engine.get("days_per_week", 2)),
            similarity_threshold=float(engine.get("similarity_threshold", 0.4)),
            similarity_window=int(engine.get("similarity_window", 5)),
            timeout_seconds=float(llm.get("timeout_seconds", 12.0)),
            drain_xp=bool(engine.get("drain_xp", False)),
            potentials={k: int(v) for k, v in (engine.get("potential") or {}).items()},
        )


class CareerProgressionEngine:
    """Stateless orchestrator; every call receives the full prior state."""

    def __init__(
        self,
        completion: CompletionService,
        composer: PromptComposer | None = None,
        settings: EngineSettings | None = None,
        rng: random.Random | None = None,
    ):
        self._completion = completion
        self._composer = composer or PromptComposer()
        self._settings = settings or EngineSettings()
        self._rng = rng or random.Random()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # ── Narration ───────────────────────────────────────────────

    async def _complete(self, prompt: Prompt) -> str:
        completion = await asyncio.wait_for(
            self._completion.complete(prompt.messages, prompt.options),
            timeout=self._settings.timeout_seconds,
        )
        return completion.content

    async def _narrate(
        self,
        prompt: Prompt,
        profile: PlayerProfile,
        previous: Sequence[str],
        expect_outcome: bool = True,
    ) -> Interpretation:
        """One completion plus at most one retry when the text repeats itself."""
        attempts: list[tuple[Interpretation, str]] = []

        async def call(p: Prompt) -> tuple[Interpretation, str]:
            try:
                raw = await self._complete(p)
            except asyncio.TimeoutError:
                logger.warning("Completion for %s timed out; using fallback", p.slot_type)
                result = (fallback(p.slot_type, profile, outcome=expect_outcome), "")
            except Exception as exc:
                logger.warning("Completion for %s failed: %s", p.slot_type, exc)
                result = (fallback(p.slot_type, profile, outcome=expect_outcome), "")
            else:
                result = (interpret(raw, p.slot_type, profile, expect_outcome), raw)
            attempts.append(result)
            return result

        def accept(result: tuple[Interpretation, str]) -> bool:
            interp = result[0]
            if interp.fallback:
                return True
            if is_too_similar(
                interp.narrative,
                previous,
                threshold=self._settings.similarity_threshold,
                window=self._settings.similarity_window,
            ):
                logger.warning("Narrative for %s too similar to recent ones", prompt.slot_type)
                return False
            return True

        interp, raw = await with_retry(
            call,
            prompt,
            accept,
            lambda p, _attempt: p.retry(self._composer.retry_temperature),
            max_attempts=2,
        )

        # A retry that came back as unparsable text is still used as prose.
        if len(attempts) > 1 and interp.fallback and raw.strip():
            first = attempts[0][0]
            return Interpretation(
                narrative=raw.strip(),
                options=first.options,
                outcome=first.outcome,
                attribute_focus=first.attribute_focus,
            )
        return interp

    # ── Helpers ─────────────────────────────────────────────────

    def _current_day(
        self,
        choice_log: Sequence[Choice],
        timeline: Sequence[TimelineSlot] | None,
    ) -> tuple[TimelineSlot, ...]:
        in_day = len(choice_log) % SLOTS_PER_DAY

        if timeline is not None and len(timeline) == SLOTS_PER_DAY:
            done = resolved_count(timeline)
            if done == SLOTS_PER_DAY and in_day == 0:
                return generate_day(self._rng)
            if done != in_day:
                raise TimelineMismatchError(
                    f"Timeline has {done} resolved slots but the log implies {in_day}"
                )
            return tuple(timeline)

        if in_day == 0:
            return generate_day(self._rng)

        snapshot = choice_log[-1].timeline
        if len(snapshot) == SLOTS_PER_DAY and resolved_count(snapshot) == in_day:
            return tuple(snapshot)

        # No usable snapshot: rebuild today's slots from the log.
        day = generate_day(self._rng)
        for index, entry in enumerate(choice_log[-in_day:], start=1):
            result = entry.outcome.type if entry.outcome else "NEUTRO"
            day = apply_choice(day, index, entry.choice, result)
        return day

    @staticmethod
    def _option_text(choice: str, offered: Options | None) -> tuple[str, str]:
        """Return (slot choice tag, option label) for a pick or free text."""
        key = (choice or "").strip()
        if key.upper() in {"A", "B"}:
            label = offered.label(key) if offered else None
            return key.upper(), label or f"Opção {key.upper()}"
        if not key:
            raise ValueError("Choice must be 'A', 'B' or free text")
        return key[:60], key

    @staticmethod
    def _merge_outcome(resolution: Resolution, interp: Interpretation) -> Outcome:
        outcome_type = resolution.outcome_type
        told = interp.outcome
        if (
            told is not None
            and told.type == "ESTRATÉGICO"
            and resolution.success
            and resolution.risk != "high"
        ):
            outcome_type = "ESTRATÉGICO"
        if told is not None and told.type == outcome_type and told.message and not interp.fallback:
            message = told.message
        else:
            message = OUTCOME_MESSAGES[outcome_type]
        return Outcome(type=outcome_type, message=message)

    # ── Public operations ───────────────────────────────────────

    async def start_career(self, profile: PlayerProfile) -> GameResponse:
        if self._settings.timeline_mode == MODE_WEEK:
            timeline = generate_week()
        else:
            timeline = generate_day(self._rng)
        prompt = self._composer.intro(profile, timeline)
        interp = await self._narrate(prompt, profile, (), expect_outcome=False)
        logger.info("Career started for %s at %s", profile.name, profile.start_club)
        return GameResponse(
            narrative=colorize(interp.narrative, None),
            options=interp.options,
            outcome=None,
            timeline=timeline,
            attribute_focus=interp.attribute_focus,
            event="INTRO",
            fallback=interp.fallback,
        )

    async def resolve_choice(
        self,
        profile: PlayerProfile,
        choice_log: Sequence[Choice],
        choice: str,
        career_stats: CareerStats,
        *,
        shown: str = "",
        offered: Options | None = None,
        timeline: Sequence[TimelineSlot] | None = None,
        xp_pool: int = 0,
        attribute_focus: str | None = None,
        roll: float | None = None,
    ) -> GameResponse:
        day = self._current_day(choice_log, timeline)
        slot = next_slot(day)
        expected = advance_slot(len(choice_log) % SLOTS_PER_DAY)
        if slot is None or slot.slot != expected:
            raise TimelineMismatchError(f"Expected to resolve slot {expected}, timeline disagrees")

        choice_tag, option_text = self._option_text(choice, offered)
        risk = classify_risk(option_text)
        attribute = relevant_attribute(option_text, slot.slot)
        resolution = resolve(
            attribute,
            profile.attributes.get(attribute),
            risk,
            rng=self._rng,
            roll=roll,
        )
        updated = apply_choice(day, slot.slot, choice_tag, resolution.outcome_type)
        upcoming = next_slot(updated)
        logger.info(
            "Slot %d (%s): %r risk=%s attr=%s p=%.2f roll=%.2f -> %s",
            slot.slot,
            slot.tag,
            option_text[:40],
            risk,
            attribute,
            resolution.probability,
            resolution.roll,
            resolution.outcome_type,
        )

        prompt = self._composer.choice(
            profile,
            choice_log,
            updated,
            career_stats,
            slot,
            option_text,
            resolution,
            upcoming,
            offered=offered,
        )
        # The screen being answered is not in the log yet.
        previous = [c.narrative for c in choice_log]
        if shown:
            previous.append(shown)
        interp = await self._narrate(prompt, profile, previous)
        outcome = self._merge_outcome(resolution, interp)

        if slot.type in MATCH_TYPES:
            match_stats = match_stats_from_narrative(interp.narrative, outcome.type, resolution.multiplier)
        else:
            match_stats = MatchStats()

        xp_gain = xp_for(resolution.success, resolution.multiplier)
        xp_banked = bank_xp(xp_gain, career_stats.age)
        focus = attribute_focus or interp.attribute_focus or resolution.attribute
        _, pool, improvement = level_up(
            profile,
            focus,
            xp_pool + xp_banked,
            potentials=self._settings.potentials,
            drain=self._settings.drain_xp,
        )
        multiplier = resolution.multiplier if resolution.success else 1.0

        return GameResponse(
            narrative=colorize(interp.narrative, outcome.type),
            options=interp.options,
            outcome=outcome,
            timeline=updated,
            match_stats=match_stats,
            xp_gain=xp_gain,
            attribute_focus=focus,
            attribute_improved=improvement,
            follower_delta=follower_delta(outcome.type, slot.sub_type, multiplier),
            risk=risk,
            success=resolution.success,
            xp_banked=xp_banked,
            xp_pool=pool,
            event=slot.tag,
            day_complete=upcoming is None,
            week_complete=closes_week(len(choice_log) + 1, self._settings.days_per_week),
            fallback=interp.fallback,
        )

    def _plan_week_event(self, profile: PlayerProfile, event_type: str, sub_type: str) -> tuple[str, Resolution]:
        """Pick the player's approach to a simulated sub-event and draw its result."""
        options = fallback_options(sub_type)
        approach = options.b if self._rng.random() < BOLD_APPROACH_CHANCE else options.a
        slot = SLOTS_PER_DAY if event_type in MATCH_TYPES else _WEEK_EVENT_SLOTS.get(sub_type, 1)
        risk = classify_risk(approach)
        attribute = relevant_attribute(approach, slot)
        resolution = resolve(attribute, profile.attributes.get(attribute), risk, rng=self._rng)
        logger.debug(
            "%s:%s %r risk=%s attr=%s p=%.2f -> %s",
            event_type,
            sub_type,
            approach,
            risk,
            attribute,
            resolution.probability,
            resolution.outcome_type,
        )
        return approach, resolution

    async def advance_week(
        self,
        profile: PlayerProfile,
        timeline: Sequence[TimelineSlot],
        *,
        choice_log: Sequence[Choice] = (),
        career_stats: CareerStats | None = None,
        shown: str = "",
        offered: Options | None = None,
        xp_pool: int = 0,
        attribute_focus: str | None = None,
    ) -> list[GameResponse]:
        """Simulate one season week as five concurrent sub-events.

        Every sub-event is resolved mechanically before it is narrated, exactly
        like a slot choice; the narrator only dresses the drawn result.
        """
        if len(timeline) != WEEKS_PER_SEASON:
            raise SlotAccessError(f"Season timeline must have {WEEKS_PER_SEASON} slots, got {len(timeline)}")
        slot = next_slot(timeline)
        if slot is None:
            raise SlotAccessError("Season is already complete", slot_index=WEEKS_PER_SEASON + 1)

        stats = career_stats or CareerStats(age=profile.age)
        previous = [c.narrative for c in choice_log]
        if shown:
            previous.append(shown)
        plans = [self._plan_week_event(profile, event_type, sub_type) for event_type, sub_type in WEEK_SUB_EVENTS]
        prompts = [
            self._composer.week_event(
                profile,
                choice_log,
                timeline,
                stats,
                event_type,
                sub_type,
                slot.slot,
                approach=approach,
                resolution=resolution,
                offered=offered,
            )
            for (event_type, sub_type), (approach, resolution) in zip(WEEK_SUB_EVENTS, plans)
        ]
        results = await asyncio.gather(*(self._narrate(p, profile, previous) for p in prompts))

        outcomes = [self._merge_outcome(resolution, interp) for (_, resolution), interp in zip(plans, results)]
        season, week_outcome, season_complete = close_week(timeline, [o.type for o in outcomes])
        logger.info("Week %d closed as %s (season complete: %s)", slot.slot, week_outcome, season_complete)

        responses: list[GameResponse] = []
        current = profile
        pool = xp_pool
        for (event_type, sub_type), (_, resolution), interp, outcome in zip(WEEK_SUB_EVENTS, plans, results, outcomes):
            if event_type in MATCH_TYPES:
                match_stats = match_stats_from_narrative(interp.narrative, outcome.type, resolution.multiplier)
            else:
                match_stats = MatchStats()
            xp_gain = xp_for(resolution.success, resolution.multiplier)
            xp_banked = bank_xp(xp_gain, stats.age)
            focus = attribute_focus or interp.attribute_focus or resolution.attribute
            current, pool, improvement = level_up(
                current,
                focus,
                pool + xp_banked,
                potentials=self._settings.potentials,
                drain=self._settings.drain_xp,
            )
            multiplier = resolution.multiplier if resolution.success else 1.0
            responses.append(
                GameResponse(
                    narrative=colorize(interp.narrative, outcome.type),
                    options=interp.options,
                    outcome=outcome,
                    timeline=season,
                    match_stats=match_stats,
                    xp_gain=xp_gain,
                    attribute_focus=focus,
                    attribute_improved=improvement,
                    follower_delta=follower_delta(outcome.type, sub_type, multiplier),
                    risk=resolution.risk,
                    success=resolution.success,
                    xp_banked=xp_banked,
                    xp_pool=pool,
                    event=f"{event_type}:{sub_type}",
                    week_complete=True,
                    season_complete=season_complete,
                    fallback=interp.fallback,
                )
            )
        return responses
