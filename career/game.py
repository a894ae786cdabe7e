"""CareerGame - applies engine output to the session store.

The engine only computes; this layer appends the choice log, banks XP,
levels attributes, accumulates career and season stats and rolls the
day / week / season calendar.
"""

from __future__ import annotations

import logging
import random

from narrative.progression import close_week

from .clubs import Team, TeamDirectory, create_profile
from .engine import MODE_WEEK, CareerProgressionEngine
from .models import Choice, GameResponse, Options, PlayerProfile, SeasonStats
from .session import SessionError, SessionStore
from .timeline import SLOTS_PER_DAY, WEEKS_PER_SEASON, generate_week

logger = logging.getLogger(__name__)


class CareerGame:
    """One local single-player career."""

    def __init__(
        self,
        engine: CareerProgressionEngine,
        store: SessionStore,
        teams: TeamDirectory | None = None,
        rng: random.Random | None = None,
    ):
        self._engine = engine
        self._store = store
        self._teams = teams
        self._rng = rng or random.Random()

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def started(self) -> bool:
        return self._store.get_profile() is not None

    def _profile(self) -> PlayerProfile:
        profile = self._store.get_profile()
        if profile is None:
            raise SessionError("No career in progress - create a player first")
        return profile

    async def new_career(
        self,
        name: str,
        age: int,
        nationality: str,
        position: str,
    ) -> GameResponse:
        if self._teams is not None:
            club = await self._teams.assign_start_club(nationality, self._rng)
        else:
            club = Team(name=f"FC {nationality.upper()}", country=nationality.upper())
        profile = create_profile(name, age, nationality, position, club.name)

        self._store.reset()
        self._store.set_profile(profile)
        response = await self._engine.start_career(profile)

        if len(response.timeline) == WEEKS_PER_SEASON:
            self._store.set_day_timeline(())
            self._store.set_season_timeline(response.timeline)
        else:
            self._store.set_day_timeline(response.timeline)
            self._store.set_season_timeline(generate_week())
        self._store.set_screen(response.narrative, response.options)
        logger.info("New career: %s (%s, %s) at %s", profile.name, profile.position, profile.nationality, club.name)
        return response

    async def choose(self, choice: str) -> GameResponse:
        """Resolve the player's pick ("A", "B" or free text) for the current slot."""
        if self._engine.settings.timeline_mode == MODE_WEEK:
            raise SessionError("This career simulates whole weeks; use advance_week()")
        profile = self._profile()
        log = self._store.get_choice_log()
        shown, offered = self._store.get_screen()

        response = await self._engine.resolve_choice(
            profile,
            log,
            choice,
            self._store.get_career_stats(),
            shown=shown,
            offered=offered,
            timeline=self._store.get_day_timeline() or None,
            xp_pool=self._store.get_xp_pool(),
            attribute_focus=self._store.get_attribute_focus(),
        )
        self._apply(response, choice, shown, offered, entry_id=len(log))
        self._store.set_day_timeline(response.timeline)

        if response.week_complete:
            per_week = SLOTS_PER_DAY * self._engine.settings.days_per_week
            week_log = self._store.get_choice_log()[-per_week:]
            self._close_week([c.outcome.type for c in week_log if c.outcome])
        return response

    async def advance_week(self) -> list[GameResponse]:
        profile = self._profile()
        season = self._store.get_season_timeline() or generate_week()
        shown, offered = self._store.get_screen()
        responses = await self._engine.advance_week(
            profile,
            season,
            choice_log=self._store.get_choice_log(),
            career_stats=self._store.get_career_stats(),
            shown=shown,
            offered=offered,
            xp_pool=self._store.get_xp_pool(),
            attribute_focus=self._store.get_attribute_focus(),
        )
        for response in responses:
            shown, offered = self._store.get_screen()
            self._apply(response, None, shown, offered, entry_id=len(self._store.get_choice_log()))

        last = responses[-1]
        self._store.set_season_timeline(last.timeline)
        self._store.set_week_count(self._store.get_week_count() + 1)
        if last.season_complete:
            self._new_season()
        return responses

    def _apply(
        self,
        response: GameResponse,
        choice: str | None,
        shown: str,
        offered: Options | None,
        entry_id: int,
    ) -> None:
        is_match = response.event.startswith("MICRO")
        entry = Choice(
            id=entry_id,
            event=response.event,
            choice=choice,
            narrative=shown,
            options=offered,
            outcome=response.outcome,
            timeline=response.timeline,
            xp_gain=response.xp_gain,
            attribute_focus=response.attribute_focus,
            match_stats=response.match_stats if is_match else None,
            attribute_improved=response.attribute_improved,
        )
        self._store.append_choice(entry)

        self._store.add_xp(response.xp_banked)
        improvement = response.attribute_improved
        if improvement is not None:
            self._store.update_attribute(improvement.name, improvement.new_value)
            self._store.add_xp(-improvement.cost)

        delta = {"followers": response.follower_delta}
        if is_match:
            stats = response.match_stats
            delta.update(
                matches=1,
                goals=stats.goals,
                assists=stats.assists,
                key_defenses=stats.key_defenses,
            )
            season = self._store.get_season_stats()
            season.add(stats, appeared=True)
            self._store.set_season_stats(season)
        self._store.update_career_stats(delta)
        self._store.set_screen(response.narrative, response.options)

    def _close_week(self, outcome_types: list[str]) -> None:
        season, result, complete = close_week(self._store.get_season_timeline() or generate_week(), outcome_types)
        self._store.set_season_timeline(season)
        self._store.set_week_count(self._store.get_week_count() + 1)
        logger.info("Week %d closed as %s", self._store.get_week_count(), result)
        if complete:
            self._new_season()

    def _new_season(self) -> None:
        self._store.increment_age()
        self._store.set_season_stats(SeasonStats())
        self._store.set_season_timeline(generate_week())
        logger.info("New season; player is now %d", self._store.get_career_stats().age)
