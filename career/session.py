"""Session state for one local career.

The engine never owns persistence: it reads what it needs through the
``SessionStore`` interface and ``CareerGame`` writes results back.

``InMemorySessionStore`` keeps everything in a ``SessionState`` object;
``JsonSessionStore`` additionally saves it to a JSON file after every write.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .models import (
    Attributes,
    CareerStats,
    Choice,
    Options,
    PlayerProfile,
    SeasonStats,
    TimelineSlot,
)

logger = logging.getLogger(__name__)

STARTING_FOLLOWERS = 100


class SessionError(Exception):
    """Raised when the session is used before a career exists."""


class SessionStore(Protocol):
    def get_profile(self) -> PlayerProfile | None: ...
    def set_profile(self, profile: PlayerProfile) -> None: ...
    def update_attribute(self, attribute: str, value: int) -> None: ...
    def get_choice_log(self) -> list[Choice]: ...
    def append_choice(self, entry: Choice) -> None: ...
    def get_career_stats(self) -> CareerStats: ...
    def update_career_stats(self, delta: dict[str, int]) -> CareerStats: ...
    def increment_age(self) -> None: ...
    def get_season_stats(self) -> SeasonStats: ...
    def set_season_stats(self, stats: SeasonStats) -> None: ...
    def get_xp_pool(self) -> int: ...
    def add_xp(self, amount: int) -> int: ...
    def get_attribute_focus(self) -> str | None: ...
    def set_attribute_focus(self, attribute: str | None) -> None: ...
    def get_screen(self) -> tuple[str, Options | None]: ...
    def set_screen(self, narrative: str, options: Options | None) -> None: ...
    def get_day_timeline(self) -> tuple[TimelineSlot, ...]: ...
    def set_day_timeline(self, timeline: tuple[TimelineSlot, ...]) -> None: ...
    def get_season_timeline(self) -> tuple[TimelineSlot, ...]: ...
    def set_season_timeline(self, timeline: tuple[TimelineSlot, ...]) -> None: ...
    def get_week_count(self) -> int: ...
    def set_week_count(self, weeks: int) -> None: ...
    def reset(self) -> None: ...


@dataclass
class SessionState:
    """Everything a career needs between turns - serialized to JSON."""

    profile: PlayerProfile | None = None
    choice_log: list[Choice] = field(default_factory=list)
    career_stats: CareerStats = field(default_factory=CareerStats)
    season_stats: SeasonStats = field(default_factory=SeasonStats)
    xp_pool: int = 0
    attribute_focus: str | None = None
    current_narrative: str = ""
    next_options: Options | None = None
    day_timeline: tuple[TimelineSlot, ...] = ()
    season_timeline: tuple[TimelineSlot, ...] = ()
    week_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict() if self.profile else None,
            "choice_log": [c.to_dict() for c in self.choice_log],
            "career_stats": vars(self.career_stats).copy(),
            "season_stats": vars(self.season_stats).copy(),
            "xp_pool": self.xp_pool,
            "attribute_focus": self.attribute_focus,
            "current_narrative": self.current_narrative,
            "next_options": {"a": self.next_options.a, "b": self.next_options.b} if self.next_options else None,
            "day_timeline": [vars(s).copy() for s in self.day_timeline],
            "season_timeline": [vars(s).copy() for s in self.season_timeline],
            "week_count": self.week_count,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SessionState:
        profile = raw.get("profile")
        return cls(
            profile=PlayerProfile.from_dict(profile) if profile else None,
            choice_log=[Choice.from_dict(c) for c in raw.get("choice_log") or []],
            career_stats=CareerStats.from_dict(raw.get("career_stats")),
            season_stats=SeasonStats.from_dict(raw.get("season_stats")),
            xp_pool=int(raw.get("xp_pool", 0) or 0),
            attribute_focus=raw.get("attribute_focus"),
            current_narrative=str(raw.get("current_narrative", "") or ""),
            next_options=Options.from_dict(raw.get("next_options")),
            day_timeline=tuple(TimelineSlot.from_dict(s) for s in raw.get("day_timeline") or []),
            season_timeline=tuple(TimelineSlot.from_dict(s) for s in raw.get("season_timeline") or []),
            week_count=int(raw.get("week_count", 0) or 0),
        )


class InMemorySessionStore:
    """Session store that lives as long as the process."""

    def __init__(self, state: SessionState | None = None):
        self._state = state or SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    def _changed(self) -> None:
        """Hook for subclasses that persist."""

    # ── Profile ─────────────────────────────────────────────────

    def get_profile(self) -> PlayerProfile | None:
        return self._state.profile

    def require_profile(self) -> PlayerProfile:
        if self._state.profile is None:
            raise SessionError("No career in progress - create a player first")
        return self._state.profile

    def set_profile(self, profile: PlayerProfile) -> None:
        self._state.profile = profile
        self._state.career_stats = CareerStats(age=profile.age, followers=STARTING_FOLLOWERS)
        self._changed()

    def update_attribute(self, attribute: str, value: int) -> None:
        profile = self.require_profile()
        self._state.profile = profile.with_attribute(attribute, value)
        self._changed()

    # ── Choice log ──────────────────────────────────────────────

    def get_choice_log(self) -> list[Choice]:
        return list(self._state.choice_log)

    def append_choice(self, entry: Choice) -> None:
        self._state.choice_log.append(entry)
        self._changed()

    # ── Stats ───────────────────────────────────────────────────

    def get_career_stats(self) -> CareerStats:
        stats = self._state.career_stats
        return CareerStats(**vars(stats))

    def update_career_stats(self, delta: dict[str, int]) -> CareerStats:
        stats = self._state.career_stats
        stats.matches += int(delta.get("matches", 0))
        stats.goals += int(delta.get("goals", 0))
        stats.assists += int(delta.get("assists", 0))
        stats.key_defenses += int(delta.get("key_defenses", 0))
        stats.followers = max(0, stats.followers + int(delta.get("followers", 0)))
        self._changed()
        return self.get_career_stats()

    def increment_age(self) -> None:
        self._state.career_stats.age += 1
        self._changed()

    def get_season_stats(self) -> SeasonStats:
        return SeasonStats(**vars(self._state.season_stats))

    def set_season_stats(self, stats: SeasonStats) -> None:
        self._state.season_stats = stats
        self._changed()

    # ── XP ──────────────────────────────────────────────────────

    def get_xp_pool(self) -> int:
        return self._state.xp_pool

    def add_xp(self, amount: int) -> int:
        self._state.xp_pool = max(0, self._state.xp_pool + amount)
        self._changed()
        return self._state.xp_pool

    def get_attribute_focus(self) -> str | None:
        return self._state.attribute_focus

    def set_attribute_focus(self, attribute: str | None) -> None:
        if attribute is not None and attribute not in Attributes.__dataclass_fields__:
            raise ValueError(f"Unknown attribute: {attribute}")
        self._state.attribute_focus = attribute
        self._changed()

    # ── Screen and calendar ─────────────────────────────────────

    def get_screen(self) -> tuple[str, Options | None]:
        return self._state.current_narrative, self._state.next_options

    def set_screen(self, narrative: str, options: Options | None) -> None:
        self._state.current_narrative = narrative
        self._state.next_options = options
        self._changed()

    def get_day_timeline(self) -> tuple[TimelineSlot, ...]:
        return self._state.day_timeline

    def set_day_timeline(self, timeline: tuple[TimelineSlot, ...]) -> None:
        self._state.day_timeline = tuple(timeline)
        self._changed()

    def get_season_timeline(self) -> tuple[TimelineSlot, ...]:
        return self._state.season_timeline

    def set_season_timeline(self, timeline: tuple[TimelineSlot, ...]) -> None:
        self._state.season_timeline = tuple(timeline)
        self._changed()

    def get_week_count(self) -> int:
        return self._state.week_count

    def set_week_count(self, weeks: int) -> None:
        self._state.week_count = weeks
        self._changed()

    def reset(self) -> None:
        self._state = SessionState()
        self._changed()
        logger.info("Career reset")


class JsonSessionStore(InMemorySessionStore):
    """Session store saved to a JSON file after every change."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        super().__init__(self._load())

    def _load(self) -> SessionState:
        if self._path.exists():
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            state = SessionState.from_dict(raw)
            logger.debug("Loaded session from %s (%d choices)", self._path, len(state.choice_log))
            return state
        logger.info("No saved career at %s", self._path)
        return SessionState()

    def _changed(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._state.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.debug("Saved session to %s", self._path)
