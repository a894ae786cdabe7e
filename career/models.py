"""Data models for the career engine: profile, timeline, choices, responses."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

ATTRIBUTE_KEYS = (
    "speed",
    "physical",
    "shooting",
    "heading",
    "charisma",
    "passing",
    "defense",
)

OUTCOME_TYPES = ("POSITIVO", "NEGATIVO", "NEUTRO", "DECISIVO", "ESTRATÉGICO")

# Outcome severity, used to break ties when summarising a week.
_OUTCOME_RANK = {
    "DECISIVO": 4,
    "ESTRATÉGICO": 3,
    "POSITIVO": 2,
    "NEUTRO": 1,
    "NEGATIVO": 0,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def outcome_rank(outcome_type: str) -> int:
    return _OUTCOME_RANK.get(outcome_type, 1)


@dataclass(frozen=True)
class Attributes:
    speed: int = 5
    physical: int = 5
    shooting: int = 5
    heading: int = 5
    charisma: int = 5
    passing: int = 5
    defense: int = 5

    def get(self, key: str) -> int:
        if key not in ATTRIBUTE_KEYS:
            raise KeyError(f"Unknown attribute: {key}")
        return getattr(self, key)

    def with_value(self, key: str, value: int) -> Attributes:
        if key not in ATTRIBUTE_KEYS:
            raise KeyError(f"Unknown attribute: {key}")
        return replace(self, **{key: value})

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> Attributes:
        data = data or {}
        return cls(**{k: max(1, _as_int(data.get(k), 5)) for k in ATTRIBUTE_KEYS})


@dataclass(frozen=True)
class PlayerProfile:
    """Identity is fixed at creation; attributes change only via leveling."""

    name: str
    age: int
    nationality: str
    position: str
    start_club: str = ""
    created_at: str = ""
    attributes: Attributes = field(default_factory=Attributes)

    def with_attribute(self, key: str, value: int) -> PlayerProfile:
        return replace(self, attributes=self.attributes.with_value(key, value))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["attributes"] = self.attributes.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> PlayerProfile:
        return cls(
            name=str(data.get("name", "")),
            age=_as_int(data.get("age"), 18),
            nationality=str(data.get("nationality", "")),
            position=str(data.get("position", "")),
            start_club=str(data.get("start_club", data.get("startClub", "")) or ""),
            created_at=str(data.get("created_at", data.get("createdAt", "")) or ""),
            attributes=Attributes.from_dict(data.get("attributes")),
        )


@dataclass(frozen=True)
class TimelineSlot:
    slot: int
    type: str
    sub_type: str | None = None
    choice: str | None = None
    result: str | None = None

    @property
    def resolved(self) -> bool:
        return self.result is not None

    @property
    def tag(self) -> str:
        return f"{self.type}:{self.sub_type}" if self.sub_type else self.type

    @classmethod
    def from_dict(cls, data: dict) -> TimelineSlot:
        return cls(
            slot=_as_int(data.get("slot"), 1),
            type=str(data.get("type", "")),
            sub_type=data.get("sub_type", data.get("subType")),
            choice=data.get("choice"),
            result=data.get("result"),
        )


@dataclass(frozen=True)
class Outcome:
    type: str
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> Outcome | None:
        if not data:
            return None
        outcome_type = str(data.get("type", "NEUTRO")).upper()
        if outcome_type not in OUTCOME_TYPES:
            outcome_type = "NEUTRO"
        return cls(type=outcome_type, message=str(data.get("message", "") or ""))


@dataclass(frozen=True)
class Options:
    a: str
    b: str

    def label(self, key: str) -> str | None:
        key = key.strip().upper()
        if key == "A":
            return self.a
        if key == "B":
            return self.b
        return None

    @classmethod
    def from_dict(cls, data: dict | None) -> Options | None:
        if not data:
            return None
        a = data.get("a", data.get("A", data.get("labelA", "")))
        b = data.get("b", data.get("B", data.get("labelB", "")))
        return cls(a=str(a or ""), b=str(b or ""))


@dataclass(frozen=True)
class MatchStats:
    goals: int = 0
    assists: int = 0
    key_defenses: int = 0
    rating: float = 0.0

    @property
    def empty(self) -> bool:
        return not (self.goals or self.assists or self.key_defenses or self.rating)

    @classmethod
    def from_dict(cls, data: dict | None) -> MatchStats | None:
        if not data:
            return None
        return cls(
            goals=_as_int(data.get("goals")),
            assists=_as_int(data.get("assists")),
            key_defenses=_as_int(data.get("key_defenses", data.get("keyDefenses"))),
            rating=float(data.get("rating", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class AttributeImprovement:
    name: str
    old_value: int
    new_value: int
    cost: int = 0

    @classmethod
    def from_dict(cls, data: dict | None) -> AttributeImprovement | None:
        if not data:
            return None
        return cls(
            name=str(data.get("name", "")),
            old_value=_as_int(data.get("old_value", data.get("oldValue"))),
            new_value=_as_int(data.get("new_value", data.get("newValue"))),
            cost=_as_int(data.get("cost")),
        )


@dataclass
class CareerStats:
    matches: int = 0
    goals: int = 0
    assists: int = 0
    key_defenses: int = 0
    age: int = 18
    followers: int = 100

    @property
    def activity(self) -> int:
        return self.matches + self.goals + self.assists + self.key_defenses

    @classmethod
    def from_dict(cls, data: dict | None) -> CareerStats:
        data = data or {}
        return cls(
            matches=_as_int(data.get("matches")),
            goals=_as_int(data.get("goals")),
            assists=_as_int(data.get("assists")),
            key_defenses=_as_int(data.get("key_defenses", data.get("keyDefenses"))),
            age=_as_int(data.get("age"), 18),
            followers=_as_int(data.get("followers"), 100),
        )


@dataclass
class SeasonStats:
    goals: int = 0
    assists: int = 0
    appearances: int = 0
    total_rating: float = 0.0
    average_rating: float = 0.0

    def add(self, stats: MatchStats, appeared: bool) -> None:
        self.goals += stats.goals
        self.assists += stats.assists
        if appeared:
            self.appearances += 1
            self.total_rating += stats.rating
        self.average_rating = self.total_rating / self.appearances if self.appearances else 0.0

    @classmethod
    def from_dict(cls, data: dict | None) -> SeasonStats:
        data = data or {}
        return cls(
            goals=_as_int(data.get("goals")),
            assists=_as_int(data.get("assists")),
            appearances=_as_int(data.get("appearances")),
            total_rating=float(data.get("total_rating", 0.0) or 0.0),
            average_rating=float(data.get("average_rating", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class Choice:
    """Immutable log entry for one decision the player made."""

    id: int
    event: str
    choice: str | None
    timestamp: str = field(default_factory=_now_iso)
    narrative: str = ""
    options: Options | None = None
    outcome: Outcome | None = None
    timeline: tuple[TimelineSlot, ...] = ()
    xp_gain: int = 0
    attribute_focus: str | None = None
    match_stats: MatchStats | None = None
    attribute_improved: AttributeImprovement | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timeline"] = [asdict(slot) for slot in self.timeline]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Choice:
        return cls(
            id=_as_int(data.get("id")),
            event=str(data.get("event", "")),
            choice=data.get("choice"),
            timestamp=str(data.get("timestamp", "") or _now_iso()),
            narrative=str(data.get("narrative", "") or ""),
            options=Options.from_dict(data.get("options", data.get("nextEvent"))),
            outcome=Outcome.from_dict(data.get("outcome")),
            timeline=tuple(TimelineSlot.from_dict(s) for s in data.get("timeline") or []),
            xp_gain=_as_int(data.get("xp_gain", data.get("xpGain"))),
            attribute_focus=data.get("attribute_focus", data.get("attributeFocus")),
            match_stats=MatchStats.from_dict(data.get("match_stats", data.get("matchStats"))),
            attribute_improved=AttributeImprovement.from_dict(
                data.get("attribute_improved", data.get("attributeImproved"))
            ),
        )


@dataclass(frozen=True)
class GameResponse:
    """Everything the engine hands back for one step. All fields always present."""

    narrative: str
    options: Options
    outcome: Outcome | None = None
    timeline: tuple[TimelineSlot, ...] = ()
    match_stats: MatchStats = field(default_factory=MatchStats)
    xp_gain: int = 0
    attribute_focus: str | None = None
    attribute_improved: AttributeImprovement | None = None
    follower_delta: int = 0
    risk: str | None = None
    success: bool | None = None
    xp_banked: int = 0
    xp_pool: int = 0
    event: str = ""
    day_complete: bool = False
    week_complete: bool = False
    season_complete: bool = False
    fallback: bool = False
