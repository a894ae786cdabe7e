"""Club directory (SQLite) and player creation.

The starting club is drawn by tier: 5% elite, 10% good, 60% mid, 25% small.
If the country has no club of that tier any club from the country is used,
and if the country has none at all a synthetic "FC <country>" is returned.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from .attributes import default_attributes
from .models import Attributes, PlayerProfile

logger = logging.getLogger(__name__)

TIER_WEIGHTS = (
    ("elite", 0.05),
    ("good", 0.10),
    ("mid", 0.60),
    ("small", 0.25),
)

POSITIONS = ("GOL", "ZAG", "LAT", "VOL", "MEI", "ATA")
MIN_AGE, MAX_AGE = 16, 21
MIN_NAME, MAX_NAME = 3, 15

_SCHEMA = """
CREATE TABLE IF NOT EXISTS teams (
    name TEXT NOT NULL,
    country TEXT NOT NULL,
    division TEXT,
    tier TEXT,              -- "elite" | "good" | "mid" | "small"
    PRIMARY KEY (name, country)
);
"""

# name, country, division, tier
DEFAULT_TEAMS: tuple[tuple[str, str, str, str], ...] = (
    ("Flamengo", "BR", "Série A", "elite"),
    ("Palmeiras", "BR", "Série A", "elite"),
    ("Bahia", "BR", "Série A", "good"),
    ("Avaí", "BR", "Série B", "mid"),
    ("Ponte Preta", "BR", "Série B", "mid"),
    ("Ypiranga", "BR", "Série C", "small"),
    ("LA Galaxy", "US", "MLS", "good"),
    ("LA Galaxy II", "US", "MLS Next Pro", "mid"),
    ("Paris Saint-Germain", "FR", "Ligue 1", "elite"),
    ("Sochaux", "FR", "Ligue 2", "mid"),
    ("FC Ryukyu", "JP", "J2", "mid"),
    ("Boca Juniors", "AR", "Primera División", "elite"),
    ("Aldosivi", "AR", "Primera B", "mid"),
    ("Málaga", "ES", "Segunda División", "mid"),
    ("Dynamo Dresden", "DE", "3. Liga", "mid"),
    ("Pescara", "IT", "Serie C", "mid"),
)


class ProfileError(ValueError):
    """Raised when player creation input is invalid."""


@dataclass(frozen=True)
class Team:
    name: str
    division: str = ""
    country: str = ""
    tier: str = ""


def draw_tier(rng: random.Random | None = None) -> str:
    """Cumulative-probability draw over the tier weights."""
    roll = (rng or random.Random()).random()
    cumulative = 0.0
    for tier, weight in TIER_WEIGHTS:
        cumulative += weight
        if roll < cumulative:
            return tier
    return TIER_WEIGHTS[-1][0]


class TeamDirectory:
    """Async lookup of clubs by country and tier."""

    def __init__(self, db_path: str | Path):
        self._path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        if str(self._path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.debug("Team directory ready at %s", self._path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()

    async def __aenter__(self) -> TeamDirectory:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def add_teams(self, rows: tuple[tuple[str, str, str, str], ...] | list) -> int:
        await self._db.executemany(
            "INSERT OR IGNORE INTO teams (name, country, division, tier) VALUES (?, ?, ?, ?)",
            list(rows),
        )
        await self._db.commit()
        return len(rows)

    async def seed_defaults(self) -> None:
        cursor = await self._db.execute("SELECT COUNT(*) FROM teams")
        row = await cursor.fetchone()
        if row and row[0]:
            return
        await self.add_teams(DEFAULT_TEAMS)
        logger.info("Seeded %d default teams", len(DEFAULT_TEAMS))

    async def _teams(self, country: str, tier: str | None = None) -> list[Team]:
        query = "SELECT name, division, country, tier FROM teams WHERE country = ?"
        params: list[Any] = [country.upper()]
        if tier:
            query += " AND tier = ?"
            params.append(tier)
        cursor = await self._db.execute(query + " ORDER BY name", tuple(params))
        rows = await cursor.fetchall()
        return [Team(name=r[0], division=r[1] or "", country=r[2], tier=r[3] or "") for r in rows]

    async def random_team(
        self,
        country: str,
        tier: str | None = None,
        rng: random.Random | None = None,
    ) -> Team | None:
        teams = await self._teams(country, tier)
        if not teams:
            return None
        return (rng or random.Random()).choice(teams)

    async def assign_start_club(self, country: str, rng: random.Random | None = None) -> Team:
        rng = rng or random.Random()
        tier = draw_tier(rng)
        team = await self.random_team(country, tier, rng)
        if team is None:
            logger.info("No %s club in %s; falling back to any club", tier, country)
            team = await self.random_team(country, None, rng)
        if team is None:
            logger.info("No club registered for %s; using synthetic club", country)
            team = Team(name=f"FC {country.upper()}", country=country.upper())
        return team


def create_profile(
    name: str,
    age: int,
    nationality: str,
    position: str,
    start_club: str,
    attributes: Attributes | None = None,
) -> PlayerProfile:
    name = (name or "").strip()
    if not MIN_NAME <= len(name) <= MAX_NAME:
        raise ProfileError(f"Name must have {MIN_NAME}-{MAX_NAME} characters")
    if not MIN_AGE <= int(age) <= MAX_AGE:
        raise ProfileError(f"Age must be between {MIN_AGE} and {MAX_AGE}")
    position = (position or "").strip().upper()
    if position not in POSITIONS:
        raise ProfileError(f"Unknown position: {position}")
    nationality = (nationality or "").strip().upper()
    if not nationality:
        raise ProfileError("Nationality is required")

    return PlayerProfile(
        name=name,
        age=int(age),
        nationality=nationality,
        position=position,
        start_club=start_club,
        created_at=datetime.now(timezone.utc).isoformat(),
        attributes=attributes or default_attributes(position),
    )
