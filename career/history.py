"""Read-only views over a saved career: the paged choice history and the stats panel."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from narrative.prompts import follower_tier

from .models import CareerStats, Choice, SeasonStats

HISTORY_PAGE_SIZE = 5


@dataclass(frozen=True)
class HistoryPage:
    entries: tuple[Choice, ...]
    page: int  # 0-based
    pages: int
    first_number: int  # 1-based position of entries[0] in the whole log


def page_count(total: int, per_page: int = HISTORY_PAGE_SIZE) -> int:
    return max(1, math.ceil(total / max(1, per_page)))


def history_page(
    choice_log: Sequence[Choice],
    page: int = 0,
    per_page: int = HISTORY_PAGE_SIZE,
) -> HistoryPage:
    """Slice one page out of the log. Out-of-range pages clamp to the first/last one."""
    per_page = max(1, per_page)
    pages = page_count(len(choice_log), per_page)
    page = min(max(0, page), pages - 1)
    start = page * per_page
    return HistoryPage(
        entries=tuple(choice_log[start : start + per_page]),
        page=page,
        pages=pages,
        first_number=start + 1,
    )


def describe_choice(entry: Choice, number: int) -> list[str]:
    head = f"{number:>3}. {entry.event}"
    if entry.choice:
        head += f" | escolha: {entry.choice}"
    if entry.outcome is not None:
        head += f" | {entry.outcome.type}"
    lines = [head]
    if entry.outcome is not None and entry.outcome.message:
        lines.append(f"     {entry.outcome.message}")

    details = []
    if entry.xp_gain:
        details.append(f"+{entry.xp_gain} XP")
    improved = entry.attribute_improved
    if improved is not None:
        details.append(f"{improved.name} {improved.old_value} -> {improved.new_value}")
    stats = entry.match_stats
    if stats is not None and not stats.empty:
        details.append(f"gols {stats.goals}, assist. {stats.assists}, nota {stats.rating:.1f}")
    if details:
        lines.append("     " + ", ".join(details))
    return lines


def format_history(page: HistoryPage) -> str:
    if not page.entries:
        return "Nenhuma escolha registrada ainda."
    lines = [f"Histórico (página {page.page + 1} de {page.pages})"]
    for offset, entry in enumerate(page.entries):
        lines.extend(describe_choice(entry, page.first_number + offset))
    return "\n".join(lines)


def format_stats(
    career: CareerStats,
    season: SeasonStats,
    week_count: int = 0,
    xp_pool: int = 0,
) -> str:
    return "\n".join(
        [
            f"Idade {career.age} | {career.matches} jogos | {career.goals} gols | "
            f"{career.assists} assistências | {career.key_defenses} defesas importantes",
            f"Seguidores {career.followers} ({follower_tier(career.followers)})",
            f"Temporada: {season.appearances} jogos, {season.goals} gols, "
            f"{season.assists} assistências, nota média {season.average_rating:.2f}",
            f"Semanas jogadas {week_count} | XP acumulado {xp_pool}",
        ]
    )
