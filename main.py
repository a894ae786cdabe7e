"""Entry point for Campo 8-Bit, a narrative football career in the terminal.

Usage:
    python main.py --new               # Create a player and start a career
    python main.py                     # Resume the saved career
    python main.py --week              # Simulate whole season weeks
    python main.py --verbose --seed 7  # Debug logging, reproducible draws
    python main.py --history           # Stats and choice history of the saved career
"""

from __future__ import annotations

import asyncio
import logging
import random
import sys
from dataclasses import replace

import click

from career.clubs import MAX_AGE, MIN_AGE, POSITIONS, ProfileError, TeamDirectory
from career.config import load_config
from career.engine import MODE_WEEK, CareerProgressionEngine, EngineSettings
from career.game import CareerGame
from career.history import format_history, format_stats, history_page, page_count
from career.models import GameResponse, Options
from career.session import JsonSessionStore, SessionError, SessionStore
from career.timeline import format_timeline
from completion.client import build_completion_service
from narrative.prompts import PromptComposer

QUIT_WORDS = {"q", "quit", "sair"}
HISTORY_WORDS = {"h", "historico", "histórico"}
STATS_WORDS = {"s", "stats"}


def _setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=fmt, handlers=handlers)

    # Quiet down noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


def _show(response: GameResponse) -> None:
    if response.outcome is not None:
        click.echo(f"\n  [{response.outcome.type}] {response.outcome.message}")
    click.echo(f"\n{response.narrative}\n")
    if response.attribute_improved is not None:
        imp = response.attribute_improved
        click.echo(f"  + {imp.name}: {imp.old_value} -> {imp.new_value} ({imp.cost} XP)")
    if response.follower_delta:
        click.echo(f"  Seguidores: {response.follower_delta:+d}")


def _show_options(options: Options | None) -> None:
    if options is None:
        return
    click.echo(f"  A) {options.a}")
    click.echo(f"  B) {options.b}\n")


def _create_player() -> tuple[str, int, str, str]:
    name = click.prompt("Nome do jogador")
    age = click.prompt("Idade", type=click.IntRange(MIN_AGE, MAX_AGE))
    nationality = click.prompt("Nacionalidade (código do país, ex. BR)")
    position = click.prompt("Posição", type=click.Choice(POSITIONS, case_sensitive=False))
    return name, age, nationality, position


def _show_stats(store: SessionStore) -> None:
    click.echo(
        "\n"
        + format_stats(
            store.get_career_stats(),
            store.get_season_stats(),
            week_count=store.get_week_count(),
            xp_pool=store.get_xp_pool(),
        )
        + "\n"
    )


def _show_history(store: SessionStore, page: int | None = None) -> None:
    """Print one history page (1-based), or every page when ``page`` is None."""
    log = store.get_choice_log()
    if page is not None:
        click.echo("\n" + format_history(history_page(log, page - 1)) + "\n")
        return
    for index in range(page_count(len(log))):
        click.echo("\n" + format_history(history_page(log, index)))
    click.echo("")


def _handle_view_command(store: SessionStore, command: str) -> bool:
    """Run a history/stats command typed at a prompt. Returns False for anything else."""
    word, _, arg = command.strip().lower().partition(" ")
    if word in HISTORY_WORDS:
        page = int(arg) if arg.strip().isdigit() else 1
        _show_history(store, page)
        return True
    if word in STATS_WORDS and not arg:
        _show_stats(store)
        return True
    return False


async def _play_days(game: CareerGame, resume: bool) -> None:
    narrative, options = game.store.get_screen()
    if resume and narrative:
        click.echo(f"\n{narrative}\n")
    while True:
        _show_options(options)
        choice = click.prompt("Sua escolha (A/B, texto livre, h histórico, s stats, q para sair)").strip()
        if choice.lower() in QUIT_WORDS:
            return
        if _handle_view_command(game.store, choice):
            continue
        response = await game.choose(choice)
        options = response.options
        _show(response)
        if response.day_complete:
            click.echo("  Fim do dia.\n" + format_timeline(response.timeline))
        if response.week_complete:
            stats = game.store.get_career_stats()
            click.echo(f"  Semana encerrada. Seguidores: {stats.followers}, gols: {stats.goals}")


async def _play_weeks(game: CareerGame) -> None:
    while True:
        answer = click.prompt(
            "Avançar semana? (Enter para sim, h histórico, s stats, q para sair)",
            default="",
            show_default=False,
        )
        if answer.strip().lower() in QUIT_WORDS:
            return
        if _handle_view_command(game.store, answer):
            continue
        responses = await game.advance_week()
        for response in responses:
            click.echo(f"\n--- {response.event} ---")
            _show(response)
        stats = game.store.get_career_stats()
        click.echo(
            f"  Semana {game.store.get_week_count()} | idade {stats.age} | "
            f"jogos {stats.matches} | gols {stats.goals} | seguidores {stats.followers}"
        )


async def _run(cfg: dict, new: bool, week: bool, seed: int | None) -> None:
    rng = random.Random(seed)
    settings = EngineSettings.from_config(cfg)
    if week:
        settings = replace(settings, timeline_mode=MODE_WEEK)

    llm = cfg.get("llm", {})
    composer = PromptComposer(
        temperature=float(llm.get("temperature", 0.85)),
        retry_temperature=float(llm.get("retry_temperature", 1.0)),
        max_tokens=int(llm.get("max_tokens", 900)),
        anti_repetition_window=int(cfg.get("engine", {}).get("anti_repetition_window", 8)),
    )
    storage = cfg.get("storage", {})
    completion = build_completion_service(cfg)
    engine = CareerProgressionEngine(completion, composer=composer, settings=settings, rng=rng)
    store = JsonSessionStore(storage.get("state_file", "data/career.json"))

    try:
        async with TeamDirectory(storage.get("teams_db", "data/teams.db")) as teams:
            await teams.seed_defaults()
            game = CareerGame(engine, store, teams=teams, rng=rng)

            if new or not game.started:
                if not new:
                    click.echo("Nenhuma carreira salva. Vamos criar um jogador.\n")
                while True:
                    try:
                        response = await game.new_career(*_create_player())
                        break
                    except ProfileError as e:
                        click.echo(f"  {e}")
                click.echo(f"\n{response.narrative}\n")
                resume = False
            else:
                resume = True

            if settings.timeline_mode == MODE_WEEK:
                await _play_weeks(game)
            else:
                await _play_days(game, resume)
    finally:
        await completion.close()


@click.command()
@click.option("--new", is_flag=True, help="Create a new player, replacing the saved career")
@click.option("--week", is_flag=True, help="Simulate whole season weeks instead of playing days")
@click.option("--seed", type=int, default=None, help="Seed for reproducible outcome draws")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--config-dir", type=click.Path(), default=None, help="Config directory")
@click.option("--history", is_flag=True, help="Print the saved career's stats and choice history, then exit")
def main(
    new: bool,
    week: bool,
    seed: int | None,
    verbose: bool,
    config_dir: str | None,
    history: bool,
) -> None:
    """Campo 8-Bit - narrative football career."""

    cfg = load_config(config_dir)

    log_file = cfg.get("storage", {}).get("log_file")
    _setup_logging(verbose=verbose, log_file=log_file or None)

    if history:
        store = JsonSessionStore(cfg.get("storage", {}).get("state_file", "data/career.json"))
        if store.get_profile() is None:
            click.echo("Nenhuma carreira salva.")
            sys.exit(1)
        _show_stats(store)
        _show_history(store)
        return

    try:
        asyncio.run(_run(cfg, new, week, seed))
    except SessionError as e:
        click.echo(str(e))
        sys.exit(1)
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nAté a próxima rodada.")


if __name__ == "__main__":
    main()
