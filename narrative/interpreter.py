"""Turn raw completion text into a validated narrative step.

Parsing never raises: anything unusable is replaced by a canned,
slot-appropriate narrative with two canned options and a NEUTRO outcome.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from career.models import ATTRIBUTE_KEYS, OUTCOME_TYPES, Options, Outcome, PlayerProfile

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.4
SIMILARITY_WINDOW = 5
MIN_SHARED_TOKEN_LENGTH = 5

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE = re.compile(r"```(?:json)?")
_COLOR_TAG = re.compile(r"</?(?:cyan|yellow|magenta)>")
_TRAILING_COMMA = re.compile(r",\s*([\]}])")

NEGATIVE_KEYWORDS = (
    "lesão",
    "lesionado",
    "vaia",
    "vaiado",
    "erro",
    "errou",
    "falha",
    "falhou",
    "crítica",
    "derrota",
    "expulso",
    "cartão vermelho",
    "frustração",
    "decepção",
    "banco de reservas",
)

FALLBACK_NARRATIVES = {
    "INTRO": (
        "Bem-vindo à sua jornada no mundo do futebol! Você é {name}, chegando ao {club} "
        "para iniciar sua carreira. O vestiário inteiro observa o novato."
    ),
    "TREINO_TECNICO": "{name} participa de um treino técnico intenso, focando nos fundamentos.",
    "TREINO_FISICO": "O preparador físico montou uma série de exercícios para melhorar seu condicionamento.",
    "COLETIVA_IMPRENSA": "Os jornalistas aguardam suas declarações na sala de imprensa.",
    "LIVE_REDES": "A live começa e os comentários dos torcedores não param de subir na tela.",
    "TALK_LOCKERROOM": "No vestiário, o capitão chama {name} para uma conversa reservada.",
    "ATAQUE_FRANCO": "Uma oportunidade surge para {name} durante a partida!",
    "CONTRA_ATAQUE": "A bola é roubada no meio-campo e {name} dispara no contra-ataque.",
    "BOLA_PARADA": "Falta perigosa na entrada da área. {name} ajeita a bola.",
    "POS_JOGO": "Fim de jogo. Os repórteres esperam {name} na zona mista.",
}

GENERIC_FALLBACK_NARRATIVE = "{name} enfrenta mais um desafio na carreira no {club}."

FALLBACK_OPTIONS = {
    "INTRO": ("Apresentar-se com humildade", "Chegar confiante e ousado"),
    "TREINO_TECNICO": ("Seguir o treino padrão", "Improvisar jogadas criativas"),
    "TREINO_FISICO": ("Manter o ritmo seguro", "Forçar além do limite"),
    "COLETIVA_IMPRENSA": ("Dar uma resposta cautelosa", "Provocar o rival na coletiva"),
    "LIVE_REDES": ("Agradecer os fãs de forma simples", "Desafiar os críticos ao vivo"),
    "TALK_LOCKERROOM": ("Ouvir os veteranos", "Desafiar o capitão"),
    "ATAQUE_FRANCO": ("Tocar para o companheiro livre", "Chute ousado de longe"),
    "CONTRA_ATAQUE": ("Conduzir com passe seguro", "Partir para o drible ousado"),
    "BOLA_PARADA": ("Cobrança técnica no canto", "Cavadinha arriscada"),
    "POS_JOGO": ("Falar de forma conservadora", "Criticar a arbitragem"),
}

GENERIC_FALLBACK_OPTIONS = ("Seguir o plano do técnico", "Arriscar algo ousado")

FALLBACK_OUTCOME_MESSAGE = "O dia segue sem grandes surpresas."

T = TypeVar("T")
P = TypeVar("P")


@dataclass(frozen=True)
class Interpretation:
    narrative: str
    options: Options
    outcome: Outcome | None
    attribute_focus: str | None = None
    fallback: bool = False


def strip_color(text: str) -> str:
    return _COLOR_TAG.sub("", text or "")


def _repair_json(text: str) -> str:
    """Escape raw newlines inside strings and drop trailing commas."""
    out = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            out.append(ch)
            escape_next = False
            continue
        if ch == "\\":
            out.append(ch)
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
        elif in_string and ch == "\n":
            out.append("\\n")
            continue
        elif in_string and ch == "\t":
            out.append("\\t")
            continue
        out.append(ch)
    return _TRAILING_COMMA.sub(r"\1", "".join(out))


def extract_json(text: str) -> dict[str, Any] | None:
    """Return the first JSON object found in ``text`` or None."""
    if not text:
        return None
    cleaned = _CODE_FENCE.sub("", text)
    match = _JSON_BLOCK.search(cleaned)
    if not match:
        return None
    raw = match.group()
    for candidate in (raw, _repair_json(raw)):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return data if isinstance(data, dict) else None
    return None


def coerce_outcome(raw: Any) -> Outcome:
    if isinstance(raw, str):
        raw = {"type": raw}
    if not isinstance(raw, dict):
        return Outcome(type="NEUTRO", message="")
    outcome_type = str(raw.get("type", "")).strip().upper()
    if outcome_type == "ESTRATEGICO":
        outcome_type = "ESTRATÉGICO"
    if outcome_type not in OUTCOME_TYPES:
        outcome_type = "NEUTRO"
    return Outcome(type=outcome_type, message=str(raw.get("message", "") or "").strip())


def _coerce_options(data: dict[str, Any]) -> Options | None:
    raw = data.get("options", data.get("nextEvent"))
    a = b = ""
    if isinstance(raw, dict):
        a = raw.get("A", raw.get("a", raw.get("labelA", "")))
        b = raw.get("B", raw.get("b", raw.get("labelB", "")))
    elif isinstance(raw, list) and len(raw) >= 2:
        a, b = raw[0], raw[1]
    a = str(a or "").strip()
    b = str(b or "").strip()
    if not a or not b or a == b:
        return None
    return Options(a=a, b=b)


def similarity(new_text: str, old_text: str) -> float:
    """Share of the new narrative's tokens that are long words also in ``old_text``."""
    tokens = strip_color(new_text).lower().split()
    if not tokens:
        return 0.0
    old_tokens = set(strip_color(old_text).lower().split())
    matches = sum(1 for token in tokens if len(token) >= MIN_SHARED_TOKEN_LENGTH and token in old_tokens)
    return matches / len(tokens)


def is_too_similar(
    narrative: str,
    previous: Sequence[str],
    threshold: float = SIMILARITY_THRESHOLD,
    window: int = SIMILARITY_WINDOW,
) -> bool:
    recent = [p for p in list(previous)[-window:] if p]
    return any(similarity(narrative, old) > threshold for old in recent)


def colorize(narrative: str, outcome_type: str | None) -> str:
    """Wrap the narrative in the presentation tag matching its mood."""
    if _COLOR_TAG.search(narrative):
        return narrative
    low = narrative.lower()
    if outcome_type == "NEGATIVO" or any(keyword in low for keyword in NEGATIVE_KEYWORDS):
        color = "yellow"
    elif outcome_type == "DECISIVO":
        color = "magenta"
    else:
        color = "cyan"
    return f"<{color}>{narrative}</{color}>"


def fallback_options(slot_type: str) -> Options:
    a, b = FALLBACK_OPTIONS.get(slot_type, GENERIC_FALLBACK_OPTIONS)
    return Options(a=a, b=b)


def fallback(slot_type: str, profile: PlayerProfile, outcome: bool = True) -> Interpretation:
    template = FALLBACK_NARRATIVES.get(slot_type, GENERIC_FALLBACK_NARRATIVE)
    narrative = template.format(name=profile.name, club=profile.start_club or "clube")
    return Interpretation(
        narrative=narrative,
        options=fallback_options(slot_type),
        outcome=Outcome(type="NEUTRO", message=FALLBACK_OUTCOME_MESSAGE) if outcome else None,
        fallback=True,
    )


def interpret(
    raw_text: str,
    slot_type: str,
    profile: PlayerProfile,
    expect_outcome: bool = True,
) -> Interpretation:
    """Parse one completion. Never raises."""
    data = extract_json(raw_text)
    if data is None:
        logger.warning("Completion for %s was not valid JSON; using fallback", slot_type)
        return fallback(slot_type, profile, outcome=expect_outcome)

    narrative = str(data.get("narrative", "") or "").strip()
    if not narrative:
        logger.warning("Completion for %s had no narrative; using fallback", slot_type)
        return fallback(slot_type, profile, outcome=expect_outcome)

    options = _coerce_options(data)
    if options is None:
        logger.info("Completion for %s had unusable options; using canned options", slot_type)
        options = fallback_options(slot_type)

    outcome = coerce_outcome(data.get("outcome")) if expect_outcome else None

    focus = data.get("attributeFocus", data.get("attribute_focus"))
    focus = str(focus).strip().lower() if focus else None
    if focus not in ATTRIBUTE_KEYS:
        focus = None

    return Interpretation(
        narrative=narrative,
        options=options,
        outcome=outcome,
        attribute_focus=focus,
    )


async def with_retry(
    call: Callable[[P], Awaitable[T]],
    params: P,
    accept: Callable[[T], bool],
    mutate: Callable[[P, int], P],
    max_attempts: int = 2,
) -> T:
    """Call ``call(params)`` until ``accept`` passes or attempts run out.

    Between attempts ``mutate(params, attempt)`` produces the next params.
    The last result is returned even when it was not accepted.
    """
    attempt = 1
    result = await call(params)
    while attempt < max_attempts and not accept(result):
        params = mutate(params, attempt)
        attempt += 1
        logger.info("Retrying completion (attempt %d/%d)", attempt, max_attempts)
        result = await call(params)
    return result
