"""Keyword-driven classification of a choice's risk tier and tested attribute.

Rules are ordered lists of (keywords, result); the first rule with a keyword
contained in the lower-cased option text wins.
"""

from __future__ import annotations

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"

RISK_TIERS = (RISK_LOW, RISK_MEDIUM, RISK_HIGH)

_RISK_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("seguro", "cauteloso", "simples", "básico", "padrão", "técnico", "seguir", "conservador"),
        RISK_LOW,
    ),
    (
        ("arriscado", "ousado", "provocar", "desafiar", "improvisar", "criativo", "imprudente", "agressivo"),
        RISK_HIGH,
    ),
)

_ATTRIBUTE_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("chute", "finaliz", "gol", "bater", "chutar", "artilh"), "shooting"),
    (("cabeça", "cabeceio", "cabecear", "escanteio", "bola aérea"), "heading"),
    (("passe", "lançamento", "assistência", "tocar", "cruzar", "cruzamento", "tabela"), "passing"),
    (("desarme", "marcar", "marcação", "defender", "defesa", "interceptar", "carrinho"), "defense"),
    (("corrida", "velocidade", "sprint", "arrancada", "acelerar", "drible", "driblar"), "speed"),
    (("força", "físico", "academia", "resistência", "musculação", "trombada", "dividida"), "physical"),
    (
        (
            "entrevista",
            "imprensa",
            "jornalista",
            "torcida",
            "live",
            "redes",
            "fãs",
            "capitão",
            "técnico",
            "liderar",
            "discurso",
            "conversar",
            "vestiário",
        ),
        "charisma",
    ),
)

_SLOT_DEFAULT_ATTRIBUTE = {
    1: "physical",
    2: "charisma",
    3: "charisma",
    4: "shooting",
}


def _first_match(text: str, rules: tuple[tuple[tuple[str, ...], str], ...]) -> str | None:
    low = (text or "").lower()
    for keywords, result in rules:
        if any(keyword in low for keyword in keywords):
            return result
    return None


def classify_risk(option_text: str) -> str:
    return _first_match(option_text, _RISK_RULES) or RISK_MEDIUM


def relevant_attribute(option_text: str, current_slot: int) -> str:
    matched = _first_match(option_text, _ATTRIBUTE_RULES)
    if matched:
        return matched
    return _SLOT_DEFAULT_ATTRIBUTE.get(current_slot, "physical")
