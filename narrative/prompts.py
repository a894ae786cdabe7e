"""Prompt composition for the career narrator.

Builds the system/user message pair sent to the completion backend for a
career intro, a resolved choice, or one of the weekly sub-events.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from career.models import ATTRIBUTE_KEYS, CareerStats, Choice, Options, PlayerProfile, TimelineSlot
from career.timeline import format_timeline, resolved_count
from completion.models import ChatMessage, CompletionOptions

from .outcome import Resolution

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.85
RETRY_TEMPERATURE = 1.0
DEFAULT_MAX_TOKENS = 900
ANTI_REPETITION_WINDOW = 8
EMOTION_WINDOW = 3
CAREER_SUMMARY_THRESHOLD = 3

NARRATOR_SYSTEM = """\
Você é o narrador de "Campo 8-Bit", um jogo de carreira de futebol em texto.

Seu estilo:
- Narração em português do Brasil, em segunda pessoa, viva e concreta.
- Diálogos curtos com técnico, capitão, companheiros, imprensa e torcida.
- Cada resposta tem no máximo 3 parágrafos curtos.
- Nada de listas, nada de explicar regras do jogo.

Formato de saída (OBRIGATÓRIO):
Responda APENAS com um objeto JSON válido, sem texto antes ou depois:
{{"narrative": "texto", "options": {{"A": "opção curta", "B": "opção curta"}},
"outcome": {{"type": "TIPO", "message": "frase curta"}}, "attributeFocus": "atributo"}}

- "outcome.type" deve ser exatamente um de: {outcome_types}.
- "attributeFocus" deve ser um de: {attribute_keys}.
- As duas opções devem ser diferentes entre si e ter no máximo 60 caracteres.
{anti_repetition}"""

ATTRIBUTE_LABELS = {
    "speed": "Velocidade",
    "physical": "Físico",
    "shooting": "Finalização",
    "heading": "Cabeceio",
    "charisma": "Carisma",
    "passing": "Passe",
    "defense": "Defesa",
}

POSITION_LABELS = {
    "GOL": "Goleiro",
    "ZAG": "Zagueiro",
    "LAT": "Lateral",
    "VOL": "Volante",
    "MEI": "Meia",
    "ATA": "Atacante",
}

NATIONALITY_ADJECTIVES = {
    "BR": "brasileiro",
    "US": "americano",
    "FR": "francês",
    "JP": "japonês",
    "AR": "argentino",
    "ES": "espanhol",
    "DE": "alemão",
    "IT": "italiano",
    "UK": "inglês",
    "PT": "português",
}

CLUB_CONTEXT = {
    "Avaí": "Clube de Florianópolis na Série B, torcida exigente e sonho do acesso.",
    "LA Galaxy II": "Time reserva do LA Galaxy na MLS Next Pro, vitrine para jovens.",
    "Sochaux": "Tradicional formador francês na Ligue 2, aposta em garotos da base.",
    "FC Ryukyu": "Clube de Okinawa na J2, elenco humilde e muito disciplinado.",
    "Aldosivi": "O Tiburón de Mar del Plata, ambiente quente e cobrança constante.",
    "Málaga": "Gigante andaluz na Segunda División tentando voltar à elite.",
    "Dynamo Dresden": "Clube de massa na 3. Liga com um dos estádios mais barulhentos da Alemanha.",
    "Pescara": "Clube do Adriático na Serie C, conhecido pelo futebol ofensivo.",
}

GENERIC_CLUB_CONTEXT = "Clube de divisão de acesso, elenco enxuto e oportunidades para quem se destacar."

SLOT_TASKS = {
    "TREINO_TECNICO": (
        "Narre o treino técnico da manhã: fundamentos, olhares do técnico e disputas "
        "por posição. Termine com um dilema de treino."
    ),
    "TREINO_FISICO": (
        "Narre a sessão física com o preparador: cansaço, limites e comparação com os "
        "companheiros. Termine com uma decisão sobre intensidade."
    ),
    "COLETIVA_IMPRENSA": (
        "Narre a coletiva de imprensa: perguntas afiadas de jornalistas sobre o jogador e o "
        "clube. Termine com uma pergunta delicada para responder."
    ),
    "LIVE_REDES": (
        "Narre uma live nas redes sociais: comentários de fãs, provocações de rivais e "
        "números de audiência. Termine com uma escolha sobre o que postar ou responder."
    ),
    "TALK_LOCKERROOM": (
        "Narre uma conversa no vestiário com capitão, veteranos ou jovens do elenco. "
        "Termine com uma escolha sobre como se posicionar no grupo."
    ),
    "ATAQUE_FRANCO": (
        "Narre um lance decisivo de partida: minuto, placar e posição em campo. "
        "Termine com duas formas de concluir a jogada."
    ),
    "CONTRA_ATAQUE": (
        "Narre um contra-ataque em velocidade durante a partida. Termine com duas formas "
        "de conduzir o lance."
    ),
    "BOLA_PARADA": (
        "Narre uma cobrança de bola parada importante. Termine com duas formas de executar."
    ),
    "POS_JOGO": (
        "Narre o pós-jogo: vestiário, zona mista e repercussão. Termine com uma escolha "
        "sobre como encerrar a semana."
    ),
}

GENERIC_TASK = "Narre o próximo momento da carreira e termine com um dilema claro."

FIRST_SLOT_OF_DAY = "TREINO_TECNICO"

# Sub-events generated concurrently when a full week is simulated.
WEEK_SUB_EVENTS: tuple[tuple[str, str], ...] = (
    ("MACRO", "TREINO_FISICO"),
    ("MACRO", "COLETIVA_IMPRENSA"),
    ("MICRO", "ATAQUE_FRANCO"),
    ("MICRO", "CONTRA_ATAQUE"),
    ("POST", "POS_JOGO"),
)

_OUTCOME_DESCRIPTIONS = {
    "DECISIVO": "um sucesso decisivo e arriscado que muda o rumo do dia",
    "POSITIVO": "um sucesso sólido",
    "ESTRATÉGICO": "uma jogada inteligente com ganho a longo prazo",
    "NEUTRO": "um resultado morno, sem ganho nem prejuízo claro",
    "NEGATIVO": "um fracasso com consequências visíveis",
}

_RISK_LABELS = {"low": "baixo", "medium": "médio", "high": "alto"}

_FOLLOWER_TIERS = (
    (1_000_000, "estrela global"),
    (100_000, "ídolo nacional"),
    (10_000, "promessa em alta"),
    (1_000, "conhecido na cidade"),
)

DIFFERENT_DIRECTIVE = (
    "ATENÇÃO: sua narrativa anterior ficou parecida demais com as anteriores. "
    "Produza algo completamente diferente: outro cenário, outros personagens, "
    "outro vocabulário e opções inéditas."
)


@dataclass(frozen=True)
class Prompt:
    messages: tuple[ChatMessage, ...]
    options: CompletionOptions
    slot_type: str

    def retry(self, temperature: float = RETRY_TEMPERATURE) -> Prompt:
        """Same request, hotter, with an explicit instruction to diverge."""
        extra = ChatMessage(role="user", content=DIFFERENT_DIRECTIVE)
        return Prompt(
            messages=self.messages + (extra,),
            options=self.options.hotter(temperature),
            slot_type=self.slot_type,
        )


def follower_tier(followers: int) -> str:
    for threshold, label in _FOLLOWER_TIERS:
        if followers >= threshold:
            return label
    return "desconhecido"


def emotional_context(choice_log: Sequence[Choice]) -> str:
    recent = [c.outcome.type for c in list(choice_log)[-EMOTION_WINDOW:] if c.outcome]
    counts = Counter(recent)
    if counts["DECISIVO"] >= 1:
        return "confident"
    if counts["NEGATIVO"] >= 2:
        return "pressured"
    if counts["POSITIVO"] >= 2:
        return "motivated"
    if counts["ESTRATÉGICO"] >= 2:
        return "focused"
    return "balanced"


_EMOTION_LINES = {
    "confident": "confiante, vindo de um momento decisivo",
    "pressured": "pressionado, acumulando resultados ruins",
    "motivated": "motivado por uma boa sequência",
    "focused": "focado, pensando cada passo",
    "balanced": "equilibrado",
}


def recent_option_labels(
    choice_log: Sequence[Choice],
    limit: int = ANTI_REPETITION_WINDOW,
    current: Options | None = None,
) -> list[str]:
    """Most recent option labels, oldest first; ``current`` is what is on screen now."""
    labels: list[str] = []
    offered = [entry.options for entry in reversed(list(choice_log))]
    for options in [current, *offered]:
        if options is None:
            continue
        for label in (options.b, options.a):
            if label and label not in labels:
                labels.append(label)
        if len(labels) >= limit:
            break
    return list(reversed(labels[:limit]))


def club_context(club: str) -> str:
    return CLUB_CONTEXT.get(club, GENERIC_CLUB_CONTEXT)


def format_profile(profile: PlayerProfile, career: CareerStats | None = None) -> str:
    # The profile keeps the creation age; career stats age with each season.
    age = career.age if career is not None else profile.age
    position = POSITION_LABELS.get(profile.position, profile.position)
    nationality = NATIONALITY_ADJECTIVES.get(profile.nationality, profile.nationality)
    return (
        f"Jogador: {profile.name}, {age} anos, {position} {nationality}, "
        f"clube atual: {profile.start_club or 'sem clube'}"
    )


def format_attributes(profile: PlayerProfile) -> str:
    return ", ".join(f"{ATTRIBUTE_LABELS[k]} {profile.attributes.get(k)}" for k in ATTRIBUTE_KEYS)


def format_career(stats: CareerStats) -> str:
    return (
        f"Carreira: {stats.matches} jogos, {stats.goals} gols, {stats.assists} assistências, "
        f"{stats.key_defenses} defesas importantes, {stats.followers} seguidores "
        f"({follower_tier(stats.followers)})"
    )


def _format_timeline_block(timeline: Sequence[TimelineSlot]) -> str:
    if len(timeline) > 8:
        done = resolved_count(timeline)
        return f"Temporada: semana {min(done + 1, len(timeline))} de {len(timeline)}"
    return "Agenda do dia:\n" + format_timeline(timeline)


class PromptComposer:
    """Assemble narrator prompts from game state."""

    def __init__(
        self,
        temperature: float = DEFAULT_TEMPERATURE,
        retry_temperature: float = RETRY_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        anti_repetition_window: int = ANTI_REPETITION_WINDOW,
    ):
        self._temperature = temperature
        self._retry_temperature = retry_temperature
        self._max_tokens = max_tokens
        self._window = anti_repetition_window

    @property
    def retry_temperature(self) -> float:
        return self._retry_temperature

    def _system(self, choice_log: Sequence[Choice], offered: Options | None = None) -> str:
        labels = recent_option_labels(choice_log, self._window, current=offered)
        if labels:
            anti_repetition = (
                "- NÃO repita nem parafraseie estas opções já oferecidas: "
                + "; ".join(f'"{label}"' for label in labels)
                + "\n"
            )
        else:
            anti_repetition = ""
        return NARRATOR_SYSTEM.format(
            outcome_types=", ".join(("POSITIVO", "NEGATIVO", "NEUTRO", "DECISIVO", "ESTRATÉGICO")),
            attribute_keys=", ".join(ATTRIBUTE_KEYS),
            anti_repetition=anti_repetition,
        )

    def _context_lines(
        self,
        profile: PlayerProfile,
        choice_log: Sequence[Choice],
        timeline: Sequence[TimelineSlot],
        career: CareerStats | None,
    ) -> list[str]:
        lines = [
            _format_timeline_block(timeline),
            format_profile(profile, career),
            f"Atributos: {format_attributes(profile)}",
        ]
        if career is not None and career.activity >= CAREER_SUMMARY_THRESHOLD:
            lines.append(format_career(career))
        lines.append(f"Contexto do clube: {club_context(profile.start_club)}")
        lines.append(f"Estado emocional: {_EMOTION_LINES[emotional_context(choice_log)]}")
        return lines

    def _build(self, system: str, lines: list[str], slot_type: str) -> Prompt:
        user = "\n".join(lines)
        logger.debug("Prompt for %s:\n%s", slot_type, user)
        return Prompt(
            messages=(
                ChatMessage(role="system", content=system),
                ChatMessage(role="user", content=user),
            ),
            options=CompletionOptions(temperature=self._temperature, max_tokens=self._max_tokens),
            slot_type=slot_type,
        )

    def intro(self, profile: PlayerProfile, timeline: Sequence[TimelineSlot]) -> Prompt:
        lines = self._context_lines(profile, (), timeline, None)
        lines.append(
            "Tarefa: narre o primeiro dia do jogador no clube, a chegada ao vestiário e o "
            "primeiro contato com técnico e capitão. Termine com duas formas de se apresentar "
            'ao grupo. Use "outcome": null.'
        )
        return self._build(self._system(()), lines, "INTRO")

    @staticmethod
    def _decided(resolution: Resolution) -> str:
        return (
            f"Resultado já decidido: {resolution.outcome_type} "
            f"({_OUTCOME_DESCRIPTIONS[resolution.outcome_type]}), risco "
            f"{_RISK_LABELS[resolution.risk]}, atributo testado "
            f"{ATTRIBUTE_LABELS[resolution.attribute]} ({resolution.attribute_value})."
        )

    def choice(
        self,
        profile: PlayerProfile,
        choice_log: Sequence[Choice],
        timeline: Sequence[TimelineSlot],
        career: CareerStats,
        slot: TimelineSlot,
        option_text: str,
        resolution: Resolution,
        next_slot: TimelineSlot | None,
        offered: Options | None = None,
    ) -> Prompt:
        lines = self._context_lines(profile, choice_log, timeline, career)
        lines.append(f'Escolha do jogador no momento "{slot.tag}": "{option_text}"')
        lines.append(self._decided(resolution))
        lines.append(
            "Mostre primeiro o resultado da escolha anterior, de forma coerente com o "
            f'resultado decidido, e use "outcome.type" = "{resolution.outcome_type}".'
        )
        if next_slot is None:
            # The day is over; the next choice opens tomorrow's first slot.
            upcoming = FIRST_SLOT_OF_DAY
            task = "O dia terminou. Feche o dia em poucas linhas e então: " + SLOT_TASKS[upcoming]
        else:
            upcoming = next_slot.sub_type or next_slot.type
            task = SLOT_TASKS.get(upcoming, GENERIC_TASK)
        lines.append(f"Tarefa: {task}")
        return self._build(self._system(choice_log, offered), lines, upcoming)

    def week_event(
        self,
        profile: PlayerProfile,
        choice_log: Sequence[Choice],
        timeline: Sequence[TimelineSlot],
        career: CareerStats | None,
        event_type: str,
        sub_type: str,
        week: int,
        approach: str = "",
        resolution: Resolution | None = None,
        offered: Options | None = None,
    ) -> Prompt:
        lines = self._context_lines(profile, choice_log, timeline, career)
        lines.append(f"Semana {week}, evento {event_type}:{sub_type}.")
        if approach:
            lines.append(f'Abordagem do jogador: "{approach}"')
        if resolution is not None:
            lines.append(self._decided(resolution))
            lines.append(f'Narre o evento coerente com esse resultado e use "outcome.type" = "{resolution.outcome_type}".')
        lines.append(f"Tarefa: {SLOT_TASKS.get(sub_type, GENERIC_TASK)}")
        return self._build(self._system(choice_log, offered), lines, sub_type)
