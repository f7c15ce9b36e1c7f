"""Accumulate a UserContext from the user's chat turns.

Every turn is scanned with the same battery of pattern rules. Later turns
overwrite earlier slots, exclusions accumulate and explicit retractions
("mejor sí incluye yoga") remove them again. Matching runs on accent-folded
lowercase text so "Bogotá", "bogota" and "BOGOTA" behave the same.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any

from .date_parser import ParsedDate, generate_date_confirmation_message, parse_spanish_date
from .schemas import NEAR_CITY, PRIMARY_CITY, ChatMessage, UserContext
from .text import fold, strip_punctuation

logger = logging.getLogger(__name__)

# --- mood / energy -------------------------------------------------------

MOOD_SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "calm_mindful": (
            "íntimo", "romántico", "romántica", "especial", "a solas", "privado", "exclusivo",
            "solo nosotros", "para dos", "amor", "enamorados", "luna de miel",
            "escapada romántica", "noche especial", "velada", "sensual", "seducción",
            "conquista", "cena íntima", "momento especial", "conexión", "cercano",
            "acogedor", "cálido", "personal",
        ),
        "social": (
            "fiesta", "rumba", "celebración", "festejo", "parranda", "juerga",
            "salir de fiesta", "ambiente", "movido", "con ambiente", "mucha gente", "social",
            "grupo grande", "todos juntos", "vacilón", "gozadera", "pachanga", "reventón",
            "farra", "noche loca", "salir a bailar", "bailable", "música", "dj", "discoteca",
            "bar", "happy hour", "after office", "networking", "conocer gente",
            "ambiente festivo", "brindis", "shots", "trago", "tragos", "copas", "cocteles",
            "cocktails",
        ),
        "slow_cozy": (
            "relax", "relajante", "relajado", "relajada", "chill", "tranqui", "tranquilo",
            "tranquila", "descansar", "desconectar", "zen", "calma", "calmado", "calmada",
            "paz", "peaceful", "sereno", "sin afán", "slow", "lento", "suave", "soft",
            "meditación", "mindfulness", "respiro", "spa", "masaje", "wellness", "bienestar",
            "autocuidado", "consentirme", "consentirse", "mimarse", "desestresarse",
            "bajar revoluciones", "tomar aire", "resetear", "recargar", "energías",
            "contemplativo", "silencio", "quieto", "sin ruido", "apartado", "alejado",
            "atardecer", "sunset", "picnic chill",
        ),
        "uplifting": (
            "aventura", "aventurero", "emocionante", "activo", "activa", "diferente", "loco",
            "loca", "extremo", "adrenalina", "intenso", "dinámico", "energético", "movimiento",
            "acción", "deportivo", "fitness", "ejercicio", "outdoor", "senderismo", "hiking",
            "trekking", "escalada", "rafting", "kayak", "bicicleta", "ciclismo", "explorar",
            "descubrir", "experiencia única", "inolvidable", "wow", "increíble", "épico",
            "challenge", "reto", "desafío", "divertido", "entretenido", "animado", "juegos",
            "competencia", "team building", "escape room", "chimba", "bacano", "chévere",
            "genial", "brutal",
        ),
    }
)


def _invert_moods(table: Mapping[str, tuple[str, ...]]) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for energy, synonyms in table.items():
        for synonym in synonyms:
            lookup.setdefault(fold(synonym), energy)
    return lookup


SYNONYM_TO_MOOD: Mapping[str, str] = MappingProxyType(_invert_moods(MOOD_SYNONYMS))
_MOOD_PHRASES = tuple(key for key in SYNONYM_TO_MOOD if " " in key)

# --- people / group ------------------------------------------------------

NUMBER_WORDS: Mapping[str, int] = MappingProxyType(
    {
        "un": 1, "una": 1, "uno": 1, "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5,
        "seis": 6, "siete": 7, "ocho": 8, "nueve": 9, "diez": 10, "once": 11,
        "doce": 12, "quince": 15, "veinte": 20,
    }
)
_NUMBER = rf"(\d{{1,3}}|{'|'.join(word for word, value in NUMBER_WORDS.items() if value > 1)})"
_PEOPLE_NOUNS = (
    r"personas?|pax|invitad[oa]s?|adult[oa]s?|amig[oa]s?|parceros?|parceras?|"
    r"companer[oa]s?|colegas?"
)
PERSONA_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\bsomos\s+{_NUMBER}\b"),
    re.compile(rf"\bseriamos\s+{_NUMBER}\b"),
    re.compile(rf"\bpara\s+{_NUMBER}\b(?!\s+de\b)"),
    re.compile(rf"\b{_NUMBER}\s+(?:{_PEOPLE_NOUNS})\b"),
    re.compile(r"\bun\s+par\s+de\s+(?:personas|amig[oa]s)\b"),
)
_PAIR_PATTERN = PERSONA_PATTERNS[-1]

CHILDREN_PATTERN = re.compile(r"(?<!sin\s)(?<!no\s)\b(nin[oa]s?|hij[oa]s?|menores|peques|chiquit[oa]s|bebes?)\b")
GROUP_PATTERNS: tuple[tuple[re.Pattern[str], str, int | None], ...] = (
    (
        re.compile(
            r"\b(novi[oa]|nobi[oa]|pareja|espos[oa]|prometid[oa]|marido|mi\s+mujer|"
            r"mi\s+crush|mi\s+amor)\b"
        ),
        "pareja",
        2,
    ),
    (
        re.compile(
            r"\b(mama|papa|padres|madre|padre|herman[oa]s?|familia|familiares|abuel[oa]s?|"
            r"tio|tia|prim[oa]s?|sobrin[oa]s?|suegr[oa]s?)\b"
        ),
        "familia",
        None,
    ),
    (
        re.compile(
            r"\b(amig[oa]s?|parche|parceros?|parceras?|companer[oa]s?|cuadro|grupo|banda|"
            r"combo|colegas|equipo)\b"
        ),
        "amigos",
        None,
    ),
    (
        re.compile(
            r"\bsola\b|\bconmigo\s+mism[oa]\b|\bpara\s+mi(?:\s+sol[oa]|\s+mism[oa])?\s*(?:$|[,.!?])|"
            r"\b(?:voy|ir|ire|estoy|yo|plan|salir|algo)\s+solo\b|^\s*solo\s*$|\bsolo\s+yo\b"
        ),
        "sola",
        1,
    ),
)

# --- city ---------------------------------------------------------------

CITY_PATTERNS: tuple[tuple[re.Pattern[str], str, bool], ...] = (
    # (pattern, city, excludes the primary city)
    (re.compile(r"\bfuera\s+de\s+bogota?\b"), NEAR_CITY, True),
    (re.compile(r"\bfuera\s+de\s+la\s+ciudad\b"), NEAR_CITY, True),
    (re.compile(r"\bno\s+(?:en|sea\s+en)\s+bogota?\b"), NEAR_CITY, True),
    (re.compile(r"\blejos\s+de\s+bogota?\b"), NEAR_CITY, True),
    (re.compile(r"\bcerc(?:a|quita)\s+(?:a|de)\s+bogota?\b"), NEAR_CITY, False),
    (re.compile(r"\b(afueras|escapada|escapar(?:nos)?)\b"), NEAR_CITY, False),
    (re.compile(r"\bsalir\s+de\s+(?:la\s+)?ciudad\b"), NEAR_CITY, False),
    (re.compile(r"\b(?:en\s+)?(bogota|vogota|bog)\b"), PRIMARY_CITY, False),
)

# --- date ---------------------------------------------------------------

_MONTHS = (
    r"(?:enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|setiembre|octubre|"
    r"noviembre|diciembre)"
)
_WEEKDAYS = r"(?:s[áa]bado|savado|domingo|lunes|martes|mi[ée]rcoles|jueves|viernes)"
# Applied to the lowercased turn (accents kept) so the stored expression reads like the user's
DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        rf"\b(?:primer|primero|segundo|tercer|tercero|cuarto|quinto|1er|2do|3er|4to|5to)\s+"
        rf"(?:fin\s+de\s+semana|finde)\s+de\s+{_MONTHS}\b"
    ),
    re.compile(rf"\b(?:fin\s+de\s+semana|finde)\s+del?\s+\d{{1,2}}\s+de\s+{_MONTHS}\b"),
    re.compile(
        rf"\b(?:(?:el|para\s+el)\s+)?(?:{_WEEKDAYS}\s+)?\d{{1,2}}\s+(?:de\s+)?{_MONTHS}"
        rf"(?:\s+de\s+\d{{4}})?\b"
    ),
    re.compile(r"\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b"),
    re.compile(r"\bpasado\s+ma[ñn]ana\b|\bhoy\b|(?<!la\s)\bma[ñn]ana\b"),
    re.compile(
        rf"\b(?:(?:este|pr[óo]ximo|siguiente|el)\s+)?(?:fin\s+de\s+semana|finde|{_WEEKDAYS})\b"
    ),
    re.compile(r"\b(?:en\s+)?(?:una|dos|tres|cuatro|\d+)\s+semanas?\b"),
    re.compile(r"\b(?:la\s+)?(?:pr[óo]xima|siguiente)\s+semana\b|\bla\s+semana\s+que\s+viene\b"),
)

# --- occasion / modality / category / budget / intention ----------------

OCCASION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bcumpleanos\b|\bcumple\b"), "cumpleaños"),
    (re.compile(r"\baniversario\b"), "aniversario"),
    (
        re.compile(
            r"\bdia\s+de\s+la\s+madre\b|\bdia\s+del\s+padre\b|\bdia\s+del\s+amor\b|"
            r"\bamor\s+y\s+amistad\b|\bsan\s+valentin\b"
        ),
        "festividad",
    ),
    (re.compile(r"\bgraduacion\b|\bgrado\b"), "graduación"),
    (re.compile(r"\bdespedida\s+de\s+solter[oa]\b|\bbachelor(?:ette)?\b"), "despedida"),
    (re.compile(r"\breencuentro\b"), "reencuentro"),
    (re.compile(r"\bcita\b"), "cita"),
    (re.compile(r"\bcelebra(?:r|cion)?\b"), "celebración"),
)
DATE_SENSITIVE_OCCASIONS = frozenset({"cumpleaños", "aniversario", "festividad", "graduación"})

MODALITY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\ben\s+casa\b|\ba\s+domicilio\b|\bdelivery\b|\bque\s+vengan\b"), "stay_in"),
    (
        re.compile(
            r"\bal\s+aire\s+libre\b|\boutdoor\b|\bafuera\b|\bexterior\b|\bnaturaleza\b|"
            r"\bcampo\b|\bmontana\b"
        ),
        "outdoor",
    ),
    (re.compile(r"\bindoor\b|\binterior\b|\badentro\b|\bbajo\s+techo\b"), "indoor"),
)

CATEGORY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    # specific requests first, they are matched through synonyms when scoring
    (re.compile(r"\bitaliana\b|\bpasta\b"), "italiana"),
    (re.compile(r"\bjaponesa\b|\bsushi\b"), "japonesa"),
    (re.compile(r"\bmexicana\b|\btacos\b"), "mexicana"),
    (re.compile(r"\bcervez\w*|\bcervecer\w*"), "cerveza"),
    (re.compile(r"\bcata\s+de\s+vinos?\b|\bvinos\b|\bsommelier\b|\bmaridaje\b"), "vino"),
    (re.compile(r"\bcocteler\w*|\bmixolog\w*|\bcocteles\b"), "cocteles"),
    (re.compile(r"\bceramica\b|\bkintsugi\b"), "ceramica"),
    (re.compile(r"\bscrapbook\w*|\balbum(?:es)?\b"), "álbum"),
    (
        re.compile(r"\bcocina\w*|\bcocinar\b|\bgastronom\w*|\bculinari\w*|\bchef\b"),
        "gastronomia",
    ),
    (re.compile(r"\bbienestar\b|\bspa\b|\bmasajes?\b|\byoga\b|\bautocuidado\b"), "bienestar"),
    (re.compile(r"\bmanualidad\w*|\barte\b|\bpintura\b|\bcreativ\w*|\btaller\s+de\s+arte\b"), "arte_creatividad"),
    (re.compile(r"\baventura\b|\bparapente\b|\brafting\b|\bextremo\b"), "aventura"),
    (re.compile(r"\bmuseo\w*|\bcultura\w*|\bhistori\w*"), "cultural"),
)

BUDGET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(
            r"\bno\s+importa\s+el\s+(?:precio|presupuesto)\b|\bel\s+(?:precio|presupuesto)\s+no\s+importa\b|"
            r"\bsin\s+limite\b"
        ),
        "no_prioritario",
    ),
    (
        re.compile(r"\becon[oó]mic[oa]\b|\bbarat[oa]\b|\bpoco\s+presupuesto\b|\bbajo\s+presupuesto\b|\bsin\s+gastar\s+mucho\b"),
        "bajo",
    ),
    (re.compile(r"\bpresupuesto\s+medio\b|\bprecio\s+medio\b|\bmoderad[oa]\b|\bni\s+muy\s+caro\b"), "medio"),
    (re.compile(r"\blujo\w*|\bpremium\b|\bderroch\w*|\bsin\s+escatimar\b|\btodo\s+el\s+presupuesto\b"), "alto"),
)

INTENTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bsorprend\w*|\bsorpresa\b"), "sorprender"),
    (re.compile(r"\binvit(?:ar|arl[oa]s?|arte|o|amos)\b"), "invitar"),
    (re.compile(r"\bagradec\w*|\bdar\s+las\s+gracias\b"), "agradecer"),
    (re.compile(r"\bcompartir\b"), "compartir"),
    (re.compile(r"\bcelebrar\b|\bfestejar\b"), "celebrar"),
)

# --- exclusions and retractions ------------------------------------------

EXCLUDABLE_TERMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "yoga": ("yoga",),
        "spa": ("spa",),
        "masaje": ("masajes", "masaje"),
        "aventura": ("deportes extremos", "aventuras", "aventura", "extremo"),
        "cocina": ("talleres de cocina", "taller de cocina", "cocinar", "cocina"),
        "alcohol": ("alcohol", "tragos", "trago", "licor", "vino"),
        "multitudes": ("multitudes", "multitud", "mucha gente"),
        "ruido": ("ruido", "ruidoso", "bulla"),
        "largas_distancias": ("viajar lejos", "largas distancias", "manejar mucho"),
    }
)
_TERM_TO_EXCLUSION = {term: key for key, terms in EXCLUDABLE_TERMS.items() for term in terms}
_TERMS_RE = "|".join(
    re.escape(term) for term in sorted(_TERM_TO_EXCLUSION, key=len, reverse=True)
)
_ARTICLE = r"(?:(?:el|la|los|las|un|una|hacer|ningun|ninguna|algo\s+de)\s+)?"
EXCLUSION_PATTERN = re.compile(
    r"\b(?:no\s+(?:quiero|queremos|me\s+gusta|nos\s+gusta|tomo|tomamos|sea)?\s*|sin\s+|"
    r"nada\s+(?:de\s+)?|que\s+no\s+sea\s+|ni\s+|evit(?:a|ar|emos)\s+)"
    rf"{_ARTICLE}(?P<term>{_TERMS_RE})\b"
)
RETRACTION_PATTERN = re.compile(
    r"\b(?:si\s+(?:incluye|incluir|quiero|queremos|puede\s+(?:ser|haber)|me\s+gusta)?\s*|"
    r"mejor\s+con\s+|incluye\s+|ya\s+no\s+evites\s+|ahora\s+si\s+)"
    rf"{_ARTICLE}(?P<term>{_TERMS_RE})\b"
)

# --- confirmation -------------------------------------------------------

CONFIRMATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^si$"),
    re.compile(r"^ok(?:ay|is)?$"),
    re.compile(r"^dale"),
    re.compile(r"^perfecto"),
    re.compile(r"^listo"),
    re.compile(r"^va$"),
    re.compile(r"^de una"),
    re.compile(r"^correcto"),
    re.compile(r"^confirm[oa]"),
    re.compile(r"^busca"),
    re.compile(r"esta\s*bien"),
    re.compile(r"asi\s*esta"),
    re.compile(r"^si\s*(?:esta|,|!|senor|claro|porfa)"),
    re.compile(r"^bien$"),
    re.compile(r"^exacto"),
)
SUMMARY_MARKERS = ("📍", "👥", "📅")

ENERGY_VIBES: Mapping[str, str] = MappingProxyType(
    {
        "slow_cozy": "Relajado, tranquilo, sin afán 🧘",
        "calm_mindful": "Íntimo, especial, para conectar 💫",
        "uplifting": "Activo, divertido, algo diferente ⚡",
        "social": "Parche, fiesta, buena energía 🎉",
    }
)
DEFAULT_VIBE = "Especial, memorable ✨"

GROUP_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "sola": "plan solo",
        "pareja": "en pareja",
        "familia": "en familia",
        "amigos": "con amigos",
    }
)

DATE_CLARIFICATION_QUESTIONS: Mapping[str, str] = MappingProxyType(
    {
        "cumpleaños": "¿Quieres la experiencia para el día del cumple o prefieres celebrarlo en otra fecha?",
        "aniversario": "¿La experiencia sería para el día del aniversario o para celebrarlo en otra fecha?",
        "festividad": "¿Quieres algo para ese día exacto o para celebrarlo cuando les quede mejor?",
        "graduación": "¿Para el día de la graduación o para celebrar después?",
    }
)
DEFAULT_DATE_QUESTION = "¿Para cuándo lo están planeando?"


@dataclass(slots=True)
class ConversationState:
    context: UserContext
    confirmation_shown: bool = False
    user_confirmed: bool = False
    extracted_from: list[str] = field(default_factory=list)

    @property
    def missing(self) -> list[str]:
        return missing_slots(self.context)

    @property
    def ready_for_recommendations(self) -> bool:
        return self.confirmation_shown and self.user_confirmed and not self.missing


@dataclass(slots=True)
class _Accumulator:
    slots: dict[str, Any] = field(default_factory=dict)
    evitar: list[str] = field(default_factory=list)
    excluded_cities: list[str] = field(default_factory=list)
    personas_inferred: bool = False
    con_ninos: bool = False
    trail: list[str] = field(default_factory=list)

    def set(self, slot: str, value: Any, source: str = "") -> None:
        self.slots[slot] = value
        self.trail.append(f"{slot}: {value}" + (f' (de "{source}")' if source else ""))

    def avoid(self, item: str) -> None:
        if item not in self.evitar:
            self.evitar.append(item)
            self.trail.append(f"evitar: {item}")

    def allow(self, item: str) -> None:
        if item in self.evitar:
            self.evitar.remove(item)
            self.trail.append(f"evitar (retirado): {item}")


def _number(token: str) -> int:
    return int(token) if token.isdigit() else NUMBER_WORDS[token]


def _first(patterns: Iterable[tuple[re.Pattern[str], str]], text: str) -> str | None:
    for pattern, value in patterns:
        if pattern.search(text):
            return value
    return None


def _explicit_people(folded: str) -> int | None:
    if _PAIR_PATTERN.search(folded):
        return 2
    for pattern in PERSONA_PATTERNS[:-1]:
        match = pattern.search(folded)
        if match:
            count = _number(match.group(1))
            if count >= 1:
                return count
    return None


def _apply_exclusions(acc: _Accumulator, folded: str) -> str:
    """Apply exclusions and retractions in reading order; returns text without the vetoed spans."""
    events: list[tuple[int, bool, str]] = []
    for match in EXCLUSION_PATTERN.finditer(folded):
        events.append((match.start(), True, _TERM_TO_EXCLUSION[match.group("term")]))
    for match in RETRACTION_PATTERN.finditer(folded):
        events.append((match.start(), False, _TERM_TO_EXCLUSION[match.group("term")]))
    for _, excluded, item in sorted(events, key=lambda event: event[0]):
        if excluded:
            acc.avoid(item)
        else:
            acc.allow(item)
    return EXCLUSION_PATTERN.sub(" ", folded)


def _extract_people_and_group(acc: _Accumulator, folded: str) -> None:
    explicit = _explicit_people(folded)
    has_children = CHILDREN_PATTERN.search(folded) is not None

    group: str | None = None
    implied: int | None = None
    if has_children:
        group = "familia"
    else:
        for pattern, candidate, count in GROUP_PATTERNS:
            if pattern.search(folded):
                group, implied = candidate, count
                break

    previous_group = acc.slots.get("tipo_grupo")
    if group:
        acc.set("tipo_grupo", group)
    if has_children and not acc.con_ninos:
        acc.con_ninos = True
        acc.trail.append("con_ninos: True")
        acc.avoid("alcohol")

    if explicit is not None:
        acc.set("personas", explicit)
        acc.personas_inferred = False
    elif implied is not None and (
        "personas" not in acc.slots or acc.personas_inferred or group != previous_group
    ):
        acc.set("personas", implied, "inferido")
        acc.personas_inferred = True


def _extract_city(acc: _Accumulator, folded: str) -> None:
    for pattern, city, excludes_primary in CITY_PATTERNS:
        if pattern.search(folded):
            acc.set("ciudad", city)
            if excludes_primary:
                if PRIMARY_CITY not in acc.excluded_cities:
                    acc.excluded_cities.append(PRIMARY_CITY)
            elif city == PRIMARY_CITY:
                acc.excluded_cities = [item for item in acc.excluded_cities if item != city]
            return


def _extract_date(acc: _Accumulator, lowered: str) -> None:
    for pattern in DATE_PATTERNS:
        match = pattern.search(lowered)
        if match:
            acc.set("fecha", match.group(0).strip())
            return


def _extract_energy(acc: _Accumulator, folded: str) -> None:
    for word in folded.split():
        energy = SYNONYM_TO_MOOD.get(strip_punctuation(word))
        if energy:
            acc.set("nivel_energia", energy, word)
            return
    for phrase in _MOOD_PHRASES:
        if phrase in folded:
            acc.set("nivel_energia", SYNONYM_TO_MOOD[phrase], phrase)
            return


def _process_turn(acc: _Accumulator, turn: str) -> None:
    lowered = turn.lower()
    folded = fold(turn)

    remaining = _apply_exclusions(acc, folded)
    _extract_people_and_group(acc, folded)
    _extract_city(acc, folded)
    _extract_date(acc, lowered)

    for slot, patterns in (
        ("ocasion", OCCASION_PATTERNS),
        ("modalidad", MODALITY_PATTERNS),
        ("categoria", CATEGORY_PATTERNS),
        ("presupuesto", BUDGET_PATTERNS),
        ("intencion", INTENTION_PATTERNS),
    ):
        value = _first(patterns, remaining)
        if value:
            acc.set(slot, value)

    _extract_energy(acc, remaining)


def _accumulate(turns: Iterable[str]) -> _Accumulator:
    acc = _Accumulator()
    for turn in turns:
        if turn and turn.strip():
            _process_turn(acc, turn)
    return acc


def _build_context(acc: _Accumulator) -> UserContext:
    return UserContext(
        **acc.slots,
        evitar=list(acc.evitar),
        ciudades_excluidas=list(acc.excluded_cities),
        con_ninos=acc.con_ninos,
    )


def extract_accumulated_context(turns: Sequence[str]) -> UserContext:
    """Fold every user turn into a UserContext; pure and idempotent."""
    return _build_context(_accumulate(turns))


def is_confirmation_message(message: str) -> bool:
    clean = fold(message).strip(" .!¡")
    return any(pattern.search(clean) for pattern in CONFIRMATION_PATTERNS)


def _coerce_messages(messages: Iterable[ChatMessage | Mapping[str, Any]]) -> list[ChatMessage]:
    return [
        message if isinstance(message, ChatMessage) else ChatMessage.model_validate(message)
        for message in messages
    ]


def extract_conversation_state(
    messages: Iterable[ChatMessage | Mapping[str, Any]],
) -> ConversationState:
    """Context plus whether the summary bullets were shown and affirmed."""
    history = _coerce_messages(messages)
    acc = _accumulate(message.content for message in history if message.role == "user")

    summary_index = -1
    for index, message in enumerate(history):
        if message.role == "assistant" and all(marker in message.content for marker in SUMMARY_MARKERS):
            summary_index = index

    confirmed = False
    if summary_index >= 0:
        replies = [m for m in history[summary_index + 1 :] if m.role == "user"]
        confirmed = bool(replies) and is_confirmation_message(replies[-1].content)
        if confirmed:
            acc.trail.append("userConfirmed: True")

    return ConversationState(
        context=_build_context(acc),
        confirmation_shown=summary_index >= 0,
        user_confirmed=confirmed,
        extracted_from=acc.trail,
    )


def missing_slots(context: UserContext) -> list[str]:
    missing: list[str] = []
    if not context.ciudad:
        missing.append("ciudad")
    if not context.fecha:
        missing.append("fecha")
    if not context.tipo_grupo:
        missing.append("tipo de grupo")
    # never guess the head count for groups
    if context.tipo_grupo in ("amigos", "familia") and not context.personas:
        missing.append("número de personas")
    return missing


def resolve_date(context: UserContext, ref_date: date | datetime | None = None) -> ParsedDate | None:
    if not context.fecha:
        return None
    return parse_spanish_date(context.fecha, ref_date)


def needs_date_clarification(
    context: UserContext, ref_date: date | datetime | None = None
) -> bool:
    if context.fecha:
        parsed = resolve_date(context, ref_date)
        return parsed is None or parsed.needs_confirmation
    return context.ocasion in DATE_SENSITIVE_OCCASIONS


def get_date_clarification_question(
    parsed: ParsedDate | None, context: UserContext | None = None
) -> str:
    if parsed is not None:
        return generate_date_confirmation_message(parsed)
    ocasion = context.ocasion if context else None
    return DATE_CLARIFICATION_QUESTIONS.get(ocasion or "", DEFAULT_DATE_QUESTION)


def _group_line(context: UserContext) -> str:
    personas = context.personas
    if personas is None and context.tipo_grupo == "pareja":
        personas = 2
    elif personas is None and context.tipo_grupo == "sola":
        personas = 1
    parts: list[str] = []
    if personas:
        parts.append(f"{personas} persona" + ("" if personas == 1 else "s"))
    if context.tipo_grupo:
        parts.append(GROUP_LABELS[context.tipo_grupo])
    if context.con_ninos:
        parts.append("con niños")
    return ", ".join(parts) or "Por definir"


def generate_context_reminder(
    context: UserContext, ref_date: date | datetime | None = None
) -> str:
    """Summary bullets the user must affirm before any recommendation is generated."""
    parsed = resolve_date(context, ref_date)
    if parsed is not None:
        fecha = parsed.display_string
    elif context.fecha:
        fecha = context.fecha[:1].upper() + context.fecha[1:]
    else:
        fecha = "Por definir"

    vibe = ENERGY_VIBES.get(context.nivel_energia or "", DEFAULT_VIBE)
    if context.ocasion:
        vibe = f"{context.ocasion.capitalize()}, {vibe[:1].lower()}{vibe[1:]}"

    lines = [
        f"📍 Ciudad: {context.ciudad or 'Por definir'}",
        f"👥 Grupo: {_group_line(context)}",
        f"📅 Fecha: {fecha}",
        f"💫 Vibe: {vibe}",
    ]
    if context.evitar:
        lines.append(f"🚫 Evitar: {', '.join(context.evitar)}")
    lines.append("¿Está bien así o quieres ajustar algo?")
    return "\n".join(lines)
