from __future__ import annotations

import re
from enum import Enum

from .context_extractor import extract_accumulated_context, is_confirmation_message
from .text import fold


class MessageIntent(str, Enum):
    GREETING = "GREETING"
    DISCOVERY = "DISCOVERY"
    SPECIFIC_SEARCH = "SPECIFIC_SEARCH"
    FEEDBACK = "FEEDBACK"
    QUESTION = "QUESTION"
    CONFIRMATION = "CONFIRMATION"
    MODIFICATION = "MODIFICATION"
    OFF_TOPIC = "OFF_TOPIC"
    UNCLEAR = "UNCLEAR"


GREETING_RE = re.compile(
    r"^(?:hola|holi|buenas|buenos\s+dias|buenas\s+tardes|buenas\s+noches|hey|que\s+mas|quiubo|saludos)\b"
)
FEEDBACK_RE = re.compile(
    r"\b(?:me\s+(?:gusta|gusto|encanta|encanto|interesa)|la\s+(?:primera|segunda|tercera|cuarta|quinta|ultima)|"
    r"opcion\s+\d|ninguna|no\s+me\s+convence|no\s+me\s+gusto|quiero\s+la)\b"
)
MODIFICATION_RE = re.compile(
    r"\b(?:cambia|cambiar|cambiemos|mejor\s+(?:el|la|para|en|con|sin)|en\s+vez\s+de|"
    r"ajusta|ajustar|otra\s+fecha|no\s+es\s+para|corrijo|perdon,?\s+(?:es|somos))\b"
)
SERVICE_QUESTION_RE = re.compile(
    r"\b(?:que\s+es\s+momenta|quienes\s+son|como\s+funciona|como\s+reservo|como\s+pago|"
    r"cuanto\s+cuesta|hay\s+descuento|giveaway|sorteo|politica)\b"
)
DISCOVERY_RE = re.compile(
    r"\b(?:quiero|queremos|busco|buscamos|recomienda|recomiendame|ideas?|plan|algo|experiencias?|"
    r"no\s+se\s+que|sugerencias?)\b"
)
OFF_TOPIC_RE = re.compile(
    r"\b(?:clima|futbol|partido|noticias|presidente|bitcoin|tarea|codigo|programar|chiste|receta)\b"
)
_SLOT_FIELDS = (
    "ciudad",
    "fecha",
    "personas",
    "tipo_grupo",
    "ocasion",
    "categoria",
    "nivel_energia",
    "modalidad",
)


def classify_message(
    text: str,
    *,
    recommendations_shown: bool = False,
    confirmation_shown: bool = False,
) -> MessageIntent:
    """Heuristic label for one user message, used to pick the conversational flow."""
    folded = fold(text).strip()
    if not folded:
        return MessageIntent.UNCLEAR

    if confirmation_shown and is_confirmation_message(text):
        return MessageIntent.CONFIRMATION
    if recommendations_shown and FEEDBACK_RE.search(folded):
        return MessageIntent.FEEDBACK
    if (confirmation_shown or recommendations_shown) and MODIFICATION_RE.search(folded):
        return MessageIntent.MODIFICATION
    if SERVICE_QUESTION_RE.search(folded):
        return MessageIntent.QUESTION

    context = extract_accumulated_context([text])
    if any(getattr(context, name) for name in _SLOT_FIELDS) or context.evitar:
        return MessageIntent.SPECIFIC_SEARCH
    if DISCOVERY_RE.search(folded):
        return MessageIntent.DISCOVERY
    if GREETING_RE.search(folded):
        return MessageIntent.GREETING
    if OFF_TOPIC_RE.search(folded):
        return MessageIntent.OFF_TOPIC
    if folded.endswith("?"):
        return MessageIntent.QUESTION
    return MessageIntent.UNCLEAR
