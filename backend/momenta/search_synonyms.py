from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType

from .schemas import Experience
from .text import fold, strip_punctuation

SEARCH_SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        # photography / scrapbooking
        "álbum": ("scrapbook", "scrapbooking", "fotografía", "fotos", "recuerdos", "manualidades"),
        "álbumes": ("scrapbook", "scrapbooking", "fotografía", "fotos", "recuerdos"),
        "fotografía": ("scrapbook", "scrapbooking", "fotos", "álbum", "recuerdos"),
        "fotos": ("scrapbook", "scrapbooking", "fotografía", "álbum"),
        # arts & crafts
        "manualidades": ("kintsugi", "cerámica", "joyería", "scrapbook", "scrapbooking", "arte", "taller"),
        "arte": ("kintsugi", "cerámica", "joyería", "pintura", "manualidades", "creativo"),
        "artístico": ("kintsugi", "cerámica", "joyería", "pintura", "arte", "creativo"),
        "creativo": ("kintsugi", "cerámica", "joyería", "pintura", "arte", "manualidades"),
        # nature
        "naturaleza": ("outdoor", "neusa", "campo", "aventura", "aire libre", "escapada", "montaña"),
        "campo": ("outdoor", "neusa", "naturaleza", "escapada", "aire libre"),
        "montaña": ("outdoor", "neusa", "naturaleza", "aventura", "senderismo"),
        "aire libre": ("outdoor", "naturaleza", "campo", "aventura", "neusa"),
        # drinks
        "tragos": ("coctelería", "mixología", "licores", "cocteles", "bar"),
        "cocteles": ("coctelería", "mixología", "tragos", "bar"),
        "licor": ("licores", "destilados", "cata", "aguardiente"),
        "licores": ("destilados", "cata", "aguardiente", "licor"),
        "bebidas": ("coctelería", "vino", "cerveza", "licores", "café"),
        "cerveza": ("cervecera", "cervecería", "cata", "artesanal"),
        # cuisines
        "italiana": ("pasta", "italian", "cocina italiana"),
        "pasta": ("italiana", "cocina italiana", "italian"),
        "japonesa": ("sushi", "japón", "cocina japonesa"),
        "sushi": ("japonesa", "japón", "cocina japonesa"),
        "mexicana": ("tacos", "tamalitos", "méxico", "cocina mexicana"),
        # wellness
        "relajación": ("spa", "masaje", "bienestar", "yoga", "relax"),
        "bienestar": ("spa", "masaje", "yoga", "relajación", "wellness"),
        "masajes": ("masaje", "spa", "relajación", "bienestar"),
        # occasions
        "romántico": ("pareja", "íntimo", "cena", "privado", "especial"),
        "celebración": ("fiesta", "cumpleaños", "brindis", "festejo"),
        "cumpleaños": ("celebración", "fiesta", "especial", "festejo"),
    }
)

_STOPWORDS = frozenset(
    {"de", "del", "la", "las", "el", "los", "una", "uno", "para", "con", "que", "algo", "quiero", "taller"}
)

_FOLDED_SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {fold(key): value for key, value in SEARCH_SYNONYMS.items()}
)


def _add(terms: dict[str, None], values: Iterable[str]) -> None:
    for value in values:
        cleaned = value.lower().strip()
        if cleaned:
            terms.setdefault(cleaned, None)


def expand_search_terms(query: str) -> list[str]:
    """Return the query, its words and every dictionary synonym they trigger.

    Single words are looked up exactly (punctuation stripped); multi-word keys
    fire when they appear anywhere in the query.
    """
    normalized = " ".join(query.lower().split())
    if not normalized:
        return []

    terms: dict[str, None] = {}
    _add(terms, [normalized])
    for word in normalized.split(" "):
        _add(terms, [word])
        synonyms = _FOLDED_SYNONYMS.get(fold(strip_punctuation(word)))
        if synonyms:
            _add(terms, synonyms)

    folded_query = fold(normalized)
    for key, synonyms in _FOLDED_SYNONYMS.items():
        if key in folded_query:
            _add(terms, synonyms)

    return list(terms)


def matches_expanded_terms(experience: Experience, terms: Sequence[str]) -> bool:
    haystack = fold(experience.search_blob)
    return any(fold(term) in haystack for term in terms if term.strip())


def search_experiences(query: str, experiences: Sequence[Experience]) -> list[Experience]:
    terms = [
        term for term in expand_search_terms(query) if len(term) > 2 and term not in _STOPWORDS
    ]
    if not terms:
        return list(experiences)
    return [experience for experience in experiences if matches_expanded_terms(experience, terms)]
