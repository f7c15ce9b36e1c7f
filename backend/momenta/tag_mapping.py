"""Static tables mapping context slots to catalog tags."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .text import dedupe

AVAILABLE_TAGS: tuple[str, ...] = (
    "Aventura",
    "Belleza y Autocuidado",
    "Bienestar",
    "Cerca a Bogotá",
    "Cocina",
    "Corporativo",
    "En Bogotá",
    "En tu casa",
    "Fiesta",
    "Gastronómico",
    "Individual",
    "Manualidad",
    "Online",
    "Para grupos",
    "Para niños",
    "Para parejas",
)


@dataclass(frozen=True, slots=True)
class TagRule:
    boost: tuple[str, ...]
    penalty: tuple[str, ...] = ()
    description: str = ""


def _rule(boost: Iterable[str], penalty: Iterable[str] = (), description: str = "") -> TagRule:
    # tag matching is case-insensitive, so "Para niños" and "Para Niños" collapse
    return TagRule(tuple(dedupe(boost)), tuple(dedupe(penalty)), description)


ENERGY_TAG_MAPPING: Mapping[str, TagRule] = MappingProxyType(
    {
        "slow_cozy": _rule(
            ["Bienestar", "Belleza y Autocuidado", "En tu casa"],
            ["Cocina", "Aventura", "Fiesta", "Para grupos"],
            "Tranquilo, relajado, calma, zen, descansar",
        ),
        "calm_mindful": _rule(
            ["Para parejas", "Bienestar", "Belleza y Autocuidado", "Gastronómico", "En tu casa"],
            ["Para grupos", "Fiesta", "Corporativo", "Para niños"],
            "Íntimo, especial, romántico, reflexivo",
        ),
        "uplifting": _rule(
            ["Cocina", "Manualidad", "Aventura", "Gastronómico"],
            ["Bienestar", "Online"],
            "Activo, divertido, movido, aventura",
        ),
        "social": _rule(
            ["Para grupos", "Fiesta", "Cocina", "Gastronómico"],
            ["Individual", "En tu casa"],
            "Parche, fiesta, social, conversación",
        ),
    }
)

GROUP_TAG_MAPPING: Mapping[str, TagRule] = MappingProxyType(
    {
        "sola": _rule(
            ["Individual", "Bienestar", "Belleza y Autocuidado"],
            ["Para grupos", "Para parejas", "Fiesta"],
        ),
        "pareja": _rule(
            ["Para parejas", "Gastronómico", "Bienestar"],
            ["Para grupos", "Corporativo", "Para niños"],
        ),
        "familia": _rule(
            ["Para niños", "Para Niños", "Cocina", "Manualidad"],
            ["Corporativo", "Fiesta"],
        ),
        "amigos": _rule(
            ["Para grupos", "Cocina", "Fiesta", "Gastronómico", "Aventura"],
            ["Individual", "Corporativo"],
        ),
    }
)

CATEGORY_TAG_MAPPING: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "gastronomia": ("Cocina", "Gastronómico"),
        "bienestar": ("Bienestar", "Belleza y Autocuidado"),
        "arte_creatividad": ("Manualidad",),
        "aventura": ("Aventura", "Cerca a Bogotá"),
        "cultural": ("Manualidad",),
    }
)

AVOID_TAG_MAPPING: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "multitudes": ("Para grupos", "Fiesta"),
        "ruido": ("Fiesta", "Para grupos"),
        "alcohol": ("Gastronómico",),
        "largas_distancias": ("Cerca a Bogotá", "Aventura"),
        "aventura": ("Aventura",),
        "cocina": ("Cocina",),
    }
)

# Exclusions that name an activity rather than a tag are matched in title/description
AVOID_KEYWORD_MAPPING: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "yoga": ("yoga",),
        "spa": ("spa",),
        "masaje": ("masaje",),
        "alcohol": ("vino", "cerveza", "coctel", "cocteleria", "licor", "aguardiente", "tragos"),
        "cocina": ("taller de cocina", "cocinar"),
        "aventura": ("parapente", "rafting", "escalada", "extremo"),
    }
)

OCCASION_HINTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "cumpleaños": ("Fiesta", "Para grupos", "celebra", "brindis"),
        "celebración": ("Fiesta", "Para grupos", "celebra", "brindis"),
        "festividad": ("Para parejas", "Gastronómico", "especial"),
        "graduación": ("Fiesta", "Para grupos", "celebra"),
        "aniversario": ("Para parejas", "romantic", "especial"),
        "cita": ("Para parejas", "romantic", "Gastronómico"),
        "despedida": ("Fiesta", "Para grupos"),
        "reencuentro": ("Para grupos", "Gastronómico", "Cocina"),
    }
)

INTENTION_HINTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "invitar": ("cena", "gastronomic", "cata", "para parejas"),
        "sorprender": ("sorpresa", "diferente", "unic", "exclusiv", "privad"),
        "compartir": ("para grupos", "compartir", "cocina", "equipo"),
        "agradecer": ("regalo", "especial", "bienestar", "spa"),
        "celebrar": ("fiesta", "brindis", "celebra", "cata"),
    }
)

MODALITY_HINTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "stay_in": ("en tu casa", "a domicilio", "en casa", "online"),
        "outdoor": ("aire libre", "outdoor", "naturaleza", "campo", "montana", "aventura"),
        "indoor": ("taller", "estudio", "restaurante", "spa", "cocina"),
    }
)


def avoid_tags_for(evitar: Iterable[str]) -> list[str]:
    tags: list[str] = []
    for item in evitar:
        tags.extend(AVOID_TAG_MAPPING.get(item, ()))
    return dedupe(tags)


def generate_scoring_instructions(
    nivel_energia: str | None = None,
    tipo_grupo: str | None = None,
    categoria: str | None = None,
    evitar: Iterable[str] = (),
) -> str:
    """Tag guidance appended to the LLM prompt so both engines agree on tag semantics."""
    sections: list[str] = []

    energy = ENERGY_TAG_MAPPING.get(nivel_energia or "")
    if energy:
        sections.append(
            f"FILTRO POR NIVEL DE ENERGÍA ({energy.description}):\n"
            f"  PRIORIZA experiencias con tags: {', '.join(energy.boost)}\n"
            f"  PENALIZA experiencias con tags: {', '.join(energy.penalty)}\n"
            "  -> Con tags de penalización el puntaje de mood debe ser BAJO (< 40)\n"
            "  -> Con tags de prioridad el puntaje de mood debe ser ALTO (> 75)"
        )

    group = GROUP_TAG_MAPPING.get(tipo_grupo or "")
    if group:
        sections.append(
            f"FILTRO POR TIPO DE GRUPO ({tipo_grupo}):\n"
            f"  PRIORIZA experiencias con tags: {', '.join(group.boost)}\n"
            f"  PENALIZA experiencias con tags: {', '.join(group.penalty)}"
        )

    category_tags = CATEGORY_TAG_MAPPING.get(categoria or "")
    if category_tags:
        sections.append(
            f"FILTRO POR CATEGORÍA ({categoria}):\n"
            f"  PRIORIZA experiencias con tags: {', '.join(category_tags)}\n"
            "  -> Experiencias sin estos tags deben tener puntaje de contexto BAJO (< 50)"
        )

    avoid = avoid_tags_for(evitar)
    if avoid:
        sections.append(
            "COSAS A EVITAR:\n"
            f"  EXCLUYE o PENALIZA FUERTEMENTE experiencias con tags: {', '.join(avoid)}"
        )

    return "\n\n".join(sections)
