from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .schemas import Experience, UserContext
from .settings import Settings, settings
from .tag_mapping import generate_scoring_instructions

SYSTEM_PROMPT = (
    "Eres Momenta, un mejor amigo con gran gusto que ayuda a las personas a descubrir "
    "experiencias para vivir momentos especiales. No recomiendas lugares, recomiendas momentos.\n\n"
    "Tu tarea:\n"
    "1. Analiza el contexto del usuario (ocasión, con quién va, energía, presupuesto, ciudad).\n"
    "2. Evalúa las experiencias disponibles del catálogo de Momenta.\n"
    "3. Puntúa cada experiencia en cuatro niveles de 0 a 100:\n"
    "   - critical: ubicación correcta y mínimo de personas cumplido.\n"
    "   - context: encaje con el grupo, la ocasión, la categoría y el presupuesto.\n"
    "   - mood: encaje con el nivel de energía, la intención y las cosas a evitar.\n"
    "   - modality: encaje con la modalidad (indoor, outdoor, en casa).\n"
    "4. Devuelve entre 3 y 5 experiencias ordenadas de mayor a menor encaje.\n\n"
    "Reglas para \"reasons\":\n"
    "- Un párrafo corto (2 a 4 frases), cálido y humano, sin viñetas ni lenguaje técnico.\n"
    "- Habla directo al usuario y explica por qué la experiencia encaja con este momento.\n"
    "- Si hay un trade-off, menciónalo con honestidad. Nunca inventes datos.\n\n"
    "Responde SOLO con JSON válido que cumpla el esquema."
)

OUTPUT_GUIDE = (
    "FORMATO DE SALIDA (JSON):\n"
    '{"recommendations": [{"experience_id": "exp-0", '
    '"scores": {"critical": 0, "context": 0, "mood": 0, "modality": 0}, '
    '"reasons": "..."}]}\n'
    "Usa exactamente los IDs exp-<n> de la lista. Incluye de 3 a 5 recomendaciones."
)

_CONTEXT_LABELS = (
    ("ciudad", "Ciudad"),
    ("fecha", "Fecha"),
    ("personas", "Personas"),
    ("tipo_grupo", "Con quién"),
    ("ocasion", "Ocasión"),
    ("categoria", "Categoría"),
    ("presupuesto", "Presupuesto"),
    ("nivel_energia", "Energía"),
    ("intencion", "Intención"),
    ("modalidad", "Modalidad"),
)


@dataclass(slots=True, frozen=True)
class PromptConfig:
    temperature: float
    max_tokens: int
    version: str


@dataclass(slots=True, frozen=True)
class Prompt:
    system: str
    user: str
    config: PromptConfig


def format_price(experience: Experience) -> str:
    value = experience.price_value
    if value is None or experience.price is None:
        return "Precio no disponible"
    return f"{value:,}".replace(",", ".") + f" {experience.price.currency}"


def experience_id(index: int) -> str:
    return f"exp-{index}"


def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def _describe_context(context: UserContext) -> str:
    lines = ["CONTEXTO DEL USUARIO:"]
    for attr, label in _CONTEXT_LABELS:
        value = getattr(context, attr)
        lines.append(f"- {label}: {value if value not in (None, '') else 'No especificado'}")
    if context.evitar:
        lines.append(f"- Evitar: {', '.join(context.evitar)}")
    if context.ciudades_excluidas:
        lines.append(f"- Ciudades excluidas: {', '.join(context.ciudades_excluidas)}")
    if context.con_ninos:
        lines.append("- Van con niños")
    return "\n".join(lines)


def _describe_experience(index: int, experience: Experience) -> str:
    return "\n".join(
        [
            f"{index + 1}. {experience.title}",
            f"   - ID: {experience_id(index)}",
            f"   - Categorías: {', '.join(experience.categories)}",
            f"   - Precio: {format_price(experience)}",
            f"   - Duración: {experience.duration or 'No especificada'}",
            f"   - Mínimo de personas: {experience.min_people or 'Flexible'}",
            f"   - Ubicación: {experience.location}",
            f"   - Descripción: {experience.description[:200]}",
        ]
    )


def build_user_prompt(context: UserContext, experiences: Sequence[Experience]) -> str:
    sections = [_describe_context(context)]
    instructions = generate_scoring_instructions(
        context.nivel_energia, context.tipo_grupo, context.categoria, context.evitar
    )
    if instructions:
        sections.append(instructions)
    sections.append(
        "EXPERIENCIAS DISPONIBLES:\n"
        + "\n\n".join(_describe_experience(idx, exp) for idx, exp in enumerate(experiences))
    )
    sections.append(OUTPUT_GUIDE)
    return "\n\n".join(sections)


def build_prompt(
    context: UserContext,
    experiences: Sequence[Experience],
    config: Settings | None = None,
) -> Prompt:
    config = config or settings
    return Prompt(
        system=build_system_prompt(),
        user=build_user_prompt(context, experiences),
        config=PromptConfig(
            temperature=config.LLM_TEMPERATURE,
            max_tokens=config.LLM_MAX_TOKENS,
            version=config.PROMPT_VERSION,
        ),
    )

