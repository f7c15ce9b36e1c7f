"""Tool calls the chat model can make, validated at the boundary.

Each tool has a strict argument model; ``parse_tool_call`` resolves the
tool name into the matching model through a discriminated union and turns
pydantic errors into ``ToolArgumentsError``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .ai_service import LLMCallable, generate_ai_recommendations_async
from .catalog import experiences_for_city
from .context_extractor import generate_context_reminder
from .logging_config import get_logger
from .prefilters import (
    MinPeopleFilterResult,
    prefilter_by_energy,
    prefilter_by_exclusions,
    prefilter_by_min_people,
)
from .schemas import (
    NEAR_CITY,
    Experience,
    Intencion,
    Modalidad,
    NivelEnergia,
    Presupuesto,
    Price,
    Recommendation,
    ScoringBreakdown,
    TipoGrupo,
    UserContext,
)
from .settings import Settings, settings
from .text import fold

logger = get_logger(__name__)

NO_EXPERIENCES_ERROR = "No hay experiencias disponibles en esta ciudad"
GENERIC_ERROR = "Error generando recomendaciones"
DEFAULT_FOLLOW_UP = "Pudiste revisar las experiencias, ¿cuál te gustó más? 😊"


class ToolArgumentsError(ValueError):
    """Raised when a tool call carries arguments that do not match its schema."""

    def __init__(self, tool: str, errors: list[dict[str, Any]] | None = None, message: str = ""):
        self.tool = tool
        self.errors = errors or []
        super().__init__(message or f"Invalid arguments for tool {tool!r}")


class _ToolCall(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _normalize_city(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if fold(cleaned).startswith("cerca"):
        return NEAR_CITY
    return cleaned or None


class GetRecommendationsCall(_ToolCall):
    tool: Literal["getRecommendations"] = "getRecommendations"

    intro_message: str | None = Field(default=None, alias="introMessage")
    follow_up_question: str | None = Field(default=None, alias="followUpQuestion")

    ciudad: str
    fecha: str
    personas: int = Field(ge=1)

    tipo_grupo: TipoGrupo = Field(alias="tipoGrupo")
    ocasion: str | None = None
    categoria: str | None = None
    presupuesto: Presupuesto | None = None

    nivel_energia: NivelEnergia | None = Field(default=None, alias="nivelEnergia")
    intencion: Intencion | None = None
    evitar: list[str] = Field(default_factory=list)
    ciudades_excluidas: list[str] = Field(default_factory=list, alias="ciudadesExcluidas")

    modalidad: Modalidad | None = None

    @field_validator("ciudad")
    @classmethod
    def _normalize_ciudad(cls, value: str) -> str:
        return _normalize_city(value) or value

    def to_context(self) -> UserContext:
        return UserContext(
            ciudad=self.ciudad,
            ciudades_excluidas=self.ciudades_excluidas,
            fecha=self.fecha,
            personas=self.personas,
            tipo_grupo=self.tipo_grupo,
            ocasion=self.ocasion,
            categoria=self.categoria,
            presupuesto=self.presupuesto,
            nivel_energia=self.nivel_energia,
            intencion=self.intencion,
            evitar=self.evitar,
            modalidad=self.modalidad,
        )


class ConfirmSearchCall(_ToolCall):
    tool: Literal["confirmSearch"] = "confirmSearch"

    ciudad: str | None = None
    fecha: str | None = None
    personas: int | None = Field(default=None, ge=1)
    tipo_grupo: TipoGrupo | None = Field(default=None, alias="tipoGrupo")
    ocasion: str | None = None
    nivel_energia: NivelEnergia | None = Field(default=None, alias="nivelEnergia")
    evitar: list[str] = Field(default_factory=list)

    @field_validator("ciudad")
    @classmethod
    def _normalize_ciudad(cls, value: str | None) -> str | None:
        return _normalize_city(value)

    def to_context(self) -> UserContext:
        return UserContext(
            ciudad=self.ciudad,
            fecha=self.fecha,
            personas=self.personas,
            tipo_grupo=self.tipo_grupo,
            ocasion=self.ocasion,
            nivel_energia=self.nivel_energia,
            evitar=self.evitar,
        )


class RecommendationContext(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    recommendation_ids: list[str] = Field(default_factory=list, alias="recommendationIds")
    user_sentiment: Literal["positive", "negative"] = Field(alias="userSentiment")


class RequestFeedbackCall(_ToolCall):
    tool: Literal["requestFeedback"] = "requestFeedback"

    context_message: str = Field(alias="contextMessage", min_length=1)
    recommendation_context: RecommendationContext | None = Field(
        default=None, alias="recommendationContext"
    )


ToolCall = Annotated[
    Union[GetRecommendationsCall, ConfirmSearchCall, RequestFeedbackCall],
    Field(discriminator="tool"),
]
_TOOL_CALL = TypeAdapter(ToolCall)
TOOL_NAMES = ("getRecommendations", "confirmSearch", "requestFeedback")


class RecommendationCard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    url: str
    image: str = ""
    price: Price | None = None
    location: str
    duration: str | None = None
    categories: list[str] = Field(default_factory=list)
    score_breakdown: ScoringBreakdown = Field(alias="scoreBreakdown")
    reasons: str


class RecommendationsSuccess(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success"] = "success"
    success: Literal[True] = True
    intro_message: str | None = Field(default=None, alias="introMessage")
    follow_up_question: str = Field(default=DEFAULT_FOLLOW_UP, alias="followUpQuestion")
    recommendations: list[RecommendationCard]
    context: GetRecommendationsCall
    more_people_suggestion: str | None = Field(default=None, alias="morePeopleSuggestion")
    excluded_count: int = Field(default=0, alias="excludedCount")


class RecommendationsError(BaseModel):
    status: Literal["error"] = "error"
    success: Literal[False] = False
    error: str
    recommendations: list[RecommendationCard] = Field(default_factory=list)


class ConfirmSearchResult(BaseModel):
    success: bool = True
    message: str
    context: UserContext


class FeedbackResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    show_feedback_form: bool = Field(default=True, alias="showFeedbackForm")
    context: RecommendationContext | None = None


def parse_tool_call(
    name: str, arguments: Mapping[str, Any] | str | None
) -> GetRecommendationsCall | ConfirmSearchCall | RequestFeedbackCall:
    if name not in TOOL_NAMES:
        raise ToolArgumentsError(name, message=f"Unknown tool {name!r}")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as exc:
            raise ToolArgumentsError(name, message=f"Arguments for {name!r} are not JSON") from exc
    if arguments is not None and not isinstance(arguments, Mapping):
        raise ToolArgumentsError(name, message=f"Arguments for {name!r} must be an object")
    payload = {**(arguments or {}), "tool": name}
    try:
        return _TOOL_CALL.validate_python(payload)
    except ValidationError as exc:
        raise ToolArgumentsError(name, exc.errors(include_url=False)) from exc


def _to_card(recommendation: Recommendation) -> RecommendationCard:
    experience = recommendation.experience
    return RecommendationCard(
        title=experience.title,
        description=experience.description,
        url=experience.url,
        image=experience.image or "",
        price=experience.price,
        location=experience.location,
        duration=experience.duration,
        categories=list(experience.categories),
        score_breakdown=recommendation.score_breakdown,
        reasons=recommendation.reasons,
    )


def more_people_suggestion(result: MinPeopleFilterResult, categoria: str | None) -> str | None:
    """Nudge toward a bigger group when the requested category was filtered out."""
    if not result.excluded or not categoria:
        return None
    wanted = fold(categoria)
    relevant = [
        (title, min_people)
        for title, min_people in result.excluded
        if wanted in fold(title) or (wanted == "cerveza" and "cervecer" in fold(title))
    ]
    if not relevant:
        return None
    titles = ", ".join(title for title, _ in relevant)
    minimum = min(min_people for _, min_people in relevant)
    return (
        f'La experiencia "{titles}" requiere mínimo {minimum} personas. '
        "Si agregan más amigos, podrían acceder a ella."
    )


def _candidate_pool(
    call: GetRecommendationsCall, catalog: Sequence[Experience], config: Settings
) -> tuple[list[Experience], MinPeopleFilterResult]:
    pool = experiences_for_city(
        catalog, call.ciudad, excluded=call.ciudades_excluidas, config=config
    )
    pool = prefilter_by_energy(pool, call.nivel_energia)
    pool = prefilter_by_exclusions(pool, call.evitar)
    min_people = prefilter_by_min_people(pool, call.personas)
    return min_people.filtered, min_people


async def run_get_recommendations(
    call: GetRecommendationsCall,
    catalog: Sequence[Experience],
    *,
    llm: LLMCallable | None = None,
    config: Settings | None = None,
) -> RecommendationsSuccess | RecommendationsError:
    config = config or settings
    try:
        pool, min_people = _candidate_pool(call, catalog, config)
        if not pool:
            logger.info("recommendations_generated", engine="none", ciudad=call.ciudad, count=0)
            return RecommendationsError(error=NO_EXPERIENCES_ERROR)

        recommendations = await generate_ai_recommendations_async(
            call.to_context(), pool, llm=llm, config=config
        )
        suggestion = more_people_suggestion(min_people, call.categoria)
    except Exception as exc:  # noqa: BLE001
        logger.error("get_recommendations_failed", exc_info=exc)
        return RecommendationsError(error=GENERIC_ERROR)

    return RecommendationsSuccess(
        intro_message=call.intro_message,
        follow_up_question=call.follow_up_question or DEFAULT_FOLLOW_UP,
        recommendations=[_to_card(rec) for rec in recommendations],
        context=call,
        more_people_suggestion=suggestion,
        excluded_count=len(min_people.excluded),
    )


def run_confirm_search(
    call: ConfirmSearchCall, ref_date: date | datetime | None = None
) -> ConfirmSearchResult:
    context = call.to_context()
    return ConfirmSearchResult(message=generate_context_reminder(context, ref_date), context=context)


def run_request_feedback(call: RequestFeedbackCall) -> FeedbackResult:
    return FeedbackResult(message=call.context_message, context=call.recommendation_context)
