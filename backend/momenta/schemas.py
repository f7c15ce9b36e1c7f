from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TipoGrupo = Literal["sola", "pareja", "familia", "amigos"]
Presupuesto = Literal["bajo", "medio", "alto", "no_prioritario"]
NivelEnergia = Literal["slow_cozy", "calm_mindful", "uplifting", "social"]
Intencion = Literal["invitar", "sorprender", "compartir", "agradecer", "celebrar"]
Modalidad = Literal["indoor", "outdoor", "stay_in"]

NEAR_CITY = "Cerca a Bogotá"
PRIMARY_CITY = "Bogotá"

_DIGITS_RE = re.compile(r"\d+")
_CENTS_RE = re.compile(r"[.,]\d{2}$")


class Price(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: str
    currency: str = "COP"
    unit: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> object:
        if isinstance(value, (int, float)):
            return str(int(value))
        return value

    @property
    def value(self) -> int | None:
        """Numeric amount; catalog prices may carry thousands separators."""
        whole = _CENTS_RE.sub("", self.amount.strip())
        digits = "".join(_DIGITS_RE.findall(whole))
        return int(digits) if digits else None


class Experience(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    description: str = ""
    categories: tuple[str, ...] = ()
    price: Price | None = None
    duration: str | None = None
    min_people: int | None = Field(default=None, alias="minPeople")
    location: str = ""
    url: str = ""
    image: str = ""

    @property
    def price_value(self) -> int | None:
        return self.price.value if self.price else None

    @property
    def search_blob(self) -> str:
        return " ".join([self.title, self.description, *self.categories])


class UserContext(BaseModel):
    """Slots accumulated over one conversation."""

    model_config = ConfigDict(populate_by_name=True)

    ciudad: str | None = None
    ciudades_excluidas: list[str] = Field(default_factory=list, alias="ciudadesExcluidas")
    fecha: str | None = None
    personas: int | None = Field(default=None, ge=1)
    tipo_grupo: TipoGrupo | None = Field(default=None, alias="tipoGrupo")
    ocasion: str | None = None
    categoria: str | None = None
    presupuesto: Presupuesto | None = None
    nivel_energia: NivelEnergia | None = Field(default=None, alias="nivelEnergia")
    intencion: Intencion | None = None
    evitar: list[str] = Field(default_factory=list)
    modalidad: Modalidad | None = None
    con_ninos: bool = Field(default=False, alias="conNinos")

    @field_validator("evitar")
    @classmethod
    def _dedupe_evitar(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for item in value:
            cleaned = item.strip().lower()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen


class ScoringBreakdown(BaseModel):
    critical: int = Field(ge=0, le=100)
    context: int = Field(ge=0, le=100)
    mood: int = Field(ge=0, le=100)
    modality: int = Field(ge=0, le=100)
    total: int = Field(ge=0, le=100)


class Recommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    experience: Experience
    score_breakdown: ScoringBreakdown = Field(alias="scoreBreakdown")
    reasons: str = Field(min_length=10)


class AITierScores(BaseModel):
    critical: float = Field(ge=0, le=100)
    context: float = Field(ge=0, le=100)
    mood: float = Field(ge=0, le=100)
    modality: float = Field(ge=0, le=100)


class AIRecommendationItem(BaseModel):
    experience_id: str
    scores: AITierScores
    reasons: str = Field(min_length=10)


class AIRecommendationResponse(BaseModel):
    recommendations: list[AIRecommendationItem] = Field(min_length=3, max_length=5)


class RecommendationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model: str
    prompt_version: str = Field(alias="promptVersion")
    timestamp: datetime


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation] = Field(default_factory=list, max_length=5)
    meta: RecommendationMeta


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: str = ""
