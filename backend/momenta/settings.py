from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"
DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "experiences.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    DEBUG: bool = False
    LOG_JSON: bool = False
    ENVIRONMENT: str = "development"

    # Recommendation LLM. Leaving the key unset selects the heuristic engine.
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    # None means the call is awaited without a read timeout of its own
    OPENAI_TIMEOUT_SECONDS: float | None = None
    OPENAI_CONNECT_TIMEOUT_SECONDS: float = 5.0
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 2000
    PROMPT_VERSION: str = "1.1.0"

    SCORING_WEIGHTS: str = "critical=0.40,context=0.35,mood=0.20,modality=0.05"

    # Catalog
    CATALOG_PATH: Path | None = None
    NEAR_CITY_MIN_RESULTS: int = 8

    @property
    def ai_enabled(self) -> bool:
        return bool((self.OPENAI_API_KEY or "").strip())

    @property
    def catalog_path(self) -> Path:
        if self.CATALOG_PATH is not None and str(self.CATALOG_PATH).strip() not in {"", "."}:
            return Path(self.CATALOG_PATH).expanduser()
        return DEFAULT_CATALOG_PATH

    @property
    def parsed_scoring_weights(self) -> ScoringWeights:
        return ScoringWeights.from_string(self.SCORING_WEIGHTS)


@dataclass(slots=True, frozen=True)
class ScoringWeights:
    critical: float = 0.40
    context: float = 0.35
    mood: float = 0.20
    modality: float = 0.05

    @classmethod
    def from_string(cls, payload: str | None) -> ScoringWeights:
        base = cls()
        if not payload:
            return base
        mapping: dict[str, float] = {}
        for part in payload.split(","):
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            key = key.strip().lower()
            try:
                mapping[key] = float(value.strip())
            except ValueError:
                continue
        return cls(
            critical=mapping.get("critical", base.critical),
            context=mapping.get("context", base.context),
            mood=mapping.get("mood", base.mood),
            modality=mapping.get("modality", base.modality),
        )


@dataclass(slots=True, frozen=True)
class ScoringRules:
    """Score deltas used by the heuristic engine, grouped by tier."""

    # Tier 1: critical filters
    critical_base: int = 100
    location_mismatch_penalty: int = -50
    min_people_penalty: int = -30

    # Tier 2: group, occasion, category, budget
    context_base: int = 50
    group_boost: int = 20
    group_penalty: int = -15
    occasion_bonus: int = 10
    category_boost: int = 20
    budget_bonus: int = 5

    # Tier 3: energy, intention, exclusions
    mood_base: int = 50
    energy_boost: int = 25
    energy_penalty: int = -30
    intention_bonus: int = 10
    exclusion_penalty: int = -25

    # Tier 4: modality
    modality_base: int = 70
    modality_bonus: int = 15

    # Budget brackets in COP
    budget_low_max: int = 100_000
    budget_high_min: int = 250_000

    # Reason templating
    enthusiastic_threshold: int = 80
    positive_threshold: int = 65
    price_caveat_threshold: int = 200_000


DEFAULT_RULES = ScoringRules()

settings = Settings()
