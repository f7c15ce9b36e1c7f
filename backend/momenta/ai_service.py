"""LLM scoring pass with the heuristic engine as a safety net.

Whatever goes wrong on the AI path (missing key, transport, malformed JSON,
schema violations, hallucinated ids) ends in the fallback engine, so callers
always get a usable list.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any

from pydantic import ValidationError

from .json_utils import extract_json_dict, message_content
from .logging_config import get_logger
from .openai_async import OpenAIUnavailable, post_json
from .prompt_builder import Prompt, build_prompt
from .schemas import (
    AIRecommendationResponse,
    Experience,
    Recommendation,
    RecommendationMeta,
    RecommendationResponse,
    ScoringBreakdown,
    UserContext,
)
from .scoring import TierScores, clamp, generate_fallback_recommendations, round_half_up, weighted_total
from .settings import Settings, settings

logger = get_logger(__name__)

FALLBACK_MODEL = "fallback-v1"
MAX_RECOMMENDATIONS = 5

LLMCallable = Callable[[Prompt, dict[str, Any]], Awaitable[dict[str, Any]]]

_EXPERIENCE_ID_RE = re.compile(r"^exp-(\d+)$")
_NEW_STYLE_MODEL_PREFIXES = ("gpt-4o", "gpt-4.1", "gpt-5", "o1", "o3", "o4", "o-")


class AIRecommendationError(RuntimeError):
    """Raised when the model output cannot be turned into recommendations."""


def _token_param(model: str | None) -> str:
    name = (model or "").lower()
    if name.startswith(_NEW_STYLE_MODEL_PREFIXES):
        return "max_completion_tokens"
    return "max_tokens"


def _prompt_fingerprint(prompt: Prompt) -> str:
    return sha256(f"{prompt.system}\n{prompt.user}".encode("utf-8")).hexdigest()[:10]


def get_model_name(config: Settings | None = None) -> str:
    config = config or settings
    return config.OPENAI_MODEL if config.ai_enabled else FALLBACK_MODEL


def response_schema() -> dict[str, Any]:
    return AIRecommendationResponse.model_json_schema()


def _openai_caller(config: Settings) -> LLMCallable:
    async def call(prompt: Prompt, schema: dict[str, Any]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": config.OPENAI_MODEL,
            "temperature": prompt.config.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "recommendations", "schema": schema, "strict": False},
            },
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        payload[_token_param(config.OPENAI_MODEL)] = prompt.config.max_tokens
        response = await post_json("/chat/completions", payload, config=config)
        content = message_content(response)
        if not content:
            raise AIRecommendationError("Empty LLM response")
        return extract_json_dict(content)

    return call


def _experience_index(experience_id: str, pool_size: int) -> int | None:
    match = _EXPERIENCE_ID_RE.match(experience_id.strip())
    if not match:
        return None
    index = int(match.group(1))
    return index if index < pool_size else None


def map_ai_response(
    parsed: AIRecommendationResponse,
    experiences: Sequence[Experience],
    config: Settings | None = None,
) -> list[Recommendation]:
    """Resolve ``exp-<n>`` ids against the pool, dropping unknown ids and repeats."""
    config = config or settings
    weights = config.parsed_scoring_weights
    seen: set[int] = set()
    mapped: list[Recommendation] = []
    for item in parsed.recommendations:
        index = _experience_index(item.experience_id, len(experiences))
        if index is None or index in seen:
            logger.warning(
                "ai_entry_discarded",
                experience_id=item.experience_id,
                reason="duplicate" if index is not None else "unknown_id",
            )
            continue
        seen.add(index)
        tiers = TierScores(
            critical=clamp(round_half_up(item.scores.critical)),
            context=clamp(round_half_up(item.scores.context)),
            mood=clamp(round_half_up(item.scores.mood)),
            modality=clamp(round_half_up(item.scores.modality)),
        )
        mapped.append(
            Recommendation(
                experience=experiences[index],
                score_breakdown=ScoringBreakdown(
                    critical=tiers.critical,
                    context=tiers.context,
                    mood=tiers.mood,
                    modality=tiers.modality,
                    total=weighted_total(tiers, weights),
                ),
                reasons=item.reasons,
            )
        )
    return mapped[:MAX_RECOMMENDATIONS]


def _fallback(
    context: UserContext, experiences: Sequence[Experience], config: Settings
) -> list[Recommendation]:
    return generate_fallback_recommendations(
        context, experiences, weights=config.parsed_scoring_weights
    )


async def generate_ai_recommendations_async(
    context: UserContext,
    experiences: Sequence[Experience],
    *,
    llm: LLMCallable | None = None,
    config: Settings | None = None,
) -> list[Recommendation]:
    config = config or settings
    if not experiences:
        return []
    if llm is None and not config.ai_enabled:
        logger.info("recommendations_generated", engine="fallback", reason="no_api_key")
        return _fallback(context, experiences, config)

    caller = llm or _openai_caller(config)
    try:
        prompt = build_prompt(context, experiences, config)
        digest = _prompt_fingerprint(prompt)
        raw = await caller(prompt, response_schema())
        try:
            parsed = AIRecommendationResponse.model_validate(raw)
        except ValidationError as exc:
            raise AIRecommendationError(f"Invalid AI response ({digest})") from exc
        mapped = map_ai_response(parsed, experiences, config)
        if not mapped:
            raise AIRecommendationError(f"No AI recommendation matched the catalog ({digest})")
    except (OpenAIUnavailable, AIRecommendationError, ValueError) as exc:
        logger.warning("ai_fallback", error=str(exc), exc_info=exc)
        return _fallback(context, experiences, config)
    except Exception as exc:  # noqa: BLE001
        logger.warning("ai_fallback", error="unexpected", exc_info=exc)
        return _fallback(context, experiences, config)

    logger.info("recommendations_generated", engine="ai", count=len(mapped), prompt=digest)
    return mapped


def generate_ai_recommendations(
    context: UserContext,
    experiences: Sequence[Experience],
    *,
    llm: LLMCallable | None = None,
    config: Settings | None = None,
) -> list[Recommendation]:
    """Blocking entry point; safe to call from sync code or from inside a running loop."""
    coroutine = generate_ai_recommendations_async(context, experiences, llm=llm, config=config)
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coroutine)
    # A running loop cannot be re-entered; drive the coroutine on a private one.
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coroutine).result()


async def recommend(
    context: UserContext,
    experiences: Sequence[Experience],
    *,
    llm: LLMCallable | None = None,
    config: Settings | None = None,
) -> RecommendationResponse:
    config = config or settings
    recommendations = await generate_ai_recommendations_async(
        context, experiences, llm=llm, config=config
    )
    return RecommendationResponse(
        recommendations=recommendations,
        meta=RecommendationMeta(
            model=get_model_name(config),
            prompt_version=config.PROMPT_VERSION,
            timestamp=datetime.now(timezone.utc),
        ),
    )
