"""Deterministic four-tier heuristic scorer.

Tier 1 critical filters, Tier 2 group/occasion/category/budget, Tier 3
energy/intention/exclusions and Tier 4 modality. Deltas accumulate per tier
and each tier is clamped to [0, 100] only once all of them have been applied.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .catalog import location_matches
from .schemas import Experience, Recommendation, ScoringBreakdown, UserContext
from .search_synonyms import expand_search_terms, matches_expanded_terms
from .settings import DEFAULT_RULES, ScoringRules, ScoringWeights, settings
from .tag_mapping import (
    AVOID_KEYWORD_MAPPING,
    AVOID_TAG_MAPPING,
    CATEGORY_TAG_MAPPING,
    ENERGY_TAG_MAPPING,
    GROUP_TAG_MAPPING,
    INTENTION_HINTS,
    MODALITY_HINTS,
    OCCASION_HINTS,
)
from .text import fold, matching_tags, mentions

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5

ENERGY_SENTENCES = {
    "slow_cozy": "Tiene el ritmo tranquilo y relajado que buscas, sin afanes.",
    "calm_mindful": "Es un plan íntimo y especial, pensado para conectar.",
    "uplifting": "Es activa y divertida, ideal para salir de la rutina.",
    "social": "Tiene el ambiente animado que buscan para compartir en grupo.",
}
GROUP_SENTENCES = {
    "sola": "Es un plan perfecto para regalarte un momento contigo.",
    "pareja": "Está pensada para disfrutarse en pareja.",
    "familia": "Es un plan que se disfruta en familia.",
    "amigos": "Es ideal para compartir con amigos.",
}


@dataclass(slots=True)
class TierScores:
    critical: int
    context: int
    mood: int
    modality: int


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def round_half_up(value: float | Decimal) -> int:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def weighted_total(tiers: TierScores, weights: ScoringWeights) -> int:
    # decimal weights keep .5 boundaries exact
    total = (
        tiers.critical * Decimal(str(weights.critical))
        + tiers.context * Decimal(str(weights.context))
        + tiers.mood * Decimal(str(weights.mood))
        + tiers.modality * Decimal(str(weights.modality))
    )
    return clamp(round_half_up(total))


def _hints_for(table: Mapping[str, Sequence[str]], value: str | None) -> list[str]:
    """Hints of every table key contained in free text such as "Cumpleaños de mi mamá"."""
    folded = fold(value or "")
    if not folded:
        return []
    hints: list[str] = []
    for key, values in table.items():
        if fold(key) in folded:
            hints.extend(values)
    return hints


def _hints_match(experience: Experience, hints: Sequence[str]) -> bool:
    blob = fold(experience.search_blob)
    return any(fold(hint) in blob for hint in hints)


def budget_bracket(price: int | None, rules: ScoringRules = DEFAULT_RULES) -> str | None:
    if price is None:
        return None
    if price < rules.budget_low_max:
        return "bajo"
    if price <= rules.budget_high_min:
        return "medio"
    return "alto"


def score_critical(context: UserContext, experience: Experience, rules: ScoringRules) -> int:
    score = rules.critical_base
    if not location_matches(experience, context.ciudad):
        score += rules.location_mismatch_penalty
    if context.personas and experience.min_people and experience.min_people > context.personas:
        score += rules.min_people_penalty
    return score


def score_category(context: UserContext, experience: Experience, rules: ScoringRules) -> int:
    if not context.categoria:
        return 0
    tags = CATEGORY_TAG_MAPPING.get(fold(context.categoria))
    if tags:
        return rules.category_boost * len(matching_tags(experience.categories, tags))
    if matches_expanded_terms(experience, expand_search_terms(context.categoria)):
        return rules.category_boost
    return 0


def score_context(context: UserContext, experience: Experience, rules: ScoringRules) -> int:
    score = rules.context_base
    group = GROUP_TAG_MAPPING.get(context.tipo_grupo or "")
    if group:
        score += rules.group_boost * len(matching_tags(experience.categories, group.boost))
        score += rules.group_penalty * len(matching_tags(experience.categories, group.penalty))
    hints = _hints_for(OCCASION_HINTS, context.ocasion)
    if hints and _hints_match(experience, hints):
        score += rules.occasion_bonus
    score += score_category(context, experience, rules)
    if context.presupuesto and context.presupuesto != "no_prioritario":
        if budget_bracket(experience.price_value, rules) == context.presupuesto:
            score += rules.budget_bonus
    return score


def exclusion_hits(evitar: Sequence[str], experience: Experience) -> int:
    """Number of (exclusion, matching avoid-tag) pairs plus one per keyword veto."""
    hits = 0
    text = f"{experience.title} {experience.description}"
    for item in evitar:
        hits += len(matching_tags(experience.categories, AVOID_TAG_MAPPING.get(item, ())))
        keywords = AVOID_KEYWORD_MAPPING.get(item, ())
        if any(mentions(text, keyword) for keyword in keywords):
            hits += 1
    return hits


def score_mood(context: UserContext, experience: Experience, rules: ScoringRules) -> int:
    score = rules.mood_base
    energy = ENERGY_TAG_MAPPING.get(context.nivel_energia or "")
    if energy:
        score += rules.energy_boost * len(matching_tags(experience.categories, energy.boost))
        score += rules.energy_penalty * len(matching_tags(experience.categories, energy.penalty))
    hints = _hints_for(INTENTION_HINTS, context.intencion)
    if hints and _hints_match(experience, hints):
        score += rules.intention_bonus
    score += rules.exclusion_penalty * exclusion_hits(context.evitar, experience)
    return score


def score_modality(context: UserContext, experience: Experience, rules: ScoringRules) -> int:
    score = rules.modality_base
    hints = MODALITY_HINTS.get(context.modalidad or "")
    if hints and _hints_match(experience, hints):
        score += rules.modality_bonus
    return score


def score_experience(
    context: UserContext,
    experience: Experience,
    weights: ScoringWeights | None = None,
    rules: ScoringRules | None = None,
) -> ScoringBreakdown:
    weights = weights or settings.parsed_scoring_weights
    rules = rules or DEFAULT_RULES
    tiers = TierScores(
        critical=clamp(score_critical(context, experience, rules)),
        context=clamp(score_context(context, experience, rules)),
        mood=clamp(score_mood(context, experience, rules)),
        modality=clamp(score_modality(context, experience, rules)),
    )
    return ScoringBreakdown(
        critical=tiers.critical,
        context=tiers.context,
        mood=tiers.mood,
        modality=tiers.modality,
        total=weighted_total(tiers, weights),
    )


def format_cop(amount: int) -> str:
    return f"${amount:,}".replace(",", ".")


def generate_reasons(
    experience: Experience,
    breakdown: ScoringBreakdown,
    context: UserContext,
    rules: ScoringRules | None = None,
) -> str:
    rules = rules or DEFAULT_RULES
    if breakdown.total > rules.enthusiastic_threshold:
        sentences = [f"¡{experience.title} encaja muy bien con el momento que quieres vivir!"]
    elif breakdown.total > rules.positive_threshold:
        sentences = [f"{experience.title} es una buena opción para tu plan."]
    else:
        sentences = [f"{experience.title} es una alternativa interesante para considerar."]

    if context.nivel_energia:
        sentences.append(ENERGY_SENTENCES[context.nivel_energia])
    elif context.tipo_grupo:
        sentences.append(GROUP_SENTENCES[context.tipo_grupo])
    elif context.ocasion:
        sentences.append(f"Encaja con la ocasión que tienen en mente: {context.ocasion}.")
    elif experience.categories:
        sentences.append(f"Es una experiencia de {experience.categories[0].lower()}.")

    price = experience.price_value
    if price is not None and price > rules.price_caveat_threshold:
        sentences.append(
            f"Ten en cuenta que su precio es de {format_cop(price)} COP, un poco más alto que otras opciones."
        )
    return " ".join(sentences)


def generate_fallback_recommendations(
    context: UserContext,
    experiences: Sequence[Experience],
    *,
    weights: ScoringWeights | None = None,
    rules: ScoringRules | None = None,
    limit: int = MAX_RECOMMENDATIONS,
) -> list[Recommendation]:
    """Top experiences by weighted score; stable for equal totals."""
    if not experiences:
        return []
    weights = weights or settings.parsed_scoring_weights
    rules = rules or DEFAULT_RULES
    scored: list[Recommendation] = []
    for experience in experiences:
        breakdown = score_experience(context, experience, weights, rules)
        scored.append(
            Recommendation(
                experience=experience,
                score_breakdown=breakdown,
                reasons=generate_reasons(experience, breakdown, context, rules),
            )
        )
    scored.sort(key=lambda rec: rec.score_breakdown.total, reverse=True)
    logger.debug("Scored %s experiences heuristically", len(scored))
    return scored[: max(0, limit)]
