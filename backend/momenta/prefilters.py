from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .schemas import Experience
from .tag_mapping import AVOID_KEYWORD_MAPPING, ENERGY_TAG_MAPPING, avoid_tags_for
from .text import matching_tags, mentions

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MinPeopleFilterResult:
    filtered: list[Experience]
    excluded: list[tuple[str, int]] = field(default_factory=list)
    next_threshold: int | None = None


def prefilter_by_energy(
    experiences: Sequence[Experience], nivel_energia: str | None
) -> list[Experience]:
    """Drop experiences that only carry conflicting tags for the energy level."""
    rule = ENERGY_TAG_MAPPING.get(nivel_energia or "")
    if rule is None:
        return list(experiences)
    kept = [
        experience
        for experience in experiences
        if not matching_tags(experience.categories, rule.penalty)
        or matching_tags(experience.categories, rule.boost)
    ]
    if len(kept) != len(experiences):
        logger.debug("Energy %s removed %s experiences", nivel_energia, len(experiences) - len(kept))
    return kept


def _excluded_by_keywords(experience: Experience, evitar: Iterable[str]) -> bool:
    text = f"{experience.title} {experience.description}"
    for item in evitar:
        keywords = AVOID_KEYWORD_MAPPING.get(item, ())
        if any(mentions(text, keyword) for keyword in keywords):
            return True
    return False


def prefilter_by_exclusions(
    experiences: Sequence[Experience], evitar: Sequence[str]
) -> list[Experience]:
    if not evitar:
        return list(experiences)
    avoid_tags = avoid_tags_for(evitar)
    kept = [
        experience
        for experience in experiences
        if not matching_tags(experience.categories, avoid_tags)
        and not _excluded_by_keywords(experience, evitar)
    ]
    if len(kept) != len(experiences):
        logger.debug("Exclusions %s removed %s experiences", list(evitar), len(experiences) - len(kept))
    return kept


def prefilter_by_min_people(
    experiences: Sequence[Experience], personas: int | None
) -> MinPeopleFilterResult:
    """Remove experiences that need a bigger group.

    The filter only applies while at least one experience fits the group;
    otherwise the pool is returned untouched and the heuristic penalty
    is left to rank violators.
    """
    if not personas:
        return MinPeopleFilterResult(filtered=list(experiences))

    fits: list[Experience] = []
    too_small: list[Experience] = []
    for experience in experiences:
        if experience.min_people and experience.min_people > personas:
            too_small.append(experience)
        else:
            fits.append(experience)

    if not too_small or not fits:
        return MinPeopleFilterResult(filtered=list(experiences))

    excluded = [(experience.title, experience.min_people or 0) for experience in too_small]
    next_threshold = min(min_people for _, min_people in excluded)
    logger.debug("Group of %s excludes %s experiences", personas, len(excluded))
    return MinPeopleFilterResult(filtered=fits, excluded=excluded, next_threshold=next_threshold)
