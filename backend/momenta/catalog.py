from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from .schemas import NEAR_CITY, PRIMARY_CITY, Experience
from .settings import Settings, settings
from .text import fold, tag_matches

logger = logging.getLogger(__name__)

_EXPERIENCES = TypeAdapter(list[Experience])


class CatalogError(RuntimeError):
    """Raised when the experience catalog cannot be read."""


def load_catalog(path: Path | str | None = None, config: Settings | None = None) -> list[Experience]:
    config = config or settings
    source = Path(path) if path is not None else config.catalog_path
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Cannot read catalog {source}: {exc}") from exc
    try:
        experiences = _EXPERIENCES.validate_python(raw)
    except ValidationError as exc:
        raise CatalogError(f"Invalid catalog {source}: {exc.error_count()} errors") from exc
    logger.debug("Loaded %s experiences from %s", len(experiences), source)
    return experiences


def is_near_city(experience: Experience) -> bool:
    return tag_matches(experience.categories, NEAR_CITY) or fold(NEAR_CITY) in fold(
        experience.location
    )


def location_matches(experience: Experience, ciudad: str | None) -> bool:
    if not ciudad:
        return True
    near = is_near_city(experience)
    if fold(ciudad) == fold(NEAR_CITY):
        return near
    if tag_matches(experience.categories, f"En {ciudad}"):
        return True
    if near:
        return False
    return fold(ciudad) in fold(experience.location)


def experiences_for_city(
    experiences: Sequence[Experience],
    ciudad: str | None,
    *,
    excluded: Iterable[str] = (),
    min_results: int | None = None,
    config: Settings | None = None,
) -> list[Experience]:
    """Experiences for a city, topping up sparse near-city pools with the city proper."""
    if not ciudad:
        return list(experiences)

    config = config or settings
    threshold = config.NEAR_CITY_MIN_RESULTS if min_results is None else min_results
    matched = [experience for experience in experiences if location_matches(experience, ciudad)]
    if fold(ciudad) != fold(NEAR_CITY) or len(matched) >= threshold:
        return matched

    if fold(PRIMARY_CITY) in {fold(city) for city in excluded}:
        return matched

    matched_ids = {experience.id for experience in matched}
    extras = [
        experience
        for experience in experiences
        if experience.id not in matched_ids and location_matches(experience, PRIMARY_CITY)
    ]
    if extras:
        logger.info(
            "Near-city pool has %s experiences (< %s), adding %s from the city",
            len(matched),
            threshold,
            len(extras),
        )
    return matched + extras
