from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_PUNCT_RE = re.compile(r"[.,;:!?¿¡\"'()]")
_SPACE_RE = re.compile(r"\s+")


def fold(value: str) -> str:
    """Lowercase and strip accents so "Bogotá" and "bogota" compare equal."""
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SPACE_RE.sub(" ", stripped)


def strip_punctuation(value: str) -> str:
    return _PUNCT_RE.sub("", value)


def tag_matches(tags: Iterable[str], wanted: str) -> bool:
    needle = fold(wanted)
    return any(needle in fold(tag) for tag in tags)


def matching_tags(tags: Iterable[str], wanted: Iterable[str]) -> list[str]:
    folded = [fold(tag) for tag in tags]
    hits: list[str] = []
    for candidate in wanted:
        needle = fold(candidate)
        if any(needle in tag for tag in folded):
            hits.append(candidate)
    return hits


def mentions(text: str, keyword: str) -> bool:
    """Word-boundary keyword check tolerant of Spanish plurals."""
    pattern = rf"\b{re.escape(fold(keyword))}(?:s|es)?\b"
    return re.search(pattern, fold(text)) is not None


def dedupe(values: Iterable[str]) -> list[str]:
    seen: dict[str, str] = {}
    for value in values:
        key = fold(value)
        if key and key not in seen:
            seen[key] = value
    return list(seen.values())
