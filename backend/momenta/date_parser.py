"""Spanish date expressions to concrete dates.

Handles the weekend phrasings people use when planning ("tercer fin de semana
de enero", "el finde del 15 de marzo") before handing explicit calendar dates
to dateutil and falling back to a small set of relative rules.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .text import fold

logger = logging.getLogger(__name__)

# date.weekday() order
SPANISH_DAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)
SATURDAY = 5

_ORDINALS = {
    "primer": 1,
    "primero": 1,
    "1er": 1,
    "segundo": 2,
    "2do": 2,
    "tercer": 3,
    "tercero": 3,
    "3er": 3,
    "cuarto": 4,
    "4to": 4,
    "quinto": 5,
    "5to": 5,
}
_NUMBER_WORDS = {"un": 1, "una": 1, "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5, "seis": 6}

_MONTHS_RE = "|".join(fold(month) for month in SPANISH_MONTHS) + "|setiembre"
_NTH_WEEKEND_RE = re.compile(
    rf"\b({'|'.join(_ORDINALS)})\s+(?:fin\s+de\s+semana|finde)\s+de\s+({_MONTHS_RE})\b"
)
_WEEKEND_OF_RE = re.compile(
    rf"\b(?:fin\s+de\s+semana|finde)\s+del?\s+(\d{{1,2}})\s+de\s+({_MONTHS_RE})\b"
)
_CALENDAR_RE = re.compile(
    rf"\b\d{{1,2}}\s+(?:de\s+)?(?:{_MONTHS_RE})\b|\b(?:{_MONTHS_RE})\s+\d{{1,2}}\b|\b\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?\b"
)
_EXPLICIT_YEAR_RE = re.compile(r"\b\d{4}\b|\b\d{1,2}/\d{1,2}/\d{2,4}\b")
_WEEKDAY_RE = re.compile(
    r"\b(?:(este|esta|el|proximo|proxima|siguiente)\s+)?"
    r"(lunes|martes|miercoles|jueves|viernes|sabado|domingo)\b"
)
_WEEKEND_RE = re.compile(
    r"\b(?:(este|el|proximo|siguiente)\s+)?(fin\s+de\s+semana|finde)(?:\s+(que\s+viene|siguiente))?\b"
)
_NEXT_WEEK_RE = re.compile(r"\b(?:(?:la\s+)?(?:proxima|siguiente)\s+semana|la\s+semana\s+que\s+viene)\b")
_IN_WEEKS_RE = re.compile(r"\ben\s+(\d+|un|una|dos|tres|cuatro|cinco|seis)\s+semanas?\b")
_IN_DAYS_RE = re.compile(r"\ben\s+(\d+|un|dos|tres|cuatro|cinco|seis)\s+dias?\b")
_CONFIRMATION_CUES = ("fin de semana", "finde", "semana", "proximo", "proxima", "siguiente")


@dataclass(frozen=True, slots=True)
class ParsedDate:
    date: date
    display_string: str
    needs_confirmation: bool
    original_text: str
    end_date: date | None = None


class SpanishParserInfo(dateparser.parserinfo):
    """dateutil vocabulary for Spanish calendar expressions."""

    JUMP = [" ", ".", ",", ";", "-", "/", "'", "de", "del", "el", "la", "para", "a", "y", "en"]
    WEEKDAYS = [
        ("lunes",),
        ("martes",),
        ("miercoles", "miércoles"),
        ("jueves",),
        ("viernes",),
        ("sabado", "sábado"),
        ("domingo",),
    ]
    MONTHS = [
        ("ene", "enero"),
        ("feb", "febrero"),
        ("mar", "marzo"),
        ("abr", "abril"),
        ("may", "mayo"),
        ("jun", "junio"),
        ("jul", "julio"),
        ("ago", "agosto"),
        ("sep", "sept", "septiembre", "setiembre"),
        ("oct", "octubre"),
        ("nov", "noviembre"),
        ("dic", "diciembre"),
    ]
    HMS = [("h", "hora", "horas"), ("m", "minuto", "minutos"), ("s", "segundo", "segundos")]
    AMPM = [("am", "a.m."), ("pm", "p.m.")]
    PERTAIN = ["de"]

    def __init__(self) -> None:
        super().__init__(dayfirst=True)


_PARSER_INFO = SpanishParserInfo()


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def _month_index(name: str) -> int:
    folded = fold(name)
    if folded == "setiembre":
        return 8
    return [fold(month) for month in SPANISH_MONTHS].index(folded)


def format_date_spanish(value: date) -> str:
    day = SPANISH_DAYS[value.weekday()]
    return f"{day.capitalize()} {value.day} de {SPANISH_MONTHS[value.month - 1]}"


def format_weekend_spanish(saturday: date, sunday: date) -> str:
    if saturday.month == sunday.month:
        return f"Sábado {saturday.day} y Domingo {sunday.day} de {SPANISH_MONTHS[sunday.month - 1]}"
    return f"{format_date_spanish(saturday)} y {format_date_spanish(sunday)}"


def get_nth_weekend_of_month(year: int, month: int, n: int) -> tuple[date, date]:
    """Saturday and Sunday of the n-th weekend; ``month`` is 0-indexed (0 = January)."""
    first = date(year, month + 1, 1)
    first_saturday = first + timedelta(days=(SATURDAY - first.weekday()) % 7)
    saturday = first_saturday + timedelta(weeks=n - 1)
    return saturday, saturday + timedelta(days=1)


def _weekend(text: str, saturday: date) -> ParsedDate:
    sunday = saturday + timedelta(days=1)
    return ParsedDate(
        date=saturday,
        end_date=sunday,
        display_string=format_weekend_spanish(saturday, sunday),
        needs_confirmation=True,
        original_text=text,
    )


def _parse_special_patterns(text: str, folded: str, ref: date) -> ParsedDate | None:
    match = _NTH_WEEKEND_RE.search(folded)
    if match:
        n = _ORDINALS[match.group(1)]
        month = _month_index(match.group(2))
        year = ref.year + 1 if month < ref.month - 1 else ref.year
        saturday, _ = get_nth_weekend_of_month(year, month, n)
        return _weekend(text, saturday)

    match = _WEEKEND_OF_RE.search(folded)
    if match:
        day = int(match.group(1))
        month = _month_index(match.group(2)) + 1
        year = ref.year
        if (month, day) < (ref.month, ref.day):
            year += 1
        try:
            target = date(year, month, day)
        except ValueError:
            return None
        # Saturday closing the Sunday-first calendar week that contains the date
        days_since_sunday = (target.weekday() + 1) % 7
        return _weekend(text, target + timedelta(days=6 - days_since_sunday))

    return None


def _needs_confirmation(folded: str) -> bool:
    return any(cue in folded for cue in _CONFIRMATION_CUES)


def _single(text: str, folded: str, value: date, confirm: bool | None = None) -> ParsedDate:
    return ParsedDate(
        date=value,
        display_string=format_date_spanish(value),
        needs_confirmation=_needs_confirmation(folded) if confirm is None else confirm,
        original_text=text,
    )


def _parse_calendar_date(text: str, folded: str, ref: date) -> ParsedDate | None:
    match = _CALENDAR_RE.search(folded)
    if not match:
        return None
    default = datetime(ref.year, ref.month, ref.day)
    try:
        parsed = dateparser.parse(match.group(0), parserinfo=_PARSER_INFO, default=default)
    except (dateparser.ParserError, OverflowError, ValueError):
        logger.debug("Calendar date not understood: %s", text)
        return None
    value = parsed.date()
    if value < ref and not _EXPLICIT_YEAR_RE.search(match.group(0)):
        value = value + relativedelta(years=1)
    return _single(text, folded, value)


def _count(token: str) -> int:
    return int(token) if token.isdigit() else _NUMBER_WORDS[token]


def _parse_relative(text: str, folded: str, ref: date) -> ParsedDate | None:
    if re.search(r"\bpasado\s+manana\b", folded):
        return _single(text, folded, ref + timedelta(days=2))
    if re.search(r"\bhoy\b", folded):
        return _single(text, folded, ref)
    if re.search(r"(?<!la\s)\bmanana\b", folded):
        return _single(text, folded, ref + timedelta(days=1))

    match = _WEEKEND_RE.search(folded)
    if match:
        if ref.weekday() == 6:
            saturday = ref - timedelta(days=1)
        else:
            saturday = ref + timedelta(days=(SATURDAY - ref.weekday()) % 7)
        if match.group(1) in ("proximo", "siguiente") or match.group(3):
            saturday += timedelta(weeks=1)
        return _weekend(text, saturday)

    match = _IN_WEEKS_RE.search(folded)
    if match:
        return _single(text, folded, ref + timedelta(weeks=_count(match.group(1))))

    match = _IN_DAYS_RE.search(folded)
    if match:
        return _single(text, folded, ref + timedelta(days=_count(match.group(1))))

    if _NEXT_WEEK_RE.search(folded):
        monday = ref + timedelta(days=7 - ref.weekday())
        sunday = monday + timedelta(days=6)
        return ParsedDate(
            date=monday,
            end_date=sunday,
            display_string=f"{format_date_spanish(monday)} al {format_date_spanish(sunday)}",
            needs_confirmation=True,
            original_text=text,
        )

    match = _WEEKDAY_RE.search(folded)
    if match:
        target = [fold(day) for day in SPANISH_DAYS].index(match.group(2))
        ahead = (target - ref.weekday()) % 7
        if ahead == 0 and match.group(1) in ("proximo", "proxima", "siguiente"):
            ahead = 7
        return _single(text, folded, ref + timedelta(days=ahead))

    return None


def parse_spanish_date(text: str, ref_date: date | datetime | None = None) -> ParsedDate | None:
    """Resolve a Spanish date expression relative to ``ref_date`` (today by default).

    Returns None when nothing in the text reads as a date.
    """
    if not text or not text.strip():
        return None
    ref = _as_date(ref_date)
    folded = fold(text)
    return (
        _parse_special_patterns(text, folded, ref)
        or _parse_calendar_date(text, folded, ref)
        or _parse_relative(text, folded, ref)
    )


def generate_date_confirmation_message(parsed: ParsedDate) -> str:
    return f"📅 Entendí: {parsed.display_string}. ¿Está bien o prefieres otra fecha?"
