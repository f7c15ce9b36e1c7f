from datetime import date, datetime

import pytest
from backend.momenta.date_parser import (
    format_date_spanish,
    generate_date_confirmation_message,
    get_nth_weekend_of_month,
    parse_spanish_date,
)

REF = date(2026, 1, 14)  # Wednesday


def test_first_weekend_of_january_2026():
    saturday, sunday = get_nth_weekend_of_month(2026, 0, 1)

    assert saturday == date(2026, 1, 3)
    assert saturday.weekday() == 5
    assert sunday == date(2026, 1, 4)


@pytest.mark.parametrize("month", range(12))
def test_first_saturday_never_precedes_the_month(month):
    saturday, _ = get_nth_weekend_of_month(2027, month, 1)
    assert saturday.month == month + 1
    assert 1 <= saturday.day <= 7


def test_third_weekend_of_january():
    parsed = parse_spanish_date("tercer fin de semana de enero", date(2025, 12, 1))

    assert parsed is not None
    assert parsed.date == date(2026, 1, 17)
    assert parsed.date.weekday() == 5
    assert parsed.date.month == 1
    assert (parsed.date.day - 1) // 7 + 1 == 3
    assert parsed.end_date == date(2026, 1, 18)
    assert parsed.needs_confirmation is True
    assert parsed.display_string == "Sábado 17 y Domingo 18 de enero"


def test_nth_weekend_defaults_to_today():
    parsed = parse_spanish_date("primer finde de marzo")
    assert parsed is not None
    assert parsed.date.month == 3
    assert parsed.date.weekday() == 5


def test_weekend_of_a_given_day():
    parsed = parse_spanish_date("el fin de semana del 18 de marzo", REF)

    assert parsed.date == date(2026, 3, 21)
    assert parsed.display_string == "Sábado 21 y Domingo 22 de marzo"


def test_calendar_date():
    parsed = parse_spanish_date("el 17 de enero", REF)

    assert parsed.date == date(2026, 1, 17)
    assert parsed.display_string == "Sábado 17 de enero"
    assert parsed.needs_confirmation is False


def test_past_calendar_date_rolls_into_next_year():
    parsed = parse_spanish_date("5 de enero", REF)
    assert parsed.date == date(2027, 1, 5)


def test_numeric_calendar_date_is_day_first():
    parsed = parse_spanish_date("20/02", REF)
    assert parsed.date == date(2026, 2, 20)


@pytest.mark.parametrize(
    ("text", "expected", "confirm"),
    [
        ("hoy", date(2026, 1, 14), False),
        ("mañana", date(2026, 1, 15), False),
        ("pasado mañana", date(2026, 1, 16), False),
        ("el viernes", date(2026, 1, 16), False),
        ("este sábado", date(2026, 1, 17), False),
        ("en dos semanas", date(2026, 1, 28), True),
        ("en 3 días", date(2026, 1, 17), False),
    ],
)
def test_relative_expressions(text, expected, confirm):
    parsed = parse_spanish_date(text, REF)

    assert parsed is not None
    assert parsed.date == expected
    assert parsed.needs_confirmation is confirm


def test_weekend_expressions():
    this_weekend = parse_spanish_date("este fin de semana", REF)
    next_weekend = parse_spanish_date("el próximo fin de semana", REF)

    assert this_weekend.date == date(2026, 1, 17)
    assert next_weekend.date == date(2026, 1, 24)
    assert this_weekend.needs_confirmation and next_weekend.needs_confirmation


def test_weekend_on_sunday_means_current_weekend():
    parsed = parse_spanish_date("este finde", date(2026, 1, 18))
    assert parsed.date == date(2026, 1, 17)


def test_next_weekday_skips_today():
    friday = date(2026, 1, 16)
    assert parse_spanish_date("el viernes", friday).date == friday
    assert parse_spanish_date("el próximo viernes", friday).date == date(2026, 1, 23)


def test_next_week_is_a_range():
    parsed = parse_spanish_date("la próxima semana", REF)

    assert parsed.date == date(2026, 1, 19)
    assert parsed.end_date == date(2026, 1, 25)
    assert " al " in parsed.display_string


def test_accepts_datetime_reference():
    parsed = parse_spanish_date("mañana", datetime(2026, 1, 14, 22, 30))
    assert parsed.date == date(2026, 1, 15)


@pytest.mark.parametrize("text", ["", "   ", "cuando podamos", "algún día"])
def test_unparseable_text_returns_none(text):
    assert parse_spanish_date(text, REF) is None


def test_confirmation_message():
    parsed = parse_spanish_date("este fin de semana", REF)
    assert generate_date_confirmation_message(parsed) == (
        "📅 Entendí: Sábado 17 y Domingo 18 de enero. ¿Está bien o prefieres otra fecha?"
    )


def test_format_date_spanish():
    assert format_date_spanish(date(2026, 2, 14)) == "Sábado 14 de febrero"
