import pytest
from backend.momenta.intents import MessageIntent, classify_message


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Hola", MessageIntent.GREETING),
        ("Quiero algo romántico con mi novia", MessageIntent.SPECIFIC_SEARCH),
        ("¿Cómo funciona Momenta?", MessageIntent.QUESTION),
        ("¿Viste el partido de fútbol?", MessageIntent.OFF_TOPIC),
        ("no sé qué hacer, dame ideas", MessageIntent.DISCOVERY),
        ("asdf", MessageIntent.UNCLEAR),
        ("   ", MessageIntent.UNCLEAR),
    ],
)
def test_classify_message_without_history(message, expected):
    assert classify_message(message) is expected


def test_confirmation_only_counts_after_summary():
    assert classify_message("si", confirmation_shown=True) is MessageIntent.CONFIRMATION
    assert classify_message("si") is not MessageIntent.CONFIRMATION


def test_feedback_after_recommendations():
    intent = classify_message("me gustó la primera", recommendations_shown=True)
    assert intent is MessageIntent.FEEDBACK


def test_modification_after_summary():
    intent = classify_message("mejor cambia la fecha", confirmation_shown=True)
    assert intent is MessageIntent.MODIFICATION
