from backend.momenta.prompt_builder import (
    OUTPUT_GUIDE,
    SYSTEM_PROMPT,
    build_prompt,
    build_user_prompt,
    format_price,
)
from backend.momenta.schemas import Experience, Price, UserContext
from backend.momenta.settings import Settings


def build_experience(**overrides):
    base = dict(
        id="cena",
        title="Cena Privada",
        description="x" * 300,
        categories=("Para parejas", "Gastronómico"),
        price=Price(amount="380000"),
        location="Bogotá, Chapinero",
    )
    base.update(overrides)
    return Experience(**base)


def test_user_prompt_lists_context_and_positional_ids():
    context = UserContext(ciudad="Bogotá", tipo_grupo="pareja", evitar=["multitudes"])
    prompt = build_user_prompt(context, [build_experience(), build_experience(id="spa", title="Spa")])

    assert "- Ciudad: Bogotá" in prompt
    assert "- Fecha: No especificado" in prompt
    assert "- Evitar: multitudes" in prompt
    assert "ID: exp-0" in prompt and "ID: exp-1" in prompt
    assert "Mínimo de personas: Flexible" in prompt
    assert "FILTRO POR TIPO DE GRUPO (pareja)" in prompt
    assert prompt.endswith(OUTPUT_GUIDE)


def test_descriptions_are_truncated():
    prompt = build_user_prompt(UserContext(), [build_experience()])
    assert "x" * 200 in prompt
    assert "x" * 201 not in prompt


def test_format_price():
    assert format_price(build_experience()) == "380.000 COP"
    assert format_price(build_experience(price=None)) == "Precio no disponible"


def test_build_prompt_uses_settings():
    config = Settings(LLM_TEMPERATURE=0.1, LLM_MAX_TOKENS=900, PROMPT_VERSION="2.0.0")
    prompt = build_prompt(UserContext(), [build_experience()], config)

    assert prompt.system == SYSTEM_PROMPT
    assert (prompt.config.temperature, prompt.config.max_tokens, prompt.config.version) == (0.1, 900, "2.0.0")
