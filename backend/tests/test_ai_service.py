import asyncio
import json

from backend.momenta import ai_service
from backend.momenta.ai_service import (
    FALLBACK_MODEL,
    _token_param,
    generate_ai_recommendations,
    get_model_name,
    recommend,
)
from backend.momenta.openai_async import OpenAIUnavailable
from backend.momenta.schemas import Experience, Price, UserContext
from backend.momenta.scoring import generate_fallback_recommendations
from backend.momenta.settings import Settings


def build_pool():
    return [
        Experience(
            id=f"pool-{idx}",
            title=title,
            description="Plan de prueba en Bogotá",
            categories=tags,
            price=Price(amount="120000"),
            location="Bogotá",
        )
        for idx, (title, tags) in enumerate(
            [
                ("Cena para dos", ("Para parejas", "Gastronómico")),
                ("Spa en pareja", ("Bienestar", "Para parejas")),
                ("Karaoke", ("Fiesta", "Para grupos")),
            ]
        )
    ]


def build_context():
    return UserContext(ciudad="Bogotá", personas=2, tipo_grupo="pareja", nivel_energia="calm_mindful")


def build_item(experience_id, critical=90.4, mood=70.5):
    return {
        "experience_id": experience_id,
        "scores": {"critical": critical, "context": 80, "mood": mood, "modality": 60},
        "reasons": "Encaja con el plan tranquilo que buscan.",
    }


def build_completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def ai_config():
    return Settings(OPENAI_API_KEY="test-key")


def install_fake_post(monkeypatch, content=None, exc=None):
    calls = []

    async def fake_post_json(path, request_payload, timeout=None, config=None):
        calls.append((path, request_payload))
        if exc is not None:
            raise exc
        return build_completion(content)

    monkeypatch.setattr(ai_service, "post_json", fake_post_json)
    return calls


def test_without_api_key_uses_fallback_engine(monkeypatch):
    calls = install_fake_post(monkeypatch, content="{}")
    pool, context = build_pool(), build_context()

    results = generate_ai_recommendations(context, pool, config=Settings(OPENAI_API_KEY=None))

    assert results == generate_fallback_recommendations(context, pool)
    assert calls == []


def test_maps_ids_and_drops_unknown_or_repeated_entries(monkeypatch):
    body = {"recommendations": [build_item("exp-1"), build_item("exp-0"), build_item("exp-7"), build_item("exp-0")]}
    calls = install_fake_post(monkeypatch, content=f"```json\n{json.dumps(body)}\n```")
    pool = build_pool()

    results = generate_ai_recommendations(build_context(), pool, config=ai_config())

    assert [rec.experience.id for rec in results] == ["pool-1", "pool-0"]
    breakdown = results[0].score_breakdown
    assert (breakdown.critical, breakdown.context, breakdown.mood, breakdown.modality) == (90, 80, 71, 60)
    assert 0 <= breakdown.total <= 100

    path, request_payload = calls[0]
    assert path == "/chat/completions"
    assert request_payload["response_format"]["type"] == "json_schema"
    assert request_payload["max_completion_tokens"] > 0


def test_invalid_json_falls_back(monkeypatch):
    install_fake_post(monkeypatch, content="lo siento, no puedo ayudar")
    pool, context = build_pool(), build_context()

    results = generate_ai_recommendations(context, pool, config=ai_config())

    assert results == generate_fallback_recommendations(context, pool)


def test_transport_error_falls_back(monkeypatch):
    install_fake_post(monkeypatch, exc=OpenAIUnavailable("boom"))
    pool, context = build_pool(), build_context()

    results = generate_ai_recommendations(context, pool, config=ai_config())

    assert [rec.experience.id for rec in results] == [
        rec.experience.id for rec in generate_fallback_recommendations(context, pool)
    ]


def test_schema_violation_falls_back(monkeypatch):
    body = {"recommendations": [build_item("exp-0", critical=140)] * 3}
    install_fake_post(monkeypatch, content=json.dumps(body))
    pool, context = build_pool(), build_context()

    assert generate_ai_recommendations(context, pool, config=ai_config()) == (
        generate_fallback_recommendations(context, pool)
    )


def test_only_hallucinated_ids_fall_back(monkeypatch):
    body = {"recommendations": [build_item("exp-10"), build_item("abc"), build_item("exp-99")]}
    install_fake_post(monkeypatch, content=json.dumps(body))
    pool, context = build_pool(), build_context()

    assert generate_ai_recommendations(context, pool, config=ai_config()) == (
        generate_fallback_recommendations(context, pool)
    )


def test_empty_pool_short_circuits(monkeypatch):
    calls = install_fake_post(monkeypatch, content="{}")

    assert generate_ai_recommendations(build_context(), [], config=ai_config()) == []
    assert calls == []


def test_injected_llm_receives_prompt_and_schema():
    seen = {}

    async def fake_llm(prompt, schema):
        seen["prompt"] = prompt
        seen["schema"] = schema
        return {"recommendations": [build_item("exp-2"), build_item("exp-0"), build_item("exp-1")]}

    results = generate_ai_recommendations(build_context(), build_pool(), llm=fake_llm)

    assert "exp-0" in seen["prompt"].user
    assert "recommendations" in seen["schema"]["properties"]
    assert [rec.experience.id for rec in results] == ["pool-2", "pool-0", "pool-1"]


def test_model_name_reflects_engine():
    assert get_model_name(Settings(OPENAI_API_KEY=None)) == FALLBACK_MODEL
    assert get_model_name(Settings(OPENAI_API_KEY="k", OPENAI_MODEL="gpt-4o-mini")) == "gpt-4o-mini"


def test_recommend_wraps_results_with_meta():
    config = Settings(OPENAI_API_KEY=None, PROMPT_VERSION="9.9.9")
    response = asyncio.run(recommend(build_context(), build_pool(), config=config))

    assert response.meta.model == FALLBACK_MODEL
    assert response.meta.prompt_version == "9.9.9"
    assert response.meta.timestamp.tzinfo is not None
    assert 1 <= len(response.recommendations) <= 5


def test_token_param_by_model_family():
    assert _token_param("gpt-4o-mini") == "max_completion_tokens"
    assert _token_param("gpt-3.5-turbo") == "max_tokens"
    assert _token_param(None) == "max_tokens"


def test_sync_wrapper_works_inside_a_running_loop():
    pool, context = build_pool(), build_context()

    async def call_from_loop():
        return generate_ai_recommendations(context, pool)

    results = asyncio.run(call_from_loop())

    assert results == generate_fallback_recommendations(context, pool)
