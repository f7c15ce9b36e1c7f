import asyncio

import httpx
import pytest
from backend.momenta import openai_async
from backend.momenta.json_utils import extract_json_dict, message_content
from backend.momenta.openai_async import OpenAIUnavailable, post_json
from backend.momenta.settings import Settings


def install_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def build_client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(openai_async.httpx, "AsyncClient", build_client)


def test_post_json_sends_bearer_token(monkeypatch):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"choices": []})

    install_transport(monkeypatch, handler)
    config = Settings(OPENAI_API_KEY="sk-test", OPENAI_API_BASE="https://llm.local/v1/")

    body = asyncio.run(post_json("/chat/completions", {"model": "m"}, config=config))

    assert body == {"choices": []}
    assert seen["auth"] == "Bearer sk-test"
    assert seen["url"] == "https://llm.local/v1/chat/completions"


def test_post_json_requires_key():
    with pytest.raises(OpenAIUnavailable):
        asyncio.run(post_json("/chat/completions", {}, config=Settings(OPENAI_API_KEY=None)))


@pytest.mark.parametrize(
    "response",
    [httpx.Response(500, text="upstream down"), httpx.Response(200, text="<html>")],
)
def test_post_json_wraps_bad_responses(monkeypatch, response):
    install_transport(monkeypatch, lambda request: response)

    with pytest.raises(OpenAIUnavailable):
        asyncio.run(post_json("/chat/completions", {}, config=Settings(OPENAI_API_KEY="sk-test")))


def test_post_json_wraps_transport_errors(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    install_transport(monkeypatch, handler)

    with pytest.raises(OpenAIUnavailable):
        asyncio.run(post_json("/chat/completions", {}, config=Settings(OPENAI_API_KEY="sk-test")))


def test_extract_json_dict_handles_fences_and_prose():
    assert extract_json_dict('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json_dict('Claro! {"a": [1, 2]} espero que sirva') == {"a": [1, 2]}
    assert extract_json_dict('[1] {"b": 2}') == {"b": 2}


@pytest.mark.parametrize("raw", [None, "", "sin json", "[1, 2]"])
def test_extract_json_dict_rejects_non_objects(raw):
    with pytest.raises(ValueError):
        extract_json_dict(raw)


def test_message_content():
    assert message_content({"choices": [{"message": {"content": "hola"}}]}) == "hola"
    assert message_content({"choices": []}) is None
