from __future__ import annotations

from typing import Any

import httpx

from .settings import Settings, settings

DEFAULT_API_BASE = "https://api.openai.com/v1"


class OpenAIUnavailable(RuntimeError):
    pass


def _headers(config: Settings) -> dict[str, str]:
    if not config.ai_enabled:
        raise OpenAIUnavailable("OPENAI_API_KEY not configured")
    return {
        "Authorization": f"Bearer {config.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }


def _timeout(config: Settings, timeout: float | None) -> httpx.Timeout:
    read = timeout if timeout is not None else config.OPENAI_TIMEOUT_SECONDS
    return httpx.Timeout(read, connect=config.OPENAI_CONNECT_TIMEOUT_SECONDS)


async def post_json(
    path: str,
    payload: dict[str, Any],
    *,
    timeout: float | None = None,
    config: Settings | None = None,
) -> dict[str, Any]:
    """POST ``payload`` to the chat API and return the decoded body.

    A client is opened per call so nothing outlives the request.
    """
    config = config or settings
    headers = _headers(config)
    base_url = config.OPENAI_API_BASE.rstrip("/") or DEFAULT_API_BASE
    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=_timeout(config, timeout)) as client:
            response = await client.post(path, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise OpenAIUnavailable(f"Request failed: {exc}") from exc
    if response.status_code >= 400:
        raise OpenAIUnavailable(f"OpenAI error {response.status_code}: {response.text[:200]}")
    try:
        return response.json()
    except ValueError as exc:
        raise OpenAIUnavailable("Invalid JSON from OpenAI") from exc
