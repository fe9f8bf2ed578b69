"""Integration helpers for the OpenRouter API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from ..utils import extract_json_object

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are MoodCine, a film-savvy assistant that matches movies to how people feel. "
    "You always respond with a single JSON object that matches the supplied schema and "
    "never include commentary outside JSON."
)


@dataclass(slots=True, frozen=True)
class Generated:
    """A parsed JSON object returned by the model."""

    payload: dict[str, Any]


@dataclass(slots=True, frozen=True)
class GenerationFailed:
    """Why a generation request produced nothing usable."""

    reason: str


GenerationResult = Generated | GenerationFailed


class OpenRouterClient:
    """Client responsible for schema-constrained generations via OpenRouter."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def generate_json(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: dict[str, Any],
        temperature: float,
        api_key: str | None = None,
        model: str | None = None,
    ) -> GenerationResult:
        """Issue one generation request constrained to ``schema``.

        Transport errors, error statuses and unparseable bodies are returned as
        :class:`GenerationFailed` rather than raised.
        """

        resolved_key = api_key or self._settings.openrouter_api_key
        if not resolved_key:
            return GenerationFailed("OpenRouter API key is not configured")

        payload = {
            "model": model or self._settings.openrouter_model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "strict": True,
                    "schema": schema,
                },
            },
        }
        headers = {
            "Authorization": f"Bearer {resolved_key}",
            "Content-Type": "application/json",
            "X-Title": self._settings.app_name,
        }

        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=headers
            )
        except httpx.HTTPError as exc:
            return GenerationFailed(f"Request to OpenRouter failed: {exc!r}")
        if response.status_code >= 400:
            return GenerationFailed(
                f"OpenRouter returned {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError:
            return GenerationFailed("OpenRouter response body is not JSON")
        if not isinstance(data, dict):
            return GenerationFailed("OpenRouter response body is not an object")

        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            return GenerationFailed("Model returned no choices")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            return GenerationFailed("Model response missing content")

        try:
            parsed = extract_json_object(content)
        except ValueError as exc:
            return GenerationFailed(str(exc))

        logger.debug("Generation %s succeeded with keys %s", schema_name, sorted(parsed))
        return Generated(parsed)
