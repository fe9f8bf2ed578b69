"""Generated movie details behind a single-flight memo cache."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from ..config import Settings
from ..models import MovieDetails
from .openrouter import GenerationFailed, OpenRouterClient

logger = logging.getLogger(__name__)

DETAILS_PROMPT = """
Provide details for the movie "{title}" ({year}).
Write a concise synopsis of at most 60 words, list 3 to 4 principal cast members,
give the director's name and an estimated rating string such as "8.1/10".
"""

DETAILS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "synopsis": {
            "type": "string",
            "description": "A concise plot synopsis, max 60 words.",
        },
        "cast": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Top 3-4 main actors.",
        },
        "director": {"type": "string", "description": "Name of the director."},
        "rating": {
            "type": "string",
            "description": "Estimated IMDb-style rating, e.g. 8.5/10.",
        },
    },
    "required": ["synopsis", "cast", "director", "rating"],
    "additionalProperties": False,
}

DetailsLoader = Callable[[], Awaitable[MovieDetails | None]]


def details_cache_key(title: str, year: int | str) -> str:
    """Return the exact, case-sensitive ``title-year`` cache key."""

    return f"{title}-{year}"


class DetailsCache:
    """Process-lifetime memo of generated details with per-key single-flight.

    Only successful results are stored. While a key is loading, further
    callers await the same task instead of starting another upstream call.
    """

    def __init__(self) -> None:
        self._entries: dict[str, MovieDetails] = {}
        self._inflight: dict[str, asyncio.Task[MovieDetails | None]] = {}

    async def get_or_load(self, key: str, loader: DetailsLoader) -> MovieDetails | None:
        """Return the cached value for ``key`` or join/start its load.

        A cancelled caller does not cancel the shared load; its result still
        lands in the cache for later callers.
        """

        cached = self._entries.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key, loader))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: DetailsLoader) -> MovieDetails | None:
        try:
            details = await loader()
            if details is not None:
                self._entries[key] = details
            return details
        finally:
            self._inflight.pop(key, None)


class DetailsEngine:
    """Resolve rich details for a title; never raises, never caches failures."""

    def __init__(
        self,
        settings: Settings,
        generator: OpenRouterClient,
        cache: DetailsCache | None = None,
    ):
        self._settings = settings
        self._generator = generator
        self._cache = cache if cache is not None else DetailsCache()

    async def get_details(self, title: str, year: int) -> MovieDetails:
        """Return cached or freshly generated details, or the placeholder."""

        key = details_cache_key(title, year)
        details = await self._cache.get_or_load(
            key, lambda: self._generate(title, year)
        )
        if details is None:
            return MovieDetails.unavailable()
        return details

    async def _generate(self, title: str, year: int) -> MovieDetails | None:
        result = await self._generator.generate_json(
            DETAILS_PROMPT.format(title=title, year=year),
            schema_name="movie_details",
            schema=DETAILS_SCHEMA,
            temperature=self._settings.details_temperature,
        )
        if isinstance(result, GenerationFailed):
            logger.warning(
                "Details generation failed for %s (%s): %s", title, year, result.reason
            )
            return None

        try:
            return MovieDetails.model_validate(result.payload)
        except ValidationError as exc:
            logger.warning(
                "Details payload for %s (%s) did not validate: %s",
                title,
                year,
                exc.error_count(),
            )
            return None
