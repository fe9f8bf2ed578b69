"""Mood-driven movie recommendations with a fixed offline fallback."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..config import Settings
from ..models import Movie, MovieSuggestion, RecommendationBatch
from ..utils import assign_movie_id
from .openrouter import GenerationFailed, OpenRouterClient

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 3
ERROR_MESSAGE = "Something went wrong with the AI director. Please try again."

RECOMMENDATION_PROMPT = """
Suggest {count} movies for a user who describes their current mood as: "{mood}".
Focus on a diverse selection (mix of classics and modern).
Ensure the tone matches the mood perfectly.
For each movie give the exact title, the release year, the main genre and a short,
engaging reason it fits this specific mood in under 2 sentences.
"""

RECOMMENDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "The exact title of the movie.",
                    },
                    "year": {"type": "integer", "description": "The release year."},
                    "genre": {
                        "type": "string",
                        "description": "Main genre of the movie.",
                    },
                    "reason": {
                        "type": "string",
                        "description": (
                            "A short, engaging explanation of why this movie fits "
                            "the specific mood. Keep it under 2 sentences."
                        ),
                    },
                },
                "required": ["title", "year", "genre", "reason"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["recommendations"],
    "additionalProperties": False,
}

FALLBACK_MOVIES: tuple[Movie, ...] = (
    Movie(
        id="error-fallback-1",
        title="The Secret Life of Walter Mitty",
        year=2013,
        genre="Adventure/Drama",
        reason=(
            "Ideally we would have live results, but this is a great fallback for "
            "almost any mood involving seeking purpose."
        ),
    ),
    Movie(
        id="error-fallback-2",
        title="Paddington 2",
        year=2017,
        genre="Family/Comedy",
        reason=(
            "If things failed, this movie is the digital equivalent of a warm hug "
            "to make you feel better."
        ),
    ),
    Movie(
        id="error-fallback-3",
        title="Arrival",
        year=2016,
        genre="Sci-Fi",
        reason=(
            "A masterpiece about communication and understanding, fitting for "
            "technical difficulties."
        ),
    ),
)


class RecommendationEngine:
    """Turns a mood description into exactly three movies, never failing."""

    def __init__(self, settings: Settings, generator: OpenRouterClient):
        self._settings = settings
        self._generator = generator

    async def recommend(self, mood: str) -> list[Movie]:
        """Return three movies for ``mood``; the fallback set on any failure."""

        batch = await self.recommend_batch(mood)
        return batch.movies

    async def recommend_batch(self, mood: str) -> RecommendationBatch:
        """Like :meth:`recommend` but reports whether the fallback was used."""

        cleaned = (mood or "").strip()
        if not cleaned:
            return self._fallback(None)

        result = await self._generator.generate_json(
            RECOMMENDATION_PROMPT.format(count=RECOMMENDATION_COUNT, mood=cleaned),
            schema_name="movie_recommendations",
            schema=RECOMMENDATION_SCHEMA,
            temperature=self._settings.recommendation_temperature,
        )
        if isinstance(result, GenerationFailed):
            logger.warning(
                "Recommendation generation failed for mood %r: %s",
                cleaned,
                result.reason,
            )
            return self._fallback(ERROR_MESSAGE)

        try:
            movies = self._map_recommendations(result.payload)
        except ValueError as exc:
            logger.warning(
                "Recommendations for mood %r violated the schema: %s", cleaned, exc
            )
            return self._fallback(ERROR_MESSAGE)
        if len(movies) < RECOMMENDATION_COUNT:
            logger.warning(
                "Model returned %d recommendations for mood %r",
                len(movies),
                cleaned,
            )
            return self._fallback(ERROR_MESSAGE)
        return RecommendationBatch(movies=movies[:RECOMMENDATION_COUNT])

    @staticmethod
    def _map_recommendations(payload: dict[str, Any]) -> list[Movie]:
        """Validate every entry and assign ids by position in the array.

        Raises ``ValueError`` when the array is missing or any entry does not
        match the schema.
        """

        raw_items = payload.get("recommendations")
        if not isinstance(raw_items, list):
            raise ValueError("recommendations is not an array")

        movies: list[Movie] = []
        for index, entry in enumerate(raw_items):
            try:
                suggestion = MovieSuggestion.model_validate(entry)
            except ValidationError as exc:
                raise ValueError(
                    f"entry {index} failed validation ({exc.error_count()} errors)"
                ) from exc
            movies.append(
                Movie(
                    id=assign_movie_id(suggestion.title, suggestion.year, index),
                    title=suggestion.title,
                    year=suggestion.year,
                    genre=suggestion.genre,
                    reason=suggestion.reason,
                )
            )
        return movies

    @staticmethod
    def _fallback(message: str | None) -> RecommendationBatch:
        return RecommendationBatch(
            movies=list(FALLBACK_MOVIES), is_fallback=True, message=message
        )
