"""Tests for the mood recommendation engine."""

from __future__ import annotations

import asyncio
from typing import Any, cast

import httpx
import pytest

from moodcine.config import Settings
from moodcine.services.openrouter import (
    Generated,
    GenerationFailed,
    GenerationResult,
    OpenRouterClient,
)
from moodcine.services.recommendations import (
    ERROR_MESSAGE,
    FALLBACK_MOVIES,
    RECOMMENDATION_SCHEMA,
    RecommendationEngine,
)


class _StubGenerator:
    def __init__(self, result: GenerationResult) -> None:
        self.result = result
        self.calls: list[dict[str, Any]] = []

    async def generate_json(self, prompt: str, **kwargs: Any) -> GenerationResult:
        self.calls.append({"prompt": prompt, **kwargs})
        return self.result


def _make_engine(result: GenerationResult) -> tuple[RecommendationEngine, _StubGenerator]:
    generator = _StubGenerator(result)
    engine = RecommendationEngine(
        Settings(_env_file=None), cast(OpenRouterClient, generator)
    )
    return engine, generator


LIVE_PAYLOAD = {
    "recommendations": [
        {
            "title": "Inception",
            "year": 2010,
            "genre": "Sci-Fi",
            "reason": "Dreamy and propulsive.",
        },
        {
            "title": "Amélie",
            "year": 2001,
            "genre": "Romantic Comedy",
            "reason": "Whimsy for a light heart.",
        },
        {
            "title": "Casablanca",
            "year": 1942,
            "genre": "Romance",
            "reason": "A classic for bittersweet evenings.",
        },
    ]
}

FALLBACK_TITLES = [
    ("The Secret Life of Walter Mitty", 2013),
    ("Paddington 2", 2017),
    ("Arrival", 2016),
]


def test_recommend_maps_live_results_in_order() -> None:
    """Live items keep their order and receive positional ids."""

    engine, generator = _make_engine(Generated(LIVE_PAYLOAD))

    movies = asyncio.run(engine.recommend("wistful but hopeful"))

    assert [movie.title for movie in movies] == ["Inception", "Amélie", "Casablanca"]
    assert [movie.id for movie in movies] == [
        "inception-2010-0",
        "amélie-2001-1",
        "casablanca-1942-2",
    ]
    assert len(generator.calls) == 1
    call = generator.calls[0]
    assert '"wistful but hopeful"' in call["prompt"]
    assert "classics and modern" in call["prompt"]
    assert call["schema"] is RECOMMENDATION_SCHEMA
    assert call["temperature"] == pytest.approx(0.7)


def test_recommend_batch_flags_live_results() -> None:
    engine, _ = _make_engine(Generated(LIVE_PAYLOAD))

    batch = asyncio.run(engine.recommend_batch("cozy"))

    assert batch.is_fallback is False
    assert batch.message is None


@pytest.mark.parametrize(
    "result",
    [
        GenerationFailed("Request to OpenRouter failed: ConnectError()"),
        GenerationFailed("OpenRouter returned 500: boom"),
        GenerationFailed("Invalid JSON payload produced by the model"),
        Generated({}),
        Generated({"recommendations": []}),
        Generated({"recommendations": "three movies"}),
        Generated(
            {
                "recommendations": [
                    {"title": "Inception", "year": "next year", "genre": "x", "reason": "y"},
                    {"title": "", "year": 2001, "genre": "x", "reason": "y"},
                    {"title": "Heat", "year": 1995},
                ]
            }
        ),
        Generated({"recommendations": LIVE_PAYLOAD["recommendations"][:2]}),
    ],
)
def test_recommend_returns_fixed_fallback_on_failure(result: GenerationResult) -> None:
    """Any upstream failure collapses to the fixed fallback triple."""

    engine, _ = _make_engine(result)

    batch = asyncio.run(engine.recommend_batch("anxious"))

    assert [(movie.title, movie.year) for movie in batch.movies] == FALLBACK_TITLES
    assert [movie.id for movie in batch.movies] == [
        "error-fallback-1",
        "error-fallback-2",
        "error-fallback-3",
    ]
    assert batch.is_fallback is True
    assert batch.message == ERROR_MESSAGE


def test_recommend_blank_mood_skips_upstream() -> None:
    """Blank moods return the fallback without calling the model."""

    engine, generator = _make_engine(Generated(LIVE_PAYLOAD))

    batch = asyncio.run(engine.recommend_batch("   "))

    assert generator.calls == []
    assert list(batch.movies) == list(FALLBACK_MOVIES)
    assert batch.is_fallback is True
    assert batch.message is None


def test_recommend_falls_back_when_any_entry_violates_schema() -> None:
    """One malformed entry discards the whole response, even with three good ones."""

    payload = {
        "recommendations": [
            {"title": "Broken", "year": None, "genre": "x", "reason": "y"},
            *LIVE_PAYLOAD["recommendations"],
        ]
    }
    engine, _ = _make_engine(Generated(payload))

    batch = asyncio.run(engine.recommend_batch("sad"))

    assert batch.is_fallback is True
    assert batch.message == ERROR_MESSAGE
    assert [(movie.title, movie.year) for movie in batch.movies] == FALLBACK_TITLES


def test_recommend_rejects_string_years() -> None:
    """Years must be JSON integers; numeric strings are schema violations."""

    entries = [dict(entry) for entry in LIVE_PAYLOAD["recommendations"]]
    entries[0]["year"] = "2010"
    engine, _ = _make_engine(Generated({"recommendations": entries}))

    batch = asyncio.run(engine.recommend_batch("nostalgic"))

    assert batch.is_fallback is True
    assert [movie.id for movie in batch.movies] == [
        "error-fallback-1",
        "error-fallback-2",
        "error-fallback-3",
    ]


def test_recommend_truncates_valid_responses_to_three() -> None:
    """Extra valid entries are dropped and ids follow array positions."""

    payload = {
        "recommendations": [
            *LIVE_PAYLOAD["recommendations"],
            {"title": "Extra", "year": 2020, "genre": "Drama", "reason": "Bonus."},
        ]
    }
    engine, _ = _make_engine(Generated(payload))

    movies = asyncio.run(engine.recommend("curious"))

    assert [movie.id for movie in movies] == [
        "inception-2010-0",
        "amélie-2001-1",
        "casablanca-1942-2",
    ]


@pytest.mark.parametrize("mood", ["happy", "rainy sunday", "🙂", "x" * 400])
def test_recommend_always_returns_three_complete_movies(mood: str) -> None:
    """Every outcome yields three movies with all fields populated."""

    for result in (Generated(LIVE_PAYLOAD), GenerationFailed("down")):
        engine, _ = _make_engine(result)
        movies = asyncio.run(engine.recommend(mood))

        assert len(movies) == 3
        for movie in movies:
            assert movie.title and movie.genre and movie.reason
            assert isinstance(movie.year, int)


def test_recommend_end_to_end_with_http_failure() -> None:
    """A real client hitting a failing upstream still yields the fallback."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    async def runner() -> list[str]:
        settings = Settings(_env_file=None, OPENROUTER_API_KEY="key")
        async with httpx.AsyncClient(
            base_url="https://openrouter.test/api/v1",
            transport=httpx.MockTransport(handler),
        ) as http_client:
            engine = RecommendationEngine(
                settings, OpenRouterClient(settings, http_client)
            )
            movies = await engine.recommend("melancholy")
        return [movie.title for movie in movies]

    assert asyncio.run(runner()) == [title for title, _ in FALLBACK_TITLES]
