"""Concurrent per-movie poster and details enrichment."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ..models import EnrichedMovie, Movie, MovieDetails
from ..utils import placeholder_poster_url
from .details import DetailsEngine
from .posters import PosterResolver

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MovieEnrichment:
    """The in-flight lookups started for one movie."""

    movie: Movie
    poster_task: asyncio.Task[str | None]
    details_task: asyncio.Task[MovieDetails]

    def cancel(self) -> None:
        self.poster_task.cancel()
        self.details_task.cancel()


class EnrichmentSession:
    """Fan out poster and details lookups for a batch, one job per movie.

    Jobs are keyed by ``title-year`` and run independently, so a slow or
    failing lookup never holds up its siblings. Discarding a movie cancels its
    job and any result that arrives afterwards is dropped.
    """

    def __init__(self, posters: PosterResolver, details: DetailsEngine) -> None:
        self._posters = posters
        self._details = details
        self._jobs: dict[str, MovieEnrichment] = {}

    def start(self, movies: Iterable[Movie]) -> None:
        """Begin lookups for every movie that has no job yet."""

        for movie in movies:
            if movie.cache_key in self._jobs:
                continue
            self._jobs[movie.cache_key] = MovieEnrichment(
                movie=movie,
                poster_task=asyncio.create_task(
                    self._posters.resolve_poster(movie.title, movie.year)
                ),
                details_task=asyncio.create_task(
                    self._details.get_details(movie.title, movie.year)
                ),
            )

    def discard(self, movie: Movie) -> bool:
        """Stop caring about ``movie``; returns ``False`` if it had no job."""

        job = self._jobs.pop(movie.cache_key, None)
        if job is None:
            return False
        job.cancel()
        return True

    async def result(self, movie: Movie) -> EnrichedMovie | None:
        """Wait for ``movie``'s lookups; ``None`` if it was discarded."""

        key = movie.cache_key
        job = self._jobs.get(key)
        if job is None:
            return None
        await asyncio.wait((job.poster_task, job.details_task))
        if self._jobs.get(key) is not job:
            return None
        return self._collect(job, movie)

    async def gather(self, movies: Sequence[Movie]) -> list[EnrichedMovie]:
        """Enrich ``movies`` concurrently and return them in input order."""

        self.start(movies)
        results = await asyncio.gather(*(self.result(movie) for movie in movies))
        return [enriched for enriched in results if enriched is not None]

    def close(self) -> None:
        for job in self._jobs.values():
            job.cancel()
        self._jobs.clear()

    def _collect(self, job: MovieEnrichment, movie: Movie) -> EnrichedMovie:
        poster_url = self._task_value(job.poster_task, None, movie)
        details = self._task_value(
            job.details_task, MovieDetails.unavailable(), movie
        )
        return EnrichedMovie(
            movie=movie,
            poster_url=poster_url,
            placeholder_url=placeholder_poster_url(movie.title),
            details=details,
            stars=details.star_rating(),
        )

    @staticmethod
    def _task_value(task: asyncio.Task[Any], default: Any, movie: Movie) -> Any:
        if task.cancelled():
            return default
        exc = task.exception()
        if exc is not None:
            logger.warning("Enrichment lookup failed for %s: %s", movie.title, exc)
            return default
        return task.result()
