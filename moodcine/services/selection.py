"""The user's saved-movie selection and the stores that persist it."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Protocol, Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import SelectionSlot
from ..models import Movie, SavedMovie

logger = logging.getLogger(__name__)


def contains(selection: Sequence[Movie], movie_id: str) -> bool:
    return any(member.id == movie_id for member in selection)


def toggle_selection(selection: Sequence[Movie], movie: Movie) -> list[Movie]:
    """Remove the member sharing ``movie.id`` or append ``movie`` if absent."""

    if contains(selection, movie.id):
        return [member for member in selection if member.id != movie.id]
    return [*selection, movie]


def remove_from_selection(selection: Sequence[Movie], movie_id: str) -> list[Movie]:
    return [member for member in selection if member.id != movie_id]


def _now_ms() -> int:
    return int(time.time() * 1000)


def stamp_selection(
    movies: Sequence[Movie], previous: Sequence[SavedMovie] = ()
) -> list[SavedMovie]:
    """Attach save times, keeping the original time for ids already saved."""

    saved_times = {member.id: member.saved_at for member in previous}
    now = _now_ms()
    stamped: list[SavedMovie] = []
    for movie in movies:
        stamped.append(
            SavedMovie(
                id=movie.id,
                title=movie.title,
                year=movie.year,
                genre=movie.genre,
                reason=movie.reason,
                saved_at=saved_times.get(movie.id, now),
            )
        )
    return stamped


def encode_selection(movies: Sequence[SavedMovie]) -> str:
    return json.dumps([movie.model_dump(by_alias=True) for movie in movies])


def decode_selection(raw: str | None) -> list[SavedMovie]:
    """Parse a stored selection; corrupt data of any kind yields ``[]``."""

    if not raw:
        return []
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Stored selection is not valid JSON: %s", exc)
        return []
    if not isinstance(entries, list):
        logger.warning("Stored selection is not a list; starting empty")
        return []

    movies: list[SavedMovie] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Stored selection holds a non-object entry; starting empty")
            return []
        try:
            movie = SavedMovie.model_validate({"savedAt": 0, **entry})
        except ValidationError as exc:
            logger.warning(
                "Stored selection entry failed validation (%d errors); starting empty",
                exc.error_count(),
            )
            return []
        if movie.id in seen:
            continue
        seen.add(movie.id)
        movies.append(movie)
    return movies


class SelectionStore(Protocol):
    """Load/save contract for the durable selection medium."""

    async def load(self) -> list[SavedMovie]: ...

    async def save(self, movies: Sequence[Movie]) -> list[SavedMovie]: ...


class InMemorySelectionStore:
    """Selection store that keeps the serialized slot in process memory."""

    def __init__(self, raw: str | None = None) -> None:
        self.raw = raw

    async def load(self) -> list[SavedMovie]:
        return decode_selection(self.raw)

    async def save(self, movies: Sequence[Movie]) -> list[SavedMovie]:
        stamped = stamp_selection(movies, decode_selection(self.raw))
        self.raw = encode_selection(stamped)
        return stamped


class DatabaseSelectionStore:
    """Selection store persisting one JSON slot in the ``selection_slots`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        slot_key: str,
    ) -> None:
        self._session_factory = session_factory
        self._slot_key = slot_key

    async def load(self) -> list[SavedMovie]:
        async with self._session_factory() as session:
            record = await session.get(SelectionSlot, self._slot_key)
            raw = record.payload if record is not None else None
        return decode_selection(raw)

    async def save(self, movies: Sequence[Movie]) -> list[SavedMovie]:
        async with self._session_factory() as session:
            async with session.begin():
                record = await session.get(SelectionSlot, self._slot_key)
                previous = decode_selection(record.payload if record else None)
                stamped = stamp_selection(movies, previous)
                payload = encode_selection(stamped)
                if record is None:
                    session.add(SelectionSlot(key=self._slot_key, payload=payload))
                else:
                    record.payload = payload
        return stamped


class SelectionManager:
    """In-memory selection loaded once and written through on every change."""

    def __init__(self, store: SelectionStore) -> None:
        self._store = store
        self._movies: list[SavedMovie] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def movies(self) -> list[SavedMovie]:
        return list(self._movies)

    async def load(self) -> list[SavedMovie]:
        async with self._lock:
            self._movies = await self._store.load()
            self._loaded = True
            return self.movies

    async def toggle(self, movie: Movie) -> list[SavedMovie]:
        async with self._lock:
            await self._ensure_loaded()
            self._movies = await self._store.save(toggle_selection(self._movies, movie))
            return self.movies

    async def remove(self, movie_id: str) -> list[SavedMovie]:
        async with self._lock:
            await self._ensure_loaded()
            if not contains(self._movies, movie_id):
                raise KeyError(movie_id)
            remaining = remove_from_selection(self._movies, movie_id)
            self._movies = await self._store.save(remaining)
            return self.movies

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._movies = await self._store.load()
            self._loaded = True
