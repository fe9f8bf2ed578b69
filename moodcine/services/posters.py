"""Poster artwork lookups against the iTunes Search API."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from ..config import Settings
from ..models import PosterResult
from ..utils import placeholder_poster_url

logger = logging.getLogger(__name__)

LOW_RES_TOKEN_RE = re.compile(r"100x100(?:bb)?")
HIGH_RES_TOKEN = "600x900bb"


class PosterLookupError(Exception):
    """Raised internally when a catalog search cannot be completed."""


class PosterResolver:
    """Resolve a display poster URL for a title, degrading to ``None``."""

    _SEARCH_PATH = "/search"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def resolve_poster(self, title: str, year: int | None) -> str | None:
        """Return a high-resolution poster URL or ``None`` when none is found.

        The catalog is searched for ``"{title} {year}"`` first and for the bare
        title when that yields nothing. HTTP and parsing failures end the
        lookup with ``None``.
        """

        normalized_title = (title or "").strip()
        if not normalized_title:
            return None

        terms = [normalized_title]
        if year:
            terms.insert(0, f"{normalized_title} {year}")

        for term in terms:
            try:
                hit = await self._search_first(term)
            except PosterLookupError as exc:
                logger.warning("Poster lookup failed for %s: %s", normalized_title, exc)
                return None
            if hit is None:
                continue
            artwork = hit.get("artworkUrl100")
            if isinstance(artwork, str) and artwork.startswith("http"):
                return upscale_artwork_url(artwork)
            logger.debug("Catalog hit for %s carries no artwork", normalized_title)
            return None

        logger.debug("No poster found for %s (%s)", normalized_title, year)
        return None

    async def resolve(self, title: str, year: int) -> PosterResult:
        """Return the poster lookup alongside its content-derived stand-in."""

        return PosterResult(
            title=title,
            year=year,
            poster_url=await self.resolve_poster(title, year),
            placeholder_url=placeholder_poster_url(title),
        )

    async def _search_first(self, term: str) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "term": term,
            "media": "movie",
            "entity": "movie",
            "limit": 1,
        }
        if self._settings.itunes_country:
            params["country"] = self._settings.itunes_country

        try:
            response = await self._client.get(self._SEARCH_PATH, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PosterLookupError(str(exc) or exc.__class__.__name__) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise PosterLookupError("Catalog response is not JSON") from exc
        if not isinstance(payload, dict):
            raise PosterLookupError("Catalog response is not an object")

        results = payload.get("results") or []
        if not isinstance(results, list):
            raise PosterLookupError("Catalog results are not a list")
        if not results:
            return None
        first = results[0]
        if not isinstance(first, dict):
            raise PosterLookupError("Catalog result is not an object")
        return first


def upscale_artwork_url(url: str) -> str:
    """Swap the thumbnail dimension token for the portrait poster size."""

    return LOW_RES_TOKEN_RE.sub(HIGH_RES_TOKEN, url, count=1)
