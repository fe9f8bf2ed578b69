"""Utility helpers for the MoodCine service."""

from __future__ import annotations

import json
import math
import re
from typing import Any


JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)
WHITESPACE_RE = re.compile(r"\s+")
LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")

STAR_SCALE = 5
PLACEHOLDER_POSTER_TEMPLATE = "https://picsum.photos/seed/{seed}/400/600"


def assign_movie_id(title: str, year: int, index: int) -> str:
    """Return the batch-local identifier for a recommended movie.

    The id is ``title-year-index`` lowercased with every whitespace run
    collapsed into a single hyphen. It is deterministic, not unique across
    batches.
    """

    raw = f"{title}-{year}-{index}"
    return WHITESPACE_RE.sub("-", raw).lower()


def extract_json_object(content: str) -> dict[str, Any]:
    """Extract and parse the first JSON object from the model response."""

    match = JSON_BLOCK_RE.search(content)
    if match:
        payload = match.group(1)
    else:
        match = BARE_JSON_RE.search(content)
        if not match:
            raise ValueError("No JSON object found in response")
        payload = match.group(0)

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON payload produced by the model") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Model response is not a JSON object")
    return parsed


def parse_leading_number(value: str | None) -> float | None:
    """Return the decimal number at the start of ``value`` if there is one."""

    if not value:
        return None
    match = LEADING_NUMBER_RE.match(value)
    if not match:
        return None
    return float(match.group(1))


def rating_to_stars(rating: str | None) -> int | None:
    """Map a free-form rating onto a whole number of stars out of five.

    Values above five are read as scores out of ten and halved. Unparseable
    ratings produce ``None`` so no stars are drawn.
    """

    value = parse_leading_number(rating)
    if value is None:
        return None
    scaled = value / 2 if value > STAR_SCALE else value
    # Halves round up.
    stars = math.floor(scaled + 0.5)
    return max(0, min(STAR_SCALE, stars))


def _wrap_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def title_hash(title: str) -> int:
    """Return a deterministic signed 32-bit rolling hash of ``title``."""

    result = 0
    for char in title:
        result = _wrap_int32(ord(char) + ((result << 5) - result))
    return result


def placeholder_poster_url(title: str) -> str:
    """Return a stable stand-in image URL derived from the movie title."""

    return PLACEHOLDER_POSTER_TEMPLATE.format(seed=abs(title_hash(title)))
