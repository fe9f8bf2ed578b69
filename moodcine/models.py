"""Pydantic models describing recommendation and enrichment payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from .utils import rating_to_stars

MAX_CAST_MEMBERS = 4
UNAVAILABLE_SYNOPSIS = "Details currently unavailable for this title."


class Movie(BaseModel):
    """A single recommended title.

    Selection membership is decided by ``id`` alone; model equality still
    compares every field.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    year: int
    genre: str
    reason: str

    @property
    def cache_key(self) -> str:
        """Return the ``title-year`` key shared with the details cache."""

        return f"{self.title}-{self.year}"


class SavedMovie(Movie):
    """A movie held in the persisted selection with its save time."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    saved_at: int = Field(alias="savedAt", description="Epoch milliseconds")


class MovieSuggestion(BaseModel):
    """One entry of the model's ``recommendations`` array."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    year: StrictInt
    genre: str = Field(min_length=1)
    reason: str = Field(min_length=1)


class MovieDetails(BaseModel):
    """Rich metadata generated for a single title."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    synopsis: str = Field(min_length=1)
    cast: list[str] = Field(default_factory=list)
    director: str = Field(min_length=1)
    rating: str = Field(min_length=1)

    @field_validator("cast", mode="before")
    @classmethod
    def _trim_cast(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        names = [str(name).strip() for name in value if str(name).strip()]
        return names[:MAX_CAST_MEMBERS]

    @field_validator("rating", mode="before")
    @classmethod
    def _coerce_rating(cls, value: object) -> object:
        # Models occasionally answer with a bare number despite the schema.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def unavailable(cls) -> "MovieDetails":
        """Return the placeholder used when details cannot be generated."""

        return cls(
            synopsis=UNAVAILABLE_SYNOPSIS,
            cast=[],
            director="Unknown",
            rating="N/A",
        )

    def star_rating(self) -> int | None:
        """Return filled stars out of five, or ``None`` when unrated."""

        return rating_to_stars(self.rating)


class RecommendationBatch(BaseModel):
    """The ordered movies produced by one recommendation request."""

    model_config = ConfigDict(populate_by_name=True)

    movies: list[Movie]
    is_fallback: bool = Field(default=False, alias="isFallback")
    message: str | None = None


class PosterResult(BaseModel):
    """Resolved artwork for a title, with a content-derived stand-in."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    year: int
    poster_url: str | None = Field(default=None, alias="posterUrl")
    placeholder_url: str = Field(alias="placeholderUrl")


class DetailsResponse(MovieDetails):
    """Details payload returned over HTTP, with the star count attached."""

    stars: int | None = None


class EnrichedMovie(BaseModel):
    """Poster and details resolved for one movie of a batch."""

    model_config = ConfigDict(populate_by_name=True)

    movie: Movie
    poster_url: str | None = Field(default=None, alias="posterUrl")
    placeholder_url: str = Field(alias="placeholderUrl")
    details: MovieDetails
    stars: int | None = None


class MoodRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    mood: str = Field(min_length=1, max_length=500)


class EnrichmentRequest(BaseModel):
    movies: list[Movie] = Field(default_factory=list, max_length=12)
