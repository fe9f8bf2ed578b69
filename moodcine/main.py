"""Entry point for the FastAPI-powered MoodCine service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import Database
from .models import (
    DetailsResponse,
    EnrichedMovie,
    EnrichmentRequest,
    MoodRequest,
    Movie,
    PosterResult,
    RecommendationBatch,
    SavedMovie,
)
from .services.details import DetailsCache, DetailsEngine
from .services.enrichment import EnrichmentSession
from .services.openrouter import OpenRouterClient
from .services.posters import PosterResolver
from .services.recommendations import RecommendationEngine
from .services.selection import DatabaseSelectionStore, SelectionManager

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

ServiceT = TypeVar("ServiceT")

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    async with AsyncExitStack() as exit_stack:
        openrouter_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.openrouter_api_url),
                timeout=httpx.Timeout(settings.generation_timeout_seconds, connect=10.0),
            )
        )
        itunes_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.itunes_api_url),
                timeout=httpx.Timeout(settings.poster_timeout_seconds, connect=5.0),
            )
        )
        database = Database(settings.database_url)
        exit_stack.push_async_callback(database.dispose)
        await database.create_all()

        generator = OpenRouterClient(settings, openrouter_http_client)
        selection = SelectionManager(
            DatabaseSelectionStore(
                database.session_factory, slot_key=settings.selection_slot_key
            )
        )
        await selection.load()

        fastapi_app.state.recommendation_engine = RecommendationEngine(
            settings, generator
        )
        fastapi_app.state.poster_resolver = PosterResolver(settings, itunes_http_client)
        fastapi_app.state.details_engine = DetailsEngine(
            settings, generator, DetailsCache()
        )
        fastapi_app.state.selection_manager = selection
        fastapi_app.state.database = database
        logger.info("Loaded %d saved movies", len(selection.movies))

        yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Mood-based movie recommendations with posters and details",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _require_service(
    fastapi_app: FastAPI, name: str, expected: type[ServiceT]
) -> ServiceT:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{expected.__name__} not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/api/recommendations", response_model=RecommendationBatch)
    async def recommendations(body: MoodRequest) -> RecommendationBatch:
        engine = _require_service(
            fastapi_app, "recommendation_engine", RecommendationEngine
        )
        return await engine.recommend_batch(body.mood)

    @fastapi_app.get("/api/posters", response_model=PosterResult)
    async def poster(
        title: str = Query(min_length=1, max_length=300),
        year: int = Query(ge=1870, le=2100),
    ) -> PosterResult:
        resolver = _require_service(fastapi_app, "poster_resolver", PosterResolver)
        return await resolver.resolve(title, year)

    @fastapi_app.get("/api/details", response_model=DetailsResponse)
    async def details(
        title: str = Query(min_length=1, max_length=300),
        year: int = Query(ge=1870, le=2100),
    ) -> DetailsResponse:
        engine = _require_service(fastapi_app, "details_engine", DetailsEngine)
        result = await engine.get_details(title, year)
        return DetailsResponse(**result.model_dump(), stars=result.star_rating())

    @fastapi_app.post("/api/enrichment", response_model=list[EnrichedMovie])
    async def enrichment(body: EnrichmentRequest) -> list[EnrichedMovie]:
        session = EnrichmentSession(
            _require_service(fastapi_app, "poster_resolver", PosterResolver),
            _require_service(fastapi_app, "details_engine", DetailsEngine),
        )
        try:
            return await session.gather(body.movies)
        finally:
            session.close()

    @fastapi_app.get("/api/selection", response_model=list[SavedMovie])
    async def selection() -> list[SavedMovie]:
        manager = _require_service(fastapi_app, "selection_manager", SelectionManager)
        return manager.movies

    @fastapi_app.post("/api/selection/toggle", response_model=list[SavedMovie])
    async def toggle_selection(movie: Movie) -> list[SavedMovie]:
        manager = _require_service(fastapi_app, "selection_manager", SelectionManager)
        return await manager.toggle(movie)

    @fastapi_app.delete("/api/selection/{movie_id}", response_model=list[SavedMovie])
    async def remove_selection(movie_id: str) -> list[SavedMovie]:
        manager = _require_service(fastapi_app, "selection_manager", SelectionManager)
        try:
            return await manager.remove(movie_id)
        except KeyError as exc:
            raise HTTPException(
                status_code=404, detail="Movie is not in the selection"
            ) from exc


app = create_app()
