"""
Air quality cities API — most polluted cities per country, enriched with descriptions.

Entrypoint: uvicorn services.airquality.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from services.airquality.cache import CacheNamespaces, TTLCache
from services.airquality.clients import (
    HistoricalStoreClient,
    LegacyApiClient,
    OpenAQClient,
    PlacesClient,
    WikipediaClient,
)
from services.airquality.clients import legacy as legacy_http
from services.airquality.clients import openaq as openaq_http
from services.airquality.clients import places as places_http
from services.airquality.clients import wikipedia as wikipedia_http
from services.airquality.config import settings
from services.airquality.errors import InputError, PersistenceError, UpstreamUnavailable
from services.airquality.history import HistoryStore
from services.airquality.middleware.cors import setup_cors
from services.airquality.middleware.sentry import setup_sentry
from services.airquality.pipeline.catalog import CityCatalog
from services.airquality.pipeline.enrichment import EnrichmentEngine
from services.airquality.pipeline.sources import SourceSelector, default_sources
from services.airquality.pipeline.validator import RecordValidator
from services.airquality.reputation import ReputationStore
from services.airquality.routers import admin, cities, health

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Owns every pool, client and cache."""
    setup_sentry()
    app.state.settings = settings

    db_pool = None
    if settings.database_url:
        try:
            db_pool = await asyncpg.create_pool(
                settings.database_url,
                min_size=1,
                max_size=10,
                command_timeout=30,
            )
        except (OSError, asyncpg.PostgresError) as e:
            # Listings still work from the HTTP sources; reputation writes fail with 503
            logger.warning("DB pool failed to connect: %s", e)
    app.state.db = db_pool

    reputation = ReputationStore(db_pool)
    history = HistoryStore(db_pool)
    if db_pool is not None:
        try:
            await reputation.ensure_schema()
            await history.ensure_schema()
        except PersistenceError as e:
            logger.warning("Schema setup failed: %s", e)

    # HTTP clients, one connection pool per upstream
    http_clients = [
        openaq_http.build_http_client(
            settings.openaq_base_url, settings.openaq_api_key, settings.openaq_timeout_s
        ),
        legacy_http.build_http_client(settings.legacy_api_base_url, settings.legacy_api_timeout_s),
        wikipedia_http.build_http_client(settings.wikipedia_base_url, settings.wikipedia_timeout_s),
    ]
    openaq_client, legacy_client, wikipedia_client = http_clients

    places_client = None
    if settings.google_places_enabled and settings.google_places_api_key:
        places_client = places_http.build_http_client(
            settings.google_places_base_url,
            settings.google_places_api_key,
            settings.google_places_timeout_s,
        )
        http_clients.append(places_client)
    else:
        logger.info("Google Places disabled, city names are accepted without canonicalization")

    cache_store = TTLCache(default_ttl_seconds=settings.source_cache_ttl_s)
    caches = CacheNamespaces.create(cache_store, settings)

    validator = RecordValidator(
        PlacesClient(places_client, enabled=places_client is not None),
        caches.validation,
        settings.supported_countries,
    )
    selector = SourceSelector(
        default_sources(
            historical=(
                HistoricalStoreClient(db_pool, pm25_factor=settings.pm25_to_pm10_factor)
                if db_pool is not None else None
            ),
            live=OpenAQClient(openaq_client) if settings.openaq_enabled else None,
            legacy=LegacyApiClient(
                legacy_client,
                settings.legacy_api_username,
                settings.legacy_api_password,
                max_attempts=settings.legacy_api_retries,
            ),
        ),
        validator,
        caches.sources,
    )
    enricher = EnrichmentEngine(
        WikipediaClient(wikipedia_client, max_attempts=settings.wikipedia_retries),
        caches.descriptions,
        settings.supported_countries,
        batch_size=settings.enrichment_batch_size,
        batch_delay=settings.enrichment_batch_delay_s,
    )
    app.state.catalog = CityCatalog(
        selector=selector,
        enricher=enricher,
        reputation=reputation,
        history=history,
        caches=caches,
        cache_store=cache_store,
        supported_countries=settings.supported_countries,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    logger.info(
        "Catalog ready: sources=%s countries=%s",
        [tag.value for tag in selector.source_tags], sorted(settings.supported_countries),
    )

    yield

    for client in http_clients:
        await client.aclose()
    if db_pool:
        await db_pool.close()


app = FastAPI(
    title="Air Quality Cities API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(cities.router)
app.include_router(admin.router)

# CORS (needs to be outermost to handle preflight)
setup_cors(app)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# -- Exception Handlers --

def _error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
    return _error(request, 400, "INVALID_INPUT", str(exc))


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.error("All sources failed: country=%s failures=%s", exc.country, exc.failures)
    return _error(
        request, 503, "UPSTREAM_UNAVAILABLE",
        f"Pollution data is temporarily unavailable for {exc.country}.",
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    return _error(request, 503, "PERSISTENCE_ERROR", "The reputation store is temporarily unavailable.")


@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return _error(request, 404, "NOT_FOUND", "Resource not found.")


@app.exception_handler(422)
async def validation_error_handler(request: Request, exc) -> JSONResponse:
    return _error(
        request, 422, "VALIDATION_ERROR",
        str(exc.detail) if hasattr(exc, "detail") else "Validation error.",
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return _error(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")
