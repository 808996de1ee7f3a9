from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import router
from .background import PriceRefreshScheduler
from .config import Settings, settings as default_settings
from .core.errors import GENERIC_ERROR_MESSAGE, PriceFinderError
from .core.sample_data import seed_sample_data
from .core.search import PriceSearchService
from .store.base import VendorRepository
from .store.memory_store import InMemoryVendorRepository
from .store.redis_store import RedisVendorRepository

logger = logging.getLogger(__name__)

async def _handle_price_finder_error(request: Request, exc: PriceFinderError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "Invalid request parameters."})


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error processing %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": GENERIC_ERROR_MESSAGE})


def create_app(
    settings: Settings | None = None,
    repository: VendorRepository | None = None,
) -> FastAPI:
    config = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        redis: Redis | None = None
        store = repository
        if store is None:
            if config.storage_backend == "redis":
                redis = Redis.from_url(config.redis_url, decode_responses=True)
                try:
                    await redis.ping()
                except Exception:
                    logger.exception("Failed to connect to Redis")
                    raise
                store = RedisVendorRepository(redis, key_prefix=config.redis_key_prefix)
            else:
                store = InMemoryVendorRepository()

        if config.seed_sample_data:
            await seed_sample_data(store)

        search_service = PriceSearchService(
            store,
            allow_synthetic_data=config.allow_synthetic_data,
        )
        scheduler = PriceRefreshScheduler(
            repository=store,
            refresh_interval=config.price_refresh_sec,
        )

        app.state.settings = config
        app.state.redis = redis
        app.state.repository = store
        app.state.search_service = search_service
        app.state.scheduler = scheduler

        logger.info(
            "Backend configuration loaded (storage=%s, synthetic_data=%s, price_refresh=%s, refresh_sec=%s)",
            config.storage_backend,
            config.allow_synthetic_data,
            config.enable_price_refresh,
            config.price_refresh_sec,
        )
        if config.allow_synthetic_data:
            logger.warning("Synthetic store backfill is enabled; do not use this setting in production")

        if config.enable_price_refresh:
            await scheduler.start()

        try:
            yield
        finally:
            await scheduler.stop()
            if redis is not None:
                await redis.aclose()

    app = FastAPI(title="Egg Price Finder Backend", lifespan=lifespan)
    origins = [origin.strip() for origin in config.cors_allow_origins.split(",") if origin.strip()]
    if not origins:
        origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PriceFinderError, _handle_price_finder_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)
    app.include_router(router)
    return app


app = create_app()
