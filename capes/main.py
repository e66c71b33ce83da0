"""
Main entry point for the cape API.
"""
from contextlib import asynccontextmanager
import os

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from capes.routes import capes
from capes.errors import CapeError
from capes.services.cape_repository import CapeRepository
from capes.services.cape_service import CapeResolver, RequestCoalescer
from capes.services.identity_service import MojangIdentityResolver
from capes.services.image_pipeline import DerivedImagePipeline
from capes.services.providers import build_providers
from capes.services.s3_client import s3_client
from capes.utils.db_async import (
    DATABASE_URL,
    SessionLocal,
    describe_database_url,
    dispose_engine,
    init_db,
)

from capes.logging_config import setup_logging
from capes.config import settings

import logging
logger = logging.getLogger(__name__)

setup_logging(level=settings.log_level, access_log=settings.access_log)


def build_resolver(http_client: httpx.AsyncClient) -> CapeResolver:
    """Wire the resolver and its collaborators from settings."""
    return CapeResolver(
        records=CapeRepository(SessionLocal),
        identity=MojangIdentityResolver(http_client),
        providers=build_providers(settings.cape_types, http_client),
        pipeline=DerivedImagePipeline(s3_client),
        coalescer=RequestCoalescer() if settings.coalesce_requests else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    should_init_db = (
        settings.is_dev
        and settings.auto_init_db
        and not os.getenv("FLY_APP_NAME")
    )

    if should_init_db:
        logger.info("Running init_db()…")
        logger.info(f"DB target: {describe_database_url(DATABASE_URL)}")
        try:
            await init_db()
            logger.info("DB ready.")
        except Exception:
            logger.exception("init_db failed")
            raise
    else:
        logger.info("Skipping init_db(); auto_init_db disabled or managed deployment detected")

    http_client = httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent},
        timeout=httpx.Timeout(settings.provider_timeout),
        follow_redirects=True,
    )
    app.state.resolver = build_resolver(http_client)
    logger.info(f"Cape types: {', '.join(app.state.resolver.supported_types)}")

    yield

    await http_client.aclose()
    try:
        logger.info("Disposing DB engine…")
        await dispose_engine()
        logger.info("DB engine disposed.")
    except Exception:
        logger.exception("Failed to dispose DB engine")


app = FastAPI(title="Cape Resolver", lifespan=lifespan)
app.include_router(capes.router)


@app.exception_handler(CapeError)
async def cape_error_handler(request: Request, exc: CapeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "retryable": exc.retryable},
    )


@app.get("/health")
async def health_check():
    """Health Check Endpoint"""
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
