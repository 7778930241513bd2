"""FreshMart FastAPI application entrypoint.

This module wires the web application: logging, CORS, the MongoDB startup
checks, the JSON API and HTML routers, and the translation of domain errors
into HTTP responses.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from database import db, ensure_indexes, ping_db
from exceptions import MarketplaceError
from routes.api import router as api_router
from routes.web import router as web_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=config.STORE_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(web_router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Answer domain errors with their status code and message."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse({"detail": exc.message, "error": type(exc).__name__}, status_code=exc.status_code)


@app.on_event("startup")
async def startup() -> None:
    """Check the database connection and make sure indexes exist."""
    await ping_db()
    try:
        await ensure_indexes(db)
    except Exception:  # noqa: BLE001 - the app can serve without indexes
        logger.exception("Could not create indexes")
    logger.info("%s started", config.STORE_NAME)


@app.get("/health")
async def health() -> dict:
    return {"service": "freshmart", "status": "ok"}
