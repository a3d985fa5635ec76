import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from binderkeep.api import (
    decks_router,
    folders_router,
    health_router,
    inventory_router,
    reservations_router,
    sales_router,
    transactions_router,
)
from binderkeep.config import settings
from binderkeep.db.database import close_db, init_db
from binderkeep.models.failure import ErrorResponse, FailureKind, KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    logger.info("%s started; default slot mode %s", settings.app_name, settings.default_slot_mode)
    yield
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("binderkeep"),
    lifespan=lifespan,
)

app.include_router(decks_router)
app.include_router(folders_router)
app.include_router(health_router)
app.include_router(inventory_router)
app.include_router(reservations_router)
app.include_router(sales_router)
app.include_router(transactions_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    body = ErrorResponse(
        error="Unexpected database error",
        code=FailureKind.INTERNAL,
        suggestion="Retry the request; contact support if it keeps failing.",
    )
    return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
