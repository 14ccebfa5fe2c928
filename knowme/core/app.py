from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from knowme.api.main import api_router
from knowme.core.exceptions import StoreUnavailable
from knowme.services.deck import deck_sessions
from knowme.services.store import profile_store

from .config import settings
from .version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    logger.info(f"Starting {settings.APP_NAME} {__version__} with {settings.STORE_BACKEND} store")
    yield
    deck_sessions.close_all()
    try:
        await profile_store.close()
        logger.info("Profile store closed")
    except Exception as exc:
        logger.warning(f"Failed to close profile store: {exc}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Learn the names of the people in your groups, one card at a time",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV == "production" else "/docs",
    redoc_url=None if settings.APP_ENV == "production" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable."})


app.include_router(api_router)
