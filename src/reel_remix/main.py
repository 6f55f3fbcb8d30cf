"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from reel_remix.api.dependencies import get_session_store
from reel_remix.api.routes import router
from reel_remix.config import get_media_dir, settings

logger = structlog.get_logger()

_MEDIA_DIR = get_media_dir()


# ---------------------------------------------------------------------------
# CORS configuration
# ---------------------------------------------------------------------------

_DEFAULT_ORIGINS = {
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
}


def _get_allowed_origins() -> set[str]:
    origins = set(_DEFAULT_ORIGINS)
    if settings.allowed_origins:
        origins.update(o.strip() for o in settings.allowed_origins.split(",") if o.strip())
    return origins


_ALLOWED_ORIGINS = _get_allowed_origins()


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: release every session's media on shutdown."""
    logger.info("app.startup", allowed_origins=sorted(_ALLOWED_ORIGINS), media_dir=str(_MEDIA_DIR))
    yield
    store = app.dependency_overrides.get(get_session_store, get_session_store)()
    await store.close_all()
    logger.info("app.shutdown")


app = FastAPI(
    title="Reel Remix",
    description="Fill AI-generated reel templates with your own media",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

# Static file serving for preview handles
_MEDIA_DIR.mkdir(parents=True, exist_ok=True)
app.mount(settings.preview_url_prefix, StaticFiles(directory=str(_MEDIA_DIR)), name="media")


@app.get("/health")
async def health_check():
    return {"status": "ok"}
