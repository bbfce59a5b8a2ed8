from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from .api.endpoints import router as api_router
from .core.config import PROJECT_NAME, API_PREFIX, settings
from .core.logging import setup_logging
from .services.aggregator import close_aggregator, get_aggregator
import logging

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize provider sessions on startup and close them on shutdown"""
    setup_logging()
    logger.info(f"{PROJECT_NAME} starting")
    if settings.WARM_UP_SESSIONS:
        # Cookie priming does blocking HTTP, keep it off the event loop
        await run_in_threadpool(get_aggregator().warm_up)
        logger.info("Provider sessions initialized")
    yield
    close_aggregator()
    logger.info(f"{PROJECT_NAME} shut down")

def root():
    """Serve the player page, or describe the API when no page is bundled"""
    index_path = settings.TEMPLATES_DIR / "index.html"
    if index_path.is_file():
        return FileResponse(index_path, media_type="text/html; charset=utf-8")
    return {
        "message": f"Welcome to {PROJECT_NAME} API",
        "search_url": f"{API_PREFIX}/search?keyword=...&sources=qq,netease,kuwo",
        "song_url": f"{API_PREFIX}/song?id=...&source=...",
        "docs_url": "/docs"
    }

def create_app() -> FastAPI:
    app = FastAPI(
        title=PROJECT_NAME,
        description="Search several music catalogs at once and resolve playable stream URLs",
        version=settings.VERSION,
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    app.include_router(api_router, prefix=API_PREFIX)

    if settings.STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

    app.add_api_route("/", root, methods=["GET"], include_in_schema=False)
    return app

app = create_app()
