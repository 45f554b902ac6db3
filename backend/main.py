# Backend API for the map bookmarks frontend
# FastAPI + JSON file bookmark store

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from backend.config import Settings, load_secrets
from backend.database import BookmarkStore, StorageFault
from backend.routers import bookmarks

logger = logging.getLogger(__name__)

def create_app(store: Optional[BookmarkStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        load_secrets()
        settings = Settings.from_env()
    if store is None:
        store = BookmarkStore.from_path(settings.bookmarks_file)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Bookmark store backend: %r", app.state.store.backend)
        yield

    app = FastAPI(
        title="Map Bookmarks API",
        description="Bookmark persistence and proximity search for the map frontend",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.store = store
    app.state.settings = settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def no_store(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.exception_handler(StorageFault)
    async def storage_fault_handler(request: Request, exc: StorageFault):
        return JSONResponse(
            status_code=500,
            content={"detail": "Bookmark storage unavailable"},
            headers={"Cache-Control": "no-store"},
        )

    # Include routers
    app.include_router(bookmarks.router, prefix="/api", tags=["bookmarks"])

    @app.get("/")
    async def root():
        return {"message": "Map Bookmarks API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000)
