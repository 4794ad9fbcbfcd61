"""
FastAPI backend for the KDP cover builder

Serves dimension calculation, full-wrap assembly, spine colors, downloads,
the image proxy and cover history.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kdp_cover import __version__
from kdp_cover.config.settings import Settings, load_settings
from kdp_cover.errors import KDPCoverError
from web.backend.api import book_cover, history, proxy
from web.backend.services.history_store import HistoryStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(
        title="KDP Cover Builder API",
        description="Full-wrap paperback cover dimensions and assembly",
        version=__version__,
    )
    app.state.settings = settings
    app.state.history = HistoryStore(settings.history_path)

    # CORS middleware - allow frontend to communicate
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",  # Vite default port
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(KDPCoverError)
    async def cover_error_handler(request: Request, exc: KDPCoverError):
        logger.warning("%s on %s: %s", exc.__class__.__name__, request.url.path, exc)
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Return error messages as JSON."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.get("/")
    async def root():
        return {
            "message": "KDP Cover Builder API",
            "version": __version__,
            "docs": "/docs",
            "status": "running",
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    app.include_router(book_cover.router, prefix="/api/book-cover", tags=["book-cover"])
    app.include_router(history.router, prefix="/api/history", tags=["history"])
    app.include_router(proxy.router, tags=["proxy"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000, timeout_keep_alive=300)
