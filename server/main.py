"""
Page cache coordinator for a WordPress-style host.

Receives the host's content events, purges the affected file-based page
caches, and manages the dropin and boot flag that switch page caching on.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.logging import configure_logging, get_logger
from routers import page_cache

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
import logging
logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting page cache coordinator",
                host_root=str(container.settings().host_root),
                cache_root=str(container.settings().cache_root))

    # Bind invalidation callbacks to the host actions
    container.subscriber().setup(container.hooks())

    # Surface a broken activation the way the host's admin notice would
    state = container.activation().status()
    for problem in state.problems:
        logger.warning("Page caching is not able to run", problem=problem)

    logger.info("Services started successfully",
                page_caching=state.page_caching_enabled,
                boot_flag=state.boot_flag_enabled)
    yield

    logger.info("Services shutdown complete")


app = FastAPI(
    title="Page Cache Coordinator",
    version="1.0.0",
    description="File-based page cache invalidation and activation",
    lifespan=lifespan
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )

app.add_middleware(CatchAllExceptionsMiddleware)

app.include_router(page_cache.router)


@app.get("/health")
async def health_check():
    """Health check."""
    return {
        "status": "OK",
        "service": "page-cache",
        "environment": "development" if settings.is_development else "production",
        "page_caching": container.config_store().is_page_caching_enabled(),
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting page cache coordinator",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
    )
