"""
FieldLink API - Main FastAPI application
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from fieldlink import __version__
from fieldlink.core.config import settings
from fieldlink.core.database import engine, init_db
from fieldlink.core.errors import register_exception_handlers
from fieldlink.core.logging import RequestContextMiddleware, configure_logging
from fieldlink.api.v1 import system
from fieldlink.api.v1.router import api_router
from fieldlink.services.providers import build_providers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup/shutdown"""
    # Startup
    configure_logging(settings.LOG_LEVEL)
    await init_db()
    app.state.providers = build_providers(settings)
    logger.info("FieldLink API started", extra={"environment": settings.ENVIRONMENT})
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="FieldLink API",
    description="Conversation recording, transcription and analytics for field teams",
    version=__version__,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

# Include routers
app.include_router(system.router)
app.include_router(api_router, prefix="/api")
app.include_router(api_router, prefix="/api/v1", include_in_schema=False)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("fieldlink.main:app", host="0.0.0.0", port=8000, reload=True)
