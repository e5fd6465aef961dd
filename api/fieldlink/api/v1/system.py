"""
Health, documentation and route-table endpoints
"""
import logging
from importlib import resources

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldlink import __version__
from fieldlink.core.config import settings
from fieldlink.core.database import get_db, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

API_REFERENCE = "docs/api-reference.md"


def load_api_reference() -> str:
    return resources.files("fieldlink").joinpath(API_REFERENCE).read_text(encoding="utf-8")


async def health_payload(db: AsyncSession) -> JSONResponse:
    database = "connected"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        database = "unavailable"

    healthy = database == "connected"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "timestamp": utcnow().isoformat(),
            "environment": settings.ENVIRONMENT,
            "version": __version__,
            "database": database,
        },
    )


@router.get("/health", tags=["system"])
async def health(db: AsyncSession = Depends(get_db)):
    """Health check with a database ping"""
    return await health_payload(db)


@router.get("/api/health", tags=["system"])
async def api_health(db: AsyncSession = Depends(get_db)):
    return await health_payload(db)


@router.get("/healthz", tags=["system"])
async def liveness():
    """Liveness probe; does not touch the database"""
    return {"status": "ok"}


@router.get("/api/docs", tags=["system"])
async def api_docs(request: Request, format: str = Query("json", pattern="^(json|markdown)$")):
    """The API reference, as JSON or raw markdown"""
    content = load_api_reference()
    if format == "markdown" or "text/markdown" in request.headers.get("accept", ""):
        return PlainTextResponse(content, media_type="text/markdown")
    return {
        "success": True,
        "data": {"title": "FieldLink API Reference", "version": __version__, "content": content},
    }


@router.get("/api/routes", tags=["system"])
async def api_routes(request: Request):
    """Every registered endpoint, generated from the application's router"""
    # The OpenAPI paths already exclude the hidden /api/v1 copies
    routes = []
    for path, operations in request.app.openapi()["paths"].items():
        for method, operation in operations.items():
            routes.append({
                "path": path,
                "methods": [method.upper()],
                "name": operation.get("operationId"),
                "summary": (operation.get("description") or operation.get("summary") or "").strip().split("\n")[0],
                "tags": operation.get("tags", []),
            })
    routes.sort(key=lambda r: (r["path"], r["methods"]))
    return {"success": True, "data": {"total": len(routes), "routes": routes}}
