"""
Reservation Service — Health endpoint
"""
import asyncio
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from reservation_service.core.config import get_settings
from reservation_service.db.database import engine
from reservation_service.schemas.reservation import HealthResponse

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Deep health check: verifies PostgreSQL and the Redis event broker.
    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    deps: dict[str, str] = {}
    healthy = True

    try:
        async with engine.connect() as conn:
            await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["postgresql"] = "ok"
    except Exception as e:
        deps["postgresql"] = f"error: {str(e)[:100]}"
        healthy = False

    try:
        broker = request.app.state.broker
        await asyncio.wait_for(broker.get().ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["redis"] = "ok"
    except Exception as e:
        deps["redis"] = f"error: {str(e)[:100]}"
        healthy = False

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )
    return JSONResponse(content=response.model_dump(), status_code=200 if healthy else 503)
