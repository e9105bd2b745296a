"""
Order Service — Health endpoint
"""
import asyncio
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from order_service.core.config import get_settings
from order_service.db.database import engine
from order_service.mq.consumer import ConsumerState
from order_service.schemas.order import HealthResponse

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Deep health check of PostgreSQL, Redis and the reservation consumer.
    A consumer that is reconnecting reports degraded.
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

    consumer = getattr(request.app.state, "consumer", None)
    if consumer is None:
        deps["consumer"] = "not started"
        healthy = False
    else:
        deps["consumer"] = consumer.state.value
        if consumer.state != ConsumerState.CONSUMING:
            healthy = False

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )
    return JSONResponse(content=response.model_dump(), status_code=200 if healthy else 503)
