# /storechat/routes/public.py

from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from storechat.config.settings import settings
from storechat.services.db_service import db_service
from storechat.utils.dependencies import verify_metrics_access

# Endpoints that need no tenant authentication: service info, health probes
# and the Prometheus scrape target (guarded by X-API-KEY when one is set).

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "StoreChat Assistant",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}

@router.get("/health/ready", summary="Readiness Probe")
async def readiness_check():
    """Readiness probe; fails while MongoDB is unreachable."""
    if not await db_service.health_check():
        raise HTTPException(status_code=503, detail="Service not ready: database unavailable")
    return {"status": "ready"}

@router.get("/metrics", dependencies=[Depends(verify_metrics_access)])
async def metrics():
    return PlainTextResponse(generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
