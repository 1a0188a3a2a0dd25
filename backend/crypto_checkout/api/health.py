"""
Health API Endpoints

Liveness and store status. Health never fails because the store is down:
it reports the database as disconnected instead.
"""
import logging
import time
from fastapi import APIRouter, Depends, Request
from typing import Dict, Any

from ..models.transactions import TransactionStats
from ..services.transaction_store import TransactionStore
from ..utils import isoformat_z, utcnow
from .dependencies import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    request: Request,
    store: TransactionStore = Depends(get_store)
) -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Status, uptime in seconds, version, environment, database state and
        transaction counts (all zero when the database is unreachable)
    """
    app_settings = request.app.state.settings
    health = {
        "success": True,
        "status": "healthy",
        "timestamp": isoformat_z(utcnow()),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "environment": app_settings.environment,
        "version": app_settings.version,
    }

    try:
        stats = await store.aggregate_counts()
        database = "connected"
    except Exception as e:
        logger.warning(f"Database health check failed, but service is healthy: {e}")
        stats = TransactionStats()
        database = "disconnected"

    return {
        **health,
        "transactions": stats.model_dump(),
        "database": database,
    }


@router.get("/ping")
async def ping(request: Request) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "pong",
        "timestamp": isoformat_z(utcnow()),
        "environment": request.app.state.settings.environment,
    }
