"""
Router liveness, health check e catalogo temi.
"""
import asyncio
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from api.dependencies import get_catalog, get_counter_service, get_store
from core.counter_service import CounterService
from core.store import CounterStore, StoreError
from render.catalog import ThemeCatalog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

SERVICE_NAME = "moe-counter"
SERVICE_VERSION = "1.0.0"


@router.get("/heart-beat", response_class=PlainTextResponse)
async def heart_beat():
    """Liveness: payload costante."""
    logger.info("heart-beat")
    return PlainTextResponse(
        "alive",
        headers={"Cache-Control": "max-age=0, no-cache, no-store, must-revalidate"},
    )


@router.get("/health")
async def health_check(
    store: CounterStore = Depends(get_store),
    service: CounterService = Depends(get_counter_service),
    catalog: ThemeCatalog = Depends(get_catalog),
):
    """Health check del servizio con stato store, temi e cache."""
    db_status = "connected"
    try:
        await asyncio.wait_for(store.get_num("demo"), timeout=service.store_timeout)
    except (StoreError, asyncio.TimeoutError) as e:
        logger.error(f"Health check store failed: {e}")
        db_status = f"error: {e}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": str(datetime.utcnow()),
        "database": {"type": store.backend, "status": db_status},
        "themes": len(catalog.theme_names()),
        "cached_counters": len(service.cache),
    }


@router.get("/api/themes")
async def list_themes(catalog: ThemeCatalog = Depends(get_catalog)):
    """Temi caricati con i caratteri disponibili."""
    return catalog.list_themes()
