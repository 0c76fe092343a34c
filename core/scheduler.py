"""
Scheduler per il flush periodico della cache contatori.

Usa APScheduler con AsyncIOScheduler: un job a intervallo chiama il flush
(non forzato) così anche i contatori inattivi arrivano sullo store.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.counter_service import CounterService

logger = logging.getLogger(__name__)

FLUSH_JOB_ID = "counter_flush"

# Scheduler globale
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Ottiene o crea lo scheduler globale."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


async def periodic_flush(service: CounterService) -> None:
    """Job periodico: flush rispettando l'intervallo configurato."""
    flushed = await service.flush()
    if flushed:
        logger.debug("[SCHEDULER] Periodic flush completed")


def start_scheduler(service: CounterService, interval: float) -> AsyncIOScheduler:
    """
    Registra il job di flush e avvia lo scheduler.

    Args:
        service: CounterService da svuotare periodicamente
        interval: Secondi tra due esecuzioni (minimo 1)
    """
    scheduler = get_scheduler()
    scheduler.add_job(
        periodic_flush,
        trigger=IntervalTrigger(seconds=max(1.0, interval)),
        args=[service],
        id=FLUSH_JOB_ID,
        name="Flush cache contatori",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info(f"[SCHEDULER] Flush job scheduled every {max(1.0, interval)}s")
    return scheduler


def shutdown_scheduler() -> None:
    """Ferma lo scheduler se attivo."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Scheduler stopped")
    _scheduler = None
