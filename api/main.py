"""
Main FastAPI application per moe-counter.

Composition root: store, CounterService e catalogo temi sono costruiti una
sola volta allo startup e condivisi tramite app.state.
"""
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.config import CounterConfig, get_config
from core.counter_service import CounterService
from core.logger import setup_colored_logging
from core.scheduler import shutdown_scheduler, start_scheduler
from core.store import CounterStore, StoreError, create_store
from api.routers import counter, health
from render.catalog import ThemeCatalog

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[CounterConfig] = None,
    store: Optional[CounterStore] = None,
    catalog: Optional[ThemeCatalog] = None,
) -> FastAPI:
    """
    Crea l'applicazione.

    Args:
        config: Configurazione (default: get_config())
        store: Store già costruito (default: create_store(config))
        catalog: Catalogo temi (default: scansione di config.theme_dir)
    """
    config = config or get_config()

    app = FastAPI(title="Moe Counter", version="1.0.0")
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Durata di ogni richiesta; eccezioni non gestite → 500."""
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"[HTTP] Error: {e}", exc_info=True)
            response = PlainTextResponse("Internal Server Error", status_code=500)
        duration = time.perf_counter() - start
        logger.info(f"[HTTP] {request.method} {request.url.path} processed in {duration:.4f}s")
        return response

    app.include_router(counter.router)
    app.include_router(health.router)

    @app.on_event("startup")
    async def startup_event():
        """Valida configurazione e costruisce store, servizio contatori e catalogo temi."""
        config.validate_config()

        app.state.store = store or create_store(config)
        try:
            await app.state.store.init()
        except StoreError as e:
            # Il percorso di lettura degrada a 0 finché lo store non risponde
            logger.error(f"Error initializing store ({app.state.store.backend}): {e}", exc_info=True)

        app.state.counter_service = CounterService(
            app.state.store,
            flush_interval=config.flush_interval,
            store_timeout=config.store_timeout,
        )

        app.state.catalog = catalog or ThemeCatalog(
            config.theme_dir,
            default_theme=config.default_theme,
            cache_file=config.theme_cache_file,
        ).load()
        if not app.state.catalog.has_theme(config.default_theme):
            logger.warning(f"Default theme '{config.default_theme}' not loaded")

        if config.flush_scheduler_enabled:
            start_scheduler(app.state.counter_service, config.flush_interval)

        logger.info(f"Moe Counter started (store={app.state.store.backend})")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Flush forzato della cache e chiusura store."""
        shutdown_scheduler()
        service: CounterService = app.state.counter_service
        if service.cache:
            flushed = await service.flush(force=True)
            if not flushed:
                logger.error(f"Final flush failed, {len(service.cache)} counters not persisted")
        await app.state.store.close()
        logger.info("Moe Counter stopped")

    return app


setup_colored_logging("counter", get_config().log_level)
app = create_app()
