import uvicorn
import os
import logging
from dotenv import load_dotenv

# Carica variabili ambiente
load_dotenv()

# Configurazione logging colorato PRIMA di qualsiasi altro import che usa logging
from core.logger import setup_colored_logging
setup_colored_logging("counter")

from core.config import get_config

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    config = get_config()
    logger.info(f"Store backend: {config.db_type}")

    # La cache write-back è per processo: più worker sovrascriverebbero
    # a vicenda i conteggi assoluti
    workers = int(os.getenv("UVICORN_WORKERS", "1"))
    if workers > 1:
        logger.warning(f"UVICORN_WORKERS={workers}: counters may lose updates across worker caches")

    logger.info(f"Starting Moe Counter on {config.host}:{config.port} with {workers} workers")

    try:
        uvicorn.run(
            "api.main:app",
            host=config.host,
            port=config.port,
            workers=workers,
            reload=False,
            log_level=config.log_level.lower(),
            access_log=True,
            use_colors=False  # Colori gestiti da colorlog
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
