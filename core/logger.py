"""
Logging per moe-counter.

Unifica logging colorato (colorlog) ed eventi strutturati in formato JSON.
"""
import logging
import json
import sys
from typing import Union
from datetime import datetime

import colorlog


def setup_colored_logging(service_name: str = "counter", level: Union[str, int] = logging.INFO):
    """
    Configura logging colorato con colorlog.

    Args:
        service_name: Nome del servizio per identificare log
        level: Livello del root logger
    """
    # Handler per stdout con colori
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    formatter = colorlog.ColoredFormatter(
        f'%(log_color)s[%(levelname)s]%(reset)s %(cyan)s{service_name}%(reset)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        reset=True,
        log_colors={
            'DEBUG': 'white',
            'INFO': 'blue',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        },
        secondary_log_colors={},
        style='%'
    )

    handler.setFormatter(formatter)

    # Configura root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Rimuovi handler esistenti
    root_logger.handlers = []

    root_logger.addHandler(handler)

    # Riduci verbosità librerie
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    logging.getLogger('pymongo').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    return root_logger


def log_json(level: str, message: str, **fields):
    """
    Log strutturato in formato JSON line.

    Args:
        level: 'info', 'warning', 'error', 'debug'
        message: Messaggio da loggare
        **fields: Campi aggiuntivi (devono essere serializzabili)
    """
    log_data = {
        "timestamp": datetime.utcnow().isoformat(),
        "level": level.upper(),
        "message": message,
    }
    log_data.update(fields)

    logger = logging.getLogger(__name__)
    log_func = getattr(logger, level.lower(), logger.info)
    log_func(json.dumps(log_data, ensure_ascii=False, default=str))
