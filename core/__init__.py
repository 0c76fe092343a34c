"""
Core functionality per moe-counter.

Questo modulo contiene:
- Configurazione (config.py)
- Store persistente (store.py)
- Cache write-back e servizio contatori (counter_service.py)
- Scheduler flush periodico (scheduler.py)
- Logging (logger.py)
"""

