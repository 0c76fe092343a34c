"""
Routers per API moe-counter.

Moduli:
- counter: Immagine SVG (GET /@{name}) e conteggio grezzo (GET /record/@{name})
- health: Liveness (GET /heart-beat), health check (GET /health), temi (GET /api/themes)
"""
from . import counter, health

__all__ = ["counter", "health"]
