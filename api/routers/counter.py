"""
Router contatori.

Endpoint:
- GET /@{name}: Immagine SVG del contatore (incrementa)
- GET /record/@{name}: Conteggio grezzo in JSON (incrementa)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from api.dependencies import get_catalog, get_counter_service, parse_render_request
from core.counter_service import CounterService, is_valid_counter_name
from core.logger import log_json
from render.catalog import ThemeCatalog
from render.compositor import render_counter_svg
from render.request import RenderRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["counter"])

# I contatori devono sempre mostrare il valore più recente
NO_STORE_HEADERS = {"Cache-Control": "max-age=0, no-cache, no-store, must-revalidate"}


@router.get("/@{name}")
async def get_counter_image(
    request: Request,
    params: RenderRequest = Depends(parse_render_request),
    service: CounterService = Depends(get_counter_service),
    catalog: ThemeCatalog = Depends(get_catalog),
):
    """
    Incrementa il contatore e lo restituisce come immagine SVG.

    Parametri query validati da RenderRequest (theme, padding, offset, align,
    scale, pixelated, darkmode, num, prefix).
    """
    record = await service.get_or_increment(params.name, params.num)

    theme = catalog.resolve_theme(params.theme)
    svg = render_counter_svg(catalog, params, record.count, theme=theme)

    log_json(
        "info",
        "counter",
        data=record.to_dict(),
        request={
            "ip": request.client.host if request.client else "",
            "referrer": request.headers.get("referer", ""),
            "user_agent": request.headers.get("user-agent", ""),
        },
        params={**params.model_dump(), "theme": theme},
    )

    return Response(content=svg, media_type="image/svg+xml", headers=NO_STORE_HEADERS)


@router.get("/record/@{name}")
async def get_counter_record(
    name: str,
    service: CounterService = Depends(get_counter_service),
):
    """Incrementa il contatore e restituisce {name, count} senza rendering."""
    if not is_valid_counter_name(name):
        logger.warning(f"[COUNTER_API] Invalid counter name attempted: {name[:64]}")
        raise HTTPException(status_code=400, detail="Invalid counter name")

    record = await service.get_or_increment(name)
    return record.to_dict()
