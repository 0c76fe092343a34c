"""
Dependency FastAPI: accesso alle istanze costruite allo startup (app.state).
"""
from fastapi import HTTPException, Request
from pydantic import ValidationError

from core.counter_service import CounterService
from core.store import CounterStore
from render.catalog import ThemeCatalog
from render.request import RenderRequest


def get_counter_service(request: Request) -> CounterService:
    return request.app.state.counter_service


def get_catalog(request: Request) -> ThemeCatalog:
    return request.app.state.catalog


def get_store(request: Request) -> CounterStore:
    return request.app.state.store


def parse_render_request(name: str, request: Request) -> RenderRequest:
    """
    Costruisce il RenderRequest da path + query string.

    Raises:
        HTTPException 400: Se un parametro non è valido (niente viene applicato)
    """
    raw = dict(request.query_params)
    raw["name"] = name
    try:
        return RenderRequest.model_validate(raw)
    except ValidationError as e:
        detail = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in e.errors()
        ]
        raise HTTPException(status_code=400, detail=detail)
