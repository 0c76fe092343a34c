"""
Parametri di rendering validati.

Un RenderRequest è costruito per intero o rifiutato (pydantic
ValidationError): non viene mai applicato parzialmente.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NAME_REGEX = r"^[A-Za-z0-9_-]{1,32}$"


class RenderRequest(BaseModel):
    """Parametri della richiesta immagine contatore."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., pattern=NAME_REGEX, description="Nome contatore")
    theme: str = Field(default="moebooru", description="Tema o 'random' (sconosciuto = tema di default)")
    padding: int = Field(default=7, ge=0, le=16, description="Cifre minime (zeri a sinistra)")
    offset: float = Field(default=0.0, ge=-500, le=500, description="Spazio tra glifi (negativo = sovrapposti)")
    align: Literal["top", "center", "bottom"] = Field(default="top", description="Allineamento verticale")
    scale: float = Field(default=1.0, ge=0.1, le=2, description="Fattore di scala")
    pixelated: bool = Field(default=True, description="Hint image-rendering: pixelated")
    darkmode: Literal["0", "1", "auto"] = Field(default="auto", description="Stile dark mode")
    num: int = Field(default=0, ge=0, le=10**15, description="Valore da mostrare (0 = contatore reale)")
    prefix: int = Field(default=-1, ge=-1, le=999999, description="Cifre anteposte (-1 = assente)")
