"""
Compositore SVG del contatore.

Trasforma un valore risolto + RenderRequest in un documento SVG
autocontenuto: una definizione <image> per ogni carattere distinto e un
<use> leggero per ogni posizione, così la dimensione dell'output cresce con
(glifi distinti + lunghezza sequenza) e non con i payload duplicati.
"""
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from render.catalog import ThemeCatalog, ThemeGlyph
from render.request import RenderRequest


SVG_TITLE = "Moe Counter"

PIXELATED_STYLE = "image-rendering: pixelated;"
DARKMODE_STYLE = "filter: brightness(.6);"
DARKMODE_AUTO_STYLE = "@media (prefers-color-scheme: dark){svg{filter:brightness(.6)}}"


@dataclass(frozen=True)
class GlyphPlacement:
    char: str
    x: float
    y: float
    width: float
    height: float


def format_digits(count: Union[int, str], padding: int, prefix: int = -1) -> List[str]:
    """
    Cifre da disegnare: conteggio con zeri a sinistra, prefisso testuale davanti.

    Args:
        count: Valore (int >= 0, oppure stringa di cifre per la demo)
        padding: Cifre minime; nessun troncamento se il numero è più lungo
        prefix: Cifre da anteporre se >= 0 (concatenazione, non somma)
    """
    digits = str(count).zfill(padding)
    if prefix >= 0:
        digits = f"{prefix}{digits}"
    return list(digits)


def add_decorations(chars: List[str], glyphs: Dict[str, ThemeGlyph]) -> List[str]:
    """Aggiunge _start / _end se il tema li definisce."""
    sequence = list(chars)
    if "_start" in glyphs:
        sequence.insert(0, "_start")
    if "_end" in glyphs:
        sequence.append("_end")
    return sequence


def vertical_offset(height: float, max_height: float, align: str) -> float:
    if align == "center":
        return (max_height - height) / 2
    if align == "bottom":
        return max_height - height
    return 0


def layout_glyphs(
    sequence: List[str],
    sizes: Dict[str, Tuple[float, float]],
    offset: float,
    align: str,
) -> Tuple[List[GlyphPlacement], float, float]:
    """
    Posiziona i glifi da sinistra a destra.

    Returns:
        Tuple (placements, canvas_width, canvas_height); l'offset si applica
        solo tra glifi, mai dopo l'ultimo
    """
    max_height = max((sizes[char][1] for char in sequence), default=0)
    placements = []
    x = 0.0
    for char in sequence:
        width, height = sizes[char]
        placements.append(GlyphPlacement(
            char=char,
            x=x,
            y=vertical_offset(height, max_height, align),
            width=width,
            height=height,
        ))
        x += width + offset

    total_width = x - offset if sequence else 0.0
    return placements, total_width, max_height


def _glyph_id(char: str) -> str:
    return f"glyph-{char}"


def build_styles(pixelated: bool, darkmode: str) -> str:
    styles = []
    if pixelated:
        styles.append(PIXELATED_STYLE)
    if darkmode == "1":
        styles.append(DARKMODE_STYLE)
    elif darkmode == "auto":
        styles.append(DARKMODE_AUTO_STYLE)
    return "".join(styles)


def render_counter_svg(
    catalog: ThemeCatalog,
    params: RenderRequest,
    count: Union[int, str],
    theme: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Genera il documento SVG per un contatore.

    Args:
        catalog: Catalogo temi già caricato
        params: Parametri validati
        count: Valore risolto dal CounterService
        theme: Tema già risolto (se None viene risolto da params.theme)
        rng: Sorgente casuale per theme=random

    Returns:
        Stringa SVG con tutte le immagini inline

    Raises:
        RenderError: Tema o glifo mancante
    """
    theme = theme or catalog.resolve_theme(params.theme, rng)
    glyphs = catalog.theme_glyphs(theme)
    sequence = add_decorations(format_digits(count, params.padding, params.prefix), glyphs)

    sizes: Dict[str, Tuple[float, float]] = {}
    defs = []
    for char in sequence:
        if char in sizes:
            continue
        glyph = catalog.get_glyph(theme, char)
        width, height = glyph.scaled_size(params.scale)
        sizes[char] = (width, height)
        defs.append(
            f'<image id="{_glyph_id(char)}" width="{width:.5f}" height="{height:.5f}" xlink:href="{glyph.data}"/>'
        )

    placements, total_width, max_height = layout_glyphs(sequence, sizes, params.offset, params.align)

    parts = []
    for placement in placements:
        y_attr = f' y="{placement.y:.5f}"' if placement.y != 0 else ""
        parts.append(f'<use x="{placement.x:.5f}"{y_attr} xlink:href="#{_glyph_id(placement.char)}"/>')

    styles = build_styles(params.pixelated, params.darkmode)

    return (
        '<?xml version="1.0" encoding="UTF-8"?> '
        f'<svg viewBox="0 0 {total_width:.5f} {max_height:.5f}" width="{total_width:.5f}" height="{max_height:.5f}" '
        'xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink"> '
        f'<title>{SVG_TITLE}</title><style>{styles}</style> '
        f'<defs>{"".join(defs)}</defs><g>{"".join(parts)}</g></svg>'
    )
