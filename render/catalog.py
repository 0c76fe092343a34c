"""
Catalogo asset dei temi.

Scansiona THEME_DIR: ogni sottocartella è un tema, ogni immagine il cui nome
è un singolo carattere (o _start / _end) è un glifo. Le immagini sono
decodificate una sola volta per processo (data URI base64 + dimensioni via
Pillow) con le dimensioni precalcolate per le scale preset 0.5x/1x/2x.

Snapshot opzionale su disco (JSON) per evitare la scansione agli avvii
successivi; nessuna invalidazione automatica.
"""
import base64
import io
import json
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

PRESET_SCALES = (0.5, 1.0, 2.0)
DECORATION_CHARS = ("_start", "_end")
RANDOM_THEME = "random"


class RenderError(RuntimeError):
    """Tema o glifo mancante: difetto di configurazione, non recuperabile."""


@dataclass(frozen=True)
class ThemeGlyph:
    theme: str
    char: str
    width: int
    height: int
    data: str
    preset_scales: Dict[float, Tuple[float, float]]

    def scaled_size(self, scale: float) -> Tuple[float, float]:
        """Dimensioni renderizzate: preset se la scala coincide, altrimenti calcolate."""
        preset = self.preset_scales.get(scale)
        if preset is not None:
            return preset
        return self.width * scale, self.height * scale

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "data": self.data,
            "preset_scales": {str(scale): list(size) for scale, size in self.preset_scales.items()},
        }

    @classmethod
    def from_dict(cls, theme: str, char: str, raw: dict) -> "ThemeGlyph":
        return cls(
            theme=theme,
            char=char,
            width=int(raw["width"]),
            height=int(raw["height"]),
            data=raw["data"],
            preset_scales={
                float(scale): (float(size[0]), float(size[1]))
                for scale, size in raw["preset_scales"].items()
            },
        )


def is_glyph_name(stem: str) -> bool:
    """Nome file valido per un glifo: un carattere o una decorazione."""
    return len(stem) == 1 or stem in DECORATION_CHARS


def decode_image(path: Path) -> Tuple[int, int, str]:
    """
    Legge un'immagine e la rende trasportabile inline.

    Returns:
        Tuple (width, height, data_uri)
    """
    raw = path.read_bytes()
    with Image.open(io.BytesIO(raw)) as img:
        width, height = img.size
        mime = IMAGE_MIME_TYPES.get(path.suffix.lower()) or Image.MIME.get(img.format, "application/octet-stream")
    payload = base64.b64encode(raw).decode("ascii")
    return width, height, f"data:{mime};base64,{payload}"


class ThemeCatalog:
    """
    Catalogo glifi per tema, costruito una volta e poi in sola lettura.

    Args:
        theme_dir: Cartella radice dei temi
        default_theme: Tema usato quando quello richiesto non esiste
        cache_file: Snapshot JSON opzionale
    """

    def __init__(self, theme_dir: str, default_theme: str = "moebooru", cache_file: Optional[str] = None):
        self.theme_dir = Path(theme_dir)
        self.default_theme = default_theme
        self.cache_file = Path(cache_file) if cache_file else None
        self._themes: Dict[str, Dict[str, ThemeGlyph]] = {}
        self._decoded: Dict[str, Tuple[int, int, str]] = {}

    def load(self) -> "ThemeCatalog":
        """Carica il catalogo dallo snapshot se presente, altrimenti scansiona."""
        if self.cache_file is not None and self.cache_file.is_file():
            self._load_snapshot()
            return self

        self._scan()
        if self.cache_file is not None:
            self._write_snapshot()
        return self

    def _scan(self) -> None:
        if not self.theme_dir.is_dir():
            logger.warning(f"[THEMES] Theme directory not found: {self.theme_dir}")
            return

        for theme_path in sorted(self.theme_dir.iterdir()):
            if not theme_path.is_dir():
                continue
            self._themes[theme_path.name] = self._scan_theme(theme_path)

        glyph_count = sum(len(glyphs) for glyphs in self._themes.values())
        logger.info(f"[THEMES] Loaded {len(self._themes)} themes ({glyph_count} glyphs) from {self.theme_dir}")

    def _scan_theme(self, theme_path: Path) -> Dict[str, ThemeGlyph]:
        glyphs = {}
        for file_path in sorted(theme_path.iterdir()):
            if not file_path.is_file() or file_path.suffix.lower() not in IMAGE_MIME_TYPES:
                continue
            char = file_path.stem
            if not is_glyph_name(char):
                logger.debug(f"[THEMES] Skipping {file_path.name} in {theme_path.name}: not a glyph name")
                continue

            cache_key = str(file_path.resolve())
            if cache_key not in self._decoded:
                self._decoded[cache_key] = decode_image(file_path)
            width, height, data = self._decoded[cache_key]

            glyphs[char] = ThemeGlyph(
                theme=theme_path.name,
                char=char,
                width=width,
                height=height,
                data=data,
                preset_scales={scale: (width * scale, height * scale) for scale in PRESET_SCALES},
            )
        return glyphs

    def _load_snapshot(self) -> None:
        with self.cache_file.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        self._themes = {
            theme: {char: ThemeGlyph.from_dict(theme, char, glyph) for char, glyph in glyphs.items()}
            for theme, glyphs in raw["themes"].items()
        }
        logger.info(f"[THEMES] Loaded {len(self._themes)} themes from snapshot {self.cache_file}")

    def _write_snapshot(self) -> None:
        payload = {
            "themes": {
                theme: {char: glyph.to_dict() for char, glyph in glyphs.items()}
                for theme, glyphs in self._themes.items()
            }
        }
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with self.cache_file.open("w", encoding="utf-8") as f:
                json.dump(payload, f)
            logger.info(f"[THEMES] Snapshot written to {self.cache_file}")
        except OSError as e:
            logger.warning(f"[THEMES] Could not write snapshot {self.cache_file}: {e}")

    def theme_names(self) -> List[str]:
        return sorted(self._themes)

    def has_theme(self, theme: str) -> bool:
        return theme in self._themes

    def list_themes(self) -> Dict[str, List[str]]:
        """Tema → caratteri disponibili."""
        return {theme: sorted(glyphs) for theme, glyphs in sorted(self._themes.items())}

    def resolve_theme(self, theme: str, rng: Optional[random.Random] = None) -> str:
        """
        Risolve il nome tema effettivo.

        'random' sceglie uniformemente tra i temi caricati; un tema sconosciuto
        ricade sul tema di default.
        """
        if theme == RANDOM_THEME:
            names = self.theme_names()
            if not names:
                raise RenderError("No themes loaded")
            return (rng or random).choice(names)
        if theme in self._themes:
            return theme
        return self.default_theme

    def theme_glyphs(self, theme: str) -> Dict[str, ThemeGlyph]:
        """Glifi di un tema, con fallback sul tema di default."""
        glyphs = self._themes.get(theme)
        if glyphs is None:
            glyphs = self._themes.get(self.default_theme)
        if glyphs is None:
            raise RenderError(f"Unknown theme '{theme}' and default theme '{self.default_theme}' is not loaded")
        return glyphs

    def get_glyph(self, theme: str, char: str) -> ThemeGlyph:
        """
        Glifo per (tema, carattere).

        Raises:
            RenderError: Se il carattere manca in un tema conosciuto
        """
        glyph = self.theme_glyphs(theme).get(char)
        if glyph is None:
            raise RenderError(f"Glyph '{char}' missing in theme '{theme}'")
        return glyph
