"""
Test catalogo temi: scansione, preset di scala, snapshot, risoluzione tema.
"""
import base64
import random
import shutil

import pytest
from PIL import Image

from render.catalog import RenderError, ThemeCatalog, decode_image, is_glyph_name
from tests.mocks import DIGITS, make_theme


class TestScan:
    """Scansione di THEME_DIR."""

    def test_themes_and_glyphs_loaded(self, catalog):
        assert catalog.theme_names() == ["deco", "gappy", "moebooru"]
        themes = catalog.list_themes()
        assert themes["moebooru"] == sorted(DIGITS)
        assert "_start" in themes["deco"] and "_end" in themes["deco"]
        assert "7" not in themes["gappy"]

    def test_non_glyph_files_skipped(self, theme_dir):
        Image.new("RGB", (5, 5)).save(theme_dir / "moebooru" / "preview.png")
        (theme_dir / "moebooru" / "README.txt").write_text("not an image")
        (theme_dir / "stray.png").write_bytes(b"")

        catalog = ThemeCatalog(str(theme_dir)).load()

        assert catalog.list_themes()["moebooru"] == sorted(DIGITS)
        assert not catalog.has_theme("stray.png")

    def test_missing_theme_dir_loads_nothing(self, tmp_path):
        catalog = ThemeCatalog(str(tmp_path / "nope")).load()
        assert catalog.theme_names() == []

    def test_glyph_dimensions_and_presets(self, catalog):
        glyph = catalog.get_glyph("deco", "_start")

        assert (glyph.width, glyph.height) == (10, 60)
        assert glyph.preset_scales[0.5] == (5.0, 30.0)
        assert glyph.preset_scales[1.0] == (10.0, 60.0)
        assert glyph.preset_scales[2.0] == (20.0, 120.0)

    def test_scaled_size_outside_presets(self, catalog):
        glyph = catalog.get_glyph("moebooru", "0")
        assert glyph.scaled_size(1.5) == (30.0, 60.0)

    def test_data_uri_embeds_file_bytes(self, catalog, theme_dir):
        glyph = catalog.get_glyph("moebooru", "3")
        prefix = "data:image/png;base64,"

        assert glyph.data.startswith(prefix)
        raw = base64.b64decode(glyph.data[len(prefix):])
        assert raw == (theme_dir / "moebooru" / "3.png").read_bytes()

    def test_decode_image_gif_mime(self, tmp_path):
        path = tmp_path / "1.gif"
        Image.new("RGB", (8, 16)).save(path)

        width, height, data = decode_image(path)

        assert (width, height) == (8, 16)
        assert data.startswith("data:image/gif;base64,")

    @pytest.mark.parametrize("stem,expected", [
        ("0", True), ("a", True), ("_start", True), ("_end", True),
        ("10", False), ("preview", False), ("", False),
    ])
    def test_is_glyph_name(self, stem, expected):
        assert is_glyph_name(stem) is expected


class TestSnapshot:
    """Snapshot JSON del catalogo."""

    def test_snapshot_written_and_reused(self, theme_dir, tmp_path):
        cache_file = tmp_path / "cache" / "themes.json"
        first = ThemeCatalog(str(theme_dir), cache_file=str(cache_file)).load()
        assert cache_file.is_file()

        # Senza immagini il catalogo viene comunque ricostruito dallo snapshot
        shutil.rmtree(theme_dir)
        second = ThemeCatalog(str(theme_dir), cache_file=str(cache_file)).load()

        assert second.list_themes() == first.list_themes()
        scanned = first.get_glyph("deco", "_end")
        restored = second.get_glyph("deco", "_end")
        assert restored == scanned

    def test_no_snapshot_without_cache_file(self, theme_dir, tmp_path):
        ThemeCatalog(str(theme_dir)).load()
        assert not list(tmp_path.glob("*.json"))


class TestResolveTheme:
    """Risoluzione del tema richiesto."""

    def test_known_theme(self, catalog):
        assert catalog.resolve_theme("deco") == "deco"

    def test_unknown_theme_falls_back_to_default(self, catalog):
        assert catalog.resolve_theme("does-not-exist") == "moebooru"
        assert catalog.theme_glyphs("does-not-exist") is catalog.theme_glyphs("moebooru")

    def test_random_picks_loaded_theme(self, catalog):
        rng = random.Random(1234)
        picks = {catalog.resolve_theme("random", rng) for _ in range(50)}

        assert picks <= set(catalog.theme_names())
        assert len(picks) > 1

    def test_random_without_themes(self, tmp_path):
        catalog = ThemeCatalog(str(tmp_path)).load()
        with pytest.raises(RenderError):
            catalog.resolve_theme("random")

    def test_missing_glyph_raises(self, catalog):
        with pytest.raises(RenderError):
            catalog.get_glyph("gappy", "7")

    def test_missing_default_theme_raises(self, tmp_path):
        make_theme(tmp_path, "other", DIGITS)
        catalog = ThemeCatalog(str(tmp_path), default_theme="moebooru").load()

        with pytest.raises(RenderError):
            catalog.theme_glyphs("unknown")
