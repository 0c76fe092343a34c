"""
Configurazione pytest e fixture comuni.
"""
import pytest

from core.store import SQLiteCounterStore
from render.catalog import ThemeCatalog
from tests.mocks import DIGITS, make_theme


@pytest.fixture
def theme_dir(tmp_path):
    """
    Temi di test:
    - moebooru: cifre 20x40
    - deco: cifre 20x40 + _start 10x60 + _end 10x20
    - gappy: cifre senza il 7
    """
    root = tmp_path / "theme"
    make_theme(root, "moebooru", DIGITS)
    make_theme(
        root,
        "deco",
        list(DIGITS) + ["_start", "_end"],
        sizes={"_start": (10, 60), "_end": (10, 20)},
    )
    make_theme(root, "gappy", DIGITS.replace("7", ""))
    return root


@pytest.fixture
def catalog(theme_dir):
    return ThemeCatalog(str(theme_dir), default_theme="moebooru").load()


@pytest.fixture
def sqlite_path(tmp_path):
    return str(tmp_path / "count.db")


@pytest.fixture
def sqlite_store(sqlite_path):
    return SQLiteCounterStore(sqlite_path)
