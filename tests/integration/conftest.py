"""Integration test fixtures.

Provides a package tree on disk and a registry opened through
``open_registry`` with the real fetcher and the network cache disabled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

from dotpack.config import Settings
from dotpack.state import AppState, open_registry

if TYPE_CHECKING:
    from pathlib import Path

SHOP_SOURCES = {
    "shop/cart.py": (
        "package.define_with_dependencies(\n"
        "    'shop.cart',\n"
        "    ['.prices', 'shop.util.*'],\n"
        "    lambda self, prices, util: {'apple': prices['apple'], 'util': sorted(util)},\n"
        ")\n"
    ),
    "shop/prices.py": "package.define_value('shop.prices', {'apple': 3})\n",
    "shop/util/fmt.py": "package.define_value('shop.util.fmt', 'fmt')\n",
    "shop/util/parse.py": (
        "def define(self):\n"
        "    self.name = 'parse'\n"
        "\n"
        "package.define_value('shop.util.parse', define)\n"
    ),
}


@pytest.fixture()
def package_root(tmp_path: Path) -> Path:
    """A ``shop`` package tree with a relative and a wildcard dependency."""
    for relative, source in SHOP_SOURCES.items():
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
    return tmp_path


@pytest.fixture()
def settings(package_root: Path) -> Settings:
    return Settings(
        registry={"root_dir": str(package_root), "seed_known_packages": False},  # type: ignore[arg-type]
        cache={"enabled": False},  # type: ignore[arg-type]
    )


@pytest.fixture()
async def app_state(settings: Settings) -> AppState:
    async with open_registry(settings) as state:
        yield state


@pytest.fixture()
def cli_env(monkeypatch: pytest.MonkeyPatch):
    """Environment for ``main()``; the structlog setup it installs is undone afterwards."""
    monkeypatch.setenv("DOTPACK__CACHE__ENABLED", "false")
    monkeypatch.setenv("DOTPACK__LOGGING__LEVEL", "ERROR")
    yield
    structlog.reset_defaults()
