"""Root conftest for test suite.

Auto-skips e2e, smoke and slow tests unless explicitly requested, and
provides an asyncpg pool double shared by repository tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


def pytest_collection_modifyitems(config, items):
    """Skip e2e, smoke and slow tests unless selected with -m or by path."""
    markexpr = config.getoption("-m", default="")
    args = [str(arg) for arg in config.args]

    skips = {
        "e2e": pytest.mark.skip(reason="e2e tests require running server. Run with: pytest -m e2e"),
        "smoke": pytest.mark.skip(reason="smoke tests require running server. Run with: pytest -m smoke"),
        "slow": pytest.mark.skip(reason="slow tests skipped by default. Run with: pytest -m slow"),
    }

    for item in items:
        for marker, skip in skips.items():
            requested = marker in markexpr or any(f"tests/{marker}" in arg for arg in args)
            if marker in item.keywords and not requested:
                item.add_marker(skip)


@pytest.fixture
def mock_pool():
    """asyncpg pool double: ``pool.acquire()`` and ``conn.transaction()`` are async context managers."""
    pool = MagicMock()
    conn = AsyncMock()

    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=conn)
    cm.__aexit__ = AsyncMock(return_value=None)
    pool.acquire.return_value = cm

    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = MagicMock(return_value=tx)

    return pool, conn
