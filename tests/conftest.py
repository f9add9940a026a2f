"""Pytest configuration and fixtures."""

from __future__ import annotations

import gc
import warnings
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


def _force_cleanup():
    """Force cleanup of pending async resources."""
    # aiosqlite connections collected outside their loop warn on GC
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ResourceWarning)
        gc.collect()


def _reset_singletons():
    import sectorview.services.data_providers.yfinance_fetcher as yf_fetcher
    import sectorview.services.refresh as refresh
    import sectorview.services.sector_cache as sector_cache

    yf_fetcher._instance = None
    refresh._instance = None
    sector_cache._instance = None


@pytest.fixture(scope="function", autouse=True)
def cleanup_after_test():
    """Reset module singletons around every test."""
    _reset_singletons()
    yield
    _reset_singletons()
    _force_cleanup()


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[str, None]:
    """Fresh seeded SQLite database for one test."""
    from sectorview.database.connection import close_database, init_database

    url = f"sqlite:///{tmp_path / 'sectorview-test.db'}"
    await close_database()
    await init_database(url)
    yield url
    await close_database()


@pytest_asyncio.fixture
async def async_client(db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the FastAPI app."""
    from sectorview.api.app import create_api_app

    app = create_api_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
