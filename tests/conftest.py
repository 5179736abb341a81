"""
tests/conftest.py -- Shared test fixtures for NTC bus API integration tests.

This module provides:
  - make_gateway(): AuthGateway with cheap bcrypt rounds for fast tests
  - _make_test_stores(): creates isolated in-memory DBs for users + fleet
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus one token per role for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and LOGIN_RATE_LIMIT must be set before api.main is imported:
get_settings() runs at import time and is cached.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set before any api/core import so get_settings() can auto-generate
# SECRET_KEY in dev mode and login tests are not throttled.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gateway import AuthGateway
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from fleet.store import FleetStore

TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789"
PASSWORD = "pw-Secret1"

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_gateway(store: UserStore, secret: str = TEST_SECRET, **kwargs) -> AuthGateway:
    """AuthGateway with 4 bcrypt rounds -- the minimum bcrypt accepts."""
    return AuthGateway(store, PasswordHasher(rounds=4), TokenIssuer(secret, ttl_seconds=3600), **kwargs)


def _make_test_stores(db_suffix: str) -> tuple[UserStore, FleetStore]:
    """Create stores over one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_ntcbus_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), FleetStore(db_url=url)


def _patch_lifespan(user_store: UserStore, fleet: FleetStore, gateway: AuthGateway):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task, as it does in production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.fleet = fleet
        app.state.auth = gateway
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, dict[str, str], AuthGateway], None, None]:
    """Yield (client, tokens, gateway) for API integration tests.

    tokens maps each role ("admin", "operator", "commuter") to a registered
    session token for a seeded user of that role. Each test module gets its
    own database, named after the module.
    """
    user_store, fleet = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    gateway = make_gateway(user_store)

    tokens = {
        role: gateway.register(f"{role}@ntc.test", PASSWORD, role).token for role in ("admin", "operator", "commuter")
    }

    app.router.lifespan_context = _patch_lifespan(user_store, fleet, gateway)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, tokens, gateway

    user_store.close()
    fleet.close()
