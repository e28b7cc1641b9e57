"""
NoteVault Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (temp database files, settings,
       a fake remote store, an API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Overview:
    ├── db_path:        SQLite file path inside pytest's tmp_path
    ├── make_settings:  Settings factory with test-friendly retry timings
    ├── fake_remote:    In-memory libSQL pipeline endpoint (httpx.MockTransport)
    └── test_client:    HTTPX AsyncClient against the FastAPI app, lifespan included
"""

import asyncio
import json
import os
import sqlite3
import tempfile
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

# Override settings for testing BEFORE any app imports
# Why: The settings singleton is built at import time
os.environ["DB_PATH"] = os.path.join(tempfile.mkdtemp(prefix="notevault_test_"), "data.db")
os.environ["USE_TURSO"] = "false"
os.environ["TURSO_DATABASE_URL"] = ""
os.environ["TURSO_AUTH_TOKEN"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from notevault.config import Settings  # noqa: E402
from notevault.persistence.remote_store import decode_value, encode_value  # noqa: E402

REMOTE_URL = "libsql://notes-test.turso.io"
REMOTE_TOKEN = "test-token-not-real"


# ══════════════════════════════════════════════════════════════════════════
# Fake Remote Store
# ══════════════════════════════════════════════════════════════════════════

class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers whether its client was closed."""

    def __init__(self, handler):
        super().__init__(handler)
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


class FakeRemoteServer:
    """
    Speaks the libSQL HTTP pipeline protocol on top of an in-memory SQLite
    database, so the remote code path runs end-to-end without a network.

    Knobs:
        delay:        seconds to wait before answering every request
        fail_times:   number of upcoming requests that raise `failure`
        failure:      exception factory for failed requests (default: connect error)
        status_code:  force every response to this HTTP status
    """

    def __init__(self):
        self.conn = sqlite3.connect(":memory:")
        self.statements: List[str] = []
        self.auth_headers: List[Optional[str]] = []
        self.delay = 0.0
        self.fail_times = 0
        self.failure = lambda request: httpx.ConnectError("fetch failed", request=request)
        self.status_code: Optional[int] = None

    @property
    def transport(self) -> RecordingTransport:
        return RecordingTransport(self.handler)

    def tables(self) -> List[str]:
        rows = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
        ).fetchall()
        return sorted(row[0] for row in rows)

    def columns(self, table: str) -> List[str]:
        return [row[1] for row in self.conn.execute(f"PRAGMA table_info({table})")]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("Authorization"))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise self.failure(request)
        if self.status_code is not None:
            return httpx.Response(self.status_code, json={"error": "forced"})

        body = json.loads(request.content)
        results = [self._handle(item) for item in body["requests"]]
        return httpx.Response(200, json={"baton": None, "base_url": None, "results": results})

    def _handle(self, item: Dict[str, Any]) -> Dict[str, Any]:
        if item["type"] == "close":
            return {"type": "ok", "response": {"type": "close"}}

        sql = item["stmt"]["sql"]
        args = [decode_value(v) for v in item["stmt"].get("args", [])]
        self.statements.append(sql)
        try:
            cursor = self.conn.execute(sql, args)
            rows = cursor.fetchall()
            self.conn.commit()
        except sqlite3.Error as e:
            return {"type": "error", "error": {"message": f"SQLite error: {e}", "code": "SQLITE_ERROR"}}

        cols = [{"name": d[0], "decltype": None} for d in (cursor.description or [])]
        return {
            "type": "ok",
            "response": {
                "type": "execute",
                "result": {
                    "cols": cols,
                    "rows": [[encode_value(v) for v in row] for row in rows],
                    "affected_row_count": max(cursor.rowcount, 0),
                    "last_insert_rowid": str(cursor.lastrowid) if cursor.lastrowid else None,
                },
            },
        }


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def db_path(tmp_path):
    """A fresh SQLite file path for each test (the file itself is not created)."""
    return str(tmp_path / "store" / "data.db")


@pytest.fixture
def make_settings(db_path):
    """
    Settings factory.

    Defaults: remote enabled against the fake endpoint, zero backoff so
    retry tests don't sleep, short setup deadline.
    """
    def _make(**overrides) -> Settings:
        values = dict(
            db_path=db_path,
            use_turso=True,
            turso_database_url=REMOTE_URL,
            turso_auth_token=REMOTE_TOKEN,
            remote_setup_timeout=5.0,
            schema_retry_attempts=3,
            schema_retry_initial_delay=0,
            query_retry_attempts=3,
            query_retry_initial_delay=0,
            log_level="WARNING",
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def fake_remote():
    server = FakeRemoteServer()
    yield server
    server.conn.close()


@pytest_asyncio.fixture
async def test_client(make_settings):
    """
    HTTPX AsyncClient wired to a fresh app, with the lifespan running so
    the persistence gateway is initialized (remote store disabled).
    """
    from notevault.main import create_app

    test_settings = make_settings(use_turso=False)
    app = create_app()
    with patch("notevault.main.settings", test_settings):
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                client.app = app
                yield client
