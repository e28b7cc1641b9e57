"""
NoteVault Backend — Local Store Bootstrapper
==============================================

What:  Opens (creating if absent) the SQLite file that backs the primary
       store, applies the schema catalog, and wraps the engine in the
       StoreHandle facade.
Why:   The primary store must be usable the moment startup returns, with no
       network dependency. open_local() is synchronous and runs to
       completion before the gateway hands anything back.
How:   SQLAlchemy engine over pysqlite; statements go through
       Connection.exec_driver_sql so the `?` placeholders and positional
       parameters reach the driver unchanged. Per-query driver calls run in
       Starlette's threadpool (run_in_threadpool), off the event loop.

Failure policy:
    The local store is the source of truth and fails loudly. Errors opening
    the file or creating a table propagate out of open_local() and abort
    startup. Query errors are logged and re-raised unchanged; nothing here
    is retried.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.pool import StaticPool
from starlette.concurrency import run_in_threadpool

from notevault.config import DEFAULT_DB_PATH
from notevault.persistence.base import Record, StoreHandle
from notevault.persistence.schema import SCHEMA_CATALOG, apply_schema_sync
from notevault.schemas.store import RunResult

logger = logging.getLogger(__name__)


def _params(params: Optional[Sequence[Any]]) -> tuple:
    return tuple(params) if params else ()


class LocalStore(StoreHandle):
    """
    StoreHandle over a local SQLite file.

    Concurrency:
        No gateway-level locking. Driver calls run in Starlette's threadpool,
        so a statement waiting on SQLite's file lock never stalls the event
        loop. Reads use a plain connection; writes run in engine.begin() so
        they commit on success and roll back on error.
    """

    backend = "sqlite"

    def __init__(self, engine: Engine, path: str):
        self.engine = engine
        self.path = path

    # ── Blocking driver calls (run off the event loop) ───────────────────

    def _fetch_one(self, sql: str, params: tuple) -> Optional[Record]:
        with self.engine.connect() as conn:
            row = conn.exec_driver_sql(sql, params).mappings().first()
            return dict(row) if row is not None else None

    def _fetch_all(self, sql: str, params: tuple) -> List[Record]:
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.exec_driver_sql(sql, params).mappings().all()]

    def _write(self, sql: str, params: tuple) -> RunResult:
        with self.engine.begin() as conn:
            result = conn.exec_driver_sql(sql, params)
            # lastrowid is 0 (or stale) for statements that insert nothing
            insert_id = result.lastrowid if result.lastrowid else None
            return RunResult(rows_affected=max(result.rowcount, 0), insert_id=insert_id)

    def _execute(self, sql: str, params: tuple) -> CursorResult:
        with self.engine.begin() as conn:
            return conn.exec_driver_sql(sql, params)

    # ── StoreHandle ───────────────────────────────────────────────────────

    async def get(self, sql: str, params: Sequence[Any] = ()) -> Optional[Record]:
        try:
            return await run_in_threadpool(self._fetch_one, sql, _params(params))
        except Exception as e:
            logger.error("Local query failed: %s | SQL: %s", e, sql)
            raise

    async def all(self, sql: str, params: Sequence[Any] = ()) -> List[Record]:
        try:
            return await run_in_threadpool(self._fetch_all, sql, _params(params))
        except Exception as e:
            logger.error("Local query failed: %s | SQL: %s", e, sql)
            raise

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        try:
            return await run_in_threadpool(self._write, sql, _params(params))
        except Exception as e:
            logger.error("Local statement failed: %s | SQL: %s", e, sql)
            raise

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> CursorResult:
        """
        Run a raw statement and hand back SQLAlchemy's CursorResult.

        The connection is closed on return, so rows are not fetchable from
        the result; use get()/all() for queries.
        """
        try:
            return await run_in_threadpool(self._execute, sql, _params(params))
        except Exception as e:
            logger.error("Local statement failed: %s | SQL: %s", e, sql)
            raise

    async def close(self) -> None:
        await run_in_threadpool(self.engine.dispose)
        logger.info("Local store closed: %s", self.path)


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def open_local(path: Optional[str] = None, catalog=SCHEMA_CATALOG) -> LocalStore:
    """
    Open the local SQLite store and bring its schema up to date.

    Args:
        path: Database file path; defaults to data.db at the backend root.
        catalog: Schema statements to apply (the application catalog by default).

    Returns:
        A LocalStore with its schema fully applied. No asynchronous setup is
        pending when this returns.

    Raises:
        SchemaBootstrapError: a mandatory table could not be created.
        sqlalchemy.exc.OperationalError / OSError: the file could not be opened.
    """
    db_path = path or DEFAULT_DB_PATH
    logger.info("Opening local SQLite store: %s", db_path)

    if db_path == ":memory:":
        # One shared connection, or every threadpool worker gets its own empty database
        engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(f"sqlite:///{db_path}")
    event.listen(engine, "connect", _enable_foreign_keys)

    try:
        with engine.connect() as conn:
            apply_schema_sync(conn, catalog)
    except Exception:
        engine.dispose()
        raise

    return LocalStore(engine, db_path)
