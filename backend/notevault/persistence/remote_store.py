"""
NoteVault Backend — Remote Store Connector (Turso / libSQL over HTTP)
=======================================================================

What:  Optionally connects to a managed libSQL database, provisions the
       schema catalog on it, and exposes it through the StoreHandle facade.
Why:   The remote store is a replica the app may use once it is ready. It
       must never delay startup and its absence must never be an error.
How:   PipelineClient speaks libSQL's HTTP pipeline protocol with httpx.
       connect_remote() applies the catalog through the retry executor,
       raced against an overall deadline, and resolves to a RemoteStore or
       to None. It never raises.

Wire format (POST {url}/v2/pipeline, Bearer token):
    request:  {"requests": [{"type": "execute",
                             "stmt": {"sql": "...", "args": [<value>, ...]}},
                            {"type": "close"}]}
    response: {"results": [{"type": "ok", "response": {"type": "execute",
                             "result": {"cols": [{"name": ...}], "rows": [[<value>]],
                                        "affected_row_count": 1,
                                        "last_insert_rowid": "7"}}},
                            {"type": "ok", "response": {"type": "close"}}]}
    values:   {"type": "null"} | {"type": "integer", "value": "42"}
              | {"type": "float", "value": 1.5} | {"type": "text", "value": "x"}
              | {"type": "blob", "base64": "..."}
    errors:   {"type": "error", "error": {"message": "...", "code": "..."}}

Retry layers:
    schema setup:  schema_retry_attempts × schema_retry_initial_delay, whole
                   setup capped by remote_setup_timeout
    queries:       query_retry_attempts × query_retry_initial_delay per call
"""

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from notevault.config import Settings
from notevault.exceptions import RemoteStoreError
from notevault.persistence.base import Record, StoreHandle
from notevault.persistence.retry import execute_with_retry
from notevault.persistence.schema import (
    SCHEMA_CATALOG,
    SchemaStatement,
    apply_schema_async,
    is_duplicate_column_error,
)
from notevault.schemas.store import RunResult

logger = logging.getLogger(__name__)

PIPELINE_PATH = "/v2/pipeline"
TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


# ══════════════════════════════════════════════════════════════════════════
# Value Encoding
# ══════════════════════════════════════════════════════════════════════════

def encode_value(value: Any) -> Dict[str, Any]:
    """Python value → typed pipeline argument."""
    if value is None:
        return {"type": "null"}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"type": "integer", "value": "1" if value else "0"}
    if isinstance(value, int):
        # Integers travel as strings to survive 64-bit values in JSON
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"type": "blob", "base64": base64.b64encode(bytes(value)).decode("ascii")}
    return {"type": "text", "value": str(value)}


def decode_value(value: Dict[str, Any]) -> Any:
    kind = value.get("type")
    if kind == "null":
        return None
    if kind == "integer":
        return int(value["value"])
    if kind == "float":
        return float(value["value"])
    if kind == "blob":
        return base64.b64decode(value["base64"])
    return value.get("value")


@dataclass
class StatementResult:
    """Decoded result of one executed statement: the remote's native shape."""

    columns: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    affected_row_count: int = 0
    last_insert_rowid: Optional[int] = None

    def records(self) -> List[Record]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StatementResult":
        rowid = payload.get("last_insert_rowid")
        return cls(
            columns=[col.get("name") or f"column{i}" for i, col in enumerate(payload.get("cols", []))],
            rows=[[decode_value(v) for v in row] for row in payload.get("rows", [])],
            affected_row_count=int(payload.get("affected_row_count") or 0),
            last_insert_rowid=int(rowid) if rowid is not None else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# HTTP Pipeline Client
# ══════════════════════════════════════════════════════════════════════════

def to_http_url(url: str) -> str:
    """libsql://db.turso.io → https://db.turso.io (the HTTP endpoint)."""
    url = url.strip().rstrip("/")
    if url.startswith("libsql://"):
        return "https://" + url[len("libsql://"):]
    if url.startswith("wss://"):
        return "https://" + url[len("wss://"):]
    if url.startswith("ws://"):
        return "http://" + url[len("ws://"):]
    return url


class PipelineClient:
    """
    Minimal async client for the libSQL HTTP pipeline endpoint.

    Construction is cheap and performs no I/O, so it proves nothing about
    reachability; the first execute() does. Each call is a self-contained
    pipeline (execute + close), so no server-side stream state is kept
    between calls.
    """

    def __init__(
        self,
        url: str,
        auth_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = to_http_url(url)
        self._client = httpx.AsyncClient(
            base_url=self.url,
            headers={"Authorization": f"Bearer {auth_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        body = {
            "requests": [
                {
                    "type": "execute",
                    "stmt": {"sql": sql, "args": [encode_value(p) for p in params or ()]},
                },
                {"type": "close"},
            ]
        }
        response = await self._client.post(PIPELINE_PATH, json=body)

        if response.status_code >= 400:
            raise RemoteStoreError(
                message=f"Remote store returned HTTP {response.status_code}",
                status_code=response.status_code,
                transient=response.status_code in TRANSIENT_STATUS_CODES,
            )

        results = response.json().get("results") or []
        if not results:
            raise RemoteStoreError(message="Remote store returned an empty pipeline response")

        first = results[0]
        if first.get("type") == "error":
            error = first.get("error") or {}
            raise RemoteStoreError(
                message=error.get("message", "Remote statement failed"),
                code=error.get("code") or "UNKNOWN",
            )

        payload = (first.get("response") or {}).get("result") or {}
        return StatementResult.from_payload(payload)

    async def close(self) -> None:
        await self._client.aclose()


# ══════════════════════════════════════════════════════════════════════════
# Remote Store Handle
# ══════════════════════════════════════════════════════════════════════════

class RemoteStore(StoreHandle):
    """
    StoreHandle over the remote pipeline client.

    Every operation goes through the retry executor on its own: transient
    failures recur during normal operation, not just at startup. Each call
    gets its own retry state, so concurrent callers never interfere.
    """

    backend = "libsql"

    def __init__(self, client: PipelineClient, max_attempts: int = 3, initial_delay: float = 0.25):
        self.client = client
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay

    async def _execute(self, sql: str, params: Sequence[Any]) -> StatementResult:
        return await execute_with_retry(
            lambda: self.client.execute(sql, params),
            self.max_attempts,
            self.initial_delay,
        )

    async def get(self, sql: str, params: Sequence[Any] = ()) -> Optional[Record]:
        records = (await self._execute(sql, params)).records()
        return records[0] if records else None

    async def all(self, sql: str, params: Sequence[Any] = ()) -> List[Record]:
        return (await self._execute(sql, params)).records()

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        result = await self._execute(sql, params)
        return RunResult(
            rows_affected=result.affected_row_count,
            insert_id=result.last_insert_rowid,
        )

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        return await self._execute(sql, params)

    async def close(self) -> None:
        await self.client.close()
        logger.info("Remote store client closed")


# ══════════════════════════════════════════════════════════════════════════
# Connector
# ══════════════════════════════════════════════════════════════════════════

async def provision_schema(client: PipelineClient, settings: Settings, catalog=SCHEMA_CATALOG) -> None:
    """Apply the schema catalog remotely, each statement through the retry executor."""

    async def run_statement(statement: SchemaStatement) -> None:
        await execute_with_retry(
            lambda: client.execute(statement.sql),
            settings.schema_retry_attempts,
            settings.schema_retry_initial_delay,
            ignorable=is_duplicate_column_error if statement.ignores_duplicate_column else None,
        )

    await apply_schema_async(run_statement, catalog)


async def connect_remote(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[RemoteStore]:
    """
    Connect to the remote store and provision its schema.

    Returns:
        A ready RemoteStore, or None when the remote store is not configured
        or could not be brought up (connection failure, schema failure,
        deadline exceeded). Never raises.
    """
    if not settings.remote_configured:
        return None

    logger.info("Connecting to remote store: %s", to_http_url(settings.turso_database_url))

    client: Optional[PipelineClient] = None
    store: Optional[RemoteStore] = None
    try:
        client = PipelineClient(
            settings.turso_database_url,
            settings.turso_auth_token,
            timeout=settings.remote_request_timeout,
            transport=transport,
        )
        await asyncio.wait_for(
            provision_schema(client, settings),
            timeout=settings.remote_setup_timeout,
        )
        store = RemoteStore(
            client,
            max_attempts=settings.query_retry_attempts,
            initial_delay=settings.query_retry_initial_delay,
        )
    except asyncio.TimeoutError:
        logger.error(
            "Remote store schema setup exceeded %.1fs deadline; continuing without remote store",
            settings.remote_setup_timeout,
        )
    except Exception as e:
        logger.error(
            "Remote store initialization failed; continuing without remote store: %s",
            e,
            exc_info=True,
        )
    finally:
        # Also reached on cancellation (shutdown while still connecting)
        if store is None and client is not None:
            await _close_quietly(client)

    if store is not None:
        logger.info("Remote store ready")
    return store


async def _close_quietly(client: PipelineClient) -> None:
    try:
        await client.close()
    except Exception as e:
        logger.warning("Failed to close remote client: %s", e)
