"""
NoteVault Backend — Persistence Gateway
=========================================

What:  Brings up the application's data stores at process start.
Why:   Request handlers need a ready primary store before the first request,
       and must never wait on (or fail because of) the optional remote store.
How:   Two phases, in order:
       1. open_local() runs to completion on the caller's thread
       2. connect_remote() is scheduled as a background asyncio.Task and NOT
          awaited; its single outcome is exposed as a memoised future

Lifecycle (no backward transitions, no reconnect loop):

    ┌────────────────────────────┐   task settles   ┌──────────────────────────────┐
    │ local ready, remote pending │ ───────────────▶ │ local ready, remote settled  │
    └────────────────────────────┘                   │ (RemoteStore or None)        │
                                                     └──────────────────────────────┘

Query surface:
    The gateway has no get/run methods of its own. Collaborators use
    `gateway.primary`, and reach the remote store only through
    `await gateway.await_remote()`.
"""

import asyncio
import logging
from typing import Optional

import httpx

from notevault.config import Settings
from notevault.persistence.base import StoreHandle
from notevault.persistence.local_store import LocalStore, open_local
from notevault.persistence.remote_store import connect_remote

logger = logging.getLogger(__name__)


class PersistenceGateway:
    """
    Owns both store handles; collaborators only borrow references.

    Attributes:
        primary:  The local store, ready on construction.
        remote:   Future resolving once to the remote StoreHandle or None.
    """

    def __init__(self, primary: LocalStore, remote: "asyncio.Future[Optional[StoreHandle]]", remote_enabled: bool):
        self.primary = primary
        self.remote = remote
        self.remote_enabled = remote_enabled

    def await_remote(self) -> "asyncio.Future[Optional[StoreHandle]]":
        """
        Return the remote outcome future. Awaiting it any number of times,
        from any number of callers, yields the same value; the connection
        attempt is never restarted.
        """
        return self.remote

    @property
    def remote_state(self) -> str:
        """disabled | pending | ready | unavailable"""
        if not self.remote_enabled:
            return "disabled"
        if not self.remote.done():
            return "pending"
        if self.remote.cancelled() or self.remote.exception() is not None:
            return "unavailable"
        return "ready" if self.remote.result() is not None else "unavailable"

    async def close(self) -> None:
        """Release both stores. A still-pending remote attempt is cancelled."""
        if not self.remote.done():
            self.remote.cancel()
            try:
                await self.remote
            except asyncio.CancelledError:
                pass
        elif self.remote_state == "ready":
            await self.remote.result().close()

        await self.primary.close()


def _resolved(value=None) -> "asyncio.Future":
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def initialize_gateway(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PersistenceGateway:
    """
    Initialize the persistence layer.

    Must be called from inside a running event loop (the FastAPI lifespan),
    since the remote attempt is scheduled on it.

    Args:
        settings:   Application settings (local path, remote switch and credentials).
        transport:  Optional httpx transport for the remote client.

    Returns:
        A PersistenceGateway whose primary store is fully initialized.

    Raises:
        Anything open_local() raises. A broken primary store aborts startup.
    """
    primary = open_local(settings.db_path)
    logger.info("Primary store ready: %s", primary.path)

    if settings.remote_configured:
        remote = asyncio.ensure_future(connect_remote(settings, transport=transport))
        logger.info("Remote store connection started in background")
        return PersistenceGateway(primary, remote, remote_enabled=True)

    if settings.has_remote_credentials:
        logger.info("Remote store credentials found but USE_TURSO is off; using local store only")
    return PersistenceGateway(primary, _resolved(None), remote_enabled=False)
