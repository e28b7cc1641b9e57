"""
NoteVault Backend — Store Dependencies
========================================

What:  FastAPI dependencies that hand route handlers the stores owned by the
       persistence gateway.
Why:   Handlers borrow store references per request; the gateway keeps
       ownership and lifetime of the underlying connections.
How:   The lifespan handler puts the gateway on `app.state.gateway`; these
       helpers read it back from the incoming request.

Example usage in a route:
    @router.get("/api/notebooks")
    async def list_notebooks(store: StoreHandle = Depends(get_primary_store)):
        return await store.all("SELECT * FROM notebooks ORDER BY updated_at DESC")
"""

from typing import Optional

from starlette.requests import Request

from notevault.exceptions import StoreUnavailableError
from notevault.persistence.base import StoreHandle
from notevault.persistence.gateway import PersistenceGateway


def get_gateway(request: Request) -> PersistenceGateway:
    """
    Raises:
        StoreUnavailableError: the app has not finished starting up.
    """
    gateway: Optional[PersistenceGateway] = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise StoreUnavailableError(store="primary")
    return gateway


def get_primary_store(request: Request) -> StoreHandle:
    """The sanctioned query surface for request handlers."""
    return get_gateway(request).primary


async def get_remote_store(request: Request) -> StoreHandle:
    """
    Wait for the remote store and return it.

    Handlers that opt into the remote store get a 503 when it is
    unavailable; the gateway itself never turns that into an error.
    """
    remote = await get_gateway(request).await_remote()
    if remote is None:
        raise StoreUnavailableError(store="remote")
    return remote
