# Persistence package init
"""
NoteVault Backend — Persistence Layer
=======================================

What:  Everything between the application and its data stores.

Module Inventory:
    - schema.py:        Schema catalog shared by both bootstrap paths
    - retry.py:         Bounded exponential-backoff executor (tenacity)
    - base.py:          StoreHandle interface (get / all / run / execute)
    - local_store.py:   Primary SQLite store, opened synchronously
    - remote_store.py:  Optional libSQL replica, provisioned in the background
    - gateway.py:       Composes the above at process start
"""

from notevault.persistence.base import StoreHandle
from notevault.persistence.gateway import PersistenceGateway, initialize_gateway

__all__ = ["StoreHandle", "PersistenceGateway", "initialize_gateway"]
