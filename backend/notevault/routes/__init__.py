# Routes package init
"""
NoteVault Backend — API Routes Package
========================================

Route Inventory:
    - health.py:  GET /health   (primary store probe + remote store state)

Notebook/note CRUD handlers mount here too; they take their store through
the dependencies in notevault.database and never open connections themselves.
"""
