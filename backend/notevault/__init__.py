"""
NoteVault Backend — Application Package Initializer
=====================================================

What: Backend of the NoteVault personal notebook application.
Why:  Enables module imports like `from notevault.config import settings`.

Architecture Note:
    ┌─────────────────────────────────────┐
    │        Routes (API Layer)           │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Persistence Gateway               │  ← brings stores up at startup
    ├──────────────────┬──────────────────┤
    │  Local SQLite    │  Remote libSQL   │  ← same StoreHandle facade
    │  (primary)       │  (optional)      │
    └──────────────────┴──────────────────┘
"""

__version__ = "1.0.0"
