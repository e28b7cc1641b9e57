"""
NoteVault Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions raised by the persistence layer.
Why:   Lets callers tell "the primary store is broken" apart from
       "the optional remote store said no", and lets the HTTP layer map
       each to the right status code.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) turn them into
       structured JSON error responses.

Exception Hierarchy:
    NoteVaultError (base)
    ├── StoreError                  → 500 Internal Server Error
    │   ├── SchemaBootstrapError    → fatal at startup (never reaches HTTP)
    │   └── RemoteStoreError        → contained inside the remote connector
    └── StoreUnavailableError       → 503 Service Unavailable

Driver-level errors from the local SQLite store are NOT wrapped: they are
logged and re-raised unchanged, because they indicate programmer errors
(malformed SQL, constraint violations) that the caller must see as-is.
"""

from typing import Any, Dict, Optional


class NoteVaultError(Exception):
    """
    Base exception for all NoteVault application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged but NOT returned to clients)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class StoreError(NoteVaultError):
    """Raised when a store operation fails in a way the caller should know about."""

    def __init__(
        self,
        message: str = "A storage error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SchemaBootstrapError(StoreError):
    """
    Raised when a mandatory schema statement (table creation, or a column
    migration failing for a reason other than "duplicate column") fails.

    On the local store this aborts process startup: there is no degraded
    mode without a working primary schema.
    """

    def __init__(
        self,
        statement: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["statement"] = statement
        super().__init__(
            message=message or f"Schema statement '{statement}' failed",
            context=ctx,
        )
        self.statement = statement


class RemoteStoreError(StoreError):
    """
    Raised when the remote pipeline endpoint rejects a request.

    What:    Either the HTTP exchange failed with a non-2xx status, or the
             remote engine returned an error result for the statement.
    transient:
        True for statuses worth retrying (408, 429, 5xx). The retry
        executor reads this flag; SQL errors are never transient.
    """

    def __init__(
        self,
        message: str = "Remote store request failed",
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        transient: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if code:
            ctx["code"] = code
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.code = code
        self.status_code = status_code
        self.transient = transient


class StoreUnavailableError(NoteVaultError):
    """
    Raised by HTTP-layer helpers when a handler asks for a store that is
    not ready (gateway not initialized yet, or remote store unavailable).

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        store: str = "store",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["store"] = store
        super().__init__(message=f"The {store} store is not available", context=ctx)
        self.store = store
