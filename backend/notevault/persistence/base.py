"""
NoteVault Backend — Abstract Store Handle Interface
=====================================================

What:  The four-operation query facade every store backend exposes.
Why:   Collaborators (route handlers, services) depend only on this
       interface, never on a concrete driver. The local SQLite store and the
       remote libSQL store are interchangeable behind it.
How:   Concrete implementations inherit from StoreHandle and implement
       get / all / run / execute with positional (`?`) parameters.

Implementations:
    - LocalStore:  embedded SQLite file through SQLAlchemy (primary)
    - RemoteStore: libSQL/Turso over HTTP, every call retried (optional replica)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from notevault.schemas.store import RunResult

Record = Dict[str, Any]


class StoreHandle(ABC):
    """
    Contract:
        - Parameters bind positionally, in order, to `?` placeholders
        - Records are plain dicts keyed by column name
        - Errors are raised, never swallowed; each backend decides what
          (if anything) is retried before raising
    """

    #: Short backend label used in logs and health output
    backend: str = "store"

    @abstractmethod
    async def get(self, sql: str, params: Sequence[Any] = ()) -> Optional[Record]:
        """Return the first row of the result, or None when there is none."""
        ...

    @abstractmethod
    async def all(self, sql: str, params: Sequence[Any] = ()) -> List[Record]:
        """Return every row of the result (empty list when there are none)."""
        ...

    @abstractmethod
    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        """Execute a mutating statement and report rows affected / insert id."""
        ...

    @abstractmethod
    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """
        Execute a statement and return the driver-native result.

        Meant for statements with no normalized row shape (DDL, PRAGMA).
        """
        ...

    async def close(self) -> None:
        """Release backend resources. Called once on application shutdown."""
        return None
