"""
NoteVault Backend — Schema Catalog
====================================

What:  The one ordered list of DDL statements that defines the application's
       relational schema, plus the two routines that apply it.
Why:   The local (sync) and remote (async) bootstrap paths must end with an
       identical schema. Declaring every statement exactly once and feeding
       the same tuple to both paths makes divergence impossible.
How:   Each SchemaStatement has a kind that decides how its failure is treated:

       Kind         Re-run safety                 On failure
       ──────────   ───────────────────────────   ─────────────────────────────
       TABLE        CREATE TABLE IF NOT EXISTS    fatal (SchemaBootstrapError)
       ADD_COLUMN   fails with "duplicate column"  duplicate swallowed, else fatal
       INDEX        CREATE INDEX IF NOT EXISTS    logged, skipped

Order:
    tables → column migrations → indexes. Indexes may cover migrated columns,
    so they run last.

Why no Alembic here:
    Both stores are SQLite dialect and must self-provision at process start
    (the remote one from a background task). A fixed idempotent catalog
    re-applied on every boot does that without a migrations table.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sqlalchemy.engine import Connection

from notevault.exceptions import SchemaBootstrapError

logger = logging.getLogger(__name__)


class StatementKind(str, enum.Enum):
    TABLE = "table"
    ADD_COLUMN = "add_column"
    INDEX = "index"


@dataclass(frozen=True)
class SchemaStatement:
    """An immutable, named DDL operation."""

    name: str
    kind: StatementKind
    sql: str

    @property
    def ignores_duplicate_column(self) -> bool:
        """ADD_COLUMN statements are expected to fail on every boot after the first."""
        return self.kind is StatementKind.ADD_COLUMN

    @property
    def is_best_effort(self) -> bool:
        return self.kind is StatementKind.INDEX


def _table(name: str, sql: str) -> SchemaStatement:
    return SchemaStatement(name=f"table:{name}", kind=StatementKind.TABLE, sql=sql.strip())


def _add_column(table: str, column: str, definition: str) -> SchemaStatement:
    return SchemaStatement(
        name=f"column:{table}.{column}",
        kind=StatementKind.ADD_COLUMN,
        sql=f"ALTER TABLE {table} ADD COLUMN {column} {definition}",
    )


def _index(name: str, table: str, columns: str) -> SchemaStatement:
    return SchemaStatement(
        name=f"index:{name}",
        kind=StatementKind.INDEX,
        sql=f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({columns})",
    )


# ══════════════════════════════════════════════════════════════════════════
# Catalog
# ══════════════════════════════════════════════════════════════════════════

SCHEMA_CATALOG = (
    # ── Tables ────────────────────────────────────────────────────────────
    _table("article_parse_history", """
        CREATE TABLE IF NOT EXISTS article_parse_history (
          id TEXT PRIMARY KEY,
          source_url TEXT NOT NULL,
          parsed_content TEXT,
          parsed_title TEXT,
          parsed_summary TEXT,
          parsed_source TEXT,
          parsed_platform TEXT,
          parsed_author TEXT,
          parsed_published_at TEXT,
          suggested_notebook_id TEXT,
          suggested_notebook_name TEXT,
          assigned_notebook_id TEXT,
          assigned_notebook_name TEXT,
          status TEXT DEFAULT 'processing',
          parse_query TEXT,
          coze_response_data TEXT,
          tags TEXT,
          notes TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP,
          parsed_at TEXT,
          updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """),
    _table("notebooks", """
        CREATE TABLE IF NOT EXISTS notebooks (
          notebook_id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          description TEXT,
          note_count INTEGER DEFAULT 0,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP,
          updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """),
    _table("notes", """
        CREATE TABLE IF NOT EXISTS notes (
          note_id TEXT PRIMARY KEY,
          notebook_id TEXT,
          title TEXT NOT NULL,
          content_text TEXT,
          images TEXT,
          image_urls TEXT,
          source_url TEXT,
          source TEXT,
          original_url TEXT,
          author TEXT,
          upload_time TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP,
          updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
          FOREIGN KEY (notebook_id) REFERENCES notebooks(notebook_id)
        )
    """),
    _table("analysis_results", """
        CREATE TABLE IF NOT EXISTS analysis_results (
          id TEXT PRIMARY KEY,
          notebook_id TEXT NOT NULL,
          notebook_type TEXT,
          mode TEXT DEFAULT 'ai',
          analysis_data TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP,
          updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """),
    _table("ai_analysis_setting", """
        CREATE TABLE IF NOT EXISTS ai_analysis_setting (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          notebook_id TEXT NOT NULL UNIQUE,
          notebook_type TEXT DEFAULT 'custom',
          config_data TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP,
          updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """),

    # ── Column migrations ─────────────────────────────────────────────────
    # Columns added after the first release; stores created before then
    # only get them through these statements.
    _add_column("notebooks", "component_config", "TEXT"),
    _add_column("notes", "component_data", "TEXT"),
    _add_column("notes", "component_instances", "TEXT"),
    _add_column("article_parse_history", "parsed_fields", "TEXT"),
    _add_column("article_parse_history", "note_ids", "TEXT"),

    # ── Indexes ───────────────────────────────────────────────────────────
    _index("idx_notes_notebook_id", "notes", "notebook_id"),
    _index("idx_notes_updated_at", "notes", "updated_at DESC"),
    _index("idx_notebooks_updated_at", "notebooks", "updated_at DESC"),
    _index("idx_parse_history_created_at", "article_parse_history", "created_at DESC"),
    _index("idx_parse_history_status", "article_parse_history", "status"),
    _index("idx_analysis_results_notebook_id", "analysis_results", "notebook_id"),
)


def is_duplicate_column_error(exc: BaseException) -> bool:
    """
    Recognizes the error SQLite (and libSQL) raise for an ADD COLUMN whose
    column already exists: "duplicate column name: <column>".
    """
    return "duplicate column" in str(exc).lower()


# ══════════════════════════════════════════════════════════════════════════
# Appliers
# ══════════════════════════════════════════════════════════════════════════

def apply_schema_sync(connection: Connection, catalog=SCHEMA_CATALOG) -> None:
    """
    Apply the catalog on an open SQLAlchemy connection, synchronously.

    Used by the local store bootstrap. Each statement is committed on its
    own so a skipped index or an absorbed duplicate column never rolls
    back the tables created before it.

    Raises:
        SchemaBootstrapError: a table failed, or a column migration failed
            for a reason other than "duplicate column".
    """
    for statement in catalog:
        try:
            connection.exec_driver_sql(statement.sql)
            connection.commit()
        except Exception as e:
            connection.rollback()
            _handle_failure(statement, e)

    logger.info("Schema catalog applied (%d statements)", len(catalog))


async def apply_schema_async(
    execute: Callable[[SchemaStatement], Awaitable[Any]],
    catalog=SCHEMA_CATALOG,
) -> None:
    """
    Apply the catalog through an async executor, one statement at a time.

    What:    `execute` receives each SchemaStatement and runs it against the
             remote store (the remote connector wraps it in the retry
             executor, so by the time an error reaches us here it is final).
    How:     Same per-kind classification as apply_schema_sync.
    """
    for statement in catalog:
        try:
            await execute(statement)
        except Exception as e:
            _handle_failure(statement, e)

    logger.info("Schema catalog applied (%d statements)", len(catalog))


def _handle_failure(statement: SchemaStatement, error: Exception) -> None:
    """Decide whether a failed statement is absorbed, skipped or fatal."""
    if statement.ignores_duplicate_column and is_duplicate_column_error(error):
        logger.debug("Migration %s already applied", statement.name)
        return

    if statement.is_best_effort:
        logger.warning("Skipping %s: %s", statement.name, error)
        return

    logger.error("Schema statement %s failed: %s", statement.name, error)
    raise SchemaBootstrapError(
        statement=statement.name,
        message=f"Schema statement '{statement.name}' failed: {error}",
        context={"error_type": type(error).__name__},
    ) from error
