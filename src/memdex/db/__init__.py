"""memdex database layer."""

from memdex.db.connection import Database
from memdex.db.migrations import MIGRATIONS, run_migrations
from memdex.db.repository import Repository
from memdex.db.schema import check_health, has_schema, initialize
from memdex.db.vectors import VEC_TABLE, drop_vec_table, ensure_vec_table, vec_table_exists

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "check_health",
    "has_schema",
    "run_migrations",
    "MIGRATIONS",
    "VEC_TABLE",
    "ensure_vec_table",
    "drop_vec_table",
    "vec_table_exists",
]
