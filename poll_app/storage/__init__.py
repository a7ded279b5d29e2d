"""Table storage backends for the poll server."""

from .table_store import (
    ANSWERS_TABLE,
    QUESTIONS_TABLE,
    STATS_TABLE,
    InMemoryTableStore,
    SqlTableStore,
    TableStore,
)

__all__ = [
    "ANSWERS_TABLE",
    "QUESTIONS_TABLE",
    "STATS_TABLE",
    "InMemoryTableStore",
    "SqlTableStore",
    "TableStore",
]
