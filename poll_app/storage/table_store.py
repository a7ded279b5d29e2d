"""Generic table store used for questions, answers and user statistics.

The poll services only need equality filters, ordering, a limit and a few
comparison operators, so the store exposes exactly that: ``select``, ``insert``,
``update`` and ``delete`` over named tables of plain ``dict`` rows.
"""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime
from threading import Lock
from typing import Any, Iterable, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    JSON,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from poll_app.core.errors import StoreConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

Row = dict[str, Any]

QUESTIONS_TABLE = "poll_questions"
ANSWERS_TABLE = "poll_answers"
STATS_TABLE = "user_stats"

# Filter suffixes understood by both stores, e.g. ``published_at__lt``.
_OPERATORS = {
    "eq": lambda left, right: left == right,
    "lt": lambda left, right: left is not None and left < right,
    "lte": lambda left, right: left is not None and left <= right,
    "gt": lambda left, right: left is not None and left > right,
    "gte": lambda left, right: left is not None and left >= right,
    "in": lambda left, right: left in right,
}


def _split_filter(key: str) -> tuple[str, str]:
    column, _, op = key.partition("__")
    op = op or "eq"
    if op not in _OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op}")
    return column, op


class TableStore(Protocol):
    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    def insert(self, table: str, row: Row) -> Row: ...

    def update(self, table: str, filters: dict[str, Any], values: Row) -> int: ...

    def delete(self, table: str, filters: dict[str, Any]) -> int: ...


class InMemoryTableStore:
    """Process-local store. Each call is atomic; sequences of calls are not."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._tables: dict[str, list[Row]] = {}
        self._counters: dict[str, int] = {}
        self.available = True

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        self._check_available()
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._tables.get(table, []) if _matches(row, filters)]
        if order_by is not None:
            rows.sort(key=lambda row: row.get(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, table: str, row: Row) -> Row:
        self._check_available()
        with self._lock:
            stored = copy.deepcopy(row)
            if "id" in stored and stored["id"] is None:
                self._counters[table] = self._counters.get(table, 0) + 1
                stored["id"] = self._counters[table]
            self._tables.setdefault(table, []).append(stored)
            return copy.deepcopy(stored)

    def update(self, table: str, filters: dict[str, Any], values: Row) -> int:
        self._check_available()
        changed = 0
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, filters):
                    row.update(copy.deepcopy(values))
                    changed += 1
        return changed

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        self._check_available()
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [row for row in rows if not _matches(row, filters)]
            self._tables[table] = kept
            return len(rows) - len(kept)

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store marked unavailable.")


def _matches(row: Row, filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        column, op = _split_filter(key)
        if not _OPERATORS[op](row.get(column), expected):
            return False
    return True


metadata = MetaData()

poll_questions = Table(
    QUESTIONS_TABLE,
    metadata,
    Column("id", String, primary_key=True),
    Column("published_at", Date, nullable=False, unique=True, index=True),
    Column("question_text", Text, nullable=False),
    Column("options", JSON, nullable=False),
    Column("image_url", String),
    Column("results_unlock_date", Date),
)

poll_answers = Table(
    ANSWERS_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question_id", String, nullable=False, index=True),
    Column("user_id", String, nullable=False, index=True),
    Column("answer", String, nullable=False),
    Column("prediction", String, nullable=False),
    Column("correct", Boolean, nullable=True),
    Column("created_at", DateTime),
)

user_stats = Table(
    STATS_TABLE,
    metadata,
    Column("user_id", String, primary_key=True),
    Column("points", Integer, nullable=False, default=0),
    Column("wins", Integer, nullable=False, default=0),
    Column("losses", Integer, nullable=False, default=0),
    Column("accuracy", Float, nullable=False, default=0.0),
    Column("current_win_streak", Integer, nullable=False, default=0),
    Column("best_win_streak", Integer, nullable=False, default=0),
    Column("daily_streak", Integer, nullable=False, default=0),
    Column("best_daily_streak", Integer, nullable=False, default=0),
    Column("last_answered_date", Date),
)


class SqlTableStore:
    """SQLAlchemy Core implementation of :class:`TableStore`.

    Unique-key violations surface as :class:`StoreConflictError`. Every other driver
    or connection error becomes :class:`StoreUnavailableError`, which the services
    treat as transient.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str, timeout_seconds: float | None = None) -> "SqlTableStore":
        connect_args: dict[str, Any] = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if timeout_seconds is not None:
                connect_args["timeout"] = timeout_seconds
        elif timeout_seconds is not None:
            connect_args["connect_timeout"] = int(timeout_seconds)
        engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        return cls(engine)

    def create_schema(self) -> None:
        try:
            metadata.create_all(bind=self._engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        sa_table = self._table(table)
        statement = sa_table.select()
        for clause in self._where(sa_table, filters):
            statement = statement.where(clause)
        if order_by is not None:
            column = sa_table.c[order_by]
            statement = statement.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            statement = statement.limit(limit)
        try:
            with self._engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(statement)]
        except SQLAlchemyError as exc:
            logger.warning("Select on %s failed: %s", table, exc)
            raise StoreUnavailableError(str(exc)) from exc

    def insert(self, table: str, row: Row) -> Row:
        sa_table = self._table(table)
        values = {key: value for key, value in row.items() if value is not None or key != "id"}
        try:
            with self._engine.begin() as conn:
                result = conn.execute(sa_table.insert().values(**values))
                inserted = dict(values)
                primary_key = result.inserted_primary_key
                if primary_key:
                    for column, value in zip(sa_table.primary_key.columns, primary_key):
                        inserted[column.name] = value
                return inserted
        except IntegrityError as exc:
            raise StoreConflictError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.warning("Insert into %s failed: %s", table, exc)
            raise StoreUnavailableError(str(exc)) from exc

    def update(self, table: str, filters: dict[str, Any], values: Row) -> int:
        sa_table = self._table(table)
        statement = sa_table.update().values(**values)
        for clause in self._where(sa_table, filters):
            statement = statement.where(clause)
        try:
            with self._engine.begin() as conn:
                return conn.execute(statement).rowcount
        except IntegrityError as exc:
            raise StoreConflictError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.warning("Update on %s failed: %s", table, exc)
            raise StoreUnavailableError(str(exc)) from exc

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        sa_table = self._table(table)
        statement = sa_table.delete()
        for clause in self._where(sa_table, filters):
            statement = statement.where(clause)
        try:
            with self._engine.begin() as conn:
                return conn.execute(statement).rowcount
        except SQLAlchemyError as exc:
            logger.warning("Delete on %s failed: %s", table, exc)
            raise StoreUnavailableError(str(exc)) from exc

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError as exc:
            raise ValueError(f"Unknown table: {name}") from exc

    @staticmethod
    def _where(sa_table: Table, filters: dict[str, Any] | None) -> Iterable[Any]:
        for key, expected in (filters or {}).items():
            column_name, op = _split_filter(key)
            column = sa_table.c[column_name]
            if op == "eq":
                yield column.is_(None) if expected is None else column == expected
            elif op == "lt":
                yield column < expected
            elif op == "lte":
                yield column <= expected
            elif op == "gt":
                yield column > expected
            elif op == "gte":
                yield column >= expected
            elif op == "in":
                yield column.in_(list(expected))


def normalize_date(value: Any) -> date | None:
    """Coerce stored date values (date, datetime or ISO string) to ``date``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
