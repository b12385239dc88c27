# portal/db.py
# Persistence layer: SQLAlchemy engine (SQLite in dev, PostgreSQL in prod) plus a
# small transaction-bound query interface used by the resource operations.

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path as FsPath
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy import and_, create_engine, delete, event, func, insert, or_, pool, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from portal.config import DATABASE_PATH, DATABASE_URL, IS_POSTGRES
from portal.errors import Conflict
from portal.tables import TABLES, metadata

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Timestamps
# ---------------------------------------------------------
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render a datetime as a fixed-width UTC string (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ISO_FORMAT)


def now_iso() -> str:
    return to_iso(utc_now())


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------
# Filters
# ---------------------------------------------------------
@dataclass(frozen=True)
class In:
    values: Sequence[Any]


@dataclass(frozen=True)
class Ne:
    value: Any


@dataclass(frozen=True)
class Lte:
    value: Any


@dataclass(frozen=True)
class Between:
    """Inclusive range; a None bound is left open."""
    low: Any = None
    high: Any = None


@dataclass(frozen=True)
class NullOr:
    """Column IS NULL or column = value (tenant rows plus global rows)."""
    value: Any


@dataclass(frozen=True)
class Search:
    """Case-insensitive substring match across several columns (OR)."""
    columns: Sequence[str]
    term: str


def _table(name: str):
    try:
        return TABLES[name]
    except KeyError:
        raise ValueError(f"Unknown table: {name}") from None


def _escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_where(table, filters: Optional[Mapping[str, Any]], search: Optional[Search] = None):
    clauses = []
    for name, cond in (filters or {}).items():
        col = table.c[name]
        if cond is None:
            clauses.append(col.is_(None))
        elif isinstance(cond, In):
            clauses.append(col.in_(list(cond.values)))
        elif isinstance(cond, Ne):
            clauses.append(col != cond.value)
        elif isinstance(cond, Lte):
            clauses.append(col <= cond.value)
        elif isinstance(cond, Between):
            if cond.low is not None:
                clauses.append(col >= cond.low)
            if cond.high is not None:
                clauses.append(col <= cond.high)
        elif isinstance(cond, NullOr):
            clauses.append(or_(col.is_(None), col == cond.value))
        else:
            clauses.append(col == cond)
    if search and search.term:
        pattern = f"%{_escape_like(search.term.lower())}%"
        clauses.append(or_(*[func.lower(table.c[c]).like(pattern, escape="\\") for c in search.columns]))
    return and_(*clauses) if clauses else None


def _order_clauses(table, order_by: Optional[Sequence[str]]):
    result = []
    for key in order_by or ():
        if key.startswith("-"):
            result.append(table.c[key[1:]].desc())
        else:
            result.append(table.c[key].asc())
    return result


# ---------------------------------------------------------
# Store: query interface bound to one transaction
# ---------------------------------------------------------
class Store:
    """
    Query interface over a single connection/transaction.

    Obtain one through `Database.transaction()`; everything done through the same
    Store commits or rolls back together.
    """

    def __init__(self, conn: Connection):
        self.conn = conn

    def find(self, table_name: str, row_id: str) -> Optional[Dict[str, Any]]:
        table = _table(table_name)
        row = self.conn.execute(select(table).where(table.c.id == row_id)).first()
        return dict(row._mapping) if row is not None else None

    def find_many(
        self,
        table_name: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[Sequence[str]] = None,
        search: Optional[Search] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        table = _table(table_name)
        stmt = select(table)
        where = _build_where(table, filters, search)
        if where is not None:
            stmt = stmt.where(where)
        order = _order_clauses(table, order_by)
        if order:
            stmt = stmt.order_by(*order)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [dict(r._mapping) for r in self.conn.execute(stmt)]

    def count(self, table_name: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        table = _table(table_name)
        stmt = select(func.count()).select_from(table)
        where = _build_where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        return int(self.conn.execute(stmt).scalar_one())

    def create(self, table_name: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        table = _table(table_name)
        data = dict(values)
        data.setdefault("id", new_id())
        now = now_iso()
        if "created_at" in table.c:
            data.setdefault("created_at", now)
        if "updated_at" in table.c:
            data.setdefault("updated_at", now)
        try:
            self.conn.execute(insert(table).values(**data))
        except IntegrityError as e:
            logger.info("[DB] Integrity error on insert into %s: %s", table_name, e.orig)
            raise Conflict("Resource already exists", details=str(e.orig)) from e
        return self.find(table_name, data["id"])

    def update(self, table_name: str, row_id: str, values: Mapping[str, Any]) -> int:
        return self.update_many(table_name, {"id": row_id}, values)

    def update_many(
        self,
        table_name: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> int:
        """Apply one UPDATE to every matching row and return the matched row count."""
        return self._execute_update(table_name, self._update_stmt(table_name, filters, values)).rowcount

    def update_returning_ids(
        self,
        table_name: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> List[str]:
        """
        Like `update_many`, but return the ids of exactly the rows this statement
        changed. Uses UPDATE ... RETURNING where the dialect has it, otherwise
        updates matching rows one at a time under the same predicate.
        """
        table = _table(table_name)
        if self.conn.dialect.update_returning:
            stmt = self._update_stmt(table_name, filters, values).returning(table.c.id)
            return [row[0] for row in self._execute_update(table_name, stmt)]

        candidates = [row["id"] for row in self.find_many(table_name, filters)]
        changed = []
        for row_id in candidates:
            stmt = self._update_stmt(table_name, {**filters, "id": row_id}, values)
            if self._execute_update(table_name, stmt).rowcount == 1:
                changed.append(row_id)
        return changed

    def _update_stmt(self, table_name: str, filters: Mapping[str, Any], values: Mapping[str, Any]):
        table = _table(table_name)
        data = dict(values)
        if "updated_at" in table.c:
            data.setdefault("updated_at", now_iso())
        stmt = update(table).values(**data)
        where = _build_where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        return stmt

    def _execute_update(self, table_name: str, stmt):
        try:
            return self.conn.execute(stmt)
        except IntegrityError as e:
            logger.info("[DB] Integrity error on update of %s: %s", table_name, e.orig)
            raise Conflict("Conflicting update", details=str(e.orig)) from e

    def delete(self, table_name: str, row_id: str) -> int:
        table = _table(table_name)
        result = self.conn.execute(delete(table).where(table.c.id == row_id))
        return result.rowcount


# ---------------------------------------------------------
# Database: engine owner
# ---------------------------------------------------------
def _default_url() -> str:
    if IS_POSTGRES:
        # SQLAlchemy only understands the postgresql:// scheme
        return DATABASE_URL.replace("postgres://", "postgresql://", 1)
    db_path = FsPath(DATABASE_PATH)
    if not db_path.is_absolute():
        db_path = FsPath.cwd() / db_path
    return f"sqlite:///{db_path}"


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on SQLite so reads and writes inside
    `Database.transaction()` share one real transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine; hands out transaction-bound Stores."""

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            url = url or _default_url()
            if url.startswith("sqlite"):
                engine = create_engine(url, connect_args={"check_same_thread": False})
            else:
                engine = create_engine(
                    url,
                    poolclass=pool.QueuePool,
                    pool_size=5,
                    max_overflow=10,
                    pool_pre_ping=True,  # Verify connections before use
                )
        if engine.dialect.name == "sqlite":
            _enable_sqlite_transactions(engine)
        self.engine = engine
        logger.info("[DB] Using %s", engine.dialect.name)

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Store]:
        """Commit on normal exit, roll back if the block raises."""
        with self.engine.begin() as conn:
            yield Store(conn)

    def dispose(self) -> None:
        self.engine.dispose()


_database: Optional[Database] = None


def get_database() -> Database:
    """FastAPI dependency: process-wide Database (overridden in tests)."""
    global _database
    if _database is None:
        _database = Database()
        _database.create_schema()
    return _database
