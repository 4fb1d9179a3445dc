"""
combo_export/gateway.py — Data access for one combination.

Responsible for:
  - Running the optional preparation procedure with bound filter parameters
  - Counting the rows of the view for the combination
  - Streaming the rows forward-only with their column names
  - Checking that the configured view / procedure exist

Any driver failure surfaces as DataAccessError; nothing here retries.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .errors import DataAccessError, QUERY_FAILED, QUERY_TIMEOUT
from .models import Combination, MonthRange, QueryObjects
from .parsing import WILDCARD, is_wildcard


logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("timeout", "timed out", "canceling statement", "query execution was interrupted")


class QueryResult:
    """
    Row count, schema and a forward-only row source for one combination.
    rows can be iterated once. close() releases the cursor and connection.
    """

    def __init__(
        self,
        row_count: int,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.row_count = row_count
        self.columns = list(columns)
        self._rows = iter(rows)
        self._on_close = on_close
        self._closed = False

    @property
    def rows(self) -> Iterator[Sequence[Any]]:
        return self._rows

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "QueryResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DataGateway(Protocol):
    def execute(self, combination: Combination, query: QueryObjects, period: MonthRange) -> QueryResult:
        ...

    def missing_objects(self, query: QueryObjects) -> List[str]:
        ...


# ── Engine ───────────────────────────────────────────────────────────────────

def timeout_connect_args(url: str, timeout_seconds: int) -> Dict[str, Any]:
    """Driver-level command timeout, per dialect."""
    backend = sa.engine.make_url(url).get_backend_name()
    if backend == "sqlite":
        return {"timeout": timeout_seconds}
    if backend == "mssql":
        return {"timeout": timeout_seconds}
    if backend == "postgresql":
        return {"options": f"-c statement_timeout={int(timeout_seconds) * 1000}"}
    if backend in ("mysql", "mariadb"):
        return {"read_timeout": timeout_seconds}
    return {}


def build_engine(url: str, timeout_seconds: int = 300, **kwargs: Any) -> Engine:
    connect_args = dict(timeout_connect_args(url, timeout_seconds))
    connect_args.update(kwargs.pop("connect_args", {}))
    return sa.create_engine(url, connect_args=connect_args, **kwargs)


# ── SQL gateway ──────────────────────────────────────────────────────────────

def _split_name(name: str) -> Tuple[Optional[str], str]:
    if "." in name:
        schema, _, obj = name.rpartition(".")
        return schema or None, obj
    return None, name


def _is_timeout(err: SQLAlchemyError) -> bool:
    text = str(getattr(err, "orig", None) or err).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def _wrap(err: Exception, combination: Optional[Combination], stage: str) -> DataAccessError:
    details: Dict[str, Any] = {"stage": stage}
    if combination is not None:
        details["sequence"] = combination.sequence
        details["filters"] = combination.as_dict()
    if isinstance(err, DBAPIError) and _is_timeout(err):
        return DataAccessError(QUERY_TIMEOUT, f"Query timed out during {stage}", details)
    return DataAccessError(QUERY_FAILED, f"{stage} failed: {err}", details)


class SqlGateway:
    """
    SQLAlchemy Core gateway.

    filter_columns maps dimension names to view columns; wildcard values add
    no condition, values containing '%' compare with LIKE. procedure_params
    maps dimension names to procedure parameter names.
    """

    def __init__(
        self,
        engine: Engine,
        filter_columns: Optional[Mapping[str, str]] = None,
        period_column: Optional[str] = None,
        procedure_params: Optional[Mapping[str, str]] = None,
        stream_batch_size: int = 5000,
    ) -> None:
        self.engine = engine
        self.filter_columns = dict(filter_columns or {})
        self.period_column = period_column
        self.procedure_params = dict(procedure_params or {})
        self.stream_batch_size = stream_batch_size

    # ---------- Statements ----------

    def _view(self, query: QueryObjects) -> sa.TableClause:
        schema, name = _split_name(query.view_name)
        return sa.table(name, schema=schema)

    def _conditions(self, combination: Combination, period: MonthRange) -> List[Any]:
        conds = []
        for dim, col in self.filter_columns.items():
            value = combination.value(dim)
            if is_wildcard(value):
                continue
            column = sa.column(col)
            if WILDCARD in value:
                conds.append(column.like(value))
            else:
                conds.append(column == value)
        if self.period_column:
            conds.append(sa.column(self.period_column).between(period.from_month, period.to_month))
        return conds

    def count_statement(self, combination: Combination, query: QueryObjects, period: MonthRange):
        return (
            sa.select(sa.func.count())
            .select_from(self._view(query))
            .where(*self._conditions(combination, period))
        )

    def select_statement(self, combination: Combination, query: QueryObjects, period: MonthRange):
        stmt = (
            sa.select(sa.literal_column("*"))
            .select_from(self._view(query))
            .where(*self._conditions(combination, period))
        )
        if query.order_by:
            stmt = stmt.order_by(sa.column(query.order_by))
        return stmt

    def procedure_call(self, combination: Combination, query: QueryObjects, period: MonthRange):
        """(statement, params) for the preparation procedure."""
        params: Dict[str, Any] = {"fromMonth": period.from_month, "ToMonth": period.to_month}
        for dim, param in self.procedure_params.items():
            params[param] = combination.value(dim, WILDCARD)
        names = list(params)
        if self.engine.dialect.name == "mssql":
            args = ", ".join(f"@{n}=:{n}" for n in names)
            sql = f"EXEC {query.procedure_name} {args}"
        else:
            args = ", ".join(f":{n}" for n in names)
            sql = f"CALL {query.procedure_name}({args})"
        return sa.text(sql), params

    # ---------- Execution ----------

    def execute(self, combination: Combination, query: QueryObjects, period: MonthRange) -> QueryResult:
        stage = "connect"
        conn: Optional[Connection] = None
        try:
            conn = self.engine.connect()
            if query.procedure_name:
                stage = "procedure"
                stmt, params = self.procedure_call(combination, query, period)
                conn.execute(stmt, params)
                conn.commit()
            stage = "count"
            row_count = int(conn.execute(self.count_statement(combination, query, period)).scalar_one())
            if row_count == 0:
                conn.close()
                return QueryResult(0, [], iter(()))
            stage = "select"
            result = conn.execution_options(
                stream_results=True, yield_per=self.stream_batch_size
            ).execute(self.select_statement(combination, query, period))
            columns = list(result.keys())
        except Exception as e:
            if conn is not None:
                conn.close()
            raise _wrap(e, combination, stage) from e

        def _rows() -> Iterator[Tuple[Any, ...]]:
            try:
                for row in result:
                    yield tuple(row)
            except SQLAlchemyError as e:
                raise _wrap(e, combination, "fetch") from e

        def _close() -> None:
            try:
                result.close()
            finally:
                conn.close()

        return QueryResult(row_count, columns, _rows(), on_close=_close)

    # ---------- Object checks ----------

    def missing_objects(self, query: QueryObjects) -> List[str]:
        missing: List[str] = []
        try:
            inspector = sa.inspect(self.engine)
            schema, view = _split_name(query.view_name)
            known = set(inspector.get_view_names(schema=schema)) | set(inspector.get_table_names(schema=schema))
            if view not in known:
                missing.append(query.view_name)
            if query.procedure_name and not self._procedure_exists(query.procedure_name):
                missing.append(query.procedure_name)
        except SQLAlchemyError as e:
            raise _wrap(e, None, "object validation") from e
        return missing

    def _procedure_exists(self, name: str) -> bool:
        if self.engine.dialect.name == "sqlite":
            return False
        schema, proc = _split_name(name)
        sql = "SELECT COUNT(*) FROM INFORMATION_SCHEMA.ROUTINES WHERE ROUTINE_NAME = :name"
        params = {"name": proc}
        if schema:
            sql += " AND ROUTINE_SCHEMA = :schema"
            params["schema"] = schema
        with self.engine.connect() as conn:
            return int(conn.execute(sa.text(sql), params).scalar_one()) > 0
