"""
PostgreSQL executor for the record mapper.

`PostgresViewQuery` and `PostgresActionQuery` implement the view/action query
collaborators on top of psycopg 3. Statements are composed with `psycopg.sql`
so every table, alias and column is quoted as an identifier and every operand
is passed as a parameter.

Table naming
------------
The base table is aliased by the model's source name, joined references by
their field name and nested subqueries by their class name, matching the
column prefixes produced by `exclude_deleted`. `tables` maps class names to
table names when they differ.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from recordmapper.collaborators import (
    AbstractActionQuery,
    AbstractViewQuery,
    ActionQueryFactory,
    CreateResult,
    Row,
    RowMapper,
    RowsMapper,
    ViewQueryFactory,
)
from recordmapper.config import get_settings
from recordmapper.domain.constraints import Clause, Comparison, Existence, NestedQuery, Subquery, Where
from recordmapper.domain.models import DELETED_AT, ID, JoinedField, JoinSpec
from recordmapper.domain.values import IncrementOp, JsonPatchOp
from recordmapper.errors import InvalidObjectKey
from recordmapper.infrastructure.db_factory import get_async_pool
from recordmapper.utils.logging import get_logger

log = get_logger(__name__)

Params = List[Any]

_COMPARATORS = {
    "eq": "=",
    "neq": "<>",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}


def _escape_like(value: Any) -> str:
    return str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def column_ref(column: str, default_table: str) -> sql.Identifier:
    """Qualify `column` with `default_table` unless it is already `alias.column`."""
    if "." in column:
        alias, name = column.split(".", 1)
        return sql.Identifier(alias, name)
    return sql.Identifier(default_table, column)


class ConstraintCompiler:
    """
    Compiles a `Where` tree into a SQL condition plus its parameters.

    Parameters
    ----------
    schema : str, optional
        Schema holding the tables; unqualified when None.
    tables : Mapping[str, str], optional
        Class name to table name for nested subqueries.
    """

    def __init__(self, schema: Optional[str] = None, tables: Optional[Mapping[str, str]] = None) -> None:
        self.schema = schema
        self.tables = dict(tables or {})

    def qualified(self, name: str) -> sql.Identifier:
        return sql.Identifier(self.schema, name) if self.schema else sql.Identifier(name)

    def table(self, class_name: str) -> sql.Identifier:
        return self.qualified(self.tables.get(class_name, class_name))

    def compile(self, where: Where, default_table: str, params: Params) -> Optional[sql.Composable]:
        parts = [self._clause(clause, default_table, params) for clause in where]
        if not parts:
            return None
        return sql.SQL(" AND ").join(parts)

    def _clause(self, clause: Clause, default_table: str, params: Params) -> sql.Composable:
        column = column_ref(clause.column, default_table)
        if isinstance(clause, Existence):
            return sql.SQL("{} IS NOT NULL" if clause.exists else "{} IS NULL").format(column)
        if isinstance(clause, Comparison):
            return self._comparison(column, clause, params)
        if isinstance(clause, NestedQuery):
            return self._nested(column, clause, params)
        raise InvalidObjectKey(f"Unsupported constraint on `{clause.column}`")

    def _comparison(self, column: sql.Identifier, clause: Comparison, params: Params) -> sql.Composable:
        operator, value = clause.operator, clause.value
        if operator in ("eq", "neq") and value is None:
            return sql.SQL("{} IS NULL" if operator == "eq" else "{} IS NOT NULL").format(column)
        if operator in _COMPARATORS:
            params.append(value)
            return sql.SQL("{} " + _COMPARATORS[operator] + " %s").format(column)
        if operator in ("in", "nin"):
            params.append(list(value or []))
            return sql.SQL("{} = ANY(%s)" if operator == "in" else "NOT ({} = ANY(%s))").format(column)
        if operator == "str":
            params.append(f"{_escape_like(value)}%")
        elif operator == "end":
            params.append(f"%{_escape_like(value)}")
        elif operator == "has":
            params.append(f"%{_escape_like(value)}%")
        else:
            raise InvalidObjectKey(f"Unknown constraint `{operator}` on `{clause.column}`")
        return sql.SQL("{} LIKE %s").format(column)

    def _subquery(self, subquery: Subquery, params: Params) -> sql.Composable:
        statement = sql.SQL("SELECT {key} FROM {table} AS {alias}").format(
            key=sql.Identifier(subquery.class_name, subquery.key),
            table=self.table(subquery.class_name),
            alias=sql.Identifier(subquery.class_name),
        )
        condition = self.compile(subquery.where, subquery.class_name, params)
        if condition is not None:
            statement = sql.SQL("{} WHERE {}").format(statement, condition)
        return statement

    def _nested(self, column: sql.Identifier, clause: NestedQuery, params: Params) -> sql.Composable:
        negated = clause.operator in ("nfi", "nfe")
        template = sql.SQL("{} NOT IN ({})" if negated else "{} IN ({})")
        parts = [template.format(column, self._subquery(subquery, params)) for subquery in clause.subqueries]
        if not parts:
            return sql.SQL("TRUE" if negated else "FALSE")
        joiner = sql.SQL(" AND " if negated else " OR ")
        return sql.SQL("({})").format(joiner.join(parts))


class PostgresViewQuery(AbstractViewQuery):
    """
    Read query against one table, executed through an async pool.

    Parameters
    ----------
    source : str
        Table name of the model; also the base alias.
    pool : AsyncConnectionPool, optional
        Pool to execute on; the managed pool from `db_factory` by default.
    schema : str, optional
        Schema holding the tables; `DB_SCHEMA` by default.
    tables : Mapping[str, str], optional
        Class name to table name, for joins and nested subqueries.
    """

    def __init__(
        self,
        source: str,
        pool: Optional[AsyncConnectionPool] = None,
        schema: Optional[str] = None,
        tables: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(source)
        self._pool = pool
        self._constraints = ConstraintCompiler(schema or get_settings().db_schema, tables)

    def _select_list(self) -> sql.Composable:
        columns = []
        for key, source in self.projection.items():
            if isinstance(source, JoinedField):
                ref = sql.Identifier(source.alias, source.field)
            else:
                ref = column_ref(source, self.source)
            columns.append(sql.SQL("{} AS {}").format(ref, sql.Identifier(key)))
        if not columns:
            return sql.SQL("{}.*").format(sql.Identifier(self.source))
        return sql.SQL(", ").join(columns)

    def _join(self, join: JoinSpec, params: Params) -> sql.Composable:
        on = sql.SQL("{} = {}").format(
            sql.Identifier(join.alias, join.to),
            column_ref(join.via, self.source),
        )
        if join.where:
            condition = self._constraints.compile(join.where, join.alias, params)
            if condition is not None:
                on = sql.SQL("{} AND {}").format(on, condition)
        return sql.SQL("LEFT JOIN {} AS {} ON {}").format(
            self._constraints.table(join.class_name),
            sql.Identifier(join.alias),
            on,
        )

    def _order_by(self) -> Optional[sql.Composable]:
        terms = []
        for item in self.sort_spec:
            pairs = item.items() if isinstance(item, Mapping) else [(item.lstrip("-"), -1 if item.startswith("-") else 1)]
            for name, direction in pairs:
                if name in self.projection and "." not in name:
                    ref: sql.Composable = sql.Identifier(name)
                else:
                    ref = column_ref(name, self.source)
                terms.append(sql.SQL("{} DESC" if int(direction) < 0 else "{} ASC").format(ref))
        if not terms:
            return None
        return sql.SQL(", ").join(terms)

    def compile(self) -> Tuple[sql.Composed, Params]:
        """Compose the SELECT statement and its parameters."""
        params: Params = []
        parts: List[sql.Composable] = [
            sql.SQL("SELECT {} FROM {} AS {}").format(
                self._select_list(),
                self._constraints.qualified(self.source),
                sql.Identifier(self.source),
            )
        ]
        parts.extend(self._join(join, params) for join in self.join_specs)

        condition = self._constraints.compile(self.constraints, self.source, params)
        if condition is not None:
            parts.append(sql.SQL("WHERE {}").format(condition))

        order_by = self._order_by()
        if order_by is not None:
            parts.append(sql.SQL("ORDER BY {}").format(order_by))
        if self.limit_value is not None:
            parts.append(sql.SQL("LIMIT %s"))
            params.append(self.limit_value)
        if self.skip_value:
            parts.append(sql.SQL("OFFSET %s"))
            params.append(self.skip_value)

        return sql.Composed(parts).join(" "), params

    async def _fetch(self) -> List[Row]:
        statement, params = self.compile()
        pool = self._pool or get_async_pool()
        async with pool.connection() as conn:
            await apply_statement_timeout(conn)
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(statement, params)
                return await cur.fetchall()

    async def find(self, mapper: RowsMapper) -> List[Row]:
        rows = await self._fetch()
        log.debug(f"[VIEW] {self.source} rows={len(rows)}", extra={"source": self.source})
        return mapper(rows)

    async def first(self, mapper: RowMapper) -> Optional[Row]:
        self.limit(1)
        rows = await self._fetch()
        if not rows:
            return None
        return mapper(rows[0])


def _json_path(path: str) -> List[str]:
    return [part for part in path.split(".") if part]


class PostgresActionQuery(AbstractActionQuery):
    """
    Write query against one table.

    `create` inserts the raw field map and returns the new `id`; `update`
    writes it to the row with the given `id` unless that row is soft-deleted.
    Increments and JSON patches become column expressions evaluated by
    PostgreSQL.
    """

    def __init__(
        self,
        source: str,
        id: Any = None,
        pool: Optional[AsyncConnectionPool] = None,
        schema: Optional[str] = None,
    ) -> None:
        super().__init__(source, id)
        self._pool = pool
        self._schema = schema or get_settings().db_schema

    @property
    def table(self) -> sql.Identifier:
        return sql.Identifier(self._schema, self.source) if self._schema else sql.Identifier(self.source)

    def _value(self, column: str, value: Any, params: Params, existing: bool) -> sql.Composable:
        current = sql.Identifier(column) if existing else None
        if isinstance(value, IncrementOp):
            params.append(value.amount)
            if current is None:
                return sql.SQL("%s")
            return sql.SQL("COALESCE({}, 0) + %s").format(current)
        if isinstance(value, JsonPatchOp):
            return self._json_patch(current, value, params)
        if isinstance(value, (dict, list)):
            params.append(json.dumps(value, default=str))
            return sql.SQL("%s::jsonb")
        params.append(value)
        return sql.SQL("%s")

    def _json_patch(self, current: Optional[sql.Identifier], op: JsonPatchOp, params: Params) -> sql.Composable:
        path = _json_path(op.path)
        empty = sql.SQL("'[]'::jsonb" if op.operation == "append" and not path else "'{}'::jsonb")
        base = sql.SQL("COALESCE({}, {})").format(current, empty) if current is not None else empty

        if op.operation == "append":
            if not path:
                params.append(op.value)
                return sql.SQL("{} || jsonb_build_array(%s::jsonb)").format(base)
            params.extend([path, path, op.value])
            return sql.SQL(
                "jsonb_set({base}, %s::text[], COALESCE({base} #> %s::text[], '[]'::jsonb) "
                "|| jsonb_build_array(%s::jsonb), true)"
            ).format(base=base)

        if not path:
            params.append(op.value)
            return sql.SQL("%s::jsonb")
        params.extend([path, op.value])
        return sql.SQL("jsonb_set({}, %s::text[], %s::jsonb, true)").format(base)

    def compile_insert(self) -> Tuple[sql.Composed, Params]:
        params: Params = []
        columns = list(self.raw)
        values = [self._value(column, self.raw[column], params, existing=False) for column in columns]
        statement = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING {}").format(
            self.table,
            sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            sql.SQL(", ").join(values),
            sql.Identifier(ID),
        )
        return statement, params

    def compile_update(self) -> Tuple[sql.Composed, Params]:
        if self.id is None:
            raise InvalidObjectKey(f"An `id` is required to update `{self.source}`")
        params: Params = []
        assignments = [
            sql.SQL("{} = {}").format(sql.Identifier(column), self._value(column, value, params, existing=True))
            for column, value in self.raw.items()
        ]
        params.append(self.id)
        statement = sql.SQL("UPDATE {} SET {} WHERE {} = %s AND {} IS NULL").format(
            self.table,
            sql.SQL(", ").join(assignments),
            sql.Identifier(ID),
            sql.Identifier(DELETED_AT),
        )
        return statement, params

    async def create(self) -> CreateResult:
        statement, params = self.compile_insert()
        pool = self._pool or get_async_pool()
        async with pool.connection() as conn:
            await apply_statement_timeout(conn)
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(statement, params)
                row = await cur.fetchone()
        log.debug(f"[ACTION] insert {self.source}", extra={"source": self.source})
        return {"id": row[ID]}

    async def update(self) -> int:
        """Write the fields; returns the number of rows touched (0 or 1)."""
        statement, params = self.compile_update()
        pool = self._pool or get_async_pool()
        async with pool.connection() as conn:
            await apply_statement_timeout(conn)
            async with conn.cursor() as cur:
                await cur.execute(statement, params)
                count = cur.rowcount
        log.debug(f"[ACTION] update {self.source} id={self.id}", extra={"source": self.source, "rows": count})
        return count


async def apply_statement_timeout(conn: Any) -> None:
    """Apply `DB_STATEMENT_TIMEOUT_MS` to the current transaction when set."""
    timeout = get_settings().db_statement_timeout_ms
    if timeout > 0:
        await conn.execute(sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(timeout)))


def view_query_factory(
    pool: Optional[AsyncConnectionPool] = None,
    schema: Optional[str] = None,
    tables: Optional[Mapping[str, str]] = None,
) -> ViewQueryFactory:
    """Factory handing `PostgresViewQuery` instances to `Model`."""

    def build(source: str) -> PostgresViewQuery:
        return PostgresViewQuery(source, pool=pool, schema=schema, tables=tables)

    return build


def action_query_factory(
    pool: Optional[AsyncConnectionPool] = None,
    schema: Optional[str] = None,
) -> ActionQueryFactory:
    """Factory handing `PostgresActionQuery` instances to `Model`."""

    def build(source: str, id: Any = None) -> PostgresActionQuery:
        return PostgresActionQuery(source, id, pool=pool, schema=schema)

    return build


def table_names(definitions: Sequence[Any]) -> Dict[str, str]:
    """Class name to table name for every registered definition."""
    return {definition.class_name: definition.source for definition in definitions}


__all__ = [
    "ConstraintCompiler",
    "PostgresViewQuery",
    "PostgresActionQuery",
    "apply_statement_timeout",
    "column_ref",
    "view_query_factory",
    "action_query_factory",
    "table_names",
]
