"""
Constraint trees for read queries.

Callers describe filters in a wire form, `{column: {operator: operand}}`, which
`parse_where` turns into an immutable tree. Nested-existence operators
(`fi`, `nfi`, `fie`, `nfe`) carry subqueries with their own `where`, so the tree
is recursive. `exclude_deleted` is the soft-delete guarantee: it returns a new
tree in which the base table, every joined alias and every nested subquery (at
any depth) excludes rows whose `deleted_at` is set, whatever the caller asked.

Operators
---------
eq, neq, gt, gte, lt, lte : comparison against a scalar
in, nin                   : membership in a list
str, end, has             : starts with, ends with, contains
ex                        : column is (true) or is not (false) set
fi, nfi                   : column found / not found in one subquery
fie, nfe                  : column found in any / in none of several subqueries
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from recordmapper.domain.models import DELETED_AT, ID
from recordmapper.errors import InvalidObjectKey

COMPARISON_OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte", "in", "nin", "str", "end", "has"})
EXISTENCE_OPERATOR = "ex"
SINGLE_NESTED_OPERATORS = frozenset({"fi", "nfi"})
BATCH_NESTED_OPERATORS = frozenset({"fie", "nfe"})


@dataclass(frozen=True)
class Comparison:
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class Existence:
    column: str
    exists: bool


@dataclass(frozen=True)
class Subquery:
    class_name: str
    key: str = ID
    where: "Where" = field(default_factory=lambda: Where())


@dataclass(frozen=True)
class NestedQuery:
    column: str
    operator: str
    subqueries: Tuple[Subquery, ...]

    @property
    def batched(self) -> bool:
        return self.operator in BATCH_NESTED_OPERATORS


Clause = Union[Comparison, Existence, NestedQuery]


@dataclass(frozen=True)
class Where:
    clauses: Tuple[Clause, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.clauses)

    def __iter__(self):
        return iter(self.clauses)

    def columns(self) -> List[str]:
        return [clause.column for clause in self.clauses]

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Render the tree back to its wire form."""
        rendered: Dict[str, Dict[str, Any]] = {}
        for clause in self.clauses:
            constraints = rendered.setdefault(clause.column, {})
            if isinstance(clause, Comparison):
                constraints[clause.operator] = clause.value
            elif isinstance(clause, Existence):
                constraints[EXISTENCE_OPERATOR] = clause.exists
            else:
                subqueries = [_subquery_to_dict(subquery) for subquery in clause.subqueries]
                constraints[clause.operator] = subqueries if clause.batched else subqueries[0]
        return rendered


def _subquery_to_dict(subquery: Subquery) -> Dict[str, Any]:
    return {"className": subquery.class_name, "key": subquery.key, "where": subquery.where.to_dict()}


def _parse_subquery(column: str, operator: str, raw: Any) -> Subquery:
    if not isinstance(raw, Mapping) or not raw.get("className"):
        raise InvalidObjectKey(
            f"`{operator}` constraint on `{column}` requires a subquery with a `className`"
        )
    return Subquery(
        class_name=raw["className"],
        key=raw.get("key") or ID,
        where=parse_where(raw.get("where") or {}),
    )


def parse_where(raw: Optional[Mapping[str, Any]]) -> Where:
    """
    Parse a wire-form constraint mapping into a `Where` tree.

    Raises
    ------
    InvalidObjectKey
        If a column maps to something other than an operator mapping, or an
        operator is unknown.
    """
    if raw is None:
        return Where()
    if isinstance(raw, Where):
        return raw

    clauses: List[Clause] = []
    for column, constraints in raw.items():
        if not isinstance(constraints, Mapping):
            raise InvalidObjectKey(f"Constraints for `{column}` must be an object of operators")
        for operator, operand in constraints.items():
            if operator in COMPARISON_OPERATORS:
                clauses.append(Comparison(column, operator, operand))
            elif operator == EXISTENCE_OPERATOR:
                clauses.append(Existence(column, bool(operand)))
            elif operator in SINGLE_NESTED_OPERATORS:
                clauses.append(NestedQuery(column, operator, (_parse_subquery(column, operator, operand),)))
            elif operator in BATCH_NESTED_OPERATORS:
                if isinstance(operand, Mapping) or not isinstance(operand, Iterable):
                    raise InvalidObjectKey(f"`{operator}` constraint on `{column}` requires a list of subqueries")
                subqueries = tuple(_parse_subquery(column, operator, item) for item in operand)
                clauses.append(NestedQuery(column, operator, subqueries))
            else:
                raise InvalidObjectKey(f"Unknown constraint `{operator}` on `{column}`")
    return Where(tuple(clauses))


def _deleted_column(table: str) -> str:
    return f"{table}.{DELETED_AT}"


def exclude_deleted(where: Where, table: str, aliases: Iterable[str] = ()) -> Where:
    """
    Return a copy of `where` that can never match soft-deleted rows.

    Parameters
    ----------
    where : Where
        Caller-supplied constraints.
    table : str
        Name the base rows are addressed by; bare column names refer to it.
    aliases : Iterable[str]
        Joined aliases that must exclude deleted rows as well.

    Notes
    -----
    Caller clauses on any guarded `deleted_at` column are dropped before the
    exclusions are added, and every nested subquery is rewritten the same way
    against its own class name.
    """
    tables = list(dict.fromkeys([table, *aliases]))
    guarded = {DELETED_AT} | {_deleted_column(name) for name in tables}

    clauses: List[Clause] = []
    for clause in where.clauses:
        if clause.column in guarded:
            continue
        if isinstance(clause, NestedQuery):
            clause = replace(
                clause,
                subqueries=tuple(
                    replace(subquery, where=exclude_deleted(subquery.where, subquery.class_name))
                    for subquery in clause.subqueries
                ),
            )
        clauses.append(clause)

    clauses.extend(Existence(_deleted_column(name), False) for name in tables)
    return Where(tuple(clauses))


__all__ = [
    "COMPARISON_OPERATORS",
    "Comparison",
    "Existence",
    "Subquery",
    "NestedQuery",
    "Clause",
    "Where",
    "parse_where",
    "exclude_deleted",
]
