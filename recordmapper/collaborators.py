"""
Collaborator interfaces the record mapper depends on.

The mapper never talks to a datastore itself. It builds read queries through a
`ViewQuery`, writes through an `ActionQuery`, resolves attachment URLs through a
`StorageProvider` and hashes passwords through a `SecurityProvider`. Concrete
executors (see `recordmapper.infrastructure`) implement these Protocols;
`AbstractViewQuery` and `AbstractActionQuery` are optional ABC helpers that hold
the builder state for class-based implementations.
"""

from __future__ import annotations

import abc
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypedDict,
    runtime_checkable,
)

from recordmapper.domain.constraints import Where
from recordmapper.domain.models import JoinSpec, Source
from recordmapper.domain.options import SortSpec

Row = Dict[str, Any]
RowsMapper = Callable[[List[Row]], List[Row]]
RowMapper = Callable[[Row], Row]


class CreateResult(TypedDict, total=False):
    """Minimal contract returned by `ActionQuery.create`."""

    id: Any


@runtime_checkable
class ViewQuery(Protocol):
    """
    Read query builder, constructed with the source (table) name.
    """

    def select(self, projection: Mapping[str, Source]) -> "ViewQuery":
        ...

    def where(self, constraints: Where) -> "ViewQuery":
        ...

    def joins(self, joins: Sequence[JoinSpec]) -> "ViewQuery":
        ...

    def sort(self, spec: SortSpec) -> "ViewQuery":
        ...

    def limit(self, n: int) -> "ViewQuery":
        ...

    def skip(self, n: int) -> "ViewQuery":
        ...

    async def find(self, mapper: RowsMapper) -> List[Row]:
        """Execute and hand every row (as a list) to `mapper`."""
        ...

    async def first(self, mapper: RowMapper) -> Optional[Row]:
        """Execute and hand the first row to `mapper`; None when nothing matches."""
        ...


@runtime_checkable
class ActionQuery(Protocol):
    """
    Write query builder, constructed with the source name and, for targeted
    writes, the record id.
    """

    def fields(self, raw: Mapping[str, Any]) -> "ActionQuery":
        ...

    async def create(self) -> CreateResult:
        ...

    async def update(self) -> Any:
        ...


ViewQueryFactory = Callable[[str], ViewQuery]
ActionQueryFactory = Callable[..., ActionQuery]


@runtime_checkable
class StorageProvider(Protocol):
    def get_url(self, key: str) -> str:
        ...


@runtime_checkable
class SecurityProvider(Protocol):
    def hash(self, plaintext: str, cost: int) -> str:
        ...


class AbstractViewQuery(abc.ABC):
    """
    ABC helper that records builder calls; subclasses implement execution.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.projection: Dict[str, Source] = {}
        self.constraints: Where = Where()
        self.join_specs: List[JoinSpec] = []
        self.sort_spec: SortSpec = []
        self.limit_value: Optional[int] = None
        self.skip_value: Optional[int] = None

    def select(self, projection: Mapping[str, Source]) -> "AbstractViewQuery":
        self.projection = dict(projection)
        return self

    def where(self, constraints: Where) -> "AbstractViewQuery":
        self.constraints = constraints
        return self

    def joins(self, joins: Sequence[JoinSpec]) -> "AbstractViewQuery":
        self.join_specs = list(joins)
        return self

    def sort(self, spec: SortSpec) -> "AbstractViewQuery":
        self.sort_spec = list(spec)
        return self

    def limit(self, n: int) -> "AbstractViewQuery":
        self.limit_value = n
        return self

    def skip(self, n: int) -> "AbstractViewQuery":
        self.skip_value = n
        return self

    @abc.abstractmethod
    async def find(self, mapper: RowsMapper) -> List[Row]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def first(self, mapper: RowMapper) -> Optional[Row]:  # pragma: no cover - interface only
        raise NotImplementedError


class AbstractActionQuery(abc.ABC):
    """
    ABC helper that records the target and field set; subclasses implement writes.
    """

    def __init__(self, source: str, id: Any = None) -> None:
        self.source = source
        self.id = id
        self.raw: Dict[str, Any] = {}

    def fields(self, raw: Mapping[str, Any]) -> "AbstractActionQuery":
        self.raw = dict(raw)
        return self

    @abc.abstractmethod
    async def create(self) -> CreateResult:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError


__all__ = [
    "Row",
    "RowsMapper",
    "RowMapper",
    "CreateResult",
    "ViewQuery",
    "ActionQuery",
    "ViewQueryFactory",
    "ActionQueryFactory",
    "StorageProvider",
    "SecurityProvider",
    "AbstractViewQuery",
    "AbstractActionQuery",
]
