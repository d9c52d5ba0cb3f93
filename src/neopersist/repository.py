"""
Generic repository: typed CRUD and query hydration for one record type.

A Repository is bound to a record type and its EntityMetadata. It builds
Cypher with QueryBuilder, executes it through a QueryRunner and hydrates the
rows back into records.

Lookup semantics:
    - find_by_id / find_one / find_first raise NotFoundError on zero rows
    - find_by_id / find_one raise ConsistencyError on more than one row
    - find_all / find_by_property / find return [] on zero rows
    - find_by_property / count_by_property raise InvalidPropertyError for an
      unmapped property before any query runs

Example:
    >>> repo = Repository(User, runner)
    >>> repo.save(User(user_id="u1", name="Alice"))
    >>> repo.find_by_id("u1")
    User(user_id='u1', name='Alice')
    >>> repo.find("MATCH (u:User) RETURN u.name ORDER BY u.name")
    [User(user_id=None, name='Alice')]
"""

import logging
from typing import Any, Generic, Iterable, List, Mapping, Optional, Type, TypeVar

from .cypher import N, QueryBuilder, QueryLike, compile_query
from .errors import (
    ConsistencyError,
    InvalidPropertyError,
    NeopersistError,
    NotFoundError,
    QueryExecutionError,
    ResultShapeError,
)
from .mapping import entity_to_properties, hydrate
from .metadata import EntityMetadata, resolve_metadata
from .runner.protocol import QueryRunner
from .values import QueryResult


logger = logging.getLogger(__name__)

T = TypeVar("T")

NODE_ALIAS = "n"
COUNT_ALIAS = "count"


def execute(
    runner: QueryRunner,
    query: str,
    params: Mapping[str, Any],
    operation: str,
    timeout: Optional[float] = None,
) -> QueryResult:
    """
    Run a built query, wrapping runner failures in QueryExecutionError.

    NeopersistErrors raised by the runner pass through unchanged.
    """
    logger.debug(f"{operation}: running query with params {sorted(params)}")
    try:
        return runner.run(query, params, timeout=timeout)
    except NeopersistError:
        raise
    except Exception as e:
        raise QueryExecutionError(f"{operation} failed: {e}", cause=e) from e


class Repository(Generic[T]):
    """
    Typed CRUD over nodes of one label.

    The repository is immutable after construction and holds no per-call
    state, so one instance may be shared across threads if the runner allows
    it.
    """

    def __init__(
        self,
        record_type: Type[T],
        runner: QueryRunner,
        metadata: Optional[EntityMetadata] = None,
    ):
        """
        Bind a repository to ``record_type``.

        Args:
            record_type: Dataclass or pydantic model class
            runner: Query runner used for every operation
            metadata: Pre-resolved metadata (resolved from ``record_type`` if omitted)

        Raises:
            MetadataError: if the type's mapping is invalid
        """
        self._record_type = record_type
        self._runner = runner
        self._meta = metadata if metadata is not None else resolve_metadata(record_type)

    @property
    def record_type(self) -> Type[T]:
        return self._record_type

    @property
    def metadata(self) -> EntityMetadata:
        return self._meta

    def _run(
        self, qb: Any, operation: str, timeout: Optional[float]
    ) -> QueryResult:
        query, params = qb.build()
        return execute(self._runner, query, params, operation, timeout)

    def _pk_pattern(self, id: Any):
        return N(NODE_ALIAS, self._meta.label).with_properties({self._meta.pk_property: id})

    def _require_property(self, name: str) -> None:
        if not self._meta.has_property(name):
            raise InvalidPropertyError(name, self._meta.label)

    def _hydrate_all(self, result: QueryResult) -> List[T]:
        return [hydrate(self._record_type, self._meta, record) for record in result]

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def save(self, entity: T, timeout: Optional[float] = None) -> None:
        """
        Upsert ``entity`` by primary key.

        MERGEs the node on its primary key property, then SETs every other
        mapped property from the entity's current values. Saving the same key
        again updates the existing node instead of creating a new one.
        """
        meta = self._meta
        props = entity_to_properties(entity, meta)
        pk_value = props.pop(meta.pk_property)
        qb = (
            QueryBuilder()
            .merge(self._pk_pattern(pk_value))
            .set({f"{NODE_ALIAS}.{prop}": value for prop, value in props.items()})
            .return_(NODE_ALIAS)
        )
        self._run(qb, f"save {meta.label}", timeout)

    def save_all(self, entities: Iterable[T], timeout: Optional[float] = None) -> int:
        """Save each entity in turn (one statement per entity). Returns the count."""
        saved = 0
        for entity in entities:
            self.save(entity, timeout=timeout)
            saved += 1
        return saved

    def delete(self, id: Any, timeout: Optional[float] = None) -> None:
        """Delete the node with primary key ``id`` and all its relationships."""
        qb = QueryBuilder().match(self._pk_pattern(id)).detach_delete(NODE_ALIAS)
        self._run(qb, f"delete {self._meta.label}", timeout)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def find_by_id(self, id: Any, timeout: Optional[float] = None) -> T:
        """
        Return the entity whose primary key equals ``id``.

        Raises:
            NotFoundError: no node has this key
            ConsistencyError: more than one node has this key
        """
        label = self._meta.label
        qb = QueryBuilder().match(self._pk_pattern(id)).return_(NODE_ALIAS)
        result = self._run(qb, f"find_by_id {label}", timeout)

        if len(result) == 0:
            raise NotFoundError(f"{label} with {self._meta.pk_property}={id!r} not found")
        if len(result) > 1:
            logger.warning(
                f"Primary key {self._meta.pk_property}={id!r} matched {len(result)} {label} nodes"
            )
            raise ConsistencyError(1, len(result), f"find_by_id {label}")
        return hydrate(self._record_type, self._meta, result.records[0])

    def exists_by_id(self, id: Any, timeout: Optional[float] = None) -> bool:
        """True if a node with primary key ``id`` exists."""
        return self.count_by_property(self._meta.pk_property, id, timeout=timeout) > 0

    def find_all(self, timeout: Optional[float] = None) -> List[T]:
        """Return every node of this label. Loads everything into memory."""
        label = self._meta.label
        qb = QueryBuilder().match(N(NODE_ALIAS, label)).return_(NODE_ALIAS)
        try:
            result = self._run(qb, f"find_all {label}", timeout)
        except NotFoundError:
            return []
        return self._hydrate_all(result)

    def find_by_property(
        self, name: str, value: Any, timeout: Optional[float] = None
    ) -> List[T]:
        """
        Return every node whose mapped property ``name`` equals ``value``.

        Raises:
            InvalidPropertyError: ``name`` is not a mapped property
        """
        self._require_property(name)
        label = self._meta.label
        qb = (
            QueryBuilder()
            .match(N(NODE_ALIAS, label).with_properties({name: value}))
            .return_(NODE_ALIAS)
        )
        try:
            result = self._run(qb, f"find_by_property {label}.{name}", timeout)
        except NotFoundError:
            return []
        return self._hydrate_all(result)

    # =========================================================================
    # CUSTOM QUERIES
    # =========================================================================

    def _run_custom(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]],
        operation: str,
        timeout: Optional[float],
    ) -> QueryResult:
        text, built_params = compile_query(query, params)
        return execute(self._runner, text, built_params, operation, timeout)

    def find(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[T]:
        """
        Execute a custom query and hydrate every row.

        Rows containing a node are mapped from that node; projection rows
        (``RETURN u.name, u.email``) fill only the matching fields and leave
        the rest at their zero values.

        Args:
            query: QueryBuilder, Query, or raw Cypher string
            params: Parameters, only with a raw string
        """
        try:
            result = self._run_custom(query, params, f"find {self._meta.label}", timeout)
        except NotFoundError:
            return []
        return self._hydrate_all(result)

    def find_one(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Execute a custom query that must return exactly one row.

        Raises:
            NotFoundError: zero rows
            ConsistencyError: more than one row
        """
        label = self._meta.label
        result = self._run_custom(query, params, f"find_one {label}", timeout)
        if len(result) == 0:
            raise NotFoundError(f"find_one {label}: no record matched")
        if len(result) > 1:
            logger.warning(f"find_one {label}: query returned {len(result)} rows")
            raise ConsistencyError(1, len(result), f"find_one {label}")
        return hydrate(self._record_type, self._meta, result.records[0])

    def find_first(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Execute a custom query and hydrate its first row.

        Intended for queries that already ORDER BY / LIMIT; extra rows are
        ignored.

        Raises:
            NotFoundError: zero rows
        """
        label = self._meta.label
        result = self._run_custom(query, params, f"find_first {label}", timeout)
        if len(result) == 0:
            raise NotFoundError(f"find_first {label}: no record matched")
        return hydrate(self._record_type, self._meta, result.records[0])

    # =========================================================================
    # COUNTS
    # =========================================================================

    def count(self, timeout: Optional[float] = None) -> int:
        """Number of nodes with this label."""
        label = self._meta.label
        qb = (
            QueryBuilder()
            .match(N(NODE_ALIAS, label))
            .return_(f"count({NODE_ALIAS}) AS {COUNT_ALIAS}")
        )
        return self._read_count(self._run(qb, f"count {label}", timeout), f"count {label}")

    def count_by_property(
        self, name: str, value: Any, timeout: Optional[float] = None
    ) -> int:
        """
        Number of nodes whose mapped property ``name`` equals ``value``.

        Raises:
            InvalidPropertyError: ``name`` is not a mapped property
        """
        self._require_property(name)
        label = self._meta.label
        qb = (
            QueryBuilder()
            .match(N(NODE_ALIAS, label).with_properties({name: value}))
            .return_(f"count({NODE_ALIAS}) AS {COUNT_ALIAS}")
        )
        operation = f"count_by_property {label}.{name}"
        return self._read_count(self._run(qb, operation, timeout), operation)

    def count_with_query(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Execute a custom query projecting a single aliased count.

        Zero rows count as 0.

        Raises:
            ConsistencyError: more than one row
            ResultShapeError: the row does not hold exactly one integer column
        """
        operation = f"count_with_query {self._meta.label}"
        return self._read_count(self._run_custom(query, params, operation, timeout), operation)

    @staticmethod
    def _read_count(result: QueryResult, operation: str) -> int:
        if len(result) == 0:
            return 0
        if len(result) > 1:
            raise ConsistencyError(1, len(result), operation)

        record = result.records[0]
        if len(record) != 1:
            raise ResultShapeError(
                f"{operation}: expected a single count column, got {list(record.keys())}"
            )
        value = record[0]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ResultShapeError(
                f"{operation}: count column '{record.keys()[0]}' is not an integer: {value!r}"
            )
        return value

    def __repr__(self) -> str:
        return f"Repository({self._record_type.__name__}, label={self._meta.label!r})"


__all__ = ["Repository", "execute"]
