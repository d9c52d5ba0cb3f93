"""
Persistence manager: repositories, relationships and graph queries.

The manager owns a MetadataCache shared by every repository it creates and
by its cross-entity operations, so each record type's mapping is derived once
for the manager's lifetime.

Example:
    >>> manager = PersistenceManager(runner)
    >>> users = manager.repository_for(User)
    >>> posts = manager.repository_for(Post)
    >>> alice, post = users.find_by_id("u1"), posts.find_by_id("p1")
    >>> manager.create_relation(alice, post, "WROTE", {"at": "2024-01-01"})
    >>>
    >>> graph = manager.find_graph(
    ...     QueryBuilder()
    ...     .match(N("u", "User"), R("r", "WROTE").to(), N("p", "Post"))
    ...     .return_("u", "r", "p")
    ... )
    >>> len(graph.nodes), len(graph.edges)
    (2, 1)
"""

import logging
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar

from .cypher import N, QueryBuilder, QueryLike, R, compile_query
from .errors import ConsistencyError, NotARecordError, NotFoundError, QueryBuildError
from .graph import GraphResult
from .mapping import primary_key_value
from .metadata import EntityMetadata, MetadataCache
from .repository import Repository, execute
from .runner.protocol import QueryRunner
from .values import NodeValue, RelationshipValue, iter_graph_values


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceManager:
    """
    Entry point of the persistence layer.

    Thread-safe: the metadata cache tolerates concurrent first use of a type
    and nothing else is mutated after construction.
    """

    def __init__(self, runner: QueryRunner, cache: Optional[MetadataCache] = None):
        """
        Args:
            runner: Query runner shared by the manager and its repositories
            cache: Metadata cache (a new one is created if omitted)
        """
        self._runner = runner
        self._cache = cache if cache is not None else MetadataCache()

    @property
    def runner(self) -> QueryRunner:
        return self._runner

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    def metadata_for(self, record_type: Any) -> EntityMetadata:
        """Cached metadata for a record class or instance."""
        return self._cache.get(record_type)

    def repository_for(self, record_type: Type[T]) -> Repository[T]:
        """
        Create a repository for ``record_type`` using cached metadata.

        Raises:
            MetadataError: if the type's mapping is invalid
        """
        if not isinstance(record_type, type):
            raise NotARecordError(record_type)
        return Repository(record_type, self._runner, self.metadata_for(record_type))

    def _metadata_and_pk(self, entity: Any) -> Tuple[EntityMetadata, Any]:
        if entity is None or isinstance(entity, type):
            raise NotARecordError(entity)
        meta = self.metadata_for(entity)
        return meta, primary_key_value(entity, meta)

    def create_relation(
        self,
        from_entity: Any,
        to_entity: Any,
        relation_type: str,
        properties: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> RelationshipValue:
        """
        Create a directed relationship between two persisted entities.

        Both endpoints are matched by label and primary key taken from the
        instances' current values; the entities may be of different types.
        No nodes are created.

        Args:
            from_entity: Start node entity (instance, not class)
            to_entity: End node entity
            relation_type: Relationship type, e.g. "WROTE"
            properties: Relationship properties

        Returns:
            The created relationship

        Raises:
            NotARecordError: an endpoint is not a record instance
            QueryBuildError: relation_type is empty
            NotFoundError: either endpoint does not exist
            ConsistencyError: a primary key matched several nodes, so more
                than one relationship was created (the writes are not undone)
        """
        if not relation_type or not str(relation_type).strip():
            raise QueryBuildError("relation_type is required")

        from_meta, from_pk = self._metadata_and_pk(from_entity)
        to_meta, to_pk = self._metadata_and_pk(to_entity)

        qb = (
            QueryBuilder()
            .match(N("a", from_meta.label).with_properties({from_meta.pk_property: from_pk}))
            .match(N("b", to_meta.label).with_properties({to_meta.pk_property: to_pk}))
            .create(N("a"), R("r", relation_type).to().with_properties(properties), N("b"))
            .return_("r")
        )
        query, params = qb.build()
        operation = f"create_relation {from_meta.label}-[{relation_type}]->{to_meta.label}"
        result = execute(self._runner, query, params, operation, timeout)

        if len(result) == 0:
            raise NotFoundError(
                f"{operation}: endpoint not found "
                f"({from_meta.label} {from_pk!r} or {to_meta.label} {to_pk!r})"
            )
        if len(result) > 1:
            logger.warning(
                f"{operation}: primary keys {from_pk!r}/{to_pk!r} matched more than one "
                f"node pair, {len(result)} relationships created"
            )
            raise ConsistencyError(1, len(result), operation)
        logger.debug(f"{operation}: relationship created")
        return result.records[0].get("r")

    def find_graph(
        self,
        query: QueryLike,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> GraphResult:
        """
        Execute a graph query and collect its nodes and relationships.

        Every value of every row is walked (including lists and maps such as
        ``collect(n)`` or paths); each node and relationship is added once,
        keyed by its element id, no matter how many rows repeat it. Scalar
        columns are ignored.

        Unlike find_all, an empty result is treated as absence of the
        requested subgraph.

        Args:
            query: QueryBuilder, Query, or raw Cypher string
            params: Parameters, only with a raw string

        Raises:
            NotFoundError: the query returned zero rows
        """
        text, built_params = compile_query(query, params)
        result = execute(self._runner, text, built_params, "find_graph", timeout)
        if len(result) == 0:
            raise NotFoundError("find_graph: query returned no records")

        graph = GraphResult()
        for record in result:
            for value in record.values():
                for element in iter_graph_values(value):
                    if isinstance(element, NodeValue):
                        graph.add_node(element)
                    else:
                        graph.add_edge(element)

        logger.debug(
            f"find_graph: {len(result)} rows -> {len(graph.nodes)} nodes, {len(graph.edges)} edges"
        )
        return graph

    def __repr__(self) -> str:
        return f"PersistenceManager(runner={self._runner!r}, cached_types={len(self._cache)})"


__all__ = ["PersistenceManager"]
