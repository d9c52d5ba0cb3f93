"""
neopersist: an object-graph mapper for Neo4j.

Record types are plain dataclasses or pydantic models whose fields carry an
``ogm`` directive naming the graph property they map to. Exactly one field is
the primary key.

Example:
    >>> from dataclasses import dataclass
    >>> from neopersist import PersistenceManager, mapped, node
    >>> from neopersist.runner import Neo4jRunner
    >>>
    >>> @node(label="User")
    ... @dataclass
    ... class User:
    ...     user_id: str = mapped("user_id", pk=True)
    ...     name: str = mapped("name", default="")
    >>>
    >>> manager = PersistenceManager(Neo4jRunner(uri="bolt://localhost:7687"))
    >>> users = manager.repository_for(User)
    >>> users.save(User(user_id="u1", name="Alice"))
    >>> users.find_by_id("u1").name
    'Alice'
"""

# Errors
from .errors import (
    ConsistencyError,
    DuplicatePrimaryKeyError,
    DuplicatePropertyError,
    InvalidPropertyError,
    MetadataError,
    MissingPrimaryKeyError,
    MissingPropertyNameError,
    NeopersistError,
    NotARecordError,
    NotFoundError,
    QueryBuildError,
    QueryExecutionError,
    ResultShapeError,
)

# Metadata
from .metadata import (
    EntityMetadata,
    MetadataCache,
    mapped,
    mapped_field,
    node,
    resolve_metadata,
)

# Query building
from .cypher import N, Query, QueryBuilder, R, compile_query

# Row values and results
from .values import NodeValue, QueryResult, Record, RelationshipValue
from .graph import GraphEdge, GraphNode, GraphResult

# Persistence
from .repository import Repository
from .manager import PersistenceManager

# Runners and configuration
from .runner import NEO4J_AVAILABLE, QueryRunner
from .settings import RunnerSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    # Errors
    "NeopersistError",
    "MetadataError",
    "NotARecordError",
    "MissingPropertyNameError",
    "MissingPrimaryKeyError",
    "DuplicatePrimaryKeyError",
    "DuplicatePropertyError",
    "NotFoundError",
    "ConsistencyError",
    "InvalidPropertyError",
    "ResultShapeError",
    "QueryBuildError",
    "QueryExecutionError",
    # Metadata
    "EntityMetadata",
    "MetadataCache",
    "mapped",
    "mapped_field",
    "node",
    "resolve_metadata",
    # Query building
    "N",
    "R",
    "Query",
    "QueryBuilder",
    "compile_query",
    # Values
    "NodeValue",
    "RelationshipValue",
    "Record",
    "QueryResult",
    "GraphNode",
    "GraphEdge",
    "GraphResult",
    # Persistence
    "Repository",
    "PersistenceManager",
    # Runners
    "QueryRunner",
    "NEO4J_AVAILABLE",
    "RunnerSettings",
    "load_settings",
    # Lazy loaded
    "Neo4jRunner",
]


def __getattr__(name: str):
    if name == "Neo4jRunner":
        from .runner.neo4j import Neo4jRunner

        return Neo4jRunner
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
