"""
Query runners for neopersist.

Protocol:
    - QueryRunner: executes a query with parameters, returns a buffered QueryResult

Runners:
    - Neo4jRunner: official Neo4j Python driver (optional ``neo4j`` extra)

Availability flags:
    - NEO4J_AVAILABLE: True if the neo4j driver is installed

Example:
    >>> from neopersist.runner import Neo4jRunner, NEO4J_AVAILABLE
    >>>
    >>> if NEO4J_AVAILABLE:
    ...     runner = Neo4jRunner(uri="bolt://localhost:7687", username="neo4j", password="pw")
    ...     result = runner.run("RETURN 1 AS one", {})
    ...     runner.close()
"""

from .protocol import NEO4J_AVAILABLE, QueryRunner, _check_neo4j_available

__all__ = [
    "QueryRunner",
    "NEO4J_AVAILABLE",
    "_check_neo4j_available",
    # Lazy loaded
    "Neo4jRunner",
]


def __getattr__(name: str):
    """Lazy load runner classes so importing neopersist never needs the driver."""
    if name == "Neo4jRunner":
        from .neo4j import Neo4jRunner

        return Neo4jRunner
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
