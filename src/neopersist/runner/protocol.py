"""
Query Runner Protocol and driver availability check.

A query runner executes one Cypher statement with its parameters and returns
a fully buffered QueryResult. Runners own connections, retries and
reconnection; repositories and the manager only call ``run``.
"""

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from ..values import QueryResult


@runtime_checkable
class QueryRunner(Protocol):
    """
    Protocol for query executors.

    Implementations return every row before returning (no streaming) and
    raise on failure. An empty result is a QueryResult with no records, not
    an error.
    """

    def run(
        self,
        query: str,
        params: Mapping[str, Any],
        timeout: Optional[float] = None,
    ) -> QueryResult:
        """
        Execute a query.

        Args:
            query: Cypher query text
            params: Query parameters
            timeout: Optional timeout in seconds, passed through by callers
                unchanged

        Returns:
            QueryResult with records in server order
        """
        ...


# =============================================================================
# NEO4J AVAILABILITY CHECK
# =============================================================================


def _check_neo4j_available() -> bool:
    """Check if the Neo4j driver is installed."""
    try:
        import neo4j  # noqa: F401

        return True
    except ImportError:
        return False


NEO4J_AVAILABLE = _check_neo4j_available()


__all__ = ["QueryRunner", "NEO4J_AVAILABLE", "_check_neo4j_available"]
