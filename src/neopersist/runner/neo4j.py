"""
Neo4j Query Runner.

Executes Cypher through the official Neo4j Python driver and converts driver
graph types into neopersist row values.

Requires: pip install neopersist[neo4j]

Example:
    >>> from neopersist.runner import Neo4jRunner
    >>> from neopersist.settings import RunnerSettings
    >>>
    >>> runner = Neo4jRunner(RunnerSettings(
    ...     uri="neo4j://localhost:7687",
    ...     username="neo4j",
    ...     password="${NEO4J_PASSWORD}",
    ... ))
    >>> result = runner.run("MATCH (u:User) RETURN u LIMIT $n", {"n": 5})
    >>> runner.close()
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from ..settings import RunnerSettings, load_settings
from ..values import NodeValue, QueryResult, Record, RelationshipValue
from .protocol import NEO4J_AVAILABLE


logger = logging.getLogger(__name__)


def to_value(value: Any) -> Any:
    """
    Convert a driver value into a row value.

    Nodes and relationships become NodeValue/RelationshipValue, paths become a
    list alternating nodes and relationships, temporal and spatial types are
    converted with ``to_native()`` where available.
    """
    from neo4j.graph import Node, Path, Relationship

    if isinstance(value, Node):
        return NodeValue(
            id=value.element_id,
            labels=tuple(sorted(value.labels)),
            properties={k: to_value(v) for k, v in value.items()},
        )
    if isinstance(value, Relationship):
        return RelationshipValue(
            id=value.element_id,
            start_id=value.start_node.element_id,
            end_id=value.end_node.element_id,
            type=value.type,
            properties={k: to_value(v) for k, v in value.items()},
        )
    if isinstance(value, Path):
        nodes = list(value.nodes)
        items = [to_value(nodes[0])] if nodes else []
        for rel, node in zip(value.relationships, nodes[1:]):
            items.append(to_value(rel))
            items.append(to_value(node))
        return items
    if isinstance(value, (list, tuple)):
        return [to_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_value(v) for k, v in value.items()}
    if hasattr(value, "to_native"):
        return value.to_native()
    return value


class Neo4jRunner:
    """
    QueryRunner backed by the Neo4j Python driver.

    Each ``run`` executes in an auto-commit session on the configured
    database and buffers the whole result. Transient driver failures
    (ServiceUnavailable, TransientError, SessionExpired) are retried with
    exponential backoff; every other error propagates unchanged.
    """

    def __init__(
        self,
        settings: Optional[RunnerSettings] = None,
        verify: bool = True,
        **kwargs: Any,
    ):
        """
        Initialize the runner and its driver.

        Args:
            settings: Runner settings; built from ``kwargs`` when omitted
            verify: Verify connectivity immediately
            **kwargs: RunnerSettings fields when ``settings`` is None

        Raises:
            ImportError: If the neo4j driver is not installed
            ValueError: If authentication fails
            ConnectionError: If the server is unreachable
        """
        if not NEO4J_AVAILABLE:
            raise ImportError(
                "Neo4j driver not installed. Install with: pip install neopersist[neo4j]"
            )

        self._settings = settings if settings is not None else RunnerSettings(**kwargs)
        self._lock = threading.Lock()
        self._closed = False
        self._driver = None
        self._init_driver(verify=verify)

    @classmethod
    def from_settings(cls, path: Union[str, Path], verify: bool = True) -> "Neo4jRunner":
        """Create a runner from a YAML settings file (see load_settings)."""
        return cls(load_settings(path), verify=verify)

    @property
    def settings(self) -> RunnerSettings:
        return self._settings

    def _init_driver(self, verify: bool = True) -> None:
        """Create the driver with basic or bearer authentication."""
        from neo4j import GraphDatabase, basic_auth, bearer_auth
        from neo4j.exceptions import AuthError, ServiceUnavailable

        s = self._settings
        auth = None
        if s.bearer_token:
            auth = bearer_auth(s.bearer_token)
        elif s.username and s.password:
            auth = basic_auth(s.username, s.password)

        try:
            self._driver = GraphDatabase.driver(
                s.uri,
                auth=auth,
                max_connection_pool_size=s.max_connection_pool_size,
                max_connection_lifetime=s.max_connection_lifetime,
                connection_acquisition_timeout=s.connection_acquisition_timeout,
            )
            if verify:
                self._driver.verify_connectivity()
        except AuthError as e:
            self._driver = None
            raise ValueError("Authentication failed: Invalid credentials") from e
        except ServiceUnavailable as e:
            self._driver = None
            raise ConnectionError("Unable to connect to Neo4j: Server unavailable") from e

        logger.debug(f"Neo4j driver created for {s.uri} (database={s.database})")

    def _get_session(self):
        if self._closed:
            raise ConnectionError("Runner is closed")

        with self._lock:
            if self._driver is None:
                # A dead server surfaces as ServiceUnavailable from the session,
                # which the retry loop handles.
                self._init_driver(verify=False)
            return self._driver.session(database=self._settings.database)

    def _reset_driver(self) -> None:
        with self._lock:
            if self._driver is not None:
                try:
                    self._driver.close()
                except Exception as e:
                    logger.debug(f"Ignoring error while closing stale driver: {e}")
                self._driver = None

    def _execute_with_retry(self, work: Callable[[Any], Any]) -> Any:
        """Run ``work(session)``, retrying transient driver failures."""
        from neo4j.exceptions import ServiceUnavailable, SessionExpired, TransientError

        attempts = self._settings.max_retries
        last_error = None
        for attempt in range(attempts):
            try:
                with self._get_session() as session:
                    return work(session)
            except (ServiceUnavailable, TransientError, SessionExpired) as e:
                last_error = e
                logger.warning(
                    f"Transient Neo4j failure ({type(e).__name__}), "
                    f"attempt {attempt + 1}/{attempts}"
                )
                if attempt < attempts - 1:
                    time.sleep(self._settings.retry_delay * (2**attempt))
                    if isinstance(e, (ServiceUnavailable, SessionExpired)):
                        self._reset_driver()

        raise ConnectionError(
            f"Failed after {attempts} attempts: {type(last_error).__name__}"
        ) from last_error

    def run(
        self,
        query: str,
        params: Mapping[str, Any],
        timeout: Optional[float] = None,
    ) -> QueryResult:
        """Execute ``query`` and return every row, converted to row values."""
        from neo4j import Query

        effective_timeout = timeout if timeout is not None else self._settings.query_timeout
        parameters = dict(params or {})

        def work(session):
            result = session.run(Query(query, timeout=effective_timeout), parameters)
            keys = tuple(result.keys())
            records = [
                Record(keys, [to_value(v) for v in record.values()]) for record in result
            ]
            return QueryResult(records=records, keys=keys)

        logger.debug(f"Running query with params {sorted(parameters)}:\n{query}")
        return self._execute_with_retry(work)

    def verify(self) -> None:
        """Check connectivity; raises the driver's error on failure."""
        if self._closed:
            raise ConnectionError("Runner is closed")
        with self._lock:
            if self._driver is None:
                self._init_driver(verify=False)
            driver = self._driver
        driver.verify_connectivity()

    def close(self) -> None:
        """Close the driver. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self._reset_driver()

    def __enter__(self) -> "Neo4jRunner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass

    def __repr__(self) -> str:
        """Return string representation (without credentials)."""
        return (
            f"Neo4jRunner(uri='{self._settings.uri}', "
            f"database='{self._settings.database}')"
        )

    def __str__(self) -> str:
        return self.__repr__()


__all__ = ["Neo4jRunner", "to_value"]
