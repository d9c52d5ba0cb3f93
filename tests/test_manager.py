"""
Unit tests for PersistenceManager with a mocked query runner.

Tests cover:
- repository_for and the shared metadata cache
- create_relation query shape, validation and missing endpoints
- create_relation when a primary key matches several nodes
- find_graph deduplication across rows, lists and paths
- find_graph on an empty result
"""

import unittest
from unittest.mock import MagicMock

from neopersist.cypher import N, QueryBuilder, R
from neopersist.errors import (
    ConsistencyError,
    NotARecordError,
    NotFoundError,
    QueryBuildError,
    QueryExecutionError,
)
from neopersist.manager import PersistenceManager
from neopersist.metadata import MetadataCache, resolve_metadata
from neopersist.values import NodeValue, RelationshipValue

from records import (
    Account,
    Post,
    User,
    last_query,
    mock_runner,
    post_node,
    result,
    user_node,
    wrote,
)


class TestRepositoryFor(unittest.TestCase):
    """Test repository construction through the manager."""

    def test_repository_uses_cached_metadata(self):
        """Test repositories for one type share cached metadata."""
        manager = PersistenceManager(mock_runner())

        first = manager.repository_for(User)
        second = manager.repository_for(User)

        self.assertIs(first.metadata, second.metadata)
        self.assertIs(first.metadata, manager.metadata_for(User(user_id="u1")))
        self.assertIn(User, manager.cache)

    def test_repositories_share_the_runner(self):
        """Test every repository runs through the manager's runner."""
        runner = mock_runner()
        manager = PersistenceManager(runner)
        manager.repository_for(User).delete("u1")
        manager.repository_for(Post).delete("p1")
        self.assertEqual(runner.run.call_count, 2)

    def test_supplied_cache_is_used(self):
        """Test a caller-supplied cache resolves each type once."""
        resolver = MagicMock(side_effect=resolve_metadata)
        manager = PersistenceManager(mock_runner(), cache=MetadataCache(resolver=resolver))

        manager.repository_for(Account)
        manager.repository_for(Account)

        resolver.assert_called_once_with(Account)

    def test_instance_rejected(self):
        """Test repository_for requires a type, not an instance."""
        with self.assertRaises(NotARecordError):
            PersistenceManager(mock_runner()).repository_for(User(user_id="u1"))


class TestCreateRelation(unittest.TestCase):
    """Test relationship creation between two records."""

    def setUp(self):
        """Create a user and a post endpoint."""
        self.alice = User(user_id="u1", name="Alice")
        self.post = Post(post_id="p1", title="Hello")

    def test_query_shape(self):
        """Test the MATCH/MATCH/CREATE query, parameters and timeout."""
        u, p = user_node("u1"), post_node("p1")
        rel = wrote("r1", u, p, at="2024-01-01")
        runner = mock_runner(result(["r"], [rel]))

        created = PersistenceManager(runner).create_relation(
            self.alice, self.post, "WROTE", {"at": "2024-01-01"}, timeout=4
        )

        self.assertEqual(created, rel)
        query, params, timeout = last_query(runner)
        self.assertEqual(
            query,
            "MATCH (a:User {userId: $p0})\n"
            "MATCH (b:Post {postId: $p1})\n"
            "CREATE (a)-[r:WROTE {at: $p2}]->(b)\n"
            "RETURN r",
        )
        self.assertEqual(params, {"p0": "u1", "p1": "p1", "p2": "2024-01-01"})
        self.assertEqual(timeout, 4)

    def test_without_properties(self):
        """Test a relationship without a property map."""
        runner = mock_runner(result(["r"], [wrote("r1", user_node("u1"), post_node("p1"))]))
        PersistenceManager(runner).create_relation(self.alice, self.post, "WROTE")

        query, params, _ = last_query(runner)
        self.assertIn("CREATE (a)-[r:WROTE]->(b)", query)
        self.assertEqual(params, {"p0": "u1", "p1": "p1"})

    def test_same_type_endpoints(self):
        """Test both endpoints may share a label."""
        bob = User(user_id="u2", name="Bob")
        runner = mock_runner(result(["r"], [wrote("r1", user_node("u1"), user_node("u2"))]))
        PersistenceManager(runner).create_relation(self.alice, bob, "FOLLOWS")

        query, params, _ = last_query(runner)
        self.assertIn("MATCH (b:User {userId: $p1})", query)
        self.assertEqual(params, {"p0": "u1", "p1": "u2"})

    def test_missing_endpoint(self):
        """Test zero rows raise NotFoundError."""
        runner = mock_runner(result(["r"]))
        with self.assertRaises(NotFoundError):
            PersistenceManager(runner).create_relation(self.alice, self.post, "WROTE")

    def test_duplicate_endpoint_keys(self):
        """Test several created relationships raise ConsistencyError and log a warning."""
        u, p = user_node("u1"), post_node("p1")
        runner = mock_runner(result(["r"], [wrote("r1", u, p)], [wrote("r2", u, p)]))

        with self.assertLogs("neopersist.manager", level="WARNING") as logs:
            with self.assertRaises(ConsistencyError) as ctx:
                PersistenceManager(runner).create_relation(self.alice, self.post, "WROTE")

        self.assertEqual(ctx.exception.expected, 1)
        self.assertEqual(ctx.exception.actual, 2)
        self.assertIn("2 relationships created", logs.output[0])

    def test_class_endpoint_rejected(self):
        """Test classes and None are rejected as endpoints."""
        runner = mock_runner()
        with self.assertRaises(NotARecordError):
            PersistenceManager(runner).create_relation(User, self.post, "WROTE")
        with self.assertRaises(NotARecordError):
            PersistenceManager(runner).create_relation(self.alice, None, "WROTE")
        runner.run.assert_not_called()

    def test_non_record_endpoint_rejected(self):
        """Test a plain dict is rejected as an endpoint."""
        runner = mock_runner()
        with self.assertRaises(NotARecordError):
            PersistenceManager(runner).create_relation(self.alice, {"postId": "p1"}, "WROTE")
        runner.run.assert_not_called()

    def test_relation_type_required(self):
        """Test a blank relationship type fails before any query runs."""
        runner = mock_runner()
        with self.assertRaises(QueryBuildError):
            PersistenceManager(runner).create_relation(self.alice, self.post, "  ")
        runner.run.assert_not_called()

    def test_runner_failure_wrapped(self):
        """Test runner exceptions become QueryExecutionError."""
        runner = mock_runner()
        runner.run.side_effect = RuntimeError("boom")
        with self.assertRaises(QueryExecutionError):
            PersistenceManager(runner).create_relation(self.alice, self.post, "WROTE")


class TestFindGraph(unittest.TestCase):
    """Test graph extraction from query results."""

    def test_fan_out_rows_deduplicated(self):
        """Test nodes repeated across rows appear once."""
        u = user_node("u1", "Alice")
        p1, p2 = post_node("p1"), post_node("p2")
        r1, r2 = wrote("r1", u, p1), wrote("r2", u, p2)
        runner = mock_runner(result(["u", "r", "p"], [u, r1, p1], [u, r2, p2]))

        graph = PersistenceManager(runner).find_graph(
            QueryBuilder()
            .match(N("u", "User"), R("r", "WROTE").to(), N("p", "Post"))
            .return_("u", "r", "p")
        )

        self.assertEqual(graph.node_ids, ["n-u1", "n-p1", "n-p2"])
        self.assertEqual(graph.edge_ids, ["r1", "r2"])
        self.assertEqual(graph.edges[0].source, "n-u1")
        self.assertEqual(graph.edges[0].target, "n-p1")
        self.assertEqual(graph.get_node("n-u1").properties["name"], "Alice")

    def test_collections_and_paths_walked(self):
        """Test nodes inside lists and paths are collected."""
        u = user_node("u1")
        p1, p2 = post_node("p1"), post_node("p2")
        r1 = wrote("r1", u, p1)
        runner = mock_runner(
            result(["path", "posts", "total"], [[u, r1, p1], [p1, p2], 2])
        )

        graph = PersistenceManager(runner).find_graph(
            "MATCH path = (u:User)-[:WROTE]->(p) RETURN path, collect(p) AS posts, count(p) AS total"
        )

        self.assertEqual(sorted(graph.node_ids), ["n-p1", "n-p2", "n-u1"])
        self.assertEqual(graph.edge_ids, ["r1"])

    def test_rows_without_graph_values(self):
        """Test scalar-only rows give an empty graph."""
        runner = mock_runner(result(["name"], ["Alice"]))
        graph = PersistenceManager(runner).find_graph("MATCH (u:User) RETURN u.name AS name")
        self.assertEqual(graph.nodes, [])
        self.assertEqual(graph.edges, [])

    def test_empty_result_is_not_found(self):
        """Test zero rows raise NotFoundError."""
        with self.assertRaises(NotFoundError):
            PersistenceManager(mock_runner()).find_graph("MATCH (n:Nothing) RETURN n")

    def test_params_and_timeout_passed_through(self):
        """Test raw query parameters and timeout reach the runner."""
        runner = mock_runner(result(["n"], [NodeValue(id="1")]))
        PersistenceManager(runner).find_graph(
            "MATCH (n {id: $id}) RETURN n", {"id": 1}, timeout=9
        )
        _, params, timeout = last_query(runner)
        self.assertEqual(params, {"id": 1})
        self.assertEqual(timeout, 9)

    def test_relationship_only_rows(self):
        """Test relationships are collected without their endpoint nodes."""
        rel = RelationshipValue(id="r1", start_id="a", end_id="b", type="KNOWS")
        runner = mock_runner(result(["r"], [rel], [rel]))

        graph = PersistenceManager(runner).find_graph("MATCH ()-[r:KNOWS]->() RETURN r")

        self.assertEqual(graph.nodes, [])
        self.assertEqual(graph.edge_ids, ["r1"])


if __name__ == "__main__":
    unittest.main()
