"""Unit tests for runner row values, records and results."""

import unittest

from neopersist.values import (
    NodeValue,
    QueryResult,
    Record,
    RelationshipValue,
    iter_graph_values,
)


class TestRecord(unittest.TestCase):
    """Test Record access by key and position."""

    def setUp(self):
        """Create a two-column record."""
        self.record = Record(["name", "age"], ["Alice", 30])

    def test_lookup_by_key_and_position(self):
        """Test indexing by column name and by position."""
        self.assertEqual(self.record["name"], "Alice")
        self.assertEqual(self.record[1], 30)

    def test_missing_key(self):
        """Test KeyError on a missing key and get() defaults."""
        with self.assertRaises(KeyError):
            self.record["email"]
        self.assertIsNone(self.record.get("email"))
        self.assertEqual(self.record.get("email", "n/a"), "n/a")

    def test_keys_values_data(self):
        """Test keys, values, items, data, iteration and length."""
        self.assertEqual(self.record.keys(), ("name", "age"))
        self.assertEqual(self.record.values(), ("Alice", 30))
        self.assertEqual(self.record.data(), {"name": "Alice", "age": 30})
        self.assertEqual(self.record.items(), [("name", "Alice"), ("age", 30)])
        self.assertEqual(list(self.record), ["Alice", 30])
        self.assertIn("age", self.record)
        self.assertEqual(len(self.record), 2)

    def test_length_mismatch(self):
        """Test that keys and values must have the same length."""
        with self.assertRaises(ValueError):
            Record(["a", "b"], [1])

    def test_from_dict_and_equality(self):
        """Test building from a dict and comparing records."""
        self.assertEqual(Record.from_dict({"name": "Alice", "age": 30}), self.record)
        self.assertNotEqual(Record(["name"], ["Bob"]), Record(["name"], ["Alice"]))


class TestQueryResult(unittest.TestCase):
    """Test QueryResult construction and iteration."""

    def test_from_rows(self):
        """Test building a result from keys and value rows."""
        result = QueryResult.from_rows(["n"], [[1], [2]])
        self.assertEqual(len(result), 2)
        self.assertEqual(result.keys, ("n",))
        self.assertEqual([r["n"] for r in result], [1, 2])

    def test_empty(self):
        """Test an empty result keeps its keys."""
        result = QueryResult.empty(["n"])
        self.assertEqual(len(result), 0)
        self.assertEqual(list(result), [])
        self.assertEqual(result.keys, ("n",))


class TestGraphValues(unittest.TestCase):
    """Test node and relationship values."""

    def test_values_are_hashable_by_identity_fields(self):
        """Test equal nodes compare and hash equal."""
        a = NodeValue(id="1", labels=("User",), properties={"name": "A"})
        b = NodeValue(id="1", labels=("User",), properties={"name": "A"})
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))

    def test_iter_graph_values_walks_nested_values(self):
        """Test that nested lists and maps are searched depth first."""
        n1 = NodeValue(id="1")
        n2 = NodeValue(id="2")
        rel = RelationshipValue(id="r", start_id="1", end_id="2", type="KNOWS")

        found = list(iter_graph_values({"path": [n1, rel, n2], "meta": {"count": 3}, "x": None}))

        self.assertEqual(found, [n1, rel, n2])

    def test_scalars_yield_nothing(self):
        """Test that scalars and None contain no graph values."""
        self.assertEqual(list(iter_graph_values("text")), [])
        self.assertEqual(list(iter_graph_values(42)), [])
        self.assertEqual(list(iter_graph_values(None)), [])


if __name__ == "__main__":
    unittest.main()
