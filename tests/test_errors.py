"""Unit tests for the error taxonomy."""

import unittest

from neopersist.errors import (
    RETRYABLE_ERRORS,
    ConsistencyError,
    InvalidPropertyError,
    MetadataError,
    NeopersistError,
    NotFoundError,
    QueryBuildError,
    QueryExecutionError,
    ResultShapeError,
)


class TransientError(Exception):
    """Named like the driver's transient error class."""


class TestErrorHierarchy(unittest.TestCase):
    """Test error base classes and messages."""

    def test_common_base(self):
        """Test every error derives from NeopersistError."""
        for cls in (
            MetadataError,
            NotFoundError,
            ConsistencyError,
            InvalidPropertyError,
            QueryBuildError,
            QueryExecutionError,
            ResultShapeError,
        ):
            self.assertTrue(issubclass(cls, NeopersistError), cls)

    def test_builtin_compatibility(self):
        """Test errors can be caught as their builtin counterparts."""
        self.assertTrue(issubclass(NotFoundError, LookupError))
        self.assertTrue(issubclass(InvalidPropertyError, ValueError))

    def test_not_found_is_distinct_from_consistency(self):
        """Test NotFoundError and ConsistencyError are unrelated."""
        self.assertFalse(issubclass(ConsistencyError, NotFoundError))
        self.assertFalse(issubclass(NotFoundError, ConsistencyError))

    def test_consistency_message(self):
        """Test ConsistencyError message and counts."""
        error = ConsistencyError(1, 3, "find_by_id User")
        self.assertEqual(str(error), "find_by_id User: expected 1 record but found 3")
        self.assertEqual((error.expected, error.actual), (1, 3))

    def test_invalid_property_message(self):
        """Test InvalidPropertyError names the property and label."""
        self.assertEqual(
            str(InvalidPropertyError("age", "User")),
            "property 'age' is not a mapped property for entity type User",
        )


class TestQueryExecutionError(unittest.TestCase):
    """Test the retryable flag."""

    def test_retryable_by_cause_name(self):
        """Test transient causes are retryable."""
        self.assertIn("TransientError", RETRYABLE_ERRORS)
        self.assertTrue(QueryExecutionError("x", cause=TransientError()).retryable)
        self.assertTrue(QueryExecutionError("x", cause=TimeoutError()).retryable)

    def test_not_retryable(self):
        """Test other causes and a missing cause are not retryable."""
        self.assertFalse(QueryExecutionError("x", cause=ValueError()).retryable)
        self.assertFalse(QueryExecutionError("x").retryable)


if __name__ == "__main__":
    unittest.main()
