"""
Error taxonomy for the persistence layer.

Every operation either returns a value or raises one of the exceptions below.
All of them derive from NeopersistError so callers can catch the whole family.

Categories:
    - Metadata errors: the record type cannot be mapped (fail fast, non-retryable)
    - NotFoundError: a singular lookup (or find_graph) matched zero rows
    - ConsistencyError: more rows than the lookup allows (data-integrity problem)
    - InvalidPropertyError: a lookup names a property the type does not map
    - QueryBuildError: the query builder rejected its input
    - QueryExecutionError: the query runner failed; the cause is chained
    - ResultShapeError: a result row does not have the shape an operation requires
"""

from typing import Optional, Set


# Exception class names that indicate a transient failure in the runner.
RETRYABLE_ERRORS: Set[str] = {
    "TimeoutError",
    "ConnectionError",
    "ConnectionResetError",
    "ConnectionRefusedError",
    "BrokenPipeError",
    "ServiceUnavailable",
    "SessionExpired",
    "TransientError",
}


class NeopersistError(Exception):
    """Base class for all persistence errors."""


# =============================================================================
# METADATA ERRORS
# =============================================================================


class MetadataError(NeopersistError):
    """A record type could not be turned into entity metadata."""


class NotARecordError(MetadataError, TypeError):
    """The type is neither a dataclass nor a pydantic model."""

    def __init__(self, obj: object):
        self.obj = obj
        name = getattr(obj, "__name__", type(obj).__name__)
        super().__init__(f"type {name} is not a record (dataclass or pydantic model)")


class MissingPropertyNameError(MetadataError):
    """A field opted into the mapping without naming its graph property."""

    def __init__(self, type_name: str, field_name: str):
        self.type_name = type_name
        self.field_name = field_name
        super().__init__(
            f"field {type_name}.{field_name} is missing the 'property:<name>' directive"
        )


class MissingPrimaryKeyError(MetadataError):
    """No mapped field is marked as primary key."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"no primary key ('pk') field defined for {type_name}")


class DuplicatePrimaryKeyError(MetadataError):
    """More than one field is marked as primary key."""

    def __init__(self, type_name: str, first: str, second: str):
        self.type_name = type_name
        super().__init__(
            f"{type_name} marks both '{first}' and '{second}' as primary key"
        )


class DuplicatePropertyError(MetadataError):
    """Two fields map to the same graph property."""

    def __init__(self, type_name: str, property_name: str, first: str, second: str):
        self.type_name = type_name
        self.property_name = property_name
        super().__init__(
            f"{type_name} maps both '{first}' and '{second}' to property '{property_name}'"
        )


# =============================================================================
# LOOKUP ERRORS
# =============================================================================


class NotFoundError(NeopersistError, LookupError):
    """No record matched a lookup that expects one."""

    def __init__(self, message: str = "record not found"):
        super().__init__(message)


class ConsistencyError(NeopersistError):
    """
    A lookup that expects exactly one row received more.

    Primary keys are assumed unique in the graph, so this signals a
    data-integrity violation rather than absence.
    """

    def __init__(self, expected: int, actual: int, context: str = ""):
        self.expected = expected
        self.actual = actual
        prefix = f"{context}: " if context else ""
        super().__init__(f"{prefix}expected {expected} record but found {actual}")


class InvalidPropertyError(NeopersistError, ValueError):
    """A lookup named a property the entity type does not map."""

    def __init__(self, property_name: str, label: str):
        self.property_name = property_name
        self.label = label
        super().__init__(
            f"property '{property_name}' is not a mapped property for entity type {label}"
        )


class ResultShapeError(NeopersistError):
    """A result row does not have the shape required by the operation."""


# =============================================================================
# QUERY ERRORS
# =============================================================================


class QueryBuildError(NeopersistError):
    """The query builder could not produce a query."""


class QueryExecutionError(NeopersistError):
    """
    The query runner reported a failure.

    The runner's exception is available as ``cause`` (and ``__cause__``).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """True if the underlying failure looks transient."""
        if self.cause is None:
            return False
        return type(self.cause).__name__ in RETRYABLE_ERRORS


__all__ = [
    "RETRYABLE_ERRORS",
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
]
