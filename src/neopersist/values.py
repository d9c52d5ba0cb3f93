"""
Result values produced by a query runner.

A row value is one of:
    - NodeValue: a full graph node
    - RelationshipValue: a graph relationship
    - a scalar (str, int, float, bool), None, a list or a dict of the above

Paths are delivered as a list alternating NodeValue and RelationshipValue.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class NodeValue:
    """A graph node as returned by the runner."""

    id: str
    labels: Tuple[str, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class RelationshipValue:
    """A directed graph relationship as returned by the runner."""

    id: str
    start_id: str
    end_id: str
    type: str
    properties: Dict[str, Any] = field(default_factory=dict, hash=False)


GraphValue = Union[NodeValue, RelationshipValue]


class Record:
    """
    One result row: column keys in declaration order and their values.

    Supports lookup by key (``record["n"]``) or position (``record[0]``).
    Iterating a record yields its values.
    """

    __slots__ = ("_keys", "_values")

    def __init__(self, keys: Sequence[str], values: Sequence[Any]):
        if len(keys) != len(values):
            raise ValueError(
                f"record has {len(keys)} keys but {len(values)} values"
            )
        self._keys = tuple(keys)
        self._values = tuple(values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        return cls(list(data.keys()), list(data.values()))

    def keys(self) -> Tuple[str, ...]:
        return self._keys

    def values(self) -> Tuple[Any, ...]:
        return self._values

    def items(self) -> List[Tuple[str, Any]]:
        return list(zip(self._keys, self._values))

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self._values[self._keys.index(key)]
        except ValueError:
            return default

    def data(self) -> Dict[str, Any]:
        return dict(zip(self._keys, self._values))

    def __getitem__(self, key: Union[str, int]) -> Any:
        if isinstance(key, int):
            return self._values[key]
        try:
            return self._values[self._keys.index(key)]
        except ValueError:
            raise KeyError(key) from None

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._keys == other._keys and self._values == other._values

    def __repr__(self) -> str:
        pairs = " ".join(f"{k}={v!r}" for k, v in zip(self._keys, self._values))
        return f"<Record {pairs}>"


@dataclass
class QueryResult:
    """A fully buffered, ordered set of records."""

    records: List[Record] = field(default_factory=list)
    keys: Tuple[str, ...] = ()

    @classmethod
    def from_rows(
        cls, keys: Sequence[str], rows: Iterable[Sequence[Any]]
    ) -> "QueryResult":
        """Build a result from column keys and value rows."""
        return cls(records=[Record(keys, row) for row in rows], keys=tuple(keys))

    @classmethod
    def empty(cls, keys: Optional[Sequence[str]] = None) -> "QueryResult":
        return cls(records=[], keys=tuple(keys or ()))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)


def iter_graph_values(value: Any) -> Iterator[GraphValue]:
    """Yield every node and relationship inside a row value, depth first."""
    if isinstance(value, (NodeValue, RelationshipValue)):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_graph_values(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_graph_values(item)


__all__ = [
    "GraphValue",
    "NodeValue",
    "QueryResult",
    "Record",
    "RelationshipValue",
    "iter_graph_values",
]
