"""
Fluent Cypher query builder.

Builds parametrized Cypher: every literal value becomes a generated
parameter (``$p0``, ``$p1``, ...) and is never interpolated into the query
text. Labels, relationship types and property keys that are not plain
identifiers are backtick-quoted.

Mistakes made while chaining are collected and raised together by
``build()`` as QueryBuildError.

Example:
    >>> qb = (
    ...     QueryBuilder()
    ...     .match(N("u", "User").with_properties({"userId": "u1"}))
    ...     .match(N("p", "Post"))
    ...     .create(N("u"), R("r", "WROTE").to(), N("p"))
    ...     .return_("r")
    ... )
    >>> query, params = qb.build()
    >>> print(query)
    MATCH (u:User {userId: $p0})
    MATCH (p:Post)
    CREATE (u)-[r:WROTE]->(p)
    RETURN r
    >>> params
    {'p0': 'u1'}

Raw Cypher can be passed anywhere a builder is accepted by wrapping it in
Query (or, for repository/manager calls, as a plain string).
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from .errors import QueryBuildError


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_RESERVED_PARAM = re.compile(r"^p\d+$")


def quote_identifier(name: str) -> str:
    """Return ``name`` as-is if it is a plain identifier, else backtick-quoted."""
    if _IDENTIFIER.match(name):
        return name
    return "`" + name.replace("`", "``") + "`"


class _ParamAllocator:
    """Hands out sequential parameter names for one build."""

    def __init__(self, params: Dict[str, Any]):
        self.params = params
        self._next = 0

    def add(self, value: Any) -> str:
        name = f"p{self._next}"
        self._next += 1
        self.params[name] = value
        return f"${name}"

    def render_map(self, properties: Mapping[str, Any]) -> str:
        entries = ", ".join(
            f"{quote_identifier(str(key))}: {self.add(value)}"
            for key, value in properties.items()
        )
        return "{" + entries + "}"


# =============================================================================
# PATTERNS
# =============================================================================


class NodePattern:
    """A node pattern such as ``(u:User {userId: $p0})``."""

    def __init__(
        self,
        alias: str,
        label: str = "",
        properties: Optional[Mapping[str, Any]] = None,
    ):
        self.alias = alias
        self.label = label
        self.properties = dict(properties or {})

    def with_properties(self, properties: Mapping[str, Any]) -> "NodePattern":
        return NodePattern(self.alias, self.label, {**self.properties, **properties})

    def _errors(self) -> List[str]:
        if not self.alias:
            return ["node pattern requires an alias"]
        if not _IDENTIFIER.match(self.alias):
            return [f"invalid node alias '{self.alias}'"]
        return []

    def _render(self, alloc: _ParamAllocator) -> str:
        text = self.alias
        if self.label:
            text += ":" + quote_identifier(self.label)
        if self.properties:
            text += " " + alloc.render_map(self.properties)
        return f"({text})"

    def __repr__(self) -> str:
        return f"NodePattern(alias={self.alias!r}, label={self.label!r})"


class RelationshipPattern:
    """A relationship pattern such as ``-[r:KNOWS {since: $p1}]->``."""

    OUT = "out"
    IN = "in"
    BOTH = "both"

    def __init__(
        self,
        alias: str = "",
        rel_type: str = "",
        properties: Optional[Mapping[str, Any]] = None,
        direction: str = BOTH,
    ):
        self.alias = alias
        self.rel_type = rel_type
        self.properties = dict(properties or {})
        self.direction = direction

    def _copy(self, **changes) -> "RelationshipPattern":
        values = {
            "alias": self.alias,
            "rel_type": self.rel_type,
            "properties": self.properties,
            "direction": self.direction,
        }
        values.update(changes)
        return RelationshipPattern(**values)

    def to(self) -> "RelationshipPattern":
        """Direct the relationship from the left node to the right node."""
        return self._copy(direction=self.OUT)

    def from_(self) -> "RelationshipPattern":
        """Direct the relationship from the right node to the left node."""
        return self._copy(direction=self.IN)

    def undirected(self) -> "RelationshipPattern":
        return self._copy(direction=self.BOTH)

    def with_properties(self, properties: Optional[Mapping[str, Any]]) -> "RelationshipPattern":
        return self._copy(properties={**self.properties, **(properties or {})})

    def _errors(self) -> List[str]:
        if self.alias and not _IDENTIFIER.match(self.alias):
            return [f"invalid relationship alias '{self.alias}'"]
        return []

    def _render(self, alloc: _ParamAllocator) -> str:
        inner = self.alias
        if self.rel_type:
            inner += ":" + quote_identifier(self.rel_type)
        if self.properties:
            inner += (" " if inner else "") + alloc.render_map(self.properties)
        body = f"[{inner}]"
        if self.direction == self.OUT:
            return f"-{body}->"
        if self.direction == self.IN:
            return f"<-{body}-"
        return f"-{body}-"

    def __repr__(self) -> str:
        return (
            f"RelationshipPattern(alias={self.alias!r}, rel_type={self.rel_type!r}, "
            f"direction={self.direction!r})"
        )


def N(alias: str, label: str = "") -> NodePattern:
    """Shorthand for NodePattern."""
    return NodePattern(alias, label)


def R(alias: str = "", rel_type: str = "") -> RelationshipPattern:
    """Shorthand for RelationshipPattern (undirected until .to()/.from_())."""
    return RelationshipPattern(alias, rel_type)


PatternElement = Union[NodePattern, RelationshipPattern]


def _render_path(elements: Sequence[PatternElement], alloc: _ParamAllocator) -> str:
    parts = []
    previous = None
    for element in elements:
        if isinstance(element, NodePattern) and isinstance(previous, NodePattern):
            parts.append(", ")
        parts.append(element._render(alloc))
        previous = element
    return "".join(parts)


def _path_errors(keyword: str, elements: Sequence[Any]) -> List[str]:
    if not elements:
        return [f"{keyword} requires at least one pattern"]

    errors = []
    for element in elements:
        if not isinstance(element, (NodePattern, RelationshipPattern)):
            errors.append(f"{keyword} received a non-pattern element: {element!r}")
            continue
        errors.extend(element._errors())
    if errors:
        return errors

    for i, element in enumerate(elements):
        if isinstance(element, RelationshipPattern):
            before = elements[i - 1] if i > 0 else None
            after = elements[i + 1] if i + 1 < len(elements) else None
            if not isinstance(before, NodePattern) or not isinstance(after, NodePattern):
                errors.append(f"{keyword}: relationship {element!r} must sit between two nodes")
    return errors


# =============================================================================
# BUILDER
# =============================================================================


class Buildable(Protocol):
    """Anything that can produce ``(query, params)``."""

    def build(self) -> Tuple[str, Mapping[str, Any]]:
        ...


class QueryBuilder:
    """Accumulates clauses and renders them with build()."""

    def __init__(self):
        self._clauses: List[Tuple[str, Any]] = []
        self._user_params: Dict[str, Any] = {}
        self._errors: List[str] = []

    # -- pattern clauses ------------------------------------------------------

    def _pattern_clause(self, keyword: str, elements: Sequence[Any]) -> "QueryBuilder":
        errors = _path_errors(keyword, elements)
        if errors:
            self._errors.extend(errors)
        else:
            self._clauses.append((keyword, tuple(elements)))
        return self

    def match(self, *elements: PatternElement) -> "QueryBuilder":
        return self._pattern_clause("MATCH", elements)

    def optional_match(self, *elements: PatternElement) -> "QueryBuilder":
        return self._pattern_clause("OPTIONAL MATCH", elements)

    def merge(self, *elements: PatternElement) -> "QueryBuilder":
        return self._pattern_clause("MERGE", elements)

    def create(self, *elements: PatternElement) -> "QueryBuilder":
        return self._pattern_clause("CREATE", elements)

    # -- filtering and mutation ----------------------------------------------

    def where(self, condition: str, **params: Any) -> "QueryBuilder":
        """
        Add a raw WHERE condition. Named parameters referenced in the
        condition (``$name``) are supplied as keyword arguments.
        """
        if not condition or not condition.strip():
            self._errors.append("WHERE requires a condition")
            return self
        for name, value in params.items():
            if _RESERVED_PARAM.match(name):
                self._errors.append(f"parameter name '{name}' is reserved")
            elif name in self._user_params and self._user_params[name] != value:
                self._errors.append(f"parameter '{name}' supplied twice with different values")
            else:
                self._user_params[name] = value
        self._clauses.append(("WHERE", condition.strip()))
        return self

    def set(self, assignments: Mapping[str, Any]) -> "QueryBuilder":
        """
        Add ``SET alias.prop = $pN`` assignments. Keys are ``"alias.property"``.
        An empty mapping adds nothing.
        """
        if not assignments:
            return self
        parsed = []
        for key, value in assignments.items():
            alias, dot, prop = str(key).partition(".")
            if not dot or not prop or not _IDENTIFIER.match(alias):
                self._errors.append(f"invalid SET target '{key}', expected 'alias.property'")
                continue
            parsed.append((alias, prop, value))
        if parsed:
            self._clauses.append(("SET", tuple(parsed)))
        return self

    def delete(self, *aliases: str) -> "QueryBuilder":
        return self._alias_clause("DELETE", aliases)

    def detach_delete(self, *aliases: str) -> "QueryBuilder":
        return self._alias_clause("DETACH DELETE", aliases)

    def _alias_clause(self, keyword: str, aliases: Sequence[str]) -> "QueryBuilder":
        if not aliases:
            self._errors.append(f"{keyword} requires at least one alias")
            return self
        bad = [a for a in aliases if not _IDENTIFIER.match(a or "")]
        if bad:
            self._errors.append(f"{keyword}: invalid aliases {bad}")
            return self
        self._clauses.append((keyword, ", ".join(aliases)))
        return self

    # -- projection -----------------------------------------------------------

    def _items_clause(self, keyword: str, items: Sequence[str]) -> "QueryBuilder":
        items = [i.strip() for i in items if i and i.strip()]
        if not items:
            self._errors.append(f"{keyword} requires at least one item")
            return self
        self._clauses.append((keyword, ", ".join(items)))
        return self

    def with_(self, *items: str) -> "QueryBuilder":
        return self._items_clause("WITH", items)

    def return_(self, *items: str) -> "QueryBuilder":
        return self._items_clause("RETURN", items)

    def order_by(self, *items: str) -> "QueryBuilder":
        return self._items_clause("ORDER BY", items)

    def skip(self, count: int) -> "QueryBuilder":
        return self._count_clause("SKIP", count)

    def limit(self, count: int) -> "QueryBuilder":
        return self._count_clause("LIMIT", count)

    def _count_clause(self, keyword: str, count: int) -> "QueryBuilder":
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            self._errors.append(f"{keyword} requires a non-negative integer, got {count!r}")
            return self
        self._clauses.append((keyword, str(count)))
        return self

    # -- output ---------------------------------------------------------------

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """
        Render the query.

        Returns:
            (query text, parameter dict)

        Raises:
            QueryBuildError: if any chained call was invalid or no clause was added
        """
        if self._errors:
            raise QueryBuildError("; ".join(self._errors))
        if not self._clauses:
            raise QueryBuildError("query has no clauses")

        params: Dict[str, Any] = dict(self._user_params)
        alloc = _ParamAllocator(params)
        lines = []
        for keyword, payload in self._clauses:
            if keyword in ("MATCH", "OPTIONAL MATCH", "MERGE", "CREATE"):
                lines.append(f"{keyword} {_render_path(payload, alloc)}")
            elif keyword == "SET":
                assignments = ", ".join(
                    f"{alias}.{quote_identifier(prop)} = {alloc.add(value)}"
                    for alias, prop, value in payload
                )
                lines.append(f"SET {assignments}")
            else:
                lines.append(f"{keyword} {payload}")
        return "\n".join(lines), params


class Query:
    """A hand-written Cypher query with its parameters."""

    def __init__(self, text: str, params: Optional[Mapping[str, Any]] = None):
        self.text = text
        self.params = dict(params or {})

    def build(self) -> Tuple[str, Dict[str, Any]]:
        if not isinstance(self.text, str) or not self.text.strip():
            raise QueryBuildError("query text cannot be empty")
        return self.text, dict(self.params)

    def __repr__(self) -> str:
        return f"Query({self.text!r}, params={sorted(self.params)})"


QueryLike = Union[Buildable, str]


def compile_query(
    query: QueryLike, params: Optional[Mapping[str, Any]] = None
) -> Tuple[str, Dict[str, Any]]:
    """
    Turn a builder, Query or raw string into ``(text, params)``.

    ``params`` is only accepted together with a raw string. Errors raised by
    the builder itself propagate unchanged.
    """
    if isinstance(query, str):
        query = Query(query, params)
    elif params is not None:
        raise QueryBuildError("params can only be supplied with a raw query string")

    build = getattr(query, "build", None)
    if not callable(build):
        raise QueryBuildError(f"cannot build a query from {type(query).__name__}")

    built = build()
    if (
        not isinstance(built, tuple)
        or len(built) != 2
        or not isinstance(built[0], str)
        or not isinstance(built[1], Mapping)
    ):
        raise QueryBuildError("build() must return a (str, mapping) pair")
    return built[0], dict(built[1])


__all__ = [
    "Buildable",
    "N",
    "NodePattern",
    "Query",
    "QueryBuilder",
    "QueryLike",
    "R",
    "RelationshipPattern",
    "compile_query",
    "quote_identifier",
]
