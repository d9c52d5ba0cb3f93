"""
Entity metadata: how a record type maps onto a graph node.

A record type is a dataclass or a pydantic model whose fields opt into the
mapping with an ``ogm`` directive string:

    - ``pk`` marks the primary key (exactly one field per type)
    - ``property:<name>`` names the graph property backing the field

Fields without a directive are not persisted.

Example:
    >>> from dataclasses import dataclass
    >>> from neopersist import mapped, node
    >>>
    >>> @node(label="User")
    ... @dataclass
    ... class User:
    ...     user_id: str = mapped("userId", pk=True)
    ...     name: str = mapped("name", default="")
    >>>
    >>> meta = resolve_metadata(User)
    >>> meta.label, meta.pk_property
    ('User', 'userId')

Resolution is a pure function of the type. MetadataCache memoizes it for the
lifetime of a PersistenceManager.
"""

import dataclasses
import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from .errors import (
    DuplicatePrimaryKeyError,
    DuplicatePropertyError,
    MissingPrimaryKeyError,
    MissingPropertyNameError,
    NotARecordError,
)


logger = logging.getLogger(__name__)

# Key under which the directive string is stored on a field.
DIRECTIVE_KEY = "ogm"
PK_TOKEN = "pk"
PROPERTY_PREFIX = "property:"

# Class attribute holding metadata resolved by the @node decorator.
_RESOLVED_ATTR = "__ogm_metadata__"


@dataclasses.dataclass(frozen=True)
class EntityMetadata:
    """
    Mapping descriptor for one record type.

    Attributes:
        label: Graph node label (defaults to the class name)
        pk_field: Record field designated as identity
        pk_property: Graph property backing the identity field
        field_to_property: Read-only field -> property mapping in declaration
            order, covering every mapped field including the primary key
    """

    label: str
    pk_field: str
    pk_property: str
    field_to_property: Mapping[str, str] = dataclasses.field(hash=False)

    def __post_init__(self):
        object.__setattr__(
            self, "field_to_property", MappingProxyType(dict(self.field_to_property))
        )

    def __reduce__(self):
        # mappingproxy cannot be pickled; rebuild from a plain dict
        return (
            EntityMetadata,
            (self.label, self.pk_field, self.pk_property, dict(self.field_to_property)),
        )

    @property
    def properties(self) -> FrozenSet[str]:
        """All mapped graph property names."""
        return frozenset(self.field_to_property.values())

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def property_for(self, field_name: str) -> str:
        return self.field_to_property[field_name]

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self.field_to_property.items())


# =============================================================================
# FIELD DECLARATION HELPERS
# =============================================================================


def directive(property_name: str, pk: bool = False) -> str:
    """Build a directive string, e.g. ``directive("userId", pk=True)``."""
    parts = [PK_TOKEN] if pk else []
    parts.append(f"{PROPERTY_PREFIX}{property_name}")
    return ",".join(parts)


def mapped(property_name: str, pk: bool = False, **kwargs) -> Any:
    """
    Declare a mapped dataclass field.

    Extra keyword arguments (``default``, ``default_factory``, ...) are passed
    to ``dataclasses.field``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[DIRECTIVE_KEY] = directive(property_name, pk=pk)
    return dataclasses.field(metadata=metadata, **kwargs)


def mapped_field(property_name: str, pk: bool = False, **kwargs) -> Any:
    """Declare a mapped pydantic field. Extra kwargs go to ``pydantic.Field``."""
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[DIRECTIVE_KEY] = directive(property_name, pk=pk)
    return Field(json_schema_extra=extra, **kwargs)


def parse_directive(value: str) -> Tuple[bool, Optional[str]]:
    """
    Parse a directive string into ``(is_pk, property_name)``.

    Tokens are comma separated; surrounding whitespace and unknown tokens
    are ignored. ``property_name`` is None when no non-empty
    ``property:<name>`` token is present.
    """
    is_pk = False
    property_name = None
    for token in value.split(","):
        token = token.strip()
        if token == PK_TOKEN:
            is_pk = True
        elif token.startswith(PROPERTY_PREFIX):
            property_name = token[len(PROPERTY_PREFIX):].strip() or None
    return is_pk, property_name


# =============================================================================
# RESOLUTION
# =============================================================================


def is_record_type(cls: Any) -> bool:
    """True for dataclass types and pydantic model types."""
    if not isinstance(cls, type):
        return False
    return dataclasses.is_dataclass(cls) or issubclass(cls, BaseModel)


def record_type_of(obj: Any) -> type:
    """Return the record class for a class or an instance of one."""
    cls = obj if isinstance(obj, type) else type(obj)
    if not is_record_type(cls):
        raise NotARecordError(obj if isinstance(obj, type) else cls)
    return cls


def _iter_directives(cls: type) -> Iterator[Tuple[str, Optional[str]]]:
    """Yield ``(field_name, directive_or_None)`` in declaration order."""
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            yield f.name, f.metadata.get(DIRECTIVE_KEY)
        return

    for name, info in cls.model_fields.items():
        extra = info.json_schema_extra
        yield name, extra.get(DIRECTIVE_KEY) if isinstance(extra, dict) else None


def resolve_metadata(record_type: Any) -> EntityMetadata:
    """
    Derive EntityMetadata from a record type's field directives.

    Args:
        record_type: A dataclass/pydantic class, or an instance of one

    Returns:
        EntityMetadata for the type

    Raises:
        NotARecordError: record_type is not a dataclass or pydantic model
        MissingPropertyNameError: a field opts in without ``property:<name>``
        MissingPrimaryKeyError: no field is marked ``pk``
        DuplicatePrimaryKeyError: more than one field is marked ``pk``
        DuplicatePropertyError: two fields map to the same property
    """
    cls = record_type_of(record_type)

    resolved = cls.__dict__.get(_RESOLVED_ATTR)
    if resolved is not None:
        return resolved

    type_name = cls.__name__
    label = cls.__dict__.get("__label__") or type_name
    pk_field = None
    pk_property = None
    mappings: Dict[str, str] = {}
    owners: Dict[str, str] = {}

    for field_name, value in _iter_directives(cls):
        if not value:
            continue

        is_pk, property_name = parse_directive(value)
        if property_name is None:
            raise MissingPropertyNameError(type_name, field_name)

        if property_name in owners:
            raise DuplicatePropertyError(
                type_name, property_name, owners[property_name], field_name
            )
        owners[property_name] = field_name

        if is_pk:
            if pk_field is not None:
                raise DuplicatePrimaryKeyError(type_name, pk_field, field_name)
            pk_field = field_name
            pk_property = property_name

        mappings[field_name] = property_name

    if pk_field is None:
        raise MissingPrimaryKeyError(type_name)

    logger.debug(
        f"Resolved metadata for {type_name}: label={label}, pk={pk_field}->{pk_property}, "
        f"{len(mappings)} mapped fields"
    )
    return EntityMetadata(
        label=label,
        pk_field=pk_field,
        pk_property=pk_property,
        field_to_property=mappings,
    )


def node(label: Optional[str] = None) -> Callable[[type], type]:
    """
    Class decorator registering a record type as a graph node.

    Sets the node label (defaults to the class name) and resolves the
    metadata immediately, so a malformed mapping fails when the class is
    defined rather than on first use. Apply it above ``@dataclass``.
    """

    def decorator(cls: type) -> type:
        if label:
            cls.__label__ = label
        setattr(cls, _RESOLVED_ATTR, resolve_metadata(cls))
        return cls

    return decorator


# =============================================================================
# CACHE
# =============================================================================


class MetadataCache:
    """
    Thread-safe, write-once-read-many cache of EntityMetadata by type.

    Lookups never block on a hit. On a miss the metadata is resolved outside
    the lock; if two threads race on the same type the first stored value
    wins and both get it back. Entries are never evicted.
    """

    def __init__(self, resolver: Callable[[type], EntityMetadata] = resolve_metadata):
        self._resolver = resolver
        self._entries: Dict[type, EntityMetadata] = {}
        self._lock = threading.Lock()

    def get(self, record_type: Any) -> EntityMetadata:
        """Return metadata for a record class or instance, resolving on first use."""
        cls = record_type_of(record_type)

        meta = self._entries.get(cls)
        if meta is not None:
            return meta

        meta = self._resolver(cls)
        with self._lock:
            stored = self._entries.setdefault(cls, meta)
        if stored is meta:
            logger.debug(f"Cached metadata for {cls.__name__}")
        return stored

    def __contains__(self, record_type: type) -> bool:
        return record_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "DIRECTIVE_KEY",
    "EntityMetadata",
    "MetadataCache",
    "directive",
    "is_record_type",
    "mapped",
    "mapped_field",
    "node",
    "parse_directive",
    "record_type_of",
    "resolve_metadata",
]
