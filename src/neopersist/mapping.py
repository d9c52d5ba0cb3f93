"""
Record <-> node transforms driven by EntityMetadata.

The transforms are pure: they read a record's current field values or build a
new record from a result row, and never own the record's lifecycle.

Hydration has two paths:
    1. Full node: if any value in the row is a NodeValue, every mapped field
       is read from that node's property bag (``RETURN n`` queries).
    2. Projection: otherwise each mapped property is looked up among the
       row's column names, matching either ``prop`` exactly or any column
       ending in ``.prop`` (``RETURN u.name`` or ``RETURN u.name AS name``).
       The first matching column in row order wins, so for
       ``RETURN friend.id, d.id`` the ``id`` field is read from ``friend.id``;
       alias the columns explicitly when a row projects the same property of
       several nodes.

Missing properties and null values leave the field at its zero value: the
field default if it has one, else None.
"""

import dataclasses
from typing import Any, Dict, Optional, Type, TypeVar

from .metadata import EntityMetadata
from .values import NodeValue, Record


T = TypeVar("T")


def field_values(entity: Any, meta: EntityMetadata) -> Dict[str, Any]:
    """Return ``{field_name: value}`` for every mapped field."""
    return {name: getattr(entity, name, None) for name in meta.field_to_property}


def entity_to_properties(entity: Any, meta: EntityMetadata) -> Dict[str, Any]:
    """Return ``{property_name: value}`` for every mapped field, key included."""
    return {prop: getattr(entity, name, None) for name, prop in meta.items()}


def primary_key_value(entity: Any, meta: EntityMetadata) -> Any:
    return getattr(entity, meta.pk_field)


def _zero_values(record_type: type) -> Dict[str, Any]:
    """Zero value for every init field of ``record_type`` that has no default."""
    if dataclasses.is_dataclass(record_type):
        return {
            f.name: None
            for f in dataclasses.fields(record_type)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }
    return {
        name: None
        for name, info in record_type.model_fields.items()
        if info.is_required()
    }


def build_record(record_type: Type[T], values: Dict[str, Any]) -> T:
    """
    Instantiate ``record_type`` from field values, filling the rest with
    zero values.

    Pydantic models are built with ``model_construct`` so database values
    are taken as-is rather than re-validated.
    """
    kwargs = _zero_values(record_type)
    kwargs.update(values)
    if not dataclasses.is_dataclass(record_type):
        return record_type.model_construct(**kwargs)

    init_names = {f.name for f in dataclasses.fields(record_type) if f.init}
    instance = record_type(**{k: v for k, v in kwargs.items() if k in init_names})
    for name, value in kwargs.items():
        if name not in init_names:
            # init=False fields
            object.__setattr__(instance, name, value)
    return instance


def node_to_values(node: NodeValue, meta: EntityMetadata) -> Dict[str, Any]:
    """Field values read from a node's property bag."""
    return {
        name: node.properties[prop]
        for name, prop in meta.items()
        if node.properties.get(prop) is not None
    }


def _find_column(record: Record, prop: str) -> Optional[str]:
    suffix = "." + prop
    for key in record.keys():
        if key == prop or key.endswith(suffix):
            return key
    return None


def projection_to_values(record: Record, meta: EntityMetadata) -> Dict[str, Any]:
    """Field values read column by column from a projection row."""
    values = {}
    for name, prop in meta.items():
        key = _find_column(record, prop)
        if key is None:
            continue
        value = record[key]
        if value is not None:
            values[name] = value
    return values


def first_node(record: Record) -> Optional[NodeValue]:
    for value in record.values():
        if isinstance(value, NodeValue):
            return value
    return None


def hydrate(record_type: Type[T], meta: EntityMetadata, record: Record) -> T:
    """Build one ``record_type`` instance from a result row."""
    node = first_node(record)
    if node is not None:
        values = node_to_values(node, meta)
    else:
        values = projection_to_values(record, meta)
    return build_record(record_type, values)


__all__ = [
    "build_record",
    "entity_to_properties",
    "field_values",
    "first_node",
    "hydrate",
    "node_to_values",
    "primary_key_value",
    "projection_to_values",
]
