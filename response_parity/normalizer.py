"""Value Normalizer - Resets named properties to their zero value before diffing.

Some fields have to be neutralised before the structural diff runs, so that
the engine itself reports nothing for them. Property lookup goes through an
explicit accessor table registered per type rather than through reflection at
normalization time:

    registry = AccessorRegistry()
    registry.register(Order)          # table derived from Order's annotations
    normalize_property_values(order, ["Timestamp"], registry)

Plain dicts (parsed JSON bodies) need no registration; their keys are the
property names and zero values follow the current value's type.
"""

from __future__ import annotations

import dataclasses
import logging
import types
import typing
from collections.abc import Callable, Iterable, Mapping, MutableMapping, MutableSequence, Sequence
from collections.abc import Set as AbstractSet
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from threading import Lock
from typing import Any
from uuid import UUID

from pydantic import BaseModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropertyAccessor:
    """Get/set pair for one named property plus a factory for its zero value."""

    name: str
    zero: Callable[[], Any]
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]


def _datetime_min() -> datetime:
    return datetime.min


def _date_min() -> date:
    return date.min


def _uuid_zero() -> UUID:
    return UUID(int=0)


def _none() -> None:
    return None


_SCALAR_ZEROS: dict[type, Callable[[], Any]] = {
    str: str,
    bool: bool,
    int: int,
    float: float,
    complex: complex,
    Decimal: Decimal,
    bytes: bytes,
    datetime: _datetime_min,
    date: _date_min,
    time: time,
    timedelta: timedelta,
    UUID: _uuid_zero,
}

_CONTAINER_ZEROS: dict[Any, Callable[[], Any]] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    dict: dict,
    Sequence: list,
    MutableSequence: list,
    Iterable: list,
    Mapping: dict,
    MutableMapping: dict,
    AbstractSet: set,
}


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def zero_factory_for(annotation: Any) -> Callable[[], Any]:
    """Return a factory for the zero value of a declared type.

    Text becomes "", numbers 0, booleans False, date-times their minimum,
    containers empty, enums their first member. Anything else becomes None.
    """
    annotation = _unwrap_optional(annotation)
    origin = typing.get_origin(annotation) or annotation

    if origin in _SCALAR_ZEROS:
        return _SCALAR_ZEROS[origin]
    if origin in _CONTAINER_ZEROS:
        return _CONTAINER_ZEROS[origin]
    if isinstance(origin, type) and issubclass(origin, Enum):
        first = next(iter(origin), None)
        return lambda: first
    return _none


def zero_value_for(value: Any) -> Any:
    """Zero value based on a runtime value's type (used for untyped dict entries)."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return next(iter(type(value)))
    for value_type in type(value).__mro__:
        if value_type in _SCALAR_ZEROS:
            return _SCALAR_ZEROS[value_type]()
        if value_type in _CONTAINER_ZEROS:
            return _CONTAINER_ZEROS[value_type]()
    return None


def _attribute_accessor(name: str, annotation: Any) -> PropertyAccessor:
    return PropertyAccessor(
        name=name,
        zero=zero_factory_for(annotation),
        get=lambda obj: getattr(obj, name, None),
        set=lambda obj, value: setattr(obj, name, value),
    )


def _declared_fields(cls: type) -> dict[str, Any]:
    """Field name -> annotation for pydantic models, dataclasses and annotated classes."""
    if issubclass(cls, BaseModel):
        return {name: info.annotation for name, info in cls.model_fields.items()}

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        logger.warning("Could not resolve annotations of %s: %s", cls.__name__, e)
        hints = {}

    if dataclasses.is_dataclass(cls):
        return {field.name: hints.get(field.name, Any) for field in dataclasses.fields(cls)}

    return {
        name: annotation
        for name, annotation in hints.items()
        if not name.startswith("_") and typing.get_origin(annotation) is not typing.ClassVar
    }


class AccessorRegistry:
    """Per-type tables mapping property names to accessors.

    Tables are built once at registration. Lookup walks the MRO, so a
    registered base class covers its subclasses unless they register their own.
    """

    def __init__(self) -> None:
        self._tables: dict[type, dict[str, PropertyAccessor]] = {}
        self._lock = Lock()

    def register(
        self,
        cls: type,
        accessors: Iterable[PropertyAccessor] | None = None,
    ) -> type:
        """Register a type. Usable as a class decorator.

        Args:
            cls: Type to register.
            accessors: Explicit accessors. Derived from the type's declared
                fields when omitted.

        Returns:
            The registered class, unchanged.
        """
        if accessors is None:
            table = {
                name: _attribute_accessor(name, annotation)
                for name, annotation in _declared_fields(cls).items()
            }
        else:
            table = {accessor.name: accessor for accessor in accessors}

        with self._lock:
            self._tables[cls] = table
        logger.debug("Registered %d property accessors for %s", len(table), cls.__name__)
        return cls

    def accessors_for(self, cls: type) -> dict[str, PropertyAccessor] | None:
        for base in cls.__mro__:
            table = self._tables.get(base)
            if table is not None:
                return table
        return None

    def is_registered(self, cls: type) -> bool:
        return self.accessors_for(cls) is not None


default_registry = AccessorRegistry()


def normalize_property_values(
    obj: Any,
    property_names: Iterable[str],
    registry: AccessorRegistry | None = None,
) -> int:
    """Reset every named property found in an object graph to its zero value.

    Walks nested registered objects, dicts, lists, tuples and sets. Properties
    that do not exist on an object are skipped; a property that refuses the
    new value is logged and left alone.

    Args:
        obj: Root of the object graph (modified in place).
        property_names: Names of properties to reset.
        registry: Accessor tables to use. Defaults to the module registry.

    Returns:
        Number of properties reset.
    """
    names = frozenset(property_names)
    if obj is None or not names:
        return 0

    count = _normalize(obj, names, registry or default_registry, set())
    logger.debug("Normalized %d properties in %s", count, type(obj).__name__)
    return count


def _normalize(obj: Any, names: frozenset[str], registry: AccessorRegistry, seen: set[int]) -> int:
    if obj is None or isinstance(obj, (str, bytes, int, float, Decimal, Enum)):
        return 0
    # Cycles in the object graph
    if id(obj) in seen:
        return 0
    seen.add(id(obj))

    if isinstance(obj, MutableMapping):
        count = 0
        for key in list(obj.keys()):
            if key in names:
                obj[key] = zero_value_for(obj[key])
                count += 1
            else:
                count += _normalize(obj[key], names, registry, seen)
        return count

    if isinstance(obj, (list, tuple, set, frozenset)):
        return sum(_normalize(item, names, registry, seen) for item in obj)

    table = registry.accessors_for(type(obj))
    if table is None:
        return 0

    count = 0
    for name, accessor in table.items():
        if name in names:
            try:
                accessor.set(obj, accessor.zero())
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(
                    "Failed to reset property %s on %s: %s", name, type(obj).__name__, e
                )
                continue
            count += 1
        else:
            count += _normalize(accessor.get(obj), names, registry, seen)
    return count
