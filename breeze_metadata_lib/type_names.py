"""
Type name normalization: qualified Breeze type references and canonical
data type names.
"""

import enum
import types
import typing
from typing import Any

from .constants import (
    CORE_NAMESPACE_PREFIXES,
    DATA_TYPE_NAMES,
    PYTHON_HOST_TYPES,
    QUALIFIED_NAME_SEPARATOR,
)
from .models import HostType


def qualify(short_name: str, namespace: str) -> str:
    """Build a Breeze qualified type name, e.g. 'Order:#Shop.Models'."""
    return f"{short_name}{QUALIFIED_NAME_SEPARATOR}{namespace}"


def qualify_type(descriptor: Any) -> str:
    """Qualify anything carrying short_name and namespace (descriptors, MetaTypes)."""
    return qualify(descriptor.short_name, descriptor.namespace)


def canonical_data_type(host_type: HostType) -> str:
    """
    Map a host type to the data type name used on the wire.

    Nullable wrappers are stripped first. Types without an entry in
    DATA_TYPE_NAMES keep their display name minus any core namespace prefix.
    """
    full_name = host_type.non_nullable().full_name
    mapped = DATA_TYPE_NAMES.get(full_name)
    if mapped is not None:
        return mapped
    for prefix in CORE_NAMESPACE_PREFIXES:
        if full_name.startswith(prefix):
            return full_name[len(prefix):]
    return full_name


def host_type_from_python(annotation: Any) -> HostType:
    """
    Describe a Python type annotation as a HostType.

    Optional[X] becomes a nullable wrapper around X and Enum subclasses carry
    their member names. Classes not listed in PYTHON_HOST_TYPES are reported
    under their own module and name.
    """
    nullable = False
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            annotation = args[0]
            nullable = True

    if annotation in PYTHON_HOST_TYPES:
        name, namespace = PYTHON_HOST_TYPES[annotation]
        return HostType(name=name, namespace=namespace, is_nullable_wrapper=nullable)

    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return HostType(
            name=annotation.__name__,
            namespace=annotation.__module__,
            is_nullable_wrapper=nullable,
            enum_members=[member.name for member in annotation],
        )

    if isinstance(annotation, type):
        return HostType(name=annotation.__name__, namespace=annotation.__module__, is_nullable_wrapper=nullable)

    return HostType(name=str(annotation), is_nullable_wrapper=nullable)

