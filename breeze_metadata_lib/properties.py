"""
Builds Breeze data properties from scalar property descriptors.
"""

from typing import Any, List, Optional

from .constants import CONCURRENCY_MODE_FIXED, SYNTHESIZED_DEFAULTS, TYPE_VALIDATORS
from .models import EntityTypeDescriptor, HostType, MetaDataProperty, MetaValidator, PropertyDescriptor
from .type_names import canonical_data_type, qualify_type


def build_data_property(prop: PropertyDescriptor) -> MetaDataProperty:
    """Convert one scalar property descriptor into a Breeze data property."""
    return MetaDataProperty(
        name_on_server=prop.name,
        is_nullable=prop.is_nullable,
        is_part_of_key=True if prop.is_primary_key else None,
        is_identity_column=prop.is_primary_key and prop.is_value_generated_on_add,
        max_length=prop.max_length,
        data_type=canonical_data_type(prop.host_type),
        concurrency_mode=CONCURRENCY_MODE_FIXED if prop.is_concurrency_token else None,
        default_value=resolve_default_value(prop),
        validators=build_validators(prop.host_type, prop.is_nullable, prop.max_length),
    )


def resolve_default_value(prop: PropertyDescriptor) -> Optional[Any]:
    """
    Explicit default annotation first, then a synthesized default for
    non-nullable types listed in SYNTHESIZED_DEFAULTS, else nothing.
    """
    if prop.default_value is not None:
        return prop.default_value
    if not prop.is_nullable:
        return SYNTHESIZED_DEFAULTS.get(canonical_data_type(prop.host_type))
    return None


def build_validators(host_type: HostType, is_nullable: bool, max_length: Optional[int]) -> List[MetaValidator]:
    validators = []
    if not is_nullable:
        validators.append(MetaValidator(name="required"))
    if max_length is not None:
        validators.append(MetaValidator(name="maxLength", max_length=max_length))
    type_validator = TYPE_VALIDATORS.get(canonical_data_type(host_type))
    if type_validator:
        validators.append(MetaValidator(name=type_validator))
    return validators


def build_complex_property(name: str, target: EntityTypeDescriptor) -> MetaDataProperty:
    """Data property standing in for a navigation to an owned (embedded) type."""
    return MetaDataProperty(
        name_on_server=name,
        is_nullable=False,
        complex_type_name=qualify_type(target),
    )
