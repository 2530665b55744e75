"""
Navigation properties and the association names that tie both ends of a
relationship together.

Association names follow <declaring type>_<target type>_<navigation>. The
dependent end (the one holding the foreign key) names the association, and
the principal end borrows that name from its inverse navigation so both ends
agree. A principal end without an inverse gets an "Inv_" prefixed name of its
own.
"""

from typing import Dict

from .constants import INVERSE_ASSOCIATION_PREFIX
from .errors import MalformedModelError
from .models import EntityTypeDescriptor, MetaNavProperty, NavigationDescriptor
from .type_names import qualify_type


def canonical_association_name(declaring_short_name: str, target_short_name: str, navigation_name: str) -> str:
    return f"{declaring_short_name}_{target_short_name}_{navigation_name}"


def resolve_entity_type(types_by_name: Dict[str, EntityTypeDescriptor], name: str, referenced_from: str) -> EntityTypeDescriptor:
    et = types_by_name.get(name)
    if et is None:
        raise MalformedModelError(f"Unknown entity type '{name}' referenced from {referenced_from}")
    return et


def navigation_association_name(nav: NavigationDescriptor, owner: EntityTypeDescriptor,
                                types_by_name: Dict[str, EntityTypeDescriptor]) -> str:
    """Canonical association name of a single navigation, seen from its declaring type."""
    declaring_name = nav.declaring_type or owner.name
    declaring = resolve_entity_type(types_by_name, declaring_name, f"navigation '{owner.name}.{nav.name}'")
    target = resolve_entity_type(types_by_name, nav.target_type, f"navigation '{owner.name}.{nav.name}'")
    return canonical_association_name(declaring.short_name, target.short_name, nav.name)


def build_nav_property(nav: NavigationDescriptor, owner: EntityTypeDescriptor,
                       types_by_name: Dict[str, EntityTypeDescriptor]) -> MetaNavProperty:
    """
    Build the Breeze navigation property for one navigation declared on owner.

    Raises:
        MalformedModelError: if the target, declaring type or named inverse
            navigation cannot be found in the model.
    """
    target = resolve_entity_type(types_by_name, nav.target_type, f"navigation '{owner.name}.{nav.name}'")
    own_name = navigation_association_name(nav, owner, types_by_name)
    foreign_keys = list(nav.foreign_key_names)

    if nav.is_dependent_side:
        return MetaNavProperty(
            name_on_server=nav.name,
            entity_type_name=qualify_type(target),
            is_scalar=not nav.is_collection,
            association_name=own_name,
            foreign_key_names_on_server=foreign_keys,
        )

    if nav.inverse_name:
        inverse = target.find_navigation(nav.inverse_name)
        if inverse is None:
            raise MalformedModelError(
                f"Inverse navigation '{nav.inverse_name}' of '{owner.name}.{nav.name}' "
                f"not found on '{target.name}'"
            )
        association_name = navigation_association_name(inverse, target, types_by_name)
    else:
        association_name = INVERSE_ASSOCIATION_PREFIX + own_name

    return MetaNavProperty(
        name_on_server=nav.name,
        entity_type_name=qualify_type(target),
        is_scalar=not nav.is_collection,
        association_name=association_name,
        inv_foreign_key_names_on_server=foreign_keys,
    )
