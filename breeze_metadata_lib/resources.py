"""
Resource name resolution: which queryable set exposes which entity type.
"""

from typing import Dict

from .errors import DuplicateResourceMappingError
from .models import ContextDescriptor


def build_resource_map(context: ContextDescriptor) -> Dict[str, str]:
    """
    Map entity type identity -> resource name from the context's queryable sets.

    Raises:
        DuplicateResourceMappingError: if two sets expose the same entity type.
    """
    resource_map: Dict[str, str] = {}
    for queryable_set in context.queryable_sets:
        existing = resource_map.get(queryable_set.entity_type)
        if existing is not None:
            raise DuplicateResourceMappingError(queryable_set.entity_type, existing, queryable_set.name)
        resource_map[queryable_set.entity_type] = queryable_set.name
    return resource_map
