"""
Errors raised while turning an entity model into Breeze metadata.
"""

from typing import Optional


class MetadataBuildError(ValueError):
    """Base class for every failure that aborts a metadata build."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class DuplicateResourceMappingError(MetadataBuildError):
    """Two queryable sets expose the same entity type."""

    def __init__(self, entity_type: str, first_name: str, second_name: str):
        super().__init__(
            f"Entity type '{entity_type}' is exposed by more than one queryable set: "
            f"'{first_name}' and '{second_name}'"
        )
        self.entity_type = entity_type
        self.resource_names = (first_name, second_name)


class MalformedModelError(MetadataBuildError):
    """The entity model descriptors reference something that does not exist."""


class AmbiguousComplexTypeError(MetadataBuildError):
    """Two different owned types share a short name (strict mode only)."""

    def __init__(self, short_name: str):
        super().__init__(
            f"Complex type '{short_name}' is defined more than once with different structure"
        )
        self.short_name = short_name
