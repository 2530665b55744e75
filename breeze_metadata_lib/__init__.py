"""
Breeze metadata library - builds Breeze client metadata from an entity model.
"""

from .models import (
    HostType,
    PropertyDescriptor,
    NavigationDescriptor,
    EntityTypeDescriptor,
    QueryableSetDescriptor,
    ContextDescriptor,
    EntityModel,
    AutoGeneratedKeyType,
    MetaValidator,
    MetaDataProperty,
    MetaNavProperty,
    MetaType,
    EnumDescriptor,
    MetadataDocument
)
from .errors import (
    MetadataBuildError,
    DuplicateResourceMappingError,
    MalformedModelError,
    AmbiguousComplexTypeError
)
from .type_names import qualify, qualify_type, canonical_data_type, host_type_from_python
from .builder import BuildStage, MetadataBuilder, build_metadata
from .csdl_reader import CsdlModelReader

__all__ = [
    'HostType',
    'PropertyDescriptor',
    'NavigationDescriptor',
    'EntityTypeDescriptor',
    'QueryableSetDescriptor',
    'ContextDescriptor',
    'EntityModel',
    'AutoGeneratedKeyType',
    'MetaValidator',
    'MetaDataProperty',
    'MetaNavProperty',
    'MetaType',
    'EnumDescriptor',
    'MetadataDocument',
    'MetadataBuildError',
    'DuplicateResourceMappingError',
    'MalformedModelError',
    'AmbiguousComplexTypeError',
    'qualify',
    'qualify_type',
    'canonical_data_type',
    'host_type_from_python',
    'BuildStage',
    'MetadataBuilder',
    'build_metadata',
    'CsdlModelReader'
]
