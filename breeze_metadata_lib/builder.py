"""
Metadata builder: turns one EntityModel snapshot into a Breeze MetadataDocument.
"""

import sys
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from .associations import build_nav_property, resolve_entity_type
from .errors import AmbiguousComplexTypeError, MalformedModelError, MetadataBuildError
from .models import (
    AutoGeneratedKeyType,
    EntityModel,
    EntityTypeDescriptor,
    EnumDescriptor,
    MetadataDocument,
    MetaType,
)
from .properties import build_complex_property, build_data_property
from .resources import build_resource_map
from .type_names import qualify_type


class BuildStage(str, Enum):
    INIT = "Init"
    RESOLVE_RESOURCES = "ResolveResources"
    BUILD_NON_OWNED = "BuildNonOwned"
    BUILD_OWNED = "BuildOwned"
    DEDUP = "Dedup"
    COLLECT_ENUMS = "CollectEnums"
    ASSEMBLE = "Assemble"
    DONE = "Done"
    FAILED = "Failed"


class MetadataBuilder:
    """
    Builds the Breeze metadata document for a single entity model snapshot.

    A builder is single-use: all intermediate state (resource map, type index)
    lives on the instance and is discarded with it. Use build_metadata() or
    MetadataBuilder.build_from() to get a fresh builder per call.
    """

    def __init__(self, model: EntityModel, verbose: bool = False, strict_complex_types: bool = False):
        self.model = model
        self.verbose = verbose
        self.strict_complex_types = strict_complex_types
        self.stage = BuildStage.INIT
        self._types_by_name: Dict[str, EntityTypeDescriptor] = {}
        self._resource_map: Dict[str, str] = {}

    @classmethod
    def build_from(cls, model: EntityModel, **kwargs) -> MetadataDocument:
        return cls(model, **kwargs).build()

    def _log_verbose(self, message: str):
        """Prints message to stderr only if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp} Builder VERBOSE] {message}", file=sys.stderr)

    def _enter(self, stage: BuildStage):
        self.stage = stage
        self._log_verbose(f"Stage: {stage.value}")

    def build(self) -> MetadataDocument:
        """
        Run every build stage in order and return the finished document.

        Raises:
            MetadataBuildError: on any fault; the failing stage is recorded on
                the error and the builder ends in BuildStage.FAILED.
        """
        if self.stage is not BuildStage.INIT:
            raise RuntimeError("MetadataBuilder instances can only build once")

        try:
            self._types_by_name = self._index_entity_types()

            self._enter(BuildStage.RESOLVE_RESOURCES)
            self._resource_map = build_resource_map(self.model.context)
            self._log_verbose(f"Resolved {len(self._resource_map)} resource names.")

            self._enter(BuildStage.BUILD_NON_OWNED)
            entity_types = [
                self._create_meta_type(et) for et in self.model.entity_types if not et.is_owned
            ]

            self._enter(BuildStage.BUILD_OWNED)
            complex_occurrences = [
                self._create_meta_type(et) for et in self.model.entity_types if et.is_owned
            ]

            self._enter(BuildStage.DEDUP)
            complex_types = dedupe_complex_types(complex_occurrences, strict=self.strict_complex_types)
            self._log_verbose(
                f"Collapsed {len(complex_occurrences)} owned type occurrences into {len(complex_types)} complex types."
            )

            self._enter(BuildStage.COLLECT_ENUMS)
            enum_types = collect_enum_types(self.model.entity_types, log=self._log_verbose)

            self._enter(BuildStage.ASSEMBLE)
            # complex types first so embedded references resolve in document order
            document = MetadataDocument(
                structural_types=complex_types + entity_types,
                enum_types=enum_types,
            )

            self._enter(BuildStage.DONE)
            self._log_verbose(
                f"Built {len(entity_types)} entity types, {len(complex_types)} complex types, {len(enum_types)} enums."
            )
            return document

        except MetadataBuildError as e:
            if e.stage is None:
                e.stage = self.stage.value
            self._log_verbose(f"Build failed during {self.stage.value}: {e}")
            self.stage = BuildStage.FAILED
            raise
        except Exception:
            self.stage = BuildStage.FAILED
            raise

    def _index_entity_types(self) -> Dict[str, EntityTypeDescriptor]:
        types_by_name = {}
        for et in self.model.entity_types:
            if et.name in types_by_name:
                raise MalformedModelError(f"Entity type '{et.name}' is defined more than once")
            types_by_name[et.name] = et
        return types_by_name

    def _create_meta_type(self, et: EntityTypeDescriptor) -> MetaType:
        data_properties = [build_data_property(p) for p in et.declared_properties()]

        # the provider reports the owner's key alongside owned type properties
        if et.is_owned:
            data_properties = [dp for dp in data_properties if dp.is_part_of_key is None]

        auto_generated_key_type = None
        if not et.is_owned:
            auto_generated_key_type = (
                AutoGeneratedKeyType.IDENTITY
                if any(dp.is_identity_column for dp in data_properties)
                else AutoGeneratedKeyType.NONE
            )

        base_type_name = None
        if et.base_type:
            base = resolve_entity_type(self._types_by_name, et.base_type, f"base type of '{et.name}'")
            base_type_name = qualify_type(base)

        navigation_properties = []
        for nav in et.declared_navigations():
            target = resolve_entity_type(self._types_by_name, nav.target_type, f"navigation '{et.name}.{nav.name}'")
            if target.is_owned:
                data_properties.append(build_complex_property(nav.name, target))
            else:
                navigation_properties.append(build_nav_property(nav, et, self._types_by_name))

        return MetaType(
            short_name=et.short_name,
            namespace=et.namespace,
            is_complex_type=et.is_owned,
            default_resource_name=None if et.is_owned else self._resource_map.get(et.name),
            base_type_name=base_type_name,
            auto_generated_key_type=auto_generated_key_type,
            data_properties=data_properties,
            navigation_properties=navigation_properties,
        )


def dedupe_complex_types(meta_types: List[MetaType], strict: bool = False) -> List[MetaType]:
    """
    Keep the first complex type seen for each short name, in discovery order.

    Owned types show up once per referencing navigation. Later occurrences are
    dropped without comparing their structure unless strict is set, in which
    case a structural mismatch raises AmbiguousComplexTypeError.
    """
    kept: Dict[str, MetaType] = {}
    for mt in meta_types:
        first = kept.get(mt.short_name)
        if first is None:
            kept[mt.short_name] = mt
        elif strict and first.to_dict() != mt.to_dict():
            raise AmbiguousComplexTypeError(mt.short_name)
    return list(kept.values())


def collect_enum_types(entity_types: List[EntityTypeDescriptor],
                       log: Optional[Callable[[str], None]] = None) -> List[EnumDescriptor]:
    """One descriptor per enumeration used by any property; first occurrence wins."""
    enums: Dict[str, EnumDescriptor] = {}
    for et in entity_types:
        for prop in et.properties:
            host_type = prop.host_type.non_nullable()
            if not host_type.is_enum:
                continue
            existing = enums.get(host_type.name)
            if existing is not None:
                if log and existing.namespace != host_type.namespace:
                    log(f"Warning: enum '{host_type.full_name}' shares its short name with "
                        f"'{existing.namespace}.{existing.short_name}'; keeping the first.")
                continue
            enums[host_type.name] = EnumDescriptor(
                short_name=host_type.name,
                namespace=host_type.namespace,
                values=list(host_type.enum_members),
            )
    return list(enums.values())


def build_metadata(model: EntityModel, verbose: bool = False, strict_complex_types: bool = False) -> MetadataDocument:
    """Translate one entity model snapshot into a Breeze metadata document."""
    return MetadataBuilder(model, verbose=verbose, strict_complex_types=strict_complex_types).build()
