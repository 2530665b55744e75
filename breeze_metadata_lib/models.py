"""
Data models for the entity model snapshot (input) and the Breeze metadata
document (output).
"""

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Input: entity model descriptors ---

class HostType(BaseModel):
    """A host-language type as reported by the model provider."""
    model_config = ConfigDict(frozen=True)

    name: str  # display name without namespace (e.g., "Int32", "Byte[]")
    namespace: str = ""
    is_nullable_wrapper: bool = False
    enum_members: Optional[List[str]] = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def is_enum(self) -> bool:
        return self.enum_members is not None

    def non_nullable(self) -> "HostType":
        if not self.is_nullable_wrapper:
            return self
        return self.model_copy(update={"is_nullable_wrapper": False})


class PropertyDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    host_type: HostType
    is_nullable: bool = True
    is_primary_key: bool = False
    is_value_generated_on_add: bool = False
    max_length: Optional[int] = None
    is_concurrency_token: bool = False
    default_value: Optional[Any] = None  # explicit default annotation
    declaring_type: Optional[str] = None  # None: declared on the owning descriptor


class NavigationDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    target_type: str  # identity of the target EntityTypeDescriptor
    is_collection: bool = False
    is_dependent_side: bool = False
    foreign_key_names: List[str] = []
    inverse_name: Optional[str] = None  # navigation on the target type pointing back
    declaring_type: Optional[str] = None


class EntityTypeDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""  # identity, unique within the model
    short_name: str
    namespace: str = ""
    base_type: Optional[str] = None
    is_owned: bool = False
    properties: List[PropertyDescriptor] = []
    navigations: List[NavigationDescriptor] = []

    @model_validator(mode="before")
    @classmethod
    def _default_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("short_name"):
            namespace = data.get("namespace") or ""
            short_name = data["short_name"]
            data = dict(data, name=f"{namespace}.{short_name}" if namespace else short_name)
        return data

    def declared_properties(self) -> List[PropertyDescriptor]:
        """Properties declared on this type itself (inherited ones excluded)."""
        return [p for p in self.properties if (p.declaring_type or self.name) == self.name]

    def declared_navigations(self) -> List[NavigationDescriptor]:
        return [n for n in self.navigations if (n.declaring_type or self.name) == self.name]

    def find_navigation(self, name: str) -> Optional[NavigationDescriptor]:
        for nav in self.navigations:
            if nav.name == name:
                return nav
        return None


class QueryableSetDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str  # externally exposed resource name
    entity_type: str  # identity of the element type


class ContextDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    queryable_sets: List[QueryableSetDescriptor] = []


class EntityModel(BaseModel):
    """One immutable snapshot of an entity model."""
    model_config = ConfigDict(frozen=True)

    context: ContextDescriptor = ContextDescriptor()
    entity_types: List[EntityTypeDescriptor] = []

    def find_entity_type(self, name: str) -> Optional[EntityTypeDescriptor]:
        for et in self.entity_types:
            if et.name == name:
                return et
        return None


# --- Output: Breeze metadata document ---

class WireModel(BaseModel):
    """Base for output records: camelCase on the wire, absent fields omitted."""
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AutoGeneratedKeyType(str, Enum):
    NONE = "None"
    IDENTITY = "Identity"


class MetaValidator(WireModel):
    name: str
    max_length: Optional[int] = Field(default=None, alias="maxLength")


class MetaDataProperty(WireModel):
    name_on_server: str = Field(alias="nameOnServer")
    is_nullable: bool = Field(default=True, alias="isNullable")
    is_part_of_key: Optional[Literal[True]] = Field(default=None, alias="isPartOfKey")
    is_identity_column: bool = Field(default=False, alias="isIdentityColumn")
    max_length: Optional[int] = Field(default=None, alias="maxLength")
    data_type: Optional[str] = Field(default=None, alias="dataType")
    concurrency_mode: Optional[Literal["Fixed"]] = Field(default=None, alias="concurrencyMode")
    default_value: Optional[Any] = Field(default=None, alias="defaultValue")
    complex_type_name: Optional[str] = Field(default=None, alias="complexTypeName")
    validators: List[MetaValidator] = []


class MetaNavProperty(WireModel):
    name_on_server: str = Field(alias="nameOnServer")
    entity_type_name: str = Field(alias="entityTypeName")
    is_scalar: bool = Field(alias="isScalar")
    association_name: str = Field(alias="associationName")
    foreign_key_names_on_server: Optional[List[str]] = Field(default=None, alias="foreignKeyNamesOnServer")
    inv_foreign_key_names_on_server: Optional[List[str]] = Field(default=None, alias="invForeignKeyNamesOnServer")


class MetaType(WireModel):
    short_name: str = Field(alias="shortName")
    namespace: str = ""
    is_complex_type: bool = Field(default=False, alias="isComplexType")
    default_resource_name: Optional[str] = Field(default=None, alias="defaultResourceName")
    base_type_name: Optional[str] = Field(default=None, alias="baseTypeName")
    auto_generated_key_type: Optional[AutoGeneratedKeyType] = Field(default=None, alias="autoGeneratedKeyType")
    data_properties: List[MetaDataProperty] = Field(default=[], alias="dataProperties")
    navigation_properties: List[MetaNavProperty] = Field(default=[], alias="navigationProperties")


class EnumDescriptor(WireModel):
    short_name: str = Field(alias="shortName")
    namespace: str = ""
    values: List[str] = []


class MetadataDocument(WireModel):
    structural_types: List[MetaType] = Field(default=[], alias="structuralTypes")
    enum_types: List[EnumDescriptor] = Field(default=[], alias="enumTypes")

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def find_type(self, short_name: str) -> Optional[MetaType]:
        for mt in self.structural_types:
            if mt.short_name == short_name:
                return mt
        return None
