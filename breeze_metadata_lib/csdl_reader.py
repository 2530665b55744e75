"""
OData CSDL ($metadata) reader producing EntityModel snapshots.

Understands OData v2/v3 (Association + ReferentialConstraint) and v4
(NavigationProperty Partner + nested ReferentialConstraint) documents.
Elements are matched by local name so any EDM/EDMX namespace version works.
"""

import sys
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

import requests
from lxml import etree

from .constants import ANNOTATION_NAMESPACE
from .errors import MalformedModelError
from .models import (
    ContextDescriptor,
    EntityModel,
    EntityTypeDescriptor,
    HostType,
    NavigationDescriptor,
    PropertyDescriptor,
    QueryableSetDescriptor,
)


def _split_name(full_name: str) -> Tuple[str, str]:
    """'Shop.Models.Order' -> ('Order', 'Shop.Models')"""
    namespace, _, name = full_name.rpartition('.')
    return name, namespace


def _strip_collection(type_ref: str) -> Tuple[str, bool]:
    if type_ref.startswith('Collection(') and type_ref.endswith(')'):
        return type_ref[len('Collection('):-1], True
    return type_ref, False


class _SchemaIndex:
    """Lookup tables over every Schema element of one metadata document."""

    def __init__(self, schemas: List[etree._Element]):
        self.aliases: Dict[str, str] = {}
        self.entity_types: Dict[str, etree._Element] = {}
        self.complex_types: Dict[str, etree._Element] = {}
        self.enum_types: Dict[str, etree._Element] = {}
        self.associations: Dict[str, etree._Element] = {}
        self.containers: List[etree._Element] = []

        for schema in schemas:
            namespace = schema.get('Namespace')
            if not namespace:
                raise MalformedModelError("Schema element without a Namespace attribute")
            if schema.get('Alias'):
                self.aliases[schema.get('Alias')] = namespace

            for tag, table in (('EntityType', self.entity_types), ('ComplexType', self.complex_types),
                               ('EnumType', self.enum_types), ('Association', self.associations)):
                for elem in schema.iterchildren('{*}' + tag):
                    name = elem.get('Name')
                    if name:
                        table[f"{namespace}.{name}"] = elem
            self.containers.extend(schema.iterchildren('{*}EntityContainer'))

    def resolve(self, type_ref: str) -> str:
        """Expand an alias-qualified reference to its namespace-qualified name."""
        name, prefix = _split_name(type_ref)
        if prefix in self.aliases:
            return f"{self.aliases[prefix]}.{name}"
        return type_ref

    def inheritance_chain(self, full_name: str, complex_type: bool = False) -> List[str]:
        """Entity (or complex) type names from the root base type down to full_name."""
        table = self.complex_types if complex_type else self.entity_types
        kind = "complex type" if complex_type else "entity type"
        chain = []
        current: Optional[str] = full_name
        while current:
            if current in chain:
                raise MalformedModelError(f"Inheritance cycle involving {kind} '{current}'")
            if current not in table:
                raise MalformedModelError(f"Unknown base type '{current}' in inheritance chain of '{full_name}'")
            chain.append(current)
            base = table[current].get('BaseType')
            current = self.resolve(base) if base else None
        chain.reverse()
        return chain


class CsdlModelReader:
    """Reads an OData service's CSDL metadata into an EntityModel."""

    def __init__(self, service_url: Optional[str] = None,
                 auth: Optional[Union[Tuple[str, str], Dict[str, str]]] = None,
                 verbose: bool = False):
        self.service_url = service_url.rstrip('/') if service_url else None
        self.metadata_url = f"{self.service_url}/$metadata" if self.service_url else None
        self.verbose = verbose
        self.session = requests.Session()
        if isinstance(auth, tuple):
            self.session.auth = auth
        elif isinstance(auth, dict):
            self.session.cookies.update(auth)
        elif auth is not None:
            raise ValueError("Auth must be either (username, password) tuple or cookies dict")
        self.session.headers.update({
            'Accept': 'application/xml',
            'User-Agent': 'Breeze-Metadata-Builder/1.0'
        })

    def _log_verbose(self, message: str):
        """Prints message to stderr only if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp} CSDL VERBOSE] {message}", file=sys.stderr)

    def read(self) -> EntityModel:
        """Fetch and parse the service metadata."""
        return self.parse(self.fetch())

    def fetch(self) -> bytes:
        if not self.metadata_url:
            raise ValueError("No service URL configured for metadata fetch")
        self._log_verbose(f"Fetching metadata from {self.metadata_url}...")
        response = self.session.get(self.metadata_url)
        response.raise_for_status()
        self._log_verbose(f"Metadata fetched successfully ({len(response.content)} bytes).")
        return response.content

    def parse(self, content: Union[bytes, str]) -> EntityModel:
        """
        Parse a CSDL document into an EntityModel.

        Raises:
            MalformedModelError: if the XML is invalid or references unknown types.
        """
        if isinstance(content, str):
            content = content.encode('utf-8')
        parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
        try:
            root = etree.fromstring(content, parser=parser)
        except etree.XMLSyntaxError as e:
            raise MalformedModelError(f"Metadata is not valid XML: {e}") from e

        schemas = list(root.iter('{*}Schema'))
        if not schemas:
            raise MalformedModelError("No Schema element found in metadata")
        index = _SchemaIndex(schemas)

        owned_types: List[EntityTypeDescriptor] = []
        own_members: Dict[str, Tuple[List[PropertyDescriptor], List[NavigationDescriptor]]] = {}
        for full_name in index.entity_types:
            own_members[full_name] = self._parse_own_members(index, full_name, owned_types)

        entity_types = []
        for full_name, elem in index.entity_types.items():
            properties: List[PropertyDescriptor] = []
            navigations: List[NavigationDescriptor] = []
            for declaring in index.inheritance_chain(full_name):
                declared_props, declared_navs = own_members[declaring]
                properties.extend(declared_props)
                navigations.extend(declared_navs)
            short_name, namespace = _split_name(full_name)
            base = elem.get('BaseType')
            entity_types.append(EntityTypeDescriptor(
                name=full_name,
                short_name=short_name,
                namespace=namespace,
                base_type=index.resolve(base) if base else None,
                properties=properties,
                navigations=navigations,
            ))

        context = self._parse_context(index)
        self._log_verbose(
            f"Parsing complete. Found {len(entity_types)} entity types, {len(owned_types)} owned occurrences, "
            f"{len(context.queryable_sets)} entity sets."
        )
        return EntityModel(context=context, entity_types=entity_types + owned_types)

    def _key_names(self, index: _SchemaIndex, full_name: str) -> List[str]:
        for name in reversed(index.inheritance_chain(full_name)):
            key_elem = next(index.entity_types[name].iterchildren('{*}Key'), None)
            if key_elem is not None:
                return [ref.get('Name') for ref in key_elem.iterchildren('{*}PropertyRef') if ref.get('Name')]
        return []

    def _parse_own_members(self, index: _SchemaIndex, full_name: str, owned_types: List[EntityTypeDescriptor]):
        """Properties and navigations declared directly on one entity type."""
        elem = index.entity_types[full_name]
        keys = self._key_names(index, full_name)
        properties, complex_navigations = self._parse_structural_properties(
            index, elem, full_name, keys, owned_types)
        navigations = complex_navigations + [
            self._parse_navigation(index, full_name, nav_elem)
            for nav_elem in elem.iterchildren('{*}NavigationProperty')
            if nav_elem.get('Name')
        ]
        return properties, navigations

    def _parse_structural_properties(self, index: _SchemaIndex, elem: etree._Element, declaring: str,
                                     keys: List[str], owned_types: List[EntityTypeDescriptor]):
        properties = []
        navigations = []
        for prop_elem in elem.iterchildren('{*}Property'):
            prop_name = prop_elem.get('Name')
            prop_type = prop_elem.get('Type')
            if not prop_name or not prop_type:
                continue

            element_type, is_collection = _strip_collection(prop_type)
            resolved = index.resolve(element_type)
            if is_collection:
                # collections of complex types stay scalar-typed
                resolved = f"Collection({resolved})"
            elif resolved in index.complex_types:
                occurrence = self._create_owned_occurrence(index, declaring, prop_name, resolved, owned_types)
                navigations.append(NavigationDescriptor(
                    name=prop_name,
                    target_type=occurrence,
                    declaring_type=declaring,
                ))
                continue

            max_length = prop_elem.get('MaxLength')
            properties.append(PropertyDescriptor(
                name=prop_name,
                host_type=self._host_type(index, resolved),
                is_nullable=prop_elem.get('Nullable', 'true').lower() == 'true',
                is_primary_key=prop_name in keys,
                is_value_generated_on_add=prop_elem.get(f'{{{ANNOTATION_NAMESPACE}}}StoreGeneratedPattern') == 'Identity',
                max_length=int(max_length) if max_length and max_length.isdigit() else None,
                is_concurrency_token=prop_elem.get('ConcurrencyMode') == 'Fixed',
                default_value=prop_elem.get('DefaultValue'),
                declaring_type=declaring,
            ))
        return properties, navigations

    def _create_owned_occurrence(self, index: _SchemaIndex, owner: str, prop_name: str, complex_name: str,
                                 owned_types: List[EntityTypeDescriptor]) -> str:
        """Register one owned type occurrence for a complex-typed property; returns its identity."""
        short_name, namespace = _split_name(complex_name)
        identity = f"{owner}.{prop_name}#{short_name}"
        if identity.count('#') > len(index.complex_types):
            raise MalformedModelError(f"Complex type '{complex_name}' contains itself")
        properties: List[PropertyDescriptor] = []
        navigations: List[NavigationDescriptor] = []
        # nested occurrences are registered before the type that embeds them
        for type_name in index.inheritance_chain(complex_name, complex_type=True):
            declared_props, declared_navs = self._parse_structural_properties(
                index, index.complex_types[type_name], identity, [], owned_types)
            properties.extend(declared_props)
            navigations.extend(declared_navs)
        owned_types.append(EntityTypeDescriptor(
            name=identity,
            short_name=short_name,
            namespace=namespace,
            is_owned=True,
            properties=properties,
            navigations=navigations,
        ))
        return identity

    def _host_type(self, index: _SchemaIndex, type_ref: str) -> HostType:
        short_name, namespace = _split_name(type_ref)
        if type_ref in index.enum_types:
            members = [m.get('Name') for m in index.enum_types[type_ref].iterchildren('{*}Member') if m.get('Name')]
            return HostType(name=short_name, namespace=namespace, enum_members=members)
        if type_ref.startswith('Collection('):
            return HostType(name=type_ref)
        return HostType(name=short_name, namespace=namespace)

    def _parse_navigation(self, index: _SchemaIndex, declaring: str, nav_elem: etree._Element) -> NavigationDescriptor:
        if nav_elem.get('Relationship'):
            return self._parse_association_navigation(index, declaring, nav_elem)
        return self._parse_partner_navigation(index, declaring, nav_elem)

    def _parse_association_navigation(self, index: _SchemaIndex, declaring: str,
                                      nav_elem: etree._Element) -> NavigationDescriptor:
        """OData v2/v3: ends and foreign keys come from the Association element."""
        name = nav_elem.get('Name')
        relationship = index.resolve(nav_elem.get('Relationship'))
        association = index.associations.get(relationship)
        if association is None:
            raise MalformedModelError(f"Unknown association '{relationship}' on navigation '{declaring}.{name}'")

        ends = {end.get('Role'): end for end in association.iterchildren('{*}End')}
        from_role, to_role = nav_elem.get('FromRole'), nav_elem.get('ToRole')
        if from_role not in ends or to_role not in ends:
            raise MalformedModelError(f"Navigation '{declaring}.{name}' uses roles missing from '{relationship}'")
        from_many = ends[from_role].get('Multiplicity') == '*'
        to_many = ends[to_role].get('Multiplicity') == '*'

        foreign_keys: List[str] = []
        constraint = next(association.iterchildren('{*}ReferentialConstraint'), None)
        if constraint is not None:
            dependent = next(constraint.iterchildren('{*}Dependent'), None)
            if dependent is None or dependent.get('Role') not in ends:
                raise MalformedModelError(f"ReferentialConstraint of '{relationship}' names no dependent end")
            foreign_keys = [ref.get('Name') for ref in dependent.iterchildren('{*}PropertyRef') if ref.get('Name')]
            is_dependent = from_role == dependent.get('Role')
        elif from_many != to_many:
            is_dependent = from_many
        else:
            # no constraint and symmetric multiplicity: the second end holds the key
            is_dependent = from_role == list(ends)[-1]

        target = index.resolve(ends[to_role].get('Type'))
        return NavigationDescriptor(
            name=name,
            target_type=target,
            is_collection=to_many,
            is_dependent_side=is_dependent,
            foreign_key_names=foreign_keys,
            inverse_name=self._find_association_inverse(index, target, relationship, to_role),
            declaring_type=declaring,
        )

    def _find_association_inverse(self, index: _SchemaIndex, target: str, relationship: str,
                                  to_role: str) -> Optional[str]:
        if target not in index.entity_types:
            raise MalformedModelError(f"Unknown navigation target '{target}'")
        for type_name in index.inheritance_chain(target):
            for nav_elem in index.entity_types[type_name].iterchildren('{*}NavigationProperty'):
                if (nav_elem.get('Relationship') and index.resolve(nav_elem.get('Relationship')) == relationship
                        and nav_elem.get('FromRole') == to_role):
                    return nav_elem.get('Name')
        return None

    def _parse_partner_navigation(self, index: _SchemaIndex, declaring: str,
                                  nav_elem: etree._Element) -> NavigationDescriptor:
        """OData v4: foreign keys live on the dependent navigation itself."""
        name = nav_elem.get('Name')
        type_ref = nav_elem.get('Type')
        if not type_ref:
            raise MalformedModelError(f"Navigation '{declaring}.{name}' has neither Relationship nor Type")
        target_ref, is_collection = _strip_collection(type_ref)
        target = index.resolve(target_ref)
        if target not in index.entity_types:
            raise MalformedModelError(f"Unknown navigation target '{target}' on '{declaring}.{name}'")

        partner_name = nav_elem.get('Partner')
        partner, partner_declaring = (self._find_navigation_element(index, target, partner_name)
                                      if partner_name else (None, None))

        own_keys = self._constraint_properties(nav_elem)
        if own_keys:
            is_dependent = True
            foreign_keys = own_keys
        else:
            partner_keys = self._constraint_properties(partner) if partner is not None else []
            if partner_keys:
                is_dependent = False
            elif partner is None:
                is_dependent = False
            else:
                _, partner_many = _strip_collection(partner.get('Type', ''))
                if is_collection != partner_many:
                    is_dependent = partner_many
                else:
                    # symmetric and unconstrained: the end that sorts first holds the key
                    is_dependent = (declaring, name) < (partner_declaring, partner_name)
            foreign_keys = partner_keys

        return NavigationDescriptor(
            name=name,
            target_type=target,
            is_collection=is_collection,
            is_dependent_side=is_dependent,
            foreign_key_names=foreign_keys,
            inverse_name=partner_name if partner is not None else None,
            declaring_type=declaring,
        )

    def _find_navigation_element(self, index: _SchemaIndex, type_name: str,
                                 nav_name: str) -> Tuple[Optional[etree._Element], Optional[str]]:
        """The named navigation on type_name or its bases, with the type that declares it."""
        for name in index.inheritance_chain(type_name):
            for nav_elem in index.entity_types[name].iterchildren('{*}NavigationProperty'):
                if nav_elem.get('Name') == nav_name:
                    return nav_elem, name
        return None, None

    def _constraint_properties(self, nav_elem: etree._Element) -> List[str]:
        return [rc.get('Property') for rc in nav_elem.iterchildren('{*}ReferentialConstraint') if rc.get('Property')]

    def _parse_context(self, index: _SchemaIndex) -> ContextDescriptor:
        queryable_sets = []
        container_names = []
        for container in index.containers:
            container_names.append(container.get('Name', ''))
            for es_elem in container.iterchildren('{*}EntitySet'):
                name = es_elem.get('Name')
                entity_type = es_elem.get('EntityType')
                if not name or not entity_type:
                    continue
                queryable_sets.append(QueryableSetDescriptor(name=name, entity_type=index.resolve(entity_type)))
        return ContextDescriptor(name=', '.join(n for n in container_names if n), queryable_sets=queryable_sets)
