"""
Scratch state of one derivation pass.

Renders type descriptors into schema nodes, expands nominal types through the
recursion guard and the generic instantiator, and collects the components
discovered on the way. A context is created per pass and never shared.
"""
from typing import Dict, List, Optional, Tuple

import structlog

from ..config import DeriveConfig
from ..exceptions import UnknownTypeError
from ..models.common import DeclKind, VariantKind
from ..models.declarations import TypeDecl
from ..models.schema import ArraySchema, ObjectSchema, PrimitiveSchema, RefSchema, SchemaNode
from . import enums, structs
from .descriptors import (
    UNCONSTRAINED,
    DescriptorKind,
    TypeDescriptor,
    build_descriptor,
    canonical_name,
    primitive_schema,
    unconstrained,
)
from .features import (
    FeatureSet,
    Scope,
    apply_metadata,
    apply_validation,
    check_applicability,
    documented,
    mark_nullable,
    resolve_features,
)
from .recursion import GenericInstantiator, RecursionGuard
from .registry import SchemaRegistry
from .serde import SerdeContainer, parse_serde_container

logger = structlog.get_logger(__name__)


def declaration_scope(decl: TypeDecl) -> Scope:
    if decl.kind == DeclKind.STRUCT:
        return Scope.NAMED_STRUCT
    if decl.kind == DeclKind.TUPLE_STRUCT:
        return Scope.TUPLE_STRUCT
    if decl.kind == DeclKind.UNIT_STRUCT:
        return Scope.UNIT_STRUCT
    if all(variant.kind == VariantKind.UNIT for variant in decl.variants):
        return Scope.UNIT_ENUM
    return Scope.MIXED_ENUM


class DerivationContext:
    def __init__(
        self,
        config: DeriveConfig,
        registry: SchemaRegistry,
        root: Optional[TypeDecl] = None,
        log: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.config = config
        self.registry = registry
        self.root = root
        self.logger = log or logger
        self.guard = RecursionGuard()
        self.instantiator = GenericInstantiator(config.generic_separator)
        self.components: Dict[str, SchemaNode] = {}
        self.root_name: Optional[str] = None
        self._features: Dict[str, FeatureSet] = {}
        self._serde: Dict[str, SerdeContainer] = {}
        self._cycle_targets: Dict[str, Tuple[TypeDecl, Dict[str, TypeDescriptor]]] = {}

    # declarations

    def lookup(self, name: str) -> Optional[TypeDecl]:
        if self.root is not None and self.root.name == name:
            return self.root
        return self.registry.get_declaration(name)

    def declaration_features(self, decl: TypeDecl) -> FeatureSet:
        if decl.name not in self._features:
            self._features[decl.name] = resolve_features(
                decl.schema_attrs, declaration_scope(decl), location=decl.name
            )
        return self._features[decl.name]

    def declaration_serde(self, decl: TypeDecl) -> SerdeContainer:
        if decl.name not in self._serde:
            self._serde[decl.name] = parse_serde_container(decl.serde_attrs, target=decl.name)
        return self._serde[decl.name]

    def component_name(self, decl: TypeDecl) -> str:
        return self.declaration_features(decl).component_name or decl.name

    # rendering

    def ref(self, name: str) -> RefSchema:
        return RefSchema(name=name, prefix=self.config.component_prefix)

    def descriptor(
        self,
        expression: str,
        substitutions: Optional[Dict[str, TypeDescriptor]] = None,
        location: Optional[str] = None,
    ) -> TypeDescriptor:
        return build_descriptor(expression, substitutions, location=location)

    def member_schema(
        self,
        descriptor: TypeDescriptor,
        features: FeatureSet,
        location: Optional[str] = None,
        doc: Optional[str] = None,
        deprecated: bool = False,
        substitutions: Optional[Dict[str, TypeDescriptor]] = None,
    ) -> SchemaNode:
        """Schema of a field (or single-field variant) type with its features applied."""
        if features.value_type is not None:
            descriptor = self.descriptor(
                features.value_type, substitutions, location=features.location_of("value_type") or location
            )
        check_applicability(features, descriptor)
        node = self.render(descriptor, inline=features.inline, tolerant=features.no_recursion, location=location)
        node = apply_validation(node, features)
        if features.nullable:
            node = mark_nullable(node)
        return apply_metadata(node, documented(features.metadata(), doc, deprecated))

    def render(
        self,
        descriptor: TypeDescriptor,
        inline: bool = False,
        tolerant: bool = False,
        location: Optional[str] = None,
    ) -> SchemaNode:
        kind = descriptor.kind
        if kind == DescriptorKind.PRIMITIVE:
            if descriptor.name == UNCONSTRAINED:
                return PrimitiveSchema()
            return primitive_schema(
                descriptor,
                non_strict_integers=self.config.non_strict_integers,
                unsigned_minimum=self.config.unsigned_minimum,
            )
        if kind == DescriptorKind.NULLABLE:
            # optionality is decided by the enclosing object
            return self.render(descriptor.child, inline, tolerant, location)
        if kind == DescriptorKind.TRANSPARENT:
            return self.render(descriptor.child, inline, tolerant or descriptor.indirect, location)
        if kind == DescriptorKind.SEQUENCE:
            return ArraySchema(
                items=self.render(descriptor.child, inline, True, location),
                unique_items=True if descriptor.unique else None,
            )
        if kind == DescriptorKind.MAP:
            return ObjectSchema(additional_properties=self.render(descriptor.child, inline, True, location))
        return self.nominal(descriptor, inline, tolerant, location)

    def nominal(
        self,
        descriptor: TypeDescriptor,
        inline: bool = False,
        tolerant: bool = False,
        location: Optional[str] = None,
    ) -> SchemaNode:
        decl = self.lookup(descriptor.name)
        if decl is None:
            name = canonical_name(descriptor, self.config.generic_separator)
            if self.config.strict_references:
                raise UnknownTypeError(name, location=location)
            if not self.registry.has_schema(name):
                self.logger.warning("Unresolved reference", reference=name, location=location)
            return self.ref(name)

        if decl.is_generic or descriptor.args:
            name, substitutions = self.instantiator.instantiate(decl, descriptor, location=location)
        else:
            name, substitutions = self.component_name(decl), {}

        if self.guard.is_active(name):
            self.guard.check_back_edge(name, tolerant, location=location)
            self._cycle_targets.setdefault(name, (decl, substitutions))
            return self.ref(name)
        if inline:
            return self.expand(decl, name, substitutions, tolerant)
        if name not in self.components and not self.registry.has_schema(name):
            self.components[name] = self.expand(decl, name, substitutions, tolerant)
            self.logger.debug("Discovered component", component=name)
        return self.ref(name)

    def expand(
        self,
        decl: TypeDecl,
        name: str,
        substitutions: Dict[str, TypeDescriptor],
        tolerant: bool = False,
    ) -> SchemaNode:
        with self.guard.enter(name, tolerant or self.declaration_features(decl).no_recursion):
            return self.build_declaration(decl, substitutions)

    def build_declaration(self, decl: TypeDecl, substitutions: Dict[str, TypeDescriptor]) -> SchemaNode:
        features = self.declaration_features(decl)
        serde = self.declaration_serde(decl)
        if decl.kind == DeclKind.STRUCT:
            node = structs.build_named_struct(self, decl, substitutions, features, serde)
        elif decl.kind == DeclKind.TUPLE_STRUCT:
            node = structs.build_tuple_struct(self, decl, substitutions, features)
        elif decl.kind == DeclKind.UNIT_STRUCT:
            node = structs.build_unit_struct()
        else:
            node = enums.build_enum(self, decl, substitutions, features, serde)
        return apply_metadata(node, documented(features.metadata(), decl.doc, decl.deprecated))

    # entry points

    def derive_root(self, decl: TypeDecl, descriptor: Optional[TypeDescriptor] = None) -> Tuple[str, SchemaNode]:
        """
        Expands `decl` as the root of the pass. A generic declaration derived
        without concrete arguments keeps its formal parameters unconstrained and
        instantiates each of its declared aliases.
        """
        instantiate_aliases = False
        if descriptor is not None and descriptor.args:
            name, substitutions = self.instantiator.instantiate(decl, descriptor, location=decl.name)
        elif decl.is_generic:
            name = self.component_name(decl)
            substitutions = {formal: unconstrained() for formal in decl.generics}
            instantiate_aliases = True
        else:
            name, substitutions = self.component_name(decl), {}

        self.root_name = name
        node = self.expand(decl, name, substitutions)
        if instantiate_aliases:
            for alias in decl.aliases:
                self.render(self.descriptor(alias.type, location=decl.name), location=decl.name)
        self._expand_cycle_targets()
        return name, node

    def _expand_cycle_targets(self) -> None:
        # inline types cut by the guard still need a named schema for their reference
        pending = self._pending_cycle_targets()
        while pending:
            for name in pending:
                decl, substitutions = self._cycle_targets[name]
                self.components[name] = self.expand(decl, name, substitutions)
                self.logger.debug("Discovered component", component=name, reason="recursion")
            pending = self._pending_cycle_targets()

    def _pending_cycle_targets(self) -> List[str]:
        return sorted(
            name for name in self._cycle_targets
            if name != self.root_name and name not in self.components and not self.registry.has_schema(name)
        )

    def sorted_components(self) -> Dict[str, SchemaNode]:
        return {name: self.components[name] for name in sorted(self.components) if name != self.root_name}
