"""
Service running derivation passes: one declared type (or one concrete
instantiation of a generic type) in, one schema plus the newly discovered
named schemas out.
"""
from typing import Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, Field

from ..config import Config
from ..exceptions import UnknownTypeError
from ..models.declarations import TypeDecl
from ..models.schema import SchemaNode, render_components
from .context import DerivationContext
from .descriptors import DescriptorKind, build_descriptor
from .recursion import Alias
from .registry import SchemaRegistry

logger = structlog.get_logger(__name__)


class DerivationResult(BaseModel):
    name: str
    schema_node: SchemaNode
    components: Dict[str, SchemaNode] = Field(default_factory=dict) # sorted by name
    aliases: List[Alias] = Field(default_factory=list)

    def to_openapi(self) -> dict:
        return self.schema_node.to_openapi()

    def to_json(self) -> str:
        """Renders the root schema; components are rendered separately."""
        return self.schema_node.to_json()

    def components_openapi(self) -> dict:
        return render_components(self.components)


class SchemaDeriveService:
    """
    Derives schemas from declared types. Each call to `derive` is an
    independent pass with its own recursion and alias state.
    """

    def __init__(self, app_config: Optional[Config] = None):
        self.app_config = app_config or Config()
        self.derive_config = self.app_config.derive
        self.logger = logger.bind(service="SchemaDeriveService")

    def derive(self, target: Union[str, TypeDecl], registry: Optional[SchemaRegistry] = None) -> DerivationResult:
        """
        Derives the schema of `target`, either a declaration or a type
        expression naming a declared type (e.g. `Page<Pet>`).
        """
        registry = registry if registry is not None else SchemaRegistry()
        descriptor = None
        if isinstance(target, TypeDecl):
            decl = target
        else:
            descriptor = build_descriptor(target).unwrap_transparent()
            if descriptor.kind != DescriptorKind.NOMINAL:
                raise UnknownTypeError(target)
            decl = registry.get_declaration(descriptor.name)
            if decl is None:
                raise UnknownTypeError(descriptor.name)

        log = self.logger.bind(type_name=decl.name)
        log.debug("Deriving schema")
        ctx = DerivationContext(self.derive_config, registry, root=decl, log=log)
        name, node = ctx.derive_root(decl, descriptor)
        result = DerivationResult(
            name=name,
            schema_node=node,
            components=ctx.sorted_components(),
            aliases=ctx.instantiator.sorted_aliases(),
        )
        log.debug("Derived schema", schema_name=name, components=list(result.components), aliases=len(result.aliases))
        return result

    def derive_all(self, registry: SchemaRegistry) -> SchemaRegistry:
        """
        Derives every declared type in name order and merges the results into
        `registry`. Generic declarations are derived through their declared
        aliases only.
        """
        for name in sorted(registry.declarations):
            decl = registry.declarations[name]
            if decl.is_generic:
                targets: List[Union[str, TypeDecl]] = [alias.type for alias in decl.aliases]
            elif registry.has_schema(name):
                # already discovered as a component of an earlier pass
                continue
            else:
                targets = [decl]
            for target in targets:
                added = registry.register(self.derive(target, registry))
                self.logger.debug("Registered schemas", type_name=name, added=added)
        self.logger.info("Derived all declarations", declarations=len(registry.declarations), schemas=len(registry.schemas))
        return registry
