"""
Caller-owned table of declarations and named schemas.

One registry lives for one document-assembly run. Derivation passes read it
to resolve nominal types and skip already known components; the caller merges
each pass's result back with `register`.
"""
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import structlog

from ..models.declarations import TypeDecl
from ..models.schema import SchemaNode, render_components

if TYPE_CHECKING:
    from .derive_service import DerivationResult

logger = structlog.get_logger(__name__)


class SchemaRegistry:
    def __init__(self, declarations: Iterable[TypeDecl] = (), schemas: Optional[Dict[str, SchemaNode]] = None):
        self.declarations: Dict[str, TypeDecl] = {}
        self.schemas: Dict[str, SchemaNode] = dict(schemas or {})
        for decl in declarations:
            self.declare(decl)

    def declare(self, decl: TypeDecl) -> None:
        if decl.name in self.declarations and self.declarations[decl.name] != decl:
            logger.warning("Replacing declaration", type_name=decl.name)
        self.declarations[decl.name] = decl

    def get_declaration(self, name: str) -> Optional[TypeDecl]:
        return self.declarations.get(name)

    def has_schema(self, name: str) -> bool:
        return name in self.schemas

    def add_schema(self, name: str, schema: SchemaNode) -> bool:
        """Adds a named schema unless one is already registered under that name."""
        if name in self.schemas:
            logger.debug("Schema already registered", component=name)
            return False
        self.schemas[name] = schema
        return True

    def register(self, result: "DerivationResult") -> List[str]:
        """Merges a derivation result, visiting names in sorted order. Returns the added names."""
        named = dict(result.components)
        named[result.name] = result.schema_node
        return [name for name in sorted(named) if self.add_schema(name, named[name])]

    def sorted_names(self) -> List[str]:
        return sorted(self.schemas)

    def to_openapi(self) -> Dict[str, Any]:
        """Named schemas rendered for `components.schemas`, sorted by name."""
        return render_components(self.schemas)
