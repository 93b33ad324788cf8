"""schemaforge - derives OpenAPI schema trees from declared data types.

Reconciles documentation annotations with the wire-format serialization
rules of each declared type so that the emitted schema matches what actually
goes over the wire.
"""

__version__ = "0.3.0"

from .config import Config
from .exceptions import SchemaDeriveError
from .schema_gen.derive_service import DerivationResult, SchemaDeriveService
from .schema_gen.registry import SchemaRegistry

__all__ = [
    "Config",
    "DerivationResult",
    "SchemaDeriveError",
    "SchemaDeriveService",
    "SchemaRegistry",
]
